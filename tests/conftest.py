"""
Test configuration for the ensemble engine.
"""

import os
import sys
from pathlib import Path

import numpy as np
import pytest

# Add the repository root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ensemble_engine.errors import LearnerFailure  # noqa: E402
from ensemble_engine.learners.base import BaseLearner  # noqa: E402


CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


# ─── Stub Learners ───────────────────────────────────────────────


class ConstantLearner(BaseLearner):
    """Predicts a fixed value once trained."""

    name = "constant"

    def __init__(self, value: float = 1.0, random_state=None):
        super().__init__(random_state=random_state)
        self.value = value
        self.train_calls = 0

    def train(self, features, targets):
        X, _ = self._validate_training_data(features, targets)
        self.train_calls += 1
        self._mark_fitted(X)

    def predict(self, features):
        self._validate_features(features)
        return self.value

    def clone(self):
        return ConstantLearner(self.value, self.random_state)

    def get_feature_importance(self):
        return []


class FailingTrainLearner(ConstantLearner):
    """Always fails to train."""

    name = "failing_train"

    def train(self, features, targets):
        raise LearnerFailure("training always fails", self.name)

    def clone(self):
        return FailingTrainLearner(self.value, self.random_state)


class FailingPredictLearner(ConstantLearner):
    """Trains fine, always fails to predict."""

    name = "failing_predict"

    def predict(self, features):
        raise LearnerFailure("prediction always fails", self.name)

    def clone(self):
        return FailingPredictLearner(self.value, self.random_state)


class CancellingLearner(ConstantLearner):
    """Sets a cancel event as a side effect of training."""

    name = "cancelling"

    def __init__(self, event, value: float = 1.0, random_state=None):
        super().__init__(value, random_state)
        self.event = event

    def train(self, features, targets):
        super().train(features, targets)
        self.event.set()

    def clone(self):
        return CancellingLearner(self.event, self.value, self.random_state)


@pytest.fixture
def stubs():
    """Stub learner classes for failure injection."""
    class Stubs:
        Constant = ConstantLearner
        FailingTrain = FailingTrainLearner
        FailingPredict = FailingPredictLearner
        Cancelling = CancellingLearner
    return Stubs


# ─── Datasets ────────────────────────────────────────────────────


@pytest.fixture
def config_dir():
    """Repository config directory holding model_params.yaml."""
    return str(CONFIG_DIR)


@pytest.fixture
def linear_dataset():
    """200 rows, 4 features, noisy linear target."""
    from ensemble_engine.dataset import TrainingDataset

    np.random.seed(42)
    X = np.random.randn(200, 4)
    y = 2.0 * X[:, 0] - 1.0 * X[:, 1] + 0.5 * X[:, 2] + 0.1 * np.random.randn(200)
    return TrainingDataset(X=X, y=y, feature_names=["momentum", "spread", "volume", "noise"])


@pytest.fixture
def exact_linear_dataset():
    """100 rows, 3 features, noise-free linear target."""
    from ensemble_engine.dataset import TrainingDataset

    np.random.seed(7)
    X = np.random.randn(100, 3)
    y = 1.5 * X[:, 0] - 2.0 * X[:, 1] + 0.25 * X[:, 2]
    return TrainingDataset(X=X, y=y)


@pytest.fixture
def small_dataset():
    """40 rows, 2 features, for quick training."""
    from ensemble_engine.dataset import TrainingDataset

    np.random.seed(0)
    X = np.random.randn(40, 2)
    y = X[:, 0] + 0.5 * X[:, 1]
    return TrainingDataset(X=X, y=y)
