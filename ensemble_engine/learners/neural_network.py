"""
Feed-forward neural network learner backed by scikit-learn's MLPRegressor.

Inputs are standardized before fitting; the scaler is part of the trained
state and is rebuilt on every train.
"""

from typing import Dict, List, Optional, Sequence, Tuple
import logging
import warnings

import numpy as np
from sklearn.exceptions import ConvergenceWarning
from sklearn.neural_network import MLPRegressor
from sklearn.preprocessing import StandardScaler

from ensemble_engine.errors import LearnerFailure
from ensemble_engine.learners.base import BaseLearner

logger = logging.getLogger(__name__)


class NeuralNetworkLearner(BaseLearner):
    """Multi-layer perceptron regressor.

    Attributes:
        hidden_layer_sizes: Units per hidden layer
        learning_rate_init: Adam step size
        max_iter: Maximum training epochs
        alpha: L2 penalty
    """

    name = "neural_network"

    def __init__(
        self,
        hidden_layer_sizes: Tuple[int, ...] = (64, 32, 16),
        learning_rate_init: float = 0.001,
        max_iter: int = 500,
        alpha: float = 1e-4,
        random_state: Optional[int] = None,
    ):
        super().__init__(random_state=random_state)
        self.hidden_layer_sizes = tuple(hidden_layer_sizes)
        self.learning_rate_init = learning_rate_init
        self.max_iter = max_iter
        self.alpha = alpha

        self.model: Optional[MLPRegressor] = None
        self.scaler: Optional[StandardScaler] = None

    def train(self, features: Sequence[Sequence[float]], targets: Sequence[float]) -> None:
        X, y = self._validate_training_data(features, targets)

        scaler = StandardScaler()
        model = MLPRegressor(
            hidden_layer_sizes=self.hidden_layer_sizes,
            learning_rate_init=self.learning_rate_init,
            max_iter=self.max_iter,
            alpha=self.alpha,
            random_state=self.random_state,
        )

        try:
            X_scaled = scaler.fit_transform(X)
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", category=ConvergenceWarning)
                model.fit(X_scaled, y)
        except ValueError as e:
            raise LearnerFailure(f"neural_network: fit failed: {e}", self.name)

        self.model = model
        self.scaler = scaler
        self._mark_fitted(X)

    def predict(self, features: Sequence[float]) -> float:
        x = self._validate_features(features)
        return float(self.model.predict(self.scaler.transform(x))[0])

    def clone(self) -> "NeuralNetworkLearner":
        return NeuralNetworkLearner(**self.get_params())

    def get_params(self) -> Dict:
        return {
            "hidden_layer_sizes": self.hidden_layer_sizes,
            "learning_rate_init": self.learning_rate_init,
            "max_iter": self.max_iter,
            "alpha": self.alpha,
            "random_state": self.random_state,
        }

    def get_feature_importance(self) -> List[float]:
        # TODO: gradient-based attribution for the MLP
        return []
