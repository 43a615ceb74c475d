"""
Base Learner for the ensemble engine.

This module defines the capability contract every trainable scalar predictor
implements, so the orchestrator can treat decision trees, linear models,
neural networks, LSTMs and Transformers uniformly.

Classes:
    BaseLearner: Abstract base class defining the learner interface
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

import numpy as np

from ensemble_engine.errors import EmptyDataError, LearnerFailure, NotTrainedError

logger = logging.getLogger(__name__)


class BaseLearner(ABC):
    """Abstract base class for all ensemble learners.

    The contract is exactly five operations: ``train``, ``predict``,
    ``name``, ``clone`` and ``get_feature_importance``. Subclasses get
    shared input validation and bookkeeping from this class.

    ``clone`` returns an untrained instance with the same hyperparameters
    and seed. Trained parameters are never copied.

    Attributes:
        random_state: Seed used for any stochastic part of training
        is_fitted: Whether train has completed successfully

    Example:
        >>> class MeanLearner(BaseLearner):
        ...     name = "mean"
        ...     def train(self, features, targets):
        ...         X, y = self._validate_training_data(features, targets)
        ...         self._mean = float(y.mean())
        ...         self._mark_fitted(X)
        ...     def predict(self, features):
        ...         self._validate_features(features)
        ...         return self._mean
        ...     def clone(self):
        ...         return MeanLearner(random_state=self.random_state)
        ...     def get_feature_importance(self):
        ...         return []
    """

    def __init__(self, random_state: Optional[int] = None):
        self.random_state = random_state
        self.is_fitted = False

        self._n_features: Optional[int] = None
        self._fit_timestamp: Optional[datetime] = None
        self._fit_samples: int = 0

    @property
    @abstractmethod
    def name(self) -> str:
        """Learner type key, e.g. ``decision_tree``."""
        pass

    @abstractmethod
    def train(self, features: Sequence[Sequence[float]], targets: Sequence[float]) -> None:
        """Train the learner.

        Args:
            features: Feature matrix (N observations x M features)
            targets: Scalar target per observation

        Raises:
            EmptyDataError: If no training data is given
            LearnerFailure: If training fails
        """
        pass

    @abstractmethod
    def predict(self, features: Sequence[float]) -> float:
        """Predict a scalar from one feature vector.

        Raises:
            NotTrainedError: If called before a successful train
            LearnerFailure: If the input is invalid or prediction fails
        """
        pass

    @abstractmethod
    def clone(self) -> "BaseLearner":
        """Create a new, untrained learner with identical hyperparameters."""
        pass

    @abstractmethod
    def get_feature_importance(self) -> List[float]:
        """Per-feature-index importance, or an empty list if unsupported."""
        pass

    def get_params(self) -> Dict[str, Any]:
        """Constructor parameters, used by clone implementations."""
        return {"random_state": self.random_state}

    def _validate_training_data(
        self,
        features: Sequence[Sequence[float]],
        targets: Sequence[float],
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Validate and convert training input.

        Non-finite feature values are replaced by 0.

        Returns:
            Tuple of (X, y) float arrays
        """
        if features is None or len(features) == 0 or targets is None or len(targets) == 0:
            raise EmptyDataError(f"{self.name}: training data is empty")

        try:
            X = np.asarray(features, dtype=float)
            y = np.asarray(targets, dtype=float).ravel()
        except (TypeError, ValueError) as e:
            raise LearnerFailure(f"{self.name}: invalid training data: {e}", self.name)

        if X.ndim == 1:
            X = X.reshape(-1, 1)
        if X.ndim != 2:
            raise LearnerFailure(
                f"{self.name}: features must be 2-dimensional, got {X.shape}",
                self.name,
            )
        if len(X) != len(y):
            raise LearnerFailure(
                f"{self.name}: features and targets length mismatch: "
                f"{len(X)} vs {len(y)}",
                self.name,
            )

        bad = ~np.isfinite(X)
        if bad.any():
            logger.warning(f"{self.name}: replacing {int(bad.sum())} non-finite feature values with 0")
            X = np.where(bad, 0.0, X)

        if not np.isfinite(y).all():
            raise LearnerFailure(f"{self.name}: targets contain non-finite values", self.name)

        return X, y

    def _validate_features(self, features: Sequence[float]) -> np.ndarray:
        """Validate one feature vector for prediction.

        Returns:
            Array of shape (1, n_features)
        """
        if not self.is_fitted:
            raise NotTrainedError(f"{self.name} must be trained before prediction", self.name)

        try:
            x = np.asarray(features, dtype=float).ravel()
        except (TypeError, ValueError) as e:
            raise LearnerFailure(f"{self.name}: invalid features: {e}", self.name)

        if len(x) != self._n_features:
            raise LearnerFailure(
                f"{self.name}: expected {self._n_features} features, got {len(x)}",
                self.name,
            )
        if not np.isfinite(x).all():
            raise LearnerFailure(f"{self.name}: features contain non-finite values", self.name)

        return x.reshape(1, -1)

    def _mark_fitted(self, X: np.ndarray) -> None:
        """Record a successful train."""
        self.is_fitted = True
        self._n_features = X.shape[1]
        self._fit_timestamp = datetime.now()
        self._fit_samples = X.shape[0]
        logger.debug(f"{self.name}: trained on {X.shape[0]} samples x {X.shape[1]} features")

    def __repr__(self) -> str:
        """String representation."""
        status = "trained" if self.is_fitted else "not trained"
        return f"{self.__class__.__name__}(random_state={self.random_state}, {status})"
