"""
Ordinary least squares learner backed by scikit-learn's LinearRegression.
"""

from typing import Dict, List, Optional, Sequence
import logging

import numpy as np
from sklearn.linear_model import LinearRegression

from ensemble_engine.errors import LearnerFailure
from ensemble_engine.learners.base import BaseLearner

logger = logging.getLogger(__name__)


class LinearRegressionLearner(BaseLearner):
    """Linear regression learner.

    Feature importance is the absolute coefficient per feature, normalized
    to sum to 1.
    """

    name = "linear_regression"

    def __init__(self, fit_intercept: bool = True, random_state: Optional[int] = None):
        super().__init__(random_state=random_state)
        self.fit_intercept = fit_intercept
        self.model: Optional[LinearRegression] = None

    def train(self, features: Sequence[Sequence[float]], targets: Sequence[float]) -> None:
        X, y = self._validate_training_data(features, targets)

        model = LinearRegression(fit_intercept=self.fit_intercept)
        try:
            model.fit(X, y)
        except (ValueError, np.linalg.LinAlgError) as e:
            raise LearnerFailure(f"linear_regression: fit failed: {e}", self.name)

        if not np.isfinite(model.coef_).all():
            raise LearnerFailure("linear_regression: non-finite coefficients", self.name)

        self.model = model
        self._mark_fitted(X)

    def predict(self, features: Sequence[float]) -> float:
        x = self._validate_features(features)
        return float(self.model.predict(x)[0])

    def clone(self) -> "LinearRegressionLearner":
        return LinearRegressionLearner(**self.get_params())

    def get_params(self) -> Dict:
        return {"fit_intercept": self.fit_intercept, "random_state": self.random_state}

    def get_feature_importance(self) -> List[float]:
        if not self.is_fitted:
            return []
        weights = np.abs(np.asarray(self.model.coef_, dtype=float).ravel())
        total = weights.sum()
        if total == 0:
            return [0.0] * len(weights)
        return [float(w) for w in weights / total]
