"""
Decision tree learner backed by scikit-learn's DecisionTreeRegressor.

Shallow trees by default: bagged and boosted ensembles of deep trees
overfit badly on noisy market targets.
"""

from typing import Dict, List, Optional, Sequence
import logging

import numpy as np
from sklearn.tree import DecisionTreeRegressor

from ensemble_engine.errors import LearnerFailure
from ensemble_engine.learners.base import BaseLearner

logger = logging.getLogger(__name__)

MAX_TREE_DEPTH = 20


class DecisionTreeLearner(BaseLearner):
    """Regression tree learner.

    Attributes:
        max_depth: Maximum depth of the tree (capped at 20)
        min_samples_split: Minimum samples to split a node
        min_samples_leaf: Minimum samples in leaf nodes
        model: Fitted DecisionTreeRegressor, or None
    """

    name = "decision_tree"

    def __init__(
        self,
        max_depth: int = 6,
        min_samples_split: int = 10,
        min_samples_leaf: int = 5,
        random_state: Optional[int] = None,
    ):
        super().__init__(random_state=random_state)

        if max_depth > MAX_TREE_DEPTH:
            logger.warning(f"max_depth {max_depth} capped at {MAX_TREE_DEPTH}")
            max_depth = MAX_TREE_DEPTH

        self.max_depth = max(1, int(max_depth))
        self.min_samples_split = min_samples_split
        self.min_samples_leaf = min_samples_leaf
        self.model: Optional[DecisionTreeRegressor] = None

    def train(self, features: Sequence[Sequence[float]], targets: Sequence[float]) -> None:
        X, y = self._validate_training_data(features, targets)

        model = DecisionTreeRegressor(
            max_depth=self.max_depth,
            min_samples_split=self.min_samples_split,
            min_samples_leaf=self.min_samples_leaf,
            random_state=self.random_state,
        )
        try:
            model.fit(X, y)
        except ValueError as e:
            raise LearnerFailure(f"decision_tree: fit failed: {e}", self.name)

        self.model = model
        self._mark_fitted(X)

    def predict(self, features: Sequence[float]) -> float:
        x = self._validate_features(features)
        return float(self.model.predict(x)[0])

    def clone(self) -> "DecisionTreeLearner":
        return DecisionTreeLearner(**self.get_params())

    def get_params(self) -> Dict:
        return {
            "max_depth": self.max_depth,
            "min_samples_split": self.min_samples_split,
            "min_samples_leaf": self.min_samples_leaf,
            "random_state": self.random_state,
        }

    def get_feature_importance(self) -> List[float]:
        if not self.is_fitted:
            return []
        return [float(v) for v in np.asarray(self.model.feature_importances_)]
