"""
Incremental update blending.

An online update never mutates a published learner. Instead it trains a
fresh clone on the residuals of the recent batch and wraps the slot as
``base + sum(weight_k * correction_k)``. Older corrections decay by the
forget factor on every update and are dropped once negligible.

Classes:
    BlendedLearner: Base learner plus weighted residual corrections
"""

from typing import List, Sequence, Tuple
import logging

from ensemble_engine.learners.base import BaseLearner

logger = logging.getLogger(__name__)

# Corrections whose weight decays below this are pruned
MIN_CORRECTION_WEIGHT = 1e-3


class BlendedLearner(BaseLearner):
    """A trained learner with residual corrections blended in.

    Instances are treated as immutable: ``with_correction`` returns a new
    BlendedLearner and leaves this one untouched.

    Attributes:
        base: The underlying trained learner
        corrections: (learner, weight) pairs, oldest first
    """

    def __init__(
        self,
        base: BaseLearner,
        corrections: Sequence[Tuple[BaseLearner, float]] = (),
    ):
        super().__init__(random_state=base.random_state)
        if isinstance(base, BlendedLearner):
            corrections = tuple(base.corrections) + tuple(corrections)
            base = base.base
        self.base = base
        self.corrections: Tuple[Tuple[BaseLearner, float], ...] = tuple(corrections)
        self.is_fitted = base.is_fitted
        self._n_features = base._n_features

    @property
    def name(self) -> str:
        return self.base.name

    def with_correction(
        self,
        correction: BaseLearner,
        rate: float,
        forget_factor: float,
        max_corrections: int,
    ) -> "BlendedLearner":
        """New learner with existing corrections decayed and one appended.

        Args:
            correction: Trained learner fitted on residuals
            rate: Weight of the new correction
            forget_factor: Multiplier applied to existing correction weights
            max_corrections: Corrections kept, newest first
        """
        decayed = [
            (learner, weight * forget_factor)
            for learner, weight in self.corrections
            if weight * forget_factor >= MIN_CORRECTION_WEIGHT
        ]
        decayed.append((correction, rate))
        pruned = len(self.corrections) + 1 - min(len(decayed), max_corrections)
        if pruned:
            logger.debug(f"{self.name}: pruned {pruned} stale corrections")
        return BlendedLearner(self.base, decayed[-max_corrections:])

    def train(self, features: Sequence[Sequence[float]], targets: Sequence[float]) -> None:
        """Retrain the base learner and drop every correction."""
        self.base.train(features, targets)
        self.corrections = ()
        self.is_fitted = self.base.is_fitted
        self._n_features = self.base._n_features

    def predict(self, features: Sequence[float]) -> float:
        value = self.base.predict(features)
        for learner, weight in self.corrections:
            try:
                value += weight * learner.predict(features)
            except Exception as e:
                logger.debug(f"{self.name}: correction failed to predict, skipped: {e}")
        return value

    def clone(self) -> BaseLearner:
        return self.base.clone()

    def get_feature_importance(self) -> List[float]:
        return self.base.get_feature_importance()

    @property
    def total_correction_weight(self) -> float:
        """Sum of correction weights."""
        return sum(w for _, w in self.corrections)

    def __repr__(self) -> str:
        return f"BlendedLearner(base={self.base!r}, corrections={len(self.corrections)})"
