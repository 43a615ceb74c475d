"""
Immutable learner table published by the orchestrator.

Predict reads the current table reference once and works on that snapshot;
training and online updates build a new table and swap the reference, so a
concurrent predict never sees a half-updated set of learners and weights.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional, Tuple

from ensemble_engine.learners.base import BaseLearner


@dataclass(frozen=True)
class LearnerTable:
    """Versioned snapshot of the ensemble state.

    Attributes:
        learners: Base learners in slot order
        weights: One weight per learner slot (boosting: confidence, 0 = unused)
        trained: Whether each slot trained successfully
        meta_learner: Stacking meta-learner, or None
        meta_trained: Whether the meta-learner trained successfully
        learning_rate: Boosting learning rate after training
        default_prediction: Mean training target, None before training
        n_features: Training feature count, None before training
        version: Monotonic publication counter
        created_at: Publication time
    """
    learners: Tuple[BaseLearner, ...]
    weights: Tuple[float, ...]
    trained: Tuple[bool, ...]
    meta_learner: Optional[BaseLearner] = None
    meta_trained: bool = False
    learning_rate: float = 0.1
    default_prediction: Optional[float] = None
    n_features: Optional[int] = None
    version: int = 0
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def is_trained(self) -> bool:
        """Whether at least one slot is usable."""
        return self.default_prediction is not None and any(self.trained)

    def evolve(self, **changes) -> "LearnerTable":
        """Copy with changes, bumping the version."""
        changes.setdefault("version", self.version + 1)
        changes.setdefault("created_at", datetime.now())
        return replace(self, **changes)
