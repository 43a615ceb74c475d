"""
Online learning for trained ensembles.

Fresh samples are buffered, and once enough have arrived (and the update
interval has elapsed) they are blended into the ensemble as residual
corrections. Each update is scored; a sharp score drop is treated as drift.

Classes:
    OnlineLearningBuffer: Bounded, thread-safe sample window
    OnlinePerformanceTracker: Score history with drift detection
    BlendedLearner: Learner plus decaying residual corrections
    OnlineAdaptationController: Update gating, updates and rollback
"""

from ensemble_engine.online_learning.buffer import OnlineLearningBuffer
from ensemble_engine.online_learning.performance_tracker import (
    OnlinePerformanceTracker,
    PerformanceRecord,
)
from ensemble_engine.online_learning.blending import BlendedLearner
from ensemble_engine.online_learning.controller import (
    AdaptationState,
    OnlineAdaptationController,
)

__all__ = [
    "OnlineLearningBuffer",
    "OnlinePerformanceTracker",
    "PerformanceRecord",
    "BlendedLearner",
    "AdaptationState",
    "OnlineAdaptationController",
]
