"""
Online Adaptation Controller for the ensemble engine.

Buffers incoming samples and, when enough fresh samples have arrived and the
update interval has elapsed, folds them into the ensemble with a bounded,
rate-limited incremental update. Each update is scored with directional
accuracy; a sharp drop flags drift and (by default) rolls the update back.

Classes:
    AdaptationState: Lifecycle states of the controller
    OnlineAdaptationController: Buffer, update gating, updates and drift

Example:
    >>> controller = OnlineAdaptationController(ensemble)
    >>> controller.enable(OnlineLearningConfig(min_samples_for_update=10, update_interval=0))
    >>> for features, target in stream:
    ...     if controller.add_sample(features, target):
    ...         print(controller.get_online_learning_stats())
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple
import logging
import threading
import time

import numpy as np

from ensemble_engine.config import OnlineLearningConfig, load_online_config
from ensemble_engine.dataset import TrainingDataset
from ensemble_engine.ensemble.orchestrator import EnsembleOrchestrator
from ensemble_engine.ensemble.sampling import directional_accuracy
from ensemble_engine.ensemble.table import LearnerTable
from ensemble_engine.errors import (
    EnsembleEngineError,
    LearnerFailure,
    NotTrainedError,
    OnlineLearningUnsupportedError,
)
from ensemble_engine.online_learning.blending import BlendedLearner
from ensemble_engine.online_learning.buffer import OnlineLearningBuffer
from ensemble_engine.online_learning.performance_tracker import OnlinePerformanceTracker

logger = logging.getLogger(__name__)


class AdaptationState(Enum):
    """Controller lifecycle.

    COOLDOWN is ARMED while the update interval has not yet elapsed.
    """

    DISABLED = "disabled"
    ARMED = "armed"
    UPDATING = "updating"
    COOLDOWN = "cooldown"


class OnlineAdaptationController:
    """Drives online updates of a trained ensemble.

    Attributes:
        orchestrator: Ensemble being adapted
        config: Active online-learning configuration (None until enabled)
        buffer: Sliding window of recent samples (None until enabled)
        tracker: Performance history and drift detection
        update_count: Completed updates
    """

    # Recent samples used to score an update
    SCORING_WINDOW = 100

    def __init__(self, orchestrator: EnsembleOrchestrator):
        self.orchestrator = orchestrator
        self.config: Optional[OnlineLearningConfig] = None
        self.buffer: Optional[OnlineLearningBuffer] = None
        self.tracker = OnlinePerformanceTracker()
        self.update_count = 0

        self._enabled = False
        self._updating = False
        # Epoch, so the first update is gated by sample count only
        self._last_update_ts = 0.0
        self._lock = threading.RLock()

    # ── Lifecycle ────────────────────────────────────────────

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def state(self) -> AdaptationState:
        """Current lifecycle state."""
        if not self._enabled:
            return AdaptationState.DISABLED
        if self._updating:
            return AdaptationState.UPDATING
        if not self._interval_elapsed():
            return AdaptationState.COOLDOWN
        return AdaptationState.ARMED

    @property
    def last_update_time(self) -> datetime:
        """Time of the last completed update (epoch before the first)."""
        return datetime.fromtimestamp(self._last_update_ts)

    def enable(self, config: Optional[OnlineLearningConfig] = None) -> None:
        """Arm online learning.

        Args:
            config: Online configuration, or a dict; defaults come from
                model_params.yaml

        Raises:
            ConfigurationError: If the configuration is invalid
            OnlineLearningUnsupportedError: If the ensemble strategy has no
                incremental update path
        """
        if config is None:
            config = load_online_config()
        elif isinstance(config, dict):
            config = OnlineLearningConfig.from_dict(config)

        if not self.orchestrator.supports_online_updates:
            raise OnlineLearningUnsupportedError(
                f"{self.orchestrator.strategy.value} ensembles do not support online updates"
            )
        if not config.enabled:
            logger.info("Online learning config has enabled=false, staying disabled")
            return

        with self._lock:
            self.config = config
            self.buffer = OnlineLearningBuffer(max_size=config.buffer_size)
            self.tracker = OnlinePerformanceTracker(
                drift_threshold=config.drift_threshold,
                max_history=config.max_history,
            )
            self._last_update_ts = 0.0
            self._enabled = True

        logger.info(
            f"Online learning enabled: buffer={config.buffer_size}, "
            f"min_samples={config.min_samples_for_update}, interval={config.update_interval}s"
        )

    def disable(self) -> None:
        """Clear the buffer and stop adapting."""
        with self._lock:
            if self.buffer is not None:
                self.buffer.clear()
            self._enabled = False
        logger.info("Online learning disabled")

    # ── Samples and gating ───────────────────────────────────

    def add_sample(
        self,
        features: Sequence[float],
        target: float,
        timestamp: Optional[datetime] = None,
    ) -> bool:
        """Buffer a sample and update the ensemble when due.

        Returns:
            True if an update ran

        Raises:
            NotTrainedError: If online learning is not enabled
        """
        if not self._enabled:
            raise NotTrainedError("Online learning not enabled")

        self.buffer.add_sample(features, target, timestamp)
        # Gate and update as one step so concurrent producers see the new
        # last-update time before checking the gate themselves
        with self._lock:
            if self.should_update():
                return self.update_model()
        return False

    def _interval_elapsed(self) -> bool:
        if self.config is None:
            return False
        return time.time() - self._last_update_ts >= self.config.update_interval

    def should_update(self) -> bool:
        """Enabled, enough buffered samples, and the interval has elapsed."""
        if not self._enabled or self._updating:
            return False
        return (
            self.buffer.size() >= self.config.min_samples_for_update
            and self._interval_elapsed()
        )

    def current_learning_rate(self) -> float:
        """Blending rate, decayed while the latest score is poor."""
        config = self.config or OnlineLearningConfig()
        latest = self.tracker.latest
        if latest is not None and latest.score < config.performance_threshold:
            return max(config.min_learning_rate, config.learning_rate * config.learning_rate_decay)
        return config.learning_rate

    # ── Updates ──────────────────────────────────────────────

    def update_model(self) -> bool:
        """Fold the most recent samples into the ensemble.

        Runs regardless of the sample and interval gates; add_sample only
        calls it when should_update() holds.

        Returns:
            True if an update ran

        Raises:
            NotTrainedError: If online learning is disabled or the ensemble
                has never been trained
        """
        if not self._enabled:
            raise NotTrainedError("Online learning not enabled")
        if not self.orchestrator.is_trained:
            raise NotTrainedError("Ensemble must be trained before online updates")

        with self._lock:
            features, targets = self.buffer.get_samples(self.config.min_samples_for_update)
            if not features:
                logger.debug("No buffered samples, skipping online update")
                return False

            self._updating = True
            try:
                dataset = TrainingDataset(X=features, y=targets)
                rate = self.current_learning_rate()
                before = self.orchestrator.snapshot()

                table, updated = self._bagging_update(before, dataset, rate)
                published = False
                if updated:
                    published = self.orchestrator.replace_table(
                        table, expected_version=before.version
                    )

                self._last_update_ts = time.time()
                self.update_count += 1

                score, n_scored = self._score_recent()
                self.tracker.record(score, n_scored)
                logger.info(
                    f"Online update {self.update_count}: {updated} learners corrected "
                    f"on {len(dataset)} samples, rate={rate:.4f}, score={score:.3f}"
                )

                if self.tracker.detect_drift() and self.config.rollback_on_drift and published:
                    self.orchestrator.restore(before)
                    logger.warning(f"Rolled back online update {self.update_count} after drift")
            finally:
                self._updating = False

        return True

    def _bagging_update(
        self,
        table: LearnerTable,
        dataset: TrainingDataset,
        rate: float,
    ) -> Tuple[LearnerTable, int]:
        """Blend a residual correction into every trained slot.

        Slots whose correction fails keep their previous learner.
        """
        config = self.config
        learners = list(table.learners)
        updated = 0

        for idx, learner in enumerate(table.learners):
            if not table.trained[idx]:
                continue
            try:
                predictions = np.array([learner.predict(row) for row in dataset.X])
                residuals = dataset.y - predictions
                if not np.isfinite(residuals).all():
                    raise LearnerFailure("non-finite residuals", learner.name)
                correction = learner.clone()
                correction.train(dataset.X, residuals)
            except Exception as e:
                logger.warning(f"Online correction for learner {idx} ({learner.name}) failed: {e}")
                continue

            blended = learner if isinstance(learner, BlendedLearner) else BlendedLearner(learner)
            learners[idx] = blended.with_correction(
                correction,
                rate=rate,
                forget_factor=config.forget_factor,
                max_corrections=config.max_corrections,
            )
            updated += 1

        return table.evolve(learners=tuple(learners)), updated

    def _score_recent(self) -> Tuple[float, int]:
        """Directional accuracy on the most recent buffered samples."""
        features, targets = self.buffer.get_samples(self.SCORING_WINDOW)
        predictions, actuals = [], []
        for row, target in zip(features, targets):
            try:
                predictions.append(self.orchestrator.predict(row))
            except EnsembleEngineError as e:
                logger.debug(f"Skipping sample in online scoring: {e}")
                continue
            actuals.append(target)
        return directional_accuracy(predictions, actuals), len(actuals)

    def get_online_learning_stats(self) -> Dict[str, Any]:
        """Snapshot of the controller state."""
        return {
            "enabled": self._enabled,
            "buffer_size": self.buffer.size() if self.buffer is not None else 0,
            "last_update": self.last_update_time,
            "performance_history": self.tracker.scores(),
            "current_learning_rate": self.current_learning_rate(),
            "state": self.state.value,
            "drift_events": self.tracker.drift_events,
            "update_count": self.update_count,
        }
