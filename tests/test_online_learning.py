"""
Test Suite for online learning.

Tests for:
- OnlineLearningBuffer: FIFO window, copies, thread safety
- OnlinePerformanceTracker: bounded history and drift detection
- BlendedLearner: residual corrections with forgetting
- OnlineAdaptationController: gating, updates, rollback, stats
"""

import threading
import time
from datetime import datetime
from unittest.mock import patch

import pytest


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def trained_bagging(linear_dataset):
    """Trained two-tree bagging ensemble."""
    from ensemble_engine.config import EnsembleConfig
    from ensemble_engine.learners.factory import LearnerFactory

    ensemble = LearnerFactory().create_ensemble(EnsembleConfig(num_learners=2))
    return ensemble.train(linear_dataset)


@pytest.fixture
def fast_config():
    """Online config that updates every 10 samples without waiting."""
    from ensemble_engine.config import OnlineLearningConfig

    return OnlineLearningConfig(buffer_size=50, update_interval=0, min_samples_for_update=10)


def _feed(controller, dataset, count, start=0):
    results = []
    for row, target in zip(dataset.X[start:start + count], dataset.y[start:start + count]):
        results.append(controller.add_sample(row, target))
    return results


# ============================================================================
# BUFFER TESTS
# ============================================================================

class TestOnlineLearningBuffer:
    """Tests for OnlineLearningBuffer."""

    def test_fifo_eviction(self):
        """The oldest samples are evicted once capacity is reached."""
        from ensemble_engine.online_learning.buffer import OnlineLearningBuffer

        buffer = OnlineLearningBuffer(max_size=3)
        for i in range(5):
            buffer.add_sample([float(i), float(i) * 2], float(i))

        assert buffer.size() == 3
        assert len(buffer) == 3
        features, targets = buffer.get_samples(10)
        assert targets == [2.0, 3.0, 4.0]
        assert features[0] == [2.0, 4.0]

    def test_get_samples_most_recent(self):
        """get_samples returns the newest samples in arrival order."""
        from ensemble_engine.online_learning.buffer import OnlineLearningBuffer

        buffer = OnlineLearningBuffer(max_size=10)
        for i in range(6):
            buffer.add_sample([float(i)], float(i))

        _, targets = buffer.get_samples(2)
        assert targets == [4.0, 5.0]
        assert buffer.get_samples(0) == ([], [])

    def test_copies_in_and_out(self):
        """Mutating inputs or outputs never changes buffered samples."""
        from ensemble_engine.online_learning.buffer import OnlineLearningBuffer

        buffer = OnlineLearningBuffer(max_size=5)
        features = [1.0, 2.0]
        buffer.add_sample(features, 3.0)
        features[0] = 99.0

        out, _ = buffer.get_samples(1)
        assert out == [[1.0, 2.0]]
        out[0][0] = -1.0
        assert buffer.get_samples(1)[0] == [[1.0, 2.0]]

    def test_clear_and_max_size(self):
        """clear empties the buffer; max_size is fixed."""
        from ensemble_engine.online_learning.buffer import OnlineLearningBuffer

        buffer = OnlineLearningBuffer(max_size=4)
        buffer.add_sample([1.0], 1.0)
        buffer.clear()
        assert buffer.size() == 0
        assert buffer.max_size == 4

        with pytest.raises(ValueError):
            OnlineLearningBuffer(max_size=0)

    def test_concurrent_adds(self):
        """Concurrent producers never exceed capacity."""
        from ensemble_engine.online_learning.buffer import OnlineLearningBuffer

        buffer = OnlineLearningBuffer(max_size=100)

        def produce(offset):
            for i in range(200):
                buffer.add_sample([float(offset + i)], float(i))

        threads = [threading.Thread(target=produce, args=(k * 1000,)) for k in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert buffer.size() == 100
        assert len(buffer.get_samples(100)[0]) == 100


# ============================================================================
# PERFORMANCE TRACKER TESTS
# ============================================================================

class TestOnlinePerformanceTracker:
    """Tests for OnlinePerformanceTracker."""

    def test_drift_needs_two_records(self):
        """A single record never signals drift."""
        from ensemble_engine.online_learning.performance_tracker import OnlinePerformanceTracker

        tracker = OnlinePerformanceTracker(drift_threshold=0.1)
        tracker.record(0.9)
        assert not tracker.detect_drift()

    def test_drift_on_large_drop(self):
        """A drop above the threshold is drift; smaller drops and gains are not."""
        from ensemble_engine.online_learning.performance_tracker import OnlinePerformanceTracker

        tracker = OnlinePerformanceTracker(drift_threshold=0.1)
        tracker.record(0.8)
        tracker.record(0.75)
        assert not tracker.detect_drift()
        tracker.record(0.9)
        assert not tracker.detect_drift()
        tracker.record(0.6)
        assert tracker.detect_drift()
        assert tracker.drift_events == 1

    def test_history_is_bounded(self):
        """The oldest records are dropped past max_history."""
        from ensemble_engine.online_learning.performance_tracker import OnlinePerformanceTracker

        tracker = OnlinePerformanceTracker(max_history=3)
        for score in [0.1, 0.2, 0.3, 0.4, 0.5]:
            tracker.record(score)
        assert tracker.scores() == [0.3, 0.4, 0.5]
        assert tracker.latest.score == 0.5
        assert tracker.latest.to_dict()["score"] == 0.5


# ============================================================================
# BLENDING TESTS
# ============================================================================

class TestBlendedLearner:
    """Tests for BlendedLearner."""

    def _trained(self, stubs, value):
        learner = stubs.Constant(value)
        learner.train([[0.0], [1.0]], [0.0, 1.0])
        return learner

    def test_prediction_adds_weighted_corrections(self, stubs):
        """Prediction is base plus decayed, weighted corrections."""
        from ensemble_engine.online_learning.blending import BlendedLearner

        blended = BlendedLearner(self._trained(stubs, 1.0))
        assert blended.name == "constant"
        assert blended.is_fitted

        once = blended.with_correction(self._trained(stubs, 2.0), rate=0.5,
                                       forget_factor=0.5, max_corrections=10)
        assert once.predict([0.0]) == pytest.approx(2.0)

        twice = once.with_correction(self._trained(stubs, 4.0), rate=0.5,
                                     forget_factor=0.5, max_corrections=10)
        assert twice.predict([0.0]) == pytest.approx(1.0 + 0.25 * 2.0 + 0.5 * 4.0)
        # The earlier learner is unchanged
        assert once.predict([0.0]) == pytest.approx(2.0)

    def test_pruning(self, stubs):
        """Corrections are capped and negligible ones dropped."""
        from ensemble_engine.online_learning.blending import BlendedLearner

        blended = BlendedLearner(self._trained(stubs, 0.0))
        for _ in range(5):
            blended = blended.with_correction(self._trained(stubs, 1.0), rate=0.5,
                                              forget_factor=0.9, max_corrections=3)
        assert len(blended.corrections) == 3

        faded = blended.with_correction(self._trained(stubs, 1.0), rate=0.5,
                                        forget_factor=0.001, max_corrections=3)
        assert len(faded.corrections) == 1

    def test_failing_correction_is_skipped(self, stubs):
        """A correction that fails to predict does not break the blend."""
        from ensemble_engine.online_learning.blending import BlendedLearner

        failing = stubs.FailingPredict()
        failing.train([[0.0], [1.0]], [0.0, 1.0])
        blended = BlendedLearner(self._trained(stubs, 1.5)).with_correction(
            failing, rate=0.5, forget_factor=0.9, max_corrections=3,
        )
        assert blended.predict([0.0]) == 1.5

    def test_clone_and_retrain(self, stubs):
        """clone gives an untrained base copy; train drops corrections."""
        from ensemble_engine.online_learning.blending import BlendedLearner

        blended = BlendedLearner(self._trained(stubs, 1.0)).with_correction(
            self._trained(stubs, 2.0), rate=1.0, forget_factor=0.9, max_corrections=3,
        )
        clone = blended.clone()
        assert not isinstance(clone, BlendedLearner)
        assert not clone.is_fitted

        blended.train([[0.0], [1.0]], [0.0, 1.0])
        assert blended.corrections == ()
        assert blended.predict([0.0]) == 1.0

    def test_nested_blend_flattens(self, stubs):
        """Wrapping a BlendedLearner keeps one level of corrections."""
        from ensemble_engine.online_learning.blending import BlendedLearner

        inner = BlendedLearner(self._trained(stubs, 1.0)).with_correction(
            self._trained(stubs, 1.0), rate=1.0, forget_factor=0.9, max_corrections=3,
        )
        outer = BlendedLearner(inner)
        assert not isinstance(outer.base, BlendedLearner)
        assert len(outer.corrections) == 1


# ============================================================================
# CONTROLLER TESTS
# ============================================================================

class TestControllerLifecycle:
    """Tests for enable/disable and state."""

    def test_disabled_by_default(self, trained_bagging):
        """add_sample on a disabled controller raises NotTrainedError."""
        from ensemble_engine.errors import NotTrainedError
        from ensemble_engine.online_learning.controller import (
            AdaptationState,
            OnlineAdaptationController,
        )

        controller = OnlineAdaptationController(trained_bagging)
        assert controller.state is AdaptationState.DISABLED
        assert not controller.should_update()
        with pytest.raises(NotTrainedError):
            controller.add_sample([0.0] * 4, 0.0)

    def test_enable_and_disable(self, trained_bagging, fast_config):
        """enable arms the controller; disable clears the buffer."""
        from ensemble_engine.online_learning.controller import (
            AdaptationState,
            OnlineAdaptationController,
        )

        controller = OnlineAdaptationController(trained_bagging)
        controller.enable(fast_config)
        assert controller.state is AdaptationState.ARMED
        assert controller.buffer.max_size == 50

        controller.add_sample([0.0] * 4, 0.0)
        controller.disable()
        assert controller.state is AdaptationState.DISABLED
        assert controller.buffer.size() == 0

    def test_enable_from_dict(self, trained_bagging):
        """enable accepts a plain dict."""
        from ensemble_engine.online_learning.controller import OnlineAdaptationController

        controller = OnlineAdaptationController(trained_bagging)
        controller.enable({"buffer_size": 20, "min_samples_for_update": 5})
        assert controller.config.buffer_size == 20

    def test_invalid_config(self, trained_bagging):
        """Invalid configs raise ConfigurationError."""
        from ensemble_engine.errors import ConfigurationError
        from ensemble_engine.online_learning.controller import OnlineAdaptationController

        controller = OnlineAdaptationController(trained_bagging)
        with pytest.raises(ConfigurationError):
            controller.enable({"buffer_size": 5, "min_samples_for_update": 10})
        assert not controller.is_enabled

    @pytest.mark.parametrize("strategy, extra", [
        ("boosting", {}),
        ("stacking", {"meta_learner_type": "linear_regression"}),
    ])
    def test_unsupported_strategies(self, strategy, extra, fast_config):
        """Boosting and stacking have no incremental path."""
        from ensemble_engine.config import EnsembleConfig
        from ensemble_engine.errors import OnlineLearningUnsupportedError
        from ensemble_engine.learners.factory import LearnerFactory
        from ensemble_engine.online_learning.controller import OnlineAdaptationController

        ensemble = LearnerFactory().create_ensemble(
            EnsembleConfig(strategy=strategy, num_learners=2, **extra)
        )
        controller = OnlineAdaptationController(ensemble)
        with pytest.raises(OnlineLearningUnsupportedError):
            controller.enable(fast_config)
        assert not controller.is_enabled

    def test_update_requires_trained_ensemble(self, fast_config):
        """Updating an untrained ensemble raises NotTrainedError."""
        from ensemble_engine.config import EnsembleConfig
        from ensemble_engine.errors import NotTrainedError
        from ensemble_engine.learners.factory import LearnerFactory
        from ensemble_engine.online_learning.controller import OnlineAdaptationController

        ensemble = LearnerFactory().create_ensemble(EnsembleConfig(num_learners=2))
        controller = OnlineAdaptationController(ensemble)
        controller.enable(fast_config)
        with pytest.raises(NotTrainedError):
            controller.update_model()


class TestControllerUpdates:
    """Tests for update gating and incremental updates."""

    def test_ten_samples_trigger_one_update(self, trained_bagging, fast_config, linear_dataset):
        """Buffer 50, interval 0, min 10: ten samples give exactly one update."""
        from ensemble_engine.online_learning.controller import OnlineAdaptationController

        controller = OnlineAdaptationController(trained_bagging)
        controller.enable(fast_config)
        assert controller.last_update_time == datetime.fromtimestamp(0)

        results = _feed(controller, linear_dataset, 10)
        assert results == [False] * 9 + [True]
        assert controller.update_count == 1
        assert controller.last_update_time > datetime.fromtimestamp(0)
        assert len(controller.tracker) == 1

    def test_update_blends_every_trained_slot(self, trained_bagging, fast_config, linear_dataset):
        """Each slot becomes a BlendedLearner and the table is republished."""
        from ensemble_engine.online_learning.blending import BlendedLearner
        from ensemble_engine.online_learning.controller import OnlineAdaptationController

        before = trained_bagging.snapshot()
        controller = OnlineAdaptationController(trained_bagging)
        controller.enable(fast_config)
        _feed(controller, linear_dataset, 10)

        after = trained_bagging.snapshot()
        assert after.version > before.version
        assert all(isinstance(l, BlendedLearner) for l in after.learners)
        assert [l.base for l in after.learners] == list(before.learners)
        assert all(l.corrections[0][1] == pytest.approx(0.1) for l in after.learners)

    def test_interval_gate(self, trained_bagging, linear_dataset):
        """should_update is false right after an update until the interval elapses."""
        from ensemble_engine.config import OnlineLearningConfig
        from ensemble_engine.online_learning.controller import (
            AdaptationState,
            OnlineAdaptationController,
        )

        controller = OnlineAdaptationController(trained_bagging)
        controller.enable(OnlineLearningConfig(
            buffer_size=50, update_interval=3600, min_samples_for_update=10,
        ))
        _feed(controller, linear_dataset, 10)
        assert controller.update_count == 1
        assert not controller.should_update()
        assert controller.state is AdaptationState.COOLDOWN

        assert _feed(controller, linear_dataset, 5, start=10) == [False] * 5

        controller._last_update_ts = time.time() - 3601
        assert controller.should_update()
        assert controller.state is AdaptationState.ARMED

    def test_sample_gate(self, trained_bagging, fast_config, linear_dataset):
        """should_update needs min_samples_for_update buffered samples."""
        from ensemble_engine.online_learning.controller import OnlineAdaptationController

        controller = OnlineAdaptationController(trained_bagging)
        controller.enable(fast_config)
        with patch.object(controller, "update_model", return_value=True):
            _feed(controller, linear_dataset, 9)
            assert not controller.should_update()
            controller.buffer.add_sample(linear_dataset.X[9], linear_dataset.y[9])
            assert controller.should_update()

    def test_failed_correction_keeps_slot(self, stubs, small_dataset, fast_config):
        """A slot whose correction fails keeps its previous learner."""
        from ensemble_engine.config import EnsembleConfig
        from ensemble_engine.ensemble.orchestrator import EnsembleOrchestrator
        from ensemble_engine.online_learning.blending import BlendedLearner
        from ensemble_engine.online_learning.controller import OnlineAdaptationController

        ensemble = EnsembleOrchestrator(
            [stubs.Constant(1.0), stubs.Constant(1.0)], EnsembleConfig(num_learners=2)
        )
        ensemble.train(small_dataset)
        broken = ensemble.learners[1]
        broken.clone = lambda: stubs.FailingTrain()

        controller = OnlineAdaptationController(ensemble)
        controller.enable(fast_config)
        _feed(controller, small_dataset, 10)

        learners = ensemble.snapshot().learners
        assert isinstance(learners[0], BlendedLearner)
        assert learners[1] is broken

    def test_concurrent_producers_respect_interval(self, trained_bagging, linear_dataset):
        """Two producers crossing the sample gate together run one update."""
        from ensemble_engine.config import OnlineLearningConfig
        from ensemble_engine.online_learning.controller import OnlineAdaptationController

        class SlowGateController(OnlineAdaptationController):
            def should_update(self):
                due = super().should_update()
                time.sleep(0.05)
                return due

        controller = SlowGateController(trained_bagging)
        controller.enable(OnlineLearningConfig(
            buffer_size=50, update_interval=3600, min_samples_for_update=10,
        ))
        for row, target in zip(linear_dataset.X[:9], linear_dataset.y[:9]):
            controller.buffer.add_sample(row, target)

        barrier = threading.Barrier(2)

        def produce(i):
            barrier.wait()
            controller.add_sample(linear_dataset.X[9 + i], linear_dataset.y[9 + i])

        threads = [threading.Thread(target=produce, args=(i,)) for i in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert controller.buffer.size() == 11
        assert controller.update_count == 1

    def test_concurrent_predict_sees_whole_tables(self, stubs, small_dataset, fast_config):
        """Predictions during updates always come from one published table."""
        from ensemble_engine.config import EnsembleConfig
        from ensemble_engine.ensemble.orchestrator import EnsembleOrchestrator
        from ensemble_engine.online_learning.controller import OnlineAdaptationController

        ensemble = EnsembleOrchestrator(
            [stubs.Constant(1.0), stubs.Constant(3.0)], EnsembleConfig(num_learners=2)
        )
        ensemble.train(small_dataset)
        initial = ensemble.snapshot()

        controller = OnlineAdaptationController(ensemble)
        controller.enable(fast_config)

        x = small_dataset.X[0]
        seen = []
        done = threading.Event()

        def read():
            while True:
                seen.append(ensemble.predict(x))
                if done.is_set():
                    break

        with patch.object(ensemble, "replace_table", wraps=ensemble.replace_table) as publish:
            reader = threading.Thread(target=read)
            reader.start()
            try:
                _feed(controller, small_dataset, 30)
            finally:
                done.set()
                reader.join()

        tables = [initial] + [c.args[0] for c in publish.call_args_list]
        outputs = [sum(l.predict(x) for l in t.learners) / len(t.learners) for t in tables]

        assert controller.update_count > 1
        assert seen
        for value in seen:
            assert any(value == pytest.approx(out, abs=1e-9) for out in outputs)


class TestDriftAndSchedule:
    """Tests for drift rollback and the learning-rate schedule."""

    def test_drift_rolls_back(self, trained_bagging, fast_config, linear_dataset):
        """A score drop above the threshold restores the pre-update table."""
        from ensemble_engine.online_learning.controller import OnlineAdaptationController

        controller = OnlineAdaptationController(trained_bagging)
        controller.enable(fast_config)

        with patch.object(controller, "_score_recent", side_effect=[(0.9, 10), (0.5, 10)]):
            _feed(controller, linear_dataset, 10)
            before_second = trained_bagging.snapshot()
            assert controller.update_model()

        after = trained_bagging.snapshot()
        assert after.learners == before_second.learners
        stats = controller.get_online_learning_stats()
        assert stats["drift_events"] == 1
        assert stats["performance_history"] == [0.9, 0.5]
        assert stats["update_count"] == 2

    def test_drift_without_rollback(self, trained_bagging, linear_dataset):
        """With rollback disabled the update stays published."""
        from ensemble_engine.config import OnlineLearningConfig
        from ensemble_engine.online_learning.controller import OnlineAdaptationController

        controller = OnlineAdaptationController(trained_bagging)
        controller.enable(OnlineLearningConfig(
            buffer_size=50, update_interval=0, min_samples_for_update=10,
            rollback_on_drift=False,
        ))

        with patch.object(controller, "_score_recent", side_effect=[(0.9, 10), (0.5, 10)]):
            _feed(controller, linear_dataset, 10)
            before_second = trained_bagging.snapshot()
            assert controller.update_model()

        assert trained_bagging.snapshot().learners != before_second.learners
        assert controller.tracker.drift_events == 1

    def test_learning_rate_schedule(self, trained_bagging):
        """Poor scores decay the rate, floored at min_learning_rate."""
        from ensemble_engine.config import OnlineLearningConfig
        from ensemble_engine.online_learning.controller import OnlineAdaptationController

        controller = OnlineAdaptationController(trained_bagging)
        controller.enable(OnlineLearningConfig(
            learning_rate=0.1, learning_rate_decay=0.5, min_learning_rate=0.01,
            performance_threshold=0.5,
        ))
        assert controller.current_learning_rate() == 0.1

        controller.tracker.record(0.3)
        assert controller.current_learning_rate() == pytest.approx(0.05)

        controller.tracker.record(0.7)
        assert controller.current_learning_rate() == 0.1

        controller.enable(OnlineLearningConfig(
            learning_rate=0.1, learning_rate_decay=0.5, min_learning_rate=0.08,
        ))
        controller.tracker.record(0.2)
        assert controller.current_learning_rate() == pytest.approx(0.08)

    def test_stats(self, trained_bagging, fast_config, linear_dataset):
        """Stats expose the controller state."""
        from ensemble_engine.online_learning.controller import OnlineAdaptationController

        controller = OnlineAdaptationController(trained_bagging)
        controller.enable(fast_config)
        _feed(controller, linear_dataset, 12)

        stats = controller.get_online_learning_stats()
        assert set(stats) == {
            "enabled", "buffer_size", "last_update", "performance_history",
            "current_learning_rate", "state", "drift_events", "update_count",
        }
        assert stats["enabled"] is True
        assert stats["buffer_size"] == 12
        assert stats["state"] == "armed"
        assert all(0.0 <= s <= 1.0 for s in stats["performance_history"])
        assert isinstance(stats["last_update"], datetime)
