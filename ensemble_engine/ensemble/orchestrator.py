"""
Ensemble Orchestrator for the ensemble engine.

Owns a set of base learners (plus an optional stacking meta-learner) and
implements training and prediction for three protocols:

- Bagging: independent learners on bootstrap samples, averaged
- Boosting: regression AdaBoost variant with sample reweighting
- Stacking: a meta-learner over the base learners' predictions

Single-learner failures are logged and skipped. A call only fails when no
usable learner remains, and predict falls back to the mean training target
before giving up.

Classes:
    FeatureImportanceAnalysis: Result of permutation/tree importance analysis
    EnsembleOrchestrator: Training, prediction and evaluation

Example:
    >>> from ensemble_engine.learners.factory import LearnerFactory
    >>> ensemble = LearnerFactory().create_default_ensemble("bagging_basic")
    >>> ensemble.train(dataset)
    >>> value = ensemble.predict(dataset.X[-1])
    >>> metrics = ensemble.evaluate_model(holdout)
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging
import math
import threading
import time

import numpy as np

from ensemble_engine.config import EnsembleConfig, EnsembleStrategy
from ensemble_engine.dataset import TrainingDataset
from ensemble_engine.ensemble import sampling, weighting
from ensemble_engine.ensemble.table import LearnerTable
from ensemble_engine.errors import (
    AllLearnersFailed,
    EmptyDataError,
    NotTrainedError,
    TrainingCancelledError,
)
from ensemble_engine.learners.base import BaseLearner

logger = logging.getLogger(__name__)


@dataclass
class FeatureImportanceAnalysis:
    """Feature importance analysis result.

    Attributes:
        features: Feature name to importance, sorted descending
        method: "permutation" or "tree_based"
        top_features: Up to 20 most important feature names
        importance_sum: Sum of all importances
        analysis_time: When the analysis ran
    """
    features: Dict[str, float]
    method: str
    top_features: List[str] = field(default_factory=list)
    importance_sum: float = 0.0
    analysis_time: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict:
        """Convert to dictionary for serialization."""
        return {
            "features": self.features,
            "method": self.method,
            "top_features": self.top_features,
            "importance_sum": self.importance_sum,
            "analysis_time": self.analysis_time.isoformat(),
        }


class EnsembleOrchestrator:
    """Trains and serves a heterogeneous ensemble of learners.

    State lives in an immutable LearnerTable. Predict reads the current
    table once; training and online updates publish a new one. Training
    works on clones of the current learners, so the published table is
    untouched until the new one replaces it.

    Boosting uses two rates. The configured learning rate (halved after
    each weak learner) scales the confidence weights during training and
    is stored in the table. Outputs are always combined with the fixed
    BOOSTING_PREDICT_RATE, the same value for every table, so predictions
    of one table do not depend on how many learners were weak.

    Attributes:
        config: Ensemble configuration
        strategy: Ensembling protocol
        feature_names: Feature labels from the last training dataset
        training_time: Seconds spent in the last successful train

    Example:
        >>> ensemble = EnsembleOrchestrator(learners, config)
        >>> ensemble.train(dataset, deadline=time.monotonic() + 30)
        >>> ensemble.predict([0.1, -0.2, 0.4])
    """

    # Fixed combine rate for boosting outputs
    BOOSTING_PREDICT_RATE = 0.5

    # Boosting: a sample is "correct" when |error| < fraction x MAD(targets)
    CORRECTNESS_MAD_FRACTION = 0.1

    # Boosting: weighted error is clipped away from 0 to keep ln() finite
    MIN_BOOSTING_ERROR = 1e-10

    MAX_BOOSTING_ERROR = 0.5

    def __init__(
        self,
        learners: Sequence[BaseLearner],
        config: Optional[EnsembleConfig] = None,
        meta_learner: Optional[BaseLearner] = None,
        correctness_mad_fraction: Optional[float] = None,
    ):
        """Initialize the orchestrator.

        Args:
            learners: Base learners; training publishes trained clones of them
            config: Ensemble configuration (default: bagging defaults)
            meta_learner: Stacking meta-learner; None leaves a stacking
                ensemble in degraded bagging-fallback mode
            correctness_mad_fraction: Override for the boosting threshold

        Raises:
            EmptyDataError: If no learners are given
        """
        if not learners:
            raise EmptyDataError("No base learners configured")

        self.config = config or EnsembleConfig()
        self.strategy = self.config.strategy
        if correctness_mad_fraction is not None:
            self.CORRECTNESS_MAD_FRACTION = correctness_mad_fraction

        if self.strategy is EnsembleStrategy.STACKING and meta_learner is None:
            logger.error("Stacking ensemble has no meta-learner; running in bagging-fallback mode")
        elif self.strategy is not EnsembleStrategy.STACKING and meta_learner is not None:
            logger.warning(f"Meta-learner ignored for {self.strategy.value} strategy")
            meta_learner = None

        n = len(learners)
        self._table = LearnerTable(
            learners=tuple(learners),
            weights=tuple([1.0] * n),
            trained=tuple([False] * n),
            meta_learner=meta_learner,
            learning_rate=self.config.learning_rate,
        )
        self._publish_lock = threading.Lock()
        self._train_lock = threading.Lock()
        self._failure_counts = [0] * n

        self._rng = np.random.default_rng(self.config.random_state)
        self.feature_names: List[str] = []
        self.training_time: Optional[float] = None

        logger.info(
            f"Initialized {self.strategy.value} ensemble with {n} learners: "
            f"{sorted({l.name for l in learners})}"
        )

    # ── State ────────────────────────────────────────────────

    @property
    def learners(self) -> Tuple[BaseLearner, ...]:
        """Base learners of the current table."""
        return self._table.learners

    @property
    def weights(self) -> Tuple[float, ...]:
        """Per-slot weights of the current table."""
        return self._table.weights

    @property
    def meta_learner(self) -> Optional[BaseLearner]:
        """Stacking meta-learner, if any."""
        return self._table.meta_learner

    @property
    def learning_rate(self) -> float:
        """Boosting learning rate after the last train."""
        return self._table.learning_rate

    @property
    def is_trained(self) -> bool:
        """Whether at least one learner trained successfully."""
        return self._table.is_trained

    @property
    def is_degraded(self) -> bool:
        """Stacking without a usable meta-learner."""
        table = self._table
        return self.strategy is EnsembleStrategy.STACKING and not (
            table.meta_learner is not None and table.meta_trained
        )

    @property
    def supports_online_updates(self) -> bool:
        """Whether the strategy has an incremental update path."""
        return self.strategy is EnsembleStrategy.BAGGING

    def snapshot(self) -> LearnerTable:
        """Current immutable learner table."""
        return self._table

    def replace_table(
        self,
        table: LearnerTable,
        expected_version: Optional[int] = None,
    ) -> bool:
        """Atomically publish a new learner table.

        Args:
            table: Table to publish
            expected_version: Only publish if the current table still has
                this version (guards against a concurrent retrain)

        Returns:
            True if the table was published
        """
        with self._publish_lock:
            if expected_version is not None and self._table.version != expected_version:
                logger.warning(
                    f"Discarding table update: expected version {expected_version}, "
                    f"current is {self._table.version}"
                )
                return False
            self._table = table
            self._failure_counts = [0] * len(table.learners)
        logger.debug(f"Published learner table version {table.version}")
        return True

    def restore(self, table: LearnerTable) -> None:
        """Publish a previously taken snapshot (e.g. after drift)."""
        with self._publish_lock:
            restored = table.evolve(version=self._table.version + 1)
            self._table = restored
            self._failure_counts = [0] * len(restored.learners)
        logger.info(f"Restored learner table from version {table.version}")

    # ── Training ─────────────────────────────────────────────

    def train(
        self,
        dataset: TrainingDataset,
        deadline: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> "EnsembleOrchestrator":
        """Train the ensemble with the configured strategy.

        Args:
            dataset: Training data
            deadline: Absolute time.monotonic() value after which training
                stops between learners
            cancel_event: Event that cancels training between learners

        Returns:
            Self for method chaining

        Raises:
            EmptyDataError: If the dataset is empty
            AllLearnersFailed: If no learner trained
            TrainingCancelledError: If the deadline passed or cancel was set
        """
        if dataset is None or len(dataset) == 0:
            raise EmptyDataError("Training dataset is empty")

        X = np.where(np.isfinite(dataset.X), dataset.X, 0.0)
        y = dataset.y

        with self._train_lock:
            start = time.monotonic()
            logger.info(
                f"Training {self.strategy.value} ensemble: {len(X)} samples, "
                f"{X.shape[1]} features, {len(self._table.learners)} learners"
            )

            if self.strategy is EnsembleStrategy.BAGGING:
                changes = self._train_bagging(X, y, deadline, cancel_event)
            elif self.strategy is EnsembleStrategy.BOOSTING:
                changes = self._train_boosting(X, y, deadline, cancel_event)
            else:
                changes = self._train_stacking(X, y, deadline, cancel_event)

            trained = changes["trained"]
            n_trained = sum(trained)
            if n_trained == 0:
                raise AllLearnersFailed("train", changes.get("failures"))

            table = self._table.evolve(
                learners=tuple(changes["learners"]),
                meta_learner=changes.get("meta_learner", self._table.meta_learner),
                trained=tuple(trained),
                weights=tuple(changes["weights"]),
                meta_trained=changes.get("meta_trained", False),
                learning_rate=changes.get("learning_rate", self.config.learning_rate),
                default_prediction=float(np.mean(y)),
                n_features=X.shape[1],
            )
            self.replace_table(table)

            self.feature_names = list(dataset.feature_names)
            self.training_time = time.monotonic() - start

        logger.info(
            f"Ensemble training complete: {n_trained}/{len(trained)} learners trained "
            f"in {self.training_time:.2f}s"
        )
        return self

    @staticmethod
    def _check_cancelled(
        deadline: Optional[float],
        cancel_event: Optional[threading.Event],
    ) -> None:
        """Raise TrainingCancelledError if the deadline passed or cancel was set."""
        if cancel_event is not None and cancel_event.is_set():
            raise TrainingCancelledError("Training cancelled")
        if deadline is not None and time.monotonic() >= deadline:
            raise TrainingCancelledError("Training deadline exceeded")

    def _train_one(
        self,
        idx: int,
        learner: BaseLearner,
        X: np.ndarray,
        y: np.ndarray,
    ) -> Optional[str]:
        """Train one learner, returning the error message on failure."""
        try:
            learner.train(X, y)
            logger.debug(f"Trained learner {idx} ({learner.name}) on {len(X)} samples")
            return None
        except Exception as e:
            logger.warning(f"Learner {idx} ({learner.name}) failed to train: {e}")
            return str(e)

    def _fresh_learners(self) -> List[BaseLearner]:
        """Untrained copies of the current learners, one per slot."""
        return [learner.clone() for learner in self._table.learners]

    def _train_bagging(
        self,
        X: np.ndarray,
        y: np.ndarray,
        deadline: Optional[float],
        cancel_event: Optional[threading.Event],
    ) -> Dict[str, Any]:
        """Train each learner on its own bootstrap sample, in parallel."""
        learners = self._fresh_learners()
        n = len(X)
        sample_size = max(1, int(round(n * self.config.subsample_ratio)))

        # Draw every bootstrap up front so results do not depend on scheduling
        samples = [
            sampling.bootstrap_indices(self._rng, n, sample_size)
            for _ in learners
        ]

        def job(idx: int) -> Tuple[str, Optional[str]]:
            try:
                self._check_cancelled(deadline, cancel_event)
            except TrainingCancelledError as e:
                return "cancelled", str(e)
            rows = samples[idx]
            error = self._train_one(idx, learners[idx], X[rows], y[rows])
            return ("failed", error) if error else ("ok", None)

        workers = min(self.config.max_workers, len(learners))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="bagging") as pool:
            results = list(pool.map(job, range(len(learners))))

        cancelled = [msg for status, msg in results if status == "cancelled"]
        if cancelled:
            raise TrainingCancelledError(cancelled[0])

        trained = [status == "ok" for status, _ in results]
        failures = {
            f"{idx}:{learners[idx].name}": msg
            for idx, (status, msg) in enumerate(results) if status == "failed"
        }
        return {
            "learners": learners,
            "trained": trained,
            "weights": [1.0] * len(learners),
            "failures": failures,
        }

    def _train_boosting(
        self,
        X: np.ndarray,
        y: np.ndarray,
        deadline: Optional[float],
        cancel_event: Optional[threading.Event],
    ) -> Dict[str, Any]:
        """Regression AdaBoost: sequential training with sample reweighting.

        Slots whose weighted error is >= 0.5 get weight 0 and halve the
        learning rate for the remaining slots.
        """
        learners = self._fresh_learners()
        n = len(X)
        sample_weights = np.full(n, 1.0 / n)
        learning_rate = self.config.learning_rate
        tolerance = self.CORRECTNESS_MAD_FRACTION * sampling.median_absolute_deviation(y)

        trained = [False] * len(learners)
        weights = [0.0] * len(learners)
        failures: Dict[str, str] = {}

        for idx, learner in enumerate(learners):
            self._check_cancelled(deadline, cancel_event)

            rows = sampling.weighted_resample_indices(self._rng, sample_weights)
            error_msg = self._train_one(idx, learner, X[rows], y[rows])
            if error_msg:
                failures[f"{idx}:{learner.name}"] = error_msg
                continue
            trained[idx] = True

            correct = self._boosting_correctness(learner, X, y, tolerance)
            weighted_error = self._weighted_error(correct, sample_weights)

            if weighted_error >= self.MAX_BOOSTING_ERROR:
                learning_rate *= 0.5
                logger.info(
                    f"Boosting learner {idx} weighted error {weighted_error:.3f} >= 0.5, "
                    f"no weight assigned; learning rate halved to {learning_rate:.4f}"
                )
                continue

            clipped = max(weighted_error, self.MIN_BOOSTING_ERROR)
            confidence = learning_rate * math.log((1 - clipped) / clipped)
            weights[idx] = confidence

            # Samples whose prediction failed keep their weight
            factors = np.ones(n)
            factors[correct == 1] = math.exp(-confidence)
            factors[correct == 0] = math.exp(confidence)
            sample_weights = sample_weights * factors
            total = sample_weights.sum()
            if total > 0:
                sample_weights = sample_weights / total

            logger.debug(
                f"Boosting learner {idx}: error={weighted_error:.4f}, "
                f"confidence={confidence:.4f}"
            )

        return {
            "learners": learners,
            "trained": trained,
            "weights": weights,
            "learning_rate": learning_rate,
            "failures": failures,
        }

    @staticmethod
    def _boosting_correctness(
        learner: BaseLearner,
        X: np.ndarray,
        y: np.ndarray,
        tolerance: float,
    ) -> np.ndarray:
        """Per-sample correctness: 1 correct, 0 incorrect, -1 prediction failed."""
        correct = np.full(len(X), -1, dtype=int)
        for i, row in enumerate(X):
            try:
                pred = learner.predict(row)
            except Exception:
                continue
            if not math.isfinite(pred):
                continue
            correct[i] = 1 if abs(pred - y[i]) < tolerance else 0
        return correct

    @staticmethod
    def _weighted_error(correct: np.ndarray, sample_weights: np.ndarray) -> float:
        """Weighted share of incorrect samples, ignoring failed predictions.

        Returns 0.5 when no sample could be scored.
        """
        scored = correct >= 0
        total = sample_weights[scored].sum()
        if total <= 0:
            return 0.5
        return float(sample_weights[correct == 0].sum() / total)

    def _train_stacking(
        self,
        X: np.ndarray,
        y: np.ndarray,
        deadline: Optional[float],
        cancel_event: Optional[threading.Event],
    ) -> Dict[str, Any]:
        """Train base learners on the full data, then the meta-learner."""
        learners = self._fresh_learners()
        trained = [False] * len(learners)
        failures: Dict[str, str] = {}

        for idx, learner in enumerate(learners):
            self._check_cancelled(deadline, cancel_event)
            error_msg = self._train_one(idx, learner, X, y)
            if error_msg:
                failures[f"{idx}:{learner.name}"] = error_msg
            else:
                trained[idx] = True

        meta = self._table.meta_learner
        if meta is not None:
            meta = meta.clone()

        result = {
            "learners": learners,
            "meta_learner": meta,
            "trained": trained,
            "weights": [1.0] * len(learners),
            "meta_trained": False,
            "failures": failures,
        }

        if meta is None:
            logger.error("No meta-learner; stacking will use bagging-fallback predictions")
            return result
        if not any(trained):
            return result

        self._check_cancelled(deadline, cancel_event)
        meta_features = np.array([
            self.meta_features(row, learners, trained) for row in X
        ])
        logger.info(f"Training meta-learner {meta.name} on meta-features {meta_features.shape}")
        try:
            meta.train(meta_features, y)
            result["meta_trained"] = True
        except Exception as e:
            logger.error(f"Meta-learner failed to train, using bagging fallback: {e}")

        return result

    # ── Prediction ───────────────────────────────────────────

    def _collect_predictions(
        self,
        table: LearnerTable,
        features: Sequence[float],
    ) -> List[Optional[float]]:
        """Predict with every trained slot; failed or non-finite slots are None."""
        predictions: List[Optional[float]] = []
        for idx, learner in enumerate(table.learners):
            if not table.trained[idx]:
                predictions.append(None)
                continue
            try:
                pred = float(learner.predict(features))
            except Exception as e:
                self._record_failure(idx, learner, e)
                predictions.append(None)
                continue
            if not math.isfinite(pred):
                self._record_failure(idx, learner, ValueError(f"non-finite prediction {pred}"))
                predictions.append(None)
                continue
            if idx < len(self._failure_counts):
                self._failure_counts[idx] = 0
            predictions.append(pred)
        return predictions

    def _record_failure(self, idx: int, learner: BaseLearner, error: Exception) -> None:
        """Log a predict failure; only the first of a streak at WARNING."""
        counts = self._failure_counts
        if idx < len(counts):
            counts[idx] += 1
            streak = counts[idx]
        else:
            streak = 1
        if streak == 1:
            logger.warning(f"Learner {idx} ({learner.name}) failed to predict: {error}")
        else:
            logger.debug(f"Learner {idx} ({learner.name}) failed to predict ({streak}x): {error}")

    @staticmethod
    def meta_features(
        features: Sequence[float],
        learners: Sequence[BaseLearner],
        trained: Optional[Sequence[bool]] = None,
    ) -> List[float]:
        """Meta-feature vector: one prediction per base learner, 0 on failure.

        The vector length always equals the number of base learners.
        """
        row: List[float] = []
        for idx, learner in enumerate(learners):
            if trained is not None and not trained[idx]:
                row.append(0.0)
                continue
            try:
                pred = float(learner.predict(features))
            except Exception as e:
                logger.debug(f"Stacking base learner {idx} failed to predict: {e}")
                pred = 0.0
            row.append(pred if math.isfinite(pred) else 0.0)
        return row

    def predict(self, features: Sequence[float]) -> float:
        """Predict a scalar for one feature vector.

        Raises:
            NotTrainedError: If the ensemble has never trained successfully
            AllLearnersFailed: If every learner failed and no default exists
        """
        table = self._table
        if not table.is_trained:
            raise NotTrainedError("Ensemble must be trained before prediction")

        if self.config.weighted_mode:
            value = self._predict_weighted(table, features)
        elif self.strategy is EnsembleStrategy.BAGGING:
            value = self._predict_bagging(table, features)
        elif self.strategy is EnsembleStrategy.BOOSTING:
            value = self._predict_boosting(table, features)
        else:
            value = self._predict_stacking(table, features)

        if value is None:
            raise AllLearnersFailed("predict")
        return value

    def _fallback(self, table: LearnerTable, reason: str) -> Optional[float]:
        """Cached default prediction (mean training target)."""
        logger.warning(f"{reason}; using default prediction {table.default_prediction}")
        return table.default_prediction

    def _predict_bagging(self, table: LearnerTable, features: Sequence[float]) -> Optional[float]:
        value = weighting.mean_prediction(self._collect_predictions(table, features))
        if value is None:
            return self._fallback(table, "All bagging learners failed")
        return value

    def _predict_boosting(self, table: LearnerTable, features: Sequence[float]) -> Optional[float]:
        predictions = self._collect_predictions(table, features)
        value = weighting.boosting_prediction(
            predictions, table.weights, self.BOOSTING_PREDICT_RATE
        )
        if value is None:
            return self._fallback(table, "No weighted boosting learner produced a prediction")
        return value

    def _predict_stacking(self, table: LearnerTable, features: Sequence[float]) -> Optional[float]:
        meta_row = self.meta_features(features, table.learners, table.trained)

        if table.meta_learner is not None and table.meta_trained:
            try:
                value = float(table.meta_learner.predict(meta_row))
                if math.isfinite(value):
                    return value
                logger.warning(f"Meta-learner returned non-finite value {value}")
            except Exception as e:
                logger.warning(f"Meta-learner failed to predict, averaging base learners: {e}")

        non_zero = [v for v in meta_row if v != 0.0]
        if non_zero:
            return float(np.mean(non_zero))
        return self._fallback(table, "All stacking base learners failed")

    def get_dynamic_weights(self) -> List[float]:
        """Type-prior x health weights for the current table."""
        table = self._table
        return weighting.type_prior_weights(
            [l.name for l in table.learners],
            table.trained,
            list(self._failure_counts),
            self.config.type_priors,
        )

    def _predict_weighted(self, table: LearnerTable, features: Sequence[float]) -> Optional[float]:
        weights = weighting.type_prior_weights(
            [l.name for l in table.learners],
            table.trained,
            list(self._failure_counts),
            self.config.type_priors,
        )
        value = weighting.weighted_prediction(
            self._collect_predictions(table, features), weights
        )
        if value is None:
            return self._fallback(table, "No plausible weighted prediction")
        return value

    def predict_weighted(self, features: Sequence[float]) -> float:
        """Prediction using type-prior weighting regardless of strategy."""
        table = self._table
        if not table.is_trained:
            raise NotTrainedError("Ensemble must be trained before prediction")
        value = self._predict_weighted(table, features)
        if value is None:
            raise AllLearnersFailed("predict")
        return value

    def predict_batch(self, X: Sequence[Sequence[float]]) -> np.ndarray:
        """Predict every row of a feature matrix."""
        return np.array([self.predict(row) for row in np.asarray(X, dtype=float)])

    # ── Evaluation ───────────────────────────────────────────

    def evaluate_model(self, dataset: TrainingDataset) -> Dict[str, float]:
        """Compute MSE, MAE and R² on a dataset."""
        predictions = self.predict_batch(dataset.X)
        y = dataset.y
        residuals = predictions - y

        mse = float(np.mean(residuals ** 2))
        mae = float(np.mean(np.abs(residuals)))
        ss_tot = float(np.sum((y - y.mean()) ** 2))
        r2 = 1.0 - float(np.sum(residuals ** 2)) / ss_tot if ss_tot > 0 else 0.0

        logger.info(f"Evaluation on {len(y)} samples: mse={mse:.6f}, mae={mae:.6f}, r2={r2:.4f}")
        return {"mse": mse, "mae": mae, "r2": r2}

    def directional_score(self, features: Sequence[Sequence[float]], targets: Sequence[float]) -> float:
        """Directional accuracy of the ensemble on the given samples."""
        predictions = [self.predict(row) for row in features]
        return sampling.directional_accuracy(predictions, targets)

    def get_feature_importance(self) -> List[float]:
        """Per-feature importance averaged over bagging learners.

        Only learners reporting one value per training feature are
        averaged. Other strategies return an empty list.
        """
        table = self._table
        if self.strategy is not EnsembleStrategy.BAGGING or table.n_features is None:
            return []

        total = np.zeros(table.n_features)
        valid = 0
        for idx, learner in enumerate(table.learners):
            if not table.trained[idx]:
                continue
            importance = learner.get_feature_importance()
            if len(importance) == table.n_features:
                total += np.asarray(importance, dtype=float)
                valid += 1

        if valid == 0:
            return []
        return [float(v) for v in total / valid]

    def get_named_feature_importance(self) -> Dict[str, float]:
        """Feature importance keyed by feature name, sorted descending."""
        importance = self.get_feature_importance()
        if not importance or len(importance) != len(self.feature_names):
            return {}
        named = dict(zip(self.feature_names, importance))
        return dict(sorted(named.items(), key=lambda x: x[1], reverse=True))

    def analyze_feature_importance(
        self,
        dataset: TrainingDataset,
        top_n: int = 20,
    ) -> FeatureImportanceAnalysis:
        """Permutation importance measured with directional accuracy.

        Falls back to averaged learner importances when the dataset is too
        small (<50 rows or <2 features) for permutation testing.

        Raises:
            NotTrainedError: If the ensemble is not trained
            EmptyDataError: If no importance could be computed
        """
        if not self.is_trained:
            raise NotTrainedError("Ensemble must be trained before importance analysis")

        if len(dataset) >= 50 and dataset.n_features >= 2:
            features, method = self._permutation_importance(dataset), "permutation"
        else:
            logger.info("Dataset too small for permutation importance, using learner importances")
            features, method = self._tree_based_importance(dataset), "tree_based"

        if not features:
            raise EmptyDataError("No feature importance available")

        features = dict(sorted(features.items(), key=lambda x: x[1], reverse=True))
        analysis = FeatureImportanceAnalysis(
            features=features,
            method=method,
            top_features=list(features)[:top_n],
            importance_sum=float(sum(features.values())),
        )
        logger.info(f"Feature importance ({method}): top 5 = {analysis.top_features[:5]}")
        return analysis

    def _permutation_importance(self, dataset: TrainingDataset) -> Dict[str, float]:
        baseline = self.directional_score(dataset.X, dataset.y)
        rng = np.random.default_rng(self.config.random_state)

        importance: Dict[str, float] = {}
        for col, name in enumerate(dataset.feature_names):
            permuted = dataset.X.copy()
            permuted[:, col] = rng.permutation(permuted[:, col])
            score = self.directional_score(permuted, dataset.y)
            importance[name] = max(0.0, baseline - score)
            logger.debug(f"Permutation importance {name}: {importance[name]:.6f}")
        return importance

    def _tree_based_importance(self, dataset: TrainingDataset) -> Dict[str, float]:
        table = self._table
        total = np.zeros(dataset.n_features)
        for idx, learner in enumerate(table.learners):
            if not table.trained[idx]:
                continue
            importance = learner.get_feature_importance()
            if len(importance) == dataset.n_features:
                total += np.asarray(importance, dtype=float)

        norm = total.sum()
        if norm <= 0:
            return {}
        return {name: float(v / norm) for name, v in zip(dataset.feature_names, total)}

    def get_model_info(self) -> Dict[str, Any]:
        """Summary of the ensemble for logging and APIs."""
        table = self._table
        return {
            "strategy": self.strategy.value,
            "n_learners": len(table.learners),
            "learner_types": [l.name for l in table.learners],
            "n_trained": sum(table.trained),
            "is_trained": table.is_trained,
            "degraded": self.is_degraded,
            "weights": list(table.weights),
            "learning_rate": table.learning_rate,
            "feature_count": table.n_features,
            "table_version": table.version,
            "training_time": self.training_time,
        }

    def __repr__(self) -> str:
        status = "trained" if self.is_trained else "not trained"
        return (
            f"EnsembleOrchestrator(strategy={self.strategy.value}, "
            f"n_learners={len(self._table.learners)}, {status})"
        )
