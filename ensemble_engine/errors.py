"""
Error taxonomy for the ensemble engine.

Per-learner failures are absorbed by the orchestrator and only logged.
Everything else propagates to the caller.

Classes:
    EnsembleEngineError: Root of the hierarchy
    ConfigurationError: Invalid ensemble or online-learning configuration
    EmptyDataError: No learners configured or empty dataset
    LearnerFailure: A single learner's train/predict failed
    NotTrainedError: Predict called before a successful train
    AllLearnersFailed: Every learner failed for one call
    TrainingCancelledError: Deadline or cancel event hit during training
    OnlineLearningUnsupportedError: Strategy has no incremental update path
"""


class EnsembleEngineError(Exception):
    """Base class for all ensemble engine errors."""
    pass


class ConfigurationError(EnsembleEngineError, ValueError):
    """Invalid ensemble or online-learning configuration."""
    pass


class EmptyDataError(EnsembleEngineError, ValueError):
    """No learners configured, or the dataset is empty."""
    pass


class LearnerFailure(EnsembleEngineError):
    """A single learner failed to train or predict.

    Attributes:
        learner_name: Name of the failing learner, if known
    """

    def __init__(self, message: str, learner_name: str = ""):
        super().__init__(message)
        self.learner_name = learner_name


class NotTrainedError(LearnerFailure):
    """Predict called before any successful train."""
    pass


class AllLearnersFailed(EnsembleEngineError):
    """Every learner failed for one call.

    Attributes:
        operation: "train" or "predict"
        failures: Mapping of learner slot label to the error message
    """

    def __init__(self, operation: str, failures: dict = None):
        self.operation = operation
        self.failures = failures or {}
        super().__init__(
            f"All learners failed during {operation} "
            f"({len(self.failures)} failures)"
        )


class TrainingCancelledError(EnsembleEngineError):
    """Training was interrupted by a deadline or cancel event."""
    pass


class OnlineLearningUnsupportedError(EnsembleEngineError):
    """The ensemble strategy has no incremental update path."""
    pass
