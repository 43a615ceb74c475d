"""
Configuration for ensemble training and online adaptation.

Configuration is resolved with the same precedence everywhere:
explicit arguments > model_params.yaml > dataclass defaults.

Classes:
    EnsembleStrategy: Enum of ensembling protocols
    EnsembleConfig: Ensemble construction parameters
    OnlineLearningConfig: Online adaptation parameters

Functions:
    load_model_params: Locate and parse model_params.yaml
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging
import os

import yaml

from ensemble_engine.errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "ENSEMBLE_ENGINE_CONFIG"

DEFAULT_TYPE_PRIORS = {
    "decision_tree": 0.25,
    "linear_regression": 0.25,
    "neural_network": 0.20,
    "lstm": 0.15,
    "transformer": 0.15,
}


class EnsembleStrategy(Enum):
    """Ensembling protocol."""

    BAGGING = "bagging"
    BOOSTING = "boosting"
    STACKING = "stacking"

    @classmethod
    def parse(cls, value: Any) -> "EnsembleStrategy":
        """Parse a strategy tag, accepting the legacy method names."""
        if isinstance(value, cls):
            return value
        aliases = {
            "random_forest": cls.BAGGING,
            "gradient_boost": cls.BOOSTING,
        }
        key = str(value).strip().lower()
        if key in aliases:
            return aliases[key]
        try:
            return cls(key)
        except ValueError:
            raise ConfigurationError(f"Unknown ensemble strategy: {value!r}")


@dataclass
class EnsembleConfig:
    """Ensemble construction parameters.

    Attributes:
        strategy: Ensembling protocol
        num_learners: Number of base learners (> 0)
        base_learner_types: Learner type keys, cycled to fill num_learners
        meta_learner_type: Meta-learner type key (required iff stacking)
        learning_rate: Boosting learning rate, 0 < lr <= 1
        subsample_ratio: Bootstrap sample size as a fraction of the dataset
        max_depth: Tree depth passed to decision tree learners
        random_state: Base seed; learner i gets random_state + i
        max_workers: Thread pool size for bagging training
        weighted_mode: Use type-prior weighting in predict
        type_priors: Base prior per learner type for weighted mode
        learner_params: Extra constructor parameters per learner type
    """
    strategy: EnsembleStrategy = EnsembleStrategy.BAGGING
    num_learners: int = 10
    base_learner_types: List[str] = field(default_factory=lambda: ["decision_tree"])
    meta_learner_type: Optional[str] = None
    learning_rate: float = 0.1
    subsample_ratio: float = 1.0
    max_depth: Optional[int] = None
    random_state: int = 42
    max_workers: int = 4
    weighted_mode: bool = False
    type_priors: Dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_TYPE_PRIORS)
    )
    learner_params: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def __post_init__(self):
        """Validate the configuration."""
        self.strategy = EnsembleStrategy.parse(self.strategy)
        self.base_learner_types = list(self.base_learner_types or [])

        if self.num_learners <= 0:
            raise ConfigurationError(
                f"num_learners must be positive, got {self.num_learners}"
            )
        if not self.base_learner_types:
            raise ConfigurationError("base_learner_types cannot be empty")
        if self.strategy is EnsembleStrategy.STACKING and not self.meta_learner_type:
            raise ConfigurationError("meta_learner_type is required for stacking")
        if not 0 < self.learning_rate <= 1:
            raise ConfigurationError(
                f"learning_rate must be in (0, 1], got {self.learning_rate}"
            )
        if not 0 < self.subsample_ratio <= 1:
            raise ConfigurationError(
                f"subsample_ratio must be in (0, 1], got {self.subsample_ratio}"
            )
        if self.max_workers <= 0:
            raise ConfigurationError(
                f"max_workers must be positive, got {self.max_workers}"
            )
        if any(p < 0 for p in self.type_priors.values()):
            raise ConfigurationError("type_priors must be non-negative")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EnsembleConfig":
        """Build a config from a plain dict (YAML section or JSON body).

        Accepts the legacy keys ``ensemble_type``, ``base_learners`` and
        ``meta_learner``.
        """
        data = dict(data or {})
        key_map = {
            "ensemble_type": "strategy",
            "method": "strategy",
            "base_learners": "base_learner_types",
            "meta_learner": "meta_learner_type",
            "n_estimators": "num_learners",
        }
        mapped = {key_map.get(k, k): v for k, v in data.items()}
        known = set(cls.__dataclass_fields__)
        unknown = set(mapped) - known
        if unknown:
            logger.warning(f"Ignoring unknown ensemble config keys: {sorted(unknown)}")
        return cls(**{k: v for k, v in mapped.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        result = asdict(self)
        result["strategy"] = self.strategy.value
        return result


@dataclass
class OnlineLearningConfig:
    """Online adaptation parameters.

    Attributes:
        enabled: Whether online learning is enabled
        buffer_size: Capacity of the sample buffer
        update_interval: Minimum seconds between updates
        learning_rate: Base blending rate for incremental updates
        learning_rate_decay: Multiplier applied when performance is poor
        min_learning_rate: Floor for the decayed rate
        forget_factor: Decay applied to older corrections on each update
        performance_threshold: Score below which the rate is decayed
        min_samples_for_update: Samples needed (and used) per update
        drift_threshold: Score drop between updates that flags drift
        rollback_on_drift: Restore the pre-update learners on drift
        max_history: Bound on the performance history length
        max_corrections: Corrections kept per learner slot
    """
    enabled: bool = True
    buffer_size: int = 1000
    update_interval: float = 3600.0
    learning_rate: float = 0.1
    learning_rate_decay: float = 0.5
    min_learning_rate: float = 0.01
    forget_factor: float = 0.9
    performance_threshold: float = 0.5
    min_samples_for_update: int = 50
    drift_threshold: float = 0.1
    rollback_on_drift: bool = True
    max_history: int = 1000
    max_corrections: int = 10

    def __post_init__(self):
        """Validate the configuration."""
        if self.buffer_size <= 0:
            raise ConfigurationError(
                f"buffer_size must be positive, got {self.buffer_size}"
            )
        if self.min_samples_for_update <= 0:
            raise ConfigurationError(
                f"min_samples_for_update must be positive, got {self.min_samples_for_update}"
            )
        if self.min_samples_for_update > self.buffer_size:
            raise ConfigurationError(
                f"min_samples_for_update ({self.min_samples_for_update}) "
                f"exceeds buffer_size ({self.buffer_size})"
            )
        if self.update_interval < 0:
            raise ConfigurationError("update_interval cannot be negative")
        if not 0 < self.learning_rate <= 1:
            raise ConfigurationError(
                f"learning_rate must be in (0, 1], got {self.learning_rate}"
            )
        if not 0 < self.learning_rate_decay <= 1:
            raise ConfigurationError(
                f"learning_rate_decay must be in (0, 1], got {self.learning_rate_decay}"
            )
        if not 0 <= self.min_learning_rate <= self.learning_rate:
            raise ConfigurationError(
                "min_learning_rate must be between 0 and learning_rate"
            )
        if not 0 < self.forget_factor <= 1:
            raise ConfigurationError(
                f"forget_factor must be in (0, 1], got {self.forget_factor}"
            )
        if self.max_history <= 1:
            raise ConfigurationError("max_history must be at least 2")
        if self.max_corrections <= 0:
            raise ConfigurationError("max_corrections must be positive")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OnlineLearningConfig":
        """Build a config from a plain dict."""
        data = dict(data or {})
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown online config keys: {sorted(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)


def default_config_dir() -> str:
    """Config directory, overridable via ENSEMBLE_ENGINE_CONFIG."""
    return os.environ.get(CONFIG_ENV_VAR, "config")


def load_model_params(config_path: Optional[str] = None) -> Optional[Dict]:
    """Load model parameters from YAML config.

    Args:
        config_path: Path to a config directory containing model_params.yaml,
            or to the YAML file itself

    Returns:
        Config dict or None if not found
    """
    if not config_path:
        config_path = default_config_dir()

    search_paths = [
        Path(config_path) / "model_params.yaml",
        Path(config_path),
        Path("config") / "model_params.yaml",
    ]

    for path in search_paths:
        if path.exists() and path.is_file():
            try:
                with open(path, "r") as f:
                    config = yaml.safe_load(f)
                logger.debug(f"Loaded model params from {path}")
                return config or {}
            except yaml.YAMLError as e:
                logger.warning(f"Failed to load config from {path}: {e}")

    return None


def load_online_config(
    config_path: Optional[str] = None,
    **overrides,
) -> OnlineLearningConfig:
    """Build an OnlineLearningConfig from YAML defaults plus overrides."""
    params = load_model_params(config_path) or {}
    section = dict(params.get("online_learning", {}))
    section.update(overrides)
    return OnlineLearningConfig.from_dict(section)
