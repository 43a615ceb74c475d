"""
Learner Factory for the ensemble engine.

Creates learners by type key and assembles complete ensembles from an
EnsembleConfig or a named preset in model_params.yaml.

Classes:
    LearnerFactory: Registry of learner types plus ensemble construction

Example:
    >>> factory = LearnerFactory()
    >>> tree = factory.create_learner("decision_tree", max_depth=4)
    >>> ensemble = factory.create_default_ensemble("stacking_advanced")
"""

from typing import Any, Dict, List, Optional, Type
import logging

from ensemble_engine.config import EnsembleConfig, EnsembleStrategy, load_model_params
from ensemble_engine.ensemble.orchestrator import EnsembleOrchestrator
from ensemble_engine.errors import ConfigurationError
from ensemble_engine.learners.base import BaseLearner
from ensemble_engine.learners.decision_tree import DecisionTreeLearner
from ensemble_engine.learners.linear_regression import LinearRegressionLearner
from ensemble_engine.learners.lstm import LSTMLearner
from ensemble_engine.learners.neural_network import NeuralNetworkLearner
from ensemble_engine.learners.transformer import TransformerLearner

logger = logging.getLogger(__name__)


class LearnerFactory:
    """Creates learners and ensembles.

    Constructor parameters are resolved per learner type with the usual
    precedence: explicit params > EnsembleConfig.learner_params > the
    ``learners`` section of model_params.yaml.

    Attributes:
        config_path: Directory or file holding model_params.yaml
        learner_defaults: Per-type parameters from YAML
        presets: Named ensemble configurations from YAML
    """

    LEARNER_TYPES: Dict[str, Type[BaseLearner]] = {
        "decision_tree": DecisionTreeLearner,
        "linear_regression": LinearRegressionLearner,
        "neural_network": NeuralNetworkLearner,
        "lstm": LSTMLearner,
        "transformer": TransformerLearner,
    }

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path
        self._registry: Dict[str, Type[BaseLearner]] = dict(self.LEARNER_TYPES)

        params = load_model_params(config_path) or {}
        if not params:
            logger.warning("model_params.yaml not found, using built-in defaults")

        self.ensemble_defaults: Dict[str, Any] = dict(params.get("ensemble") or {})
        self.learner_defaults: Dict[str, Dict[str, Any]] = dict(params.get("learners") or {})
        self.presets: Dict[str, Dict[str, Any]] = dict(params.get("presets") or {})

        boosting = self.ensemble_defaults.pop("boosting", None) or {}
        self.correctness_mad_fraction: Optional[float] = boosting.get("correctness_mad_fraction")

    def register(self, learner_type: str, learner_cls: Type[BaseLearner]) -> None:
        """Register a learner class under a type key.

        Raises:
            ConfigurationError: If the class is not a BaseLearner subclass
        """
        if not (isinstance(learner_cls, type) and issubclass(learner_cls, BaseLearner)):
            raise ConfigurationError(f"{learner_cls!r} is not a BaseLearner subclass")
        if learner_type in self._registry:
            logger.warning(f"Overriding learner type '{learner_type}'")
        self._registry[learner_type] = learner_cls
        logger.debug(f"Registered learner type '{learner_type}' -> {learner_cls.__name__}")

    @property
    def learner_types(self) -> List[str]:
        """Registered learner type keys."""
        return sorted(self._registry)

    def create_learner(self, learner_type: str, **params) -> BaseLearner:
        """Create one untrained learner.

        Args:
            learner_type: Registered type key
            **params: Constructor parameters overriding YAML defaults

        Raises:
            ConfigurationError: If the type is unknown or params are invalid
        """
        learner_cls = self._registry.get(learner_type)
        if learner_cls is None:
            raise ConfigurationError(
                f"Unknown learner type '{learner_type}', available: {self.learner_types}"
            )

        kwargs = dict(self.learner_defaults.get(learner_type) or {})
        kwargs.update(params)
        try:
            return learner_cls(**kwargs)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid parameters for {learner_type}: {e}")

    def _learner_params(self, config: EnsembleConfig, learner_type: str, seed: int) -> Dict[str, Any]:
        params = dict(config.learner_params.get(learner_type) or {})
        if learner_type == "decision_tree" and config.max_depth is not None:
            params.setdefault("max_depth", config.max_depth)
        params["random_state"] = seed
        return params

    def validate_config(self, config: EnsembleConfig) -> List[str]:
        """Check that every type in the config is registered.

        Field-level validation already ran in EnsembleConfig.__post_init__.

        Returns:
            List of problems (empty if valid)
        """
        problems = []
        for learner_type in config.base_learner_types:
            if learner_type not in self._registry:
                problems.append(f"unknown base learner type '{learner_type}'")
        if config.meta_learner_type and config.meta_learner_type not in self._registry:
            problems.append(f"unknown meta learner type '{config.meta_learner_type}'")
        return problems

    def create_ensemble(self, config: EnsembleConfig) -> EnsembleOrchestrator:
        """Build an ensemble from a config.

        Learner ``i`` gets type ``base_learner_types[i % len]`` and seed
        ``random_state + i``. A meta-learner that cannot be created leaves
        the stacking ensemble in degraded mode.

        Raises:
            ConfigurationError: If a base learner type is unknown
        """
        problems = [p for p in self.validate_config(config) if "base learner" in p]
        if problems:
            raise ConfigurationError("; ".join(problems))

        types = config.base_learner_types
        learners = [
            self.create_learner(
                types[i % len(types)],
                **self._learner_params(config, types[i % len(types)], config.random_state + i),
            )
            for i in range(config.num_learners)
        ]

        meta_learner = None
        if config.strategy is EnsembleStrategy.STACKING:
            meta_type = config.meta_learner_type
            try:
                meta_learner = self.create_learner(
                    meta_type,
                    **self._learner_params(config, meta_type, config.random_state + config.num_learners),
                )
            except ConfigurationError as e:
                logger.error(f"Could not create meta-learner '{meta_type}': {e}")

        logger.info(
            f"Created {config.strategy.value} ensemble: {config.num_learners} learners "
            f"of {types}" + (f", meta={config.meta_learner_type}" if meta_learner else "")
        )
        return EnsembleOrchestrator(
            learners,
            config,
            meta_learner=meta_learner,
            correctness_mad_fraction=self.correctness_mad_fraction,
        )

    def available_presets(self) -> List[str]:
        """Names of the presets defined in model_params.yaml."""
        return sorted(self.presets)

    def preset_config(self, name: str, **overrides) -> EnsembleConfig:
        """Resolve a preset to an EnsembleConfig.

        Values come from the ``ensemble`` defaults, then the preset, then
        ``overrides``.

        Raises:
            ConfigurationError: If the preset does not exist
        """
        if name not in self.presets:
            raise ConfigurationError(
                f"Unknown preset '{name}', available: {self.available_presets()}"
            )
        data = dict(self.ensemble_defaults)
        data.update(self.presets[name] or {})
        data.update(overrides)
        return EnsembleConfig.from_dict(data)

    def create_default_ensemble(self, name: str = "bagging_basic", **overrides) -> EnsembleOrchestrator:
        """Create an ensemble from a named preset."""
        return self.create_ensemble(self.preset_config(name, **overrides))
