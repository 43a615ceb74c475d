"""
Ensemble Engine - Ensemble learning orchestration with online adaptation.

Trains and serves scalar predictions from a heterogeneous set of learners
(decision tree, linear regression, neural network, LSTM, Transformer) under
bagging, boosting or stacking, and folds fresh samples back into a trained
ensemble with rate-limited, drift-guarded online updates.

Architecture:
- Learners: a uniform five-operation contract over sklearn and PyTorch models
- Ensemble: strategy-specific training and failure-tolerant aggregation
- Online learning: sample buffer, update gating, residual blending, drift rollback
"""

__version__ = "0.1.0"
__author__ = "Ensemble Engine Development Team"

from ensemble_engine.config import EnsembleConfig, EnsembleStrategy, OnlineLearningConfig
from ensemble_engine.dataset import Sample, TrainingDataset
from ensemble_engine.ensemble.orchestrator import EnsembleOrchestrator
from ensemble_engine.learners.factory import LearnerFactory
from ensemble_engine.online_learning.controller import OnlineAdaptationController

__all__ = [
    "EnsembleConfig",
    "EnsembleStrategy",
    "OnlineLearningConfig",
    "Sample",
    "TrainingDataset",
    "EnsembleOrchestrator",
    "LearnerFactory",
    "OnlineAdaptationController",
]
