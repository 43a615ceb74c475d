"""
Ensemble strategies and aggregation.

Classes:
    EnsembleOrchestrator: Bagging, boosting and stacking over BaseLearners
    LearnerTable: Immutable snapshot of learners, weights and training state
    FeatureImportanceAnalysis: Permutation/tree importance result
"""

from ensemble_engine.ensemble.table import LearnerTable
from ensemble_engine.ensemble.orchestrator import EnsembleOrchestrator, FeatureImportanceAnalysis

__all__ = [
    "EnsembleOrchestrator",
    "FeatureImportanceAnalysis",
    "LearnerTable",
]
