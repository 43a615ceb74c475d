"""
Learners for the ensemble engine.

Every learner implements the BaseLearner contract (train, predict, name,
clone, get_feature_importance) so ensembles can mix model families freely.

Classes:
    BaseLearner: Abstract learner contract
    DecisionTreeLearner: scikit-learn regression tree
    LinearRegressionLearner: scikit-learn ordinary least squares
    NeuralNetworkLearner: scikit-learn multi-layer perceptron
    LSTMLearner: PyTorch LSTM over the feature sequence
    TransformerLearner: PyTorch Transformer encoder over feature tokens

LearnerFactory lives in ensemble_engine.learners.factory (it builds
EnsembleOrchestrators, which depend on this package).
"""

from ensemble_engine.learners.base import BaseLearner
from ensemble_engine.learners.decision_tree import DecisionTreeLearner
from ensemble_engine.learners.linear_regression import LinearRegressionLearner
from ensemble_engine.learners.neural_network import NeuralNetworkLearner
from ensemble_engine.learners.lstm import LSTMLearner
from ensemble_engine.learners.transformer import TransformerLearner

__all__ = [
    "BaseLearner",
    "DecisionTreeLearner",
    "LinearRegressionLearner",
    "NeuralNetworkLearner",
    "LSTMLearner",
    "TransformerLearner",
]
