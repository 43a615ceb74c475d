"""
Transformer learner backed by PyTorch.

Each feature becomes one token: a scalar projected to ``d_model`` plus a
learned positional embedding, encoded with pre-norm Transformer blocks and
mean-pooled into a linear head.
"""

from typing import Dict, List, Optional, Sequence
import logging

import torch
import torch.nn as nn

from ensemble_engine.errors import LearnerFailure
from ensemble_engine.learners.base import BaseLearner
from ensemble_engine.learners.torch_training import fit_regressor, predict_scalar

logger = logging.getLogger(__name__)


class _TransformerRegressor(nn.Module):
    """Token-per-feature Transformer encoder with a scalar head."""

    def __init__(
        self,
        n_features: int,
        d_model: int,
        num_heads: int,
        num_layers: int,
        dim_feedforward: int,
        dropout: float,
    ):
        super().__init__()
        self.input_proj = nn.Linear(1, d_model)
        self.pos = nn.Parameter(torch.randn(1, n_features, d_model) * 0.02)
        layer = nn.TransformerEncoderLayer(
            d_model=d_model,
            nhead=num_heads,
            dim_feedforward=dim_feedforward,
            dropout=dropout,
            batch_first=True,
            norm_first=True,
        )
        self.encoder = nn.TransformerEncoder(layer, num_layers=num_layers)
        self.norm = nn.LayerNorm(d_model)
        self.head = nn.Linear(d_model, 1)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        # x: [batch, n_features] -> tokens [batch, n_features, d_model]
        tokens = self.input_proj(x.unsqueeze(-1)) + self.pos
        encoded = self.encoder(tokens)
        return self.head(self.norm(encoded.mean(dim=1)))


class TransformerLearner(BaseLearner):
    """Attention-based learner.

    Attributes:
        d_model: Token embedding width (must be divisible by num_heads)
        num_heads: Attention heads
        num_layers: Encoder blocks
        dim_feedforward: Feed-forward width inside each block
        dropout: Dropout rate during training
        epochs: Training epochs
        learning_rate: Adam step size
        batch_size: Mini-batch size
    """

    name = "transformer"

    def __init__(
        self,
        d_model: int = 32,
        num_heads: int = 4,
        num_layers: int = 2,
        dim_feedforward: int = 64,
        dropout: float = 0.1,
        epochs: int = 50,
        learning_rate: float = 0.001,
        batch_size: int = 32,
        random_state: Optional[int] = None,
    ):
        super().__init__(random_state=random_state)
        if d_model % num_heads != 0:
            raise ValueError(f"d_model ({d_model}) must be divisible by num_heads ({num_heads})")

        self.d_model = d_model
        self.num_heads = num_heads
        self.num_layers = num_layers
        self.dim_feedforward = dim_feedforward
        self.dropout = dropout
        self.epochs = epochs
        self.learning_rate = learning_rate
        self.batch_size = batch_size

        self.module: Optional[_TransformerRegressor] = None
        self._scaler = None
        self.last_loss: Optional[float] = None

    def train(self, features: Sequence[Sequence[float]], targets: Sequence[float]) -> None:
        X, y = self._validate_training_data(features, targets)
        n_features = X.shape[1]

        try:
            module, scaler, loss = fit_regressor(
                lambda: _TransformerRegressor(
                    n_features,
                    self.d_model,
                    self.num_heads,
                    self.num_layers,
                    self.dim_feedforward,
                    self.dropout,
                ),
                X, y,
                epochs=self.epochs,
                learning_rate=self.learning_rate,
                batch_size=self.batch_size,
                seed=self.random_state,
            )
        except RuntimeError as e:
            raise LearnerFailure(f"transformer: training failed: {e}", self.name)

        self.module = module
        self._scaler = scaler
        self.last_loss = loss
        self._mark_fitted(X)
        logger.info(f"Transformer trained on {len(X)} samples x {n_features} tokens, loss={loss:.4f}")

    def predict(self, features: Sequence[float]) -> float:
        x = self._validate_features(features)
        return predict_scalar(self.module, self._scaler, x)

    def clone(self) -> "TransformerLearner":
        return TransformerLearner(**self.get_params())

    def get_params(self) -> Dict:
        return {
            "d_model": self.d_model,
            "num_heads": self.num_heads,
            "num_layers": self.num_layers,
            "dim_feedforward": self.dim_feedforward,
            "dropout": self.dropout,
            "epochs": self.epochs,
            "learning_rate": self.learning_rate,
            "batch_size": self.batch_size,
            "random_state": self.random_state,
        }

    def get_feature_importance(self) -> List[float]:
        return []
