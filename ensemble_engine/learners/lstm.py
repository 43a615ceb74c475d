"""
LSTM learner backed by PyTorch.

The flat feature vector is read as a sequence: with ``seq_len=None`` every
feature is one timestep of width 1, otherwise the vector is split into
``seq_len`` timesteps of equal width (the feature count must divide evenly).
"""

from typing import Dict, List, Optional, Sequence
import logging

import torch
import torch.nn as nn

from ensemble_engine.errors import LearnerFailure
from ensemble_engine.learners.base import BaseLearner
from ensemble_engine.learners.torch_training import fit_regressor, predict_scalar

logger = logging.getLogger(__name__)


class _LSTMRegressor(nn.Module):
    """LSTM over a reshaped feature vector with a linear head."""

    def __init__(self, seq_len: int, step_width: int, hidden_size: int, num_layers: int):
        super().__init__()
        self.seq_len = seq_len
        self.step_width = step_width
        self.lstm = nn.LSTM(
            input_size=step_width,
            hidden_size=hidden_size,
            num_layers=num_layers,
            batch_first=True,
        )
        self.head = nn.Linear(hidden_size, 1)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        # x: [batch, seq_len * step_width]
        seq = x.reshape(x.size(0), self.seq_len, self.step_width)
        out, _ = self.lstm(seq)
        return self.head(out[:, -1, :])


class LSTMLearner(BaseLearner):
    """Recurrent learner for sequential feature layouts.

    Attributes:
        hidden_size: LSTM hidden units
        num_layers: Stacked LSTM layers
        seq_len: Timesteps the feature vector is split into (None = one per feature)
        epochs: Training epochs
        learning_rate: Adam step size
        batch_size: Mini-batch size
    """

    name = "lstm"

    def __init__(
        self,
        hidden_size: int = 32,
        num_layers: int = 1,
        seq_len: Optional[int] = None,
        epochs: int = 50,
        learning_rate: float = 0.01,
        batch_size: int = 32,
        random_state: Optional[int] = None,
    ):
        super().__init__(random_state=random_state)
        self.hidden_size = hidden_size
        self.num_layers = num_layers
        self.seq_len = seq_len
        self.epochs = epochs
        self.learning_rate = learning_rate
        self.batch_size = batch_size

        self.module: Optional[_LSTMRegressor] = None
        self._scaler = None
        self.last_loss: Optional[float] = None

    def train(self, features: Sequence[Sequence[float]], targets: Sequence[float]) -> None:
        X, y = self._validate_training_data(features, targets)
        n_features = X.shape[1]

        seq_len = self.seq_len or n_features
        if n_features % seq_len != 0:
            raise LearnerFailure(
                f"lstm: {n_features} features cannot be split into {seq_len} timesteps",
                self.name,
            )
        step_width = n_features // seq_len

        try:
            module, scaler, loss = fit_regressor(
                lambda: _LSTMRegressor(seq_len, step_width, self.hidden_size, self.num_layers),
                X, y,
                epochs=self.epochs,
                learning_rate=self.learning_rate,
                batch_size=self.batch_size,
                seed=self.random_state,
            )
        except RuntimeError as e:
            raise LearnerFailure(f"lstm: training failed: {e}", self.name)

        self.module = module
        self._scaler = scaler
        self.last_loss = loss
        self._mark_fitted(X)
        logger.info(f"LSTM trained on {len(X)} samples ({seq_len} steps x {step_width}), loss={loss:.4f}")

    def predict(self, features: Sequence[float]) -> float:
        x = self._validate_features(features)
        return predict_scalar(self.module, self._scaler, x)

    def clone(self) -> "LSTMLearner":
        return LSTMLearner(**self.get_params())

    def get_params(self) -> Dict:
        return {
            "hidden_size": self.hidden_size,
            "num_layers": self.num_layers,
            "seq_len": self.seq_len,
            "epochs": self.epochs,
            "learning_rate": self.learning_rate,
            "batch_size": self.batch_size,
            "random_state": self.random_state,
        }

    def get_feature_importance(self) -> List[float]:
        return []
