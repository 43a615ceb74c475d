"""
Shared PyTorch training loop for the sequence learners (LSTM, Transformer).

Inputs and targets are standardized before training. The statistics are
returned so predictions can be mapped back to target units.
"""

from dataclasses import dataclass
from typing import Optional
import logging
import threading

import numpy as np
import torch
import torch.nn as nn

logger = logging.getLogger(__name__)

# torch's RNG is process-wide; seeded construction and training must not
# interleave across bagging worker threads.
_TORCH_LOCK = threading.Lock()


@dataclass
class Standardizer:
    """Column means and scales for inputs and target."""
    x_mean: np.ndarray
    x_std: np.ndarray
    y_mean: float
    y_std: float

    @classmethod
    def fit(cls, X: np.ndarray, y: np.ndarray) -> "Standardizer":
        x_std = X.std(axis=0)
        x_std[x_std == 0] = 1.0
        y_std = float(y.std()) or 1.0
        return cls(X.mean(axis=0), x_std, float(y.mean()), y_std)

    def transform_x(self, X: np.ndarray) -> np.ndarray:
        return (X - self.x_mean) / self.x_std

    def transform_y(self, y: np.ndarray) -> np.ndarray:
        return (y - self.y_mean) / self.y_std

    def inverse_y(self, value: float) -> float:
        return value * self.y_std + self.y_mean


def fit_regressor(
    build_module,
    X: np.ndarray,
    y: np.ndarray,
    epochs: int,
    learning_rate: float,
    batch_size: int,
    seed: Optional[int],
    max_grad_norm: float = 1.0,
):
    """Build and train a regression module with Adam on MSE.

    Args:
        build_module: Zero-argument callable returning an nn.Module that
            maps (batch, n_features) to (batch, 1)
        X: Feature matrix
        y: Targets
        epochs: Passes over the data
        learning_rate: Adam step size
        batch_size: Mini-batch size
        seed: Seed for weight init and shuffling

    Returns:
        Tuple of (trained module in eval mode, Standardizer, final loss)
    """
    scaler = Standardizer.fit(X, y)
    X_t = torch.as_tensor(scaler.transform_x(X), dtype=torch.float32)
    y_t = torch.as_tensor(scaler.transform_y(y), dtype=torch.float32).reshape(-1, 1)

    with _TORCH_LOCK:
        if seed is not None:
            torch.manual_seed(seed)
        generator = torch.Generator()
        generator.manual_seed(seed if seed is not None else int(torch.seed() % (2 ** 31)))

        module = build_module()
        optimizer = torch.optim.Adam(module.parameters(), lr=learning_rate)
        loss_fn = nn.MSELoss()

        module.train()
        n = len(X_t)
        loss_value = float("nan")
        for epoch in range(epochs):
            order = torch.randperm(n, generator=generator)
            epoch_loss = 0.0
            for start in range(0, n, batch_size):
                idx = order[start:start + batch_size]
                optimizer.zero_grad()
                loss = loss_fn(module(X_t[idx]), y_t[idx])
                loss.backward()
                nn.utils.clip_grad_norm_(module.parameters(), max_grad_norm)
                optimizer.step()
                epoch_loss += loss.item() * len(idx)
            loss_value = epoch_loss / n

        module.eval()

    logger.debug(f"Trained {module.__class__.__name__} for {epochs} epochs, loss={loss_value:.4f}")
    return module, scaler, loss_value


def predict_scalar(module: nn.Module, scaler: Standardizer, x: np.ndarray) -> float:
    """Run one standardized feature row through a trained module."""
    x_t = torch.as_tensor(scaler.transform_x(x), dtype=torch.float32)
    with torch.no_grad():
        out = module(x_t)
    return scaler.inverse_y(float(out.reshape(-1)[0]))
