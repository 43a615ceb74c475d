"""
Resampling utilities used by the ensemble strategies.

Functions:
    bootstrap_indices: Uniform sampling with replacement
    weighted_resample_indices: Sampling with replacement by sample weight
    median_absolute_deviation: Median of |target - mean(target)|
    directional_accuracy: Share of matching {-1, 0, +1} directions
"""

from typing import Optional, Sequence
import logging

import numpy as np

logger = logging.getLogger(__name__)

DIRECTION_THRESHOLD = 0.5


def bootstrap_indices(
    rng: np.random.Generator,
    n_samples: int,
    sample_size: Optional[int] = None,
) -> np.ndarray:
    """Draw a bootstrap sample of row indices.

    Args:
        rng: Random generator
        n_samples: Rows in the source dataset
        sample_size: Rows to draw (default: n_samples)

    Returns:
        Array of row indices, drawn with replacement
    """
    if n_samples <= 0:
        return np.empty(0, dtype=int)
    size = n_samples if sample_size is None else max(1, int(sample_size))
    return rng.integers(0, n_samples, size=size)


def weighted_resample_indices(
    rng: np.random.Generator,
    weights: Sequence[float],
    sample_size: Optional[int] = None,
) -> np.ndarray:
    """Draw row indices with probability proportional to weight.

    Falls back to uniform sampling when the weights are degenerate.
    """
    w = np.asarray(weights, dtype=float)
    n = len(w)
    if n == 0:
        return np.empty(0, dtype=int)
    size = n if sample_size is None else max(1, int(sample_size))

    total = w.sum()
    if not np.isfinite(total) or total <= 0 or (w < 0).any():
        logger.warning("Degenerate sample weights, resampling uniformly")
        return rng.integers(0, n, size=size)

    return rng.choice(n, size=size, replace=True, p=w / total)


def median_absolute_deviation(targets: Sequence[float]) -> float:
    """Median absolute deviation of targets around their mean.

    Returns 1.0 for an empty input.
    """
    y = np.asarray(targets, dtype=float)
    if len(y) == 0:
        return 1.0
    return float(np.median(np.abs(y - y.mean())))


def direction(value: float, threshold: float = DIRECTION_THRESHOLD) -> int:
    """Map a value to -1, 0 or +1 using a symmetric dead band."""
    if value > threshold:
        return 1
    if value < -threshold:
        return -1
    return 0


def directional_accuracy(
    predictions: Sequence[float],
    actuals: Sequence[float],
    threshold: float = DIRECTION_THRESHOLD,
) -> float:
    """Share of samples whose predicted direction matches the actual one.

    Returns 0.0 when there are no samples.
    """
    if len(actuals) == 0:
        return 0.0
    correct = sum(
        1 for p, a in zip(predictions, actuals)
        if direction(p, threshold) == direction(a, threshold)
    )
    return correct / len(actuals)
