"""
Dynamic weighting and failure-tolerant aggregation.

Every aggregation here takes a list with one entry per learner slot where a
failed slot is ``None``. Non-finite values are treated as failures.

Functions:
    usable: Whether a learner output may enter an aggregate
    mean_prediction: Arithmetic mean of usable predictions
    boosting_prediction: Weighted sum used by boosting
    health_factor: Multiplier from training state and recent failures
    type_prior_weights: Normalized prior x health weights per slot
    weighted_prediction: Weighted mean with plausibility filtering
"""

from typing import Dict, List, Optional, Sequence
import logging
import math

import numpy as np

logger = logging.getLogger(__name__)

# Predictions beyond this magnitude are implausible for return-style targets
MAX_PLAUSIBLE_PREDICTION = 20.0

# Prior for learner types missing from the configured priors
DEFAULT_TYPE_PRIOR = 0.1

HEALTHY_BONUS = 1.1
DEGRADED_FACTOR = 1.0
UNTRAINED_FACTOR = 0.01


def usable(value: Optional[float]) -> bool:
    """Whether a prediction is present and finite."""
    return value is not None and math.isfinite(value)


def mean_prediction(predictions: Sequence[Optional[float]]) -> Optional[float]:
    """Mean of usable predictions, or None if there are none."""
    values = [p for p in predictions if usable(p)]
    if not values:
        return None
    return float(np.mean(values))


def boosting_prediction(
    predictions: Sequence[Optional[float]],
    confidences: Sequence[float],
    rate: float,
) -> Optional[float]:
    """Weighted sum of rate x prediction x confidence.

    Only slots with a non-zero confidence contribute. Returns None when no
    weighted slot produced a usable prediction.
    """
    total = 0.0
    contributing = 0
    for pred, conf in zip(predictions, confidences):
        if conf == 0 or not usable(pred):
            continue
        total += rate * pred * conf
        contributing += 1
    if contributing == 0:
        return None
    return total


def health_factor(trained: bool, recent_failures: int) -> float:
    """Weight multiplier for a learner slot.

    Trained and failure-free slots get a small bonus; untrained slots are
    weighted near zero.
    """
    if not trained:
        return UNTRAINED_FACTOR
    if recent_failures > 0:
        return DEGRADED_FACTOR
    return HEALTHY_BONUS


def type_prior_weights(
    names: Sequence[str],
    trained: Sequence[bool],
    failure_counts: Sequence[int],
    priors: Dict[str, float],
) -> List[float]:
    """Per-slot weights = type prior x health factor, normalized to sum 1.

    Args:
        names: Learner type key per slot
        trained: Training state per slot
        failure_counts: Consecutive predict failures per slot
        priors: Base prior per learner type

    Returns:
        Normalized weights (all zero if every raw weight is zero)
    """
    raw = [
        priors.get(name, DEFAULT_TYPE_PRIOR) * health_factor(is_trained, failures)
        for name, is_trained, failures in zip(names, trained, failure_counts)
    ]
    total = sum(raw)
    if total <= 0:
        return [0.0] * len(raw)

    weights = [w / total for w in raw]
    logger.debug(
        "Dynamic weights: "
        + ", ".join(f"{n}={w:.3f}" for n, w in zip(names, weights))
    )
    return weights


def weighted_prediction(
    predictions: Sequence[Optional[float]],
    weights: Sequence[float],
    max_abs: float = MAX_PLAUSIBLE_PREDICTION,
) -> Optional[float]:
    """Weighted mean over plausible predictions, renormalized over survivors.

    Predictions that are missing, non-finite or larger than ``max_abs`` in
    magnitude are excluded before weighting.
    """
    weighted_sum = 0.0
    total_weight = 0.0
    for idx, (pred, weight) in enumerate(zip(predictions, weights)):
        if not usable(pred):
            continue
        if abs(pred) > max_abs:
            logger.info(f"Filtered implausible prediction from slot {idx}: {pred:.4f}")
            continue
        weighted_sum += pred * weight
        total_weight += weight

    if total_weight <= 0:
        return None
    return weighted_sum / total_weight
