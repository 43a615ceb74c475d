"""
Performance history and drift detection for online updates.

Each completed online update is scored with directional accuracy on recent
samples. A drop larger than the drift threshold between two consecutive
scores flags performance drift.

Classes:
    PerformanceRecord: One scored online update
    OnlinePerformanceTracker: Bounded history with drift detection
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


@dataclass
class PerformanceRecord:
    """Score of one completed online update.

    Attributes:
        score: Directional accuracy (0-1)
        timestamp: When the score was recorded
        n_samples: Samples the score was computed on
    """
    score: float
    timestamp: datetime = field(default_factory=datetime.now)
    n_samples: int = 0

    def to_dict(self) -> Dict:
        """Convert to dictionary for serialization."""
        return {
            "score": self.score,
            "timestamp": self.timestamp.isoformat(),
            "n_samples": self.n_samples,
        }


class OnlinePerformanceTracker:
    """Bounded performance history.

    Attributes:
        drift_threshold: Score drop between consecutive updates flagging drift
        max_history: Records kept, oldest dropped first
        drift_events: Number of drifts detected so far
    """

    def __init__(self, drift_threshold: float = 0.1, max_history: int = 1000):
        self.drift_threshold = drift_threshold
        self.max_history = max_history
        self.drift_events = 0
        self._history: Deque[PerformanceRecord] = deque(maxlen=max_history)

    def record(self, score: float, n_samples: int = 0) -> PerformanceRecord:
        """Append a score to the history."""
        record = PerformanceRecord(score=float(score), n_samples=n_samples)
        self._history.append(record)
        logger.debug(f"Recorded online performance {record.score:.4f} on {n_samples} samples")
        return record

    @property
    def latest(self) -> Optional[PerformanceRecord]:
        """Most recent record, or None."""
        return self._history[-1] if self._history else None

    def scores(self) -> List[float]:
        """Scores in recording order."""
        return [r.score for r in self._history]

    def history(self) -> List[PerformanceRecord]:
        """Copy of the history."""
        return list(self._history)

    def detect_drift(self) -> bool:
        """Whether the latest score dropped more than the threshold.

        Needs at least two records. Counts every detection in drift_events.
        """
        if len(self._history) < 2:
            return False

        previous = self._history[-2].score
        current = self._history[-1].score
        if previous - current > self.drift_threshold:
            self.drift_events += 1
            logger.warning(
                f"Performance drift detected: {previous:.3f} -> {current:.3f} "
                f"(threshold {self.drift_threshold})"
            )
            return True
        return False

    def clear(self) -> None:
        """Drop the history and reset the drift counter."""
        self._history.clear()
        self.drift_events = 0

    def __len__(self) -> int:
        return len(self._history)
