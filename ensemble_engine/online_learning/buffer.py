"""
Bounded FIFO of recent samples for online learning.

Classes:
    OnlineLearningBuffer: Thread-safe sliding window of Samples
"""

from collections import deque
from datetime import datetime
from typing import Deque, List, Optional, Sequence, Tuple
import logging
import threading

from ensemble_engine.dataset import Sample

logger = logging.getLogger(__name__)


class OnlineLearningBuffer:
    """Sliding window of the most recent samples.

    When full, adding a sample evicts the oldest one. Reads return copies,
    so callers never share mutable state with the buffer.

    Attributes:
        max_size: Capacity of the buffer

    Example:
        >>> buffer = OnlineLearningBuffer(max_size=3)
        >>> for i in range(5):
        ...     buffer.add_sample([float(i)], float(i))
        >>> buffer.get_samples(10)
        ([[2.0], [3.0], [4.0]], [2.0, 3.0, 4.0])
    """

    def __init__(self, max_size: int = 1000):
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self._max_size = max_size
        self._samples: Deque[Sample] = deque(maxlen=max_size)
        self._lock = threading.Lock()

    @property
    def max_size(self) -> int:
        """Capacity of the buffer."""
        return self._max_size

    def add_sample(
        self,
        features: Sequence[float],
        target: float,
        timestamp: Optional[datetime] = None,
    ) -> None:
        """Append a sample, evicting the oldest one when full."""
        sample = Sample(features=list(features), target=target, timestamp=timestamp)
        with self._lock:
            self._samples.append(sample)

    def get_samples(self, count: int) -> Tuple[List[List[float]], List[float]]:
        """Most recent ``min(count, size)`` samples in arrival order.

        Returns:
            Tuple of (features, targets) as fresh lists
        """
        with self._lock:
            n = max(0, min(count, len(self._samples)))
            recent = list(self._samples)[len(self._samples) - n:]
        features = [list(s.features) for s in recent]
        targets = [s.target for s in recent]
        return features, targets

    def get_recent(self, count: int) -> List[Sample]:
        """Most recent samples as copied Sample objects."""
        with self._lock:
            n = max(0, min(count, len(self._samples)))
            recent = list(self._samples)[len(self._samples) - n:]
        return [Sample(list(s.features), s.target, s.timestamp) for s in recent]

    def size(self) -> int:
        """Number of buffered samples."""
        with self._lock:
            return len(self._samples)

    def __len__(self) -> int:
        return self.size()

    def clear(self) -> None:
        """Drop every buffered sample."""
        with self._lock:
            self._samples.clear()
        logger.debug("Online learning buffer cleared")
