"""
Sample and dataset types shared by learners, the orchestrator and the
online-learning buffer.

Classes:
    Sample: One observation (features, target, timestamp)
    TrainingDataset: Feature matrix, targets and feature names
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence
import logging

import numpy as np
import pandas as pd

from ensemble_engine.errors import EmptyDataError

logger = logging.getLogger(__name__)


@dataclass
class Sample:
    """A single observation.

    Attributes:
        features: Ordered numeric features
        target: Scalar target
        timestamp: Observation time (defaults to now)
    """
    features: List[float]
    target: float
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        self.features = [float(v) for v in self.features]
        self.target = float(self.target)
        if self.timestamp is None:
            self.timestamp = datetime.now()


@dataclass
class TrainingDataset:
    """Rows of samples plus ordered feature labels.

    Attributes:
        X: Feature matrix (rows x features)
        y: Per-row targets
        feature_names: Column labels, generated when omitted

    Raises:
        EmptyDataError: If the dataset has no rows or no columns
        ValueError: If the shapes of X, y and feature_names disagree
    """
    X: np.ndarray
    y: np.ndarray
    feature_names: List[str] = field(default_factory=list)

    def __post_init__(self):
        """Coerce to float arrays and validate shapes."""
        self.X = np.asarray(self.X, dtype=float)
        self.y = np.asarray(self.y, dtype=float).ravel()

        if self.X.ndim == 1:
            self.X = self.X.reshape(-1, 1)
        if self.X.ndim != 2:
            raise ValueError(f"X must be 2-dimensional, got shape {self.X.shape}")
        if self.X.shape[0] == 0 or self.X.shape[1] == 0:
            raise EmptyDataError(
                f"Dataset is empty: {self.X.shape[0]} rows, {self.X.shape[1]} features"
            )
        if len(self.y) != self.X.shape[0]:
            raise ValueError(
                f"Data and targets length mismatch: {self.X.shape[0]} vs {len(self.y)}"
            )

        if not self.feature_names:
            self.feature_names = [f"feature_{i}" for i in range(self.X.shape[1])]
        else:
            self.feature_names = list(self.feature_names)
        if len(self.feature_names) != self.X.shape[1]:
            raise ValueError(
                f"Feature names length mismatch: {len(self.feature_names)} names "
                f"for {self.X.shape[1]} columns"
            )

    def __len__(self) -> int:
        return self.X.shape[0]

    @property
    def n_features(self) -> int:
        """Number of feature columns."""
        return self.X.shape[1]

    def rows(self) -> List[List[float]]:
        """Feature matrix as a list of row lists."""
        return self.X.tolist()

    @classmethod
    def from_samples(
        cls,
        samples: Sequence[Sample],
        feature_names: Optional[List[str]] = None,
    ) -> "TrainingDataset":
        """Build a dataset from Sample objects.

        Raises:
            EmptyDataError: If no samples are given
            ValueError: If samples have differing feature counts
        """
        if not samples:
            raise EmptyDataError("Cannot build a dataset from zero samples")

        widths = {len(s.features) for s in samples}
        if len(widths) != 1:
            raise ValueError(f"Samples have inconsistent feature counts: {sorted(widths)}")

        X = np.array([s.features for s in samples], dtype=float)
        y = np.array([s.target for s in samples], dtype=float)
        return cls(X=X, y=y, feature_names=feature_names or [])

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        target_column: str,
        feature_columns: Optional[List[str]] = None,
    ) -> "TrainingDataset":
        """Build a dataset from a DataFrame.

        Args:
            df: Source frame
            target_column: Column holding the target
            feature_columns: Feature columns (default: all numeric except target)
        """
        if target_column not in df.columns:
            raise ValueError(f"Target column {target_column!r} not in DataFrame")

        if feature_columns is None:
            numeric = df.select_dtypes(include=[np.number]).columns
            feature_columns = [c for c in numeric if c != target_column]

        clean = df[feature_columns + [target_column]].dropna()
        dropped = len(df) - len(clean)
        if dropped:
            logger.warning(f"Dropped {dropped} rows containing NaN values")

        return cls(
            X=clean[feature_columns].values,
            y=clean[target_column].values,
            feature_names=list(feature_columns),
        )
