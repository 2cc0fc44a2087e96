"""
Typed records passed between pipeline stages.

Every stage consumes and returns these records; no stage mutates a
structure owned by another. Sample arrays are stored read-only.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.spatial.distance import squareform

from bcclust.utils.exceptions import ValidationError


class StimType(str, Enum):
    """Stimulus category a trace was recorded under."""

    STATIC = "static"
    MOVING = "moving"


def _frozen_array(values) -> np.ndarray:
    arr = np.array(values, dtype=np.float64)
    arr.setflags(write=False)
    return arr


# =============================================================================
# Per-trace records
# =============================================================================

@dataclass(frozen=True, eq=False)
class Trace:
    """
    One recorded response of one cell under one stimulus type.

    Attributes:
        trace_id: Unique integer ID of the cell
        stim_type: Stimulus category
        is_sac: Starburst amacrine cell flag
        times_ms: Sample times in milliseconds, strictly increasing
        values: Raw response samples
        peak: Peak amplitude used for normalization
        peak_t: Time of peak (metadata time unit)
        rise_t: Time of rise onset (metadata time unit)
        extra: Passthrough metadata (annotations etc.)
    """

    trace_id: int
    stim_type: StimType
    is_sac: bool
    times_ms: np.ndarray
    values: np.ndarray
    peak: float
    peak_t: float
    rise_t: float
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        times = _frozen_array(self.times_ms)
        values = _frozen_array(self.values)
        if times.ndim != 1 or times.shape != values.shape:
            raise ValidationError(
                f"Trace {self.trace_id}: times and values must be 1D arrays of equal length "
                f"(got {times.shape} and {values.shape})",
                entity="trace",
                entity_id=str(self.trace_id),
                field="samples",
            )
        if len(times) > 1 and np.any(np.diff(times) <= 0):
            raise ValidationError(
                f"Trace {self.trace_id}: sample times are not strictly increasing",
                entity="trace",
                entity_id=str(self.trace_id),
                field="times_ms",
            )
        object.__setattr__(self, "stim_type", StimType(self.stim_type))
        object.__setattr__(self, "times_ms", times)
        object.__setattr__(self, "values", values)
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))

    @property
    def n_samples(self) -> int:
        return len(self.values)


@dataclass(frozen=True, eq=False)
class ConditionedTrace:
    """
    A trace after normalization, noise subtraction and smoothing.

    `values` holds the conditioned signal; its first (window - 1) samples
    are NaN because the trailing moving average has no full window there.
    """

    trace_id: int
    stim_type: StimType
    is_sac: bool
    times_ms: np.ndarray
    normalized: np.ndarray
    values: np.ndarray
    peak: float
    peak_t: float
    rise_t: float
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "times_ms", _frozen_array(self.times_ms))
        object.__setattr__(self, "normalized", _frozen_array(self.normalized))
        object.__setattr__(self, "values", _frozen_array(self.values))
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))


# Derived feature names, in table order
FEATURE_COLUMNS: Tuple[str, ...] = (
    "MeanTransient",
    "MedianTransient",
    "SDTransient",
    "MeanHyper",
    "MedianHyper",
    "SDHyper",
    "Rise",
    "Slope",
    "TShift",
    "AUC",
    "difCenters",
)

# Numeric passthrough metadata
METADATA_COLUMNS: Tuple[str, ...] = ("peak", "peakT", "riseT")


@dataclass(frozen=True)
class FeatureVector:
    """Derived summary statistics for one trace, plus passthrough metadata."""

    trace_id: int
    is_sac: bool
    MeanTransient: float
    MedianTransient: float
    SDTransient: float
    MeanHyper: float
    MedianHyper: float
    SDHyper: float
    Rise: float
    Slope: float
    TShift: float
    AUC: float
    difCenters: float
    peak: float
    peakT: float
    riseT: float
    extra: Mapping[str, Any] = field(default_factory=dict, compare=False)

    def as_row(self) -> Dict[str, Any]:
        """Flatten into a table row; passthrough metadata becomes columns."""
        row = {"trace_id": self.trace_id, "is_sac": self.is_sac}
        for name in FEATURE_COLUMNS + METADATA_COLUMNS:
            row[name] = getattr(self, name)
        row.update(self.extra)
        return row


@dataclass(frozen=True)
class TraceFailure:
    """A trace excluded from the feature table, and why."""

    trace_id: int
    stim_type: StimType
    stage: str
    error: str
    message: str


# =============================================================================
# Population-level records
# =============================================================================

@dataclass(frozen=True, eq=False)
class StandardizedFeatureTable:
    """
    Feature table with continuous columns z-scored.

    `means` and `scales` are the statistics fitted over the whole active
    population. `subset` keeps them, so filtering traces afterwards never
    re-standardizes.
    """

    frame: pd.DataFrame
    continuous_columns: Tuple[str, ...]
    held_columns: Tuple[str, ...]
    means: pd.Series
    scales: pd.Series

    @property
    def trace_ids(self) -> List[int]:
        return self.frame.index.tolist()

    def matrix(self, columns: Optional[Sequence[str]] = None) -> np.ndarray:
        """Return the continuous values as an (n_traces, n_columns) array."""
        columns = list(columns) if columns is not None else list(self.continuous_columns)
        unknown = [c for c in columns if c not in self.continuous_columns]
        if unknown:
            raise ValidationError(
                f"Columns are not standardized continuous features: {unknown}",
                entity="standardized_table",
                field=", ".join(unknown),
            )
        return self.frame[columns].to_numpy(dtype=np.float64)

    def subset(self, trace_ids: Sequence[int]) -> "StandardizedFeatureTable":
        """Restrict to the given traces, in the given order."""
        missing = [t for t in trace_ids if t not in self.frame.index]
        if missing:
            raise ValidationError(
                f"Unknown trace IDs: {missing}",
                entity="standardized_table",
                entity_id=str(missing[0]),
            )
        return StandardizedFeatureTable(
            frame=self.frame.loc[list(trace_ids)].copy(),
            continuous_columns=self.continuous_columns,
            held_columns=self.held_columns,
            means=self.means,
            scales=self.scales,
        )


@dataclass(frozen=True, eq=False)
class PrincipalComponentSpace:
    """
    Result of a PCA fit, ordered by descending variance explained.

    Attributes:
        feature_names: Input columns, in matrix order
        components: Loadings, shape (n_components, n_features)
        eigenvalues: Variance along each component
        explained_ratio: Fraction of total variance per component
        cumulative_ratio: Running sum of explained_ratio
        scores: Per-trace coordinates, indexed by trace_id (PC1, PC2, ...)
        n_selected: Minimal component count reaching the threshold
        variance_threshold: Threshold used to pick n_selected
    """

    feature_names: Tuple[str, ...]
    components: np.ndarray
    eigenvalues: np.ndarray
    explained_ratio: np.ndarray
    cumulative_ratio: np.ndarray
    scores: pd.DataFrame
    n_selected: int
    variance_threshold: float

    def __post_init__(self):
        for name in ("components", "eigenvalues", "explained_ratio", "cumulative_ratio"):
            object.__setattr__(self, name, _frozen_array(getattr(self, name)))

    @property
    def component_names(self) -> List[str]:
        return [f"PC{i + 1}" for i in range(len(self.eigenvalues))]

    @property
    def loadings(self) -> pd.DataFrame:
        """Loadings as a (feature x component) table."""
        return pd.DataFrame(
            self.components.T,
            index=list(self.feature_names),
            columns=self.component_names,
        )


@dataclass(frozen=True, eq=False)
class DistanceMatrix:
    """Symmetric pairwise distance matrix over an explicit trace set."""

    values: np.ndarray
    trace_ids: Tuple[int, ...]
    metric: str
    columns: Tuple[str, ...]

    def __post_init__(self):
        object.__setattr__(self, "values", _frozen_array(self.values))

    @property
    def n(self) -> int:
        return len(self.trace_ids)

    def condensed(self) -> np.ndarray:
        """Upper-triangle distances in scipy's condensed order."""
        return squareform(self.values, checks=False)


@dataclass(frozen=True)
class ClusterValidityReport:
    """Validity index value for every evaluated cluster count."""

    index: str
    direction: str
    values: Mapping[int, float]
    selected_k: int
    tie_break: str

    def as_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {"k": list(self.values.keys()), self.index: list(self.values.values())}
        )


@dataclass(frozen=True)
class ClusterAssignment:
    """Cluster label (1..k) for each clustered trace."""

    labels: Mapping[int, int]
    k: int

    def label_of(self, trace_id: int) -> int:
        return self.labels[trace_id]

    def as_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {"trace_id": list(self.labels.keys()), "cluster": list(self.labels.values())}
        )


@dataclass(frozen=True, eq=False)
class ClusterResult:
    """Everything the cluster engine produces for one run."""

    distances: DistanceMatrix
    linkage: np.ndarray
    linkage_method: str
    report: ClusterValidityReport
    assignment: ClusterAssignment
