"""
Exception hierarchy for the bcclust pipeline.

All custom exceptions inherit from BCClustError.

Per-trace errors (TraceError subclasses) exclude a single trace from the
feature table. Population-level errors abort the standardization or
clustering stage.
"""

from typing import Optional, Sequence


class BCClustError(Exception):
    """
    Base exception for all bcclust errors.

    All custom exceptions MUST inherit from this class.
    """
    pass


class ConfigurationError(BCClustError):
    """
    Invalid configuration or parameters.

    Raised when:
    - Configuration file not found or malformed
    - Unknown distance metric, linkage method or validity index
    - Window bounds or thresholds out of range
    """
    pass


class ValidationError(BCClustError):
    """
    Input records failed validation.

    Raised when:
    - Required columns missing from an input table
    - Duplicate trace IDs
    - Sample times not strictly increasing
    - Non-finite values where finite values are required
    """

    def __init__(
        self,
        message: str,
        entity: Optional[str] = None,
        entity_id: Optional[str] = None,
        field: Optional[str] = None,
    ):
        super().__init__(message)
        self.entity = entity
        self.entity_id = entity_id
        self.field = field


# =============================================================================
# Per-trace errors
# =============================================================================

class TraceError(BCClustError):
    """
    A single trace cannot be processed.

    The trace is excluded from the feature table and reported.
    """

    def __init__(self, message: str, trace_id: Optional[int] = None):
        super().__init__(message)
        self.trace_id = trace_id


class PeakZeroError(TraceError):
    """Peak amplitude is zero or not finite, normalization is undefined."""
    pass


class IncompleteWindowError(TraceError):
    """
    A required time window holds too few defined samples.

    Raised when:
    - Trace shorter than the smoothing window or filter padding
    - A statistic window lies (partly) outside the recorded time range
    - The AUC window anchored at peak time runs past the trace end
    """

    def __init__(
        self,
        message: str,
        trace_id: Optional[int] = None,
        window: Optional[str] = None,
    ):
        super().__init__(message, trace_id=trace_id)
        self.window = window


class DegenerateSlopeError(TraceError):
    """Peak time equals rise time, slope is undefined."""
    pass


# =============================================================================
# Population-level errors
# =============================================================================

class DegenerateColumnError(BCClustError):
    """
    A continuous feature column has zero variance.

    Z-scoring it would divide by zero, so standardization aborts.
    """

    def __init__(self, message: str, columns: Sequence[str] = ()):
        super().__init__(message)
        self.columns = list(columns)


class SingularFeatureSetError(BCClustError):
    """
    The chosen feature columns make covariance/distance computation singular.

    Raised when:
    - A column is constant over the population
    - Two columns are (near-)perfectly correlated
    - A column is an exact linear combination of other columns
    """

    def __init__(
        self,
        message: str,
        columns: Sequence[str] = (),
        reason: Optional[str] = None,
    ):
        super().__init__(message)
        self.columns = list(columns)
        self.reason = reason


class InvalidRangeError(BCClustError):
    """
    Candidate cluster range is invalid.

    Requires 2 <= k_min <= k_max <= n_traces - 1.
    """

    def __init__(
        self,
        message: str,
        k_min: Optional[int] = None,
        k_max: Optional[int] = None,
        n_traces: Optional[int] = None,
    ):
        super().__init__(message)
        self.k_min = k_min
        self.k_max = k_max
        self.n_traces = n_traces
