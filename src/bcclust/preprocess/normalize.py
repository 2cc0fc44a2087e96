"""
Peak normalization of raw traces.
"""

import numpy as np

from bcclust.io.records import Trace
from bcclust.utils.exceptions import PeakZeroError


def normalize_samples(trace: Trace) -> np.ndarray:
    """
    Divide every raw sample by the trace's peak amplitude.

    Args:
        trace: Raw trace carrying its peak amplitude

    Returns:
        Normalized samples (the sample at the peak becomes 1.0)

    Raises:
        PeakZeroError: If the peak is zero or not finite
    """
    peak = float(trace.peak)

    if not np.isfinite(peak) or peak == 0.0:
        raise PeakZeroError(
            f"Trace {trace.trace_id}: cannot normalize by peak={peak}",
            trace_id=trace.trace_id,
        )

    return np.asarray(trace.values, dtype=np.float64) / peak
