"""
Window selection and window statistics on conditioned traces.
"""

import math
from dataclasses import dataclass

import numpy as np

from bcclust.utils.exceptions import IncompleteWindowError


@dataclass(frozen=True)
class WindowSamples:
    """Defined samples falling inside one half-open time window."""

    name: str
    start_ms: float
    end_ms: float
    times_ms: np.ndarray
    values: np.ndarray

    @property
    def n(self) -> int:
        return len(self.values)


def select_window(
    times_ms: np.ndarray,
    values: np.ndarray,
    start_ms: float,
    end_ms: float,
    name: str,
    frame_period_ms: float,
    min_fraction: float = 0.5,
    trace_id: int = None,
    require_full: bool = False,
) -> WindowSamples:
    """
    Pick the defined samples with start_ms <= t < end_ms.

    Undefined (NaN) samples, e.g. the leading smoothing window, are skipped.
    The window is complete when it holds at least two defined samples and
    at least min_fraction of the frames its length implies. With
    require_full, every frame of the window must lie inside the recording
    and be defined.

    Args:
        times_ms: Sample times in ms.
        values: Conditioned samples.
        start_ms: Window start (inclusive).
        end_ms: Window end (exclusive).
        name: Window name for error reporting.
        frame_period_ms: Frame period in ms.
        min_fraction: Minimum fraction of expected frames that must be defined.
        trace_id: Trace being processed (for error reporting).
        require_full: Reject the window unless every frame is present.

    Returns:
        WindowSamples with the selected times and values.

    Raises:
        IncompleteWindowError: If the window has too few defined samples.
    """
    times_ms = np.asarray(times_ms, dtype=np.float64)
    values = np.asarray(values, dtype=np.float64)

    mask = (times_ms >= start_ms) & (times_ms < end_ms) & np.isfinite(values)
    n_defined = int(mask.sum())

    expected = math.ceil((end_ms - start_ms) / frame_period_ms)
    required = max(2, math.ceil(min_fraction * expected))

    if require_full:
        # Recorded span is [first sample, last sample + one frame)
        in_window = (times_ms >= start_ms) & (times_ms < end_ms)
        covered = (
            len(times_ms) > 0
            and start_ms >= times_ms[0]
            and end_ms <= times_ms[-1] + frame_period_ms
        )
        n_undefined = int(in_window.sum()) - n_defined
        if not covered or n_undefined > 0:
            raise IncompleteWindowError(
                f"Trace {trace_id}: window '{name}' [{start_ms:g}, {end_ms:g}) ms is not fully "
                f"recorded ({'inside' if covered else 'outside'} the trace, {n_undefined} undefined samples)",
                trace_id=trace_id,
                window=name,
            )

    if n_defined < required:
        raise IncompleteWindowError(
            f"Trace {trace_id}: window '{name}' [{start_ms:g}, {end_ms:g}) ms has "
            f"{n_defined} defined samples, needs {required}",
            trace_id=trace_id,
            window=name,
        )

    return WindowSamples(
        name=name,
        start_ms=start_ms,
        end_ms=end_ms,
        times_ms=times_ms[mask],
        values=values[mask],
    )


def window_mean(window: WindowSamples) -> float:
    return float(np.mean(window.values))


def window_median(window: WindowSamples) -> float:
    return float(np.median(window.values))


def window_sd(window: WindowSamples) -> float:
    # Sample standard deviation
    return float(np.std(window.values, ddof=1))


def rectangle_area(window: WindowSamples, frame_period_ms: float) -> float:
    """Rectangle-rule integral: sum of samples times the frame period."""
    return float(np.sum(window.values) * frame_period_ms)
