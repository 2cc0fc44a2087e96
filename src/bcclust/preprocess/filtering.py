"""
Signal conditioning for normalized traces.

Two-stage, per-trace filter:
    1. A Butterworth high-pass isolates a high-frequency noise estimate,
       which is subtracted from the normalized signal.
    2. A trailing moving average suppresses residual jitter.

Each trace is conditioned independently; there is no cross-trace state.
"""

import logging
from typing import List, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.signal import butter, sosfilt, sosfilt_zi, sosfiltfilt

from bcclust.io.records import ConditionedTrace, Trace, TraceFailure
from bcclust.pipeline.config import ConditioningConfig
from bcclust.preprocess.normalize import normalize_samples
from bcclust.utils.exceptions import IncompleteWindowError
from bcclust.utils.parallel import map_traces


logger = logging.getLogger(__name__)


def design_highpass(cutoff: float, order: int = 1) -> np.ndarray:
    """
    Design a high-pass Butterworth filter in SOS format.

    Args:
        cutoff: Cutoff normalized to Nyquist, 0 < cutoff < 1.
        order: Filter order (default: 1).

    Returns:
        Second-order sections array.

    Raises:
        ValueError: If cutoff is outside (0, 1) or order < 1.
    """
    if not 0 < cutoff < 1:
        raise ValueError(f"cutoff must be in (0, 1) (normalized to Nyquist), got {cutoff}")

    if order < 1:
        raise ValueError(f"order must be >= 1, got {order}")

    return butter(order, cutoff, btype="high", analog=False, output="sos")


def filtfilt_padlen(sos: np.ndarray) -> int:
    """Default edge padding used by sosfiltfilt for this filter."""
    n_trivial = min((sos[:, 2] == 0).sum(), (sos[:, 5] == 0).sum())
    return int(3 * (2 * len(sos) + 1 - n_trivial))


def highpass_noise(
    signal: np.ndarray,
    cutoff: float = 0.1,
    order: int = 1,
    zero_phase: bool = True,
) -> np.ndarray:
    """
    Estimate high-frequency noise with a high-pass filter.

    Args:
        signal: 1D normalized signal.
        cutoff: Cutoff normalized to Nyquist (default: 0.1).
        order: Butterworth order (default: 1).
        zero_phase: Use forward-backward filtering (sosfiltfilt) when True,
            a single causal pass (sosfilt) otherwise. The causal pass starts
            in the steady state of the first sample.

    Returns:
        High-pass filtered signal, same length as input.

    Raises:
        ValueError: If the signal is too short for zero-phase padding.
    """
    sos = design_highpass(cutoff, order)
    signal = np.asarray(signal, dtype=np.float64)

    if zero_phase:
        padlen = filtfilt_padlen(sos)
        if len(signal) <= padlen:
            raise ValueError(
                f"Signal has {len(signal)} samples, zero-phase filtering needs more than {padlen}"
            )
        return sosfiltfilt(sos, signal)

    if len(signal) == 0:
        return signal.copy()

    filtered, _ = sosfilt(sos, signal, zi=sosfilt_zi(sos) * signal[0])
    return filtered


def trailing_moving_average(signal: np.ndarray, window: int = 10) -> np.ndarray:
    """
    Right-aligned moving average.

    The value at index i is the mean of samples i-window+1..i. The first
    window-1 outputs have no full window and are NaN, not zero.

    Args:
        signal: 1D signal.
        window: Window length in samples (default: 10).

    Returns:
        Smoothed signal, same length as input.
    """
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")

    smoothed = pd.Series(np.asarray(signal, dtype=np.float64)).rolling(
        window=window, min_periods=window
    ).mean()

    return smoothed.to_numpy()


def condition_signal(normalized: np.ndarray, config: ConditioningConfig) -> np.ndarray:
    """
    Subtract the high-pass noise estimate, then smooth.

    Args:
        normalized: Peak-normalized samples.
        config: Filter and smoothing parameters.

    Returns:
        Conditioned samples with leading NaNs from the smoothing window.
    """
    noise = highpass_noise(
        normalized,
        cutoff=config.highpass_cutoff,
        order=config.filter_order,
        zero_phase=config.zero_phase,
    )
    return trailing_moving_average(normalized - noise, window=config.smoothing_window)


def condition_trace(trace: Trace, config: ConditioningConfig) -> ConditionedTrace:
    """
    Normalize and condition one trace.

    Args:
        trace: Raw trace.
        config: Filter and smoothing parameters.

    Returns:
        ConditionedTrace with the same identity and metadata.

    Raises:
        PeakZeroError: If the trace's peak is zero or not finite.
        IncompleteWindowError: If the trace is shorter than the smoothing
            window or the filter's edge padding.
    """
    normalized = normalize_samples(trace)

    min_samples = config.smoothing_window
    if config.zero_phase:
        min_samples = max(
            min_samples,
            filtfilt_padlen(design_highpass(config.highpass_cutoff, config.filter_order)) + 1,
        )

    if trace.n_samples < min_samples:
        raise IncompleteWindowError(
            f"Trace {trace.trace_id}: {trace.n_samples} samples, conditioning needs {min_samples}",
            trace_id=trace.trace_id,
            window="conditioning",
        )

    conditioned = condition_signal(normalized, config)

    logger.debug(
        f"Conditioned trace {trace.trace_id} ({trace.stim_type.value}): "
        f"{trace.n_samples} samples, {int(np.isnan(conditioned).sum())} undefined"
    )

    return ConditionedTrace(
        trace_id=trace.trace_id,
        stim_type=trace.stim_type,
        is_sac=trace.is_sac,
        times_ms=trace.times_ms,
        normalized=normalized,
        values=conditioned,
        peak=trace.peak,
        peak_t=trace.peak_t,
        rise_t=trace.rise_t,
        extra=trace.extra,
    )


def condition_traces(
    traces: Sequence[Trace],
    config: ConditioningConfig,
    n_workers: int = 1,
    show_progress: bool = False,
) -> Tuple[List[ConditionedTrace], List[TraceFailure]]:
    """
    Condition many traces independently.

    Traces failing with PeakZeroError or IncompleteWindowError are excluded
    and reported.

    Returns:
        Tuple of (conditioned traces in input order, failures).
    """
    logger.info(
        f"Conditioning {len(traces)} traces: high-pass cutoff={config.highpass_cutoff}, "
        f"order={config.filter_order}, window={config.smoothing_window}"
    )
    return map_traces(
        lambda trace: condition_trace(trace, config),
        traces,
        stage="conditioning",
        n_workers=n_workers,
        show_progress=show_progress,
    )
