"""
Window-based summary features for conditioned static-stimulus traces.

Per trace:
- MeanTransient / MedianTransient / SDTransient over the transient window
- MeanHyper / MedianHyper / SDHyper over the hyperpolarization window
- Rise = 1 - mean(response) over the rise window
- Slope = Rise / (peakT - riseT)
- TShift = max(time - riseT), the registered duration after rise onset
- AUC = rectangle-rule integral over [peakT, peakT + auc_duration)
- difCenters = MeanTransient - MedianTransient
"""

import logging
from typing import List, Sequence, Tuple

import numpy as np
import pandas as pd

from bcclust.features.windows import (
    rectangle_area,
    select_window,
    window_mean,
    window_median,
    window_sd,
)
from bcclust.io.records import (
    FEATURE_COLUMNS,
    METADATA_COLUMNS,
    ConditionedTrace,
    FeatureVector,
    StimType,
    TraceFailure,
)
from bcclust.pipeline.config import FeatureConfig
from bcclust.utils.exceptions import DegenerateSlopeError, ValidationError
from bcclust.utils.parallel import map_traces
from bcclust.utils.validation import validate_unique_ids


logger = logging.getLogger(__name__)


def compute_slope(rise: float, peak_t: float, rise_t: float, trace_id: int = None) -> float:
    """
    Rise divided by the rise-to-peak interval (metadata time unit).

    Raises:
        DegenerateSlopeError: If peakT == riseT or either is not finite.
    """
    interval = float(peak_t) - float(rise_t)
    if interval == 0.0 or not np.isfinite(interval):
        raise DegenerateSlopeError(
            f"Trace {trace_id}: slope undefined for peakT={peak_t}, riseT={rise_t}",
            trace_id=trace_id,
        )
    return rise / interval


def compute_auc(
    times_ms: np.ndarray,
    values: np.ndarray,
    peak_time_ms: float,
    duration_ms: float,
    frame_period_ms: float,
    trace_id: int = None,
) -> float:
    """
    Area under the response in a window anchored at the trace's own peak.

    Rectangle rule over [peak_time_ms, peak_time_ms + duration_ms): the sum
    of samples times the frame period. Linear in the response. A sum is
    only comparable across traces over the same frame count, so every frame
    of the window must be recorded and defined.

    Raises:
        IncompleteWindowError: If the window runs outside the recording or
            covers undefined samples.
    """
    window = select_window(
        times_ms,
        values,
        start_ms=peak_time_ms,
        end_ms=peak_time_ms + duration_ms,
        name="auc",
        frame_period_ms=frame_period_ms,
        trace_id=trace_id,
        require_full=True,
    )
    return rectangle_area(window, frame_period_ms)


def extract_features(trace: ConditionedTrace, config: FeatureConfig) -> FeatureVector:
    """
    Compute the summary features of one conditioned static trace.

    Args:
        trace: Conditioned trace (static stimulus).
        config: Windows, frame period and peak time unit.

    Returns:
        FeatureVector for the trace.

    Raises:
        ValidationError: If the trace is not a static-stimulus trace.
        IncompleteWindowError: If any window has too few defined samples.
        DegenerateSlopeError: If peakT == riseT.
    """
    if trace.stim_type != StimType.STATIC:
        raise ValidationError(
            f"Trace {trace.trace_id}: features are defined for static traces, got {trace.stim_type.value}",
            entity="trace",
            entity_id=str(trace.trace_id),
            field="stim_type",
        )

    def window(name, bounds):
        return select_window(
            trace.times_ms,
            trace.values,
            start_ms=bounds.start_ms,
            end_ms=bounds.end_ms,
            name=name,
            frame_period_ms=config.frame_period_ms,
            min_fraction=config.min_window_fraction,
            trace_id=trace.trace_id,
        )

    transient = window("transient", config.transient_window)
    hyper = window("hyper", config.hyper_window)
    rise_window = window("rise", config.rise_window)

    mean_transient = window_mean(transient)
    median_transient = window_median(transient)
    rise = 1.0 - window_mean(rise_window)

    scale = config.peak_time_scale
    auc = compute_auc(
        trace.times_ms,
        trace.values,
        peak_time_ms=trace.peak_t * scale,
        duration_ms=config.auc_duration_ms,
        frame_period_ms=config.frame_period_ms,
        trace_id=trace.trace_id,
    )

    return FeatureVector(
        trace_id=trace.trace_id,
        is_sac=trace.is_sac,
        MeanTransient=mean_transient,
        MedianTransient=median_transient,
        SDTransient=window_sd(transient),
        MeanHyper=window_mean(hyper),
        MedianHyper=window_median(hyper),
        SDHyper=window_sd(hyper),
        Rise=rise,
        Slope=compute_slope(rise, trace.peak_t, trace.rise_t, trace_id=trace.trace_id),
        TShift=float(np.max(trace.times_ms - trace.rise_t * scale)),
        AUC=auc,
        difCenters=mean_transient - median_transient,
        peak=trace.peak,
        peakT=trace.peak_t,
        riseT=trace.rise_t,
        extra=trace.extra,
    )


def extract_feature_table(
    traces: Sequence[ConditionedTrace],
    config: FeatureConfig,
    n_workers: int = 1,
    show_progress: bool = False,
) -> Tuple[List[FeatureVector], List[TraceFailure]]:
    """
    Extract features for every static trace.

    Returns only once every trace has either a FeatureVector or a failure.
    Failing traces are excluded, never zero-filled.

    Args:
        traces: Conditioned static traces with unique IDs.
        config: Feature configuration.
        n_workers: Thread pool size.
        show_progress: Whether to show a progress bar.

    Returns:
        Tuple of (feature vectors in input order, failures).

    Raises:
        ValidationError: On duplicate trace IDs.
    """
    validate_unique_ids([t.trace_id for t in traces])

    logger.info(f"Extracting features for {len(traces)} traces...")
    vectors, failures = map_traces(
        lambda trace: extract_features(trace, config),
        traces,
        stage="features",
        n_workers=n_workers,
        show_progress=show_progress,
    )

    if failures:
        by_error = pd.Series([f.error for f in failures]).value_counts().to_dict()
        logger.warning(f"Excluded {len(failures)} traces from feature table: {by_error}")

    return vectors, failures


def features_to_frame(vectors: Sequence[FeatureVector]) -> pd.DataFrame:
    """
    Build the feature table keyed by trace_id.

    Columns: trace_id, is_sac, the derived features, numeric metadata,
    then passthrough metadata.
    """
    columns = ["trace_id", "is_sac", *FEATURE_COLUMNS, *METADATA_COLUMNS]
    if not vectors:
        return pd.DataFrame(columns=columns)

    frame = pd.DataFrame([v.as_row() for v in vectors])
    extra_cols = [c for c in frame.columns if c not in columns]
    return frame[columns + extra_cols].reset_index(drop=True)
