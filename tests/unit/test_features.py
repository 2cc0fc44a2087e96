"""
Unit tests for window selection and feature extraction.
"""

import pytest
import numpy as np
import pandas as pd

from bcclust.features.extractor import (
    compute_auc,
    compute_slope,
    extract_feature_table,
    extract_features,
    features_to_frame,
)
from bcclust.features.windows import select_window, window_sd
from bcclust.io.records import FEATURE_COLUMNS, METADATA_COLUMNS, StimType
from bcclust.pipeline.config import ConditioningConfig, FeatureConfig
from bcclust.preprocess.filtering import condition_trace
from bcclust.utils.exceptions import (
    DegenerateSlopeError,
    IncompleteWindowError,
    ValidationError,
)
from tests.fixtures import generate_response, make_trace


def conditioned(trace):
    return condition_trace(trace, ConditioningConfig())


class TestSelectWindow:
    """Tests for select_window."""

    def test_half_open_bounds(self):
        """Test start is included and end is excluded."""
        times = np.arange(10) * 20.0
        window = select_window(times, np.arange(10.0), 40.0, 100.0, "w", frame_period_ms=20.0)

        np.testing.assert_array_equal(window.times_ms, [40.0, 60.0, 80.0])

    def test_skips_undefined_samples(self):
        """Test NaN samples are not counted as defined."""
        values = np.arange(10.0)
        values[:4] = np.nan
        window = select_window(np.arange(10) * 20.0, values, 0.0, 200.0, "w", frame_period_ms=20.0)

        assert window.n == 6

    def test_incomplete_window(self):
        """Test a window past the end of the recording is rejected."""
        times = np.arange(10) * 20.0

        with pytest.raises(IncompleteWindowError) as exc_info:
            select_window(times, np.ones(10), 150.0, 400.0, "late", frame_period_ms=20.0, trace_id=3)

        assert exc_info.value.window == "late"
        assert exc_info.value.trace_id == 3

    def test_sample_sd(self):
        """Test window SD uses the sample (n-1) convention."""
        window = select_window(np.arange(4) * 20.0, np.array([1.0, 2.0, 3.0, 4.0]), 0, 80, "w", 20.0)
        assert window_sd(window) == pytest.approx(np.std([1, 2, 3, 4], ddof=1))


class TestComputeSlope:
    """Tests for compute_slope."""

    def test_slope(self):
        """Test slope is rise over the rise-to-peak interval."""
        assert compute_slope(0.9, peak_t=1.2, rise_t=0.9) == pytest.approx(3.0)

    def test_equal_times_raise(self):
        """Test peakT == riseT is rejected."""
        with pytest.raises(DegenerateSlopeError):
            compute_slope(0.9, peak_t=1.0, rise_t=1.0, trace_id=5)


class TestComputeAUC:
    """Tests for compute_auc."""

    def test_rectangle_rule(self):
        """Test AUC is the sum of window samples times the frame period."""
        times = np.arange(100) * 20.0
        values = np.ones(100)

        auc = compute_auc(times, values, peak_time_ms=1000.0, duration_ms=500.0, frame_period_ms=20.0)

        assert auc == pytest.approx(25 * 20.0)

    def test_linear_in_response(self):
        """Test scaling the response scales the AUC by the same factor."""
        times = np.arange(300) * 20.0
        values = generate_response(noise_sd=0.05)

        single = compute_auc(times, values, 1200.0, 500.0, 20.0)
        double = compute_auc(times, 2 * values, 1200.0, 500.0, 20.0)

        assert double == pytest.approx(2 * single)

    def test_window_past_end(self):
        """Test an AUC window running past the trace end is rejected."""
        times = np.arange(300) * 20.0

        with pytest.raises(IncompleteWindowError) as exc_info:
            compute_auc(times, np.ones(300), 5900.0, 500.0, 20.0)

        assert exc_info.value.window == "auc"

    @pytest.mark.parametrize("peak_time_ms", [5700.0, 5600.0])
    def test_window_partly_inside_trace(self, peak_time_ms):
        """Test a window only partly inside the recording is rejected, not summed."""
        times = np.arange(300) * 20.0

        with pytest.raises(IncompleteWindowError) as exc_info:
            compute_auc(times, np.ones(300), peak_time_ms, 500.0, 20.0)

        assert exc_info.value.window == "auc"

    def test_window_ending_at_last_frame(self):
        """Test a window ending exactly at the end of the recording is complete."""
        times = np.arange(300) * 20.0

        auc = compute_auc(times, np.ones(300), 5500.0, 500.0, 20.0)

        assert auc == pytest.approx(25 * 20.0)

    def test_window_over_undefined_samples(self):
        """Test undefined (smoothing) samples inside the window are rejected."""
        times = np.arange(300) * 20.0
        values = np.ones(300)
        values[:9] = np.nan

        with pytest.raises(IncompleteWindowError):
            compute_auc(times, values, 0.0, 500.0, 20.0)

    def test_window_before_first_sample(self):
        """Test a window starting before the recording is rejected."""
        times = 1000.0 + np.arange(300) * 20.0

        with pytest.raises(IncompleteWindowError):
            compute_auc(times, np.ones(300), 900.0, 500.0, 20.0)

    def test_late_peak_trace_excluded(self):
        """Test a trace whose peak is too late for a full AUC window fails extraction."""
        trace = make_trace(9, values=generate_response(noise_sd=0.02), peak_t=5.7, rise_t=0.9)

        with pytest.raises(IncompleteWindowError) as exc_info:
            extract_features(conditioned(trace), FeatureConfig())

        assert exc_info.value.window == "auc"


class TestExtractFeatures:
    """Tests for extract_features."""

    def test_all_features_finite(self):
        """Test a complete trace yields finite values for every feature."""
        vector = extract_features(conditioned(make_trace(1, noise_sd=0.02)), FeatureConfig())

        for name in FEATURE_COLUMNS:
            assert np.isfinite(getattr(vector, name)), name

    def test_dif_centers(self):
        """Test difCenters is mean minus median of the transient window."""
        vector = extract_features(conditioned(make_trace(2, noise_sd=0.02)), FeatureConfig())

        assert vector.difCenters == pytest.approx(vector.MeanTransient - vector.MedianTransient)

    def test_tshift(self):
        """Test TShift is the last sample time minus the rise time."""
        vector = extract_features(conditioned(make_trace(3, rise_t=0.9)), FeatureConfig())

        assert vector.TShift == pytest.approx(299 * 20.0 - 900.0)

    def test_peak_time_in_ms(self):
        """Test metadata times in ms give the same features as seconds."""
        trace_s = make_trace(4, peak_t=1.2, rise_t=0.9)
        trace_ms = make_trace(4, values=trace_s.values, peak_t=1200.0, rise_t=900.0)

        in_s = extract_features(conditioned(trace_s), FeatureConfig(peak_time_unit="s"))
        in_ms = extract_features(conditioned(trace_ms), FeatureConfig(peak_time_unit="ms"))

        assert in_ms.AUC == pytest.approx(in_s.AUC)
        assert in_ms.TShift == pytest.approx(in_s.TShift)

    def test_auc_scales_with_raw_response(self):
        """Test doubling raw samples at a fixed peak doubles the AUC."""
        values = generate_response(noise_sd=0.02)
        base = make_trace(5, values=values, peak=2.0)
        scaled = make_trace(5, values=2 * values, peak=2.0)

        single = extract_features(conditioned(base), FeatureConfig())
        double = extract_features(conditioned(scaled), FeatureConfig())

        assert double.AUC == pytest.approx(2 * single.AUC)

    def test_short_trace_incomplete(self):
        """Test a trace ending before the transient window is rejected."""
        trace = make_trace(6, values=generate_response(n_samples=100))

        with pytest.raises(IncompleteWindowError) as exc_info:
            extract_features(conditioned(trace), FeatureConfig())

        assert exc_info.value.window == "transient"

    def test_degenerate_slope(self):
        """Test peakT == riseT is rejected."""
        trace = make_trace(7, values=generate_response(), peak_t=0.9, rise_t=0.9)

        with pytest.raises(DegenerateSlopeError):
            extract_features(conditioned(trace), FeatureConfig())

    def test_moving_trace_rejected(self):
        """Test features are only defined for static traces."""
        trace = make_trace(8, stim_type=StimType.MOVING)

        with pytest.raises(ValidationError):
            extract_features(conditioned(trace), FeatureConfig())


class TestExtractFeatureTable:
    """Tests for extract_feature_table and features_to_frame."""

    def test_failures_excluded_not_zero_filled(self):
        """Test failing traces are absent from the table and reported."""
        traces = [
            conditioned(make_trace(1)),
            conditioned(make_trace(2, values=generate_response(n_samples=100))),
            conditioned(make_trace(3, peak_t=1.0, rise_t=0.8)),
        ]

        vectors, failures = extract_feature_table(traces, FeatureConfig(), n_workers=2)
        frame = features_to_frame(vectors)

        assert frame["trace_id"].tolist() == [1, 3]
        assert len(failures) == 1
        assert failures[0].trace_id == 2
        assert failures[0].stage == "features"
        assert failures[0].error == "IncompleteWindowError"

    def test_duplicate_ids_rejected(self):
        """Test duplicate trace IDs abort the batch."""
        traces = [conditioned(make_trace(1)), conditioned(make_trace(1))]

        with pytest.raises(ValidationError):
            extract_feature_table(traces, FeatureConfig())

    def test_frame_columns(self):
        """Test column order and passthrough metadata."""
        vectors, _ = extract_feature_table([conditioned(make_trace(1))], FeatureConfig())
        frame = features_to_frame(vectors)

        expected = ["trace_id", "is_sac", *FEATURE_COLUMNS, *METADATA_COLUMNS, "annotation"]
        assert frame.columns.tolist() == expected
        assert frame.loc[0, "annotation"] == "cell 1"

    def test_empty_frame(self):
        """Test an empty batch gives an empty table with the feature columns."""
        frame = features_to_frame([])
        assert isinstance(frame, pd.DataFrame)
        assert len(frame) == 0
        assert "AUC" in frame.columns
