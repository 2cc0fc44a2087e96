"""
Unit tests for trace table conversion.
"""

import pytest
import numpy as np
import pandas as pd
from pydantic import ValidationError as PydanticValidationError

from bcclust.io.records import StimType
from bcclust.io.tables import TraceTableSchema, samples_to_frame, traces_from_table
from bcclust.utils.exceptions import ValidationError


@pytest.fixture
def schema():
    return TraceTableSchema(
        static_columns=["s0", "s1", "s2", "s3"],
        moving_columns=["m0", "m1"],
        passthrough_columns=["note"],
    )


@pytest.fixture
def wide_table():
    return pd.DataFrame({
        "ID": [101, 102],
        "isSAC": [0, 1],
        "peak": [2.0, 4.0],
        "peakT": [1.2, 1.1],
        "riseT": [0.9, 0.8],
        "s0": [0.0, 1.0],
        "s1": [1.0, 2.0],
        "s2": [2.0, 4.0],
        "s3": [1.5, 3.0],
        "m0": [0.5, 0.6],
        "m1": [0.7, 0.8],
        "note": ["ON", "OFF"],
        "unused": [9, 9],
    })


class TestTraceTableSchema:
    """Tests for TraceTableSchema."""

    def test_requires_sample_columns(self):
        """Test a schema without any sample columns is rejected."""
        with pytest.raises(PydanticValidationError):
            TraceTableSchema()

    def test_overlap_rejected(self):
        """Test a column cannot be both static and moving."""
        with pytest.raises(PydanticValidationError):
            TraceTableSchema(static_columns=["a", "b"], moving_columns=["b"])


class TestTracesFromTable:
    """Tests for traces_from_table."""

    def test_static_then_moving(self, schema, wide_table):
        """Test static traces come first, then moving, in row order."""
        traces = traces_from_table(wide_table, schema)

        assert [(t.trace_id, t.stim_type) for t in traces] == [
            (101, StimType.STATIC),
            (102, StimType.STATIC),
            (101, StimType.MOVING),
            (102, StimType.MOVING),
        ]

    def test_sample_times(self, schema, wide_table):
        """Test sample i maps to time i * frame period."""
        static = traces_from_table(wide_table, schema)[1]

        np.testing.assert_allclose(static.times_ms, [0.0, 20.0, 40.0, 60.0])
        np.testing.assert_allclose(static.values, [1.0, 2.0, 4.0, 3.0])

    def test_metadata(self, schema, wide_table):
        """Test flags, peak metadata and passthrough columns are carried."""
        trace = traces_from_table(wide_table, schema)[1]

        assert trace.is_sac is True
        assert trace.peak == 4.0
        assert trace.peak_t == 1.1
        assert trace.rise_t == 0.8
        assert dict(trace.extra) == {"note": "OFF"}

    def test_missing_column(self, schema, wide_table):
        """Test missing columns are rejected, never inferred."""
        with pytest.raises(ValidationError, match="s3"):
            traces_from_table(wide_table.drop(columns=["s3"]), schema)

    def test_duplicate_ids(self, schema, wide_table):
        """Test duplicate cell IDs are rejected."""
        wide_table["ID"] = [101, 101]

        with pytest.raises(ValidationError):
            traces_from_table(wide_table, schema)

    def test_non_finite_samples(self, schema, wide_table):
        """Test NaN samples are rejected."""
        wide_table.loc[0, "s2"] = np.nan

        with pytest.raises(ValidationError) as exc_info:
            traces_from_table(wide_table, schema)

        assert exc_info.value.entity_id == "101"


class TestSamplesToFrame:
    """Tests for samples_to_frame."""

    def test_long_layout(self, schema, wide_table):
        """Test one row per sample, in trace then time order."""
        traces = traces_from_table(wide_table, schema)
        frame = samples_to_frame(traces)

        assert frame.columns.tolist() == ["trace_id", "stim_type", "time_ms", "value"]
        assert len(frame) == 2 * 4 + 2 * 2
        assert frame["trace_id"].tolist()[:4] == [101] * 4
        assert frame["stim_type"].iloc[-1] == "moving"

    def test_empty(self):
        """Test no traces give an empty table."""
        assert samples_to_frame([]).empty
