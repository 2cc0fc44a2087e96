"""
Unit tests for pipeline records.
"""

import pytest
import numpy as np
import pandas as pd

from bcclust.io.records import (
    ClusterAssignment,
    FeatureVector,
    StandardizedFeatureTable,
    StimType,
    Trace,
)
from bcclust.utils.exceptions import ValidationError


def make_vector(**overrides):
    values = dict(
        trace_id=1, is_sac=False,
        MeanTransient=0.5, MedianTransient=0.4, SDTransient=0.1,
        MeanHyper=-0.1, MedianHyper=-0.1, SDHyper=0.05,
        Rise=0.9, Slope=3.0, TShift=5080.0, AUC=200.0, difCenters=0.1,
        peak=2.0, peakT=1.2, riseT=0.9,
    )
    values.update(overrides)
    return FeatureVector(**values)


class TestTrace:
    """Tests for Trace."""

    def test_arrays_read_only(self):
        """Test sample arrays cannot be modified in place."""
        trace = Trace(1, StimType.STATIC, False, np.arange(3) * 20.0, np.ones(3), 1.0, 1.2, 0.9)

        with pytest.raises(ValueError):
            trace.values[0] = 5.0

    def test_source_array_copied(self):
        """Test the record does not alias the caller's array."""
        values = np.ones(3)
        trace = Trace(1, StimType.STATIC, False, np.arange(3) * 20.0, values, 1.0, 1.2, 0.9)

        values[0] = 9.0
        assert trace.values[0] == 1.0

    def test_stim_type_from_string(self):
        """Test string stimulus types are coerced."""
        trace = Trace(1, "moving", False, np.arange(3) * 20.0, np.ones(3), 1.0, 1.2, 0.9)
        assert trace.stim_type is StimType.MOVING

    def test_length_mismatch(self):
        """Test times and values must have equal length."""
        with pytest.raises(ValidationError):
            Trace(1, StimType.STATIC, False, np.arange(4) * 20.0, np.ones(3), 1.0, 1.2, 0.9)

    def test_times_increasing(self):
        """Test sample times must be strictly increasing."""
        with pytest.raises(ValidationError) as exc_info:
            Trace(1, StimType.STATIC, False, np.array([0.0, 20.0, 20.0]), np.ones(3), 1.0, 1.2, 0.9)

        assert exc_info.value.field == "times_ms"


class TestFeatureVector:
    """Tests for FeatureVector."""

    def test_as_row(self):
        """Test flattening keeps identity, features and passthrough metadata."""
        row = make_vector(extra={"annotation": "ON"}).as_row()

        assert row["trace_id"] == 1
        assert row["AUC"] == 200.0
        assert row["riseT"] == 0.9
        assert row["annotation"] == "ON"


class TestStandardizedFeatureTable:
    """Tests for StandardizedFeatureTable."""

    def test_matrix_rejects_held_columns(self):
        """Test flags cannot be used as continuous features."""
        frame = pd.DataFrame({"is_sac": [True, False], "a": [1.0, -1.0]}, index=[1, 2])
        table = StandardizedFeatureTable(
            frame=frame,
            continuous_columns=("a",),
            held_columns=("is_sac",),
            means=pd.Series({"a": 0.0}),
            scales=pd.Series({"a": 1.0}),
        )

        np.testing.assert_allclose(table.matrix(), [[1.0], [-1.0]])
        with pytest.raises(ValidationError):
            table.matrix(["is_sac"])


class TestClusterAssignment:
    """Tests for ClusterAssignment."""

    def test_lookup_and_frame(self):
        """Test per-trace lookup and tabular form."""
        assignment = ClusterAssignment(labels={5: 1, 6: 2}, k=2)

        assert assignment.label_of(6) == 2
        assert assignment.as_frame().to_dict("list") == {"trace_id": [5, 6], "cluster": [1, 2]}
