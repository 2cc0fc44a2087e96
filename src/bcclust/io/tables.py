"""
Conversion between validated tables and typed trace records.

The wide trace table (one row per cell) comes from an external loader. Its
layout is described by an explicit schema listing every column by name;
nothing is selected by name pattern.
"""

import logging
from typing import List, Sequence

import numpy as np
import pandas as pd
from pydantic import BaseModel, Field, model_validator

from bcclust.io.records import StimType, Trace
from bcclust.utils.validation import (
    validate_columns_present,
    validate_finite,
    validate_unique_ids,
)


logger = logging.getLogger(__name__)


class TraceTableSchema(BaseModel):
    """Column layout of a wide trace table."""

    id_column: str = "ID"
    sac_column: str = "isSAC"
    static_columns: List[str] = Field(default_factory=list)
    moving_columns: List[str] = Field(default_factory=list)
    peak_column: str = "peak"
    peak_time_column: str = "peakT"
    rise_time_column: str = "riseT"
    passthrough_columns: List[str] = Field(default_factory=list)
    frame_period_ms: float = Field(default=20.0, gt=0)

    @model_validator(mode="after")
    def check_columns(self):
        if not self.static_columns and not self.moving_columns:
            raise ValueError("At least one of static_columns or moving_columns is required")
        overlap = set(self.static_columns) & set(self.moving_columns)
        if overlap:
            raise ValueError(f"Columns listed as both static and moving: {sorted(overlap)}")
        return self

    def required_columns(self) -> List[str]:
        return [
            self.id_column,
            self.sac_column,
            self.peak_column,
            self.peak_time_column,
            self.rise_time_column,
            *self.static_columns,
            *self.moving_columns,
            *self.passthrough_columns,
        ]


def _row_trace(row: pd.Series, columns: Sequence[str], stim_type: StimType, schema: TraceTableSchema) -> Trace:
    values = row[list(columns)].to_numpy(dtype=np.float64)
    trace_id = int(row[schema.id_column])
    validate_finite(values, entity="trace", entity_id=trace_id, field=f"{stim_type.value} samples")

    return Trace(
        trace_id=trace_id,
        stim_type=stim_type,
        is_sac=bool(row[schema.sac_column]),
        times_ms=np.arange(len(values)) * schema.frame_period_ms,
        values=values,
        peak=float(row[schema.peak_column]),
        peak_t=float(row[schema.peak_time_column]),
        rise_t=float(row[schema.rise_time_column]),
        extra={c: row[c] for c in schema.passthrough_columns},
    )


def traces_from_table(frame: pd.DataFrame, schema: TraceTableSchema) -> List[Trace]:
    """
    Build Trace records from a wide table.

    Sample index i maps to time i * frame_period_ms. Each row yields one
    static trace and/or one moving trace, sharing the row's ID.

    Args:
        frame: Validated wide table, one row per cell.
        schema: Explicit column layout.

    Returns:
        Static traces in row order, followed by moving traces in row order.

    Raises:
        ValidationError: If columns are missing, IDs repeat, or samples are not finite.
    """
    validate_columns_present(frame, schema.required_columns(), entity="trace table")
    validate_unique_ids(frame[schema.id_column].tolist())

    traces = []
    for stim_type, columns in (
        (StimType.STATIC, schema.static_columns),
        (StimType.MOVING, schema.moving_columns),
    ):
        if columns:
            traces.extend(_row_trace(row, columns, stim_type, schema) for _, row in frame.iterrows())

    logger.info(
        f"Loaded {len(traces)} traces from {len(frame)} rows "
        f"({len(schema.static_columns)} static / {len(schema.moving_columns)} moving samples per row)"
    )
    return traces


def samples_to_frame(traces: Sequence[Trace]) -> pd.DataFrame:
    """
    Long per-sample table: trace_id, stim_type, time_ms, value.

    Rows follow trace order, then time order.
    """
    if not traces:
        return pd.DataFrame(columns=["trace_id", "stim_type", "time_ms", "value"])

    return pd.concat(
        [
            pd.DataFrame({
                "trace_id": t.trace_id,
                "stim_type": t.stim_type.value,
                "time_ms": t.times_ms,
                "value": t.values,
            })
            for t in traces
        ],
        ignore_index=True,
    )
