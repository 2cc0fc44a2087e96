"""
Records and table conversion for the bcclust pipeline.

Handles:
    - Typed records passed between stages
    - Wide trace table -> Trace records (explicit column schema)
    - Long per-sample tables for reporting
"""

from bcclust.io.records import (
    FEATURE_COLUMNS,
    METADATA_COLUMNS,
    ClusterAssignment,
    ClusterResult,
    ClusterValidityReport,
    ConditionedTrace,
    DistanceMatrix,
    FeatureVector,
    PrincipalComponentSpace,
    StandardizedFeatureTable,
    StimType,
    Trace,
    TraceFailure,
)
from bcclust.io.tables import TraceTableSchema, samples_to_frame, traces_from_table

__all__ = [
    "FEATURE_COLUMNS",
    "METADATA_COLUMNS",
    "ClusterAssignment",
    "ClusterResult",
    "ClusterValidityReport",
    "ConditionedTrace",
    "DistanceMatrix",
    "FeatureVector",
    "PrincipalComponentSpace",
    "StandardizedFeatureTable",
    "StimType",
    "Trace",
    "TraceFailure",
    "TraceTableSchema",
    "samples_to_frame",
    "traces_from_table",
]
