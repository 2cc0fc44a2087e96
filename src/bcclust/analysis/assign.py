"""
Join cluster labels back onto trace records for reporting.
"""

import logging

import pandas as pd

from bcclust.io.records import ClusterAssignment, ClusterValidityReport
from bcclust.utils.validation import validate_columns_present, validate_unique_ids


logger = logging.getLogger(__name__)


def assign_to_samples(
    samples: pd.DataFrame,
    assignment: ClusterAssignment,
    id_column: str = "trace_id",
    label_column: str = "cluster",
) -> pd.DataFrame:
    """
    Label every sample with its trace's cluster (one-to-many join).

    Samples of traces that were not clustered are dropped. Row order of
    the input is kept.

    Args:
        samples: Long per-sample table with a trace ID column.
        assignment: Cluster labels per trace.
        id_column: Trace ID column name.
        label_column: Name of the added label column.

    Returns:
        New table with the label column appended.
    """
    validate_columns_present(samples, [id_column], entity="sample table")

    labels = samples[id_column].map(assignment.labels)
    out = samples.loc[labels.notna()].copy()
    out[label_column] = labels[labels.notna()].astype(int)

    logger.info(
        f"Labelled {len(out)} samples from {out[id_column].nunique()} traces "
        f"({len(samples) - len(out)} unclustered samples dropped)"
    )
    return out.reset_index(drop=True)


def assign_to_features(
    features: pd.DataFrame,
    assignment: ClusterAssignment,
    id_column: str = "trace_id",
    label_column: str = "cluster",
) -> pd.DataFrame:
    """
    Label each per-trace feature row with its cluster.

    Args:
        features: One row per trace.
        assignment: Cluster labels per trace.

    Returns:
        New table with one row per clustered trace, in input order.

    Raises:
        ValidationError: If trace IDs repeat.
    """
    validate_columns_present(features, [id_column], entity="feature table")
    validate_unique_ids(features[id_column].tolist())

    labels = features[id_column].map(assignment.labels)
    out = features.loc[labels.notna()].copy()
    out[label_column] = labels[labels.notna()].astype(int)
    return out.reset_index(drop=True)


def cluster_sizes(assignment: ClusterAssignment) -> pd.Series:
    """Number of traces per cluster label, ordered by label."""
    return pd.Series(list(assignment.labels.values())).value_counts().sort_index().rename("n_traces")


def assignment_frame(assignment: ClusterAssignment) -> pd.DataFrame:
    """Output table of cluster labels: trace_id, cluster."""
    return assignment.as_frame()


def validity_frame(report: ClusterValidityReport) -> pd.DataFrame:
    """Output table of the validity curve: k, value, selected."""
    frame = report.as_frame().rename(columns={report.index: "value"})
    frame.insert(0, "index", report.index)
    frame["selected"] = frame["k"] == report.selected_k
    return frame
