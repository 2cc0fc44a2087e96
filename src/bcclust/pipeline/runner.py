"""
Pipeline orchestration for bipolar cell clustering.

`run_pipeline()`:
1. Normalizes and conditions every trace (per trace, in parallel)
2. Extracts features from static traces (per trace, in parallel)
3. Standardizes the feature table over the surviving population
4. Fits PCA on the standardized features
5. Clusters the chosen feature columns with validity-index selection of k
6. Joins cluster labels onto per-trace and per-sample records

All state lives in the returned PipelineResult; nothing is shared between runs.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from bcclust.analysis.assign import (
    assign_to_features,
    assign_to_samples,
    assignment_frame,
    cluster_sizes,
    validity_frame,
)
from bcclust.analysis.clustering import cluster_population
from bcclust.analysis.pca import feature_contributions, fit_pca
from bcclust.features.extractor import extract_feature_table, features_to_frame
from bcclust.features.standardize import standardize
from bcclust.io.records import (
    ClusterResult,
    ConditionedTrace,
    PrincipalComponentSpace,
    StandardizedFeatureTable,
    StimType,
    Trace,
    TraceFailure,
)
from bcclust.io.tables import samples_to_frame
from bcclust.pipeline.config import PipelineConfig
from bcclust.preprocess.filtering import condition_traces
from bcclust.utils.logging import log_failure_summary
from bcclust.utils.validation import validate_k_range


logger = logging.getLogger(__name__)


# =============================================================================
# Result Containers
# =============================================================================

@dataclass
class PipelineResult:
    """Container for every output of one pipeline run."""

    conditioned: List[ConditionedTrace]
    failures: List[TraceFailure]
    features: pd.DataFrame
    standardized: StandardizedFeatureTable
    pca: PrincipalComponentSpace
    contributions: pd.Series
    clusters: ClusterResult
    labelled_features: pd.DataFrame
    labelled_samples: pd.DataFrame
    assignments: pd.DataFrame
    validity: pd.DataFrame
    run_info: Dict[str, Any] = field(default_factory=dict)

    @property
    def optimal_k(self) -> int:
        return self.clusters.assignment.k

    def failures_frame(self) -> pd.DataFrame:
        """Excluded traces as a table (trace_id, stim_type, stage, error, message)."""
        return pd.DataFrame(
            [
                {
                    "trace_id": f.trace_id,
                    "stim_type": f.stim_type.value,
                    "stage": f.stage,
                    "error": f.error,
                    "message": f.message,
                }
                for f in self.failures
            ],
            columns=["trace_id", "stim_type", "stage", "error", "message"],
        )


# =============================================================================
# Main Pipeline
# =============================================================================

def run_pipeline(
    traces: Sequence[Trace],
    config: Optional[PipelineConfig] = None,
) -> PipelineResult:
    """
    Run the full conditioning, feature, PCA and clustering pipeline.

    Args:
        traces: Validated traces; static traces are clustered, moving traces
            are conditioned and labelled for reporting.
        config: Pipeline configuration. Defaults to PipelineConfig().

    Returns:
        PipelineResult with features, PCA space, clusters and labelled tables.

    Raises:
        InvalidRangeError: If the k range cannot fit the static population,
            or the traces left after feature extraction.
        DegenerateColumnError: If a standardized column has zero variance.
        SingularFeatureSetError: If the clustering columns are singular.
    """
    if config is None:
        config = PipelineConfig()

    start_time = datetime.now()
    static = [t for t in traces if t.stim_type == StimType.STATIC]
    n_moving = len(traces) - len(static)

    logger.info("=" * 60)
    logger.info(f"Clustering pipeline: {len(static)} static, {n_moving} moving traces")
    logger.info("=" * 60)

    # Caller configuration errors are rejected before any computation
    validate_k_range(config.clustering.k_min, config.clustering.k_max, len(static))

    logger.info("STEP 1: Conditioning traces...")
    conditioned, failures = condition_traces(
        traces,
        config.conditioning,
        n_workers=config.n_workers,
        show_progress=config.show_progress,
    )

    logger.info("STEP 2: Extracting features...")
    static_conditioned = [t for t in conditioned if t.stim_type == StimType.STATIC]
    vectors, feature_failures = extract_feature_table(
        static_conditioned,
        config.features,
        n_workers=config.n_workers,
        show_progress=config.show_progress,
    )
    failures = failures + feature_failures
    features = features_to_frame(vectors)

    log_failure_summary(logger, failures)

    # The clustered population is what survived feature extraction
    validate_k_range(config.clustering.k_min, config.clustering.k_max, len(vectors))

    logger.info("STEP 3: Standardizing features...")
    standardized = standardize(
        features,
        continuous_columns=config.standardize.continuous_columns,
        held_columns=config.standardize.held_columns,
    )

    logger.info("STEP 4: Fitting PCA...")
    space = fit_pca(
        standardized,
        exclude=config.pca.exclude,
        scale=config.pca.scale,
        variance_threshold=config.pca.variance_threshold,
    )
    contributions = feature_contributions(space)
    logger.info(f"Top contributing features: {contributions.head(5).round(1).to_dict()}")

    logger.info("STEP 5: Clustering...")
    clusters = cluster_population(standardized, config.clustering, show_progress=config.show_progress)

    logger.info("STEP 6: Assigning labels...")
    labelled_features = assign_to_features(features, clusters.assignment)
    labelled_samples = assign_to_samples(samples_to_frame(conditioned), clusters.assignment)

    elapsed = (datetime.now() - start_time).total_seconds()
    run_info = {
        "started": start_time.isoformat(),
        "elapsed_s": elapsed,
        "n_input_traces": len(traces),
        "n_static_traces": len(static),
        "n_clustered": len(clusters.assignment.labels),
        "n_failures": len(failures),
        "optimal_k": clusters.assignment.k,
        "cluster_sizes": cluster_sizes(clusters.assignment).to_dict(),
        "config": config.model_dump(),
    }

    logger.info(
        f"Pipeline complete in {elapsed:.1f}s: {run_info['n_clustered']} traces in "
        f"{clusters.assignment.k} clusters, {len(failures)} traces excluded"
    )

    return PipelineResult(
        conditioned=conditioned,
        failures=failures,
        features=features,
        standardized=standardized,
        pca=space,
        contributions=contributions,
        clusters=clusters,
        labelled_features=labelled_features,
        labelled_samples=labelled_samples,
        assignments=assignment_frame(clusters.assignment),
        validity=validity_frame(clusters.report),
        run_info=run_info,
    )
