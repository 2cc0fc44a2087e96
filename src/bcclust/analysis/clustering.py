"""
Hierarchical clustering with validity-index selection of the cluster count.

This module implements:
- Pairwise distance matrices under a configurable metric
- Agglomerative linkage trees (Ward by default)
- Cutting the tree into exactly k clusters
- Evaluating a validity index over a k range and selecting k*
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Sequence

import numpy as np
from scipy.cluster.hierarchy import cut_tree, is_monotonic, linkage
from scipy.spatial.distance import pdist, squareform
from tqdm import tqdm

from bcclust.analysis.pca import check_feature_set
from bcclust.analysis.validity import INDEX_DIRECTIONS, compute_index, select_k
from bcclust.io.records import (
    ClusterAssignment,
    ClusterResult,
    ClusterValidityReport,
    DistanceMatrix,
    StandardizedFeatureTable,
)
from bcclust.pipeline.config import ClusterConfig
from bcclust.utils.exceptions import ConfigurationError
from bcclust.utils.validation import validate_k_range


logger = logging.getLogger(__name__)

METRIC_ALIASES = {"maximum": "chebyshev", "manhattan": "cityblock"}
LINKAGE_ALIASES = {"ward.D2": "ward", "mcquitty": "weighted"}

SCIPY_METRICS = ("euclidean", "chebyshev", "canberra", "minkowski", "cityblock")
SCIPY_LINKAGES = ("ward", "single", "complete", "average", "weighted", "centroid", "median")

# Linkages whose merge rule assumes Euclidean geometry
EUCLIDEAN_LINKAGES = ("ward", "centroid", "median")


# =============================================================================
# Distances and Linkage
# =============================================================================

def compute_distance_matrix(
    table: StandardizedFeatureTable,
    columns: Sequence[str],
    metric: str = "euclidean",
    p: float = 2.0,
) -> DistanceMatrix:
    """
    Pairwise distances between traces over the chosen feature columns.

    Only the listed continuous columns enter the computation; flags and IDs
    stay on the table for reporting.

    Args:
        table: Standardized feature table.
        columns: Feature columns, in order.
        metric: euclidean, chebyshev/maximum, canberra, minkowski, cityblock/manhattan.
        p: Minkowski exponent (minkowski only).

    Returns:
        Read-only DistanceMatrix over table.trace_ids.

    Raises:
        ConfigurationError: On an unknown metric.
    """
    scipy_metric = METRIC_ALIASES.get(metric, metric)
    if scipy_metric not in SCIPY_METRICS:
        raise ConfigurationError(f"Unknown distance metric: {metric}")

    X = table.matrix(columns)
    logger.info(f"Computing {scipy_metric} distances: {X.shape[0]} traces x {X.shape[1]} features")

    if scipy_metric == "minkowski":
        condensed = pdist(X, metric="minkowski", p=p)
    else:
        condensed = pdist(X, metric=scipy_metric)

    return DistanceMatrix(
        values=squareform(condensed),
        trace_ids=tuple(table.trace_ids),
        metric=scipy_metric,
        columns=tuple(columns),
    )


def build_linkage(distances: DistanceMatrix, method: str = "ward") -> np.ndarray:
    """
    Build the full agglomerative merge history.

    Args:
        distances: Pairwise distances.
        method: Linkage rule; ward (alias ward.D2) merges the pair giving the
            smallest increase in within-cluster variance.

    Returns:
        scipy linkage matrix of shape (n - 1, 4).

    Raises:
        ConfigurationError: On an unknown method, or when the merge heights
            are not monotonic (centroid and median linkages can invert),
            since such a tree cannot be cut into k clusters.
    """
    scipy_method = LINKAGE_ALIASES.get(method, method)
    if scipy_method not in SCIPY_LINKAGES:
        raise ConfigurationError(f"Unknown linkage method: {method}")

    if scipy_method in EUCLIDEAN_LINKAGES and distances.metric != "euclidean":
        logger.warning(
            f"{scipy_method} linkage assumes Euclidean distances, got {distances.metric}"
        )

    Z = linkage(distances.condensed(), method=scipy_method)

    if not is_monotonic(Z):
        raise ConfigurationError(
            f"{scipy_method} linkage produced a tree with inversions (merge heights decrease); "
            f"use ward, single, complete, average or weighted"
        )

    return Z


def cut_tree_labels(linkage_matrix: np.ndarray, k: int) -> np.ndarray:
    """
    Cut a linkage tree into exactly k clusters.

    Returns:
        Labels 1..k, numbered by order of first appearance.

    Raises:
        ConfigurationError: If the cut does not give exactly k clusters.
    """
    raw = cut_tree(linkage_matrix, n_clusters=k).ravel()
    n_found = len(np.unique(raw))
    if n_found != k:
        raise ConfigurationError(
            f"Cutting the linkage tree gave {n_found} clusters instead of {k}"
        )

    _, first_index = np.unique(raw, return_index=True)
    order = raw[np.sort(first_index)]
    relabel = {old: new for new, old in enumerate(order, start=1)}
    return np.array([relabel[label] for label in raw], dtype=int)


# =============================================================================
# Validity-Index Search
# =============================================================================

def evaluate_k_range(
    distances: DistanceMatrix,
    features: np.ndarray,
    linkage_matrix: np.ndarray,
    k_values: Sequence[int],
    index: str = "cindex",
    n_workers: int = 1,
    show_progress: bool = False,
) -> Dict[int, float]:
    """
    Evaluate a validity index for every candidate k.

    Every k sees the same, fully materialized distance matrix.

    Returns:
        Index value per k, in ascending k order.
    """
    if index not in INDEX_DIRECTIONS:
        raise ConfigurationError(f"Unknown validity index: {index}")

    D = distances.values
    sorted_condensed = np.sort(distances.condensed())
    sorted_condensed.setflags(write=False)

    def evaluate(k: int) -> float:
        labels = cut_tree_labels(linkage_matrix, k)
        return compute_index(index, D, features, labels, sorted_condensed)

    k_values = list(k_values)
    if n_workers > 1:
        with ThreadPoolExecutor(max_workers=n_workers) as executor:
            scores = list(tqdm(
                executor.map(evaluate, k_values),
                total=len(k_values),
                desc=f"{index} over k",
                disable=not show_progress,
            ))
    else:
        scores = [
            evaluate(k)
            for k in tqdm(k_values, desc=f"{index} over k", disable=not show_progress)
        ]

    values = dict(zip(k_values, scores))
    logger.debug(f"{index} values: {values}")
    return values


def cluster_population(
    table: StandardizedFeatureTable,
    config: ClusterConfig,
    show_progress: bool = False,
) -> ClusterResult:
    """
    Run the cluster engine on a standardized feature table.

    Steps:
    1. Validate the k range (before any computation)
    2. Reject singular feature sets (before the distance matrix)
    3. Distance matrix, then linkage tree
    4. Validity index for each k in [k_min, k_max]
    5. Select k* and label traces 1..k*

    Args:
        table: Standardized features for exactly the traces to cluster.
        config: Metric, linkage, index, k range and tie-break policy.
        show_progress: Whether to show a progress bar over k.

    Returns:
        ClusterResult with distances, linkage, validity report and assignment.

    Raises:
        InvalidRangeError: If not 2 <= k_min <= k_max <= n - 1.
        SingularFeatureSetError: If the feature columns are singular.
    """
    columns = list(config.feature_columns)
    n_traces = len(table.trace_ids)

    k_values = validate_k_range(config.k_min, config.k_max, n_traces)

    features = table.matrix(columns)
    check_feature_set(table.frame, columns, config.collinearity_threshold)

    distances = compute_distance_matrix(table, columns, metric=config.metric, p=config.minkowski_p)
    Z = build_linkage(distances, method=config.linkage)

    logger.info(
        f"Evaluating {config.index} for k = {config.k_min} to {config.k_max} "
        f"({distances.metric} distance, {config.linkage} linkage)"
    )
    values = evaluate_k_range(
        distances,
        features,
        Z,
        k_values,
        index=config.index,
        n_workers=config.n_workers,
        show_progress=show_progress,
    )

    direction = INDEX_DIRECTIONS[config.index]
    optimal_k = select_k(values, direction, config.tie_break)
    labels = cut_tree_labels(Z, optimal_k)

    logger.info(f"Optimal k = {optimal_k} ({config.index} = {values[optimal_k]:.4f})")
    if optimal_k == config.k_max:
        logger.warning(f"Optimal k = k_max ({config.k_max}). Consider increasing k_max.")

    return ClusterResult(
        distances=distances,
        linkage=Z,
        linkage_method=LINKAGE_ALIASES.get(config.linkage, config.linkage),
        report=ClusterValidityReport(
            index=config.index,
            direction=direction,
            values=values,
            selected_k=optimal_k,
            tie_break=config.tie_break,
        ),
        assignment=ClusterAssignment(
            labels={int(t): int(l) for t, l in zip(distances.trace_ids, labels)},
            k=optimal_k,
        ),
    )
