"""
Population-level analysis.

Provides:
    - PCA feature selection and singular feature set detection
    - Hierarchical clustering with validity-index selection of k
    - Joining cluster labels back onto trace records
"""

from bcclust.analysis.pca import check_feature_set, feature_contributions, fit_pca
from bcclust.analysis.clustering import (
    build_linkage,
    cluster_population,
    compute_distance_matrix,
    cut_tree_labels,
)
from bcclust.analysis.validity import c_index, select_k
from bcclust.analysis.assign import (
    assign_to_features,
    assign_to_samples,
    assignment_frame,
    cluster_sizes,
    validity_frame,
)

__all__ = [
    "fit_pca",
    "feature_contributions",
    "check_feature_set",
    "compute_distance_matrix",
    "build_linkage",
    "cut_tree_labels",
    "cluster_population",
    "c_index",
    "select_k",
    "assign_to_samples",
    "assign_to_features",
    "cluster_sizes",
    "assignment_frame",
    "validity_frame",
]
