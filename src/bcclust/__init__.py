"""
Bipolar Cell Response Clustering

A Python package that sorts two-photon imaging traces of retinal bipolar
cells into putative functional clusters: per-trace signal conditioning,
window-based summary features, standardization, PCA-guided feature
selection, and hierarchical clustering with validity-index selection of
the cluster count.

Architecture:
    - io/         : Typed records and table conversion
    - preprocess/ : Peak normalization, noise subtraction, smoothing
    - features/   : Window features and standardization
    - analysis/   : PCA, clustering, validity indices, label assignment
    - pipeline/   : Configuration and orchestration
    - utils/      : Shared utilities (exceptions, logging, validation, parallel)
"""

__version__ = "0.1.0"
__author__ = "Jiang Lab"

# Lazy imports to avoid circular dependencies
# Users should import from subpackages directly:
#   from bcclust.pipeline.runner import run_pipeline
#   from bcclust.features import extract_features
