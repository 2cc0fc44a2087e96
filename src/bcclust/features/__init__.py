"""
Feature extraction for conditioned traces.

Provides:
    - Window selection and window statistics
    - Per-trace summary features (transient, hyperpolarization, rise, AUC, ...)
    - Population standardization
"""

from bcclust.features.extractor import (
    extract_features,
    extract_feature_table,
    features_to_frame,
)
from bcclust.features.standardize import standardize

__all__ = [
    "extract_features",
    "extract_feature_table",
    "features_to_frame",
    "standardize",
]
