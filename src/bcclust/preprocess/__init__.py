"""
Per-trace preprocessing.

Handles:
    - Peak normalization
    - High-pass noise subtraction and trailing moving-average smoothing
"""

from bcclust.preprocess.normalize import normalize_samples
from bcclust.preprocess.filtering import condition_trace, condition_traces

__all__ = [
    "normalize_samples",
    "condition_trace",
    "condition_traces",
]
