"""
Internal cluster validity indices and cluster-count selection.

Indices:
    - cindex: Hubert & Levin C-index (minimise)
    - silhouette: mean silhouette width on the distance matrix (maximise)
    - davies_bouldin: Davies-Bouldin index (minimise)
    - calinski_harabasz: variance ratio criterion (maximise)
"""

import logging
from typing import Dict, Mapping, Optional

import numpy as np
from scipy.spatial.distance import squareform
from sklearn.metrics import calinski_harabasz_score, davies_bouldin_score, silhouette_score

from bcclust.utils.exceptions import ConfigurationError, ValidationError


logger = logging.getLogger(__name__)

INDEX_DIRECTIONS: Dict[str, str] = {
    "cindex": "min",
    "silhouette": "max",
    "davies_bouldin": "min",
    "calinski_harabasz": "max",
}


def c_index(
    distances: np.ndarray,
    labels: np.ndarray,
    sorted_condensed: Optional[np.ndarray] = None,
) -> float:
    """
    C-index of Hubert & Levin.

    With S_w the sum of the n_w within-cluster pairwise distances, and
    S_min / S_max the sums of the n_w smallest / largest distances over all
    pairs: C = (S_w - S_min) / (S_max - S_min). 0 is a perfect partition.

    Args:
        distances: Square symmetric distance matrix.
        labels: Cluster label per row of the matrix.
        sorted_condensed: All pairwise distances sorted ascending; computed
            from `distances` when omitted.

    Returns:
        C-index in [0, 1], or NaN when undefined (no within pairs, or all
        distances equal).
    """
    labels = np.asarray(labels)
    n = len(labels)
    iu, ju = np.triu_indices(n, k=1)
    within = labels[iu] == labels[ju]
    n_within = int(within.sum())
    if n_within == 0:
        return float("nan")

    if sorted_condensed is None:
        sorted_condensed = np.sort(squareform(distances, checks=False))

    s_within = float(distances[iu[within], ju[within]].sum())
    s_min = float(sorted_condensed[:n_within].sum())
    s_max = float(sorted_condensed[-n_within:].sum())

    if s_max == s_min:
        return float("nan")

    return (s_within - s_min) / (s_max - s_min)


def compute_index(
    name: str,
    distances: np.ndarray,
    features: np.ndarray,
    labels: np.ndarray,
    sorted_condensed: Optional[np.ndarray] = None,
) -> float:
    """
    Evaluate one validity index for one partition.

    Distance-based indices (cindex, silhouette) use the distance matrix;
    centroid-based ones (davies_bouldin, calinski_harabasz) use the features.
    """
    if name == "cindex":
        return c_index(distances, labels, sorted_condensed)
    if name == "silhouette":
        return float(silhouette_score(distances, labels, metric="precomputed"))
    if name == "davies_bouldin":
        return float(davies_bouldin_score(features, labels))
    if name == "calinski_harabasz":
        return float(calinski_harabasz_score(features, labels))
    raise ConfigurationError(f"Unknown validity index: {name}")


def select_k(
    values: Mapping[int, float],
    direction: str,
    tie_break: str = "smallest",
) -> int:
    """
    Pick the cluster count with the optimal index value.

    Values equal to the optimum (np.isclose) are ties; the policy picks the
    smallest or largest tied k.

    Args:
        values: Index value per candidate k.
        direction: "min" or "max".
        tie_break: "smallest" or "largest".

    Returns:
        Selected k.

    Raises:
        ValidationError: If every value is NaN.
        ConfigurationError: On an unknown direction or tie-break policy.
    """
    if direction not in ("min", "max"):
        raise ConfigurationError(f"direction must be 'min' or 'max', got {direction}")
    if tie_break not in ("smallest", "largest"):
        raise ConfigurationError(f"tie_break must be 'smallest' or 'largest', got {tie_break}")

    valid = {k: v for k, v in values.items() if np.isfinite(v)}
    if not valid:
        raise ValidationError("Validity index undefined for every candidate k", entity="validity")

    best = min(valid.values()) if direction == "min" else max(valid.values())
    tied = sorted(k for k, v in valid.items() if np.isclose(v, best, rtol=1e-9, atol=1e-12))

    if len(tied) > 1:
        logger.info(f"Tie between k={tied} at index value {best:.6g}, picking {tie_break}")

    return tied[0] if tie_break == "smallest" else tied[-1]
