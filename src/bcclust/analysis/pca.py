"""
Principal component analysis as a feature-selection aid.

PCA here does not produce clustering inputs. It reports how much variance
each component explains, how many components reach a variance threshold,
and which original features contribute most, so that clustering can run
on an interpretable subset of the standardized features. It also guards
the clustering stage against singular feature sets.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.decomposition import PCA
from sklearn.preprocessing import StandardScaler

from bcclust.io.records import PrincipalComponentSpace, StandardizedFeatureTable
from bcclust.utils.exceptions import (
    DegenerateColumnError,
    SingularFeatureSetError,
    ValidationError,
)


logger = logging.getLogger(__name__)

# Relative tolerance for rank decisions
RANK_RTOL = 1e-10


def fit_pca(
    table: StandardizedFeatureTable,
    columns: Optional[Sequence[str]] = None,
    exclude: Sequence[str] = (),
    scale: bool = False,
    variance_threshold: float = 0.8,
) -> PrincipalComponentSpace:
    """
    Fit PCA on standardized features.

    Data are always centered; scaling to unit variance is optional. The
    components are the eigenvectors of the covariance matrix, ordered by
    descending variance explained.

    Args:
        table: Standardized feature table.
        columns: Features to use, in order. Defaults to all continuous columns.
        exclude: Features to drop from `columns` (redundant or derived ones).
        scale: Whether to scale features to unit variance after centering.
        variance_threshold: Cumulative variance fraction that picks n_selected.

    Returns:
        PrincipalComponentSpace with every component (full rank).

    Raises:
        ValidationError: If fewer than two traces or no columns remain.
        DegenerateColumnError: If scale=True and a column is constant.
    """
    if not 0 < variance_threshold <= 1:
        raise ValueError(f"variance_threshold must be in (0, 1], got {variance_threshold}")

    columns = [c for c in (columns or table.continuous_columns) if c not in set(exclude)]
    if not columns:
        raise ValidationError("No feature columns left for PCA", entity="pca")

    X = table.matrix(columns)
    n_traces, n_features = X.shape
    if n_traces < 2:
        raise ValidationError(f"PCA needs at least 2 traces, got {n_traces}", entity="pca")

    if scale:
        stds = X.std(axis=0)
        constant = [c for c, s in zip(columns, stds) if s <= 0]
        if constant:
            raise DegenerateColumnError(f"Cannot scale constant columns: {constant}", columns=constant)
        X = StandardScaler(with_mean=False, with_std=True).fit_transform(X)

    logger.info(f"Fitting PCA on {n_traces} traces x {n_features} features (scale={scale})")

    pca = PCA(svd_solver="full")
    scores = pca.fit_transform(X)

    explained = pca.explained_variance_ratio_
    cumulative = np.cumsum(explained)
    reached = np.nonzero(cumulative >= variance_threshold - 1e-12)[0]
    n_selected = int(reached[0]) + 1 if len(reached) else len(explained)

    names = [f"PC{i + 1}" for i in range(len(explained))]
    logger.info(
        f"PCA: {n_selected} components explain {cumulative[n_selected - 1]:.3f} "
        f"of variance (threshold {variance_threshold})"
    )

    return PrincipalComponentSpace(
        feature_names=tuple(columns),
        components=pca.components_,
        eigenvalues=pca.explained_variance_,
        explained_ratio=explained,
        cumulative_ratio=cumulative,
        scores=pd.DataFrame(scores, index=table.frame.index.copy(), columns=names),
        n_selected=n_selected,
        variance_threshold=variance_threshold,
    )


def feature_contributions(
    space: PrincipalComponentSpace,
    n_components: Optional[int] = None,
) -> pd.Series:
    """
    Percentage contribution of each feature to the leading components.

    A feature's contribution to one component is its squared loading (x100).
    Over several components the contributions are weighted by eigenvalue.

    Args:
        space: Fitted component space.
        n_components: Leading components to pool. Defaults to space.n_selected.

    Returns:
        Series indexed by feature name, sorted descending, summing to 100.
    """
    if n_components is None:
        n_components = space.n_selected
    n_components = max(1, min(n_components, len(space.eigenvalues)))

    loadings = space.components[:n_components]
    eig = space.eigenvalues[:n_components]
    contrib = (loadings ** 2 * 100.0) * eig[:, None]
    total = eig.sum()
    pooled = contrib.sum(axis=0) / total if total > 0 else contrib.mean(axis=0)

    return pd.Series(pooled, index=list(space.feature_names), name="contribution").sort_values(
        ascending=False
    )


def _dependent_columns(X: np.ndarray, columns: Sequence[str]) -> List[str]:
    """Columns that do not raise the rank of the columns before them."""
    centered = X - X.mean(axis=0)
    tol = RANK_RTOL * max(1.0, float(np.abs(centered).max(initial=0.0))) * max(centered.shape)
    basis: List[int] = []
    dependent = []
    for j, name in enumerate(columns):
        candidate = basis + [j]
        if np.linalg.matrix_rank(centered[:, candidate], tol=tol) > len(basis):
            basis.append(j)
        else:
            dependent.append(name)
    return dependent


def check_feature_set(
    frame: pd.DataFrame,
    columns: Sequence[str],
    collinearity_threshold: float = 0.999,
) -> None:
    """
    Reject feature sets that make covariance or distance computation singular.

    Checks, in order: constant columns, (near-)collinear column pairs,
    and columns that are exact linear combinations of other columns.

    Args:
        frame: Table holding the feature columns.
        columns: Candidate clustering features.
        collinearity_threshold: |Pearson r| at or above which two columns
            count as collinear.

    Raises:
        SingularFeatureSetError: Naming the offending columns.
    """
    columns = list(columns)
    X = frame[columns].to_numpy(dtype=np.float64)

    stds = X.std(axis=0)
    constant = [c for c, s in zip(columns, stds) if s <= 1e-12]
    if constant:
        raise SingularFeatureSetError(
            f"Constant columns in feature set: {constant}",
            columns=constant,
            reason="constant",
        )

    if len(columns) > 1:
        corr = np.corrcoef(X, rowvar=False)
        pairs = []
        for i in range(len(columns)):
            for j in range(i + 1, len(columns)):
                if abs(corr[i, j]) >= collinearity_threshold:
                    pairs.append((columns[i], columns[j]))
        if pairs:
            flagged = sorted({c for pair in pairs for c in pair}, key=columns.index)
            raise SingularFeatureSetError(
                f"Near-collinear feature pairs (|r| >= {collinearity_threshold}): {pairs}; "
                f"substitute a non-collinear alternative",
                columns=flagged,
                reason="collinear",
            )

    dependent = _dependent_columns(X, columns)
    if dependent:
        raise SingularFeatureSetError(
            f"Columns are linear combinations of other features: {dependent}",
            columns=dependent,
            reason="linear_combination",
        )

    logger.debug(f"Feature set {columns} is non-singular")
