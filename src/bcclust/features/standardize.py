"""
Population z-scoring of continuous feature columns.
"""

import logging
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.preprocessing import StandardScaler

from bcclust.io.records import StandardizedFeatureTable
from bcclust.utils.exceptions import DegenerateColumnError
from bcclust.utils.validation import (
    validate_columns_present,
    validate_finite,
    validate_unique_ids,
)


logger = logging.getLogger(__name__)

# Columns with a population SD at or below this are treated as constant
ZERO_VARIANCE_TOL = 1e-12


def find_constant_columns(frame: pd.DataFrame, columns: Sequence[str]) -> list:
    """Return the columns whose population SD is (numerically) zero."""
    stds = frame[list(columns)].astype(np.float64).std(axis=0, ddof=0)
    return stds[stds <= ZERO_VARIANCE_TOL].index.tolist()


def standardize(
    frame: pd.DataFrame,
    continuous_columns: Sequence[str],
    held_columns: Optional[Sequence[str]] = None,
    id_column: str = "trace_id",
) -> StandardizedFeatureTable:
    """
    Z-score continuous feature columns over the active population.

    The held-aside columns (flags, categories) are reattached unchanged.
    Statistics are fitted once here and kept on the result.

    Args:
        frame: Feature table, one row per trace.
        continuous_columns: Columns to scale (mean 0, unit population SD).
        held_columns: Columns carried through unscaled.
        id_column: Unique trace ID column, becomes the index.

    Returns:
        StandardizedFeatureTable indexed by trace ID.

    Raises:
        ValidationError: If columns are missing, IDs repeat, or values are not finite.
        DegenerateColumnError: If any continuous column has zero variance.
    """
    continuous_columns = list(continuous_columns)
    held_columns = list(held_columns or [])

    validate_columns_present(frame, [id_column] + continuous_columns + held_columns, entity="feature table")
    validate_unique_ids(frame[id_column].tolist())

    values = frame[continuous_columns].to_numpy(dtype=np.float64)
    validate_finite(values, entity="feature table", field="continuous columns")

    constant = find_constant_columns(frame, continuous_columns)
    if constant:
        raise DegenerateColumnError(
            f"Zero-variance columns cannot be standardized: {constant}",
            columns=constant,
        )

    logger.info(f"Standardizing {len(continuous_columns)} columns over {len(frame)} traces")

    scaler = StandardScaler()
    scaled = scaler.fit_transform(values)

    means = scaled.mean(axis=0)
    if np.any(np.abs(means) > 1e-10):
        logger.warning(f"Feature means not zero after standardization: max={np.abs(means).max():.2e}")

    index = pd.Index(frame[id_column].tolist(), name=id_column)
    out = pd.DataFrame(scaled, columns=continuous_columns, index=index)
    held = frame[held_columns].copy()
    held.index = index
    out = pd.concat([held, out], axis=1)

    return StandardizedFeatureTable(
        frame=out,
        continuous_columns=tuple(continuous_columns),
        held_columns=tuple(held_columns),
        means=pd.Series(scaler.mean_, index=continuous_columns),
        scales=pd.Series(scaler.scale_, index=continuous_columns),
    )
