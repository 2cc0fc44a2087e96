"""
Input validation utilities for the bcclust pipeline.
"""

from typing import Iterable, List, Sequence

import numpy as np
import pandas as pd

from bcclust.utils.exceptions import InvalidRangeError, ValidationError


def validate_columns_present(
    frame: pd.DataFrame,
    columns: Iterable[str],
    entity: str = "table",
) -> List[str]:
    """
    Check that every requested column exists.

    Missing fields are rejected, never inferred.

    Args:
        frame: Table to check
        columns: Column names the caller requires
        entity: Description of the table (for error messages)

    Returns:
        The requested columns as a list, in caller order

    Raises:
        ValidationError: If any column is missing
    """
    columns = list(columns)
    missing = [c for c in columns if c not in frame.columns]
    if missing:
        raise ValidationError(
            f"{entity} is missing required columns: {missing}",
            entity=entity,
            field=", ".join(missing),
        )
    return columns


def validate_unique_ids(ids: Sequence, entity: str = "trace") -> None:
    """
    Reject duplicate IDs.

    Raises:
        ValidationError: If any ID occurs more than once
    """
    series = pd.Series(list(ids))
    duplicated = series[series.duplicated()].unique().tolist()
    if duplicated:
        raise ValidationError(
            f"Duplicate {entity} IDs: {duplicated}",
            entity=entity,
            entity_id=str(duplicated[0]),
        )


def validate_finite(values: np.ndarray, entity: str, entity_id=None, field: str = None) -> None:
    """
    Reject NaN or infinite values.

    Raises:
        ValidationError: If any value is not finite
    """
    values = np.asarray(values, dtype=np.float64)
    if not np.all(np.isfinite(values)):
        n_bad = int(np.sum(~np.isfinite(values)))
        raise ValidationError(
            f"{entity} {entity_id}: {n_bad} non-finite values in {field or 'data'}",
            entity=entity,
            entity_id=None if entity_id is None else str(entity_id),
            field=field,
        )


def validate_k_range(k_min: int, k_max: int, n_traces: int) -> range:
    """
    Validate the candidate cluster-count range.

    Requires 2 <= k_min <= k_max <= n_traces - 1.

    Args:
        k_min: Smallest candidate cluster count (inclusive)
        k_max: Largest candidate cluster count (inclusive)
        n_traces: Number of traces being clustered

    Returns:
        range(k_min, k_max + 1)

    Raises:
        InvalidRangeError: If the range is not valid for this population
    """
    if not (2 <= k_min <= k_max <= n_traces - 1):
        raise InvalidRangeError(
            f"Invalid cluster range [{k_min}, {k_max}] for {n_traces} traces; "
            f"require 2 <= k_min <= k_max <= {n_traces - 1}",
            k_min=k_min,
            k_max=k_max,
            n_traces=n_traces,
        )
    return range(k_min, k_max + 1)
