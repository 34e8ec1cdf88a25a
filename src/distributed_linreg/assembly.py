"""Feature assembly and row partitioning."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from distributed_linreg.exceptions import DimensionMismatchError, EmptyDatasetError

BIAS_CONSTANT = 1.0


def assemble_rows(
    features: np.ndarray | Sequence[Sequence[float]], labels: Sequence[float]
) -> np.ndarray:
    """Build row vectors laid out as ``[features..., 1.0, label]``.

    ``features`` may be 1-D (a single feature column) or 2-D.
    """
    matrix = np.asarray(features, dtype=np.float64)
    if matrix.ndim == 1:
        matrix = matrix.reshape(-1, 1)
    if matrix.ndim != 2:
        raise DimensionMismatchError(f"Features must be 1-D or 2-D, got {matrix.ndim}-D.")
    targets = np.asarray(labels, dtype=np.float64).reshape(-1)
    if matrix.shape[0] != targets.shape[0]:
        raise DimensionMismatchError(
            f"Got {matrix.shape[0]} feature rows but {targets.shape[0]} labels."
        )
    bias = np.full((matrix.shape[0], 1), BIAS_CONSTANT)
    return np.hstack([matrix, bias, targets.reshape(-1, 1)])


def stack_rows(rows: Sequence[Sequence[float]], expected_width: int | None = None) -> np.ndarray:
    """Turn pre-assembled rows into a 2-D array, rejecting ragged input."""
    vectors = [np.asarray(row, dtype=np.float64).reshape(-1) for row in rows]
    if not vectors:
        return np.empty((0, expected_width or 0), dtype=np.float64)
    width = expected_width if expected_width is not None else vectors[0].shape[0]
    for idx, vector in enumerate(vectors):
        if vector.shape[0] != width:
            raise DimensionMismatchError(
                f"Row {idx} has length {vector.shape[0]}, expected {width}."
            )
    return np.vstack(vectors)


def validate_partitions(partitions: Sequence[Sequence[Sequence[float]]]) -> list[np.ndarray]:
    """Check that the partitioned dataset is non-empty and rectangular.

    Returns the partitions as 2-D arrays. The width is taken from the first
    row of the first non-empty partition.
    """
    width: int | None = None
    for partition in partitions:
        if len(partition) > 0:
            width = len(partition[0])
            break
    if width is None:
        raise EmptyDatasetError("Cannot fit on a dataset with no rows.")
    if width < 2:
        raise DimensionMismatchError(
            f"Rows must hold at least a bias constant and a label, got width {width}."
        )
    return [stack_rows(partition, expected_width=width) for partition in partitions]


def partition_rows(rows: np.ndarray, num_partitions: int) -> list[np.ndarray]:
    """Split rows into ``num_partitions`` contiguous, near-equal partitions."""
    if num_partitions < 1:
        raise ValueError("num_partitions must be at least 1.")
    return list(np.array_split(rows, num_partitions))
