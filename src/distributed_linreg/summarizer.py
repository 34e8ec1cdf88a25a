"""Partition-level gradient summaries and their associative merge."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from functools import reduce

import numpy as np


@dataclass(frozen=True)
class PartitionSummary:
    """Count and running mean of per-row gradients for a set of rows.

    ``mean`` has the shape of the weight vector. A summary with ``count == 0``
    carries a zero-filled mean and is neutral under :func:`merge_summaries`.
    """

    count: int
    mean: np.ndarray

    @classmethod
    def empty(cls, size: int) -> PartitionSummary:
        return cls(count=0, mean=np.zeros(size, dtype=np.float64))


def summarize_partition(rows: Iterable[Sequence[float]], weights: np.ndarray) -> PartitionSummary:
    """Fold the gradients of one partition's rows into an online mean.

    Each row is ``[features..., 1.0, label]``. The first ``len(weights)``
    entries form ``X`` and the entry after them is the label ``y``; the row
    contributes ``X * (dot(X, w) - y)``. The mean is updated incrementally,
    ``mean += (g - mean) / (count + 1)``, so large partitions never build up
    a running sum.
    """
    size = weights.shape[0]
    count = 0
    mean = np.zeros(size, dtype=np.float64)
    for row in rows:
        vector = np.asarray(row, dtype=np.float64)
        x = vector[:size]
        y = vector[size]
        residual = float(x @ weights) - y
        gradient = x * residual
        count += 1
        mean += (gradient - mean) / count
    return PartitionSummary(count=count, mean=mean)


def merge_summaries(left: PartitionSummary, right: PartitionSummary) -> PartitionSummary:
    """Combine two summaries into the summary of their concatenated rows."""
    if right.count == 0:
        return left
    if left.count == 0:
        return right
    if left.mean.shape != right.mean.shape:
        raise ValueError(
            f"Cannot merge summaries of shape {left.mean.shape} and {right.mean.shape}."
        )
    total = left.count + right.count
    mean = left.mean + (right.mean - left.mean) * (right.count / total)
    return PartitionSummary(count=total, mean=mean)


def reduce_summaries(summaries: Sequence[PartitionSummary]) -> PartitionSummary:
    """Merge any number of summaries pairwise, level by level."""
    if not summaries:
        raise ValueError("At least one summary is required.")
    level = list(summaries)
    while len(level) > 1:
        paired = [
            reduce(merge_summaries, level[idx : idx + 2]) for idx in range(0, len(level), 2)
        ]
        level = paired
    return level[0]
