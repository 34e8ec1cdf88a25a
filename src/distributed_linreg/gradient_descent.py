"""Fixed-iteration batch gradient descent over partitioned rows."""

from __future__ import annotations

import os
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ALL_COMPLETED, Executor, ThreadPoolExecutor, wait
from typing import Any

import numpy as np

from distributed_linreg.assembly import validate_partitions
from distributed_linreg.exceptions import DimensionMismatchError
from distributed_linreg.models import FitConfig
from distributed_linreg.summarizer import PartitionSummary, reduce_summaries, summarize_partition
from distributed_linreg.tracing import FitTraceCollector


def initial_weights(size: int, seed: int | None = None) -> np.ndarray:
    """Draw starting weights uniformly from [0, 1)."""
    rng = np.random.default_rng(seed)
    return rng.uniform(0.0, 1.0, size)


def split_weights(weights: np.ndarray) -> tuple[np.ndarray, float]:
    """Split ``[w_0..w_{k-1}, b]`` into feature weights and bias."""
    return weights[:-1].copy(), float(weights[-1])


def global_summary(
    executor: Executor,
    partitions: Sequence[np.ndarray],
    snapshot: np.ndarray,
    *,
    trace: FitTraceCollector | None = None,
    iteration: int | None = None,
) -> PartitionSummary:
    """Summarize every partition against one snapshot, then merge.

    All tasks are joined before anything is merged, so a failure in any
    partition surfaces here and no partial result leaves this function.
    """
    futures = [executor.submit(_timed_summary, rows, snapshot) for rows in partitions]
    wait(futures, return_when=ALL_COMPLETED)
    results = [future.result() for future in futures]
    if trace is not None:
        for index, (summary, duration_ms) in enumerate(results):
            trace.log(
                event_type="partition",
                component="summarizer",
                action="summarize",
                iteration=iteration,
                partition=index,
                rows=summary.count,
                duration_ms=duration_ms,
            )
    return reduce_summaries([summary for summary, _ in results])


def _timed_summary(rows: np.ndarray, snapshot: np.ndarray) -> tuple[PartitionSummary, float]:
    started_at = time.perf_counter()
    summary = summarize_partition(rows, snapshot)
    return summary, (time.perf_counter() - started_at) * 1000


def fit_weights(
    partitions: Sequence[Sequence[Sequence[float]]],
    config: FitConfig,
    *,
    start: np.ndarray | None = None,
    executor: Executor | None = None,
    log: Callable[[str], None] | None = None,
    trace: FitTraceCollector | None = None,
) -> np.ndarray:
    """Run ``config.max_iter`` gradient steps and return the final weight vector.

    Each partition holds rows laid out as ``[features..., 1.0, label]``. The
    weight vector has one entry per feature plus the bias weight. Unless
    ``config.early_stop`` is set, ``tol`` is never consulted and exactly
    ``max_iter`` updates are applied.
    """
    logger = log or (lambda _message: None)
    arrays = validate_partitions(partitions)
    size = arrays[0].shape[1] - 1
    total_rows = sum(rows.shape[0] for rows in arrays)

    if start is None:
        weights = initial_weights(size, config.seed)
    else:
        weights = np.array(start, dtype=np.float64).reshape(-1)
        if weights.shape[0] != size:
            raise DimensionMismatchError(
                f"Starting weights have length {weights.shape[0]}, expected {size}."
            )

    logger(
        f"Fitting {size - 1} features on {total_rows} rows across {len(arrays)} partitions "
        f"(max_iter={config.max_iter}, step_size={config.step_size})."
    )
    _trace(
        trace,
        action="fit_start",
        status="start",
        rows=total_rows,
        details={"partitions": len(arrays), "num_features": size - 1},
    )

    owns_executor = executor is None
    pool = executor or ThreadPoolExecutor(
        max_workers=config.max_workers or min(len(arrays), os.cpu_count() or 1)
    )
    report_every = max(1, config.max_iter // 10)
    started_fit = time.perf_counter()
    completed = 0
    try:
        for iteration in range(1, config.max_iter + 1):
            started_at = time.perf_counter()
            snapshot = weights.copy()
            snapshot.setflags(write=False)
            summary = global_summary(pool, arrays, snapshot, trace=trace, iteration=iteration)
            weights = weights - config.step_size * summary.mean
            completed = iteration

            gradient_norm = float(np.linalg.norm(summary.mean))
            _trace(
                trace,
                event_type="iteration",
                action="update",
                iteration=iteration,
                rows=summary.count,
                gradient_norm=gradient_norm,
                duration_ms=(time.perf_counter() - started_at) * 1000,
            )
            if iteration % report_every == 0:
                logger(
                    f"Iteration {iteration}/{config.max_iter}: "
                    f"gradient norm {gradient_norm:.6g}."
                )
            if config.early_stop and gradient_norm < config.tol:
                logger(f"Gradient norm below tol={config.tol} at iteration {iteration}.")
                break
    except Exception as exc:
        _trace(
            trace,
            action="fit_complete",
            status="error",
            iteration=completed,
            details={"error_type": type(exc).__name__, "error": str(exc)},
        )
        raise
    finally:
        if owns_executor:
            pool.shutdown(wait=True)

    elapsed = time.perf_counter() - started_fit
    logger(f"Completed {completed} iterations in {elapsed:.2f}s.")
    _trace(
        trace,
        action="fit_complete",
        iteration=completed,
        rows=total_rows,
        duration_ms=elapsed * 1000,
    )
    return weights


def _trace(trace: FitTraceCollector | None, event_type: str = "fit", **kwargs: Any) -> None:
    if trace is None:
        return
    trace.log(event_type=event_type, component="gradient_descent", **kwargs)
