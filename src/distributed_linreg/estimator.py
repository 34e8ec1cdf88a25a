"""Estimator facade: assemble, partition, descend, wrap."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import Executor

import numpy as np

from distributed_linreg.assembly import assemble_rows, partition_rows
from distributed_linreg.dataset import Table
from distributed_linreg.gradient_descent import fit_weights, split_weights
from distributed_linreg.linear_model import LinearRegressionModel
from distributed_linreg.models import FitConfig
from distributed_linreg.tracing import FitTraceCollector


class LinearRegression:
    """Fits a :class:`LinearRegressionModel` with partitioned batch gradient descent."""

    def __init__(
        self,
        config: FitConfig | None = None,
        *,
        executor: Executor | None = None,
        log: Callable[[str], None] | None = None,
        trace: FitTraceCollector | None = None,
    ):
        self.config = config or FitConfig()
        self._executor = executor
        self._log = log
        self._trace = trace

    def fit(
        self, features: np.ndarray | Sequence[Sequence[float]], labels: Sequence[float]
    ) -> LinearRegressionModel:
        """Fit on a feature matrix and label vector."""
        rows = assemble_rows(features, labels)
        return self.fit_rows(partition_rows(rows, self.config.num_partitions))

    def fit_table(self, table: Table) -> LinearRegressionModel:
        """Fit on the configured feature and label columns of a table.

        The returned model's params name the feature columns actually used,
        so prediction can select the same columns later.
        """
        label_column = self.config.label_column
        names = table.resolve_features(self.config.feature_columns, exclude=(label_column,))
        features, labels = table.select(names, label_column)
        model = self.fit(features, labels)
        return model.with_params(self.config.model_copy(update={"feature_columns": names}))

    def fit_rows(
        self,
        partitions: Sequence[Sequence[Sequence[float]]],
        start: np.ndarray | None = None,
    ) -> LinearRegressionModel:
        """Fit on rows already assembled as ``[features..., 1.0, label]``."""
        weights = fit_weights(
            partitions,
            self.config,
            start=start,
            executor=self._executor,
            log=self._log,
            trace=self._trace,
        )
        coefficients, bias = split_weights(weights)
        return LinearRegressionModel(coefficients, bias, params=self.config)
