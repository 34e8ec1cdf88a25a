"""Fitted linear regression model."""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from distributed_linreg.exceptions import DimensionMismatchError
from distributed_linreg.models import FitConfig


def random_uid(prefix: str) -> str:
    """Return ``<prefix>_<12 hex chars>``."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True, eq=False)
class LinearRegressionModel:
    """Immutable weights and bias with a pointwise prediction function.

    Safe to share across threads: ``weights`` is a read-only copy.
    """

    weights: np.ndarray
    bias: float
    params: FitConfig = field(default_factory=FitConfig)
    uid: str = field(default_factory=lambda: random_uid("LinearRegressionModel"))

    def __post_init__(self) -> None:
        weights = np.array(self.weights, dtype=np.float64).reshape(-1)
        weights.setflags(write=False)
        object.__setattr__(self, "weights", weights)
        object.__setattr__(self, "bias", float(self.bias))

    @property
    def num_features(self) -> int:
        return int(self.weights.shape[0])

    def predict(self, features: Sequence[float] | np.ndarray) -> float:
        """Return ``dot(weights, features) + bias`` for one feature vector."""
        vector = np.asarray(features, dtype=np.float64)
        if vector.ndim != 1 or vector.shape[0] != self.num_features:
            raise DimensionMismatchError(
                f"Expected a feature vector of length {self.num_features}, "
                f"got shape {vector.shape}."
            )
        return float(self.weights @ vector) + self.bias

    def transform(self, features: Sequence[Sequence[float]] | np.ndarray) -> np.ndarray:
        """Predict every row of a 2-D feature matrix."""
        matrix = np.asarray(features, dtype=np.float64)
        if matrix.ndim == 1 and self.num_features == 1:
            matrix = matrix.reshape(-1, 1)
        if matrix.ndim != 2 or matrix.shape[1] != self.num_features:
            raise DimensionMismatchError(
                f"Expected a feature matrix with {self.num_features} columns, "
                f"got shape {matrix.shape}."
            )
        return matrix @ self.weights + self.bias

    def with_params(self, params: FitConfig) -> LinearRegressionModel:
        """Return a copy carrying different params but the same coefficients."""
        return LinearRegressionModel(self.weights, self.bias, params=params, uid=self.uid)

    def save(self, path: Path, overwrite: bool = False) -> Path:
        """Save to a model directory; see :func:`persistence.save_model`."""
        from distributed_linreg.persistence import save_model

        return save_model(self, path, overwrite=overwrite)

    @staticmethod
    def load(path: Path) -> LinearRegressionModel:
        """Load a model directory written by :meth:`save`."""
        from distributed_linreg.persistence import load_model

        return load_model(path)
