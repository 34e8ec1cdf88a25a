from __future__ import annotations

import csv
from pathlib import Path

import numpy as np
import pytest


def build_line_data(
    n_rows: int = 200, seed: int = 7, noise: float = 0.0
) -> tuple[np.ndarray, np.ndarray]:
    """Features and labels for ``y = 1.5*x1 - 0.5*x2 + 3.0``."""
    rng = np.random.default_rng(seed)
    features = rng.normal(size=(n_rows, 2))
    labels = 1.5 * features[:, 0] - 0.5 * features[:, 1] + 3.0
    if noise:
        labels = labels + rng.normal(scale=noise, size=n_rows)
    return features, labels


def build_rows(n_rows: int, width: int, seed: int = 0) -> np.ndarray:
    """Random assembled rows with the bias constant in place."""
    rng = np.random.default_rng(seed)
    rows = rng.normal(size=(n_rows, width))
    rows[:, width - 2] = 1.0
    return rows


def build_csv(path: Path, features: np.ndarray, labels: np.ndarray) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as file_obj:
        writer = csv.writer(file_obj)
        writer.writerow(["x1", "x2", "label"])
        for row, label in zip(features, labels, strict=True):
            writer.writerow([*row, label])
    return path


@pytest.fixture
def line_data() -> tuple[np.ndarray, np.ndarray]:
    return build_line_data()


@pytest.fixture
def line_csv_path(tmp_path: Path) -> Path:
    features, labels = build_line_data()
    return build_csv(tmp_path / "data.csv", features, labels)
