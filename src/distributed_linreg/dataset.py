"""CSV-backed tabular source for the CLI and estimator."""

from __future__ import annotations

import csv
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from distributed_linreg.exceptions import DatasetError


@dataclass(frozen=True, eq=False)
class Table:
    """Named numeric columns."""

    columns: list[str]
    values: np.ndarray

    def column(self, name: str) -> np.ndarray:
        try:
            return self.values[:, self.columns.index(name)]
        except ValueError as exc:
            raise DatasetError(
                f"Unknown column '{name}'. Available columns: {', '.join(self.columns)}"
            ) from exc

    def select(
        self, feature_columns: Sequence[str], label_column: str
    ) -> tuple[np.ndarray, np.ndarray]:
        """Return ``(features, labels)``; empty ``feature_columns`` means all but the label."""
        labels = self.column(label_column)
        return self.features(feature_columns, exclude=(label_column,)), labels

    def features(self, feature_columns: Sequence[str], exclude: Sequence[str] = ()) -> np.ndarray:
        """Return the named columns, or every column not in ``exclude``."""
        names = self.resolve_features(feature_columns, exclude)
        return np.column_stack([self.column(name) for name in names])

    def resolve_features(
        self, feature_columns: Sequence[str], exclude: Sequence[str] = ()
    ) -> list[str]:
        names = list(feature_columns) or [name for name in self.columns if name not in exclude]
        if not names:
            raise DatasetError("No feature columns selected.")
        return names


def read_csv_table(data_path: Path) -> Table:
    """Read a CSV file with a header row into a :class:`Table`."""
    if not data_path.is_file():
        raise DatasetError(f"Data file does not exist: {data_path}")
    with data_path.open(encoding="utf-8", newline="") as file_obj:
        reader = csv.reader(file_obj)
        header = next(reader, None)
        if not header:
            raise DatasetError(f"Data file has no header row: {data_path}")
        columns = [name.strip() for name in header]
        rows: list[list[float]] = []
        for line_no, row in enumerate(reader, start=2):
            if not row:
                continue
            if len(row) != len(columns):
                raise DatasetError(
                    f"{data_path}:{line_no}: expected {len(columns)} values, got {len(row)}."
                )
            try:
                rows.append([float(cell) for cell in row])
            except ValueError as exc:
                raise DatasetError(f"{data_path}:{line_no}: {exc}") from exc
    values = np.array(rows, dtype=np.float64).reshape(len(rows), len(columns))
    return Table(columns=columns, values=values)


def write_predictions(
    output_path: Path,
    table: Table,
    predictions: np.ndarray,
    prediction_column: str = "prediction",
) -> None:
    """Write the table with an extra prediction column."""
    if predictions.shape[0] != table.values.shape[0]:
        raise DatasetError(
            f"Got {predictions.shape[0]} predictions for {table.values.shape[0]} rows."
        )
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", newline="", encoding="utf-8") as file_obj:
        writer = csv.writer(file_obj)
        writer.writerow([*table.columns, prediction_column])
        for row, prediction in zip(table.values, predictions, strict=True):
            writer.writerow([*(repr(float(value)) for value in row), repr(float(prediction))])
