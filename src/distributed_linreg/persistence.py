"""Model directory writing and loading.

A saved model is a directory holding ``metadata.json`` (class, uid, params)
and ``data/model.json`` with exactly one ``{"weights": [...], "bias": ...}``
record.
"""

from __future__ import annotations

import json
import math
import shutil
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from distributed_linreg.exceptions import PersistenceError
from distributed_linreg.linear_model import LinearRegressionModel
from distributed_linreg.models import ModelMetadata, ModelRecord

FORMAT_VERSION = "1"
METADATA_FILE = "metadata.json"
RECORD_FILE = Path("data") / "model.json"


def save_model(model: LinearRegressionModel, path: Path, overwrite: bool = False) -> Path:
    """Write metadata and the weights/bias record under ``path``.

    Both files are written into a staging directory next to ``path`` which is
    renamed into place once complete, so an existing model survives a failed
    overwrite.
    """
    values = [*model.weights, model.bias]
    if not all(math.isfinite(value) for value in values):
        raise PersistenceError("Refusing to save a model whose weights or bias are not finite.")
    if path.exists():
        if not overwrite:
            raise PersistenceError(f"Model path already exists: {path}")
        if not path.is_dir():
            raise PersistenceError(f"Model path is not a directory: {path}")

    metadata = ModelMetadata(
        class_name=type(model).__name__,
        uid=model.uid,
        timestamp=datetime.now(UTC).isoformat(),
        version=FORMAT_VERSION,
        num_features=model.num_features,
        params=model.params,
    )
    record = ModelRecord(weights=[float(value) for value in model.weights], bias=model.bias)

    token = uuid.uuid4().hex[:8]
    staging = path.with_name(f".{path.name}.staging-{token}")
    try:
        _write_model_files(staging, metadata, record)
        if path.exists():
            _swap_directory(staging, path, path.with_name(f".{path.name}.previous-{token}"))
        else:
            staging.rename(path)
    except OSError as exc:
        shutil.rmtree(staging, ignore_errors=True)
        raise PersistenceError(f"Could not write model to {path}: {exc}") from exc
    return path


def load_model(path: Path) -> LinearRegressionModel:
    """Rebuild a model saved by :func:`save_model`."""
    if not path.is_dir():
        raise PersistenceError(f"Model directory does not exist: {path}")

    metadata = _load_metadata(path / METADATA_FILE)
    if metadata.class_name != LinearRegressionModel.__name__:
        raise PersistenceError(
            f"Expected a {LinearRegressionModel.__name__}, found '{metadata.class_name}'."
        )
    record = _load_record(path / RECORD_FILE)
    if len(record.weights) != metadata.num_features:
        raise PersistenceError(
            f"Stored weights have length {len(record.weights)}, "
            f"metadata declares {metadata.num_features} features."
        )
    values = [*record.weights, record.bias]
    if not all(math.isfinite(value) for value in values):
        raise PersistenceError("Stored weights or bias are not finite.")
    return LinearRegressionModel(
        record.weights,
        record.bias,
        params=metadata.params,
        uid=metadata.uid,
    )


def _write_model_files(directory: Path, metadata: ModelMetadata, record: ModelRecord) -> None:
    record_path = directory / RECORD_FILE
    record_path.parent.mkdir(parents=True)
    (directory / METADATA_FILE).write_text(
        metadata.model_dump_json(indent=2) + "\n", encoding="utf-8"
    )
    record_path.write_text(json.dumps([record.model_dump()], indent=2) + "\n", encoding="utf-8")


def _swap_directory(staging: Path, path: Path, previous: Path) -> None:
    path.rename(previous)
    try:
        staging.rename(path)
    except OSError:
        previous.rename(path)
        raise
    shutil.rmtree(previous, ignore_errors=True)


def _load_metadata(metadata_path: Path) -> ModelMetadata:
    raw = _read_json(metadata_path)
    try:
        return ModelMetadata.model_validate(raw)
    except ValidationError as exc:
        raise PersistenceError(f"Malformed model metadata in {metadata_path}: {exc}") from exc


def _load_record(record_path: Path) -> ModelRecord:
    raw = _read_json(record_path)
    if not isinstance(raw, list) or len(raw) != 1:
        raise PersistenceError(f"Expected exactly one weights record in {record_path}.")
    try:
        return ModelRecord.model_validate(raw[0])
    except ValidationError as exc:
        raise PersistenceError(f"Malformed weights record in {record_path}: {exc}") from exc


def _read_json(file_path: Path) -> Any:
    if not file_path.is_file():
        raise PersistenceError(f"Missing model file: {file_path}")
    try:
        return json.loads(file_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise PersistenceError(f"Could not read {file_path}: {exc}") from exc
