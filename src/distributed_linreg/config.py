"""Configuration loading and validation."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from distributed_linreg.exceptions import InvalidConfigError
from distributed_linreg.models import FitConfig

_ENV_TO_CONFIG: dict[str, str] = {
    "LINREG_MAX_ITER": "max_iter",
    "LINREG_STEP_SIZE": "step_size",
    "LINREG_TOL": "tol",
    "LINREG_EARLY_STOP": "early_stop",
    "LINREG_NUM_PARTITIONS": "num_partitions",
    "LINREG_MAX_WORKERS": "max_workers",
    "LINREG_SEED": "seed",
    "LINREG_FEATURE_COLUMNS": "feature_columns",
    "LINREG_LABEL_COLUMN": "label_column",
    "LINREG_PREDICTION_COLUMN": "prediction_column",
}

_BOOL_FIELDS = {"early_stop"}
_INT_FIELDS = {"max_iter", "num_partitions", "max_workers", "seed"}
_FLOAT_FIELDS = {"step_size", "tol"}


def load_config(
    config_path: Path | None = None,
    overrides: dict[str, Any] | None = None,
    dotenv_path: Path | None = None,
) -> FitConfig:
    """Load config from defaults, yaml file, .env, env, and explicit overrides."""
    payload: dict[str, Any] = {}
    dotenv_to_load = dotenv_path if dotenv_path is not None else Path(".env")
    load_dotenv(dotenv_path=dotenv_to_load, override=False)

    if config_path is not None:
        if not config_path.exists():
            raise InvalidConfigError(f"Config file does not exist: {config_path}")
        try:
            raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise InvalidConfigError(f"Config file is not valid YAML: {exc}") from exc
        if not isinstance(raw, dict):
            raise InvalidConfigError("Config file must contain a top-level mapping.")
        payload.update(raw)

    for env_key, config_key in _ENV_TO_CONFIG.items():
        env_value = os.getenv(env_key)
        if env_value is None or env_value == "":
            continue
        payload[config_key] = _coerce_env_value(env_key, config_key, env_value)

    if overrides:
        for key, value in overrides.items():
            if value is not None:
                payload[key] = value

    try:
        return FitConfig(**payload)
    except ValidationError as exc:
        raise InvalidConfigError(f"Invalid configuration: {exc}") from exc


def _coerce_env_value(env_key: str, config_key: str, env_value: str) -> Any:
    try:
        if config_key in _BOOL_FIELDS:
            normalized = env_value.strip().lower()
            return normalized in {"1", "true", "yes", "on"}
        if config_key in _INT_FIELDS:
            return int(env_value)
        if config_key in _FLOAT_FIELDS:
            return float(env_value)
    except ValueError as exc:
        raise InvalidConfigError(f"{env_key} has a non-numeric value: {env_value!r}") from exc
    return env_value
