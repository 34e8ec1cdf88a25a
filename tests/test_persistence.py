from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest

import distributed_linreg.persistence as persistence
from distributed_linreg.estimator import LinearRegression
from distributed_linreg.exceptions import PersistenceError
from distributed_linreg.linear_model import LinearRegressionModel
from distributed_linreg.models import FitConfig
from distributed_linreg.persistence import METADATA_FILE, RECORD_FILE, load_model, save_model


def _saved_model(tmp_path: Path) -> Path:
    model = LinearRegressionModel([2.0, -1.0], 0.5, params=FitConfig(max_iter=7, step_size=0.1))
    return save_model(model, tmp_path / "model")


def test_round_trip_preserves_predictions(tmp_path: Path, line_data) -> None:
    features, labels = line_data
    model = LinearRegression(FitConfig(max_iter=50, step_size=0.01)).fit(features, labels)

    restored = LinearRegressionModel.load(model.save(tmp_path / "model"))

    rng = np.random.default_rng(3)
    for sample in rng.normal(size=(20, 2)):
        assert restored.predict(sample) == pytest.approx(model.predict(sample), rel=1e-12)
    assert restored.uid == model.uid
    assert restored.params == model.params


def test_save_writes_metadata_and_single_record(tmp_path: Path) -> None:
    path = _saved_model(tmp_path)

    metadata = json.loads((path / METADATA_FILE).read_text(encoding="utf-8"))
    record = json.loads((path / RECORD_FILE).read_text(encoding="utf-8"))

    assert metadata["class_name"] == "LinearRegressionModel"
    assert metadata["num_features"] == 2
    assert metadata["params"]["max_iter"] == 7
    assert record == [{"weights": [2.0, -1.0], "bias": 0.5}]


def test_save_refuses_existing_path_without_overwrite(tmp_path: Path) -> None:
    path = _saved_model(tmp_path)
    model = LinearRegressionModel([1.0, 1.0], 0.0)

    with pytest.raises(PersistenceError, match="already exists"):
        save_model(model, path)

    save_model(model, path, overwrite=True)
    assert load_model(path).bias == 0.0


def test_load_missing_directory(tmp_path: Path) -> None:
    with pytest.raises(PersistenceError, match="does not exist"):
        load_model(tmp_path / "nope")


def test_load_missing_record(tmp_path: Path) -> None:
    path = _saved_model(tmp_path)
    (path / RECORD_FILE).unlink()
    with pytest.raises(PersistenceError, match="Missing model file"):
        load_model(path)


def test_load_malformed_json(tmp_path: Path) -> None:
    path = _saved_model(tmp_path)
    (path / RECORD_FILE).write_text("{not json", encoding="utf-8")
    with pytest.raises(PersistenceError, match="Could not read"):
        load_model(path)


@pytest.mark.parametrize(
    "payload",
    [
        [],
        [{"weights": [1.0, 2.0], "bias": 0.0}, {"weights": [1.0, 2.0], "bias": 0.0}],
        {"weights": [1.0, 2.0], "bias": 0.0},
    ],
)
def test_load_requires_exactly_one_record(tmp_path: Path, payload: object) -> None:
    path = _saved_model(tmp_path)
    (path / RECORD_FILE).write_text(json.dumps(payload), encoding="utf-8")
    with pytest.raises(PersistenceError, match="exactly one"):
        load_model(path)


@pytest.mark.parametrize(
    "record",
    [
        {"weights": ["a", 2.0], "bias": 0.0},
        {"weights": [True, 2.0], "bias": 0.0},
        {"weights": [1.0, "2.5"], "bias": 0.0},
        {"weights": [1.0, 2.0], "bias": "0"},
        {"weights": [1.0, 2.0], "bias": False},
        {"weights": [1.0, 2.0]},
        {"bias": 1.0},
    ],
)
def test_load_rejects_malformed_record(tmp_path: Path, record: dict) -> None:
    path = _saved_model(tmp_path)
    (path / RECORD_FILE).write_text(json.dumps([record]), encoding="utf-8")
    with pytest.raises(PersistenceError, match="Malformed weights record"):
        load_model(path)


def test_load_rejects_shape_mismatch(tmp_path: Path) -> None:
    path = _saved_model(tmp_path)
    (path / RECORD_FILE).write_text(
        json.dumps([{"weights": [1.0, 2.0, 3.0], "bias": 0.0}]), encoding="utf-8"
    )
    with pytest.raises(PersistenceError, match="metadata declares 2 features"):
        load_model(path)


def test_load_rejects_non_finite_values(tmp_path: Path) -> None:
    path = _saved_model(tmp_path)
    (path / RECORD_FILE).write_text('[{"weights": [1.0, NaN], "bias": 0.0}]', encoding="utf-8")
    with pytest.raises(PersistenceError, match="not finite"):
        load_model(path)


def test_load_rejects_malformed_metadata(tmp_path: Path) -> None:
    path = _saved_model(tmp_path)
    (path / METADATA_FILE).write_text(json.dumps({"class_name": "X"}), encoding="utf-8")
    with pytest.raises(PersistenceError, match="Malformed model metadata"):
        load_model(path)


def test_load_rejects_other_class(tmp_path: Path) -> None:
    path = _saved_model(tmp_path)
    metadata = json.loads((path / METADATA_FILE).read_text(encoding="utf-8"))
    metadata["class_name"] = "LogisticRegressionModel"
    (path / METADATA_FILE).write_text(json.dumps(metadata), encoding="utf-8")
    with pytest.raises(PersistenceError, match="Expected a LinearRegressionModel"):
        load_model(path)


def test_load_accepts_integer_values(tmp_path: Path) -> None:
    path = _saved_model(tmp_path)
    (path / RECORD_FILE).write_text(json.dumps([{"weights": [2, -1], "bias": 1}]), encoding="utf-8")

    restored = load_model(path)

    np.testing.assert_array_equal(restored.weights, [2.0, -1.0])
    assert restored.bias == 1.0


@pytest.mark.parametrize(
    ("weights", "bias"),
    [([np.nan, 1.0], 0.0), ([1.0, np.inf], 0.0), ([1.0, 2.0], -np.inf)],
)
def test_save_rejects_non_finite_values(tmp_path: Path, weights: list[float], bias: float) -> None:
    path = tmp_path / "model"
    with pytest.raises(PersistenceError, match="not finite"):
        save_model(LinearRegressionModel(weights, bias), path)
    assert not path.exists()


def test_save_rejects_diverged_fit(tmp_path: Path, line_data) -> None:
    features, labels = line_data
    with np.errstate(over="ignore", invalid="ignore"):
        model = LinearRegression(FitConfig(max_iter=200, step_size=1.0, seed=1)).fit(
            features * 100, labels
        )
    assert not np.all(np.isfinite(model.weights))

    with pytest.raises(PersistenceError, match="not finite"):
        model.save(tmp_path / "model")
    assert list(tmp_path.iterdir()) == []


def test_save_wraps_filesystem_errors(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")

    with pytest.raises(PersistenceError, match="Could not write model"):
        save_model(LinearRegressionModel([1.0], 0.0), blocker / "model")
    assert blocker.read_text(encoding="utf-8") == "not a directory"


def test_failed_overwrite_keeps_previous_model(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    path = _saved_model(tmp_path)

    def _disk_full(*_args, **_kwargs) -> None:
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(persistence, "_write_model_files", _disk_full)
    with pytest.raises(PersistenceError, match="No space left"):
        save_model(LinearRegressionModel([9.0, 9.0], 9.0), path, overwrite=True)

    restored = load_model(path)
    np.testing.assert_array_equal(restored.weights, [2.0, -1.0])
    assert restored.bias == 0.5
    assert [entry.name for entry in tmp_path.iterdir()] == ["model"]


def test_overwrite_replaces_model_without_leftovers(tmp_path: Path) -> None:
    path = _saved_model(tmp_path)

    save_model(LinearRegressionModel([4.0, 5.0], 6.0), path, overwrite=True)

    assert load_model(path).bias == 6.0
    assert [entry.name for entry in tmp_path.iterdir()] == ["model"]
