"""Pipeline assembly: presets, config files and single training runs."""

from __future__ import annotations

import json
import time
from copy import deepcopy
from pathlib import Path
from typing import Dict, Mapping, Sequence

from ..core.network import Network
from ..core.types import RunResult
from ..data import registry
from ..reporting.artifacts import write_manifest
from ..reporting.metrics import CsvSink, JsonlSink, MetricsCapture
from ..reporting.plots import PlotAdapter
from ..reporting.summary import write_summary
from .trainer import Trainer

_PRESETS: Dict[str, Mapping[str, object]] = {
    "mnist-fixture": {
        "data": {"name": "mnist", "options": {"val_split": 0.1, "seed": 0}},
        "model": {"hidden": [16], "num_classes": 10, "activation": "relu"},
        "train": {
            "epochs": 2,
            "batch_size": 16,
            "lr": 0.01,
            "seed": 7,
            "loss": "ce",
            "update_mode": "sample",
            "run_dir": "runs/mnist-fixture",
            "enable_plots": False,
        },
    },
    "mnist-quick": {
        "data": {"name": "mnist", "options": {"val_split": 0.05, "seed": 0, "max_items": 2000}},
        "model": {"hidden": [32], "num_classes": 10, "activation": "relu"},
        "train": {
            "epochs": 1,
            "batch_size": 32,
            "lr": 0.005,
            "seed": 1,
            "loss": "ce",
            "update_mode": "sample",
            "max_batches": 20,
            "run_dir": "runs/mnist-quick",
            "enable_plots": False,
        },
    },
    "mnist-minibatch": {
        "data": {"name": "mnist", "options": {"val_split": 0.1, "seed": 0}},
        "model": {"hidden": [16], "num_classes": 10, "activation": "sigmoid"},
        "train": {
            "epochs": 3,
            "batch_size": 8,
            "lr": 0.1,
            "seed": 3,
            "loss": "ce",
            "update_mode": "batch",
            "run_dir": "runs/mnist-minibatch",
            "enable_plots": False,
        },
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_REQUIRED_SECTIONS = {"data", "model", "train"}


def load_config_file(path: str | Path) -> Mapping[str, object]:
    """Read a JSON or YAML mapping."""

    path = Path(path)
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        import yaml

        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported config file type: {path.suffix}")
    if not isinstance(data, Mapping):
        raise TypeError(f"Config {path.name} must decode to a mapping")
    return data


def _file_presets() -> Dict[str, Mapping[str, object]]:
    found: Dict[str, Mapping[str, object]] = {}
    if not _PRESET_DIR.exists():
        return found
    for file in sorted(_PRESET_DIR.iterdir()):
        if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
            continue
        data = load_config_file(file)
        missing = _REQUIRED_SECTIONS - set(data)
        if missing:
            raise KeyError(
                f"Preset {file.name} is missing required sections: {', '.join(sorted(missing))}"
            )
        found[file.stem] = json.loads(json.dumps(data))
    return found


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {k: deepcopy(v) for k, v in _PRESETS.items()}
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Dict[str, object]:
    available = presets()
    if name not in available:
        raise KeyError(f"Unknown preset {name!r}. Available presets: {', '.join(sorted(available))}")
    return json.loads(json.dumps(available[name]))


def merge_config(base: Mapping[str, object], override: Mapping[str, object]) -> Dict[str, object]:
    """Recursively overlay ``override`` onto a copy of ``base``."""

    merged: Dict[str, object] = deepcopy(dict(base))
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge_config(merged[key], value)  # type: ignore[arg-type]
        else:
            merged[key] = deepcopy(value)
    return merged


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    """Load data, build the network, train, and write run artifacts."""

    missing = _REQUIRED_SECTIONS - set(config)
    if missing:
        raise KeyError(f"Config is missing required sections: {', '.join(sorted(missing))}")
    data_cfg = dict(config["data"])  # type: ignore[arg-type]
    model_cfg = dict(config["model"])  # type: ignore[arg-type]
    train_cfg = dict(config["train"])  # type: ignore[arg-type]

    offline = config.get("offline")
    dataset = registry.get_dataset(
        str(data_cfg["name"]),
        offline=None if offline is None else bool(offline),
        cache_dir=train_cfg.get("cache_dir"),
        **dict(data_cfg.get("options", {})),
    )

    seed = int(train_cfg.get("seed", 0))
    num_classes = int(model_cfg.get("num_classes", dataset.num_classes))
    layer_sizes = _build_layer_sizes(model_cfg.get("hidden", []), num_classes)
    network = Network(
        dataset.num_features,
        layer_sizes,
        str(model_cfg.get("activation", "relu")),
        seed=seed,
    )

    run_dir = _resolve_run_dir(train_cfg, dataset.name)
    run_dir.mkdir(parents=True, exist_ok=True)

    _print_startup_summary(
        dataset_name=dataset.name,
        splits=dataset.splits,
        dims=[dataset.num_features, *layer_sizes],
        activation=network.activation.value,
        loss=str(train_cfg.get("loss", "ce")),
        update_mode=str(train_cfg.get("update_mode", "sample")),
        param_count=network.parameter_count(),
    )

    train_jsonl = JsonlSink(run_dir / "metrics_train.jsonl", split="train", seed=seed)
    val_jsonl = JsonlSink(run_dir / "metrics_val.jsonl", split="val", seed=seed)
    train_csv = CsvSink(run_dir / "metrics_train.csv", split="train")
    val_csv = CsvSink(run_dir / "metrics_val.csv", split="val")
    capture_train = MetricsCapture()
    capture_val = MetricsCapture()
    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))

    max_batches = train_cfg.get("max_batches")
    trainer = Trainer(
        network,
        learning_rate=float(train_cfg.get("lr", 0.01)),
        batch_size=int(train_cfg.get("batch_size", 32)),
        num_classes=num_classes,
        loss=str(train_cfg.get("loss", "ce")),
        update_mode=str(train_cfg.get("update_mode", "sample")),
        seed=seed,
        max_batches=int(max_batches) if max_batches is not None else None,
    )
    epochs = int(train_cfg.get("epochs", 1))
    history = trainer.run(
        dataset.train,
        epochs,
        dataset.val,
        split_loggers={
            "train": [train_jsonl, train_csv, capture_train, plots.for_split("train")],
            "val": [val_jsonl, val_csv, capture_val, plots.for_split("val")],
        },
    )
    plots.close()

    if dataset.test and train_cfg.get("evaluate_test", True):
        test_metrics = trainer.evaluate(dataset.test)
        (run_dir / "metrics_test.json").write_text(json.dumps(test_metrics.as_dict(), indent=2))

    safe_config = json.loads(json.dumps(config, default=str))
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=safe_config,
        dataset_provenance=dataset.provenance,
        model={
            "layer_dims": network.describe().layer_dims,
            "activation": network.activation.value,
            "parameters": network.parameter_count(),
        },
    )
    summary_path = write_summary(train_jsonl.path, run_dir / "summary.json")
    (run_dir / "config.json").write_text(json.dumps(safe_config, indent=2))

    return RunResult(
        epochs=history.epochs,
        steps=history.steps,
        metrics_path=str(train_jsonl.path),
        manifest_path=manifest,
        summary_path=summary_path,
    )


def _build_layer_sizes(hidden: Sequence[int] | object, num_classes: int) -> list[int]:
    if not isinstance(hidden, Sequence) or isinstance(hidden, str):
        raise ValueError(f"model.hidden must be a list of layer sizes, got {hidden!r}")
    return [int(size) for size in hidden] + [num_classes]


def _resolve_run_dir(train_cfg: Mapping[str, object], dataset: str) -> Path:
    if "run_dir" in train_cfg:
        return Path(str(train_cfg["run_dir"]))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp / dataset


def _print_startup_summary(
    *,
    dataset_name: str,
    splits: Mapping[str, int],
    dims: Sequence[int],
    activation: str,
    loss: str,
    update_mode: str,
    param_count: int,
) -> None:
    print("=== scratchnet run ===")
    print(f"Dataset       : {dataset_name} {dict(splits)}")
    print(f"Dimensions    : {list(dims)}")
    print(f"Activation    : {activation}")
    print(f"Loss          : {loss}")
    print(f"Update mode   : {update_mode}")
    print(f"Parameters    : {param_count}")
    print("======================")


__all__ = ["load_config_file", "load_preset", "merge_config", "presets", "run_pipeline"]
