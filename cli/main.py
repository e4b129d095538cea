"""Command line entry point for scratchnet training runs."""

from __future__ import annotations

import argparse
import json
import os
from pathlib import Path
from typing import Iterable

from scratchnet.data import get_dataset, load_images
from scratchnet.render import display_image
from scratchnet.training import pipelines


def _format_result(result) -> str:
    payload = {
        "epochs": result.epochs,
        "steps": result.steps,
        "metrics": result.metrics_path,
        "manifest": result.manifest_path,
        "summary": result.summary_path,
    }
    return json.dumps(payload, sort_keys=True)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        default="mnist-fixture",
        help="Preset configuration to execute (see --list-presets)",
    )
    parser.add_argument("--config", type=Path, help="Optional JSON/YAML config override")
    parser.add_argument("--seed", type=int, help="Seed for weight init and shuffling")
    parser.add_argument("--epochs", type=int, help="Override the number of epochs")
    parser.add_argument("--lr", type=float, help="Override the learning rate")
    parser.add_argument(
        "--update-mode",
        choices=["sample", "batch"],
        help="Apply updates after every sample or once per averaged batch",
    )
    parser.add_argument("--run-dir", type=Path, help="Directory for metrics and manifests")
    parser.add_argument("--enable-plots", action="store_true", help="Write loss/accuracy plots")
    parser.add_argument(
        "--offline",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Use the bundled offline fixture instead of downloading MNIST",
    )
    parser.add_argument("--list-presets", action="store_true", help="List presets and exit")
    parser.add_argument("--dump-config", type=Path, help="Write the resolved config to JSON")
    parser.add_argument(
        "--show",
        type=int,
        metavar="INDEX",
        help=(
            "Render record INDEX of the raw training file (before the validation "
            "split) with the kitty graphics protocol and exit"
        ),
    )
    parser.add_argument("--scale", type=int, help="Pixel scale used by --show")
    return parser.parse_args(argv)


def resolve_config(args: argparse.Namespace) -> dict:
    config = pipelines.load_preset(args.preset)
    if args.config:
        override = pipelines.load_config_file(args.config)
        if {"data", "model", "train"} <= set(override.keys()):
            config = json.loads(json.dumps(override))
        else:
            config = pipelines.merge_config(config, override)

    train_cfg = config.setdefault("train", {})
    if args.seed is not None:
        train_cfg["seed"] = int(args.seed)
    if args.epochs is not None:
        train_cfg["epochs"] = int(args.epochs)
    if args.lr is not None:
        train_cfg["lr"] = float(args.lr)
    if args.update_mode:
        train_cfg["update_mode"] = args.update_mode
    if args.run_dir is not None:
        train_cfg["run_dir"] = str(args.run_dir)
    if args.enable_plots:
        train_cfg["enable_plots"] = True
    config["offline"] = bool(args.offline)
    return config


def _show(config: dict, index: int, scale: int | None) -> None:
    data_cfg = config["data"]
    dataset = get_dataset(
        data_cfg["name"],
        offline=config.get("offline"),
        **dict(data_cfg.get("options", {})),
    )
    try:
        images_path = dataset.provenance["train_images"]["local_path"]
        labels_path = dataset.provenance["train_labels"]["local_path"]
    except KeyError:
        raise SystemExit(f"Dataset {dataset.name!r} does not expose its raw training files") from None
    if index < 0:
        raise SystemExit(f"Image index {index} must be non-negative")
    images = load_images(images_path, labels_path, limit=index + 1)
    if index >= len(images):
        raise SystemExit(f"Image index {index} out of range [0, {len(images)})")
    image = images[index]
    display_image(image, scale)
    print(f"\nLabel: {image.label}")


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)

    if args.list_presets:
        for name in sorted(pipelines.presets().keys()):
            print(name)
        raise SystemExit(0)

    try:
        config = resolve_config(args)
    except KeyError as exc:
        raise SystemExit(str(exc)) from None

    os.environ["SCRATCHNET_DATA_OFFLINE"] = "1" if args.offline else "0"

    if args.show is not None:
        _show(config, args.show, args.scale)
        return

    if args.dump_config:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config, indent=2))

    result = pipelines.run_pipeline(config)
    print(_format_result(result))


if __name__ == "__main__":
    main()
