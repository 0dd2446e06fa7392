import argparse
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from rasterbatch.config import (
    ExportSettings,
    FilterSettings,
    GenerationSettings,
    get_preset,
    load_project,
)
from rasterbatch.core import ExportResult, LayerGenerationPipeline, PhotoEditPipeline
from rasterbatch.edit import EditSession
from rasterbatch.errors import (
    AssetDecodeFailure,
    ConfigError,
    EmptyInput,
    PackagingFailure,
)
from rasterbatch.layers import load_layer_stack
from rasterbatch.packager import encode_image


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate layered image collections or batch-edit photos."
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Project JSON file (layers, counts, metadata, export and filter settings).",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("outputs"),
        help="Folder where the archive or preview image is written.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Render a collection and pack it as a zip.")
    _add_layer_args(gen)
    gen.add_argument("--count", type=int, help="Number of items to render (1-500).")

    prev = sub.add_parser("preview", help="Render single previews and save the current one.")
    _add_layer_args(prev)
    prev.add_argument("--count", type=int, default=1, help="Previews to generate.")
    prev.add_argument("--back", type=int, default=0, help="Steps back through the history.")

    edit = sub.add_parser("edit", help="Apply shared adjustments to photos and zip them.")
    edit.add_argument("images", nargs="+", type=Path, help="Source image files.")
    edit.add_argument("--preset", help="auto, bw, vintage or tang.")
    edit.add_argument("--brightness", type=float)
    edit.add_argument("--contrast", type=float)
    edit.add_argument("--saturation", type=float)
    edit.add_argument("--hue", type=float)
    edit.add_argument(
        "--rotate",
        action="append",
        default=[],
        metavar="NAME=DEGREES",
        help="Per-image rotation, repeatable; applied as successive turns.",
    )
    edit.add_argument(
        "--scale",
        action="append",
        default=[],
        metavar="NAME=FACTOR",
        help="Per-image scale factor, repeatable.",
    )
    edit.add_argument(
        "--select",
        action="append",
        default=[],
        metavar="NAME",
        help="Only export these file names (default: all).",
    )
    edit.add_argument("--format", dest="export_format", choices=["lossless", "lossy"])
    edit.add_argument("--quality", type=float, help="JPEG quality in [0.5, 1.0].")
    return parser.parse_args(argv)


def _add_layer_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--assets",
        type=Path,
        help="Folder with one sub-folder of trait images per layer.",
    )
    parser.add_argument("--name-template", help="Item name; '#' is the number slot.")
    parser.add_argument("--description", help="Description shared by every item.")
    parser.add_argument("--seed", type=int, help="Seed for reproducible picks.")


def main(argv: Optional[List[str]] = None) -> int:
    # Load RASTERBATCH_* variables from a local .env file if present.
    load_dotenv()

    args = parse_args(argv)
    try:
        project = load_project(args.config)
        if args.command == "edit":
            result = _run_edit(args, project)
        else:
            result = _run_layers(args, project)
    except EmptyInput as exc:
        print(f"⚠️ {exc}")
        return 0
    except ConfigError as exc:
        print(f"❌ Invalid configuration: {exc}")
        return 2
    except PackagingFailure as exc:
        print(f"❌ Export failed: {exc}")
        return 1
    except AssetDecodeFailure as exc:
        print(f"❌ {exc}")
        return 1

    args.output_dir.mkdir(parents=True, exist_ok=True)
    output_path = args.output_dir / result.filename
    output_path.write_bytes(result.data)
    print(f"📁 Wrote {output_path}")
    return 0


def _run_layers(args: argparse.Namespace, project) -> ExportResult:
    assets_dir = args.assets or project.assets_dir
    if assets_dir is None:
        raise ConfigError("no assets folder given (use --assets or assets_dir)")
    stack = load_layer_stack(assets_dir, project.layers)

    base = project.generation
    settings = GenerationSettings(
        generate_count=base.generate_count,
        meta_name_template=_pick(args.name_template, base.meta_name_template),
        meta_description=_pick(args.description, base.meta_description),
        seed=_pick(args.seed, base.seed),
        canvas_size=base.canvas_size,
    )
    pipeline = LayerGenerationPipeline(stack, settings=settings)

    if args.command == "generate":
        return pipeline.export(count=args.count)

    for _ in range(max(args.count, 1)):
        pipeline.preview()
    for _ in range(max(args.back, 0)):
        pipeline.step_back()
    current = pipeline.history.current
    return ExportResult(f"preview_{current.index}.png", encode_image(current.image))


def _run_edit(args: argparse.Namespace, project) -> ExportResult:
    filters = project.filters
    if args.preset:
        filters = get_preset(args.preset)
    filters = FilterSettings(
        brightness=_pick(args.brightness, filters.brightness),
        contrast=_pick(args.contrast, filters.contrast),
        saturation=_pick(args.saturation, filters.saturation),
        hue=_pick(args.hue, filters.hue),
    )
    export = ExportSettings(
        export_format=_pick(args.export_format, project.export.export_format),
        jpg_quality=_pick(args.quality, project.export.jpg_quality),
    )

    session = EditSession(filters=filters, export=export)
    session.add_files(args.images)
    by_name = {img.name: img for img in session.images}

    for name, value in (_split_assignment(a) for a in args.rotate):
        session.rotate(_lookup(by_name, name).id, value)
    for name, value in (_split_assignment(a) for a in args.scale):
        session.set_scale(_lookup(by_name, name).id, value)
    for name in args.select:
        session.selected_ids.add(_lookup(by_name, name).id)

    pipeline = PhotoEditPipeline(session, settings=project.generation)
    if session.selected_ids:
        return pipeline.export_selected()
    return pipeline.export_all()


def _pick(value, default):
    return default if value is None else value


def _split_assignment(text: str):
    name, sep, value = text.rpartition("=")
    if not sep or not name:
        raise ConfigError(f"expected NAME=VALUE, got {text!r}")
    try:
        return name, float(value)
    except ValueError:
        raise ConfigError(f"expected a number after '=', got {text!r}") from None


def _lookup(by_name, name: str):
    try:
        return by_name[name]
    except KeyError:
        raise ConfigError(f"no loaded image named {name!r}") from None


if __name__ == "__main__":
    sys.exit(main())
