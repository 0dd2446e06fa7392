import io
import json
import zipfile
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from PIL import Image

from .assets import strip_ext
from .config import ExportSettings
from .errors import PackagingFailure
from .models import GeneratedItem, SelectionRecord


LAYER_ARCHIVE_NAME = "memories.zip"
EDIT_ARCHIVE_NAME = "edited_images.zip"
SELECTED_EDIT_ARCHIVE_NAME = "selected_edit.zip"

IMAGES_DIR = "images"
METADATA_DIR = "metadata"
INDEX_FILE = "metadata_index.json"

NAME_SLOT = "#"
DEFAULT_DESCRIPTION = "Generated NFT"

Metadata = Dict[str, Any]


def build_name(template: Optional[str], index: int) -> str:
    """
    Expand a name template for the item at 1-based `index`.

    Every '#' slot is numbered in place ('NFT #' -> 'NFT #7'); a template
    without a slot gets ' #<index>' appended; a blank template falls back
    to 'NFT #<index>'.
    """
    if not template or not template.strip():
        return f"NFT #{index}"
    if NAME_SLOT in template:
        return template.replace(NAME_SLOT, f"{NAME_SLOT}{index}")
    return f"{template} #{index}"


def build_description(description: Optional[str]) -> str:
    if description and description.strip():
        return description
    return DEFAULT_DESCRIPTION


def build_metadata(
    name: str,
    description: str,
    image_path: str,
    selections: Iterable[SelectionRecord],
) -> Metadata:
    return {
        "name": name,
        "description": description,
        "image": image_path,
        "attributes": [
            {"trait_type": s.layer_name, "value": s.trait_display_name}
            for s in selections
        ],
    }


@dataclass(frozen=True)
class ArchiveManifest:
    """
    Per-item metadata in generation order. A `None` record marks an item
    that failed to render; it stays in place so the index shows the gap.
    """

    records: Tuple[Optional[Metadata], ...]

    @property
    def index(self) -> List[Optional[Metadata]]:
        return list(self.records)

    def to_json(self) -> str:
        return json.dumps(self.index, indent=2, ensure_ascii=False)


def encode_image(img: Image.Image, export: Optional[ExportSettings] = None) -> bytes:
    """Encode as PNG, or as JPEG at round(jpg_quality * 100) for lossy exports."""
    export = export or ExportSettings()
    buf = io.BytesIO()
    if export.export_format == "lossy":
        img.convert("RGB").save(buf, format="JPEG", quality=round(export.jpg_quality * 100))
    else:
        img.save(buf, format="PNG")
    return buf.getvalue()


def pack_generated(
    items: Sequence[GeneratedItem],
    name_template: Optional[str],
    description: Optional[str],
) -> bytes:
    """
    Package procedurally generated items:

        images/<index>.png
        metadata/<index>.json
        metadata_index.json
    """
    entries = [(str(item.index), item) for item in items]
    return _pack(entries, ExportSettings(), name_template, description)


def pack_edited(
    items: Sequence[GeneratedItem],
    export: ExportSettings,
    name_template: Optional[str],
    description: Optional[str],
) -> bytes:
    """
    Package photo-edit results. Files are named after the source file with
    its extension stripped; a name already taken gets the first free '-2',
    '-3', ... suffix, so no two items share an archive path.
    """
    used: Set[str] = set()
    entries = []
    for item in items:
        base = strip_ext(item.source_name or str(item.index))
        stem, n = base, 1
        while stem in used:
            n += 1
            stem = f"{base}-{n}"
        used.add(stem)
        entries.append((stem, item))
    return _pack(entries, export, name_template, description)


def _pack(
    entries: List[Tuple[str, GeneratedItem]],
    export: ExportSettings,
    name_template: Optional[str],
    description: Optional[str],
) -> bytes:
    description = build_description(description)
    buf = io.BytesIO()
    records: List[Optional[Metadata]] = []
    try:
        with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
            for stem, item in entries:
                if item.failed:
                    records.append(None)
                    continue
                image_path = f"{IMAGES_DIR}/{stem}.{export.extension}"
                metadata = build_metadata(
                    name=build_name(name_template, item.index),
                    description=description,
                    image_path=image_path,
                    selections=item.selections,
                )
                zf.writestr(image_path, encode_image(item.image, export))
                zf.writestr(
                    f"{METADATA_DIR}/{stem}.json",
                    json.dumps(metadata, indent=2, ensure_ascii=False),
                )
                records.append(metadata)

            manifest = ArchiveManifest(records=tuple(records))
            zf.writestr(INDEX_FILE, manifest.to_json())
    except (OSError, ValueError, TypeError, KeyError, zipfile.LargeZipFile) as exc:
        raise PackagingFailure(f"Could not write archive: {exc}") from exc
    return buf.getvalue()
