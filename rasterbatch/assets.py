import io
from pathlib import Path
from typing import List, Union

from PIL import Image, UnidentifiedImageError

from .errors import AssetDecodeFailure

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp", ".gif", ".bmp"}

# A trait or photo source: a file on disk or already-read encoded bytes.
ImageRef = Union[Path, str, bytes]


def load_image(ref: ImageRef) -> Image.Image:
    """
    Decode an image reference into an RGBA Pillow image.

    Raises AssetDecodeFailure for anything that is not a readable image,
    including missing files, truncated data and images past Pillow's
    decompression-bomb limit.
    """
    label = describe_ref(ref)
    try:
        if isinstance(ref, (bytes, bytearray)):
            img = Image.open(io.BytesIO(ref))
        else:
            img = Image.open(Path(ref))
        img.load()
    except (
        OSError,
        UnidentifiedImageError,
        ValueError,
        Image.DecompressionBombError,
    ) as exc:
        raise AssetDecodeFailure(label, str(exc)) from exc
    return img.convert("RGBA")


def describe_ref(ref: ImageRef) -> str:
    if isinstance(ref, (bytes, bytearray)):
        return f"<{len(ref)} bytes>"
    return str(ref)


def find_image_files(directory: Path) -> List[Path]:
    """
    List image files directly inside `directory`, sorted by file name.

    Hidden files and anything without a known image extension are ignored.
    """
    if not directory.is_dir():
        return []
    return sorted(
        (
            path
            for path in directory.iterdir()
            if path.is_file()
            and not path.name.startswith(".")
            and path.suffix.lower() in IMAGE_EXTENSIONS
        ),
        key=lambda p: p.name.lower(),
    )


def strip_ext(name: str) -> str:
    """Drop the last extension: 'cat.photo.png' -> 'cat.photo'."""
    stem, dot, _ = name.rpartition(".")
    if not dot or not stem:
        return name
    return stem
