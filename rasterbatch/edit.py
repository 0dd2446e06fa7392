import math
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Set, Tuple

from PIL import Image, ImageEnhance

from .assets import IMAGE_EXTENSIONS, ImageRef
from .config import (
    IDENTITY_FILTERS,
    ExportSettings,
    FilterSettings,
    get_preset,
)
from .errors import ConfigError


TRANSPARENT = (0, 0, 0, 0)


def normalize_rotation(degrees: float) -> float:
    """Fold any angle into [0, 360) so repeated turns never drift."""
    return ((degrees % 360) + 360) % 360


@dataclass
class EditableImage:
    name: str
    source_ref: ImageRef
    original_source_ref: ImageRef
    rotation: float = 0
    scale: float = 1.0
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    @classmethod
    def from_file(cls, path: Path) -> "EditableImage":
        return cls(name=path.name, source_ref=path, original_source_ref=path)

    def reset(self) -> None:
        self.source_ref = self.original_source_ref
        self.rotation = 0
        self.scale = 1.0


class EditSession:
    """
    The photo-edit working set: loaded images, which of them are selected,
    and the global filter/export settings applied to every export.

    An empty selection means "all images" for batch operations. The
    selection is only cleared by remove_selected(), clear_selection() and
    reset_all().
    """

    def __init__(
        self,
        filters: FilterSettings = IDENTITY_FILTERS,
        export: Optional[ExportSettings] = None,
    ) -> None:
        self.images: List[EditableImage] = []
        self.selected_ids: Set[str] = set()
        self.filters = filters
        self.export = export or ExportSettings()

    def add_files(self, paths: Iterable[Path]) -> List[EditableImage]:
        added = [
            EditableImage.from_file(Path(p))
            for p in paths
            if Path(p).suffix.lower() in IMAGE_EXTENSIONS
        ]
        self.images.extend(added)
        return added

    def add_image(self, image: EditableImage) -> EditableImage:
        self.images.append(image)
        return image

    def get(self, image_id: str) -> EditableImage:
        for img in self.images:
            if img.id == image_id:
                return img
        raise KeyError(image_id)

    def rotate(self, image_id: str, delta: float = 90) -> float:
        img = self.get(image_id)
        img.rotation = normalize_rotation(img.rotation + delta)
        return img.rotation

    def set_scale(self, image_id: str, scale: float) -> None:
        if scale <= 0:
            raise ConfigError(f"scale must be positive, got {scale}")
        self.get(image_id).scale = scale

    def reset(self, image_id: str) -> None:
        self.get(image_id).reset()

    def remove(self, image_id: str) -> None:
        self.images = [img for img in self.images if img.id != image_id]
        self.selected_ids.discard(image_id)

    def toggle_select(self, image_id: str) -> bool:
        if image_id in self.selected_ids:
            self.selected_ids.discard(image_id)
            return False
        self.selected_ids.add(image_id)
        return True

    def select_all(self) -> None:
        self.selected_ids = {img.id for img in self.images}

    def clear_selection(self) -> None:
        self.selected_ids = set()

    def remove_selected(self) -> int:
        before = len(self.images)
        self.images = [img for img in self.images if img.id not in self.selected_ids]
        self.selected_ids = set()
        return before - len(self.images)

    def targets(self) -> List[EditableImage]:
        """Selected images in load order, or every image when none is selected."""
        if not self.selected_ids:
            return list(self.images)
        return [img for img in self.images if img.id in self.selected_ids]

    def apply_preset(self, name: str) -> FilterSettings:
        self.filters = get_preset(name)
        return self.filters

    def reset_all(self) -> None:
        self.filters = IDENTITY_FILTERS
        self.export = ExportSettings()
        for img in self.images:
            img.reset()
        self.selected_ids = set()


def render_edit(
    source: Image.Image,
    filters: FilterSettings = IDENTITY_FILTERS,
    rotation: float = 0,
    scale: float = 1.0,
) -> Image.Image:
    """
    Render one edited image at the source's native size.

    Color filters apply to the source pixels first. Then, if there is any
    rotation or scaling, the image is turned clockwise by `rotation` degrees
    and scaled about the canvas center; corners that leave the frame are
    cropped and uncovered areas stay transparent. Otherwise the filtered
    source is returned as-is, drawn at the origin.
    """
    img = apply_filters(source.convert("RGBA"), filters)
    rotation = normalize_rotation(rotation)
    if rotation == 0 and scale == 1:
        return img
    return _rotate_scale_about_center(img, rotation, scale)


def apply_filters(img: Image.Image, filters: FilterSettings) -> Image.Image:
    """
    brightness -> contrast -> saturate -> hue-rotate, in CSS filter order.

    Each step is skipped at its identity value, so identity settings give
    back the input pixels unchanged. Alpha is never touched.
    """
    if filters.is_identity():
        return img.copy()

    rgb = img.convert("RGB")
    alpha = img.getchannel("A")
    if filters.brightness != 1:
        rgb = ImageEnhance.Brightness(rgb).enhance(filters.brightness)
    if filters.contrast != 1:
        rgb = ImageEnhance.Contrast(rgb).enhance(filters.contrast)
    if filters.saturation != 1:
        rgb = ImageEnhance.Color(rgb).enhance(filters.saturation)
    if filters.hue % 360 != 0:
        rgb = rgb.convert("RGB", hue_rotate_matrix(filters.hue))
    rgb.putalpha(alpha)
    return rgb


def hue_rotate_matrix(degrees: float) -> Tuple[float, ...]:
    """The feColorMatrix hueRotate matrix, as a Pillow 12-tuple."""
    rad = math.radians(degrees)
    cos, sin = math.cos(rad), math.sin(rad)
    return (
        0.213 + cos * 0.787 - sin * 0.213,
        0.715 - cos * 0.715 - sin * 0.715,
        0.072 - cos * 0.072 + sin * 0.928,
        0,
        0.213 - cos * 0.213 + sin * 0.143,
        0.715 + cos * 0.285 + sin * 0.140,
        0.072 - cos * 0.072 - sin * 0.283,
        0,
        0.213 - cos * 0.213 - sin * 0.787,
        0.715 - cos * 0.715 + sin * 0.715,
        0.072 + cos * 0.928 + sin * 0.072,
        0,
    )


def _rotate_scale_about_center(img: Image.Image, rotation: float, scale: float) -> Image.Image:
    # Pillow's AFFINE data maps each output pixel back to a source pixel, so
    # this is the inverse of: translate(center) . rotate . scale . translate(-center).
    if scale <= 0:
        raise ValueError(f"scale must be positive, got {scale}")
    rad = math.radians(rotation)
    # Rounded so quarter turns land exactly on pixel centers.
    cos = round(math.cos(rad), 12)
    sin = round(math.sin(rad), 12)
    cx, cy = img.width / 2, img.height / 2

    a, b = cos / scale, sin / scale
    d, e = -sin / scale, cos / scale
    c = cx - a * cx - b * cy
    f = cy - d * cx - e * cy

    return img.transform(
        img.size,
        Image.AFFINE,
        (a, b, c, d, e, f),
        resample=Image.BICUBIC,
        fillcolor=TRANSPARENT,
    )
