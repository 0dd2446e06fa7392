import random
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from PIL import Image

from .assets import load_image, strip_ext
from .config import GenerationSettings, check_count
from .edit import EditableImage, EditSession, render_edit
from .errors import AssetDecodeFailure, BatchCancelled, EmptyInput
from .history import PreviewHistory
from .layers import LayerStack, Trait
from .models import GeneratedItem, SelectionRecord
from .packager import (
    EDIT_ARCHIVE_NAME,
    LAYER_ARCHIVE_NAME,
    SELECTED_EDIT_ARCHIVE_NAME,
    encode_image,
    pack_edited,
    pack_generated,
)
from .render import Size, composite
from .selector import pick_by_rarity


StatusCallback = Callable[[str], None]
CancelCheck = Callable[[], bool]
ItemProducer = Callable[[int], GeneratedItem]


@dataclass(frozen=True)
class ExportResult:
    """A finished download: the file name to offer and its bytes."""

    filename: str
    data: bytes


def iter_batch(
    count: int,
    producer: ItemProducer,
    cancel: Optional[CancelCheck] = None,
) -> Iterator[GeneratedItem]:
    """
    Produce items 1..count one at a time.

    Control returns to the caller after every item, which is where progress
    is reported and where `cancel` is consulted before starting the next one.
    A cancelled batch raises BatchCancelled and produces nothing further.
    """
    for index in range(1, count + 1):
        if cancel is not None and cancel():
            raise BatchCancelled(completed=index - 1, total=count)
        yield producer(index)


def run_batch(
    count: int,
    producer: ItemProducer,
    status: StatusCallback = print,
    cancel: Optional[CancelCheck] = None,
) -> List[GeneratedItem]:
    items: List[GeneratedItem] = []
    for item in iter_batch(count, producer, cancel=cancel):
        items.append(item)
        status(f"Rendered {item.index}/{count}")
    return items


class LayerGenerationPipeline:
    """
    Orchestrates procedural generation from a layer stack:
    - pick one trait per non-empty layer, weighted by rarity
    - decode the picked images and composite them back to front
    - repeat for the requested count and package images + metadata

    Single previews go into a PreviewHistory so the caller can step back
    without regenerating.
    """

    def __init__(
        self,
        stack: LayerStack,
        settings: Optional[GenerationSettings] = None,
        rng: Optional[random.Random] = None,
        canvas_size: Optional[Size] = None,
        status: StatusCallback = print,
    ) -> None:
        self.stack = stack
        self.settings = settings or GenerationSettings()
        self.rng = rng or random.Random(self.settings.seed)
        self.canvas_size = canvas_size or self.settings.canvas_size
        self.status = status
        self.history: PreviewHistory[GeneratedItem] = PreviewHistory()
        # Decoded trait images keyed by trait id; None marks a failed decode.
        self._decoded: Dict[str, Optional[Image.Image]] = {}

    def generate_item(self, index: int) -> GeneratedItem:
        selections: List[SelectionRecord] = []
        images: List[Image.Image] = []

        for layer in self.stack:
            if not layer.traits:
                continue
            pick = pick_by_rarity(layer.traits, self.rng)
            selections.append(SelectionRecord(layer.name, pick.display_name))
            img = self._decode(pick)
            if img is not None:
                images.append(img)

        return GeneratedItem(
            index=index,
            image=composite(images, self.canvas_size),
            selections=tuple(selections),
        )

    def preview(self) -> GeneratedItem:
        self._require_traits()
        item = self.generate_item(len(self.history) + 1)
        self.history.advance(item)
        self.status("✅ Preview updated")
        return item

    def step_back(self) -> Optional[GeneratedItem]:
        previous = self.history.step_back()
        if previous is None:
            self.status("No previous preview.")
            return None
        self.status("✅ Preview moved to previous")
        return previous

    def generate(
        self,
        count: Optional[int] = None,
        cancel: Optional[CancelCheck] = None,
    ) -> List[GeneratedItem]:
        count = check_count(self.settings.generate_count if count is None else count)
        self._require_traits()
        self._decoded.clear()
        return run_batch(count, self.generate_item, status=self.status, cancel=cancel)

    def export(
        self,
        count: Optional[int] = None,
        cancel: Optional[CancelCheck] = None,
    ) -> ExportResult:
        self.status("Generating ZIP...")
        items = self.generate(count, cancel=cancel)
        data = pack_generated(
            items,
            name_template=self.settings.meta_name_template,
            description=self.settings.meta_description,
        )
        self.status("✅ Export complete!")
        return ExportResult(LAYER_ARCHIVE_NAME, data)

    def _require_traits(self) -> None:
        if not len(self.stack):
            raise EmptyInput("No layers to combine.")
        if not self.stack.has_traits():
            raise EmptyInput("No traits in any layer.")

    def _decode(self, trait: Trait) -> Optional[Image.Image]:
        if trait.image_ref is None:
            return None
        if trait.id not in self._decoded:
            try:
                self._decoded[trait.id] = load_image(trait.image_ref)
            except AssetDecodeFailure as exc:
                # The layer still counts as picked; it just draws nothing.
                self.status(f"⚠️ {exc}")
                self._decoded[trait.id] = None
        return self._decoded[trait.id]


class PhotoEditPipeline:
    """
    Applies an EditSession's global filters, plus each image's own rotation
    and scale, to the session's target images and packages the results.
    """

    def __init__(
        self,
        session: EditSession,
        settings: Optional[GenerationSettings] = None,
        status: StatusCallback = print,
    ) -> None:
        self.session = session
        self.settings = settings or GenerationSettings()
        self.status = status

    def render_image(self, image: EditableImage) -> Image.Image:
        source = load_image(image.source_ref)
        return render_edit(
            source,
            filters=self.session.filters,
            rotation=image.rotation,
            scale=image.scale,
        )

    def render_item(self, image: EditableImage, index: int) -> GeneratedItem:
        try:
            rendered = self.render_image(image)
        except AssetDecodeFailure as exc:
            self.status(f"⚠️ Skipped {image.name}: {exc}")
            return GeneratedItem(
                index=index,
                image=None,
                source_name=image.name,
                error=str(exc),
            )
        return GeneratedItem(
            index=index,
            image=rendered,
            selections=self._adjustments(image),
            source_name=image.name,
        )

    def render(
        self,
        targets: Sequence[EditableImage],
        cancel: Optional[CancelCheck] = None,
    ) -> List[GeneratedItem]:
        if not targets:
            raise EmptyInput("No images to edit.")
        return run_batch(
            len(targets),
            lambda index: self.render_item(targets[index - 1], index),
            status=self.status,
            cancel=cancel,
        )

    def export_all(self, cancel: Optional[CancelCheck] = None) -> ExportResult:
        """Export the selection, or every image when nothing is selected."""
        data = self._export_archive(self.session.targets(), cancel)
        return ExportResult(EDIT_ARCHIVE_NAME, data)

    def export_selected(self, cancel: Optional[CancelCheck] = None) -> ExportResult:
        """
        Export only the selected images. A single selection downloads as one
        encoded image rather than an archive.
        """
        if not self.session.selected_ids:
            raise EmptyInput("No images selected.")
        targets = self.session.targets()
        if len(targets) == 1:
            return self.export_single(targets[0].id)
        data = self._export_archive(targets, cancel)
        return ExportResult(SELECTED_EDIT_ARCHIVE_NAME, data)

    def export_single(self, image_id: str) -> ExportResult:
        image = self.session.get(image_id)
        export = self.session.export
        data = encode_image(self.render_image(image), export)
        return ExportResult(f"{strip_ext(image.name)}.{export.extension}", data)

    def _export_archive(
        self,
        targets: Sequence[EditableImage],
        cancel: Optional[CancelCheck],
    ) -> bytes:
        items = self.render(targets, cancel=cancel)
        data = pack_edited(
            items,
            export=self.session.export,
            name_template=self.settings.meta_name_template,
            description=self.settings.meta_description,
        )
        skipped = sum(1 for item in items if item.failed)
        if skipped:
            self.status(f"✅ Export complete! ({skipped} skipped)")
        else:
            self.status("✅ Export complete!")
        return data

    def _adjustments(self, image: EditableImage) -> Tuple[SelectionRecord, ...]:
        filters = self.session.filters
        values = (
            ("brightness", filters.brightness),
            ("contrast", filters.contrast),
            ("saturation", filters.saturation),
            ("hue", filters.hue),
            ("rotation", image.rotation),
            ("scale", image.scale),
        )
        return tuple(SelectionRecord(name, f"{value:g}") for name, value in values)
