from dataclasses import dataclass
from typing import Optional, Tuple

from PIL import Image


@dataclass(frozen=True)
class SelectionRecord:
    """One layer's contribution to one generated item."""

    layer_name: str
    trait_display_name: str


@dataclass(frozen=True)
class GeneratedItem:
    """
    One rendered batch item. `index` is 1-based and follows generation order.

    Photo-edit items also carry the source file name they were rendered from.
    An item whose source could not be rendered has `image=None` and an
    `error` message; the packager records it as a gap.
    """

    index: int
    image: Optional[Image.Image]
    selections: Tuple[SelectionRecord, ...] = ()
    source_name: Optional[str] = None
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.image is None
