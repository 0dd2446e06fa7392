import uuid
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .assets import ImageRef, find_image_files, strip_ext
from .errors import ConfigError

MIN_RARITY = 0
MAX_RARITY = 100
DEFAULT_RARITY = 1


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class Trait:
    source_name: str
    display_name: str
    image_ref: Optional[ImageRef] = None
    rarity: Any = DEFAULT_RARITY
    id: str = field(default_factory=_new_id)

    @classmethod
    def from_file(cls, path: Path, rarity: Any = DEFAULT_RARITY) -> "Trait":
        return cls(
            source_name=path.name,
            display_name=strip_ext(path.name),
            image_ref=path,
            rarity=rarity,
        )


@dataclass
class Layer:
    name: str
    traits: List[Trait] = field(default_factory=list)
    # Only meaningful to an editor UI; the pipeline never reads it.
    collapsed: bool = False
    id: str = field(default_factory=_new_id)


class LayerStack:
    """
    Ordered layers, back to front. Index 0 is drawn first.

    Every mutation is an explicit call; nothing here reorders layers, and
    trait edits only ever touch the layer they address.
    """

    def __init__(self, layers: Optional[Iterable[Layer]] = None) -> None:
        self.layers: List[Layer] = list(layers or [])

    def __len__(self) -> int:
        return len(self.layers)

    def __iter__(self):
        return iter(self.layers)

    def __getitem__(self, index: int) -> Layer:
        return self.layers[index]

    def add_layer(self, name: Optional[str] = None) -> Layer:
        layer = Layer(name=name or f"Layer {len(self.layers) + 1}")
        self.layers.append(layer)
        return layer

    def remove_layer(self, layer_idx: int) -> Layer:
        return self.layers.pop(layer_idx)

    def rename_layer(self, layer_idx: int, name: str) -> None:
        self.layers[layer_idx].name = name

    def toggle_collapsed(self, layer_idx: int) -> bool:
        layer = self.layers[layer_idx]
        layer.collapsed = not layer.collapsed
        return layer.collapsed

    def add_traits(self, layer_idx: int, traits: Iterable[Trait]) -> None:
        self.layers[layer_idx].traits.extend(traits)

    def add_trait_files(self, layer_idx: int, paths: Iterable[Path]) -> List[Trait]:
        added = [Trait.from_file(Path(p)) for p in paths]
        self.add_traits(layer_idx, added)
        return added

    def remove_trait(self, layer_idx: int, trait_idx: int) -> Trait:
        return self.layers[layer_idx].traits.pop(trait_idx)

    def duplicate_trait(self, layer_idx: int, trait_idx: int) -> Trait:
        """Insert a copy with a fresh id right after the original."""
        traits = self.layers[layer_idx].traits
        copy = replace(traits[trait_idx], id=_new_id())
        traits.insert(trait_idx + 1, copy)
        return copy

    def rename_trait(self, layer_idx: int, trait_idx: int, display_name: str) -> None:
        self.layers[layer_idx].traits[trait_idx].display_name = display_name

    def set_rarity(self, layer_idx: int, trait_idx: int, rarity: float) -> None:
        if not MIN_RARITY <= rarity <= MAX_RARITY:
            raise ConfigError(
                f"rarity must be within [{MIN_RARITY}, {MAX_RARITY}], got {rarity}"
            )
        self.layers[layer_idx].traits[trait_idx].rarity = rarity

    def has_traits(self) -> bool:
        return any(layer.traits for layer in self.layers)


def load_layer_stack(
    assets_dir: Path,
    layer_entries: Optional[List[Dict[str, Any]]] = None,
) -> LayerStack:
    """
    Build a LayerStack from a folder tree: one sub-folder per layer, one
    image file per trait.

    Without `layer_entries`, every sub-folder becomes a layer, sorted by name.
    With it, only the listed layers are loaded, in the listed order. Each entry
    looks like:

        {"name": "Background", "dir": "bg",
         "traits": {"red.png": {"rarity": 5, "name": "Red"}}}

    `dir` defaults to `name`; trait overrides are keyed by file name.
    """
    if not assets_dir.is_dir():
        raise ConfigError(f"assets directory not found: {assets_dir}")

    if layer_entries is None:
        layer_entries = [
            {"name": child.name}
            for child in sorted(assets_dir.iterdir(), key=lambda p: p.name.lower())
            if child.is_dir() and not child.name.startswith(".")
        ]

    stack = LayerStack()
    for entry in layer_entries:
        if "name" not in entry:
            raise ConfigError(f"layer entry without a name: {entry!r}")
        layer = stack.add_layer(str(entry["name"]))
        overrides = entry.get("traits") or {}
        for path in find_image_files(assets_dir / entry.get("dir", entry["name"])):
            trait = Trait.from_file(path)
            override = overrides.get(path.name) or {}
            if "rarity" in override:
                trait.rarity = override["rarity"]
            if override.get("name"):
                trait.display_name = str(override["name"])
            layer.traits.append(trait)
    return stack
