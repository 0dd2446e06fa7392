import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

from .errors import ConfigError
from .render import CANVAS_SIZE, Size


ExportFormat = Literal["lossless", "lossy"]

DEFAULT_GENERATE_COUNT = 10
MAX_GENERATE_COUNT = 500
DEFAULT_NAME_TEMPLATE = "NFT #"
DEFAULT_JPG_QUALITY = 0.9

JPG_QUALITY_RANGE = (0.5, 1.0)
BRIGHTNESS_RANGE = (0.5, 2.0)
CONTRAST_RANGE = (0.5, 2.0)
SATURATION_RANGE = (0.0, 3.0)
HUE_RANGE = (0.0, 360.0)

ENV_PREFIX = "RASTERBATCH_"


def check_range(name: str, value: float, bounds: Tuple[float, float]) -> float:
    low, high = bounds
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got {value!r}") from None
    if not low <= number <= high:
        raise ConfigError(f"{name} must be within [{low}, {high}], got {number}")
    return number


def check_count(value: Any) -> int:
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"generate_count must be an integer, got {value!r}") from None
    if not 1 <= count <= MAX_GENERATE_COUNT:
        raise ConfigError(
            f"generate_count must be within [1, {MAX_GENERATE_COUNT}], got {count}"
        )
    return count


def check_size(value: Any) -> Size:
    try:
        width, height = (int(v) for v in value)
    except (TypeError, ValueError):
        raise ConfigError(
            f"canvas_size must be a [width, height] pair, got {value!r}"
        ) from None
    if width < 1 or height < 1:
        raise ConfigError(f"canvas_size must be positive, got {value!r}")
    return (width, height)


@dataclass(frozen=True)
class FilterSettings:
    """Global color adjustments shared by every image in an edit batch."""

    brightness: float = 1.0
    contrast: float = 1.0
    saturation: float = 1.0
    hue: float = 0.0

    def __post_init__(self) -> None:
        check_range("brightness", self.brightness, BRIGHTNESS_RANGE)
        check_range("contrast", self.contrast, CONTRAST_RANGE)
        check_range("saturation", self.saturation, SATURATION_RANGE)
        check_range("hue", self.hue, HUE_RANGE)

    def is_identity(self) -> bool:
        return self == IDENTITY_FILTERS

    def as_css(self) -> str:
        return (
            f"brightness({self.brightness}) contrast({self.contrast}) "
            f"saturate({self.saturation}) hue-rotate({self.hue}deg)"
        )


IDENTITY_FILTERS = FilterSettings()

# Named shortcuts; applying one replaces all four values at once.
PRESETS: Dict[str, FilterSettings] = {
    "auto": FilterSettings(brightness=1.05, contrast=1.08, saturation=1.12, hue=0),
    "bw": FilterSettings(brightness=1, contrast=1.05, saturation=0, hue=0),
    "vintage": FilterSettings(brightness=0.98, contrast=0.95, saturation=0.85, hue=5),
    "tang": FilterSettings(brightness=1.04, contrast=1.06, saturation=1.35, hue=18),
}


def get_preset(name: str) -> FilterSettings:
    try:
        return PRESETS[name]
    except KeyError:
        raise ConfigError(
            f"unknown preset '{name}', expected one of: {', '.join(PRESETS)}"
        ) from None


@dataclass(frozen=True)
class ExportSettings:
    export_format: ExportFormat = "lossless"
    # Only read when export_format is "lossy".
    jpg_quality: float = DEFAULT_JPG_QUALITY

    def __post_init__(self) -> None:
        if self.export_format not in ("lossless", "lossy"):
            raise ConfigError(
                f"export_format must be 'lossless' or 'lossy', got {self.export_format!r}"
            )
        quality = check_range("jpg_quality", self.jpg_quality, JPG_QUALITY_RANGE)
        object.__setattr__(self, "jpg_quality", quality)

    @property
    def extension(self) -> str:
        return "png" if self.export_format == "lossless" else "jpg"


@dataclass(frozen=True)
class GenerationSettings:
    generate_count: int = DEFAULT_GENERATE_COUNT
    meta_name_template: str = DEFAULT_NAME_TEMPLATE
    meta_description: str = ""
    seed: Optional[int] = None
    canvas_size: Size = CANVAS_SIZE

    def __post_init__(self) -> None:
        check_count(self.generate_count)
        object.__setattr__(self, "canvas_size", check_size(self.canvas_size))


@dataclass
class ProjectConfig:
    """
    Everything a run needs, as loaded from a project JSON file:

        {
          "assets_dir": "layers",
          "layers": [{"name": "Background", "dir": "bg"}],
          "generate_count": 25,
          "name_template": "Memories #",
          "description": "generated memories",
          "seed": 7,
          "export_format": "lossy",
          "jpg_quality": 0.8,
          "canvas_size": [512, 512],
          "filters": {"brightness": 1.1},
          "preset": "vintage"
        }

    Relative `assets_dir` paths resolve against the JSON file's folder.
    """

    generation: GenerationSettings = field(default_factory=GenerationSettings)
    export: ExportSettings = field(default_factory=ExportSettings)
    filters: FilterSettings = IDENTITY_FILTERS
    assets_dir: Optional[Path] = None
    layers: Optional[List[Dict[str, Any]]] = None


def load_project(
    path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> ProjectConfig:
    data: Dict[str, Any] = {}
    if path is not None:
        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"could not read project file {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"project file {path} must contain a JSON object")

    env = os.environ if env is None else env

    generation = GenerationSettings(
        generate_count=check_count(
            _env(env, "COUNT", data.get("generate_count", DEFAULT_GENERATE_COUNT))
        ),
        meta_name_template=str(
            _env(env, "NAME_TEMPLATE", data.get("name_template", DEFAULT_NAME_TEMPLATE))
        ),
        meta_description=str(_env(env, "DESCRIPTION", data.get("description", ""))),
        seed=_optional_int(_env(env, "SEED", data.get("seed"))),
        canvas_size=data.get("canvas_size", CANVAS_SIZE),
    )
    export = ExportSettings(
        export_format=_env(env, "EXPORT_FORMAT", data.get("export_format", "lossless")),
        jpg_quality=_env(env, "JPG_QUALITY", data.get("jpg_quality", DEFAULT_JPG_QUALITY)),
    )

    filters = IDENTITY_FILTERS
    if data.get("preset"):
        filters = get_preset(str(data["preset"]))
    if data.get("filters"):
        try:
            filters = replace(filters, **data["filters"])
        except TypeError as exc:
            raise ConfigError(f"invalid filters: {exc}") from exc

    assets_dir = None
    if data.get("assets_dir"):
        assets_dir = Path(data["assets_dir"])
        if path is not None and not assets_dir.is_absolute():
            assets_dir = path.parent / assets_dir

    return ProjectConfig(
        generation=generation,
        export=export,
        filters=filters,
        assets_dir=assets_dir,
        layers=data.get("layers"),
    )


def _env(env: Mapping[str, str], key: str, default: Any) -> Any:
    value = env.get(ENV_PREFIX + key)
    return default if value in (None, "") else value


def _optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"seed must be an integer, got {value!r}") from None
