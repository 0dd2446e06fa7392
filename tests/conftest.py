"""Shared fixtures: tiny generated images on disk and in memory."""
from __future__ import annotations

import io
import json
import zipfile
from pathlib import Path

import pytest
from PIL import Image

from rasterbatch.config import ENV_PREFIX

RED = (255, 0, 0, 255)
GREEN = (0, 255, 0, 255)
BLUE = (0, 0, 255, 255)
CLEAR = (0, 0, 0, 0)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep a developer's RASTERBATCH_* variables out of the tests."""
    for key in ("COUNT", "SEED", "NAME_TEMPLATE", "DESCRIPTION", "EXPORT_FORMAT", "JPG_QUALITY"):
        monkeypatch.delenv(ENV_PREFIX + key, raising=False)


@pytest.fixture
def make_png(tmp_path):
    """Write a solid-color PNG and return its path."""

    def _make(name: str, color=RED, size=(16, 16), folder: Path | None = None) -> Path:
        folder = folder or tmp_path
        folder.mkdir(parents=True, exist_ok=True)
        path = folder / name
        Image.new("RGBA", size, color).save(path, format="PNG")
        return path

    return _make


@pytest.fixture
def png_bytes():
    def _bytes(color=RED, size=(16, 16)) -> bytes:
        buf = io.BytesIO()
        Image.new("RGBA", size, color).save(buf, format="PNG")
        return buf.getvalue()

    return _bytes


@pytest.fixture
def layer_tree(tmp_path, make_png):
    """
    assets/
      background/  blue.png  green.png
      body/        red.png
      eyes/        (empty)
    """
    root = tmp_path / "assets"
    make_png("blue.png", BLUE, folder=root / "background")
    make_png("green.png", GREEN, folder=root / "background")
    make_png("red.png", RED, size=(8, 8), folder=root / "body")
    (root / "eyes").mkdir(parents=True)
    return root


def read_zip(data: bytes) -> dict:
    """Archive contents keyed by path; JSON files are decoded."""
    out = {}
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        for name in zf.namelist():
            raw = zf.read(name)
            out[name] = json.loads(raw) if name.endswith(".json") else raw
    return out


def close(pixel, color, tolerance=3) -> bool:
    return all(abs(a - b) <= tolerance for a, b in zip(pixel, color))
