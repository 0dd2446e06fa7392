import io
import zipfile

import pytest
from PIL import Image

import rasterbatch.packager as packager
from rasterbatch.config import ExportSettings
from rasterbatch.errors import PackagingFailure
from rasterbatch.models import GeneratedItem, SelectionRecord
from rasterbatch.packager import (
    ArchiveManifest,
    build_description,
    build_name,
    encode_image,
    pack_edited,
    pack_generated,
)

from conftest import BLUE, RED, read_zip


def item(index, color=RED, selections=(), source_name=None):
    return GeneratedItem(
        index=index,
        image=Image.new("RGBA", (4, 4), color),
        selections=tuple(selections),
        source_name=source_name,
    )


@pytest.mark.parametrize(
    "template, index, expected",
    [
        ("NFT #", 7, "NFT #7"),
        ("Collection", 3, "Collection #3"),
        ("", 5, "NFT #5"),
        ("   ", 2, "NFT #2"),
        (None, 4, "NFT #4"),
        ("Memories # of 2024", 9, "Memories #9 of 2024"),
    ],
)
def test_build_name(template, index, expected):
    assert build_name(template, index) == expected


def test_build_description_defaults_when_blank():
    assert build_description("") == "Generated NFT"
    assert build_description("  ") == "Generated NFT"
    assert build_description("made by hand") == "made by hand"


def test_pack_generated_layout():
    records = [SelectionRecord("Background", "Blue"), SelectionRecord("Body", "Robot")]
    data = pack_generated(
        [item(1, selections=records), item(2, BLUE, selections=records[:1])],
        name_template="Bots #",
        description="tiny bots",
    )
    files = read_zip(data)

    assert sorted(files) == [
        "images/1.png",
        "images/2.png",
        "metadata/1.json",
        "metadata/2.json",
        "metadata_index.json",
    ]
    assert files["metadata/1.json"] == {
        "name": "Bots #1",
        "description": "tiny bots",
        "image": "images/1.png",
        "attributes": [
            {"trait_type": "Background", "value": "Blue"},
            {"trait_type": "Body", "value": "Robot"},
        ],
    }
    assert files["metadata_index.json"] == [files["metadata/1.json"], files["metadata/2.json"]]
    decoded = Image.open(io.BytesIO(files["images/2.png"]))
    assert decoded.size == (4, 4)
    assert decoded.convert("RGBA").getpixel((0, 0)) == BLUE


def test_failed_items_leave_a_gap():
    failed = GeneratedItem(index=2, image=None, error="boom")
    files = read_zip(pack_generated([item(1), failed, item(3)], "NFT #", ""))

    assert "images/2.png" not in files
    assert "metadata/2.json" not in files
    index = files["metadata_index.json"]
    assert len(index) == 3
    assert index[1] is None
    assert [entry["name"] for entry in (index[0], index[2])] == ["NFT #1", "NFT #3"]


def test_pack_edited_uses_source_names_and_format():
    export = ExportSettings(export_format="lossy", jpg_quality=0.7)
    data = pack_edited(
        [item(1, source_name="beach.day.PNG"), item(2, source_name="cat.png")],
        export=export,
        name_template="",
        description="",
    )
    files = read_zip(data)

    assert "images/beach.day.jpg" in files
    assert "images/cat.jpg" in files
    assert files["metadata/cat.json"]["image"] == "images/cat.jpg"
    assert files["metadata/cat.json"]["name"] == "NFT #2"
    assert files["metadata/cat.json"]["description"] == "Generated NFT"
    assert Image.open(io.BytesIO(files["images/cat.jpg"])).format == "JPEG"


def test_pack_edited_deduplicates_names():
    data = pack_edited(
        [item(1, source_name="a.png"), item(2, source_name="a.jpg")],
        export=ExportSettings(),
        name_template="x",
        description="d",
    )
    assert {"images/a.png", "images/a-2.png"} <= set(read_zip(data))


def test_pack_edited_suffix_never_collides_with_a_real_name():
    data = pack_edited(
        [
            item(1, source_name="a.png"),
            item(2, source_name="a.jpg"),
            item(3, source_name="a-2.png"),
        ],
        export=ExportSettings(),
        name_template="x",
        description="d",
    )
    names = zipfile.ZipFile(io.BytesIO(data)).namelist()

    assert len(names) == len(set(names)) == 7
    files = read_zip(data)
    assert [entry["image"] for entry in files["metadata_index.json"]] == [
        "images/a.png",
        "images/a-2.png",
        "images/a-2-2.png",
    ]


def test_encode_image_formats():
    img = Image.new("RGBA", (8, 8), RED)
    png = encode_image(img)
    jpg = encode_image(img, ExportSettings(export_format="lossy", jpg_quality=0.5))
    assert png.startswith(b"\x89PNG")
    assert jpg.startswith(b"\xff\xd8")


def test_packaging_errors_are_fatal(monkeypatch):
    def broken(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(packager, "encode_image", broken)
    with pytest.raises(PackagingFailure):
        pack_generated([item(1)], "NFT #", "")


def test_manifest_is_write_once():
    manifest = ArchiveManifest(records=({"name": "a"},))
    with pytest.raises(AttributeError):
        manifest.records = ()
    assert manifest.index == [{"name": "a"}]


def test_archive_is_deflated():
    data = pack_generated([item(1)], "NFT #", "")
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        assert all(info.compress_type == zipfile.ZIP_DEFLATED for info in zf.infolist())
