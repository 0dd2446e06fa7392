import run_batch

from conftest import BLUE, RED, read_zip


def test_generate_writes_archive(layer_tree, tmp_path, capsys):
    out = tmp_path / "out"
    code = run_batch.main(
        [
            "--output-dir", str(out),
            "generate", "--assets", str(layer_tree), "--count", "2",
            "--name-template", "Memories", "--seed", "5",
        ]
    )

    assert code == 0
    files = read_zip((out / "memories.zip").read_bytes())
    assert [m["name"] for m in files["metadata_index.json"]] == ["Memories #1", "Memories #2"]
    assert "Rendered 2/2" in capsys.readouterr().out


def test_preview_writes_current_image(layer_tree, tmp_path):
    out = tmp_path / "out"
    code = run_batch.main(
        ["--output-dir", str(out), "preview", "--assets", str(layer_tree), "--count", "3", "--back", "1"]
    )
    assert code == 0
    assert (out / "preview_2.png").exists()


def test_empty_assets_is_not_an_error(tmp_path, capsys):
    assets = tmp_path / "assets"
    assets.mkdir()
    out = tmp_path / "out"

    code = run_batch.main(["--output-dir", str(out), "generate", "--assets", str(assets)])

    assert code == 0
    assert not out.exists()
    assert "No layers to combine." in capsys.readouterr().out


def test_invalid_count_is_reported(layer_tree, tmp_path):
    code = run_batch.main(
        ["--output-dir", str(tmp_path), "generate", "--assets", str(layer_tree), "--count", "900"]
    )
    assert code == 2


def test_edit_all(make_png, tmp_path):
    a = make_png("a.png", RED, size=(10, 6))
    b = make_png("b.png", BLUE)
    out = tmp_path / "out"

    code = run_batch.main(
        [
            "--output-dir", str(out),
            "edit", str(a), str(b),
            "--preset", "bw", "--rotate", "a.png=90", "--format", "lossy", "--quality", "0.7",
        ]
    )

    assert code == 0
    files = read_zip((out / "edited_images.zip").read_bytes())
    assert {"images/a.jpg", "images/b.jpg"} <= set(files)


def test_edit_single_selection(make_png, tmp_path):
    a = make_png("a.png")
    b = make_png("b.png")
    out = tmp_path / "out"

    code = run_batch.main(["--output-dir", str(out), "edit", str(a), str(b), "--select", "b.png"])

    assert code == 0
    assert (out / "b.png").exists()


def test_edit_repeated_select_keeps_the_image(make_png, tmp_path):
    a = make_png("a.png")
    b = make_png("b.png")
    out = tmp_path / "out"

    code = run_batch.main(
        [
            "--output-dir", str(out),
            "edit", str(a), str(b),
            "--select", "b.png",
            "--select", "b.png",
        ]
    )

    assert code == 0
    assert (out / "b.png").exists()
    assert not (out / "edited_images.zip").exists()


def test_edit_unknown_name(make_png, tmp_path):
    a = make_png("a.png")
    code = run_batch.main(["--output-dir", str(tmp_path), "edit", str(a), "--rotate", "z.png=90"])
    assert code == 2
