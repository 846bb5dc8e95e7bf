from pathlib import Path

from scene_reel.__main__ import _match_extension, _resolve_out_path


def test_default_name_in_base_folder(tmp_path: Path) -> None:
    path = _resolve_out_path(None, "reel.webm", str(tmp_path))
    assert path == str(tmp_path / "reel.webm")


def test_directory_output(tmp_path: Path) -> None:
    out_dir = tmp_path / "renders"
    out_dir.mkdir()
    path = _resolve_out_path(str(out_dir), "reel.webm", str(tmp_path))
    assert Path(path).parent == out_dir
    assert Path(path).name == "reel.webm"


def test_keep_explicit_name(tmp_path: Path) -> None:
    path = _resolve_out_path(str(tmp_path / "out.webm"), "reel.webm", str(tmp_path))
    assert Path(path).name == "out.webm"


def test_existing_file_not_overwritten(tmp_path: Path) -> None:
    existing = tmp_path / "out.webm"
    existing.write_bytes(b"old")
    path = _resolve_out_path(str(existing), "reel.webm", str(tmp_path))
    assert path != str(existing)
    assert Path(path).name.startswith("out_")
    assert path.endswith(".webm")


def test_match_extension() -> None:
    assert _match_extension("out.webm", "webm") == "out.webm"
    assert _match_extension("out.mp4", "webm") == "out.webm"
    assert _match_extension("out", "mp4") == "out.mp4"
