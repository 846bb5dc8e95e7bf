from scene_reel.__main__ import parse_args
import pytest
from scene_reel import __main__ as cli


def test_preset_overrides_flags(tmp_path):
    preset = tmp_path / "preset.yaml"
    preset.write_text("fps: 60\ncanvas: square\n")
    manifest = str(tmp_path / "reel.yaml")

    args = parse_args([manifest, "--preset", str(preset)])
    assert args.fps == 60
    assert args.target_size == (1080, 1080)

    args_cli = parse_args([manifest, "--preset", str(preset), "--fps", "24"])
    assert args_cli.fps == 24


def test_size_overrides_canvas():
    args = parse_args(["reel.yaml", "--canvas", "vertical", "--size", "640x360"])
    assert args.target_size == (640, 360)
    assert parse_args(["reel.yaml", "--canvas", "vertical"]).target_size == (1080, 1920)


def test_defaults():
    args = parse_args(["reel.yaml"])
    assert args.fps == 30
    assert args.target_size == (1280, 720)
    assert not args.offline


def test_bad_size_format():
    with pytest.raises(SystemExit):
        parse_args(["reel.yaml", "--size", "big"])


def test_unknown_fps_rejected():
    with pytest.raises(SystemExit):
        parse_args(["reel.yaml", "--fps", "25"])


def test_validate_blocks_odd_size(capsys):
    with pytest.raises(SystemExit):
        cli.main(["reel.yaml", "--validate", "--size", "641x360"])
    err = capsys.readouterr().err
    assert "--size" in err


def test_validate_passes_without_reading_manifest(tmp_path):
    assert cli.main([str(tmp_path / "missing.yaml"), "--validate"]) is None
