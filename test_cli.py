"""Tests for the command-line interface."""

from datetime import datetime
from unittest.mock import patch

import pytest

from nameforge.cli import build_parser, config_from_args, main
from nameforge.content import CaseStyle
from nameforge.testing import FakeGeocoder, write_test_image


@pytest.fixture(autouse=True)
def offline_geocoder():
    with patch("nameforge.geocoding.NominatimGeocoder", return_value=FakeGeocoder(default="Paris")):
        yield


def test_defaults():
    args = build_parser().parse_args(["photos"])
    config = config_from_args(args)

    assert not config.dry_run
    assert not config.organize_by_date
    assert not config.use_full_timestamp
    assert not config.ai_enabled
    assert config.ai_model == "llava:13b"
    assert config.ai_max_chars == 20
    assert config.ai_case is CaseStyle.LOWERCASE
    assert config.ai_language == "English"
    assert config.max_images is None


def test_options():
    args = build_parser().parse_args([
        "photos", "--dry-run", "--organize-by-date", "--full-timestamp",
        "--ai-content", "--ai-case", "snake_case", "--ai-max-chars", "12",
        "--ai-language", "German", "--max-images", "5", "--use-file-date", "--no-date",
    ])
    config = config_from_args(args)

    assert config.dry_run and config.organize_by_date and config.use_full_timestamp
    assert config.ai_enabled
    assert config.ai_case is CaseStyle.SNAKE_CASE
    assert config.ai_max_chars == 12
    assert config.ai_language == "German"
    assert config.max_images == 5
    assert config.use_file_date and config.no_date


@pytest.mark.parametrize("argv", [
    ["photos", "--ai-case", "titlecase"],
    ["photos", "--ai-max-chars", "0"],
    ["photos", "--max-images", "-1"],
])
def test_invalid_options(argv):
    with pytest.raises(SystemExit):
        build_parser().parse_args(argv)


def test_missing_input_exits_non_zero(tmp_path, capsys):
    assert main([str(tmp_path / "missing"), "--cache-file", str(tmp_path / "c.json")]) == 1
    assert "does not exist" in capsys.readouterr().err


def test_dry_run_report(tmp_path, capsys):
    photos = tmp_path / "photos"
    photos.mkdir()
    for name in ("a.jpg", "b.jpg"):
        write_test_image(photos / name, modified=datetime(2024, 1, 1, 12, 0, 0))

    assert main([str(photos), "--dry-run", "--cache-file", str(tmp_path / "c.json")]) == 0

    out = capsys.readouterr().out
    assert "DRY RUN" in out
    assert f"WOULD RENAME: {photos / 'a.jpg'} -> {photos / '2024-01-01_NoGPS.jpg'}" in out
    assert f"WOULD RENAME: {photos / 'b.jpg'} -> {photos / '2024-01-01_NoGPS_2.jpg'}" in out
    assert "2 ok, 0 failed" in out
    assert "2 file(s) named with fallbacks" in out
    assert sorted(p.name for p in photos.iterdir()) == ["a.jpg", "b.jpg"]


def test_live_run_renames(tmp_path, capsys):
    photos = tmp_path / "photos"
    photos.mkdir()
    write_test_image(photos / "a.jpg", exif_datetime="2023:07:14 18:30:05")

    assert main([str(photos), "--cache-file", str(tmp_path / "c.json")]) == 0

    assert [p.name for p in photos.iterdir()] == ["2023-07-14_NoGPS.jpg"]
    assert "RENAMED" in capsys.readouterr().out


def test_interrupt_exits_non_zero(tmp_path, capsys):
    photos = tmp_path / "photos"
    photos.mkdir()
    with patch("nameforge.cli.PhotoRenamer.process_folder", side_effect=KeyboardInterrupt):
        assert main([str(photos), "--cache-file", str(tmp_path / "c.json")]) == 1
    assert "cancelled" in capsys.readouterr().err
