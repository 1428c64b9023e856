#!/usr/bin/env python3
"""Tests for EXIF date and GPS extraction."""

import os
from datetime import datetime
from fractions import Fraction
from unittest.mock import Mock, patch

import pytest

from nameforge.metadata import dms_to_decimal, parse_exif_datetime, read_metadata
from nameforge.testing import write_test_image


class TestDmsToDecimal:

    def test_north_east(self):
        assert dms_to_decimal((48, 51, 23.76), 'N') == pytest.approx(48.8566)
        assert dms_to_decimal((2, 21, 7.92), 'E') == pytest.approx(2.3522)

    def test_south_west(self):
        assert dms_to_decimal((33, 52, 7.68), 'S') == pytest.approx(-33.8688)
        assert dms_to_decimal((122, 24, 48.6), 'W') == pytest.approx(-122.4135)

    def test_rational_values_and_bytes_ref(self):
        coords = (Fraction(37, 1), Fraction(43, 1), Fraction(4440, 100))
        assert dms_to_decimal(coords, b'N\x00') == pytest.approx(37.729)

    @pytest.mark.parametrize("coords", [(), (1, 2), ("a", "b", "c")])
    def test_invalid(self, coords):
        assert dms_to_decimal(coords, 'N') is None


class TestParseExifDatetime:

    @pytest.mark.parametrize("value", [
        "2023:07:14 18:30:05",
        "2023-07-14 18:30:05",
        " 2023:07:14 18:30:05\x00",
    ])
    def test_supported_formats(self, value):
        assert parse_exif_datetime(value) == datetime(2023, 7, 14, 18, 30, 5)

    @pytest.mark.parametrize("value", ["", "0000:00:00 00:00:00", "yesterday"])
    def test_garbage(self, value):
        assert parse_exif_datetime(value) is None


class TestReadMetadata:

    def test_exif_datetime_is_read(self, tmp_path):
        path = write_test_image(tmp_path / "a.jpg", exif_datetime="2023:07:14 18:30:05")
        metadata = read_metadata(path)
        assert metadata.capture_timestamp == datetime(2023, 7, 14, 18, 30, 5)
        assert metadata.gps_coordinate is None

    def test_no_exif(self, tmp_path):
        modified = datetime(2024, 1, 1, 12, 0, 0)
        path = write_test_image(tmp_path / "a.jpg", modified=modified)
        metadata = read_metadata(path)
        assert metadata.capture_timestamp is None
        assert metadata.gps_coordinate is None
        assert metadata.modification_time == modified

    def test_png_without_exif(self, tmp_path):
        path = write_test_image(tmp_path / "a.png", fmt="PNG")
        assert read_metadata(path).capture_timestamp is None

    def test_not_an_image_is_absent_data(self, tmp_path):
        path = tmp_path / "broken.jpg"
        path.write_bytes(b"\xff\xd8 truncated garbage")
        metadata = read_metadata(path)
        assert metadata.capture_timestamp is None
        assert metadata.gps_coordinate is None

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(OSError):
            read_metadata(tmp_path / "gone.jpg")

    def test_gps_from_exifread(self, tmp_path):
        path = write_test_image(tmp_path / "a.jpg")
        tags = {
            'GPS GPSLatitude': Mock(values=[48, 51, Fraction(2376, 100)]),
            'GPS GPSLatitudeRef': 'N',
            'GPS GPSLongitude': Mock(values=[2, 21, Fraction(792, 100)]),
            'GPS GPSLongitudeRef': 'E',
            'EXIF DateTimeOriginal': '2022:05:01 08:00:00',
        }
        with patch("nameforge.metadata.exifread.process_file", return_value=tags):
            metadata = read_metadata(path)

        latitude, longitude = metadata.gps_coordinate
        assert latitude == pytest.approx(48.8566)
        assert longitude == pytest.approx(2.3522)
        assert metadata.capture_timestamp == datetime(2022, 5, 1, 8, 0, 0)

    def test_out_of_range_gps_is_ignored(self, tmp_path):
        path = write_test_image(tmp_path / "a.jpg")
        tags = {
            'GPS GPSLatitude': Mock(values=[148, 0, 0]),
            'GPS GPSLongitude': Mock(values=[2, 0, 0]),
        }
        with patch("nameforge.metadata.exifread.process_file", return_value=tags):
            assert read_metadata(path).gps_coordinate is None

    def test_exifread_failure_is_soft(self, tmp_path):
        path = write_test_image(tmp_path / "a.jpg")
        os.utime(path, (0, 0))
        with patch("nameforge.metadata.exifread.process_file", side_effect=RuntimeError("boom")):
            metadata = read_metadata(path)
        assert metadata.capture_timestamp is None
        assert metadata.modification_time == datetime.fromtimestamp(0)
