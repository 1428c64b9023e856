"""Fake collaborators and fixtures for tests."""

import io
import os
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from PIL import Image

from .exceptions import ContentAnalysisError, GeocodingError


class FakeGeocoder:
    """Geocoder that answers from a dict and records every call."""

    def __init__(self, places: Optional[Dict[Tuple[float, float], str]] = None,
                 default: Optional[str] = None, fail: bool = False):
        self.places = places or {}
        self.default = default
        self.fail = fail
        self.calls: List[Tuple[float, float]] = []

    def reverse(self, latitude: float, longitude: float) -> Optional[str]:
        self.calls.append((latitude, longitude))
        if self.fail:
            raise GeocodingError("Simulated geocoding failure")
        return self.places.get((latitude, longitude), self.default)


class FakeContentClient:
    """Content client returning a canned phrase."""

    def __init__(self, response: Optional[str] = None, fail: bool = False):
        self.response = response
        self.fail = fail
        self.calls: List[Tuple[int, str, str]] = []

    def analyze(self, image_bytes: bytes, model: str, prompt: str) -> Optional[str]:
        self.calls.append((len(image_bytes), model, prompt))
        if self.fail:
            raise ContentAnalysisError("Simulated AI failure")
        return self.response


def create_test_image(width: int = 8, height: int = 8, fmt: str = "JPEG",
                      exif_datetime: Optional[str] = None) -> bytes:
    """Create a small image, optionally carrying an EXIF DateTime tag."""
    img = Image.new("RGB", (width, height), color="red")
    buffer = io.BytesIO()
    if exif_datetime is not None:
        exif = Image.Exif()
        exif[306] = exif_datetime  # DateTime
        img.save(buffer, format=fmt, exif=exif)
    else:
        img.save(buffer, format=fmt)
    return buffer.getvalue()


def write_test_image(path: Path, modified: Optional[datetime] = None, **kwargs) -> Path:
    """Write a test image to path, optionally setting its modification time."""
    path.write_bytes(create_test_image(**kwargs))
    if modified is not None:
        timestamp = modified.timestamp()
        os.utime(path, (timestamp, timestamp))
    return path
