"""
EXIF metadata extraction for image files.
"""

from datetime import datetime
from pathlib import Path
from typing import NamedTuple, Optional, Tuple

import exifread
from PIL import Image
from PIL.ExifTags import GPSTAGS, TAGS

from .logging_config import get_logger

logger = get_logger(__name__)

SUPPORTED_EXTENSIONS = {
    '.jpg', '.jpeg', '.png', '.tiff', '.tif', '.bmp', '.webp',
    '.heic', '.heif', '.raw', '.cr2', '.nef', '.arw',
}

EXIF_IFD = 0x8769
GPS_IFD = 0x8825

EXIF_DATE_FORMATS = ("%Y:%m:%d %H:%M:%S", "%Y-%m-%d %H:%M:%S")

# Most specific first
PIL_DATE_TAGS = ("DateTimeOriginal", "DateTimeDigitized", "DateTime")
EXIFREAD_DATE_TAGS = ("EXIF DateTimeOriginal", "EXIF DateTimeDigitized", "Image DateTime")


class PhotoMetadata(NamedTuple):
    """Metadata read once per file."""
    filepath: Path
    modification_time: datetime
    capture_timestamp: Optional[datetime] = None
    gps_coordinate: Optional[Tuple[float, float]] = None


def parse_exif_datetime(value) -> Optional[datetime]:
    """Parse an EXIF date string; return None for blanks and garbage."""
    text = str(value).strip().strip("\x00").strip()
    for fmt in EXIF_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            pass
    return None


def dms_to_decimal(coords, ref) -> Optional[float]:
    """Convert degrees/minutes/seconds to signed decimal degrees."""
    try:
        if len(coords) < 3:
            return None
        degrees = float(coords[0])
        minutes = float(coords[1])
        seconds = float(coords[2])
    except (ValueError, TypeError, ZeroDivisionError):
        return None

    decimal = degrees + minutes / 60.0 + seconds / 3600.0

    if isinstance(ref, bytes):
        ref = ref.decode("ascii", errors="ignore")
    if str(ref).strip().upper()[:1] in ("S", "W"):
        decimal = -decimal

    return decimal


def _valid_coordinate(latitude: Optional[float],
                      longitude: Optional[float]) -> Optional[Tuple[float, float]]:
    if latitude is None or longitude is None:
        return None
    if not (-90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0):
        return None
    return (latitude, longitude)


def _read_with_pillow(filepath: Path) -> Tuple[Optional[datetime], Optional[Tuple[float, float]]]:
    capture_timestamp = None
    coordinate = None

    with Image.open(filepath) as img:
        exif = img.getexif()
        if not exif:
            return None, None

        named = {TAGS.get(tag_id, tag_id): value for tag_id, value in exif.items()}
        named.update(
            (TAGS.get(tag_id, tag_id), value)
            for tag_id, value in exif.get_ifd(EXIF_IFD).items()
        )
        for tag in PIL_DATE_TAGS:
            if tag in named:
                capture_timestamp = parse_exif_datetime(named[tag])
                if capture_timestamp:
                    break

        gps_data = {
            GPSTAGS.get(tag_id, tag_id): value
            for tag_id, value in exif.get_ifd(GPS_IFD).items()
        }
        if 'GPSLatitude' in gps_data and 'GPSLongitude' in gps_data:
            coordinate = _valid_coordinate(
                dms_to_decimal(gps_data['GPSLatitude'], gps_data.get('GPSLatitudeRef', 'N')),
                dms_to_decimal(gps_data['GPSLongitude'], gps_data.get('GPSLongitudeRef', 'E')),
            )

    return capture_timestamp, coordinate


def _read_with_exifread(filepath: Path) -> Tuple[Optional[datetime], Optional[Tuple[float, float]]]:
    capture_timestamp = None
    coordinate = None

    with open(filepath, 'rb') as f:
        tags = exifread.process_file(f, details=False)

    for tag in EXIFREAD_DATE_TAGS:
        if tag in tags:
            capture_timestamp = parse_exif_datetime(tags[tag])
            if capture_timestamp:
                break

    if 'GPS GPSLatitude' in tags and 'GPS GPSLongitude' in tags:
        coordinate = _valid_coordinate(
            dms_to_decimal(tags['GPS GPSLatitude'].values,
                           str(tags.get('GPS GPSLatitudeRef', 'N'))),
            dms_to_decimal(tags['GPS GPSLongitude'].values,
                           str(tags.get('GPS GPSLongitudeRef', 'E'))),
        )

    return capture_timestamp, coordinate


def read_metadata(filepath: Path) -> PhotoMetadata:
    """
    Read capture time and GPS position from a photo.

    Pillow is tried first; exifread fills in whatever Pillow could not read
    (HEIC and most RAW formats). Missing or broken EXIF just means the
    corresponding field is None.

    Raises:
        OSError: if the file itself cannot be stat'ed (e.g. deleted mid-run).
    """
    modification_time = datetime.fromtimestamp(filepath.stat().st_mtime)
    capture_timestamp = None
    coordinate = None

    try:
        capture_timestamp, coordinate = _read_with_pillow(filepath)
    except Exception as e:
        logger.debug(f"Pillow could not read EXIF from {filepath.name}: {e}")

    if capture_timestamp is None or coordinate is None:
        try:
            fallback_timestamp, fallback_coordinate = _read_with_exifread(filepath)
            capture_timestamp = capture_timestamp or fallback_timestamp
            coordinate = coordinate or fallback_coordinate
        except Exception as e:
            logger.warning(f"Could not extract metadata from {filepath.name}: {e}")

    return PhotoMetadata(
        filepath=filepath,
        modification_time=modification_time,
        capture_timestamp=capture_timestamp,
        gps_coordinate=coordinate,
    )
