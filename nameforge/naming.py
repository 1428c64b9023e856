"""
Filename construction: timestamp and descriptive components chosen from
ordered fallback chains, plus collision-free name assignment.
"""

import re
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, List, NamedTuple, Optional, Set, Tuple, TypeVar

from .content import CaseStyle, ContentNamer
from .geocoding import UNKNOWN_PLACE, LocationResolver, is_real_place
from .logging_config import get_logger
from .metadata import PhotoMetadata

logger = get_logger(__name__)

DATE_FORMAT = "%Y-%m-%d"
FULL_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

T = TypeVar("T")
S = TypeVar("S")


class NamingConfig(NamedTuple):
    """Options for one run; immutable once built."""
    use_full_timestamp: bool = False
    organize_by_date: bool = False
    ai_enabled: bool = False
    ai_model: str = "llava:13b"
    ai_max_chars: int = 20
    ai_case: CaseStyle = CaseStyle.LOWERCASE
    ai_language: str = "English"
    dry_run: bool = False
    no_date: bool = False
    use_file_date: bool = False
    max_images: Optional[int] = None


class TimestampSource(Enum):
    EXIF = "exif"
    FILESYSTEM = "filesystem"


class NameSource(Enum):
    GPS = "gps"
    AI = "ai"
    NONE = "none"


class BuiltName(NamedTuple):
    name: str
    timestamp: datetime
    timestamp_source: TimestampSource
    name_source: NameSource


Provider = Tuple[S, Callable[[], Optional[T]]]


def first_available(providers: Iterable[Provider]) -> Tuple[S, T]:
    """Try providers in order; return (source, value) of the first non-None value."""
    for source, provider in providers:
        value = provider()
        if value is not None:
            return source, value
    raise LookupError("No provider produced a value")


def sanitize_component(text: str) -> str:
    """Keep letters, digits, underscores and hyphens. Idempotent."""
    cleaned = re.sub(r'\s+', '_', text.strip())
    cleaned = re.sub(r'[^\w-]', '', cleaned)
    cleaned = re.sub(r'_+', '_', cleaned)
    return cleaned.strip('_-')


def _non_empty(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    return sanitize_component(text) or None


def format_timestamp(timestamp: datetime, full: bool = False) -> str:
    return timestamp.strftime(FULL_TIMESTAMP_FORMAT if full else DATE_FORMAT)


def read_image_bytes(filepath: Path) -> bytes:
    with open(filepath, 'rb') as f:
        return f.read()


class NameBuilder:
    """
    Compose "<timestamp>_<descriptive>.<ext>" for a photo.

    Timestamp chain: EXIF capture time, then file modification time.
    Descriptive chain: GPS place name, then AI phrase, then the GPS
    fallback token (NoGPS / UnknownPlace).
    """

    def __init__(self, config: NamingConfig, location_resolver: LocationResolver,
                 content_namer: Optional[ContentNamer] = None,
                 image_reader: Callable[[Path], bytes] = read_image_bytes):
        self.config = config
        self.location_resolver = location_resolver
        self.content_namer = content_namer if config.ai_enabled else None
        self.image_reader = image_reader

    def timestamp_providers(self, metadata: PhotoMetadata) -> List[Provider]:
        def from_filesystem() -> datetime:
            if not self.config.use_file_date:
                logger.warning(f"No EXIF capture time for {metadata.filepath.name}, "
                               f"falling back to file modified time")
            return metadata.modification_time

        providers: List[Provider] = []
        if not self.config.use_file_date:
            providers.append((TimestampSource.EXIF, lambda: metadata.capture_timestamp))
        providers.append((TimestampSource.FILESYSTEM, from_filesystem))
        return providers

    def descriptive_providers(self, metadata: PhotoMetadata) -> List[Provider]:
        place = self.location_resolver.resolve(metadata.gps_coordinate)

        providers: List[Provider] = [
            (NameSource.GPS, lambda: _non_empty(place) if is_real_place(place) else None),
        ]
        if self.content_namer is not None:
            providers.append((NameSource.AI, lambda: self._describe(metadata.filepath)))
        providers.append((NameSource.NONE, lambda: UNKNOWN_PLACE if is_real_place(place) else place))
        return providers

    def _describe(self, filepath: Path) -> Optional[str]:
        phrase = self.content_namer.describe(self.image_reader(filepath))
        if phrase is None:
            logger.warning(f"No AI description for {filepath.name}, "
                           f"using fallback name")
        return _non_empty(phrase)

    def build(self, metadata: PhotoMetadata) -> BuiltName:
        timestamp_source, timestamp = first_available(self.timestamp_providers(metadata))
        name_source, descriptive = first_available(self.descriptive_providers(metadata))

        extension = metadata.filepath.suffix.lower()
        if self.config.no_date:
            stem = descriptive
        else:
            stem = f"{format_timestamp(timestamp, self.config.use_full_timestamp)}_{descriptive}"

        return BuiltName(
            name=f"{stem}{extension}",
            timestamp=timestamp,
            timestamp_source=timestamp_source,
            name_source=name_source,
        )


class DirectoryNameSet:
    """Names taken in one destination directory, on disk or earlier in the run."""

    def __init__(self, names: Iterable[str] = ()):
        self._names: Set[str] = set(names)

    @classmethod
    def from_directory(cls, directory: Path) -> "DirectoryNameSet":
        if not directory.is_dir():
            return cls()
        return cls(entry.name for entry in directory.iterdir())

    def add(self, name: str) -> None:
        self._names.add(name)

    def discard(self, name: str) -> None:
        self._names.discard(name)

    def __contains__(self, name: str) -> bool:
        return name in self._names

    def __len__(self) -> int:
        return len(self._names)


def resolve_collision(candidate: str, names: DirectoryNameSet) -> str:
    """
    Return candidate, or candidate with _2, _3, ... before the extension,
    whichever is free first. The chosen name is added to names.
    """
    if candidate not in names:
        names.add(candidate)
        return candidate

    path = Path(candidate)
    stem, extension = path.stem, path.suffix
    counter = 2
    while f"{stem}_{counter}{extension}" in names:
        counter += 1

    unique = f"{stem}_{counter}{extension}"
    names.add(unique)
    return unique
