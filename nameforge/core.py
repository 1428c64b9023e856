"""
Folder orchestration: discover images, name them, and rename or preview.
"""

from pathlib import Path
from typing import Callable, Dict, List, NamedTuple, Optional

from .cache import LocationCache
from .content import ContentClient, ContentNamer
from .exceptions import FileProcessingError, InputPathError
from .geocoding import Geocoder, LocationResolver
from .logging_config import get_logger
from .metadata import SUPPORTED_EXTENSIONS, PhotoMetadata, read_metadata
from .naming import (
    DATE_FORMAT,
    DirectoryNameSet,
    NameBuilder,
    NameSource,
    NamingConfig,
    TimestampSource,
    resolve_collision,
)

logger = get_logger(__name__)

IMAGE_SIGNATURES = (
    b'\xff\xd8',           # JPEG
    b'\x89PNG',            # PNG
    b'GIF87a', b'GIF89a',  # GIF
    b'BM',                 # BMP
    b'RIFF',               # WEBP
    b'II*\x00', b'MM\x00*',  # TIFF and TIFF-based RAW (CR2, NEF, ARW)
)


class NamingResult(NamedTuple):
    """Outcome for a single file, used for the report."""
    original_path: Path
    proposed_name: Optional[str] = None
    applied_name: Optional[str] = None
    target_path: Optional[Path] = None
    timestamp_source: Optional[TimestampSource] = None
    name_source: Optional[NameSource] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def unchanged(self) -> bool:
        return self.ok and self.target_path == self.original_path

    @property
    def fallbacks(self) -> List[str]:
        """Which parts of the name came from a fallback."""
        used = []
        if self.timestamp_source is TimestampSource.FILESYSTEM:
            used.append("file modified time")
        if self.name_source is NameSource.NONE:
            used.append("no place or description")
        return used


def has_image_signature(filepath: Path) -> bool:
    """Cheap check of the first bytes of a file against known image headers."""
    try:
        with open(filepath, 'rb') as f:
            header = f.read(12)
    except OSError:
        return False

    if header.startswith(IMAGE_SIGNATURES):
        return True
    # HEIF/HEIC: ISO base media "ftyp" box at offset 4
    return header[4:8] == b'ftyp'


def is_valid_image(filepath: Path) -> bool:
    if filepath.name.startswith('._'):
        # macOS resource fork
        return False
    if filepath.suffix.lower() not in SUPPORTED_EXTENSIONS:
        return False
    return filepath.is_file() and has_image_signature(filepath)


def discover_images(input_path: Path) -> List[Path]:
    """
    List the images to process, in a stable (sorted) order.

    Raises:
        InputPathError: if the input does not exist, cannot be listed, or is
            a single file that is not a supported image.
    """
    if input_path.is_file():
        if not is_valid_image(input_path):
            raise InputPathError(f"Not a valid image file: {input_path}")
        return [input_path]

    if not input_path.is_dir():
        raise InputPathError(f"Input path does not exist or is not accessible: {input_path}")

    try:
        entries = sorted(input_path.iterdir())
    except OSError as e:
        raise InputPathError(f"Could not open folder {input_path}: {e}") from e

    return [path for path in entries if is_valid_image(path)]


class PhotoRenamer:
    """
    Rename photos as <date>_<place-or-description>.<ext>.

    Owns the location cache for the duration of a run: it is loaded when
    process_folder starts and flushed when it ends, even on interrupt.
    """

    def __init__(self, config: NamingConfig,
                 cache_path: Optional[Path] = None,
                 cache: Optional[LocationCache] = None,
                 geocoder: Optional[Geocoder] = None,
                 content_client: Optional[ContentClient] = None,
                 metadata_reader: Callable[[Path], PhotoMetadata] = read_metadata):
        self.config = config
        self.cache_path = cache_path
        self.cache = cache
        self.geocoder = geocoder
        self.content_client = content_client
        self.metadata_reader = metadata_reader
        self.location_resolver: Optional[LocationResolver] = None
        self.name_builder: Optional[NameBuilder] = None
        self._name_sets: Dict[Path, DirectoryNameSet] = {}

    def _start_run(self) -> None:
        if self.cache is None:
            self.cache = LocationCache.load(self.cache_path)
        self.location_resolver = LocationResolver(self.cache, self.geocoder)

        content_namer = None
        if self.config.ai_enabled:
            content_namer = ContentNamer(
                model=self.config.ai_model,
                max_chars=self.config.ai_max_chars,
                case=self.config.ai_case,
                language=self.config.ai_language,
                client=self.content_client,
            )
        self.name_builder = NameBuilder(self.config, self.location_resolver, content_namer)
        self._name_sets = {}

    def _finish_run(self) -> None:
        if self.cache is not None and self.cache.dirty:
            self.cache.save()

    def process_folder(self, input_path: Path) -> List[NamingResult]:
        """
        Process every image under input_path (or input_path itself if it is
        a file). Per-file failures are recorded in the results; only an
        unusable input path raises.
        """
        filepaths = discover_images(input_path)
        base_folder = input_path if input_path.is_dir() else input_path.parent
        logger.info(f"Found {len(filepaths)} valid image files to process")

        max_images = self.config.max_images
        if max_images is not None and len(filepaths) > max_images:
            logger.info(f"Reached maximum image limit of {max_images}, "
                        f"skipping {len(filepaths) - max_images} files")
            filepaths = filepaths[:max_images]

        results = []
        self._start_run()
        try:
            for filepath in filepaths:
                try:
                    results.append(self.process_file(filepath, base_folder))
                except FileProcessingError as e:
                    logger.error(f"Error processing {filepath.name}: {e}")
                    results.append(NamingResult(original_path=filepath, error=str(e)))
                except Exception as e:
                    logger.exception(f"Unexpected error processing {filepath.name}: {e}")
                    results.append(NamingResult(original_path=filepath, error=str(e)))
        finally:
            self._finish_run()

        return results

    def process_file(self, filepath: Path, base_folder: Path) -> NamingResult:
        logger.info(f"Processing image file: {filepath.name}")

        try:
            metadata = self.metadata_reader(filepath)
            built = self.name_builder.build(metadata)
        except OSError as e:
            raise FileProcessingError(f"Could not read {filepath}: {e}") from e

        target_dir = self._target_directory(filepath, base_folder, built.timestamp)
        names = self._names_for(target_dir)

        in_place = target_dir == filepath.parent
        if in_place:
            # The file gives up its current name; it may be handed straight back
            names.discard(filepath.name)
        applied_name = resolve_collision(built.name, names)

        target_path = target_dir / applied_name
        if not self.config.dry_run:
            try:
                self._apply_rename(filepath, target_path)
            except FileProcessingError:
                if in_place:
                    names.add(filepath.name)
                raise

        return NamingResult(
            original_path=filepath,
            proposed_name=built.name,
            applied_name=applied_name,
            target_path=target_path,
            timestamp_source=built.timestamp_source,
            name_source=built.name_source,
        )

    def _target_directory(self, filepath: Path, base_folder: Path, timestamp) -> Path:
        if self.config.organize_by_date:
            return base_folder / timestamp.strftime(DATE_FORMAT)
        return filepath.parent

    def _names_for(self, directory: Path) -> DirectoryNameSet:
        if directory not in self._name_sets:
            self._name_sets[directory] = DirectoryNameSet.from_directory(directory)
        return self._name_sets[directory]

    def _apply_rename(self, source: Path, target: Path) -> None:
        if source == target:
            return

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if target.exists():
                raise FileProcessingError(f"Target file already exists: {target}")
            source.rename(target)
        except OSError as e:
            raise FileProcessingError(f"Failed to rename {source.name} -> {target}: {e}") from e

        logger.debug(f"Renamed {source} -> {target}")
