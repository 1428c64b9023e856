"""
Persistent cache of reverse-geocoding results keyed by rounded coordinates.
"""

import json
import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Dict, NamedTuple, Optional, Union

from .logging_config import get_logger

logger = get_logger(__name__)

# Two decimal places groups points within roughly a kilometre
CACHE_PRECISION = 2

CACHE_ENV_VAR = "NAMEFORGE_CACHE"
DEFAULT_CACHE_FILENAME = ".nameforge_cache.json"

# Older cache files stored failed lookups as this literal string
LEGACY_NOT_FOUND = "UnknownPlace"


class LookupStatus(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    UNSET = "unset"


class CacheEntry(NamedTuple):
    """Cached outcome of a reverse lookup: Found(place) | NotFound | Unset."""
    status: LookupStatus
    place: Optional[str] = None

    @classmethod
    def found(cls, place: str) -> "CacheEntry":
        return cls(LookupStatus.FOUND, place)

    @property
    def is_set(self) -> bool:
        return self.status is not LookupStatus.UNSET


NOT_FOUND = CacheEntry(LookupStatus.NOT_FOUND)
UNSET = CacheEntry(LookupStatus.UNSET)


def default_cache_path() -> Path:
    """Return the cache path from NAMEFORGE_CACHE or the home directory."""
    override = os.getenv(CACHE_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / DEFAULT_CACHE_FILENAME


def make_cache_key(latitude: float, longitude: float,
                   precision: int = CACHE_PRECISION) -> str:
    """Round a coordinate to the cache precision and render it as a key."""
    # Adding 0.0 turns -0.0 into 0.0 so both sides of zero share a key
    lat = round(latitude, precision) + 0.0
    lon = round(longitude, precision) + 0.0
    return f"{lat:.{precision}f}_{lon:.{precision}f}"


def _decode_entry(value: Union[str, None]) -> Optional[CacheEntry]:
    if value is None or value == LEGACY_NOT_FOUND:
        return NOT_FOUND
    if isinstance(value, str) and value.strip():
        return CacheEntry.found(value)
    return None


class LocationCache:
    """
    Key -> CacheEntry store with an explicit load/save lifecycle.

    Loading never fails: a missing or corrupt file yields an empty cache.
    Saving is best-effort: a failed write is logged and the run goes on.
    """

    def __init__(self, path: Optional[Path] = None,
                 entries: Optional[Dict[str, CacheEntry]] = None):
        self.path = Path(path) if path is not None else default_cache_path()
        self._entries: Dict[str, CacheEntry] = dict(entries or {})
        self.dirty = False

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "LocationCache":
        cache = cls(path)
        if not cache.path.exists():
            return cache

        try:
            with open(cache.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable location cache {cache.path}: {e}")
            return cache

        raw = data.get("cache") if isinstance(data, dict) else None
        if not isinstance(raw, dict):
            logger.warning(f"Ignoring malformed location cache {cache.path}")
            return cache

        for key, value in raw.items():
            entry = _decode_entry(value) if isinstance(key, str) else None
            if entry is None:
                logger.debug(f"Skipping invalid cache entry {key!r}: {value!r}")
                continue
            cache._entries[key] = entry

        logger.info(f"Loaded location cache with {len(cache)} entries")
        return cache

    def save(self) -> bool:
        """Write the cache to disk. Returns False if the write failed."""
        payload = {
            "cache": {
                key: entry.place if entry.status is LookupStatus.FOUND else None
                for key, entry in sorted(self._entries.items())
            }
        }
        temp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # The previous cache stays in place until the new one is complete
            with tempfile.NamedTemporaryFile("w", encoding="utf-8", dir=self.path.parent,
                                             prefix=f"{self.path.name}.", suffix=".tmp",
                                             delete=False) as f:
                temp_path = Path(f.name)
                json.dump(payload, f, indent=2, ensure_ascii=False)
            os.replace(temp_path, self.path)
        except OSError as e:
            logger.warning(f"Failed to save location cache {self.path}: {e}")
            return False
        finally:
            if temp_path is not None and temp_path.exists():
                temp_path.unlink()

        self.dirty = False
        logger.info(f"Saved location cache with {len(self)} entries")
        return True

    def get(self, key: str) -> CacheEntry:
        return self._entries.get(key, UNSET)

    def put(self, key: str, entry: CacheEntry) -> None:
        if not entry.is_set:
            raise ValueError("Cannot store an unset cache entry")
        self._entries[key] = entry
        self.dirty = True

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

