"""
Reverse geocoding with a persistent per-neighbourhood cache.
"""

import re
from typing import Optional, Protocol, Tuple

from geopy.exc import GeopyError
from geopy.geocoders import Nominatim

from .cache import NOT_FOUND, CacheEntry, LocationCache, LookupStatus, make_cache_key
from .exceptions import GeocodingError
from .logging_config import get_logger

logger = get_logger(__name__)

NO_GPS = "NoGPS"
UNKNOWN_PLACE = "UnknownPlace"
FALLBACK_TOKENS = (NO_GPS, UNKNOWN_PLACE)

USER_AGENT = "nameforge"
GEOCODE_TIMEOUT = 10
# City level detail from Nominatim
GEOCODE_ZOOM = 10

Coordinate = Tuple[float, float]


class Geocoder(Protocol):
    """Anything that turns a coordinate into a place name."""

    def reverse(self, latitude: float, longitude: float) -> Optional[str]:
        """Return a place name, None when nothing is there, or raise GeocodingError."""
        ...


class NominatimGeocoder:
    """Reverse geocoder backed by OpenStreetMap Nominatim via geopy."""

    def __init__(self, user_agent: str = USER_AGENT, timeout: int = GEOCODE_TIMEOUT,
                 language: str = "en"):
        self.geocoder = Nominatim(user_agent=user_agent)
        self.timeout = timeout
        self.language = language

    def reverse(self, latitude: float, longitude: float) -> Optional[str]:
        logger.info(f"Resolving GPS coordinates ({latitude:.6f}, {longitude:.6f})...")
        try:
            location = self.geocoder.reverse(
                (latitude, longitude),
                zoom=GEOCODE_ZOOM,
                language=self.language,
                timeout=self.timeout,
            )
        except GeopyError as e:
            raise GeocodingError(f"Geocoding failed: {e}") from e

        if not location or not location.address:
            return None

        # "Paris, Île-de-France, France" -> "Paris"
        return location.address.split(",")[0].strip() or None


def clean_place_name(place: str) -> str:
    """Make a place name safe to embed in a filename."""
    cleaned = re.sub(r'[<>:"/\\|?*]', '', place)
    cleaned = re.sub(r'\s+', '_', cleaned.strip())
    cleaned = re.sub(r'_+', '_', cleaned)
    return cleaned.strip('_')


def is_real_place(place: Optional[str]) -> bool:
    return bool(place) and place not in FALLBACK_TOKENS


class LocationResolver:
    """
    Resolve GPS coordinates to place names through a LocationCache.

    Each rounded key hits the geocoder at most once per run. Failed lookups
    are cached as NOT_FOUND and are not retried.
    """

    def __init__(self, cache: LocationCache, geocoder: Optional[Geocoder] = None):
        self.cache = cache
        self.geocoder = geocoder if geocoder is not None else NominatimGeocoder()
        self.lookups = 0

    def resolve(self, coordinate: Optional[Coordinate]) -> str:
        """Return a place name, or the NO_GPS / UNKNOWN_PLACE token."""
        if coordinate is None:
            return NO_GPS

        latitude, longitude = coordinate
        key = make_cache_key(latitude, longitude)

        entry = self.cache.get(key)
        if entry.is_set:
            logger.debug(f"Location cache hit for {key}")
            return entry.place if entry.status is LookupStatus.FOUND else UNKNOWN_PLACE

        entry = self._lookup(latitude, longitude)
        self.cache.put(key, entry)
        return entry.place if entry.status is LookupStatus.FOUND else UNKNOWN_PLACE

    def _lookup(self, latitude: float, longitude: float) -> CacheEntry:
        self.lookups += 1
        try:
            place = self.geocoder.reverse(latitude, longitude)
        except (GeocodingError, OSError) as e:
            logger.warning(f"Geocoding ({latitude:.6f}, {longitude:.6f}) failed, "
                           f"using {UNKNOWN_PLACE}: {e}")
            return NOT_FOUND
        except Exception as e:
            logger.warning(f"Unexpected geocoding error for ({latitude:.6f}, {longitude:.6f}), "
                           f"using {UNKNOWN_PLACE}: {e}")
            return NOT_FOUND

        place = clean_place_name(place) if place else ""
        if not place:
            logger.warning(f"No place found for ({latitude:.6f}, {longitude:.6f}), "
                           f"using {UNKNOWN_PLACE}")
            return NOT_FOUND

        logger.info(f"  -> {place}")
        return CacheEntry.found(place)
