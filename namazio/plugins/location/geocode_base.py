"""
Reverse geocoding providers. All backends return a GeocodeResult or raise GeocodeUnavailable.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from geopy import geocoders  # pyright: ignore[reportMissingTypeStubs]
from geopy.exc import GeopyError  # pyright: ignore[reportMissingTypeStubs]
from pydantic import BaseModel, ConfigDict, ValidationError

from namazio.core.cache_helper import CacheHelper
from namazio.core.errors import GeocodeUnavailable
from namazio.core.geodesy import Coordinate

# Nominatim address keys, most specific first
CITY_KEYS = ("city", "town", "village", "province", "state", "county")
DISTRICT_KEYS = ("suburb", "city_district", "district", "neighbourhood")


class GeocodeResult(BaseModel):
    """What a reverse geocoder tells us about a coordinate."""

    model_config = ConfigDict(frozen=True)

    city: Optional[str] = None
    district: Optional[str] = None
    country_name: Optional[str] = None
    country_code: Optional[str] = None


def _first(address: Dict[str, Any], keys) -> Optional[str]:
    for key in keys:
        value = address.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def parse_nominatim_address(address: Any) -> GeocodeResult:
    """Map a Nominatim `address` object onto GeocodeResult. Raises GeocodeUnavailable on a malformed payload."""
    if not isinstance(address, dict):
        raise GeocodeUnavailable(f"Malformed geocode response: address is {type(address).__name__}")
    try:
        return GeocodeResult(
            city=_first(address, CITY_KEYS),
            district=_first(address, DISTRICT_KEYS),
            country_name=address.get("country"),
            country_code=(address.get("country_code") or "").upper() or None,
        )
    except ValidationError as e:
        raise GeocodeUnavailable(f"Malformed geocode response: {e}") from e


class ReverseGeocodeProvider(ABC):
    """Base class for reverse geocoding backends"""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def reverse_geocode(self, coordinate: Coordinate) -> GeocodeResult:
        """Look up place names for coordinate.
        Raises:
            GeocodeUnavailable: provider failed, timed out or answered nonsense
        """
        pass


class NominatimBackend(ReverseGeocodeProvider):
    """OpenStreetMap Nominatim through geopy; answers are cached for the day per rounded coordinate."""

    def __init__(self, config: Dict[str, Any], geolocator: Any = None):
        super().__init__(config)
        self.language = config.get("language", "tr")
        self.geolocator = geolocator or geocoders.Nominatim(
            user_agent=config.get("user_agent", "Namazio Prayer Times App"),
            timeout=config.get("timeout", 10),
        )
        self.cache_helper = CacheHelper(config.get("cache_dir"), "geocode") if config.get("cache_dir") else None

    def _cache_key(self, coordinate: Coordinate) -> str:
        return f"nominatim_{coordinate.latitude:.4f}_{coordinate.longitude:.4f}_{self.language}"

    def reverse_geocode(self, coordinate: Coordinate) -> GeocodeResult:
        cache_key = self._cache_key(coordinate)
        if self.cache_helper:
            cached = self.cache_helper.get_cached_content(cache_key)
            if cached:
                self.logger.debug(f"Geocode cache hit for {coordinate}")
                return GeocodeResult.model_validate(cached)

        self.logger.info(f"Calling Nominatim for {coordinate}")
        try:
            result = self.geolocator.reverse(
                (coordinate.latitude, coordinate.longitude),
                exactly_one=True,
                language=self.language,
                addressdetails=True,
            )
        except GeopyError as e:
            raise GeocodeUnavailable(f"Nominatim request failed: {e}") from e

        if not result:
            raise GeocodeUnavailable(f"Nominatim returned no result for {coordinate}")
        raw = getattr(result, "raw", None)
        if not isinstance(raw, dict):
            raise GeocodeUnavailable("Malformed geocode response: missing raw payload")

        parsed = parse_nominatim_address(raw.get("address"))
        self.logger.debug(f"Parsed location info: {parsed}")
        if self.cache_helper:
            self.cache_helper.save_to_cache(cache_key, parsed.model_dump())
        return parsed


class ManualGeocodeBackend(ReverseGeocodeProvider):
    """Answers every lookup with the place configured under `manual:` (offline use)."""

    def reverse_geocode(self, coordinate: Coordinate) -> GeocodeResult:
        manual = self.config.get("manual") or {}
        if not manual:
            raise GeocodeUnavailable("Manual geocoder has no `manual` place configured")
        return GeocodeResult(
            city=manual.get("city"),
            district=manual.get("district"),
            country_name=manual.get("country"),
            country_code=(manual.get("country_code") or "").upper() or None,
        )


_BACKENDS = {
    "nominatim": NominatimBackend,
    "manual": ManualGeocodeBackend,
}


def get_geocoder(backend_type: Optional[str], config: Dict[str, Any]) -> Optional[ReverseGeocodeProvider]:
    """Factory: return geocoder instance for given type."""
    cls = _BACKENDS.get((backend_type or "").lower())
    if not cls:
        return None
    return cls(config)
