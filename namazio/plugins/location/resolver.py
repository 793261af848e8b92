"""
Turns a raw device coordinate into a ResolvedLocation.

Guard rules, in order: no position / emulator default position -> fallback;
reverse geocode failure -> fallback; outside the supported country -> fallback.
The prayer time convention in use is region specific, so anything we cannot
place inside the supported country is answered with the canonical location.
"""
import logging
from typing import Any, Dict, Iterable, Optional

from pydantic import BaseModel, ConfigDict

from namazio.core.errors import GeocodeUnavailable
from namazio.core.geodesy import Coordinate

from .geocode_base import GeocodeResult, ReverseGeocodeProvider, get_geocoder

logger = logging.getLogger(__name__)

DEFAULT_CITY_LABEL = "Bilinmeyen"
DEFAULT_DISTRICT_LABEL = "Merkez"

# Android emulator reports Googleplex unless told otherwise
EMULATOR_DEFAULT = Coordinate(latitude=37.4220, longitude=-122.0841)
EMULATOR_TOLERANCE_DEG = 0.01


class ResolvedLocation(BaseModel):
    """Outcome of one resolution attempt. is_fallback marks a substituted canonical location."""

    model_config = ConfigDict(frozen=True)

    coordinate: Coordinate
    city: str
    district: Optional[str] = None
    is_fallback: bool = False

    @property
    def display_name(self) -> str:
        return f"{self.district}, {self.city}" if self.district else self.city


FALLBACK_LOCATION = ResolvedLocation(
    coordinate=Coordinate(latitude=39.9334, longitude=32.8597),
    city="Ankara",
    district="Çankaya",
    is_fallback=True,
)


class LocationResolver:
    def __init__(
        self,
        geocoder: Optional[ReverseGeocodeProvider],
        fallback: ResolvedLocation = FALLBACK_LOCATION,
        supported_country_names: Iterable[str] = ("Türkiye", "Turkey"),
        supported_country_code: str = "TR",
        emulator_default: Optional[Coordinate] = EMULATOR_DEFAULT,
        emulator_tolerance: float = EMULATOR_TOLERANCE_DEG,
        city_label: str = DEFAULT_CITY_LABEL,
        district_label: str = DEFAULT_DISTRICT_LABEL,
    ):
        self.geocoder = geocoder
        self.fallback = fallback if fallback.is_fallback else fallback.model_copy(update={"is_fallback": True})
        self.supported_country_names = {name.casefold() for name in supported_country_names}
        self.supported_country_code = supported_country_code.upper()
        self.emulator_default = emulator_default
        self.emulator_tolerance = emulator_tolerance
        self.city_label = city_label
        self.district_label = district_label
        self.logger = logging.getLogger(self.__class__.__name__)

    @classmethod
    def from_config(cls, location_config: Dict[str, Any], cache_dir: Optional[str] = None) -> "LocationResolver":
        """Build a resolver from the `location:` config section."""
        geocoder_cfg = dict(location_config.get("geocoder") or {})
        if cache_dir and "cache_dir" not in geocoder_cfg:
            geocoder_cfg["cache_dir"] = cache_dir
        backend_type = geocoder_cfg.get("backend", "nominatim")
        geocoder = get_geocoder(backend_type, geocoder_cfg)
        if geocoder is None:
            logger.warning(f"Unknown geocoder backend {backend_type!r}; every position will use the fallback")

        kwargs: Dict[str, Any] = {}
        fallback_cfg = location_config.get("fallback") or {}
        if fallback_cfg:
            kwargs["fallback"] = cls._fallback_from_config(fallback_cfg)
        country_cfg = location_config.get("supported_country") or {}
        if country_cfg.get("names"):
            kwargs["supported_country_names"] = country_cfg["names"]
        if country_cfg.get("code"):
            kwargs["supported_country_code"] = country_cfg["code"]
        emulator_cfg = location_config.get("emulator_default")
        if emulator_cfg is False:
            kwargs["emulator_default"] = None
        elif emulator_cfg:
            kwargs["emulator_default"] = Coordinate.of(emulator_cfg.get("lat"), emulator_cfg.get("lon"))
            kwargs["emulator_tolerance"] = float(emulator_cfg.get("tolerance", EMULATOR_TOLERANCE_DEG))
        return cls(geocoder, **kwargs)

    @staticmethod
    def _fallback_from_config(fallback_cfg: Dict[str, Any]) -> ResolvedLocation:
        """Configured fallback; lat and lon are taken together or not at all, missing names are filled in."""
        lat, lon = fallback_cfg.get("lat"), fallback_cfg.get("lon")
        if lat is not None and lon is not None:
            coordinate = Coordinate.of(lat, lon)
        else:
            if lat is not None or lon is not None:
                logger.warning("Fallback needs both lat and lon; using the default fallback coordinate")
            coordinate = FALLBACK_LOCATION.coordinate

        city = fallback_cfg.get("city")
        district = fallback_cfg.get("district")
        if not city:
            city = FALLBACK_LOCATION.city
            district = district or FALLBACK_LOCATION.district
        return ResolvedLocation(
            coordinate=coordinate,
            city=city,
            district=district or DEFAULT_DISTRICT_LABEL,
            is_fallback=True,
        )

    def is_emulator_default(self, raw: Coordinate) -> bool:
        if self.emulator_default is None:
            return False
        return (
            abs(raw.latitude - self.emulator_default.latitude) < self.emulator_tolerance
            and abs(raw.longitude - self.emulator_default.longitude) < self.emulator_tolerance
        )

    def is_supported(self, result: GeocodeResult) -> bool:
        if result.country_code and result.country_code.upper() == self.supported_country_code:
            return True
        return bool(result.country_name) and result.country_name.casefold() in self.supported_country_names

    def resolve(
        self,
        raw: Optional[Coordinate],
        geocoder: Optional[ReverseGeocodeProvider] = None,
    ) -> ResolvedLocation:
        """Resolve raw to a location. Never raises for provider problems; see module docstring."""
        if raw is None:
            self.logger.info("No position available, using fallback location")
            return self.fallback

        if self.is_emulator_default(raw):
            self.logger.info("Emulator default position detected, using fallback location")
            return self.fallback

        geocoder = geocoder or self.geocoder
        if geocoder is None:
            self.logger.warning("No geocoder configured, using fallback location")
            return self.fallback

        try:
            result = geocoder.reverse_geocode(raw)
        except GeocodeUnavailable as e:
            self.logger.warning(f"Location info unavailable ({e}), using fallback location")
            return self.fallback
        except Exception as e:
            self.logger.error(f"Geocoder {geocoder.__class__.__name__} failed unexpectedly: {e}", exc_info=True)
            return self.fallback

        if not self.is_supported(result):
            self.logger.info(
                f"Position outside supported country ({result.country_name}/{result.country_code}), using fallback location"
            )
            return self.fallback

        resolved = ResolvedLocation(
            coordinate=raw,
            city=result.city or self.city_label,
            district=result.district or self.district_label,
            is_fallback=False,
        )
        self.logger.info(f"Resolved {raw} to {resolved.display_name}")
        return resolved
