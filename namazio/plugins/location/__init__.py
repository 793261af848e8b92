"""Location layer shared by the prayer and qibla plugins; it has no component of its own."""
from .geocode_base import GeocodeResult, ReverseGeocodeProvider, get_geocoder
from .resolver import FALLBACK_LOCATION, LocationResolver, ResolvedLocation

__all__ = [
    "FALLBACK_LOCATION",
    "GeocodeResult",
    "LocationResolver",
    "ResolvedLocation",
    "ReverseGeocodeProvider",
    "get_geocoder",
]
