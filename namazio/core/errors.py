"""
Error taxonomy shared by the location, prayer and qibla layers.

Geocoding failures are absorbed by the LocationResolver (fallback location);
schedule failures propagate so callers can retry.
"""


class NamazioError(Exception):
    """Base class for all Namazio errors."""


class InvalidCoordinate(NamazioError, ValueError):
    """Latitude/longitude outside [-90, 90] / [-180, 180] or not a number."""


class GeocodeUnavailable(NamazioError):
    """Reverse geocoding failed, timed out or returned an unusable payload."""


class ScheduleUnavailable(NamazioError):
    """Timings provider failed or returned an incomplete / out-of-order day."""
