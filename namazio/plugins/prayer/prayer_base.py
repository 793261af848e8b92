import requests
from datetime import date
from typing import Dict, Any, Optional
import logging
import re
from abc import ABC, abstractmethod

from namazio.core.errors import ScheduleUnavailable
from namazio.core.geodesy import Coordinate

from .schedule import PRAYER_ORDER

_LEADING_CLOCK_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})")


def normalize_clock(value: Any) -> str:
    """"5:07", "05:07 (+03)" -> "05:07". Anything without a leading H:MM is returned stripped for validation to reject."""
    text = str(value)
    match = _LEADING_CLOCK_RE.match(text)
    if not match:
        return text.strip()
    return f"{int(match.group(1)):02d}:{match.group(2)}"


class TimingsProvider(ABC):
    """Base class for daily prayer timings backends"""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def fetch(self, coordinate: Coordinate, day: date) -> Dict[str, str]:
        """Get the six boundaries for day at coordinate
        Returns:
            {Fajr, Sunrise, Dhuhr, Asr, Maghrib, Isha: "HH:MM" local wall clock}
        Raises:
            ScheduleUnavailable: request failed or the response is unusable
        """
        pass


class AladhanBackend(TimingsProvider):
    """Prayer times backend using api.aladhan.com with the Diyanet (Turkey) convention"""

    BASE_URL = "https://api.aladhan.com/v1/timings"

    # The one supported calculation convention
    METHOD = 13  # Diyanet İşleri Başkanlığı
    SCHOOL = 1
    MIDNIGHT_MODE = 0
    TUNE = "0,0,0,0,0,0,0,0,0"
    TIMEZONE = "Europe/Istanbul"

    def __init__(self, config: Dict[str, Any], session: Optional[requests.Session] = None):
        super().__init__(config)
        self.session = session or requests.Session()
        self.timeout = config.get("timeout", 15)
        self.user_agent = config.get("user_agent", "Namazio Prayer Times App")

    def fetch(self, coordinate: Coordinate, day: date) -> Dict[str, str]:
        url = f"{self.BASE_URL}/{day.strftime('%d-%m-%Y')}"
        params = {
            'latitude': f"{coordinate.latitude:.6f}",
            'longitude': f"{coordinate.longitude:.6f}",
            'method': self.METHOD,
            'school': self.SCHOOL,
            'midnightMode': self.MIDNIGHT_MODE,
            'tune': self.TUNE,
            'timezonestring': self.TIMEZONE,
        }

        self.logger.info(f"Making API request to {url} with params {params}")
        try:
            response = self.session.get(
                url,
                params=params,
                headers={'User-Agent': self.user_agent},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise ScheduleUnavailable(f"Network error fetching prayer times: {e}") from e
        except ValueError as e:
            raise ScheduleUnavailable(f"Prayer times response is not JSON: {e}") from e

        payload = data.get('data') if isinstance(data, dict) else None
        timings = payload.get('timings') if isinstance(payload, dict) else None
        if not isinstance(timings, dict):
            self.logger.error(f"Invalid API response structure: {data}")
            raise ScheduleUnavailable("Prayer times response has no data.timings")

        prayer_times = {
            prayer: normalize_clock(timings[prayer])
            for prayer in PRAYER_ORDER
            if prayer in timings
        }
        self.logger.debug(f"Final prayer times: {prayer_times}")
        return prayer_times


class ManualBackend(TimingsProvider):
    """Fixed times from config (`times: {Fajr: "05:00", ...}`), same answer for every day and place"""

    def fetch(self, coordinate: Coordinate, day: date) -> Dict[str, str]:
        times = self.config.get('times') or {}
        if not times:
            raise ScheduleUnavailable("Manual backend has no `times` configured")
        return {prayer: normalize_clock(value) for prayer, value in times.items()}


_BACKENDS = {
    "aladhan": AladhanBackend,
    "manual": ManualBackend,
}


def get_backend(backend_type: Optional[str], config: Dict[str, Any]) -> Optional[TimingsProvider]:
    """Factory: return timings backend instance for given type."""
    cls = _BACKENDS.get((backend_type or "").lower())
    if not cls:
        return None
    return cls(config)
