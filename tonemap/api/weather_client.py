"""
Open-Meteo Weather Client

Reference WeatherProvider: reads the current temperature and WMO weather
code for a fixed location from the Open-Meteo forecast API.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Optional

import structlog

from ..exceptions import ExternalLookupError
from ..models.context_models import WeatherReading
from ..models.listening_models import WeatherCondition
from .base_client import BaseAPIClient
from .interfaces import WeatherProvider
from .rate_limiter import RateLimiter

logger = structlog.get_logger(__name__)

OPEN_METEO_URL = "https://api.open-meteo.com/v1"


def condition_from_wmo_code(code: int) -> WeatherCondition:
    """Map a WMO weather interpretation code to a WeatherCondition."""
    if code == 0:
        return WeatherCondition.SUNNY
    if code in (1, 2):
        return WeatherCondition.PARTLY_CLOUDY
    if code == 3:
        return WeatherCondition.CLOUDY
    if code in (45, 48):
        return WeatherCondition.FOGGY
    if 51 <= code <= 67 or 80 <= code <= 82:
        return WeatherCondition.RAINY
    if 71 <= code <= 77 or 85 <= code <= 86:
        return WeatherCondition.SNOWY
    if 95 <= code <= 99:
        return WeatherCondition.STORMY
    return WeatherCondition.CLOUDY


class OpenMeteoClient(BaseAPIClient, WeatherProvider):
    """Current-weather lookups against api.open-meteo.com (no API key)."""

    def __init__(
        self,
        latitude: float,
        longitude: float,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: float = 10,
        clock: Callable[[], datetime] = datetime.now
    ):
        super().__init__(
            base_url=OPEN_METEO_URL,
            rate_limiter=rate_limiter or RateLimiter.for_open_meteo(),
            timeout=timeout,
            service_name="OpenMeteo"
        )
        self.latitude = latitude
        self.longitude = longitude
        self.clock = clock

    def _extract_api_error(self, data: Dict[str, Any]) -> Optional[str]:
        if data.get("error"):
            return data.get("reason", "unknown error")
        return None

    async def get_current_weather(self) -> WeatherReading:
        await self.open()
        data = await self._make_request(
            "forecast",
            params={
                "latitude": self.latitude,
                "longitude": self.longitude,
                "current": "temperature_2m,weather_code",
            }
        )

        current = data.get("current") or {}
        code = current.get("weather_code")
        if code is None:
            raise ExternalLookupError(self.service_name, "response has no current weather code")

        reading = WeatherReading(
            condition=condition_from_wmo_code(int(code)),
            temperature_c=current.get("temperature_2m"),
            fetched_at=self.clock()
        )
        self.logger.debug(
            "Weather fetched",
            condition=reading.condition.value,
            temperature_c=reading.temperature_c
        )
        return reading
