"""Current-conditions lookup against Tomorrow.io, cached by resolved coordinates."""
from __future__ import annotations

import math
from typing import Optional

from pydantic import BaseModel

from .cache import KeyedCache
from .config import Settings
from .errors import ConfigurationError, InvalidArgumentError, UpstreamError
from .geocoder import Geocoder
from .http_client import ResilientHttpClient
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="weather")

PROVIDER_NAME = "tomorrow.io"


class WeatherReading(BaseModel):
    """Current temperature at a point, in both units, rounded to one decimal."""
    location: str
    lat: float
    lon: float
    tempC: float
    tempF: float
    conditionCode: Optional[str] = None
    provider: str = PROVIDER_NAME


def celsius_to_fahrenheit(temp_c: float) -> float:
    return temp_c * 9 / 5 + 32


def round_one_decimal(value: float) -> float:
    """Round to one decimal with halves going up (22.25 -> 22.3, -0.05 -> 0.0)."""
    return math.floor(value * 10 + 0.5) / 10


class WeatherService:
    """Resolve a location (coordinates or free text) and fetch its realtime reading."""

    def __init__(self, http: ResilientHttpClient, cache: KeyedCache, geocoder: Geocoder, settings: Settings):
        self.http = http
        self.cache = cache
        self.geocoder = geocoder
        self.settings = settings

    @staticmethod
    def cache_key(lat: float, lon: float) -> str:
        return f"weather:{lat}:{lon}"

    def _resolve(self, lat: float | None, lon: float | None, q: str | None) -> tuple[float, float, str]:
        """Pick coordinates: explicit lat+lon win, else geocode ``q``."""
        if lat is not None and lon is not None:
            return lat, lon, f"{lat},{lon}"
        if q:
            match = self.geocoder.geocode(q)
            return match.lat, match.lon, match.location
        raise InvalidArgumentError("Either lat+lon or q must be provided")

    def get_weather(
        self,
        lat: float | None = None,
        lon: float | None = None,
        q: str | None = None,
    ) -> WeatherReading:
        """Return the current reading; raises InvalidArgumentError, UpstreamError, ConfigurationError."""
        lat, lon, location = self._resolve(lat, lon, q)

        key = self.cache_key(lat, lon)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for weather: %s,%s", lat, lon)
            return cached

        if not self.settings.tomorrow_api_key:
            raise ConfigurationError("Tomorrow.io API key not configured (CONCIERGE_TOMORROW_API_KEY)")

        logger.debug("Fetching weather for: %s,%s", lat, lon)
        resp = self.http.get(
            f"{self.settings.tomorrow_base_url}/realtime",
            params={
                "location": f"{lat},{lon}",
                "fields": self.settings.tomorrow_fields,
                "apikey": self.settings.tomorrow_api_key,
            },
        )
        if not resp.ok:
            raise UpstreamError(
                f"Tomorrow.io API error: {resp.status_code} {resp.reason or ''}".rstrip(),
                status_code=resp.status_code,
            )

        try:
            values = resp.json()["data"]["values"]
            temp_c = float(values["temperature"])
        except (ValueError, KeyError, TypeError) as exc:
            raise UpstreamError("Tomorrow.io response did not include a temperature") from exc

        code = values.get("weatherCode")
        reading = WeatherReading(
            location=location,
            lat=lat,
            lon=lon,
            tempC=round_one_decimal(temp_c),
            tempF=round_one_decimal(celsius_to_fahrenheit(temp_c)),
            conditionCode=str(code) if code is not None else None,
        )

        self.cache.set(key, reading, self.settings.cache_ttl_seconds)
        return reading
