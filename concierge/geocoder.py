"""Free-text place lookup against Nominatim, cached per raw query."""
from __future__ import annotations

from dataclasses import dataclass

from .cache import KeyedCache
from .config import Settings
from .errors import NotFoundError, UpstreamError
from .http_client import ResilientHttpClient
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="geocoder")


@dataclass(frozen=True)
class GeocodeResult:
    """Top place-search match for a query."""
    location: str
    lat: float
    lon: float


class Geocoder:
    """Resolve a place name to coordinates via ``<nominatim>/search``."""

    def __init__(self, http: ResilientHttpClient, cache: KeyedCache, settings: Settings):
        self.http = http
        self.cache = cache
        self.settings = settings

    @staticmethod
    def cache_key(query: str) -> str:
        return f"geocode:{query}"

    def geocode(self, query: str) -> GeocodeResult:
        """Return the single best match for ``query``; raises NotFoundError / UpstreamError."""
        key = self.cache_key(query)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for geocode query: %s", query)
            return cached

        logger.debug("Geocoding query: %s", query)
        resp = self.http.get(
            f"{self.settings.nominatim_base_url}/search",
            params={"q": query, "format": "json", "limit": 1},
            headers={"User-Agent": self.settings.nominatim_user_agent},
        )
        if not resp.ok:
            raise UpstreamError(
                f"Nominatim API error: {resp.status_code} {resp.reason or ''}".rstrip(),
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise UpstreamError(f"Nominatim returned non-JSON response: {resp.text[:200]}") from exc

        if not data:
            raise NotFoundError(f"No results found for query: {query}")

        top = data[0]
        try:
            result = GeocodeResult(
                location=top["display_name"],
                lat=float(top["lat"]),
                lon=float(top["lon"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise UpstreamError(f"Unexpected Nominatim result shape for query: {query}") from exc

        self.cache.set(key, result, self.settings.cache_ttl_seconds)
        return result
