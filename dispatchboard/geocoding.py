"""
Address geocoding against the public Nominatim search API.

Nominatim asks clients to stay under one request per second, so every
uncached lookup takes a permit from a MinIntervalLimiter first. Results,
including failures, are cached per resolver instance for its lifetime.
"""

from typing import Dict, Optional

import requests

from .logger import get_logger
from .models import Coordinates
from .ratelimit import MinIntervalLimiter

logger = get_logger()

USER_AGENT = "dispatchboard/0.1 (dispatcher dashboard)"


class GeoResolver:
    """Resolves free-text addresses to coordinates within one country."""

    def __init__(
        self,
        endpoint: str = "https://nominatim.openstreetmap.org/search",
        country: str = "pl",
        limiter: Optional[MinIntervalLimiter] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = endpoint
        self.country = country
        self.limiter = limiter or MinIntervalLimiter(1.1)
        self.timeout = timeout
        self.session = session or requests.Session()
        self._cache: Dict[str, Optional[Coordinates]] = {}

    def resolve(self, address: str) -> Optional[Coordinates]:
        """
        Resolve an address, or return None.

        Blank input returns None without touching the network or the cache.
        Key presence decides a cache hit, so cached failures are not retried.
        """
        key = (address or "").strip()
        if not key:
            return None

        if key in self._cache:
            logger.record_geocode_hit()
            return self._cache[key]

        coords = self._search(key)
        self._cache[key] = coords
        if coords is None:
            logger.record_geocode_failure()
        return coords

    def _search(self, query: str) -> Optional[Coordinates]:
        self.limiter.wait()
        logger.record_geocode_request()
        params = {
            "q": query,
            "format": "json",
            "limit": 1,
            "countrycodes": self.country,
        }
        try:
            resp = self.session.get(
                self.endpoint,
                params=params,
                headers={"User-Agent": USER_AGENT},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            results = resp.json()
        except requests.exceptions.RequestException as e:
            logger.warning("Geocoding request failed", address=query, error=str(e))
            return None
        except ValueError as e:
            logger.warning("Geocoding returned invalid JSON", address=query, error=str(e))
            return None

        if not isinstance(results, list) or not results:
            logger.info("Address not found", address=query)
            return None

        first = results[0]
        try:
            return Coordinates(lat=float(first["lat"]), lng=float(first["lon"]))
        except (KeyError, TypeError, ValueError):
            logger.warning("Geocoding result without usable coordinates", address=query)
            return None

    def is_cached(self, address: str) -> bool:
        return (address or "").strip() in self._cache

    def forget(self, address: str) -> None:
        """Drop one cached entry so the next resolve hits the network again."""
        self._cache.pop((address or "").strip(), None)

    def clear(self) -> None:
        self._cache.clear()
