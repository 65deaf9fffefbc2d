# sitelens/services/google_maps.py
# -----------------------------------------------------------------------------
# Google Maps web services (geocode / reverse geocode / nearby / details)
# - one httpx.AsyncClient per call with explicit timeouts
# - geocoding failures raise; nearby search degrades to []
# -----------------------------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from sitelens.core.config import settings
from sitelens.core.errors import (
    ConfigurationError,
    LocationNotFoundError,
    UpstreamError,
    ValidationError,
)
from sitelens.schemas.analysis import Category, Coordinates, Place, category_key

PLACE_TYPES: Dict[str, str] = {
    "restaurant": "restaurant",
    "cafe": "cafe",
    "hotel": "lodging",
    "hostel": "lodging",
}
DEFAULT_PLACE_TYPE = "establishment"

DETAIL_FIELDS = ",".join(
    [
        "name",
        "formatted_address",
        "geometry",
        "rating",
        "user_ratings_total",
        "price_level",
        "website",
        "formatted_phone_number",
        "url",
    ]
)


def place_type_for(category: Category | str | None) -> str:
    return PLACE_TYPES.get(category_key(category), DEFAULT_PLACE_TYPE)


def parse_places(results: Optional[List[Any]]) -> List[Place]:
    """Raw nearby-search results -> Place list, dropping malformed entries."""
    places: List[Place] = []
    for raw in results or []:
        place = Place.from_google(raw) if isinstance(raw, dict) else None
        if place is None:
            logger.warning(f"[Places] skipping malformed result: {raw!r:.120}")
            continue
        places.append(place)
    return places


@dataclass(slots=True)
class ReverseGeocodeResult:
    formatted_address: str
    postal_code: Optional[str] = None


class GoogleMapsClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[httpx.Timeout] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.GOOGLE_MAPS_SERVER_KEY
        self.base_url = base_url or settings.GOOGLE_MAPS_BASE_URL
        self.timeout = timeout or httpx.Timeout(
            settings.HTTP_READ_TIMEOUT, connect=settings.HTTP_CONNECT_TIMEOUT
        )
        self.transport = transport

    async def _get_json(self, path: str, params: Dict[str, str]) -> Dict[str, Any]:
        if not self.api_key:
            raise ConfigurationError("GOOGLE_MAPS_SERVER_KEY is not configured")
        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self.transport
        ) as client:
            r = await client.get(path, params={**params, "key": self.api_key})
            r.raise_for_status()
            data = r.json()
        if not isinstance(data, dict):
            raise ValueError("unexpected response body")
        return data

    async def geocode(self, address: str) -> Coordinates:
        if not address or not address.strip():
            raise ValidationError("address is required")

        try:
            data = await self._get_json("/geocode/json", {"address": address})
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"[Geocode] request failed for {address!r}: {e}")
            raise UpstreamError(f"Geocoding request failed: {e}") from e

        status = data.get("status")
        results = data.get("results") or []
        if status == "ZERO_RESULTS" or (status == "OK" and not results):
            raise LocationNotFoundError(f"No geocoding results for '{address}'")
        if status != "OK":
            raise UpstreamError(f"Geocoding failed: {status}")

        loc = (results[0].get("geometry") or {}).get("location") or {}
        try:
            return Coordinates(lat=float(loc["lat"]), lng=float(loc["lng"]))
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamError("Geocoding response had no location") from e

    async def reverse_geocode(self, lat: float, lng: float) -> ReverseGeocodeResult:
        try:
            data = await self._get_json("/geocode/json", {"latlng": f"{lat},{lng}"})
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"[Geocode] reverse lookup failed for {lat},{lng}: {e}")
            raise UpstreamError(f"Reverse geocoding request failed: {e}") from e

        status = data.get("status")
        results = data.get("results") or []
        if status == "ZERO_RESULTS" or (status == "OK" and not results):
            raise LocationNotFoundError(f"No address found for {lat},{lng}")
        if status != "OK":
            raise UpstreamError(f"Reverse geocoding failed: {status}")

        first = results[0]
        postal_code = None
        for component in first.get("address_components") or []:
            if "postal_code" in (component.get("types") or []):
                postal_code = component.get("short_name")
                break
        return ReverseGeocodeResult(
            formatted_address=first.get("formatted_address") or "",
            postal_code=postal_code,
        )

    async def nearby_places(
        self,
        coordinates: Coordinates,
        category: Category | str | None,
        radius: Optional[int] = None,
        place_type: Optional[str] = None,
    ) -> List[Place]:
        """
        Places of the category's type within `radius` meters.
        Any upstream failure yields [] so the pipeline keeps going.
        """
        params = {
            "location": f"{coordinates.lat},{coordinates.lng}",
            "radius": str(radius or settings.NEARBY_RADIUS_M),
            "type": place_type or place_type_for(category),
        }
        try:
            data = await self._get_json("/place/nearbysearch/json", params)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"[Places] nearby search failed: {e}")
            return []

        status = data.get("status")
        if status == "ZERO_RESULTS":
            return []
        if status != "OK":
            logger.warning(f"[Places] nearby search status: {status}")
            return []
        return parse_places(data.get("results"))

    async def place_details(self, place_id: str) -> Dict[str, Any]:
        params = {"place_id": place_id, "fields": DETAIL_FIELDS}
        try:
            data = await self._get_json("/place/details/json", params)
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamError(f"Place details request failed: {e}") from e

        if data.get("status") != "OK":
            raise UpstreamError(f"Place details failed: {data.get('status')}")
        return data.get("result") or {}
