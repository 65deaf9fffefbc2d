# sitelens/services/demographics.py
# -----------------------------------------------------------------------------
# Demographic estimate around a coordinate
# - postal code via reverse geocoding
# - census ACS 5-year figures, area averages when the census call fails
# - foot traffic and employment-sector mix from nearby points of interest
# -----------------------------------------------------------------------------
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

import httpx
from loguru import logger

from sitelens.core.config import settings
from sitelens.core.errors import NotFoundError, UpstreamError
from sitelens.schemas.analysis import Coordinates, Place
from sitelens.schemas.demographics import Demographics, EducationMix, SectorMix

# population, median income, median age, bachelor, master, professional, doctorate
CENSUS_FIELDS = (
    "B01003_001E",
    "B19013_001E",
    "B01002_001E",
    "B15003_022E",
    "B15003_023E",
    "B15003_024E",
    "B15003_025E",
)
AREA_AVERAGES = (25000, 65000, 38, 3000, 5000, 2000, 1000)
POSTAL_AREA_SQ_KM = 12.95  # ~5 sq miles

POI_RADIUS_M = 500
POI_TYPE = "point_of_interest"
MIN_FOOTFALL = 500
FOOTFALL_PER_POI = 200

SECTOR_TYPES: Dict[str, frozenset] = {
    "technology": frozenset({"electronics_store", "tech_company"}),
    "finance": frozenset({"bank", "finance"}),
    "retail": frozenset({"store", "shopping_mall"}),
    "education": frozenset({"school", "university"}),
}
DEFAULT_SECTORS = {"technology": 10, "finance": 15, "retail": 30, "education": 10}


class CensusClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        url: Optional[str] = None,
        timeout: Optional[httpx.Timeout] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.CENSUS_API_KEY
        self.url = url or settings.CENSUS_API_URL
        self.timeout = timeout or httpx.Timeout(
            settings.HTTP_READ_TIMEOUT, connect=settings.HTTP_CONNECT_TIMEOUT
        )
        self.transport = transport

    async def fetch(self, postal_code: str) -> List[int]:
        """Values in CENSUS_FIELDS order for one ZIP code tabulation area."""
        params = {
            "get": ",".join(CENSUS_FIELDS),
            "for": f"zip code tabulation area:{postal_code}",
        }
        if self.api_key:
            params["key"] = self.api_key
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                r = await client.get(self.url, params=params)
                r.raise_for_status()
                rows = r.json()
            return [int(float(v)) for v in rows[1][: len(CENSUS_FIELDS)]]
        except (httpx.HTTPError, ValueError, LookupError, TypeError) as e:
            raise UpstreamError(f"Census request failed: {e}") from e


def _pct(part: int, whole: int) -> int:
    return round(part / whole * 100) if whole else 0


def education_mix(population: int, bachelor: int, graduate: int) -> EducationMix:
    b = _pct(bachelor, population)
    g = _pct(graduate, population)
    high_school = 85 - b - g  # estimate
    return EducationMix(
        high_school=high_school,
        bachelor=b,
        graduate=g,
        other=100 - b - g - high_school,
    )


def sector_mix(places: Sequence[Place]) -> SectorMix:
    counts = {name: 0 for name in SECTOR_TYPES}
    other = 0
    for place in places:
        types = set(place.types)
        for name, wanted in SECTOR_TYPES.items():
            if types & wanted:
                counts[name] += 1
                break
        else:
            other += 1

    total = sum(counts.values()) + other
    if total:
        shares = {name: _pct(n, total) for name, n in counts.items()}
    else:
        shares = dict(DEFAULT_SECTORS)
    return SectorMix(**shares, other=100 - sum(shares.values()))


async def estimate_demographics(
    maps, lat: float, lng: float, census: Optional[CensusClient] = None
) -> Demographics:
    census = census or CensusClient()

    address = await maps.reverse_geocode(lat, lng)
    if not address.postal_code:
        raise NotFoundError("Could not determine a postal code for the provided coordinates")

    try:
        values = await census.fetch(address.postal_code)
        source = "US Census Bureau ACS 5-Year Data & Google Places API"
    except UpstreamError as e:
        logger.warning(f"[Demographics] census unavailable, using area averages: {e}")
        values = list(AREA_AVERAGES)
        source = "Google APIs with estimated values"

    population, income, age, bachelor, master, professional, doctorate = values

    places = await maps.nearby_places(
        Coordinates(lat=lat, lng=lng), None, radius=POI_RADIUS_M, place_type=POI_TYPE
    )

    return Demographics(
        population_density=round(population / POSTAL_AREA_SQ_KM),
        average_income=income,
        average_age=age,
        footfall=max(MIN_FOOTFALL, len(places) * FOOTFALL_PER_POI),
        education=education_mix(population, bachelor, master + professional + doctorate),
        employment_sectors=sector_mix(places),
        postal_code=address.postal_code,
        data_source=source,
        last_updated=datetime.now(timezone.utc),
    )
