# sitelens/services/competitors.py
# -----------------------------------------------------------------------------
# Competitor profiles
# - top nearby places by review count, enriched with place details
# - details are fetched concurrently and best-effort per place
# -----------------------------------------------------------------------------
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from sitelens.core.config import settings
from sitelens.schemas.analysis import CompetitorProfile, Coordinates, Place

# Approximate spend for two, in rupees, per price tier
PRICE_FOR_TWO: Dict[int, int] = {
    1: 400,
    2: 800,
    3: 1500,
    4: 2500,
}


def calculate_average_price(price_level: Optional[int]) -> Optional[int]:
    if not price_level:
        return None
    return PRICE_FOR_TWO.get(price_level)


def estimate_footfall(places: Sequence[Place]) -> int:
    """Aggregate review volume, used as a foot-traffic proxy."""
    return sum(p.user_ratings_total or 0 for p in places)


def top_by_reviews(places: Sequence[Place], limit: int) -> List[Place]:
    return sorted(places, key=lambda p: p.user_ratings_total or 0, reverse=True)[:limit]


def _first(*values):
    for v in values:
        if v is not None:
            return v
    return None


def profile_from_place(place: Place) -> CompetitorProfile:
    reviews = place.user_ratings_total or 0
    return CompetitorProfile(
        name=place.name or "Unknown",
        address=place.address or "Unknown address",
        coordinates=place.coordinates,
        rating=place.rating,
        user_ratings_total=reviews,
        price_level=place.price_level,
        footfall=reviews,
        average_price_for_2=calculate_average_price(place.price_level),
    )


def profile_from_details(place: Place, details: Dict[str, Any]) -> CompetitorProfile:
    loc = (details.get("geometry") or {}).get("location") or {}
    coordinates = place.coordinates
    if loc.get("lat") is not None and loc.get("lng") is not None:
        coordinates = Coordinates(lat=float(loc["lat"]), lng=float(loc["lng"]))

    reviews = _first(details.get("user_ratings_total"), place.user_ratings_total, 0)
    price_level = _first(details.get("price_level"), place.price_level)
    return CompetitorProfile(
        name=details.get("name") or place.name or "Unknown",
        address=details.get("formatted_address") or place.address or "Unknown address",
        coordinates=coordinates,
        rating=_first(details.get("rating"), place.rating),
        user_ratings_total=reviews,
        price_level=price_level,
        website=details.get("website"),
        phone=details.get("formatted_phone_number"),
        google_url=details.get("url"),
        footfall=reviews,
        average_price_for_2=calculate_average_price(price_level),
    )


async def build_competitors(
    maps,
    places: Sequence[Place],
    limit: Optional[int] = None,
    concurrency: Optional[int] = None,
) -> List[CompetitorProfile]:
    top = top_by_reviews(places, limit or settings.COMPETITOR_LIMIT)
    sem = asyncio.Semaphore(concurrency or settings.DETAILS_CONCURRENCY)

    async def _enrich(place: Place) -> CompetitorProfile:
        if not place.place_id:
            return profile_from_place(place)
        async with sem:
            try:
                details = await maps.place_details(place.place_id)
                return profile_from_details(place, details)
            except Exception as e:
                logger.warning(f"[Competitors] details for {place.name!r} unavailable: {e}")
                return profile_from_place(place)

    return list(await asyncio.gather(*(_enrich(p) for p in top)))
