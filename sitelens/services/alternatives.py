# sitelens/services/alternatives.py
# -----------------------------------------------------------------------------
# Alternative-site discovery
# - probe six fixed offsets around the origin with a wider radius
# - score every candidate place, rank, keep the top `limit`
# -----------------------------------------------------------------------------
from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

from loguru import logger

from sitelens.core.config import settings
from sitelens.core.errors import ConfigurationError, ValidationError
from sitelens.schemas.analysis import (
    AlternativeCandidate,
    Category,
    Coordinates,
    Place,
)

RELEVANT_TYPES = frozenset({"restaurant", "cafe", "lodging", "tourist_attraction"})

PRICE_LABELS = {
    0: "Free",
    1: "Inexpensive",
    2: "Moderate",
    3: "Expensive",
    4: "Very Expensive",
}

# (direction, Δlat°, Δlng°). Plain degree offsets, not geodesic distances.
SEARCH_OFFSETS: Tuple[Tuple[str, float, float], ...] = (
    ("North", 0.01, 0.0),
    ("South", -0.01, 0.0),
    ("East", 0.0, 0.01),
    ("West", 0.0, -0.01),
    ("Northeast", 0.005, 0.005),
    ("Southwest", -0.005, -0.005),
)

RESULTS_PER_PROBE = 2
BASE_SCORE = 50.0


def search_points(lat: float, lng: float) -> List[Tuple[str, Coordinates]]:
    return [
        (name, Coordinates(lat=lat + dlat, lng=lng + dlng))
        for name, dlat, dlng in SEARCH_OFFSETS
    ]


# ── scoring components ───────────────────────────────────────────────────────
def rating_component(rating: Optional[float]) -> float:
    """-25 .. +25 around a 2.5-star midpoint."""
    return (rating - 2.5) * 10 if rating is not None else 0.0


def popularity_component(review_count: Optional[int]) -> float:
    """0 .. +15, saturating at 100 reviews."""
    if not review_count:
        return 0.0
    return min(review_count / 100, 1) * 15


def price_component(price_level: Optional[int]) -> float:
    return (3 - price_level) * 5 if price_level is not None else 0.0


def relevance_component(types: Sequence[str]) -> float:
    return 10.0 if RELEVANT_TYPES.intersection(types) else 0.0


def calculate_location_score(place: Place) -> int:
    score = (
        BASE_SCORE
        + rating_component(place.rating)
        + popularity_component(place.user_ratings_total)
        + price_component(place.price_level)
        + relevance_component(place.types)
    )
    # half-up rounding, clamp only once at the end
    return max(0, min(100, math.floor(score + 0.5)))


def score_reasons(place: Place, score: int) -> List[str]:
    reasons: List[str] = []

    if place.rating is not None and place.rating >= 4.0:
        reasons.append(f"High rating ({place.rating:g}/5)")

    if place.user_ratings_total and place.user_ratings_total > 100:
        reasons.append(f"Popular ({place.user_ratings_total} reviews)")

    if place.price_level is not None:
        reasons.append(f"{PRICE_LABELS[place.price_level]} pricing")

    if score >= 75:
        reasons.append("Excellent location score")
    elif score >= 60:
        reasons.append("Good location potential")

    return reasons


def to_candidate(place: Place) -> AlternativeCandidate:
    score = calculate_location_score(place)
    return AlternativeCandidate(
        name=place.name,
        address=place.address,
        coordinates=place.coordinates,
        place_id=place.place_id,
        score=score,
        reasons=score_reasons(place, score),
    )


def rank_candidates(
    candidates: Sequence[AlternativeCandidate], limit: int
) -> List[AlternativeCandidate]:
    return sorted(candidates, key=lambda c: c.score, reverse=True)[:limit]


async def find_alternatives(
    maps,
    lat: float,
    lng: float,
    category: Category | str,
    limit: int = 5,
    radius: Optional[int] = None,
) -> List[AlternativeCandidate]:
    """
    Probe the offsets one by one, keep up to two fresh places per probe and
    stop probing once `limit` candidates are collected. A failing probe is
    logged and skipped.
    """
    if limit < 1:
        raise ValidationError("limit must be at least 1")

    radius = radius or settings.ALTERNATIVE_RADIUS_M
    candidates: List[AlternativeCandidate] = []
    seen: set[str] = set()

    for direction, point in search_points(lat, lng):
        if len(candidates) >= limit:
            break
        try:
            places = await maps.nearby_places(point, category, radius)
            for place in places[:RESULTS_PER_PROBE]:
                if len(candidates) >= limit:
                    break
                if place.place_id and place.place_id in seen:
                    continue
                seen.add(place.place_id)
                candidates.append(to_candidate(place))
        except ConfigurationError:
            raise
        except Exception as e:
            logger.warning(f"[Alternatives] probe {direction} failed: {e}")

    return rank_candidates(candidates, limit)
