# sitelens/schemas/analysis.py
# -----------------------------------------------------------------------------
# Analysis data model
# - Place / Coordinates are built from raw Google payloads on ingress
# - NarrativeAnalysis accepts the LLM's camelCase keys
# - AnalysisReport is the aggregate returned, cached and persisted
# -----------------------------------------------------------------------------
from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

Level = Literal["Low", "Medium", "High"]
Recommendation = Literal["Strong Recommend", "Recommend", "Caution", "Not Recommended"]


class Category(str, Enum):
    CAFE = "cafe"
    RESTAURANT = "restaurant"
    HOTEL = "hotel"
    HOSTEL = "hostel"


def category_key(category: Category | str | None) -> str:
    """Lower-cased category string for table lookups."""
    value = getattr(category, "value", category)
    return str(value or "").strip().lower()


class Coordinates(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float


class Place(BaseModel):
    model_config = ConfigDict(frozen=True)

    place_id: str = ""
    name: str = "Unknown"
    address: str = "Address not available"
    coordinates: Coordinates
    rating: Optional[float] = Field(None, ge=0, le=5)
    user_ratings_total: Optional[int] = Field(None, ge=0)
    price_level: Optional[int] = Field(None, ge=0, le=4)
    types: List[str] = Field(default_factory=list)

    @classmethod
    def from_google(cls, payload: Dict[str, Any]) -> Optional["Place"]:
        """
        Nearby-search result -> Place. Returns None when the entry has no
        usable location or carries out-of-range values.
        """
        loc = (payload.get("geometry") or {}).get("location") or {}
        try:
            coordinates = Coordinates(lat=float(loc["lat"]), lng=float(loc["lng"]))
        except (KeyError, TypeError, ValueError):
            return None

        try:
            return cls(
                place_id=str(payload.get("place_id") or ""),
                name=str(payload.get("name") or "Unknown").strip(),
                address=(
                    payload.get("vicinity")
                    or payload.get("formatted_address")
                    or "Address not available"
                ),
                coordinates=coordinates,
                rating=payload.get("rating"),
                user_ratings_total=payload.get("user_ratings_total"),
                price_level=payload.get("price_level"),
                types=[str(t) for t in payload.get("types") or []],
            )
        except ValueError:
            return None


class AlternativeCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    address: str
    coordinates: Coordinates
    place_id: str = ""
    score: int = Field(ge=0, le=100)
    reasons: List[str] = Field(default_factory=list)


class CompetitorProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    address: str
    coordinates: Optional[Coordinates] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    user_ratings_total: int = 0
    price_level: Optional[int] = Field(None, ge=0, le=4)
    website: Optional[str] = None
    phone: Optional[str] = None
    google_url: Optional[str] = None
    footfall: int = 0
    average_price_for_2: Optional[int] = None
    revenue: Optional[int] = None


class AnalysisMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    viability_score: int = Field(ge=0, le=100)
    competition_level: Level
    market_saturation: Level
    expected_revenue: int
    avg_revenue: int
    tam: int
    footfall: int
    competitor_count: int


def _to_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        raw = value
    else:
        raw = str(value).replace(",", "").replace("₹", "").strip()
    try:
        n = float(raw)
    except (ValueError, OverflowError):
        return None
    # inf / nan cannot become an int metric
    return n if math.isfinite(n) else None


def _to_level(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    level = value.strip().capitalize()
    return level if level in ("Low", "Medium", "High") else None


def _to_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    raise ValueError("expected a list of strings")


class NarrativeMetrics(BaseModel):
    """Metrics as reported by a narrative tier; unknown values stay None."""

    model_config = ConfigDict(populate_by_name=True)

    viability_score: Optional[int] = Field(
        None, validation_alias=AliasChoices("viabilityScore", "viability_score")
    )
    competition_level: Optional[Level] = Field(
        None, validation_alias=AliasChoices("competitionLevel", "competition_level")
    )
    market_saturation: Optional[Level] = Field(
        None, validation_alias=AliasChoices("marketSaturation", "market_saturation")
    )
    expected_revenue: Optional[int] = Field(
        None, validation_alias=AliasChoices("expectedRevenue", "expected_revenue")
    )
    avg_revenue: Optional[int] = Field(
        None, validation_alias=AliasChoices("avgRevenue", "avg_revenue")
    )
    tam: Optional[int] = Field(None, validation_alias=AliasChoices("tam", "TAM"))

    @field_validator("viability_score", mode="before")
    @classmethod
    def _score(cls, v):
        n = _to_number(v)
        return None if n is None else max(0, min(100, round(n)))

    @field_validator("expected_revenue", "avg_revenue", "tam", mode="before")
    @classmethod
    def _money(cls, v):
        n = _to_number(v)
        return None if n is None else max(0, round(n))

    @field_validator("competition_level", "market_saturation", mode="before")
    @classmethod
    def _level(cls, v):
        return _to_level(v)


class NarrativeAnalysis(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    summary: str = ""
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    opportunities: List[str] = Field(default_factory=list)
    threats: List[str] = Field(default_factory=list)
    metrics: NarrativeMetrics = Field(default_factory=NarrativeMetrics)
    recommendation: Optional[str] = None
    key_insights: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("keyInsights", "key_insights")
    )
    action_items: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("actionItems", "action_items")
    )
    source: Literal["llm", "text", "fallback"] = "llm"

    @field_validator(
        "strengths",
        "weaknesses",
        "opportunities",
        "threats",
        "key_insights",
        "action_items",
        mode="before",
    )
    @classmethod
    def _lists(cls, v):
        return _to_str_list(v)

    @field_validator("summary", mode="before")
    @classmethod
    def _summary(cls, v):
        return "" if v is None else str(v).strip()

    @field_validator("metrics", mode="before")
    @classmethod
    def _metrics(cls, v):
        return {} if v is None else v


class AnalysisReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    location: str
    category: Category
    coordinates: Coordinates
    summary: str
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    opportunities: List[str] = Field(default_factory=list)
    threats: List[str] = Field(default_factory=list)
    metrics: AnalysisMetrics
    recommendation: Recommendation
    key_insights: List[str] = Field(default_factory=list)
    action_items: List[str] = Field(default_factory=list)
    alternatives: List[AlternativeCandidate] = Field(default_factory=list)
    competitors: List[CompetitorProfile] = Field(default_factory=list)
    demographics: Optional[Dict[str, Any]] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ── HTTP request / response bodies ───────────────────────────────────────────
class AnalyzeRequest(BaseModel):
    location: Optional[str] = None
    category: Optional[str] = None
    demographics: Optional[Dict[str, Any]] = None


class CandidatesResponse(BaseModel):
    success: bool = True
    data: List[AlternativeCandidate]
