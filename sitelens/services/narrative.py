# sitelens/services/narrative.py
# -----------------------------------------------------------------------------
# Narrative analysis
# - tier 1: strict JSON from the LLM (fences / stray prose stripped)
# - tier 2: heuristic text mining when the LLM answered in prose
# - tier 3: local deterministic analysis when the LLM call failed
# Whatever tier answers, metrics come back fully populated.
# -----------------------------------------------------------------------------
from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from sitelens.core.errors import UpstreamError
from sitelens.schemas.analysis import (
    AlternativeCandidate,
    Category,
    CompetitorProfile,
    Coordinates,
    NarrativeAnalysis,
    NarrativeMetrics,
    Place,
    category_key,
)

SYSTEM_PROMPT = (
    "You are a location intelligence expert specializing in hospitality business "
    "analysis. Provide detailed, data-driven insights for business location decisions."
)

RESPONSE_TEMPLATE = """{
  "summary": "Executive summary of location viability",
  "strengths": ["key advantages"],
  "weaknesses": ["potential challenges"],
  "opportunities": ["market opportunities"],
  "threats": ["competitive threats"],
  "metrics": {
    "viabilityScore": 75,
    "competitionLevel": "Medium",
    "marketSaturation": "Medium",
    "expectedRevenue": 15000000,
    "avgRevenue": 12000000,
    "tam": 500000000
  },
  "recommendation": "Recommend",
  "keyInsights": ["3-5 critical insights"],
  "actionItems": ["specific next steps"]
}"""

# ── local heuristic tables (rupees) ──────────────────────────────────────────
BASE_REVENUE = {"restaurant": 800_000, "cafe": 400_000, "hotel": 1_500_000, "hostel": 600_000}
AVERAGE_REVENUE = {"restaurant": 750_000, "cafe": 350_000, "hotel": 1_200_000, "hostel": 500_000}
BASE_TAM = {
    "restaurant": 50_000_000,
    "cafe": 25_000_000,
    "hotel": 100_000_000,
    "hostel": 30_000_000,
}
DEFAULT_BASE_REVENUE = 600_000
DEFAULT_AVERAGE_REVENUE = 500_000
DEFAULT_TAM = 40_000_000

TEXT_DEFAULT_SCORE = 75
TEXT_DEFAULT_LEVEL = "Medium"

LIST_KEYWORDS: Dict[str, Sequence[str]] = {
    "strengths": ("strength", "advantage", "positive"),
    "weaknesses": ("weakness", "challenge", "concern"),
    "opportunities": ("opportunity", "potential"),
    "threats": ("threat", "risk", "competition"),
    "key_insights": ("insight", "key", "important"),
    "action_items": ("action", "next", "step", "recommend"),
}

_BULLET_RE = re.compile(r"^(?:[-•*]|\d+[.)])\s*")
_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)
_SCORE_PATTERNS = (
    re.compile(r"(\d{1,3}(?:\.\d+)?)\s*/\s*100"),
    re.compile(r"score\D{0,20}?(\d{1,3}(?:\.\d+)?)", re.IGNORECASE),
    re.compile(r"(\d{1,3}(?:\.\d+)?)\s*%"),
)


@dataclass(slots=True)
class NarrativeInput:
    coordinates: Coordinates
    nearby_places: List[Place] = field(default_factory=list)
    alternatives: List[AlternativeCandidate] = field(default_factory=list)
    competitors: List[CompetitorProfile] = field(default_factory=list)
    footfall: int = 0
    demographics: Optional[Dict[str, Any]] = None


# ── heuristics shared by the tiers ───────────────────────────────────────────
def competition_level_for(competitor_count: int) -> str:
    if competitor_count > 5:
        return "High"
    if competitor_count > 2:
        return "Medium"
    return "Low"


def fallback_viability_score(competitor_count: int, nearby_count: int) -> int:
    score = 85 - competitor_count * 5 + min(nearby_count * 2, 20)
    return min(100, max(30, score))


def estimate_revenue(category: Category | str, footfall: int) -> int:
    base = BASE_REVENUE.get(category_key(category), DEFAULT_BASE_REVENUE)
    multiplier = max(0.5, min(2.0, footfall / 1000))
    return math.floor(base * multiplier + 0.5)


def average_revenue(category: Category | str) -> int:
    return AVERAGE_REVENUE.get(category_key(category), DEFAULT_AVERAGE_REVENUE)


def estimate_tam(category: Category | str) -> int:
    return BASE_TAM.get(category_key(category), DEFAULT_TAM)


def recommendation_for_score(score: int) -> str:
    if score > 70:
        return "Recommend"
    if score > 50:
        return "Caution"
    return "Not Recommended"


# ── prompt ───────────────────────────────────────────────────────────────────
def build_prompt(location: str, category: Category | str, data: NarrativeInput) -> str:
    cat = category_key(category)
    competitor_lines = "\n".join(
        f"- {c.name}: {c.rating if c.rating is not None else 'n/a'}/5 "
        f"({c.user_ratings_total} reviews)"
        for c in data.competitors
    )
    amenity_lines = "\n".join(
        f"- {p.name} ({', '.join(p.types)})" for p in data.nearby_places[:10]
    )

    sections = [
        f"Analyze this {cat} business location: {location}",
        "",
        "LOCATION DATA:",
        f"- Coordinates: {data.coordinates.lat}, {data.coordinates.lng}",
        f"- Nearby Places: {len(data.nearby_places)} establishments",
        f"- Competitors: {len(data.competitors)} direct competitors",
        f"- Estimated Daily Footfall: {data.footfall}",
        f"- Alternative Locations: {len(data.alternatives)} options identified",
        "",
        "COMPETITOR ANALYSIS:",
        competitor_lines or "- none found",
        "",
        "NEARBY AMENITIES:",
        amenity_lines or "- none found",
    ]
    if data.demographics:
        sections += ["", "DEMOGRAPHICS:"]
        sections += [
            f"- {k}: {v}"
            for k, v in data.demographics.items()
            if isinstance(v, (str, int, float))
        ]
    sections += [
        "",
        "Please provide a comprehensive JSON analysis. IMPORTANT: For all financial "
        "metrics (expectedRevenue, avgRevenue, tam), you MUST provide a numerical value "
        "in Indian Rupees (INR). If you cannot calculate a specific value, return 0. "
        "Respond with JSON only, matching this structure:",
        RESPONSE_TEMPLATE,
    ]
    return "\n".join(sections)


# ── tier 1: strict JSON ──────────────────────────────────────────────────────
def _strip_fences(text: str) -> str:
    text = text.strip()
    m = _FENCE_RE.match(text)
    return m.group(1) if m else text


def parse_json_response(text: str) -> NarrativeAnalysis:
    """Raises ValueError (incl. pydantic/JSON errors) when the text is not an analysis."""
    candidate = _strip_fences(text)
    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError:
        start, end = candidate.find("{"), candidate.rfind("}")
        if start == -1 or end <= start:
            raise
        payload = json.loads(candidate[start : end + 1])

    if not isinstance(payload, dict):
        raise ValueError("analysis payload is not a JSON object")
    return NarrativeAnalysis.model_validate({**payload, "source": "llm"})


# ── tier 2: text mining ──────────────────────────────────────────────────────
def extract_list_items(text: str, keywords: Sequence[str], limit: int = 5) -> List[str]:
    items: List[str] = []
    for line in text.splitlines():
        trimmed = line.strip()
        if not _BULLET_RE.match(trimmed):
            continue
        content = _BULLET_RE.sub("", trimmed, count=1).strip()
        lowered = content.lower()
        if content and any(k in lowered for k in keywords):
            items.append(content)
    return items[:limit]


def extract_score(text: str) -> Optional[int]:
    for pattern in _SCORE_PATTERNS:
        m = pattern.search(text)
        if m:
            return max(0, min(100, round(float(m.group(1)))))
    return None


def extract_level(text: str, keyword: str) -> Optional[str]:
    m = re.search(
        rf"{keyword}\w*(?:\s+level)?\s*[:\-]?\s*(?:is\s+)?(low|medium|high)",
        text,
        re.IGNORECASE,
    )
    return m.group(1).capitalize() if m else None


def extract_financial_metric(text: str, metric: str) -> Optional[int]:
    m = re.search(rf'"?{metric}"?\s*[:=]\s*₹?\s*([\d,]+)', text)
    if not m:
        return None
    digits = m.group(1).replace(",", "")
    return int(digits) if digits else None


def extract_recommendation(text: str) -> Optional[str]:
    lowered = text.lower()
    if "not recommend" in lowered:
        return "Not Recommended"
    if "strongly recommend" in lowered or "strong recommend" in lowered:
        return "Strong Recommend"
    if "recommend" in lowered:
        return "Recommend"
    if "caution" in lowered:
        return "Caution"
    return None


def parse_text_response(text: str, location: str, category: Category | str) -> NarrativeAnalysis:
    score = extract_score(text)
    lists = {name: extract_list_items(text, kws) for name, kws in LIST_KEYWORDS.items()}
    return NarrativeAnalysis(
        summary=f"Analysis for {category_key(category)} location at {location}",
        metrics=NarrativeMetrics(
            viability_score=TEXT_DEFAULT_SCORE if score is None else score,
            competition_level=extract_level(text, "competition") or TEXT_DEFAULT_LEVEL,
            market_saturation=extract_level(text, "saturation") or TEXT_DEFAULT_LEVEL,
            expected_revenue=extract_financial_metric(text, "expectedRevenue") or 0,
            avg_revenue=extract_financial_metric(text, "avgRevenue") or 0,
            tam=extract_financial_metric(text, "tam") or 0,
        ),
        recommendation=extract_recommendation(text) or "Recommend",
        source="text",
        **lists,
    )


# ── tier 3: local fallback ───────────────────────────────────────────────────
def fallback_analysis(
    location: str, category: Category | str, data: NarrativeInput
) -> NarrativeAnalysis:
    cat = category_key(category)
    competitors = len(data.competitors)
    nearby = len(data.nearby_places)
    footfall = data.footfall

    level = competition_level_for(competitors)
    score = fallback_viability_score(competitors, nearby)

    return NarrativeAnalysis(
        summary=(
            f"Location analysis for {cat} business at {location}. "
            f"Based on {competitors} competitors and {nearby} nearby establishments."
        ),
        strengths=[
            "High foot traffic area" if footfall > 1000 else "Moderate foot traffic",
            "Well-established commercial area" if nearby > 10 else "Developing area",
            "Low competition" if competitors < 3 else "Established market",
        ],
        weaknesses=[
            "High competition" if competitors > 5 else "Market validation needed",
            "Limited foot traffic" if footfall < 500 else "Traffic analysis required",
        ],
        opportunities=[
            "Market expansion potential",
            "Customer base development",
            "Service differentiation",
        ],
        threats=[
            "Intense competition" if level == "High" else "New market entrants",
            "Economic fluctuations",
            "Changing consumer preferences",
        ],
        metrics=NarrativeMetrics(
            viability_score=score,
            competition_level=level,
            market_saturation=level,
            expected_revenue=estimate_revenue(cat, footfall),
            avg_revenue=average_revenue(cat),
            tam=estimate_tam(cat),
        ),
        recommendation=recommendation_for_score(score),
        key_insights=[
            f"Competition level: {level}",
            f"Estimated daily footfall: {footfall}",
            f"Viability score: {score}/100",
            f"Market saturation: {level}",
        ],
        action_items=[
            "Conduct detailed market research",
            "Analyze competitor pricing",
            "Validate customer demand",
            "Assess operational costs",
        ],
        source="fallback",
    )


def complete_analysis(
    analysis: NarrativeAnalysis, category: Category | str, data: NarrativeInput
) -> NarrativeAnalysis:
    """Fill every metric the answering tier left out from local heuristics."""
    m = analysis.metrics
    competitors = len(data.competitors)
    level = m.competition_level or competition_level_for(competitors)
    score = (
        m.viability_score
        if m.viability_score is not None
        else fallback_viability_score(competitors, len(data.nearby_places))
    )
    metrics = NarrativeMetrics(
        viability_score=score,
        competition_level=level,
        market_saturation=m.market_saturation or level,
        expected_revenue=_first(m.expected_revenue, estimate_revenue(category, data.footfall)),
        avg_revenue=_first(m.avg_revenue, average_revenue(category)),
        tam=_first(m.tam, estimate_tam(category)),
    )
    recommendation = (
        extract_recommendation(analysis.recommendation or "")
        or recommendation_for_score(score)
    )
    return analysis.model_copy(update={"metrics": metrics, "recommendation": recommendation})


def _first(value, default):
    return default if value is None else value


class NarrativeGenerator:
    def __init__(self, llm):
        self.llm = llm

    async def generate(
        self, location: str, category: Category | str, data: NarrativeInput
    ) -> NarrativeAnalysis:
        prompt = build_prompt(location, category, data)
        try:
            text = await self.llm.complete(SYSTEM_PROMPT, prompt)
        except UpstreamError as e:
            logger.warning(f"[Narrative] LLM unavailable, using local analysis: {e}")
            return fallback_analysis(location, category, data)

        try:
            analysis = parse_json_response(text)
        except (ValueError, PydanticValidationError) as e:
            logger.warning(f"[Narrative] LLM answer is not valid JSON, mining text: {e}")
            analysis = parse_text_response(text, location, category)

        return complete_analysis(analysis, category, data)
