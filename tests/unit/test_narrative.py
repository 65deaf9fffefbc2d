import asyncio
import json

import pytest

from sitelens.schemas.analysis import CompetitorProfile, Coordinates
from sitelens.services.narrative import (
    NarrativeGenerator,
    NarrativeInput,
    build_prompt,
    competition_level_for,
    estimate_revenue,
    extract_financial_metric,
    extract_level,
    extract_list_items,
    extract_recommendation,
    extract_score,
    fallback_analysis,
    fallback_viability_score,
    parse_json_response,
)


def _competitors(n):
    return [CompetitorProfile(name=f"c{i}", address="x", user_ratings_total=i) for i in range(n)]


def _input(make_place, competitors=0, nearby=0, footfall=0, **kwargs):
    return NarrativeInput(
        coordinates=Coordinates(lat=12.97, lng=77.59),
        nearby_places=[make_place(f"n{i}") for i in range(nearby)],
        competitors=_competitors(competitors),
        footfall=footfall,
        **kwargs,
    )


# ── local heuristics ─────────────────────────────────────────────────────────

@pytest.mark.parametrize("count, level", [(0, "Low"), (2, "Low"), (3, "Medium"), (5, "Medium"), (6, "High")])
def test_competition_level_thresholds(count, level):
    assert competition_level_for(count) == level


def test_fallback_viability_bounds():
    assert fallback_viability_score(0, 0) == 85
    assert fallback_viability_score(20, 0) == 30
    assert fallback_viability_score(3, 3) == 76
    assert fallback_viability_score(0, 50) == 100


def test_estimate_revenue_scales_with_footfall():
    assert estimate_revenue("cafe", 0) == 200_000
    assert estimate_revenue("cafe", 1000) == 400_000
    assert estimate_revenue("cafe", 10_000) == 800_000
    assert estimate_revenue("unknown", 1500) == 900_000


def test_fallback_analysis_is_complete(make_place):
    analysis = fallback_analysis("MG Road", "hotel", _input(make_place, competitors=6, nearby=12, footfall=1500))

    m = analysis.metrics
    assert analysis.source == "fallback"
    assert m.competition_level == "High"
    assert m.market_saturation == "High"
    assert m.viability_score == max(30, 85 - 30 + 20)
    assert m.expected_revenue == 2_250_000
    assert m.avg_revenue == 1_200_000
    assert m.tam == 100_000_000
    assert analysis.recommendation == "Recommend"
    assert "High foot traffic area" in analysis.strengths
    assert "Intense competition" in analysis.threats
    assert len(analysis.action_items) == 4


# ── strict JSON tier ─────────────────────────────────────────────────────────

LLM_JSON = {
    "summary": "Strong cafe corridor.",
    "strengths": ["Office crowd", "Metro access"],
    "weaknesses": ["High rent"],
    "opportunities": ["Evening segment"],
    "threats": ["Chains nearby"],
    "metrics": {
        "viabilityScore": 82,
        "competitionLevel": "high",
        "marketSaturation": "Medium",
        "expectedRevenue": "15,00,000",
        "avgRevenue": 1200000,
        "tam": 500000000,
    },
    "recommendation": "Strongly Recommend",
    "keyInsights": ["Weekday peaks"],
    "actionItems": ["Negotiate lease"],
}


def test_parse_json_accepts_camel_case():
    analysis = parse_json_response(json.dumps(LLM_JSON))
    assert analysis.source == "llm"
    assert analysis.metrics.viability_score == 82
    assert analysis.metrics.competition_level == "High"
    assert analysis.metrics.expected_revenue == 1_500_000
    assert analysis.key_insights == ["Weekday peaks"]
    assert analysis.action_items == ["Negotiate lease"]


def test_parse_json_strips_code_fences():
    text = "```json\n" + json.dumps(LLM_JSON) + "\n```"
    assert parse_json_response(text).summary == "Strong cafe corridor."


def test_parse_json_finds_object_inside_prose():
    text = "Here is the analysis:\n" + json.dumps(LLM_JSON) + "\nHope this helps."
    assert parse_json_response(text).metrics.tam == 500_000_000


@pytest.mark.parametrize("text", ["no json here", "[1, 2, 3]", '{"strengths": {"a": 1}}'])
def test_parse_json_rejects_invalid_structure(text):
    with pytest.raises(ValueError):
        parse_json_response(text)


# ── text-mining tier ─────────────────────────────────────────────────────────

PROSE = """
Overall viability score: 68/100.

- Strength: dense office population nearby
- Key advantage is metro connectivity
• Challenge: parking is limited
1. Opportunity for late-night service
2. Risk of rent escalation
- Next step: survey weekday lunch demand

Competition level: High. Market saturation is low.
"expectedRevenue": 1200000
Proceed with caution.
"""


def test_extract_list_items_by_keyword():
    assert extract_list_items(PROSE, ["strength", "advantage", "positive"]) == [
        "Strength: dense office population nearby",
        "Key advantage is metro connectivity",
    ]
    assert extract_list_items(PROSE, ["threat", "risk", "competition"]) == [
        "Risk of rent escalation"
    ]


def test_extract_list_items_caps_at_five():
    text = "\n".join(f"- risk {i}" for i in range(8))
    assert len(extract_list_items(text, ["risk"])) == 5


def test_extract_score_variants():
    assert extract_score(PROSE) == 68
    assert extract_score("Location score: 71") == 71
    assert extract_score("about 64% viable") == 64
    assert extract_score("nothing numeric") is None


def test_extract_level():
    assert extract_level(PROSE, "competition") == "High"
    assert extract_level(PROSE, "saturation") == "Low"
    assert extract_level("no levels", "competition") is None


def test_extract_financial_metric():
    assert extract_financial_metric(PROSE, "expectedRevenue") == 1_200_000
    assert extract_financial_metric(PROSE, "tam") is None


@pytest.mark.parametrize(
    "text, expected",
    [
        ("This site is not recommended.", "Not Recommended"),
        ("We strongly recommend opening here.", "Strong Recommend"),
        ("We recommend this site.", "Recommend"),
        ("Proceed with caution.", "Caution"),
        ("No verdict.", None),
    ],
)
def test_extract_recommendation(text, expected):
    assert extract_recommendation(text) == expected


# ── generator chain ──────────────────────────────────────────────────────────

def test_generator_uses_strict_json(make_place, scripted_llm):
    llm = scripted_llm(json.dumps(LLM_JSON))
    analysis = asyncio.run(NarrativeGenerator(llm).generate("MG Road", "cafe", _input(make_place)))

    assert analysis.source == "llm"
    assert analysis.recommendation == "Strong Recommend"
    assert analysis.metrics.viability_score == 82


def test_generator_fills_missing_llm_metrics(make_place, scripted_llm):
    llm = scripted_llm(json.dumps({"summary": "Thin answer", "recommendation": "maybe"}))
    data = _input(make_place, competitors=3, nearby=3, footfall=200)
    analysis = asyncio.run(NarrativeGenerator(llm).generate("MG Road", "cafe", data))

    m = analysis.metrics
    assert m.viability_score == 76
    assert m.competition_level == "Medium"
    assert m.market_saturation == "Medium"
    assert m.expected_revenue == 200_000
    assert m.avg_revenue == 350_000
    assert m.tam == 25_000_000
    assert analysis.recommendation == "Recommend"


def test_generator_mines_prose(make_place, scripted_llm):
    llm = scripted_llm(PROSE)
    analysis = asyncio.run(NarrativeGenerator(llm).generate("MG Road", "cafe", _input(make_place)))

    m = analysis.metrics
    assert analysis.source == "text"
    assert analysis.summary == "Analysis for cafe location at MG Road"
    assert m.viability_score == 68
    assert m.competition_level == "High"
    assert m.market_saturation == "Low"
    assert m.expected_revenue == 1_200_000
    assert m.avg_revenue == 0
    assert m.tam == 0
    assert analysis.recommendation == "Caution"
    assert analysis.weaknesses == ["Challenge: parking is limited"]


def test_generator_text_defaults(make_place, scripted_llm):
    llm = scripted_llm("Looks fine overall.")
    analysis = asyncio.run(NarrativeGenerator(llm).generate("MG Road", "cafe", _input(make_place)))

    m = analysis.metrics
    assert m.viability_score == 75
    assert m.competition_level == "Medium"
    assert m.market_saturation == "Medium"
    assert (m.expected_revenue, m.avg_revenue, m.tam) == (0, 0, 0)
    assert analysis.recommendation == "Recommend"


def test_generator_falls_back_when_llm_fails(make_place, failing_llm):
    data = _input(make_place, competitors=3, nearby=3, footfall=200)
    analysis = asyncio.run(NarrativeGenerator(failing_llm).generate("MG Road", "cafe", data))

    assert analysis.source == "fallback"
    assert analysis.metrics.viability_score == 76
    assert analysis.metrics.competition_level == "Medium"


def test_prompt_embeds_location_data(make_place):
    data = _input(
        make_place,
        competitors=2,
        nearby=3,
        footfall=640,
        demographics={"averageIncome": 90000, "sectors": {"it": 40}},
    )
    prompt = build_prompt("Indiranagar", "restaurant", data)

    assert "Analyze this restaurant business location: Indiranagar" in prompt
    assert "- Nearby Places: 3 establishments" in prompt
    assert "- Competitors: 2 direct competitors" in prompt
    assert "- Estimated Daily Footfall: 640" in prompt
    assert "- averageIncome: 90000" in prompt
    assert "sectors" not in prompt
    assert "Indian Rupees" in prompt
    assert '"viabilityScore": 75' in prompt


@pytest.mark.parametrize(
    "metrics_json, score",
    [
        ('{"expectedRevenue": 1e999, "viabilityScore": 82}', 82),
        ('{"viabilityScore": ' + "9" * 400 + ', "tam": -1e999}', 76),
        ('{"avgRevenue": "' + "9" * 400 + '"}', 76),
    ],
)
def test_generator_ignores_non_finite_llm_numbers(make_place, scripted_llm, metrics_json, score):
    llm = scripted_llm('{"summary": "Huge numbers", "metrics": ' + metrics_json + "}")
    data = _input(make_place, competitors=3, nearby=3, footfall=200)
    analysis = asyncio.run(NarrativeGenerator(llm).generate("MG Road", "cafe", data))

    m = analysis.metrics
    assert analysis.source == "llm"
    assert m.viability_score == score
    assert m.expected_revenue == 200_000
    assert m.avg_revenue == 350_000
    assert m.tam == 25_000_000