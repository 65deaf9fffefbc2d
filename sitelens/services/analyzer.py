# sitelens/services/analyzer.py
# -----------------------------------------------------------------------------
# Analysis pipeline
# geocode -> (nearby places || alternatives) -> competitors -> narrative
# -> report -> cache + best-effort store
# -----------------------------------------------------------------------------
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from loguru import logger

from sitelens.core.config import settings
from sitelens.core.errors import NotFoundError, PersistenceError, ValidationError
from sitelens.db import crud
from sitelens.db.session import AsyncSessionLocal
from sitelens.schemas.analysis import (
    AlternativeCandidate,
    AnalysisMetrics,
    AnalysisReport,
    Category,
)
from sitelens.schemas.demographics import Demographics
from sitelens.services.alternatives import find_alternatives
from sitelens.services.cache import ReportCache
from sitelens.services.competitors import build_competitors, estimate_footfall
from sitelens.services.demographics import CensusClient, estimate_demographics
from sitelens.services.google_maps import GoogleMapsClient
from sitelens.services.narrative import NarrativeGenerator, NarrativeInput
from sitelens.services.openai_client import OpenAIClient

ANALYSIS_ALTERNATIVES = 5
CANDIDATES_DEFAULT_LIMIT = 4


def parse_category(category: Any) -> Category:
    if category is None or not str(getattr(category, "value", category)).strip():
        raise ValidationError("Location and category are required")
    value = str(getattr(category, "value", category)).strip().lower()
    try:
        return Category(value)
    except ValueError:
        allowed = ", ".join(c.value for c in Category)
        raise ValidationError(f"Category must be one of: {allowed}") from None


def validate_request(location: Optional[str], category: Any) -> Tuple[str, Category]:
    if not location or not str(location).strip():
        raise ValidationError("Location and category are required")
    return str(location).strip(), parse_category(category)


class AnalysisService:
    def __init__(
        self,
        maps: Optional[GoogleMapsClient] = None,
        llm: Optional[OpenAIClient] = None,
        cache: Optional[ReportCache] = None,
        session_factory=None,
        census: Optional[CensusClient] = None,
    ):
        # ReportCache defines __len__, so an empty one is falsy: test for None
        self.maps = maps if maps is not None else GoogleMapsClient()
        self.narrative = NarrativeGenerator(llm if llm is not None else OpenAIClient())
        self.cache = cache if cache is not None else ReportCache(settings.ANALYSIS_CACHE_SIZE)
        self.session_factory = (
            session_factory if session_factory is not None else AsyncSessionLocal
        )
        self.census = census

    async def analyze(
        self,
        location: Optional[str],
        category: Any,
        demographics: Optional[Dict[str, Any]] = None,
    ) -> AnalysisReport:
        location, category = validate_request(location, category)
        analysis_id = str(uuid4())
        logger.info(f"[{analysis_id}] Analysis initiated for {location!r} ({category.value})")

        # 1) geocode: failures end the request
        coordinates = await self.maps.geocode(location)
        logger.info(f"[{analysis_id}] Step 1: geocoded to {coordinates.lat},{coordinates.lng}")

        # 2) nearby places and alternative sites are independent
        nearby, alternatives = await asyncio.gather(
            self.maps.nearby_places(coordinates, category),
            find_alternatives(
                self.maps, coordinates.lat, coordinates.lng, category, ANALYSIS_ALTERNATIVES
            ),
        )
        footfall = estimate_footfall(nearby)
        logger.info(
            f"[{analysis_id}] Step 2: {len(nearby)} nearby places, "
            f"{len(alternatives)} alternatives, footfall {footfall}"
        )

        # 3) competitor profiles
        competitors = await build_competitors(self.maps, nearby)
        logger.info(f"[{analysis_id}] Step 3: {len(competitors)} competitor profiles")

        # 4) narrative
        narrative = await self.narrative.generate(
            location,
            category,
            NarrativeInput(
                coordinates=coordinates,
                nearby_places=nearby,
                alternatives=alternatives,
                competitors=competitors,
                footfall=footfall,
                demographics=demographics,
            ),
        )
        logger.info(f"[{analysis_id}] Step 4: narrative from {narrative.source} tier")

        # 5) assemble
        m = narrative.metrics
        report = AnalysisReport(
            id=analysis_id,
            location=location,
            category=category,
            coordinates=coordinates,
            summary=narrative.summary or "No summary available.",
            strengths=narrative.strengths,
            weaknesses=narrative.weaknesses,
            opportunities=narrative.opportunities,
            threats=narrative.threats,
            metrics=AnalysisMetrics(
                viability_score=m.viability_score,
                competition_level=m.competition_level,
                market_saturation=m.market_saturation,
                expected_revenue=m.expected_revenue,
                avg_revenue=m.avg_revenue,
                tam=m.tam,
                footfall=footfall,
                competitor_count=len(nearby),
            ),
            recommendation=narrative.recommendation,
            key_insights=narrative.key_insights,
            action_items=narrative.action_items,
            alternatives=alternatives,
            competitors=competitors,
            demographics=demographics,
        )

        self.cache.put(report.id, report)
        await self._persist(report)
        logger.info(f"[{analysis_id}] Step 5: report assembled")
        return report

    async def _persist(self, report: AnalysisReport) -> None:
        try:
            async with self.session_factory() as db:
                await crud.save_analysis(db, report)
        except PersistenceError as e:
            logger.error(f"[{report.id}] store write failed, serving from cache only: {e}")

    async def get_analysis(self, analysis_id: str) -> AnalysisReport:
        if not analysis_id or not str(analysis_id).strip():
            raise ValidationError("Analysis ID is required")

        cached = self.cache.get(analysis_id)
        if cached is not None:
            return cached

        report = None
        try:
            async with self.session_factory() as db:
                report = await crud.get_analysis(db, analysis_id)
        except PersistenceError as e:
            logger.error(f"[{analysis_id}] store read failed: {e}")

        if report is None:
            raise NotFoundError(f"Analysis {analysis_id} not found")
        self.cache.put(report.id, report)
        return report

    async def find_alternatives(
        self,
        lat: float,
        lng: float,
        category: Any,
        limit: int = CANDIDATES_DEFAULT_LIMIT,
    ) -> List[AlternativeCandidate]:
        return await find_alternatives(self.maps, lat, lng, parse_category(category), limit)

    async def demographics(self, lat: float, lng: float) -> Demographics:
        return await estimate_demographics(self.maps, lat, lng, self.census)


_service: Optional[AnalysisService] = None


def get_analysis_service() -> AnalysisService:
    """Process-wide service so every request shares one report cache."""
    global _service
    if _service is None:
        _service = AnalysisService()
    return _service
