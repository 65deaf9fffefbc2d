# sitelens/routers/analysis.py
# -----------------------------------------------------------------------------
# /analysis      : run the pipeline, fetch a stored report
# /candidates    : alternative sites around a coordinate
# /demographics  : demographic estimate around a coordinate
# -----------------------------------------------------------------------------
from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger

from sitelens.core.errors import (
    NotFoundError,
    SiteLensError,
    UpstreamError,
    ValidationError,
)
from sitelens.schemas.analysis import AnalysisReport, AnalyzeRequest, CandidatesResponse
from sitelens.schemas.demographics import DemographicsResponse
from sitelens.services.analyzer import AnalysisService, get_analysis_service

router = APIRouter(tags=["analysis"])


def _http_error(e: SiteLensError) -> HTTPException:
    if isinstance(e, ValidationError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, UpstreamError):
        return HTTPException(status_code=502, detail=str(e))
    # ConfigurationError and anything unexpected
    return HTTPException(status_code=500, detail=str(e))


@router.post("/analysis", response_model=AnalysisReport)
async def create_analysis(
    req: AnalyzeRequest, service: AnalysisService = Depends(get_analysis_service)
):
    try:
        return await service.analyze(req.location, req.category, req.demographics)
    except SiteLensError as e:
        logger.error(f"Analysis failed for {req.location!r}: {e}")
        raise _http_error(e)


@router.get("/analysis/{analysis_id}", response_model=AnalysisReport)
async def read_analysis(
    analysis_id: str, service: AnalysisService = Depends(get_analysis_service)
):
    try:
        return await service.get_analysis(analysis_id)
    except SiteLensError as e:
        raise _http_error(e)


@router.get("/candidates", response_model=CandidatesResponse)
async def candidates(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    cat: str = Query(...),
    limit: int = Query(4, ge=1, le=20),
    service: AnalysisService = Depends(get_analysis_service),
):
    try:
        data = await service.find_alternatives(lat, lng, cat, limit)
    except SiteLensError as e:
        raise _http_error(e)
    return CandidatesResponse(data=data)


@router.get("/demographics", response_model=DemographicsResponse)
async def demographics(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    service: AnalysisService = Depends(get_analysis_service),
):
    try:
        data = await service.demographics(lat, lng)
    except SiteLensError as e:
        raise _http_error(e)
    return DemographicsResponse(data=data)
