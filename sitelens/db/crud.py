# sitelens/db/crud.py
# -----------------------------------------------------------------------------
# Read/write helpers for analyses
# - store failures are re-raised as PersistenceError
# -----------------------------------------------------------------------------
from datetime import timezone

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sitelens.core.errors import PersistenceError
from sitelens.db.models import Analysis
from sitelens.schemas.analysis import AnalysisReport

JSON_FIELDS = (
    "coordinates",
    "strengths",
    "weaknesses",
    "opportunities",
    "threats",
    "metrics",
    "key_insights",
    "action_items",
    "alternatives",
    "competitors",
    "demographics",
)


def report_to_row(report: AnalysisReport) -> Analysis:
    data = report.model_dump(mode="json")
    return Analysis(
        id=report.id,
        location=report.location,
        category=report.category.value,
        summary=report.summary,
        recommendation=report.recommendation,
        created_at=report.created_at.astimezone(timezone.utc),
        **{k: data[k] for k in JSON_FIELDS},
    )


def row_to_report(row: Analysis) -> AnalysisReport:
    created_at = row.created_at
    if created_at is not None and created_at.tzinfo is None:
        # SQLite drops the offset; rows are always written in UTC
        created_at = created_at.replace(tzinfo=timezone.utc)
    return AnalysisReport.model_validate(
        {
            "id": row.id,
            "location": row.location,
            "category": row.category,
            "summary": row.summary or "",
            "recommendation": row.recommendation,
            "created_at": created_at,
            **{k: getattr(row, k) for k in JSON_FIELDS},
        }
    )


async def save_analysis(db: AsyncSession, report: AnalysisReport) -> None:
    """Upsert by id."""
    try:
        await db.merge(report_to_row(report))
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise PersistenceError(f"could not store analysis {report.id}: {e}") from e


async def get_analysis(db: AsyncSession, analysis_id: str) -> AnalysisReport | None:
    try:
        res = await db.execute(select(Analysis).where(Analysis.id == analysis_id))
        row = res.scalar_one_or_none()
    except SQLAlchemyError as e:
        raise PersistenceError(f"could not read analysis {analysis_id}: {e}") from e

    if row is None:
        return None
    try:
        return row_to_report(row)
    except PydanticValidationError as e:
        raise PersistenceError(f"stored analysis {analysis_id} is malformed: {e}") from e
