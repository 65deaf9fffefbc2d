# sitelens/db/models.py
# -----------------------------------------------------------------------------
# ORM models
# - Analysis: one finished report, nested structures in JSON columns
# -----------------------------------------------------------------------------
from sqlalchemy import Column, DateTime, Index, JSON, String, Text
from sitelens.db.session import Base


class Analysis(Base):
    __tablename__ = "analyses"

    id = Column(String(36), primary_key=True)
    location = Column(String, nullable=False)
    category = Column(String, index=True, nullable=False)
    coordinates = Column(JSON, nullable=False)
    summary = Column(Text, default="")

    strengths = Column(JSON, default=list)
    weaknesses = Column(JSON, default=list)
    opportunities = Column(JSON, default=list)
    threats = Column(JSON, default=list)

    metrics = Column(JSON, nullable=False)
    recommendation = Column(String, nullable=False)
    key_insights = Column(JSON, default=list)
    action_items = Column(JSON, default=list)

    alternatives = Column(JSON, default=list)
    competitors = Column(JSON, default=list)
    demographics = Column(JSON, nullable=True)

    user_id = Column(String, nullable=True)  # no auth yet, always null
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("ix_analyses_created_at", "created_at"),)
