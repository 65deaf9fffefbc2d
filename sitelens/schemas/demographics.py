# sitelens/schemas/demographics.py
# -----------------------------------------------------------------------------
# Demographic estimate for a coordinate
# -----------------------------------------------------------------------------
from datetime import datetime

from pydantic import BaseModel


class EducationMix(BaseModel):
    high_school: int
    bachelor: int
    graduate: int
    other: int


class SectorMix(BaseModel):
    technology: int
    finance: int
    retail: int
    education: int
    other: int


class Demographics(BaseModel):
    population_density: int
    average_income: int
    average_age: int
    footfall: int
    education: EducationMix
    employment_sectors: SectorMix
    postal_code: str
    data_source: str
    last_updated: datetime


class DemographicsResponse(BaseModel):
    success: bool = True
    data: Demographics
