"""Shared pytest fixtures for the test suite."""

import asyncio
import os

import pytest

# Settings are read at import time, so set these BEFORE any app code imports.
os.environ.setdefault("GOOGLE_MAPS_SERVER_KEY", "test-maps-key")
os.environ.setdefault("LOG_DIR", "logs")

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from sitelens.core.errors import UpstreamError  # noqa: E402
from sitelens.db.session import create_tables  # noqa: E402
from sitelens.schemas.analysis import Coordinates, Place  # noqa: E402


def build_place(
    name="Place",
    place_id=None,
    rating=None,
    reviews=None,
    price=None,
    types=("cafe",),
    lat=12.97,
    lng=77.59,
    address=None,
):
    return Place(
        place_id=place_id if place_id is not None else f"id-{name}",
        name=name,
        address=address or f"{name} street",
        coordinates=Coordinates(lat=lat, lng=lng),
        rating=rating,
        user_ratings_total=reviews,
        price_level=price,
        types=list(types),
    )


class FakeMaps:
    """
    Stand-in for GoogleMapsClient.
    - `nearby` answers origin searches (no radius given)
    - `probes` answers radius searches in call order; Exception entries raise
    """

    def __init__(self, coordinates=None, nearby=None, probes=None, details=None):
        self.coordinates = coordinates or Coordinates(lat=12.97, lng=77.59)
        self.nearby = list(nearby or [])
        self.probes = list(probes or [])
        self.details = dict(details or {})
        self.geocode_calls = []
        self.nearby_calls = []
        self.details_calls = []

    async def geocode(self, address):
        self.geocode_calls.append(address)
        if isinstance(self.coordinates, Exception):
            raise self.coordinates
        return self.coordinates

    async def nearby_places(self, coordinates, category, radius=None, place_type=None):
        self.nearby_calls.append((coordinates, category, radius, place_type))
        if radius is None:
            return list(self.nearby)
        if not self.probes:
            return []
        result = self.probes.pop(0)
        if isinstance(result, Exception):
            raise result
        return list(result)

    async def place_details(self, place_id):
        self.details_calls.append(place_id)
        result = self.details.get(place_id, UpstreamError(f"no details for {place_id}"))
        if isinstance(result, Exception):
            raise result
        return result


class ScriptedLLM:
    def __init__(self, text):
        self.text = text
        self.prompts = []

    async def complete(self, system, prompt, **kwargs):
        self.prompts.append(prompt)
        return self.text


class FailingLLM:
    async def complete(self, system, prompt, **kwargs):
        raise UpstreamError("connection refused")


@pytest.fixture
def make_place():
    return build_place


@pytest.fixture
def fake_maps():
    return FakeMaps


@pytest.fixture
def scripted_llm():
    return ScriptedLLM


@pytest.fixture
def failing_llm():
    return FailingLLM()


@pytest.fixture
def session_factory(tmp_path):
    """File-backed aiosqlite store with the schema created."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool
    )

    asyncio.run(create_tables(engine))
    yield async_sessionmaker(engine, expire_on_commit=False)
    asyncio.run(engine.dispose())


@pytest.fixture
def empty_store(tmp_path):
    """Store without tables, so every read/write fails."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}", poolclass=NullPool
    )
    yield async_sessionmaker(engine, expire_on_commit=False)
    asyncio.run(engine.dispose())
