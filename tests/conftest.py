"""
Shared pytest fixtures for ratiomix tests.

Nothing here reaches a real catalog or database; services get fakes from
tests.doubles and the API gets them through dependency overrides.
"""

import random
from datetime import date

import pytest

from ratiomix.mixers.playlist_mixer import PlaylistMixer
from tests.doubles import FakeCatalog, FakeDB, FakeSourceRepo, FakeSourceStore, catalog_track_json

AS_OF = date(2026, 1, 1)


@pytest.fixture
def rng():
    """Seeded random source so shuffles are reproducible."""
    return random.Random(1234)


@pytest.fixture
def mixer(rng):
    """PlaylistMixer with a fixed seed and a fixed 'today' for recency."""
    return PlaylistMixer(rng, as_of=AS_OF)


@pytest.fixture
def fake_catalog():
    """Catalog with two playlists of four tracks each."""
    return FakeCatalog(
        playlists={
            "cat-a": [catalog_track_json(f"a{i}", popularity=20 * i) for i in range(4)],
            "cat-b": [catalog_track_json(f"b{i}", popularity=90 - 10 * i) for i in range(4)],
        }
    )


@pytest.fixture
def fake_db():
    return FakeDB()


@pytest.fixture
def source_store():
    return FakeSourceStore()


@pytest.fixture
def fake_source_repo(monkeypatch, source_store):
    """Route every SourceRepo(db) built by the services to the in-memory store."""
    monkeypatch.setattr(
        "ratiomix.services.source_service.SourceRepo",
        lambda db: FakeSourceRepo(source_store),
    )
    return source_store
