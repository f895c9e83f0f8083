"""
tests/conftest.py -- Shared test fixtures for Cinebase.

This module provides:
  - identity_store / catalog / rating_store / engine: stores over one fresh
    shared-memory database per test
  - make_identity(): registers an identity through the real authenticator
  - api_client: TestClient wired to isolated stores, plus an admin token

Design: the API fixture uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread.

Environment must be set before any project import: DEBUG lets get_settings()
auto-generate SECRET_KEY, BCRYPT_ROUNDS=4 keeps hashing fast, and a high
LOGIN_RATE_LIMIT stops the login limiter from tripping across test modules.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
# TestClient sends Host: testserver; production defaults do not allow it.
os.environ.setdefault("ALLOWED_HOSTS", '["testserver"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.authenticator import register
from auth.models import Identity, Role
from auth.store import IdentityStore
from auth.tokens import create_access_token
from catalog.models import Movie
from catalog.store import CatalogStore
from ratings.engine import RatingEngine
from ratings.store import RatingStore


def _shared_memory_url(prefix: str) -> str:
    """Named in-memory database visible to every engine and thread in this process."""
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


# ---------------------------------------------------------------------------
# Unit-level store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db_url() -> str:
    """One database per test, shared by all stores so RatingEngine.delete_item() can span them."""
    return _shared_memory_url("unit")


@pytest.fixture
def identity_store(db_url: str) -> Generator[IdentityStore, None, None]:
    store = IdentityStore(db_url)
    yield store
    store.close()


@pytest.fixture
def catalog(db_url: str) -> Generator[CatalogStore, None, None]:
    store = CatalogStore(db_url)
    yield store
    store.close()


@pytest.fixture
def rating_store(db_url: str) -> Generator[RatingStore, None, None]:
    store = RatingStore(db_url)
    yield store
    store.close()


@pytest.fixture
def engine(rating_store: RatingStore, catalog: CatalogStore) -> RatingEngine:
    return RatingEngine(rating_store, catalog, score_min=1, score_max=10)


@pytest.fixture
def movie_id(catalog: CatalogStore) -> int:
    return catalog.create_item(
        Movie(title="Alien", genre="Sci-Fi", release_year=1979, director="Ridley Scott")
    )


@pytest.fixture
def make_identity(identity_store: IdentityStore) -> Callable[..., Identity]:
    """Register identities through the real authenticator (hashes the password)."""

    def _make(name: str, role: Role = Role.MEMBER, password: str = "pw123456") -> Identity:
        return register(identity_store, name, f"{name}@cinebase.io", password, role)

    return _make


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(identity_store: IdentityStore, catalog_store: CatalogStore, ratings: RatingStore):
    """Return a lifespan that wires pre-created test stores into app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.identity_store = identity_store
        app.state.catalog = catalog_store
        app.state.rating_store = ratings
        app.state.rating_engine = RatingEngine(ratings, catalog_store, score_min=1, score_max=10)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, IdentityStore], None, None]:
    """Yield (client, admin_token, identity_store) for API integration tests.

    The admin identity "admin" / "pw123456" exists before the client starts.
    Each test module gets its own database.
    """
    db_url = _shared_memory_url("api")
    identity_store = IdentityStore(db_url)
    catalog_store = CatalogStore(db_url)
    ratings = RatingStore(db_url)

    register(identity_store, "admin", "admin@cinebase.io", "pw123456", Role.ADMIN)
    token = create_access_token("admin", Role.ADMIN, expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(identity_store, catalog_store, ratings)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, identity_store

    ratings.close()
    catalog_store.close()
    identity_store.close()
