"""
tests/conftest.py -- Shared test fixtures for Vet1Stop tests.

This module provides:
  - store: an isolated in-memory ResourceStore
  - make_resource(): builds a valid Resource with overridable fields
  - persistence: an isolated in-memory SessionPersistence
  - http: a MagicMock standing in for requests.Session
  - provider_payload() / http_response(): canned Identity Toolkit responses

Plain sqlite:///:memory: is enough here: nothing runs in a thread pool, and
SQLAlchemy keeps a single connection per thread for in-memory SQLite, so the
schema created in __init__ is visible to every later query.
"""

from __future__ import annotations

from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from auth.store import SessionPersistence
from resources.models import Resource, ResourceCategory, ResourceSubcategory
from resources.store import ResourceStore

_BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def at_minute(minutes: int) -> str:
    """ISO timestamp `minutes` after a fixed base time -- deterministic ordering in tests."""
    return (_BASE_TIME + timedelta(minutes=minutes)).isoformat()


def make_resource(**overrides) -> Resource:
    fields = {
        "title": "GI Bill Comparison Tool",
        "category": ResourceCategory.EDUCATION,
        "subcategory": ResourceSubcategory.FEDERAL,
        "description": "Compare benefits across schools and training programs.",
        "url": "https://www.va.gov/education/gi-bill-comparison-tool/",
        "tags": [],
    }
    fields.update(overrides)
    return Resource(**fields)


def provider_payload(**overrides) -> dict:
    payload = {
        "localId": "uid-123",
        "email": "vet@example.com",
        "displayName": "Pat Veteran",
        "photoUrl": "https://example.com/pat.png",
        "idToken": "id-token-abc",
        "refreshToken": "refresh-token-xyz",
    }
    payload.update(overrides)
    return payload


def http_response(status: int = 200, body: dict | None = None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.ok = status < 400
    resp.json.return_value = body if body is not None else {}
    return resp


def error_response(message: str, status: int = 400) -> MagicMock:
    return http_response(status, {"error": {"code": status, "message": message}})


@pytest.fixture
def store() -> Generator[ResourceStore, None, None]:
    s = ResourceStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def persistence() -> Generator[SessionPersistence, None, None]:
    p = SessionPersistence("sqlite:///:memory:")
    yield p
    p.close()


@pytest.fixture
def http() -> MagicMock:
    return MagicMock()


# ---------------------------------------------------------------------------
# Factory fixtures -- expose the helpers above to test modules
# ---------------------------------------------------------------------------


@pytest.fixture(name="make_resource")
def make_resource_fixture():
    return make_resource


@pytest.fixture(name="at_minute")
def at_minute_fixture():
    return at_minute


@pytest.fixture(name="provider_payload")
def provider_payload_fixture():
    return provider_payload


@pytest.fixture(name="http_response")
def http_response_fixture():
    return http_response


@pytest.fixture(name="error_response")
def error_response_fixture():
    return error_response
