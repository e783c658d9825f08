"""Shared pytest fixtures and configuration."""

import os
import pytest
from unittest.mock import MagicMock
from freezegun import freeze_time

# Set test environment variables
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-key")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("LOG_FORMAT", "text")

from estate.services.delivery import SessionHub  # noqa: E402
from estate.services.wiring import build_services  # noqa: E402
from tests.utils.helpers import FakeMediaStore  # noqa: E402
from tests.utils.memory_store import InMemoryDocumentStore  # noqa: E402


@pytest.fixture
def memory_store():
    """Fresh in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
def media():
    """Media store that records uploads and deletions."""
    return FakeMediaStore()


@pytest.fixture
def hub():
    """In-process session hub for live delivery."""
    return SessionHub()


@pytest.fixture
def services(memory_store, media, hub):
    """All workflow services wired over the in-memory store."""
    return build_services(store=memory_store, media=media, delivery=hub, configure_logging=False)


@pytest.fixture
def mock_supabase_query():
    """Chainable PostgREST query builder mock."""
    query = MagicMock()
    for method in ("select", "eq", "neq", "gt", "gte", "lt", "lte", "in_", "is_",
                   "contains", "overlaps", "order", "range", "update", "upsert", "delete"):
        getattr(query, method).return_value = query
    query.execute.return_value = MagicMock(data=[], count=0)
    return query


@pytest.fixture
def mock_supabase_client(mock_supabase_query):
    """Mock Supabase client whose tables all share one query mock."""
    client = MagicMock()
    client.table.return_value = mock_supabase_query
    return client


@pytest.fixture
def freeze_time_fixture():
    """Fixture for freezing time in tests."""
    with freeze_time("2024-12-09 12:00:00", real_asyncio=True) as frozen_time:
        yield frozen_time

