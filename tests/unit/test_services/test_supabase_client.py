"""Tests for the Supabase client singleton."""

import pytest
from unittest.mock import MagicMock, patch

from estate.config import settings
from estate.services import supabase_client
from estate.services.supabase_client import (
    SupabaseClient,
    close_supabase_client,
    get_supabase_client,
)
from estate.utils.errors import StoreError


@pytest.fixture(autouse=True)
def fresh_client():
    supabase_client._client = None
    yield
    supabase_client._client = None


@pytest.mark.unit
def test_missing_credentials(monkeypatch):
    monkeypatch.setattr(settings, "SUPABASE_URL", "")

    with pytest.raises(StoreError):
        get_supabase_client()


@pytest.mark.unit
def test_client_is_cached():
    with patch('estate.services.supabase_client.create_client') as mock_create:
        mock_create.return_value = MagicMock()

        first = get_supabase_client()
        second = get_supabase_client()

    assert first is second
    mock_create.assert_called_once()
    args = mock_create.call_args[0]
    assert args[0] == settings.SUPABASE_URL
    assert args[1] == settings.SUPABASE_SERVICE_ROLE_KEY


@pytest.mark.unit
@pytest.mark.asyncio
async def test_context_manager_and_close():
    with patch('estate.services.supabase_client.create_client') as mock_create:
        mock_create.side_effect = [MagicMock(name="first"), MagicMock(name="second")]

        async with SupabaseClient() as client:
            cached = client
        await close_supabase_client()
        async with SupabaseClient() as client:
            rebuilt = client

    assert cached is not rebuilt
    assert mock_create.call_count == 2
