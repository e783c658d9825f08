"""Identifier and timestamp helpers."""

import uuid
from datetime import datetime, timezone

from ulid import ULID


def generate_document_id() -> str:
    """Generate a text-based document ID (ULID format, 26 chars, sortable)."""
    return str(ULID())


def generate_license() -> str:
    """Generate an agent license: 32 lowercase hex chars, no dashes."""
    return uuid.uuid4().hex


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()
