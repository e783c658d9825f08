"""Error handling utilities."""

from typing import Optional


class EstateError(Exception):
    """Base exception for the marketplace workflow core."""
    status_code: int = 500

    def __init__(self, message: str, *, detail: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class NotFoundError(EstateError):
    """Referenced user, agent, property or notification does not exist."""
    status_code = 404


class BadRequestError(EstateError):
    """Invalid input or a transition the state machine does not allow."""
    status_code = 400


class ConflictError(BadRequestError):
    """Duplicate request, or the document changed under a conditional write."""
    status_code = 409


class ForbiddenError(EstateError):
    """Ownership or role check failed."""
    status_code = 403


class StoreError(EstateError):
    """Document store operation error."""
    status_code = 503
