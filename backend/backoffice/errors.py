"""
Error taxonomy for the POS pipeline.

Every error carries a human-readable message, a JSON-safe ``details`` dict
and the HTTP status a route should answer with. Routes catch these
explicitly; anything else is an unexpected failure and becomes a 500.
"""
from __future__ import annotations


class PosError(Exception):
    """Base class for POS domain errors."""

    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(PosError, ValueError):
    """400-level input problem. Never reaches the store."""

    status_code = 400


class NotFoundError(PosError):
    """Referenced product, transaction or payment method does not exist."""

    status_code = 404


class ItemsUnavailableError(PosError):
    """One or more cart lines cannot be sold (missing, inactive or short)."""

    status_code = 400


class InsufficientStockError(ItemsUnavailableError):
    """A decrement would take on-hand quantity below zero."""

    status_code = 400


class CommitFailure(PosError):
    """
    Unexpected failure inside the atomic unit.

    The unit has been rolled back in full before this is raised, so the
    caller may retry safely.
    """

    status_code = 500


class NotificationFailure(PosError):
    """Post-commit publishing failed. Logged only, never surfaced."""
