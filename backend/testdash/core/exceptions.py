"""
Exceptions raised by the dashboard data layer
"""
from typing import Any, Dict, Optional


class DashboardError(Exception):
    """Base exception for the test dashboard core."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConstraintViolation(DashboardError):
    """A row references a run or execution that does not exist (or a key is duplicated)."""


class ValidationError(DashboardError):
    """Input rejected before it reached the store."""


class StorageError(DashboardError):
    """The underlying database engine failed (connection lost, disk full, ...)."""


class SerializationError(DashboardError):
    """Stored metadata could not be decoded."""
