"""
Exceptions raised by identisync.

Only conditions that must abort a run are exceptions. An inconclusive
identity lookup or an organization name that cannot be mapped is normal
control flow and is recorded in the run result instead.
"""

from typing import Any, Dict, Optional


class IdentisyncError(Exception):
    """Base class for fatal identisync errors."""
    pass


class MalformedInputError(IdentisyncError):
    """Raised when an incoming document has a missing or wrongly shaped field."""

    def __init__(self, message: str, record: Optional[str] = None):
        self.record = record
        if record:
            message = f"{message}: {record}"
        super().__init__(message)


class StoreError(IdentisyncError):
    """Raised when a query or mutation against the identity store fails."""

    def __init__(self, operation: str, params: Optional[Dict[str, Any]] = None, cause: Optional[BaseException] = None):
        self.operation = operation
        self.params = params or {}
        self.cause = cause
        message = f"Store operation '{operation}' failed"
        if self.params:
            message += f" (params: {self.params})"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
