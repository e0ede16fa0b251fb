"""
Error kinds raised by the query dashboard.

  ValidationError -- a required identifier or input is missing / malformed
  ServiceError    -- an Athena or S3 call failed
  BuildError      -- a descriptor or schema cannot be turned into SQL
"""
from __future__ import annotations


class DashboardError(Exception):
    """Base class for all dashboard errors."""


class ValidationError(DashboardError):
    pass


class BuildError(DashboardError):
    pass


class ServiceError(DashboardError):
    """An external query-service or object-store call failed."""

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation} failed: {detail}")
