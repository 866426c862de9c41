"""
Custom exceptions for the relationship prefetch planner.
"""

from __future__ import annotations

from typing import Optional


class RelPrefetchError(Exception):
    """Base exception for all relprefetch errors."""
    pass


class ConfigurationError(RelPrefetchError):
    """Raised when a relationship configuration layer cannot be used."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"Relationship config '{path}' unusable: {message}")


class PrefetchError(RelPrefetchError):
    """Raised when a prefetch query for one predicate cannot be resolved."""

    def __init__(self, message: str, relationship: Optional[str] = None):
        self.relationship = relationship
        super().__init__(message)


class ServiceError(PrefetchError):
    """Raised when the related resource call fails or returns a non-2xx status."""

    def __init__(self, resource: str, status_code: int, message: str):
        self.resource = resource
        self.status_code = status_code
        super().__init__(f"Resource '{resource}' returned {status_code}: {message}")


class ResponseParseError(PrefetchError):
    """Raised when a prefetch response body cannot be parsed."""

    def __init__(self, resource: str, message: str):
        self.resource = resource
        super().__init__(f"Could not parse response from '{resource}': {message}")
