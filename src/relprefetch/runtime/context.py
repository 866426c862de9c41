"""
Planning context for one prefetch call.

Contains all collaborators needed while resolving predicates.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .service_client import AuthFn, BaseUrlFn, TransportFn


@dataclass
class PrefetchContext:
    """
    Context passed through the prefetch pipeline.

    Contains:
    - tenant_id: Tenant whose relationship overrides apply
    - transport_context: Opaque tenant handle passed back to the collaborators
    - default_site: Site used to scope related queries (optional)
    - correlation_id: Id of the outer request, copied into prefetch metadata
    - transport_fn / auth_fn / base_url_fn: host-provided collaborators
    """
    tenant_id: Any
    transport_context: Any
    transport_fn: TransportFn
    auth_fn: AuthFn
    base_url_fn: BaseUrlFn
    default_site: Optional[str] = None
    correlation_id: Optional[str] = None

    def get_base_url(self) -> str:
        """Base API URL for the tenant, without trailing slash."""
        return str(self.base_url_fn(self.transport_context) or "").rstrip("/")

    def get_auth_headers(self) -> dict[str, str]:
        """Authentication headers for the tenant."""
        return dict(self.auth_fn(self.transport_context) or {})
