"""
relprefetch - relationship prefetch for OSLC-style where clauses.

Backends that only compare plain fields cannot evaluate
`asset.assettype="SENSOR"` on work orders. relprefetch resolves such
clauses by querying the related resource for join keys and rewrites the
filter into `(assetnum="A100" or assetnum="A101")` before the primary
query runs.

Usage:
    from relprefetch import apply_relationship_prefetch

    outcome = await apply_relationship_prefetch(
        tenant_id="acme",
        transport_context=tenant,
        root_resource="mxapiwo",
        params=params,
        default_site="BEDFORD",
        transport_fn=fetch,
        auth_fn=auth_headers,
        base_url_fn=api_base,
    )
    meta["plan"] = outcome.plan.to_metadata()
"""

from __future__ import annotations

from .config import PrefetchSettings, load_config
from .core import (
    BUILTIN_RELATIONSHIPS,
    ConfigurationError,
    Plan,
    Predicate,
    PrefetchError,
    RelationshipConfig,
    RelationshipConfigStore,
    RelPrefetchError,
    ResponseParseError,
    ServiceError,
    detect_relationship_predicates,
)
from .runtime import (
    NO_MATCH_SENTINEL,
    FilterRewriter,
    HttpxTransport,
    ParsedBody,
    PlanRecorder,
    PrefetchContext,
    PrefetchOutcome,
    PrefetchRequest,
    PrefetchResolver,
    RelationshipPrefetchPlanner,
    TextEnvelope,
    apply_relationship_prefetch,
)

__version__ = "0.1.0"
