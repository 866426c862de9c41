"""
Runtime module - prefetch resolution and filter rewriting.
"""

from __future__ import annotations

from .context import PrefetchContext
from .planner import PrefetchOutcome, RelationshipPrefetchPlanner, apply_relationship_prefetch
from .recorder import PlanRecorder
from .resolver import PrefetchResolver, PrefetchResult
from .rewriter import (
    NO_MATCH_SENTINEL,
    FilterRewriter,
    build_false_clause,
    build_or_block,
)
from .service_client import (
    HttpxTransport,
    ParsedBody,
    PrefetchRequest,
    TextEnvelope,
    coerce_response,
)

__all__ = [
    "PrefetchContext",
    "PrefetchRequest",
    "ParsedBody",
    "TextEnvelope",
    "coerce_response",
    "HttpxTransport",
    "PrefetchResolver",
    "PrefetchResult",
    "NO_MATCH_SENTINEL",
    "FilterRewriter",
    "build_or_block",
    "build_false_clause",
    "PlanRecorder",
    "RelationshipPrefetchPlanner",
    "PrefetchOutcome",
    "apply_relationship_prefetch",
]
