"""
Core module - configuration, types, detection and errors.
"""

from __future__ import annotations

from .errors import (
    ConfigurationError,
    PrefetchError,
    RelPrefetchError,
    ResponseParseError,
    ServiceError,
)
from .query_types import (
    DEFAULT_MAX_KEYS,
    DEFAULT_PAGE_SIZE,
    ErrorStep,
    Plan,
    PlanError,
    PlanStep,
    Predicate,
    PrefetchResultStep,
    PrefetchStep,
    RelationshipConfig,
    RewriteStep,
)
from .relationships import (
    BUILTIN_RELATIONSHIPS,
    RelationshipConfigStore,
    load_layer,
    merge_layers,
)
from .where_parser import (
    Token,
    detect_relationship_predicates,
    references_field,
    tokenize,
)
from .utils import (
    convert_keys_to_camel,
    escape_where_string,
    to_camel_case,
)

__all__ = [
    # Errors
    "RelPrefetchError",
    "ConfigurationError",
    "PrefetchError",
    "ServiceError",
    "ResponseParseError",
    # Types
    "DEFAULT_MAX_KEYS",
    "DEFAULT_PAGE_SIZE",
    "RelationshipConfig",
    "Predicate",
    "PlanStep",
    "PrefetchStep",
    "PrefetchResultStep",
    "RewriteStep",
    "ErrorStep",
    "PlanError",
    "Plan",
    # Configuration store
    "BUILTIN_RELATIONSHIPS",
    "RelationshipConfigStore",
    "load_layer",
    "merge_layers",
    # Detection
    "Token",
    "tokenize",
    "detect_relationship_predicates",
    "references_field",
    # Utils
    "to_camel_case",
    "convert_keys_to_camel",
    "escape_where_string",
]
