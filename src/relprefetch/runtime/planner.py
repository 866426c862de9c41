"""
Relationship prefetch planner - rewrites join-style predicates before the
primary query runs.

Flow per call:
    detect predicates -> for each distinct predicate:
        lookup config -> announce prefetch -> resolve keys -> rewrite
    -> write the final filter back once

Usage:
    outcome = await apply_relationship_prefetch(
        tenant_id="acme",
        transport_context=tenant,
        root_resource="mxapiwo",
        params=params,
        default_site="BEDFORD",
        correlation_id=request_id,
        transport_fn=maximo_fetch,
        auth_fn=auth_headers,
        base_url_fn=api_base,
    )
    response["_meta"]["plan"] = outcome.plan.to_metadata()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, MutableMapping, Optional

from ..config import PrefetchSettings, load_config
from ..core.errors import PrefetchError
from ..core.query_types import Plan, Predicate, RelationshipConfig
from ..core.relationships import RelationshipConfigStore
from ..core.where_parser import detect_relationship_predicates
from .context import PrefetchContext
from .recorder import PlanRecorder
from .resolver import PrefetchResolver
from .rewriter import FilterRewriter, build_replacement
from .service_client import AuthFn, BaseUrlFn, TransportFn


logger = logging.getLogger(__name__)


@dataclass
class PrefetchOutcome:
    """Result of one planning call."""
    plan: Plan


def _group_occurrences(predicates: list[Predicate]) -> list[list[Predicate]]:
    """Group repeated clauses, ordered by first occurrence."""
    groups: dict[tuple[str, str, str, str], list[Predicate]] = {}
    for predicate in predicates:
        groups.setdefault(predicate.signature, []).append(predicate)
    return list(groups.values())


class RelationshipPrefetchPlanner:
    """
    Detects, resolves and rewrites relationship predicates in a where clause.

    Never raises: every failure ends up in the returned Plan.
    """

    def __init__(
        self,
        store: RelationshipConfigStore,
        resolver: Optional[PrefetchResolver] = None,
        where_param: str = "where",
    ):
        """
        Args:
            store: Relationship configuration store
            resolver: Prefetch resolver (default PrefetchResolver())
            where_param: Name of the filter parameter in the params bag
        """
        self.store = store
        self.resolver = resolver or PrefetchResolver()
        self.where_param = where_param

    @classmethod
    def from_settings(cls, settings: PrefetchSettings) -> "RelationshipPrefetchPlanner":
        store = RelationshipConfigStore(
            settings.data_dir,
            max_keys=settings.max_prefetch_keys,
            page_size=settings.default_page_size,
        )
        return cls(store, where_param=settings.where_param)

    async def plan(
        self,
        params: MutableMapping[str, Any],
        root_resource: str,
        context: PrefetchContext,
    ) -> Plan:
        """
        Rewrite `params[where_param]` in place and return the plan.

        The params bag is written at most once, after every predicate has
        been processed, and only when the filter changed.
        """
        recorder = PlanRecorder()

        try:
            where = str(params.get(self.where_param) or "")
            if not where:
                return recorder.build()

            predicates = detect_relationship_predicates(where)
            if not predicates:
                return recorder.build()
            recorder.detected(predicates)

            configs = self.store.load(root_resource, context.tenant_id)

            rewriter = FilterRewriter(where)
            for occurrences in _group_occurrences(predicates):
                await self._process(occurrences, configs, context, recorder, rewriter)

            if rewriter.changed:
                params[self.where_param] = rewriter.render()
                logger.info(
                    f"[{context.correlation_id}] Rewrote {root_resource} filter: "
                    f"{where!r} -> {params[self.where_param]!r}"
                )

        except Exception as e:
            logger.error(f"[{context.correlation_id}] Relationship prefetch failed: {e}", exc_info=True)
            recorder.fail(str(e) or type(e).__name__)

        return recorder.build()

    async def _process(
        self,
        occurrences: list[Predicate],
        configs: dict[str, RelationshipConfig],
        context: PrefetchContext,
        recorder: PlanRecorder,
        rewriter: FilterRewriter,
    ) -> None:
        predicate = occurrences[0]
        relationship = predicate.relation
        config = configs.get(relationship) or configs.get(relationship.lower())
        if config is None:
            logger.debug(f"No relationship '{relationship}' configured, leaving {predicate.text!r}")
            return

        related_where = self.resolver.build_related_where(predicate, config, context.default_site)
        recorder.announce_prefetch(relationship, config, related_where)

        try:
            result = await self.resolver.resolve(predicate, config, context, related_where)
        except PrefetchError as e:
            logger.warning(f"[{context.correlation_id}] Prefetch for '{relationship}' failed: {e}")
            recorder.record_error(relationship, str(e))
            return

        recorder.record_result(relationship, result.keys_returned, len(result.keys), result.truncated)

        replacement = build_replacement(config.root_join_field, result.keys)
        for occurrence in occurrences:
            rewriter.substitute(occurrence, replacement)
        recorder.record_rewrite(
            relationship,
            original=predicate.text,
            replaced_with=replacement,
            occurrences=len(occurrences),
            note=None if result.keys else "no related matches",
        )


async def apply_relationship_prefetch(
    *,
    tenant_id: Any,
    transport_context: Any,
    root_resource: str,
    params: MutableMapping[str, Any],
    default_site: Optional[str] = None,
    correlation_id: Optional[str] = None,
    transport_fn: TransportFn,
    auth_fn: AuthFn,
    base_url_fn: BaseUrlFn,
    settings: Optional[PrefetchSettings] = None,
) -> PrefetchOutcome:
    """
    Entry point for hosts.

    Configuration is read fresh on every call. Only the filter parameter of
    `params` may change; no exception escapes.
    """
    context = PrefetchContext(
        tenant_id=tenant_id,
        transport_context=transport_context,
        transport_fn=transport_fn,
        auth_fn=auth_fn,
        base_url_fn=base_url_fn,
        default_site=default_site,
        correlation_id=correlation_id,
    )

    try:
        planner = RelationshipPrefetchPlanner.from_settings(settings or load_config())
    except Exception as e:
        logger.error(f"[{correlation_id}] Could not set up relationship prefetch: {e}", exc_info=True)
        recorder = PlanRecorder()
        recorder.fail(str(e) or type(e).__name__)
        return PrefetchOutcome(plan=recorder.build())

    plan = await planner.plan(params, root_resource, context)
    return PrefetchOutcome(plan=plan)
