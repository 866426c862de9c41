"""
Prefetch resolver - turns one relationship predicate into join keys.

For `asset.assettype="SENSOR"` on mxapiwo it queries

    GET {base}/os/mxapiasset?lean=1&oslc.pageSize=200&oslc.select=assetnum
        &oslc.where=siteid="BEDFORD" and assettype = "SENSOR"

and returns the assetnum values of the matching members.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import quote

import httpx

from ..core.errors import PrefetchError
from ..core.query_types import Predicate, RelationshipConfig
from ..core.utils import escape_where_string
from ..core.where_parser import references_field
from .context import PrefetchContext
from .service_client import PrefetchRequest, coerce_response, decode_body, get_members


# Site field names that already scope a related query
SITE_FIELDS = ("siteid",)


@dataclass
class PrefetchResult:
    """Keys resolved for one predicate."""
    keys: list[str] = field(default_factory=list)  # after truncation
    keys_returned: int = 0
    truncated: bool = False


class PrefetchResolver:
    """
    Resolves predicates against their related resource.

    Usage:
        resolver = PrefetchResolver()
        where = resolver.build_related_where(predicate, config, default_site="BEDFORD")
        result = await resolver.resolve(predicate, config, context, where)
    """

    def build_related_where(
        self,
        predicate: Predicate,
        config: RelationshipConfig,
        default_site: Optional[str] = None,
    ) -> str:
        """
        Filter for the related resource.

        The site clause is added only when a default site is given, the
        relationship has a site field, and the clause does not already
        compare that field (or siteid) itself.
        """
        clause = f'{predicate.field} {predicate.op} "{escape_where_string(predicate.value)}"'

        site_field = config.related_site_field
        if default_site and site_field:
            if not references_field(clause, (site_field,) + SITE_FIELDS):
                clause = f'{site_field}="{escape_where_string(default_site)}" and {clause}'

        return clause

    def build_request(
        self,
        config: RelationshipConfig,
        related_where: str,
        context: PrefetchContext,
    ) -> PrefetchRequest:
        """Request descriptor for the related resource query."""
        params = httpx.QueryParams({
            "lean": "1",
            "oslc.pageSize": str(config.page_size),
            "oslc.select": config.select,
            "oslc.where": related_where,
        })
        url = f"{context.get_base_url()}/os/{quote(config.related_resource, safe='')}?{params}"

        return PrefetchRequest(
            method="GET",
            url=url,
            headers=context.get_auth_headers(),
            title=f"→ OS {config.related_resource} (prefetch)",
            kind="prefetch",
            meta={"correlationId": context.correlation_id},
        )

    def extract_keys(self, body: object, key_field: str) -> list[str]:
        """Non-empty key values of the collection members, in order."""
        keys: list[str] = []
        for member in get_members(body):
            if not isinstance(member, dict):
                continue
            value = member.get(key_field)
            if value is None or value == "":
                continue
            key = str(value).strip()
            if key:
                keys.append(key)
        return keys

    async def resolve(
        self,
        predicate: Predicate,
        config: RelationshipConfig,
        context: PrefetchContext,
        related_where: str,
    ) -> PrefetchResult:
        """
        Run the prefetch query and return at most `config.max_keys` keys.

        Raises:
            PrefetchError: On request building or transport failure, non-2xx
                status, error body or unparsable body
        """
        try:
            request = self.build_request(config, related_where, context)
            raw = context.transport_fn(context.transport_context, request)
            if inspect.isawaitable(raw):
                raw = await raw
        except PrefetchError:
            raise
        except Exception as e:
            raise PrefetchError(str(e) or type(e).__name__, relationship=predicate.relation) from e

        body = decode_body(coerce_response(raw), config.related_resource)
        keys = self.extract_keys(body, config.related_key_field)
        used = keys[:config.max_keys]

        return PrefetchResult(
            keys=used,
            keys_returned=len(keys),
            truncated=len(keys) > len(used),
        )
