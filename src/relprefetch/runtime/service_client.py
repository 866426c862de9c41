"""
Transport boundary for prefetch queries.

A transport is any callable `(transport_context, PrefetchRequest) -> response`,
sync or async. Responses come in two shapes:

- a parsed body: {"member": [...]} or {"rdfs:member": [...]}
- a text envelope that still needs parsing: {"r": <response>, "respText": "..."}

`coerce_response` turns either shape into a `TransportResponse` once, so the
resolver never inspects raw shapes itself.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

import httpx

from ..core.errors import ResponseParseError, ServiceError


@dataclass
class PrefetchRequest:
    """Request descriptor handed to the transport."""
    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    title: str = ""
    kind: str = "prefetch"
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ParsedBody:
    """Response whose body is already decoded JSON."""
    body: Any


@dataclass(frozen=True)
class TextEnvelope:
    """Response whose body is still text."""
    text: str
    status_code: Optional[int] = None


TransportResponse = Union[ParsedBody, TextEnvelope]

TransportFn = Callable[[Any, PrefetchRequest], Union[Any, Awaitable[Any]]]
AuthFn = Callable[[Any], Mapping[str, str]]
BaseUrlFn = Callable[[Any], str]


def _status_of(response: Any) -> Optional[int]:
    status = getattr(response, "status_code", None)
    if status is None:
        status = getattr(response, "status", None)
    if status is None and isinstance(response, Mapping):
        status = response.get("status_code", response.get("status"))
    return status if isinstance(status, int) else None


def coerce_response(raw: Any) -> TransportResponse:
    """
    Normalize whatever a transport returned.

    Examples:
        {"member": [...]}                      -> ParsedBody
        {"r": <resp>, "respText": "{...}"}     -> TextEnvelope
        httpx.Response                         -> TextEnvelope
    """
    if isinstance(raw, (ParsedBody, TextEnvelope)):
        return raw
    if isinstance(raw, httpx.Response):
        return TextEnvelope(text=raw.text, status_code=raw.status_code)
    if isinstance(raw, Mapping) and raw.get("r") and isinstance(raw.get("respText"), str):
        return TextEnvelope(text=raw["respText"], status_code=_status_of(raw["r"]))
    return ParsedBody(body=raw)


def _error_object(body: Mapping) -> Optional[Mapping]:
    for name in ("Error", "oslc:Error"):
        error = body.get(name)
        if isinstance(error, Mapping):
            return error
    return None


def _has_members(body: Mapping) -> bool:
    return isinstance(body.get("member"), list) or isinstance(body.get("rdfs:member"), list)


def decode_body(response: TransportResponse, resource: str) -> Any:
    """
    Body of a normalized response, checked to be an OSLC collection.

    An empty member list is a valid result; a body without any member
    collection is not.

    Raises:
        ServiceError: If the envelope carries a non-2xx status, or the body
            is an OSLC error object such as {"Error": {"statusCode": "400", ...}}
        ResponseParseError: If the text is not JSON, or the body is not a
            collection
    """
    if isinstance(response, ParsedBody):
        body = response.body
        if isinstance(body, bytes):
            body = body.decode("utf-8", "replace")
        if isinstance(body, str):
            return decode_body(TextEnvelope(text=body), resource)
    else:
        status = response.status_code
        if status is not None and not 200 <= status < 300:
            raise ServiceError(resource=resource, status_code=status, message=response.text[:500])

        try:
            body = json.loads(response.text)
        except ValueError as e:
            raise ResponseParseError(resource=resource, message=str(e))

    if not isinstance(body, Mapping):
        raise ResponseParseError(resource=resource, message=f"expected a JSON object, got {type(body).__name__}")

    error = _error_object(body)
    if error is not None:
        try:
            status = int(error.get("statusCode") or 0)
        except (TypeError, ValueError):
            status = 0
        message = error.get("message") or error.get("reasonCode") or "error response"
        raise ServiceError(resource=resource, status_code=status, message=str(message)[:500])

    if not _has_members(body):
        raise ResponseParseError(resource=resource, message="response has no member collection")
    return body


def get_members(body: Any) -> list[Any]:
    """
    Member list of an OSLC collection.

    Some environments wrap `member` in an extra list; a single nested list
    is flattened.
    """
    if not isinstance(body, Mapping):
        return []
    members = body.get("member")
    if not isinstance(members, list):
        members = body.get("rdfs:member")
    if not isinstance(members, list):
        return []
    if len(members) == 1 and isinstance(members[0], list):
        return members[0]
    return members


class HttpxTransport:
    """
    Default prefetch transport over httpx.

    Usage:
        transport = HttpxTransport(timeout=10.0)
        response = await transport(tenant, request)
        await transport.close()
    """

    def __init__(self, timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None):
        """
        Initialize transport.

        Args:
            timeout: HTTP request timeout in seconds
            client: Optional preconfigured client (tests inject a MockTransport)
        """
        self.timeout = timeout
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __call__(self, transport_context: Any, request: PrefetchRequest) -> TransportResponse:
        client = await self._get_client()

        try:
            response = await client.request(
                request.method,
                request.url,
                headers=request.headers,
            )
        except httpx.RequestError as e:
            raise ServiceError(
                resource=request.url,
                status_code=0,
                message=str(e),
            )

        if response.status_code < 200 or response.status_code >= 300:
            raise ServiceError(
                resource=request.url,
                status_code=response.status_code,
                message=response.text[:500],
            )

        return TextEnvelope(text=response.text, status_code=response.status_code)
