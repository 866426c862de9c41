# tests/unit/conftest.py
"""Shared fixtures for relprefetch unit tests."""

import json
from typing import Any, Dict, List

import pytest

from relprefetch.config import PrefetchSettings
from relprefetch.core.relationships import RelationshipConfigStore
from relprefetch.runtime.context import PrefetchContext


class FakeTransport:
    """Records prefetch requests and replays canned responses."""

    def __init__(self, responses: List[Any]):
        self.responses = list(responses)
        self.calls: List[Any] = []

    async def __call__(self, transport_context, request):
        self.calls.append((transport_context, request))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def members(field: str, keys: List[str]) -> Dict[str, Any]:
    """OSLC collection body with one member per key."""
    return {"member": [{field: k} for k in keys]}


@pytest.fixture
def data_dir(tmp_path):
    """Empty data directory."""
    (tmp_path / "relationships").mkdir()
    return tmp_path


@pytest.fixture
def write_layer(data_dir):
    """Write a relationships file; name is 'defaults' or a tenant id."""
    def _write(name: str, relationships: Dict[str, Any], raw: str = None):
        path = data_dir / "relationships" / f"relationships.{name}.json"
        if raw is not None:
            path.write_text(raw)
        else:
            path.write_text(json.dumps({"version": 1, "relationships": relationships}))
        return path
    return _write


@pytest.fixture
def store(data_dir):
    """Store over the temporary data directory."""
    return RelationshipConfigStore(data_dir)


@pytest.fixture
def settings(data_dir):
    """Settings pointing at the temporary data directory."""
    return PrefetchSettings(data_dir=str(data_dir))


@pytest.fixture
def make_transport():
    """Factory for FakeTransport."""
    return FakeTransport


@pytest.fixture
def make_context():
    """Factory for PrefetchContext around a transport."""
    def _make(transport, default_site=None, correlation_id="rx-1"):
        return PrefetchContext(
            tenant_id="acme",
            transport_context={"tenant": "acme"},
            transport_fn=transport,
            auth_fn=lambda t: {"apikey": "secret"},
            base_url_fn=lambda t: "https://maximo.example.com/maximo/api/",
            default_site=default_site,
            correlation_id=correlation_id,
        )
    return _make


@pytest.fixture
def oslc_members():
    """Builder for OSLC collection bodies."""
    return members
