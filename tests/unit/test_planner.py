# tests/unit/test_planner.py
"""Unit tests for the relationship prefetch planner."""

import pytest

from relprefetch.config import PrefetchSettings
from relprefetch.core.relationships import RelationshipConfigStore
from relprefetch.core.where_parser import detect_relationship_predicates
from relprefetch.runtime.planner import RelationshipPrefetchPlanner, apply_relationship_prefetch


async def _run(settings, transport, params, root="mxapiwo", default_site=None):
    return await apply_relationship_prefetch(
        tenant_id="acme",
        transport_context={"tenant": "acme"},
        root_resource=root,
        params=params,
        default_site=default_site,
        correlation_id="rx-1",
        transport_fn=transport,
        auth_fn=lambda t: {"apikey": "secret"},
        base_url_fn=lambda t: "https://maximo.example.com/maximo/api",
        settings=settings,
    )


class TestEndToEnd:
    """End-to-end planning scenarios."""

    @pytest.mark.asyncio
    async def test_keys_become_disjunction(self, settings, make_transport, oslc_members):
        params = {"where": 'asset.assettype="SENSOR"'}
        transport = make_transport([oslc_members("assetnum", ["A100", "A101"])])

        outcome = await _run(settings, transport, params)

        assert params["where"] == '(assetnum="A100" or assetnum="A101")'
        plan = outcome.plan
        assert plan.mode == "prefetch"
        assert plan.truncated is False
        assert [s.kind for s in plan.steps] == ["prefetch", "prefetch_result", "rewrite"]
        assert plan.steps[0].related_resource == "mxapiasset"

    @pytest.mark.asyncio
    async def test_no_keys_become_false_clause(self, settings, make_transport, oslc_members):
        params = {"where": 'asset.assettype="SENSOR"'}
        transport = make_transport([oslc_members("assetnum", [])])

        outcome = await _run(settings, transport, params)

        assert params["where"] == 'assetnum="__NO_MATCH__"'
        assert outcome.plan.steps[-1].note == "no related matches"

    @pytest.mark.asyncio
    async def test_unconfigured_relation_is_left_alone(self, settings, write_layer, make_transport):
        # tenant drops the built-in vendor relation by replacing it with an unusable entry
        write_layer("acme", {"mxapipr": {"vendor": {"relatedOs": "mxapivendor"}}})
        params = {"where": 'vendor.name like "Acme%"'}
        transport = make_transport([])

        outcome = await _run(settings, transport, params, root="mxapipr")

        assert params["where"] == 'vendor.name like "Acme%"'
        assert outcome.plan.mode == "none"
        assert len(outcome.plan.detected) == 1
        assert outcome.plan.steps == []
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_transport_failure_is_recorded(self, settings, make_transport):
        params = {"where": 'asset.assettype="SENSOR" and status="APPR"'}
        transport = make_transport([RuntimeError("socket closed")])

        outcome = await _run(settings, transport, params)

        assert params["where"] == 'asset.assettype="SENSOR" and status="APPR"'
        plan = outcome.plan
        assert [s.kind for s in plan.steps] == ["prefetch", "error"]
        assert plan.steps[1].relationship == "asset"
        assert "socket closed" in plan.errors[0].message


class TestPlanner:
    """Planner behavior beyond the basic scenarios."""

    @pytest.mark.asyncio
    async def test_plain_filter_untouched(self, settings, make_transport):
        where = 'status="APPR"  and  siteid="BEDFORD"'
        params = {"where": where}

        outcome = await _run(settings, make_transport([]), params)

        assert params["where"] == where
        assert outcome.plan.mode == "none"
        assert outcome.plan.detected == []

    @pytest.mark.asyncio
    async def test_missing_where(self, settings, make_transport):
        params = {"oslc.select": "wonum"}

        outcome = await _run(settings, make_transport([]), params)

        assert params == {"oslc.select": "wonum"}
        assert outcome.plan.mode == "none"

    @pytest.mark.asyncio
    async def test_truncation(self, settings, write_layer, make_transport, oslc_members):
        write_layer("acme", {
            "mxapiwo": {
                "asset": {"relatedOs": "mxapiasset", "rootJoinField": "assetnum", "relatedKeyField": "assetnum", "maxKeys": 2},
            },
        })
        params = {"where": 'asset.assettype="SENSOR"'}
        transport = make_transport([oslc_members("assetnum", ["A1", "A2", "A3"])])

        outcome = await _run(settings, transport, params)

        assert params["where"] == '(assetnum="A1" or assetnum="A2")'
        assert outcome.plan.truncated is True
        assert outcome.plan.steps[1].keys_returned == 3
        assert outcome.plan.steps[1].keys_used == 2

    @pytest.mark.asyncio
    async def test_mixed_predicates_processed_in_order(self, settings, make_transport, oslc_members):
        where = 'location.type="OPERATING" and status="APPR" and asset.assettype="SENSOR"'
        params = {"where": where}
        transport = make_transport([
            oslc_members("location", ["BR300"]),
            oslc_members("assetnum", []),
        ])

        outcome = await _run(settings, transport, params, default_site="BEDFORD")

        assert params["where"] == '(location="BR300") and status="APPR" and assetnum="__NO_MATCH__"'
        prefetches = [s for s in outcome.plan.steps if s.kind == "prefetch"]
        assert [s.relationship for s in prefetches] == ["location", "asset"]
        assert prefetches[0].related_where == 'siteid="BEDFORD" and type = "OPERATING"'
        assert "mxapilocations" in transport.calls[0][1].url

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_rest(self, settings, make_transport, oslc_members):
        params = {"where": 'location.type="OPERATING" and asset.assettype="SENSOR"'}
        transport = make_transport([
            RuntimeError("timeout"),
            oslc_members("assetnum", ["A1"]),
        ])

        outcome = await _run(settings, transport, params)

        assert params["where"] == 'location.type="OPERATING" and (assetnum="A1")'
        assert [s.kind for s in outcome.plan.steps] == [
            "prefetch", "error", "prefetch", "prefetch_result", "rewrite",
        ]

    @pytest.mark.asyncio
    async def test_auth_failure_ends_only_its_predicate(self, settings, make_transport, oslc_members):
        params = {"where": 'asset.assettype="SENSOR" and location.type="OPERATING"'}
        transport = make_transport([oslc_members("assetnum", ["A1"])])
        calls = []

        def auth(tenant):
            calls.append(tenant)
            if len(calls) == 2:
                raise RuntimeError("token expired")
            return {"apikey": "secret"}

        outcome = await apply_relationship_prefetch(
            tenant_id="acme",
            transport_context={"tenant": "acme"},
            root_resource="mxapiwo",
            params=params,
            transport_fn=transport,
            auth_fn=auth,
            base_url_fn=lambda t: "https://maximo.example.com/maximo/api",
            settings=settings,
        )

        assert params["where"] == '(assetnum="A1") and location.type="OPERATING"'
        plan = outcome.plan
        assert plan.mode == "prefetch"
        assert [s.kind for s in plan.steps] == [
            "prefetch", "prefetch_result", "rewrite", "prefetch", "error",
        ]
        assert plan.errors[0].relationship == "location"
        assert plan.errors[0].message == "token expired"

    @pytest.mark.asyncio
    async def test_error_body_is_not_an_empty_result(self, settings, make_transport):
        params = {"where": 'asset.assettype="SENSOR"'}
        error = {"Error": {"statusCode": "400", "reasonCode": "BMXAA1234E", "message": "bad where"}}
        transport = make_transport([error])

        outcome = await _run(settings, transport, params)

        assert params["where"] == 'asset.assettype="SENSOR"'
        assert [s.kind for s in outcome.plan.steps] == ["prefetch", "error"]
        assert "bad where" in outcome.plan.errors[0].message

    @pytest.mark.asyncio
    async def test_backslash_key_keeps_following_predicates_detectable(
        self, settings, make_transport, oslc_members
    ):
        params = {"where": 'asset.assettype="SENSOR" and vendor.name="Acme"'}
        transport = make_transport([oslc_members("assetnum", ["A\\"])])

        await _run(settings, transport, params)

        assert params["where"] == '(assetnum="A\\\\") and vendor.name="Acme"'
        remaining = detect_relationship_predicates(params["where"])
        assert [(p.relation, p.value) for p in remaining] == [("vendor", "Acme")]

    @pytest.mark.asyncio
    async def test_repeated_clause_resolved_once_and_rewritten_everywhere(
        self, settings, make_transport, oslc_members
    ):
        params = {"where": '(asset.assettype="SENSOR" and status="APPR") or (asset.assettype="SENSOR" and priority=1)'}
        transport = make_transport([oslc_members("assetnum", ["A1"])])

        outcome = await _run(settings, transport, params)

        assert params["where"] == '((assetnum="A1") and status="APPR") or ((assetnum="A1") and priority=1)'
        assert len(transport.calls) == 1
        assert len(outcome.plan.detected) == 2
        assert outcome.plan.steps[-1].occurrences == 2

    @pytest.mark.asyncio
    async def test_resolved_relations_disappear_from_filter(self, settings, make_transport, oslc_members):
        params = {"where": 'asset.assettype="SENSOR" and vendor.name="Acme"'}
        transport = make_transport([oslc_members("assetnum", ["A1", "A2"])])

        await _run(settings, transport, params)

        remaining = detect_relationship_predicates(params["where"])
        assert [p.relation for p in remaining] == ["vendor"]

    @pytest.mark.asyncio
    async def test_quoted_keys_are_escaped(self, settings, make_transport, oslc_members):
        params = {"where": 'asset.assettype="SENSOR"'}
        transport = make_transport([oslc_members("assetnum", ['A"1'])])

        await _run(settings, transport, params)

        assert params["where"] == '(assetnum="A\\"1")'

    @pytest.mark.asyncio
    async def test_params_written_once_after_all_predicates(self, settings, oslc_members):
        writes = []

        class Params(dict):
            def __setitem__(self, key, value):
                writes.append(value)
                super().__setitem__(key, value)

        seen_where = []
        params = Params(where='asset.assettype="SENSOR" and location.type="OPERATING"')

        async def transport(ctx, request):
            seen_where.append(dict.get(params, "where"))
            field = "assetnum" if "mxapiasset" in request.url else "location"
            return oslc_members(field, ["K1"])

        await _run(settings, transport, params)

        assert len(writes) == 1
        assert seen_where == ['asset.assettype="SENSOR" and location.type="OPERATING"'] * 2

    @pytest.mark.asyncio
    async def test_custom_where_param(self, data_dir, make_transport, oslc_members):
        settings = PrefetchSettings(data_dir=str(data_dir), where_param="oslc.where")
        params = {"oslc.where": 'asset.assettype="SENSOR"', "where": "untouched"}
        transport = make_transport([oslc_members("assetnum", ["A1"])])

        await _run(settings, transport, params)

        assert params == {"oslc.where": '(assetnum="A1")', "where": "untouched"}

    @pytest.mark.asyncio
    async def test_unexpected_error_returns_error_plan(self, data_dir, make_context, make_transport):
        class BrokenStore(RelationshipConfigStore):
            def load(self, root_resource, tenant_id):
                raise RuntimeError("disk on fire")

        planner = RelationshipPrefetchPlanner(BrokenStore(data_dir))
        params = {"where": 'asset.assettype="SENSOR"'}

        plan = await planner.plan(params, "mxapiwo", make_context(make_transport([])))

        assert plan.mode == "error"
        assert plan.errors[-1].message == "disk on fire"
        assert len(plan.detected) == 1
        assert params["where"] == 'asset.assettype="SENSOR"'

    @pytest.mark.asyncio
    async def test_settings_read_from_environment(
        self, data_dir, write_layer, monkeypatch, make_transport, oslc_members
    ):
        monkeypatch.setenv("DATA_DIR", str(data_dir))
        monkeypatch.setenv("MAX_PREFETCH_KEYS", "1")
        monkeypatch.chdir(data_dir)
        write_layer("acme", {
            "mxapipo": {
                "vendor": {"relatedOs": "mxapivendor", "rootJoinField": "vendor", "relatedKeyField": "vendor"},
            },
        })
        params = {"where": 'vendor.name="Acme"'}
        transport = make_transport([oslc_members("vendor", ["V1", "V2"])])

        outcome = await _run(None, transport, params, root="mxapipo")

        assert params["where"] == '(vendor="V1")'
        assert outcome.plan.truncated is True
