#!/usr/bin/env python3
"""
relprefetch CLI - Main entry point.

Usage:
    relprefetch show-config --tenant acme --resource mxapiwo
    relprefetch detect --where 'asset.assettype="SENSOR"'
    relprefetch init --tenant acme
    relprefetch plan --tenant acme --resource mxapiwo --where '...' --base-url URL
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import uuid
from typing import List, Optional

from ..config import DEFAULT_CONFIG_PATH, PrefetchSettings, load_config
from ..core.relationships import BUILTIN_RELATIONSHIPS, RelationshipConfigStore
from ..core.where_parser import detect_relationship_predicates
from ..runtime.planner import apply_relationship_prefetch
from ..runtime.service_client import HttpxTransport


def _settings(args: argparse.Namespace) -> PrefetchSettings:
    settings = load_config(args.config)
    if args.data_dir:
        settings.data_dir = args.data_dir
    return settings


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def cmd_show_config(args: argparse.Namespace) -> int:
    """Print the merged relationship configuration for a root resource."""
    settings = _settings(args)
    store = RelationshipConfigStore(
        settings.data_dir,
        max_keys=settings.max_prefetch_keys,
        page_size=settings.default_page_size,
    )
    configs = store.load(args.resource, args.tenant)

    _print_json({
        alias: config.model_dump(by_alias=True, exclude_none=True)
        for alias, config in configs.items()
    })
    return 0


def cmd_detect(args: argparse.Namespace) -> int:
    """Print relationship predicates found in a where clause."""
    predicates = detect_relationship_predicates(args.where)
    _print_json([p.model_dump() for p in predicates])
    return 0


def cmd_init(args: argparse.Namespace) -> int:
    """Write the built-in relationships as an editable override file."""
    settings = _settings(args)
    store = RelationshipConfigStore(settings.data_dir)
    path = store.tenant_path(args.tenant) if args.tenant else store.defaults_path()

    if path.exists() and not args.force:
        print(f"Error: {path} already exists. Use --force to overwrite.")
        return 1

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"version": 1, "relationships": BUILTIN_RELATIONSHIPS}, indent=2) + "\n")
    print(f"Created {path}")
    return 0


def cmd_plan(args: argparse.Namespace) -> int:
    """Run a live prefetch plan against a tenant API."""
    settings = _settings(args)
    headers = {"apikey": args.apikey} if args.apikey else {}
    params = {settings.where_param: args.where}

    async def run():
        transport = HttpxTransport(timeout=settings.timeout)
        try:
            return await apply_relationship_prefetch(
                tenant_id=args.tenant,
                transport_context=args.tenant,
                root_resource=args.resource,
                params=params,
                default_site=args.site,
                correlation_id=uuid.uuid4().hex[:12],
                transport_fn=transport,
                auth_fn=lambda _tenant: headers,
                base_url_fn=lambda _tenant: args.base_url,
                settings=settings,
            )
        finally:
            await transport.close()

    outcome = asyncio.run(run())
    _print_json({
        "where": params[settings.where_param],
        "plan": outcome.plan.to_metadata(),
    })
    return 0 if outcome.plan.mode != "error" else 1


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="relprefetch",
        description="relprefetch - relationship prefetch for OSLC where clauses"
    )
    parser.add_argument("--version", action="version", version="%(prog)s 0.1.0")
    parser.add_argument("--config", "-c", default=DEFAULT_CONFIG_PATH, help="Settings YAML file")
    parser.add_argument("--data-dir", help="Override data directory")
    parser.add_argument("--log-level", help="Logging level (default from settings)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # show-config
    show_parser = subparsers.add_parser("show-config", help="Show merged relationships for a resource")
    show_parser.add_argument("--tenant", "-t", default="", help="Tenant id")
    show_parser.add_argument("--resource", "-r", required=True, help="Root resource (e.g. mxapiwo)")

    # detect
    detect_parser = subparsers.add_parser("detect", help="List relationship predicates in a filter")
    detect_parser.add_argument("--where", "-w", required=True, help="Where clause")

    # init
    init_parser = subparsers.add_parser("init", help="Write built-in relationships to an override file")
    init_parser.add_argument("--tenant", "-t", help="Write the tenant file instead of the defaults file")
    init_parser.add_argument("--force", "-f", action="store_true", help="Overwrite existing file")

    # plan
    plan_parser = subparsers.add_parser("plan", help="Resolve and rewrite a filter against a live API")
    plan_parser.add_argument("--tenant", "-t", required=True, help="Tenant id")
    plan_parser.add_argument("--resource", "-r", required=True, help="Root resource (e.g. mxapiwo)")
    plan_parser.add_argument("--where", "-w", required=True, help="Where clause")
    plan_parser.add_argument("--base-url", required=True, help="API base URL (e.g. https://host/maximo/api)")
    plan_parser.add_argument("--site", help="Default site for related queries")
    plan_parser.add_argument("--apikey", help="API key header value")

    return parser


def app(args: Optional[List[str]] = None) -> int:
    """Main CLI application."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return 0

    try:
        level = parsed.log_level or load_config(parsed.config).log_level
    except (OSError, ValueError) as e:
        print(f"Error loading {parsed.config}: {e}")
        return 1
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    commands = {
        "show-config": cmd_show_config,
        "detect": cmd_detect,
        "init": cmd_init,
        "plan": cmd_plan,
    }

    handler = commands.get(parsed.command)
    if handler:
        return handler(parsed)

    parser.print_help()
    return 1


def main() -> None:
    """Entry point for CLI."""
    sys.exit(app())


if __name__ == "__main__":
    main()
