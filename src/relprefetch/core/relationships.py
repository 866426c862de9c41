"""
Relationship configuration store.

Relationship definitions come from three layers, later layers winning:

1. Built-in defaults (this module)
2. <data_dir>/relationships/relationships.defaults.json
3. <data_dir>/relationships/relationships.<tenant>.json

Each file holds:
{
    "version": 1,
    "relationships": {
        "mxapiwo": {
            "asset": {"relatedOs": "mxapiasset", "rootJoinField": "assetnum", ...}
        }
    }
}

A layer replaces the whole entry of a relation alias; fields are never
patched individually. A root resource block is not replaced as a whole:
a tenant file that only defines mxapiwo.asset still inherits the built-in
mxapiwo.location. Layers are read on every call, there is no cache.

Usage:
    store = RelationshipConfigStore("/data")
    configs = store.load("mxapiwo", tenant_id="acme")
    configs["asset"].root_join_field   # "assetnum"
"""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from .errors import ConfigurationError
from .query_types import DEFAULT_MAX_KEYS, DEFAULT_PAGE_SIZE, RelationshipConfig
from .utils import safe_tenant_id


logger = logging.getLogger(__name__)

RELATIONSHIPS_DIR = "relationships"
DEFAULTS_FILE = "relationships.defaults.json"

# root resource -> relation alias -> raw entry
Layer = dict[str, dict[str, dict[str, Any]]]


def _entry(related: str, key: str) -> dict[str, Any]:
    return {
        "relatedOs": related,
        "rootJoinField": key,
        "relatedKeyField": key,
        "relatedSiteField": "siteid",
        "maxKeys": DEFAULT_MAX_KEYS,
        "pageSize": 200,
        "select": key,
    }


BUILTIN_RELATIONSHIPS: Layer = {
    # Work orders
    "mxapiwo": {
        "asset": _entry("mxapiasset", "assetnum"),
        "location": _entry("mxapilocations", "location"),
    },
    # Service requests
    "mxapisr": {
        "asset": _entry("mxapiasset", "assetnum"),
    },
    # Purchase orders / requisitions; vendor join fields vary by tenant
    "mxapipo": {
        "vendor": _entry("mxapivendor", "vendor"),
    },
    "mxapipr": {
        "vendor": _entry("mxapivendor", "vendor"),
    },
}


def tenant_file_name(tenant_id: Any) -> str:
    """File name of the tenant-specific layer."""
    return f"relationships.{safe_tenant_id(tenant_id)}.json"


def _read_layer(path: Path) -> Layer:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(str(path), f"unreadable ({e})")
    except json.JSONDecodeError as e:
        raise ConfigurationError(str(path), f"malformed JSON ({e})")

    relationships = data.get("relationships") if isinstance(data, dict) else None
    if not isinstance(relationships, dict):
        raise ConfigurationError(str(path), "missing 'relationships' object")

    layer: Layer = {}
    for root, aliases in relationships.items():
        if not isinstance(aliases, dict):
            continue
        # root resource names are case-insensitive
        layer.setdefault(str(root).lower(), {}).update(
            (str(alias), entry)
            for alias, entry in aliases.items()
            if isinstance(entry, dict)
        )
    return layer


def load_layer(path: Path | str) -> Optional[Layer]:
    """
    Load one override file.

    Returns None when the file is absent, unreadable or malformed.
    """
    path = Path(path)
    if not path.exists():
        return None

    try:
        return _read_layer(path)
    except ConfigurationError as e:
        logger.warning(f"Ignoring relationship layer: {e}")
        return None


def merge_layers(*layers: Optional[Layer]) -> Layer:
    """
    Merge layers in order; a later layer replaces whole alias entries.

    Example:
        merge_layers(
            {"mxapiwo": {"asset": A1, "location": L1}},
            {"mxapiwo": {"asset": A2}},
        )
        -> {"mxapiwo": {"asset": A2, "location": L1}}
    """
    merged: Layer = {}
    for layer in layers:
        if not layer:
            continue
        for root, aliases in layer.items():
            target = merged.setdefault(root, {})
            for alias, entry in aliases.items():
                target[alias] = copy.deepcopy(entry)
    return merged


class RelationshipConfigStore:
    """
    Loads and merges relationship configuration for one root resource.

    Missing or broken override files never fail a call; they count as
    absent layers.
    """

    def __init__(
        self,
        data_dir: Path | str,
        max_keys: int = DEFAULT_MAX_KEYS,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        """
        Args:
            data_dir: Directory that contains the relationships/ folder
            max_keys: maxKeys used for entries that do not set one
            page_size: pageSize used for entries that do not set one
        """
        self.data_dir = Path(data_dir)
        self.max_keys = max_keys
        self.page_size = page_size

    @property
    def relationships_dir(self) -> Path:
        return self.data_dir / RELATIONSHIPS_DIR

    def defaults_path(self) -> Path:
        return self.relationships_dir / DEFAULTS_FILE

    def tenant_path(self, tenant_id: Any) -> Path:
        return self.relationships_dir / tenant_file_name(tenant_id)

    def load_merged(self, tenant_id: Any) -> Layer:
        """Merged raw entries for every root resource."""
        defaults = load_layer(self.defaults_path())
        tenant = load_layer(self.tenant_path(tenant_id)) if safe_tenant_id(tenant_id) else None
        return merge_layers(BUILTIN_RELATIONSHIPS, defaults, tenant)

    def load(self, root_resource: str, tenant_id: Any) -> dict[str, RelationshipConfig]:
        """
        Usable relationship configs for a root resource, keyed by alias.

        Entries without related resource or join fields are skipped.
        """
        merged = self.load_merged(tenant_id)
        root = str(root_resource or "")
        entries = merged.get(root.lower(), {})

        configs: dict[str, RelationshipConfig] = {}
        for alias, entry in entries.items():
            data = dict(entry)
            if data.get("maxKeys", data.get("max_keys")) in (None, "", 0):
                data["maxKeys"] = self.max_keys
            if data.get("pageSize", data.get("page_size")) in (None, "", 0):
                data["pageSize"] = self.page_size
            try:
                configs[alias] = RelationshipConfig.model_validate(data)
            except ValidationError as e:
                logger.debug(f"Skipping relationship {root}.{alias}: {e.error_count()} invalid field(s)")
        return configs
