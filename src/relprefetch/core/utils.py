"""
Utility functions for relprefetch.

Includes:
- Case conversion (snake_case -> camelCase) for plan metadata
- Literal escaping for where clauses
- Tenant id sanitizing for file names
"""

from __future__ import annotations

import re
from typing import Any


# Pre-compiled regex patterns for better performance
_SNAKE_TO_CAMEL_PATTERN = re.compile(r'_([a-z])')
_UNSAFE_FILENAME_PATTERN = re.compile(r'[^A-Za-z0-9_.-]')


def to_camel_case(name: str) -> str:
    """
    Convert snake_case to camelCase.

    Examples:
        keys_returned -> keysReturned
        related_where -> relatedWhere
    """
    def replace_underscore(match):
        return match.group(1).upper()

    return _SNAKE_TO_CAMEL_PATTERN.sub(replace_underscore, name)


def convert_keys_to_camel(data: Any) -> Any:
    """
    Recursively convert all dict keys from snake_case to camelCase.

    Works with nested dicts and lists.
    """
    if isinstance(data, dict):
        return {
            to_camel_case(k): convert_keys_to_camel(v)
            for k, v in data.items()
        }
    elif isinstance(data, list):
        return [convert_keys_to_camel(item) for item in data]
    else:
        return data


def escape_where_string(value: Any) -> str:
    """
    Escape a value for use inside a double-quoted where literal.

    Examples:
        SENSOR      -> SENSOR
        12" pipe    -> 12\\" pipe
        C:\\        -> C:\\\\
    """
    if value is None:
        return ""
    return str(value).replace("\\", "\\\\").replace('"', '\\"')


def safe_tenant_id(tenant_id: Any) -> str:
    """Reduce a tenant id to characters that are safe in a file name."""
    return _UNSAFE_FILENAME_PATTERN.sub("_", str(tenant_id or "").strip())
