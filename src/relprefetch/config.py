"""
Settings loading for relprefetch.

Values come from relprefetch.yaml (optional) and are overridden by
environment variables:

    DATA_DIR                  data_dir
    MAX_PREFETCH_KEYS         max_prefetch_keys
    RELPREFETCH_PAGE_SIZE     default_page_size
    RELPREFETCH_WHERE_PARAM   where_param
    RELPREFETCH_TIMEOUT       timeout
    RELPREFETCH_LOG_LEVEL     log_level
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "relprefetch.yaml"

ENV_OVERRIDES = {
    "DATA_DIR": ("data_dir", str),
    "MAX_PREFETCH_KEYS": ("max_prefetch_keys", int),
    "RELPREFETCH_PAGE_SIZE": ("default_page_size", int),
    "RELPREFETCH_WHERE_PARAM": ("where_param", str),
    "RELPREFETCH_TIMEOUT": ("timeout", float),
    "RELPREFETCH_LOG_LEVEL": ("log_level", str),
}


@dataclass
class PrefetchSettings:
    """Settings for relationship prefetch planning."""
    data_dir: str = "/data"
    max_prefetch_keys: int = 50
    default_page_size: int = 200
    where_param: str = "where"
    timeout: float = 30.0
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PrefetchSettings":
        """Create settings from dictionary."""
        defaults = cls()
        return cls(
            data_dir=str(data.get("data_dir", defaults.data_dir)),
            max_prefetch_keys=int(data.get("max_prefetch_keys", defaults.max_prefetch_keys)),
            default_page_size=int(data.get("default_page_size", defaults.default_page_size)),
            where_param=str(data.get("where_param", defaults.where_param)),
            timeout=float(data.get("timeout", defaults.timeout)),
            log_level=str(data.get("log_level", defaults.log_level)).upper(),
        )

    @classmethod
    def from_env(cls, base: Optional["PrefetchSettings"] = None) -> "PrefetchSettings":
        """Apply environment overrides on top of `base` (or defaults)."""
        data = asdict(base or cls())
        for env_name, (attr, cast) in ENV_OVERRIDES.items():
            raw = os.environ.get(env_name)
            if raw is None or raw.strip() == "":
                continue
            try:
                data[attr] = cast(raw.strip())
            except ValueError:
                logger.warning(f"Ignoring invalid {env_name}={raw!r}")
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to dictionary for YAML serialization."""
        return asdict(self)

    def save(self, path: Path | str = DEFAULT_CONFIG_PATH) -> None:
        """Save settings to YAML file."""
        path = Path(path)
        content = yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)
        path.write_text(content)


def load_config(path: Path | str = DEFAULT_CONFIG_PATH, use_env: bool = True) -> PrefetchSettings:
    """
    Load settings from a YAML file, then apply environment overrides.

    A missing file yields the defaults.
    """
    path = Path(path)
    settings = PrefetchSettings()

    if path.exists():
        try:
            data = yaml.safe_load(path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"{path} is not valid YAML: {e}")
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a mapping, got {type(data).__name__}")
        settings = PrefetchSettings.from_dict(data)

    if use_env:
        settings = PrefetchSettings.from_env(settings)
    return settings
