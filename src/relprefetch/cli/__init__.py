"""
relprefetch CLI - Command line tools for inspecting and running prefetch plans.
"""

from __future__ import annotations

from .main import main, app

__all__ = ["main", "app"]
