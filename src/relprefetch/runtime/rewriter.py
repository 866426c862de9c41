"""
Filter rewriter - replaces resolved relationship clauses by span.

    asset.assettype="SENSOR" and status="APPR"
    -> (assetnum="A100" or assetnum="A101") and status="APPR"
"""

from __future__ import annotations

from typing import Iterable

from ..core.query_types import Predicate
from ..core.utils import escape_where_string


# Join key value no root row can have
NO_MATCH_SENTINEL = "__NO_MATCH__"


def build_or_block(root_join_field: str, keys: Iterable[str]) -> str:
    """
    Parenthesized disjunction over keys, order preserved.

    Example:
        build_or_block("assetnum", ["A100", "A101"])
        -> '(assetnum="A100" or assetnum="A101")'
    """
    parts = [f'{root_join_field}="{escape_where_string(k)}"' for k in keys]
    return f"({' or '.join(parts)})"


def build_false_clause(root_join_field: str) -> str:
    """Clause that matches no root rows."""
    return f'{root_join_field}="{NO_MATCH_SENTINEL}"'


def build_replacement(root_join_field: str, keys: list[str]) -> str:
    """Disjunction for found keys, the false clause for none."""
    if not keys:
        return build_false_clause(root_join_field)
    return build_or_block(root_join_field, keys)


class FilterRewriter:
    """
    Collects substitutions for one where clause and applies them at once.

    Usage:
        rewriter = FilterRewriter(where)
        rewriter.substitute(predicate, '(assetnum="A100")')
        new_where = rewriter.render()
    """

    def __init__(self, where: str):
        self.where = where
        self._substitutions: dict[tuple[int, int], str] = {}

    def substitute(self, predicate: Predicate, replacement: str) -> None:
        """Replace the text covered by the predicate's span."""
        if not 0 <= predicate.start < predicate.end <= len(self.where):
            raise ValueError(f"Span {predicate.start}:{predicate.end} outside filter")
        self._substitutions[(predicate.start, predicate.end)] = replacement

    @property
    def changed(self) -> bool:
        return bool(self._substitutions)

    def render(self) -> str:
        """Filter with every substitution applied."""
        result = self.where
        # Right to left keeps earlier offsets valid
        for (start, end), replacement in sorted(self._substitutions.items(), reverse=True):
            result = result[:start] + replacement + result[end:]
        return result
