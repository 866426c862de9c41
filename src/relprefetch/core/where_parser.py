"""
Where-clause tokenizer and relationship predicate detector.

The backend filter grammar only compares plain fields:

    status="APPR" and assetnum="A100"

Callers sometimes reference a related resource with dotted notation:

    asset.assettype="SENSOR" and status="APPR"

The detector finds those `<relation>.<field> <op> <literal>` clauses on a
token stream and reports each with its source span, so the rewriter can
replace exactly that text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Literal, Optional

from .query_types import Predicate, PredicateOp


TokenKind = Literal[
    "ident", "dot", "op", "string", "number", "lparen", "rparen", "ws", "other"
]

# Longest first so "!=" wins over "!" and "<=" over "<"
COMPARISON_OPS = ("!=", "<=", ">=", "<>", "=", "<", ">")

# Operators that form a relationship predicate
PREDICATE_OPS: dict[str, PredicateOp] = {"=": "=", "!=": "!=", "like": "like"}

# Backslash escapes any single character inside a literal
_ESCAPE_PATTERN = re.compile(r"\\(.)", re.DOTALL)


@dataclass(frozen=True)
class Token:
    """A lexical token with its [start, end) offsets in the source."""
    kind: TokenKind
    text: str
    start: int
    end: int

    @property
    def value(self) -> str:
        """Unescaped inner text for string tokens, raw text otherwise."""
        if self.kind != "string":
            return self.text
        return _ESCAPE_PATTERN.sub(r"\1", self.text[1:-1])

    def is_keyword(self, word: str) -> bool:
        return self.kind == "ident" and self.text.lower() == word


def _is_ident_start(ch: str) -> bool:
    return ch.isascii() and (ch.isalpha() or ch == "_")


def _is_ident_char(ch: str) -> bool:
    return ch.isascii() and (ch.isalnum() or ch == "_")


def tokenize(where: str) -> list[Token]:
    """
    Split a where clause into tokens.

    Never raises: an unterminated literal becomes a single "other" token
    running to the end of the input.
    """
    tokens: list[Token] = []
    i = 0
    n = len(where)

    while i < n:
        ch = where[i]
        start = i

        if ch.isspace():
            while i < n and where[i].isspace():
                i += 1
            tokens.append(Token("ws", where[start:i], start, i))
            continue

        if _is_ident_start(ch):
            while i < n and _is_ident_char(where[i]):
                i += 1
            tokens.append(Token("ident", where[start:i], start, i))
            continue

        if ch.isdigit():
            while i < n and (where[i].isdigit() or where[i] == "."):
                i += 1
            tokens.append(Token("number", where[start:i], start, i))
            continue

        if ch in ("'", '"'):
            i += 1
            closed = False
            while i < n:
                if where[i] == "\\" and i + 1 < n:
                    i += 2
                    continue
                if where[i] == ch:
                    i += 1
                    closed = True
                    break
                i += 1
            tokens.append(Token("string" if closed else "other", where[start:i], start, i))
            continue

        if ch == ".":
            tokens.append(Token("dot", ch, start, i + 1))
            i += 1
            continue

        if ch == "(":
            tokens.append(Token("lparen", ch, start, i + 1))
            i += 1
            continue

        if ch == ")":
            tokens.append(Token("rparen", ch, start, i + 1))
            i += 1
            continue

        op = next((o for o in COMPARISON_OPS if where.startswith(o, i)), None)
        if op:
            tokens.append(Token("op", op, start, i + len(op)))
            i += len(op)
            continue

        tokens.append(Token("other", ch, start, i + 1))
        i += 1

    return tokens


def _significant(tokens: Iterable[Token]) -> list[Token]:
    return [t for t in tokens if t.kind != "ws"]


def _predicate_op(token: Token) -> Optional[PredicateOp]:
    if token.kind == "op":
        return PREDICATE_OPS.get(token.text)
    if token.is_keyword("like"):
        return "like"
    return None


def detect_relationship_predicates(where: Optional[str]) -> list[Predicate]:
    """
    Find every `<relation>.<field> <op> <literal>` clause, left to right.

    Detection does not consult relationship configuration; unknown
    relations are reported too and simply left alone later.

    Examples:
        asset.assettype="SENSOR"       -> [asset / assettype / = / SENSOR]
        vendor.name like 'Acme%'       -> [vendor / name / like / Acme%]
        a.b.c="x"                      -> []   (multi-hop chains are ignored)
    """
    source = str(where or "")
    tokens = _significant(tokenize(source))
    predicates: list[Predicate] = []

    i = 0
    while i + 4 < len(tokens):
        rel, dot, fld, op_token, literal = tokens[i:i + 5]
        preceded_by_dot = i > 0 and tokens[i - 1].kind == "dot"
        op = _predicate_op(op_token)

        if (
            not preceded_by_dot
            and rel.kind == "ident"
            and dot.kind == "dot"
            and fld.kind == "ident"
            and op is not None
            and literal.kind == "string"
        ):
            predicates.append(
                Predicate(
                    relation=rel.text,
                    field=fld.text,
                    op=op,
                    value=literal.value,
                    start=rel.start,
                    end=literal.end,
                    text=source[rel.start:literal.end],
                )
            )
            i += 5
            continue
        i += 1

    return predicates


def references_field(where: str, field_names: Iterable[str]) -> bool:
    """
    True when the clause compares any of `field_names` (case-insensitive).

    A reference is an identifier directly followed by a comparison operator,
    `like` or `in`, and not part of a dotted path.

        siteid="BEDFORD" and status="APPR"   references_field(.., ["siteid"]) -> True
        description like "%siteid%"          references_field(.., ["siteid"]) -> False
    """
    names = {n.lower() for n in field_names if n}
    tokens = _significant(tokenize(where))

    for i, token in enumerate(tokens[:-1]):
        if token.kind != "ident" or token.text.lower() not in names:
            continue
        if i > 0 and tokens[i - 1].kind == "dot":
            continue
        following = tokens[i + 1]
        if following.kind == "op" or following.is_keyword("like") or following.is_keyword("in"):
            return True
    return False
