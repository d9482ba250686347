"""Structural SQL extraction.

This is pattern recognition, not parsing: enough to pull JOIN fragments,
the main table, the projection list and a few clause markers out of the
statements an ORM emits. Every helper returns ``None`` or an empty result
when a shape isn't recognised; none of them raise on malformed input.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from ..trace.statements import strip_leading_comments

_QUOTE_OPEN = r"[`\"\[]?"
_QUOTE_CLOSE = r"[`\"\]]?"

# Words that can follow a table reference but are never its alias
_NOT_ALIAS = (
    r"(?!(?:ON|USING|WHERE|LEFT|RIGHT|FULL|INNER|CROSS|OUTER|NATURAL|JOIN|"
    r"GROUP|ORDER|LIMIT|OFFSET|HAVING|UNION|FOR|SET|VALUES)\b)"
)

_TABLE_REF = (
    rf"(?:{_QUOTE_OPEN}\w+{_QUOTE_CLOSE}\.)?{_QUOTE_OPEN}(?P<table>\w+){_QUOTE_CLOSE}"
    rf"(?:\s+(?:AS\s+)?{_NOT_ALIAS}{_QUOTE_OPEN}(?P<alias>\w+){_QUOTE_CLOSE})?"
)

_JOIN_RE = re.compile(
    r"\b(?:(?P<side>LEFT|RIGHT|FULL)(?:\s+OUTER)?\s+|(?P<plain>INNER|CROSS)\s+)?JOIN\s+"
    + _TABLE_REF,
    re.IGNORECASE,
)

_FROM_RE = re.compile(r"\bFROM\s+" + _TABLE_REF, re.IGNORECASE)

# Where the text attached to a JOIN (its ON/USING clause) stops
_CLAUSE_END_RE = re.compile(
    r"\b(?:WHERE|GROUP\s+BY|ORDER\s+BY|LIMIT|OFFSET|HAVING|UNION|FETCH|FOR\s+UPDATE|"
    r"(?:(?:LEFT|RIGHT|FULL)(?:\s+OUTER)?\s+|INNER\s+|CROSS\s+|NATURAL\s+)?JOIN)\b",
    re.IGNORECASE,
)

_LIMIT_RE = re.compile(
    r"\bLIMIT\s+\d+|\bFETCH\s+(?:FIRST|NEXT)\s+\d+\s+ROWS?\b|^\s*SELECT\s+(?:DISTINCT\s+)?TOP\s*\(?\s*\d+",
    re.IGNORECASE,
)

# ORM-generated table aliases end in an underscore: t0_, p1_
_GENERATED_ALIAS_COLUMN_RE = re.compile(r"(?<![\w.])([A-Za-z_]\w*_)\.(?:\w+|\*)")

_PLACEHOLDER = r"(?:\?|:\w+|\$\d+|%s|%\(\w+\)s)"

# A key column compared to a bound placeholder: id = ?, t0.user_id = :id
_KEY_PREDICATE_RE = re.compile(
    rf"(?<![A-Za-z0-9])id{_QUOTE_CLOSE}\s*=\s*{_PLACEHOLDER}",
    re.IGNORECASE,
)

_LITERAL_RE = re.compile(r"'(?:[^']|'')*'")

_TOKEN_RE = re.compile(r"\(|\)|'(?:[^']|'')*'|\bFROM\b|\bWHERE\b", re.IGNORECASE)


@dataclass(frozen=True)
class TableRef:
    table: str
    alias: Optional[str] = None


@dataclass(frozen=True)
class JoinFragment:
    """One JOIN found in a statement.

    ``join_type`` is normalised (``LEFT OUTER`` -> ``LEFT``, bare ``JOIN`` ->
    ``INNER``). ``fragment`` is the verbatim text from the JOIN keyword to the
    end of its ON/USING clause, located at ``start:end`` in the statement.
    """

    join_type: str
    table: str
    alias: Optional[str]
    header: str
    on_clause: str
    fragment: str
    start: int
    end: int


def mask_literals(sql: str) -> str:
    """Blank out the contents of ``'...'`` literals, keeping every offset."""
    return _LITERAL_RE.sub(lambda m: "'" + " " * (len(m.group(0)) - 2) + "'", sql)


def extract_joins(sql: str) -> list[JoinFragment]:
    """Extract every JOIN in statement order.

    JOIN keywords inside string literals are ignored. Offsets and texts refer
    to the original statement.
    """
    masked = mask_literals(sql)
    joins: list[JoinFragment] = []
    for match in _JOIN_RE.finditer(masked):
        side = match.group("side")
        plain = match.group("plain")
        join_type = (side or plain or "INNER").upper()

        table = match.group("table")
        alias = match.group("alias")
        if alias is None and re.search(rf"(?<![\w.]){re.escape(table)}\.\w+", masked, re.IGNORECASE):
            alias = table

        clause_end = _CLAUSE_END_RE.search(masked, match.end())
        end = clause_end.start() if clause_end else len(sql)
        attached = sql[match.end():end]

        on_clause = attached.strip()
        if on_clause[:2].upper() == "ON" and (len(on_clause) == 2 or not on_clause[2].isalnum()):
            on_clause = on_clause[2:].strip()

        fragment = sql[match.start():end].rstrip()
        joins.append(
            JoinFragment(
                join_type=join_type,
                table=table,
                alias=alias,
                header=sql[match.start():match.end()],
                on_clause=on_clause,
                fragment=fragment,
                start=match.start(),
                end=match.start() + len(fragment),
            )
        )
    return joins


def has_join(sql: str) -> bool:
    return _JOIN_RE.search(mask_literals(sql)) is not None


def _top_level_keyword(body: str, keyword: str, start: int = 0) -> Optional[int]:
    """Position of the first ``keyword`` outside parentheses and literals."""
    depth = 0
    for token in _TOKEN_RE.finditer(body, start):
        text = token.group(0)
        if text == "(":
            depth += 1
        elif text == ")":
            depth = max(0, depth - 1)
        elif depth == 0 and text.upper() == keyword:
            return token.start()
    return None


def _top_level_from(body: str, start: int = 0) -> Optional[int]:
    return _top_level_keyword(body, "FROM", start)


def extract_main_table(sql: str) -> Optional[TableRef]:
    """Return the first table of the top-level FROM clause."""
    body = strip_leading_comments(sql)
    position = _top_level_from(body)
    match = _FROM_RE.match(body, position) if position is not None else _FROM_RE.search(body)
    if match is None:
        return None
    return TableRef(table=match.group("table"), alias=match.group("alias"))


def has_limit(sql: str) -> bool:
    """Whether the statement carries a numeric row limit."""
    return _LIMIT_RE.search(strip_leading_comments(sql)) is not None


def extract_projection(sql: str) -> Optional[str]:
    """Return the select list of the top-level SELECT, or None."""
    body = strip_leading_comments(sql)
    head = re.match(r"SELECT\s+", body, re.IGNORECASE)
    if head is None:
        return None

    position = _top_level_from(body, head.end())
    if position is None:
        return None
    return body[head.end():position].strip()


def projection_aliases(sql: str) -> list[str]:
    """Distinct ORM-generated alias prefixes (``t0_.col``) in the select list.

    Hand-written aliases such as ``p.id`` are not counted.
    """
    projection = extract_projection(sql)
    if not projection:
        return []

    seen: dict[str, None] = {}
    for prefix in _GENERATED_ALIAS_COLUMN_RE.findall(projection):
        seen.setdefault(prefix.lower(), None)
    return list(seen)


def is_alias_used(sql: str, join: JoinFragment) -> bool:
    """Whether ``alias.`` occurs anywhere outside the join's own fragment."""
    if join.alias is None:
        return True
    masked = mask_literals(sql)
    remainder = masked[:join.start] + " " + masked[join.end:]
    pattern = rf"(?<![\w.]){_QUOTE_OPEN}{re.escape(join.alias)}{_QUOTE_CLOSE}\."
    return re.search(pattern, remainder, re.IGNORECASE) is not None


def mentions_column(clause: str, column: str) -> bool:
    """Whether ``column`` appears as a whole identifier in ``clause``."""
    return re.search(rf"(?<![\w]){re.escape(column)}(?!\w)", clause, re.IGNORECASE) is not None


def has_locale_constraint(joins: list[JoinFragment]) -> bool:
    """Whether any JOIN pins a locale column (translation-table pattern)."""
    return any(re.search(r"\blocale\s*=", j.on_clause, re.IGNORECASE) for j in joins)


def key_lookup_table(sql: str) -> Optional[str]:
    """Table of a ``SELECT ... FROM t ... WHERE ... id = ?`` lookup, or None.

    Matches ``id`` and ``<name>_id`` columns compared to a bound placeholder,
    the shape of an ORM loading one row (or one row's relation) by key.
    """
    body = strip_leading_comments(sql)
    if re.match(r"SELECT\s", body, re.IGNORECASE) is None:
        return None

    position = _top_level_from(body)
    if position is None:
        return None
    source = _FROM_RE.match(body, position)
    if source is None:
        return None

    where = _top_level_keyword(body, "WHERE", source.end())
    if where is None or _KEY_PREDICATE_RE.search(mask_literals(body), where) is None:
        return None
    return source.group("table")


# ── Clause markers used for optimisation hints ─────────────────────────


def has_subquery(sql: str) -> bool:
    return re.search(r"\(\s*SELECT\b", sql, re.IGNORECASE) is not None


def has_distinct(sql: str) -> bool:
    return re.search(r"\bSELECT\s+DISTINCT\b", sql, re.IGNORECASE) is not None


def has_leading_wildcard_like(sql: str) -> bool:
    return re.search(r"\bLIKE\s+'%", sql, re.IGNORECASE) is not None


def order_by_columns(sql: str) -> list[str]:
    match = re.search(
        r"\bORDER\s+BY\s+(.+?)(?=\bLIMIT\b|\bOFFSET\b|\bFETCH\b|\bFOR\s+UPDATE\b|\)|$)",
        sql,
        re.IGNORECASE | re.DOTALL,
    )
    if match is None:
        return []
    columns = []
    for part in match.group(1).split(","):
        column = re.sub(r"\s+(?:ASC|DESC)\b.*$", "", part.strip(), flags=re.IGNORECASE)
        if column:
            columns.append(column)
    return columns


def group_by_columns(sql: str) -> list[str]:
    match = re.search(
        r"\bGROUP\s+BY\s+(.+?)(?=\bHAVING\b|\bORDER\s+BY\b|\bLIMIT\b|\)|$)",
        sql,
        re.IGNORECASE | re.DOTALL,
    )
    if match is None:
        return []
    return [part.strip() for part in match.group(1).split(",") if part.strip()]
