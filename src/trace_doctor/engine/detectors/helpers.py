"""Shared helpers for detector implementations."""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Optional

from ...trace import StackFrame

_TABLE_PREFIXES = ("tbl_", "tb_")

_GETTER_RE = re.compile(r"^get(?:([A-Z]\w*)|_([a-z]\w*))$")

DEFAULT_RELATION = "relation"


def table_to_entity_name(table: str) -> str:
    """``tbl_order_items`` -> ``OrderItems``."""
    name = table
    lower = name.lower()
    for prefix in _TABLE_PREFIXES:
        if lower.startswith(prefix):
            name = name[len(prefix):]
            break
    return "".join(part[:1].upper() + part[1:] for part in name.split("_") if part)


def relation_from_call_site(frames: Optional[Iterable[StackFrame]]) -> str:
    """Infer a relation name from the first getter-like frame.

    ``getAuthor`` and ``get_author`` both give ``author``; without a getter
    frame the generic ``relation`` placeholder is returned.
    """
    if not frames:
        return DEFAULT_RELATION

    for frame in frames:
        if not frame.function:
            continue
        match = _GETTER_RE.match(frame.function)
        if match is None:
            continue
        camel, snake = match.groups()
        if camel:
            return camel[:1].lower() + camel[1:]
        return snake

    return DEFAULT_RELATION


def normalize_statement(text: str) -> str:
    """Collapse whitespace so structurally identical statements compare equal."""
    return " ".join(text.split())


def truncate_statement(text: str, limit: int = 200) -> str:
    flat = normalize_statement(text)
    if len(flat) <= limit:
        return flat
    return flat[: limit - 3] + "..."
