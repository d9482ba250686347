"""Structural SQL helpers."""

from .structure import (
    JoinFragment,
    TableRef,
    extract_joins,
    extract_main_table,
    extract_projection,
    has_join,
    has_limit,
    is_alias_used,
    key_lookup_table,
    projection_aliases,
)

__all__ = [
    "JoinFragment",
    "TableRef",
    "extract_joins",
    "extract_main_table",
    "extract_projection",
    "has_join",
    "has_limit",
    "is_alias_used",
    "key_lookup_table",
    "projection_aliases",
]
