"""Shared test fixtures for Trace Doctor tests."""

import pytest

from trace_doctor.mapping import MappingSnapshot
from trace_doctor.trace import QueryRecord, QueryTrace, StackFrame


def _trace_from(statements, start=0, step=1, duration_ms=1.0):
    records = []
    for i, text in enumerate(statements):
        records.append(QueryRecord(index=start + i * step, text=text, duration_ms=duration_ms))
    return QueryTrace(tuple(records))


@pytest.fixture
def make_trace():
    """Factory: build a trace from statement strings, optionally spaced out."""
    return _trace_from


@pytest.fixture
def lookup_records():
    """Factory: ``count`` user key lookups at ``start, start+step, ...``."""

    def _build(count, start=0, step=1, table="users", call_site=None, duration_ms=2.0):
        return [
            QueryRecord(
                index=start + i * step,
                text=f"SELECT t0.id, t0.name FROM {table} t0 WHERE t0.id = ?",
                duration_ms=duration_ms,
                parameters=(i + 1,),
                call_site=call_site,
            )
            for i in range(count)
        ]

    return _build


@pytest.fixture
def getter_call_site():
    """Call site of a lazy load triggered from ``Post.getAuthor``."""
    return (
        StackFrame(file="vendor/orm/Proxy.php", line=42, function="__load"),
        StackFrame(file="src/Entity/Post.php", line=88, function="getAuthor", cls="Post"),
        StackFrame(file="src/Controller/BlogController.php", line=17, function="index"),
    )


@pytest.fixture
def blog_mapping():
    """Raw mapping of a small blog schema."""
    return {
        "User": {
            "table": "users",
            "associations": [
                {"field": "posts", "cardinality": "to-many", "target": "Post"},
                {
                    "field": "profile",
                    "cardinality": "to-one",
                    "target": "Profile",
                    "nullable": True,
                    "join_columns": ["profile_id"],
                },
            ],
        },
        "Profile": {"table": "profiles", "associations": []},
        "Post": {
            "table": "posts",
            "associations": [
                {
                    "field": "author",
                    "cardinality": "to-one",
                    "target": "User",
                    "nullable": False,
                    "join_columns": ["author_id"],
                },
                {"field": "comments", "cardinality": "to-many", "target": "Comment"},
                {"field": "tags", "cardinality": "to-many", "target": "Tag", "fetch": "extra-lazy"},
            ],
        },
        "Comment": {
            "table": "comments",
            "associations": [
                {
                    "field": "post",
                    "cardinality": "to-one",
                    "target": "Post",
                    "nullable": False,
                    "join_columns": ["post_id"],
                },
            ],
        },
        "Tag": {"table": "tags", "associations": []},
    }


@pytest.fixture
def blog_snapshot(blog_mapping):
    """MappingSnapshot over the blog schema."""
    return MappingSnapshot.from_dict(blog_mapping)


@pytest.fixture
def empty_snapshot():
    return MappingSnapshot.empty()
