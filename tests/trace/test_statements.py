"""Tests for statement-shape classification."""

import pytest

from trace_doctor.trace.statements import StatementKind, classify_statement, strip_leading_comments


class TestClassifyStatement:
    """Test leading-keyword classification."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("SELECT * FROM users", StatementKind.SELECT),
            ("  select id from users", StatementKind.SELECT),
            ("WITH recent AS (SELECT 1) SELECT * FROM recent", StatementKind.SELECT),
            ("INSERT INTO users (name) VALUES (?)", StatementKind.INSERT),
            ("UPDATE users SET name = ? WHERE id = ?", StatementKind.UPDATE),
            ("DELETE FROM users WHERE id = ?", StatementKind.DELETE),
            ("START TRANSACTION", StatementKind.BEGIN),
            ("BEGIN", StatementKind.BEGIN),
            ("BEGIN TRANSACTION", StatementKind.BEGIN),
            ("COMMIT", StatementKind.COMMIT),
            ("ROLLBACK", StatementKind.ROLLBACK),
            ("SET NAMES utf8", StatementKind.OTHER),
        ],
    )
    def test_kinds(self, text, expected):
        """Each leading keyword maps to its kind."""
        assert classify_statement(text) is expected

    def test_rollback_to_savepoint_is_not_a_close(self):
        """ROLLBACK TO SAVEPOINT leaves the transaction open."""
        assert classify_statement("ROLLBACK TO SAVEPOINT sp1") is StatementKind.OTHER

    def test_leading_comments_ignored(self):
        """Comments before the keyword don't hide it."""
        text = "/* app:blog */ -- trace\n  SELECT 1"
        assert classify_statement(text) is StatementKind.SELECT

    def test_empty_is_other(self):
        """Empty text is OTHER, never an error."""
        assert classify_statement("") is StatementKind.OTHER

    def test_garbage_is_other(self):
        """Unrecognised text is OTHER."""
        assert classify_statement(")))(((") is StatementKind.OTHER


class TestStatementKind:
    def test_write_kinds(self):
        """INSERT, UPDATE and DELETE are writes."""
        writes = {k for k in StatementKind if k.is_write}
        assert writes == {StatementKind.INSERT, StatementKind.UPDATE, StatementKind.DELETE}

    def test_strip_leading_comments(self):
        assert strip_leading_comments("/* x */SELECT 1") == "SELECT 1"
