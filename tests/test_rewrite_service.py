# ============================================================================
# REWRITE SERVICE TESTS
# ============================================================================
# STATUS: Tests - Query rewriting facade
# PURPOSE: Verify parse -> provision -> inject -> deparse end to end
# CREATED: 18 OCT 2026
# ============================================================================
"""
Rewrite Service Tests

Run with:
    pytest tests/test_rewrite_service.py -v
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from core.config import RowIdentityConfig
from core.contracts import DERIVED
from infrastructure.base_repository import ProvisioningError
from rewriter.parser import SqlParseError
from services.rewrite_service import RowIdentityRewriter, statement_id


# ============================================================================
# HELPERS
# ============================================================================

def _make_client(side_effect=None):
    client = AsyncMock()
    client.query = AsyncMock(return_value=[], side_effect=side_effect)
    return client


def _make_rewriter(client=None, config=None):
    client = client or _make_client()
    return RowIdentityRewriter(client, config or RowIdentityConfig()), client


# ============================================================================
# ONLINE REWRITE
# ============================================================================

class TestRewrite:

    def test_simple_select(self):
        rewriter, client = _make_rewriter()
        result = asyncio.run(rewriter.rewrite("SELECT name FROM users"))

        assert result.sql.startswith(
            'SELECT "public"."users"."__id__" || \'|\' AS "__id__\'", '
            '"public"."users"."__rev__" AS "__rev__\'", name'
        )
        assert list(result.tables) == [("public", "users")]
        # 3 catalog lookups + sequence + function + 2 columns + trigger
        assert client.query.await_count == 8
        assert result.provisioning.created_count == 3

    def test_top_level_tables_include_derived(self):
        rewriter, _ = _make_rewriter()
        result = asyncio.run(rewriter.rewrite(
            "SELECT * FROM (SELECT * FROM a) AS sub JOIN b ON b.id = sub.id"
        ))
        assert list(result.tables) == [(DERIVED, "sub"), ("public", "b")]
        assert {t.table.qualified_name for t in result.provisioning.triggers} == {"public.a", "public.b"}

    def test_union_top_level_tables(self):
        rewriter, _ = _make_rewriter()
        result = asyncio.run(rewriter.rewrite("SELECT a FROM x UNION SELECT a FROM y"))
        assert list(result.tables) == [("public", "x"), ("public", "y")]

    def test_multiple_statements_joined(self):
        rewriter, _ = _make_rewriter()
        result = asyncio.run(rewriter.rewrite("SELECT * FROM a; SELECT * FROM b"))
        first, second = result.sql.split(";\n")
        assert first.endswith("FROM a")
        assert second.endswith("FROM b")

    def test_deterministic(self):
        text = "SELECT count(*) FROM orders o JOIN customers c ON c.id = o.cid GROUP BY c.region"
        first, _ = _make_rewriter()
        second, _ = _make_rewriter()
        assert asyncio.run(first.rewrite(text)).sql == asyncio.run(second.rewrite(text)).sql

    def test_parse_error_issues_no_statements(self):
        rewriter, client = _make_rewriter()
        with pytest.raises(SqlParseError):
            asyncio.run(rewriter.rewrite("SELECT * FROM users WHERE (id = 1"))
        client.query.assert_not_awaited()

    def test_provisioning_error_propagates(self):
        rewriter, _ = _make_rewriter(_make_client(side_effect=RuntimeError("connection lost")))
        with pytest.raises(ProvisioningError):
            asyncio.run(rewriter.rewrite("SELECT name FROM users"))

    def test_select_without_tables_unchanged(self):
        rewriter, client = _make_rewriter()
        result = asyncio.run(rewriter.rewrite("SELECT 1"))
        assert result.sql == "SELECT 1"
        assert result.tables == {}
        client.query.assert_not_awaited()

    def test_to_dict(self):
        rewriter, _ = _make_rewriter()
        payload = asyncio.run(rewriter.rewrite("SELECT name FROM users")).to_dict()
        assert payload["tables"] == ["public.users"]
        assert payload["provisioning"]["summary"]["created"] == 3


# ============================================================================
# OFFLINE REWRITE
# ============================================================================

class TestRewriteOffline:

    def test_no_database_access(self):
        rewriter, client = _make_rewriter()
        result = rewriter.rewrite_offline("SELECT name FROM users")
        assert result.sql.startswith('SELECT "public"."users"."__id__"')
        assert result.provisioning is None
        client.query.assert_not_called()

    def test_matches_online_text(self):
        online, _ = _make_rewriter()
        offline, _ = _make_rewriter()
        text = "SELECT u.name FROM users u JOIN orders o ON o.uid = u.id"
        assert asyncio.run(online.rewrite(text)).sql == offline.rewrite_offline(text).sql


class TestStatementId:

    def test_stable_and_short(self):
        assert statement_id("SELECT 1") == statement_id("SELECT 1")
        assert statement_id("SELECT 1") != statement_id("SELECT 2")
        assert len(statement_id("SELECT 1")) == 12
