# ============================================================================
# SCHEMA PROVISIONER TESTS
# ============================================================================
# STATUS: Tests - Identity/revision object provisioning
# PURPOSE: Verify bootstrap, memoized DDL issuance and failure handling
# CREATED: 18 OCT 2026
# ============================================================================
"""
Schema Provisioner Tests

Uses an in-memory client that records every statement it receives, so
DDL counts can be asserted without a database.

Run with:
    pytest tests/test_provisioner.py -v
"""

import asyncio

import pytest

from core.config import RowIdentityConfig
from core.contracts import ObjectKind, TableReference
from core.schema.ddl_utils import render
from infrastructure.base_repository import ProvisioningError
from infrastructure.provisioner import SchemaProvisioner
from rewriter.parser import parse_statements


# ============================================================================
# HELPERS
# ============================================================================

class _RecordingClient:
    """
    Fake DatabaseClient.

    Args:
        existing: Catalog rows returned per looked-up name
        fail_on: Substring; statements containing it raise RuntimeError
    """

    def __init__(self, existing=None, fail_on=None):
        self.existing = existing or {}
        self.fail_on = fail_on
        self.statements = []

    async def query(self, query, params=None):
        text = query if isinstance(query, str) else render(query)
        self.statements.append(text)
        await asyncio.sleep(0)
        if self.fail_on and self.fail_on in text:
            raise RuntimeError(f"simulated failure: {self.fail_on}")
        if params:
            return list(self.existing.get(params[0], []))
        return []

    def count(self, fragment):
        return sum(1 for text in self.statements if fragment in text)


def _make_provisioner(**client_kwargs):
    client = _RecordingClient(**client_kwargs)
    return SchemaProvisioner(client, RowIdentityConfig()), client


def _tree(text):
    return parse_statements(text)[0]


USERS = TableReference.base("public", "users")


# ============================================================================
# BOOTSTRAP
# ============================================================================

class TestBootstrap:

    def test_creates_shared_objects_once(self):
        async def run():
            provisioner, client = _make_provisioner()
            await asyncio.gather(provisioner.bootstrap(), provisioner.bootstrap())
            await provisioner.bootstrap()
            return provisioner, client

        provisioner, client = asyncio.run(run())
        assert client.count("CREATE SEQUENCE IF NOT EXISTS") == 1
        assert client.count("CREATE OR REPLACE FUNCTION") == 1
        assert client.count("pg_attribute") == 2
        assert client.count("pg_trigger") == 1
        assert provisioner.status()["bootstrap"] == "complete"

    def test_seeds_cache_from_catalog(self):
        async def run():
            provisioner, client = _make_provisioner(existing={
                "__id__": [{"schema_name": "public", "table_name": "users"}],
                "__rev___trigger": [{"schema_name": "public", "table_name": "users"}],
            })
            column = await provisioner.ensure_column(USERS, "__id__")
            trigger = await provisioner.ensure_trigger(USERS)
            return provisioner, client, column, trigger

        provisioner, client, column, trigger = asyncio.run(run())
        assert column.created is False
        assert trigger.created is False
        assert client.count("ALTER TABLE") == 0
        assert client.count("CREATE OR REPLACE TRIGGER") == 0
        assert provisioner.status()["objects"]["trigger"] == {"public.users": "existing"}

    def test_failed_bootstrap_is_reported_and_resettable(self):
        async def run():
            provisioner, client = _make_provisioner(fail_on="CREATE SEQUENCE")
            with pytest.raises(ProvisioningError) as exc_info:
                await provisioner.ensure_column(USERS, "__id__")
            assert exc_info.value.operation == "create revision sequence"
            assert provisioner.status()["bootstrap"] == "failed"

            # Rejected until explicitly discarded
            with pytest.raises(ProvisioningError):
                await provisioner.bootstrap()
            assert client.count("CREATE SEQUENCE") == 1

            client.fail_on = None
            assert provisioner.discard_failed() == 1
            result = await provisioner.ensure_column(USERS, "__id__")
            assert result.created is True
            assert client.count("CREATE SEQUENCE") == 2

        asyncio.run(run())


# ============================================================================
# PER-TABLE OBJECTS
# ============================================================================

class TestEnsureColumn:

    def test_creates_identity_column(self):
        async def run():
            provisioner, client = _make_provisioner()
            result = await provisioner.ensure_column(USERS, "__id__")
            return client, result

        client, result = asyncio.run(run())
        assert result.created is True
        assert result.to_dict() == {"table": "public.users", "column": "__id__", "created": True}
        assert client.statements[-1] == (
            'ALTER TABLE "public"."users" ADD COLUMN IF NOT EXISTS "__id__" BIGSERIAL'
        )

    def test_concurrent_calls_issue_one_statement(self):
        async def run():
            provisioner, client = _make_provisioner()
            results = await asyncio.gather(
                provisioner.ensure_column(USERS, "__rev__"),
                provisioner.ensure_column(USERS, "__rev__"),
            )
            return client, results

        client, results = asyncio.run(run())
        assert client.count('ADD COLUMN IF NOT EXISTS "__rev__"') == 1
        assert [r.created for r in results] == [True, True]

    def test_unknown_column_rejected(self):
        provisioner, _ = _make_provisioner()
        with pytest.raises(ValueError):
            asyncio.run(provisioner.ensure_column(USERS, "name"))

    def test_derived_table_rejected(self):
        provisioner, _ = _make_provisioner()
        with pytest.raises(ValueError):
            asyncio.run(provisioner.ensure_column(TableReference.derived("sub"), "__id__"))
        with pytest.raises(ValueError):
            asyncio.run(provisioner.ensure_trigger(TableReference.derived("sub")))

    def test_failure_stays_rejected_until_discarded(self):
        async def run():
            provisioner, client = _make_provisioner(fail_on="BIGINT DEFAULT")
            with pytest.raises(ProvisioningError) as exc_info:
                await provisioner.ensure_column(USERS, "__rev__")
            assert exc_info.value.entity_id == "public.users"
            assert isinstance(exc_info.value.__cause__, RuntimeError)

            client.fail_on = None
            with pytest.raises(ProvisioningError):
                await provisioner.ensure_column(USERS, "__rev__")
            assert client.count("BIGINT DEFAULT") == 1
            assert provisioner.status()["objects"]["revision_column"] == {"public.users": "failed"}

            assert provisioner.discard_failed() == 1
            result = await provisioner.ensure_column(USERS, "__rev__")
            assert result.created is True
            assert client.count("BIGINT DEFAULT") == 2

        asyncio.run(run())


# ============================================================================
# WHOLE STATEMENTS
# ============================================================================

class TestEnsureObjects:

    def test_simple_select(self):
        async def run():
            provisioner, client = _make_provisioner()
            result = await provisioner.ensure_objects(_tree("SELECT name FROM users"))
            return client, result

        client, result = asyncio.run(run())
        assert client.count('ADD COLUMN IF NOT EXISTS "__id__" BIGSERIAL') == 1
        assert client.count('ADD COLUMN IF NOT EXISTS "__rev__" BIGINT') == 1
        assert client.count('CREATE OR REPLACE TRIGGER "__rev___trigger"') == 1
        assert result.created_count == 3
        assert result.to_dict()["summary"] == {"tables": 1, "created": 3}

    def test_second_run_issues_nothing(self):
        async def run():
            provisioner, client = _make_provisioner()
            await provisioner.ensure_objects(_tree("SELECT * FROM a JOIN b ON a.id = b.id"))
            issued = len(client.statements)
            await provisioner.ensure_objects(_tree("SELECT * FROM b"))
            return issued, client

        issued, client = asyncio.run(run())
        assert len(client.statements) == issued
        assert client.count("ALTER TABLE") == 4
        assert client.count("CREATE OR REPLACE TRIGGER") == 2

    def test_nested_and_cte_tables_provisioned(self):
        async def run():
            provisioner, client = _make_provisioner()
            await provisioner.ensure_objects(_tree(
                "WITH recent AS (SELECT * FROM orders) "
                "SELECT * FROM recent JOIN (SELECT * FROM customers) AS c ON c.id = recent.customer_id "
                "WHERE recent.region_id IN (SELECT id FROM sales.regions)"
            ))
            return provisioner

        provisioner = asyncio.run(run())
        triggers = provisioner.status()["objects"]["trigger"]
        assert set(triggers) == {"public.orders", "public.customers", "sales.regions"}

    def test_no_tables_skips_bootstrap(self):
        async def run():
            provisioner, client = _make_provisioner()
            result = await provisioner.ensure_objects(_tree("SELECT 1"))
            return provisioner, client, result

        provisioner, client, result = asyncio.run(run())
        assert client.statements == []
        assert result.columns == [] and result.triggers == []
        assert provisioner.status()["bootstrap"] == "not_started"

    def test_several_trees(self):
        async def run():
            provisioner, client = _make_provisioner()
            result = await provisioner.ensure_objects(parse_statements("SELECT * FROM a; SELECT * FROM b"))
            return result

        result = asyncio.run(run())
        assert [t.table.qualified_name for t in result.triggers] == ["public.a", "public.b"]

    def test_shared_cache_between_instances(self):
        async def run():
            first, client = _make_provisioner()
            await first.ensure_objects(_tree("SELECT * FROM users"))
            issued = client.count("ALTER TABLE")

            second = SchemaProvisioner(client, RowIdentityConfig(), cache=first.cache)
            await second.ensure_objects(_tree("SELECT * FROM users"))
            return issued, client, second

        issued, client, second = asyncio.run(run())
        assert client.count("ALTER TABLE") == issued
        assert (ObjectKind.TRIGGER, ("public", "users")) in second.cache
