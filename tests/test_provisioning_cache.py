# ============================================================================
# PROVISIONING CACHE TESTS
# ============================================================================
# STATUS: Tests - Concurrency control
# PURPOSE: Verify first-caller-creates memoization and failure handling
# CREATED: 18 OCT 2026
# ============================================================================
"""
Provisioning Cache Tests

Run with:
    pytest tests/test_provisioning_cache.py -v
"""

import asyncio

import pytest

from core.contracts import ObjectKind
from infrastructure.provisioning_cache import EntryState, ProvisioningCache

USERS = ("public", "users")
ORDERS = ("public", "orders")


class TestGetOrCreate:

    def test_first_caller_creates(self):
        async def run():
            cache = ProvisioningCache()
            calls = []

            async def create():
                calls.append(1)
                await asyncio.sleep(0)
                return True

            first, first_new = cache.get_or_create(ObjectKind.TRIGGER, USERS, create)
            second, second_new = cache.get_or_create(ObjectKind.TRIGGER, USERS, create)

            assert first is second
            assert (first_new, second_new) == (True, False)
            assert await first is True
            assert calls == [1]
            assert cache.state(ObjectKind.TRIGGER, USERS) is EntryState.CREATED

        asyncio.run(run())

    def test_kinds_are_independent(self):
        async def run():
            cache = ProvisioningCache()

            async def create():
                return True

            cache.get_or_create(ObjectKind.IDENTITY_COLUMN, USERS, create)
            _, is_new = cache.get_or_create(ObjectKind.REVISION_COLUMN, USERS, create)
            assert is_new
            assert len(cache) == 2
            assert (ObjectKind.TRIGGER, USERS) not in cache
            await asyncio.sleep(0)

        asyncio.run(run())

    def test_concurrent_requesters_share_one_creation(self):
        async def run():
            cache = ProvisioningCache()
            calls = []

            async def create():
                calls.append(1)
                await asyncio.sleep(0.01)
                return True

            async def request():
                future, _ = cache.get_or_create(ObjectKind.TRIGGER, USERS, create)
                return await future

            results = await asyncio.gather(*(request() for _ in range(10)))
            assert results == [True] * 10
            assert len(calls) == 1

        asyncio.run(run())


class TestSeed:

    def test_seed_marks_existing(self):
        async def run():
            cache = ProvisioningCache()
            assert cache.seed(ObjectKind.IDENTITY_COLUMN, USERS) is True
            assert cache.seed(ObjectKind.IDENTITY_COLUMN, USERS) is False

            future, is_new = cache.get_or_create(ObjectKind.IDENTITY_COLUMN, USERS, None)
            assert not is_new
            assert await future is False
            assert cache.state(ObjectKind.IDENTITY_COLUMN, USERS) is EntryState.EXISTING

        asyncio.run(run())

    def test_snapshot(self):
        async def run():
            cache = ProvisioningCache()
            cache.seed(ObjectKind.TRIGGER, ORDERS)
            snapshot = cache.snapshot()
            assert snapshot["trigger"] == {"public.orders": "existing"}
            assert snapshot["identity_column"] == {}

        asyncio.run(run())


class TestFailures:

    def test_failed_entry_stays_failed_until_discarded(self):
        async def run():
            cache = ProvisioningCache()

            async def fail():
                raise RuntimeError("boom")

            async def succeed():
                return True

            future, _ = cache.get_or_create(ObjectKind.TRIGGER, USERS, fail)
            with pytest.raises(RuntimeError):
                await future

            again, is_new = cache.get_or_create(ObjectKind.TRIGGER, USERS, succeed)
            assert not is_new
            assert again is future
            assert cache.state(ObjectKind.TRIGGER, USERS) is EntryState.FAILED

            assert cache.discard_failed() == 1
            assert cache.state(ObjectKind.TRIGGER, USERS) is None

            retry, is_new = cache.get_or_create(ObjectKind.TRIGGER, USERS, succeed)
            assert is_new
            assert await retry is True

        asyncio.run(run())

    def test_clear(self):
        async def run():
            cache = ProvisioningCache()
            cache.seed(ObjectKind.TRIGGER, USERS)
            cache.clear()
            assert len(cache) == 0

        asyncio.run(run())
