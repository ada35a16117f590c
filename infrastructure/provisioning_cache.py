# ============================================================================
# PROVISIONING CACHE
# ============================================================================
# STATUS: Infrastructure - Concurrency control
# PURPOSE: Key-addressed memoization of schema-object creation
# CREATED: 18 OCT 2026
# ============================================================================
"""
Provisioning Cache

Maps (object kind, table key) to an asyncio future resolving to:

    True   the object was created by this process
    False  the object already existed (seeded from the catalog)

The first requester for a key creates the future; everyone else awaits the
same one, so at most one DDL statement is ever issued per key. Get-or-insert
runs without an intervening await, which makes it atomic on the event loop.
It does not coordinate separate caches pointed at the same database.

A cache belongs to one provisioner (one database target) and one event
loop. Entries are never removed implicitly; a failed entry stays failed
until discard_failed() is called.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional, Tuple

from core.contracts import ObjectKind, TableKey

logger = logging.getLogger(__name__)


class EntryState(str, Enum):
    """Observable state of a cache entry."""
    PENDING = "pending"
    CREATED = "created"
    EXISTING = "existing"
    FAILED = "failed"


def _format_key(key: TableKey) -> str:
    schema, table = key
    return f"{schema}.{table}" if schema else table


class ProvisioningCache:
    """
    Per-target cache of creation futures.

    Usage:
        cache = ProvisioningCache()
        future, is_new = cache.get_or_create(
            ObjectKind.TRIGGER, ("public", "users"), create_trigger
        )
        created = await future
    """

    def __init__(self):
        self._entries: Dict[ObjectKind, Dict[TableKey, asyncio.Future]] = {
            kind: {} for kind in ObjectKind
        }

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())

    def __contains__(self, item: Tuple[ObjectKind, TableKey]) -> bool:
        kind, key = item
        return key in self._entries[kind]

    def get(self, kind: ObjectKind, key: TableKey) -> Optional[asyncio.Future]:
        return self._entries[kind].get(key)

    def seed(self, kind: ObjectKind, key: TableKey) -> bool:
        """
        Record an object that already exists. Must run inside the event loop.

        Returns:
            True if the entry was added, False if the key was already known
        """
        entries = self._entries[kind]
        if key in entries:
            return False

        future = asyncio.get_running_loop().create_future()
        future.set_result(False)
        entries[key] = future
        return True

    def get_or_create(
        self,
        kind: ObjectKind,
        key: TableKey,
        factory: Callable[[], Awaitable[bool]],
    ) -> Tuple[asyncio.Future, bool]:
        """
        Return the entry for a key, scheduling ``factory()`` if there is none.

        Returns:
            (future, is_new) where is_new is True for the caller that
            scheduled the creation
        """
        entries = self._entries[kind]
        entry = entries.get(key)
        if entry is not None:
            return entry, False

        entry = asyncio.ensure_future(factory())
        entries[key] = entry
        return entry, True

    def state(self, kind: ObjectKind, key: TableKey) -> Optional[EntryState]:
        entry = self._entries[kind].get(key)
        if entry is None:
            return None
        if not entry.done():
            return EntryState.PENDING
        if entry.cancelled() or entry.exception() is not None:
            return EntryState.FAILED
        return EntryState.CREATED if entry.result() else EntryState.EXISTING

    def snapshot(self) -> Dict[str, Dict[str, str]]:
        """State of every entry, keyed by kind value then ``schema.table``."""
        return {
            kind.value: {
                _format_key(key): self.state(kind, key).value
                for key in entries
            }
            for kind, entries in self._entries.items()
        }

    def discard_failed(self) -> int:
        """
        Drop failed entries so the next request issues the DDL again.

        Returns:
            Number of entries removed
        """
        removed = 0
        for kind, entries in self._entries.items():
            for key in list(entries):
                if self.state(kind, key) is EntryState.FAILED:
                    del entries[key]
                    removed += 1
                    logger.info(f"Discarded failed {kind.value} entry for {_format_key(key)}")
        return removed

    def clear(self) -> None:
        """Forget every entry (e.g. after the target schema was rebuilt)."""
        for entries in self._entries.values():
            entries.clear()


__all__ = [
    "EntryState",
    "ProvisioningCache",
]
