# ============================================================================
# SCHEMA OBJECT PROVISIONER
# ============================================================================
# STATUS: Infrastructure - Identity/revision object provisioning
# PURPOSE: Make sure every table a query touches has identity/revision
#          columns and a stamping trigger before the rewritten query runs
# CREATED: 18 OCT 2026
# DEPENDENCIES: psycopg (sql composition), sqlglot (trees)
# ============================================================================
"""
SchemaProvisioner

Objects managed:
1. Shared revision sequence        (once, CREATE SEQUENCE IF NOT EXISTS)
2. Revision stamping function      (once, CREATE OR REPLACE FUNCTION)
3. Identity column per table       (BIGSERIAL)
4. Revision column per table       (BIGINT DEFAULT nextval(sequence))
5. Stamping trigger per table      (BEFORE INSERT OR UPDATE, FOR EACH ROW)

Bootstrap runs once per provisioner: it creates 1 and 2 and seeds the cache
with tables that already carry 3, 4 or 5, discovered through the catalog.
After that, per-table objects are created lazily, once per table and kind,
no matter how many requests ask for them concurrently.

There is no transaction around a provisioning run. Every statement is
idempotent on its own, so a failed run can be repeated; the failed cache
entries have to be discarded first (discard_failed()).

Usage:
    provisioner = SchemaProvisioner(client, RowIdentityConfig())
    result = await provisioner.ensure_objects(tree)
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union

from psycopg import sql
from sqlglot import exp

from core.config import RowIdentityConfig, get_defaults
from core.contracts import ObjectKind, TableReference
from core.logging import log_context
from core.schema.ddl_utils import (
    CatalogQueries,
    ColumnBuilder,
    FunctionBuilder,
    SequenceBuilder,
    TriggerBuilder,
)
from infrastructure.base_repository import BaseRepository, ProvisioningError
from infrastructure.postgresql import DatabaseClient
from infrastructure.provisioning_cache import ProvisioningCache
from rewriter.resolver import collect_cte_names, resolve_tables

logger = logging.getLogger(__name__)


# ============================================================================
# DATA CLASSES
# ============================================================================

@dataclass
class ColumnResult:
    """Outcome of ensure_column()."""
    table: TableReference
    column: str
    created: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"table": self.table.qualified_name, "column": self.column, "created": self.created}


@dataclass
class TriggerResult:
    """Outcome of ensure_trigger()."""
    table: TableReference
    created: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"table": self.table.qualified_name, "created": self.created}


@dataclass
class ProvisioningResult:
    """Outcome of ensure_objects()."""
    columns: List[ColumnResult] = field(default_factory=list)
    triggers: List[TriggerResult] = field(default_factory=list)

    @property
    def created_count(self) -> int:
        return sum(1 for r in self.columns if r.created) + sum(1 for r in self.triggers if r.created)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "columns": [r.to_dict() for r in self.columns],
            "triggers": [r.to_dict() for r in self.triggers],
            "summary": {
                "tables": len(self.triggers),
                "created": self.created_count,
            },
        }


# ============================================================================
# PROVISIONER
# ============================================================================

class SchemaProvisioner(BaseRepository):
    """
    Idempotent, memoized provisioning of identity/revision objects.

    The cache is owned by this instance (or injected); two provisioners
    pointed at the same database do not coordinate with each other.
    """

    error_class = ProvisioningError

    def __init__(
        self,
        client: DatabaseClient,
        config: Optional[RowIdentityConfig] = None,
        cache: Optional[ProvisioningCache] = None,
    ):
        super().__init__()
        self.client = client
        self.config = config or get_defaults().identity
        self.cache = cache if cache is not None else ProvisioningCache()
        self._bootstrap: Optional[asyncio.Future] = None

    # =========================================================================
    # BOOTSTRAP
    # =========================================================================

    async def bootstrap(self) -> None:
        """
        Create the shared objects and seed the cache from the catalog.

        Runs once; concurrent and later callers await the same task. A failed
        bootstrap stays failed until discard_failed().
        """
        if self._bootstrap is None:
            self._bootstrap = asyncio.ensure_future(self._run_bootstrap())
        await self._bootstrap

    async def _run_bootstrap(self) -> None:
        config = self.config
        schema = config.default_schema

        with log_context(operation="bootstrap"):
            identity_rows, revision_rows, trigger_rows, _, _ = await asyncio.gather(
                self._catalog_lookup(CatalogQueries.TABLES_WITH_COLUMN, config.identity_column),
                self._catalog_lookup(CatalogQueries.TABLES_WITH_COLUMN, config.revision_column),
                self._catalog_lookup(CatalogQueries.TABLES_WITH_TRIGGER, config.trigger_name),
                self._execute_ddl(
                    "create revision sequence",
                    SequenceBuilder.create(schema, config.sequence_name),
                    f"{schema}.{config.sequence_name}",
                ),
                self._execute_ddl(
                    "create stamping function",
                    FunctionBuilder.stamp_revision(
                        schema,
                        config.stamp_function_name,
                        config.revision_column,
                        config.sequence_name,
                    ),
                    f"{schema}.{config.stamp_function_name}",
                ),
            )

            seeded = 0
            for kind, rows in (
                (ObjectKind.IDENTITY_COLUMN, identity_rows),
                (ObjectKind.REVISION_COLUMN, revision_rows),
                (ObjectKind.TRIGGER, trigger_rows),
            ):
                for row in rows:
                    if self.cache.seed(kind, (row["schema_name"], row["table_name"])):
                        seeded += 1

        logger.info(
            f"Provisioning bootstrap complete: {seeded} existing objects "
            f"(identity={len(identity_rows)}, revision={len(revision_rows)}, "
            f"triggers={len(trigger_rows)})"
        )

    async def _catalog_lookup(self, query: sql.Composable, name: str) -> List[Dict[str, Any]]:
        with self._error_context("catalog lookup", name):
            return await self.client.query(query, (name,))

    async def _execute_ddl(self, operation: str, statement: sql.Composable, entity_id: str) -> bool:
        with log_context(table=entity_id):
            with self._error_context(operation, entity_id):
                await self.client.query(statement)
            self._log_operation(True, operation, entity_id)
        return True

    # =========================================================================
    # PER-TABLE OBJECTS
    # =========================================================================

    def _column_kind(self, column: str) -> ObjectKind:
        if column == self.config.identity_column:
            return ObjectKind.IDENTITY_COLUMN
        if column == self.config.revision_column:
            return ObjectKind.REVISION_COLUMN
        raise ValueError(
            f"Unknown meta column {column!r}; expected "
            f"{self.config.identity_column!r} or {self.config.revision_column!r}"
        )

    @staticmethod
    def _require_base_table(table: TableReference) -> None:
        if table.is_derived:
            raise ValueError(f"Derived table {table.alias!r} has no physical objects")

    def _column_statement(self, table: TableReference, kind: ObjectKind) -> sql.Composed:
        config = self.config
        if kind is ObjectKind.IDENTITY_COLUMN:
            return ColumnBuilder.identity(table.schema_name, table.table, config.identity_column)
        return ColumnBuilder.revision(
            table.schema_name,
            table.table,
            config.revision_column,
            config.sequence_name,
            sequence_schema=config.default_schema,
        )

    async def ensure_column(self, table: TableReference, column: str) -> ColumnResult:
        """
        Make sure a table carries the identity or revision column.

        Concurrent calls for the same (table, column) share one ADD COLUMN.
        """
        kind = self._column_kind(column)
        self._require_base_table(table)
        await self.bootstrap()

        statement = self._column_statement(table, kind)
        future, is_new = self.cache.get_or_create(
            kind,
            table.key,
            lambda: self._execute_ddl(f"add {kind.value}", statement, table.qualified_name),
        )
        if not is_new:
            logger.debug(f"{kind.value} for {table.qualified_name} already tracked")

        created = await future
        return ColumnResult(table=table, column=column, created=created)

    async def ensure_trigger(self, table: TableReference) -> TriggerResult:
        """
        Make sure a table has the revision stamping trigger.
        """
        self._require_base_table(table)
        await self.bootstrap()

        config = self.config
        statement = TriggerBuilder.stamp_revision(
            table.schema_name,
            table.table,
            config.trigger_name,
            config.default_schema,
            config.stamp_function_name,
        )
        future, is_new = self.cache.get_or_create(
            ObjectKind.TRIGGER,
            table.key,
            lambda: self._execute_ddl("create trigger", statement, table.qualified_name),
        )
        if not is_new:
            logger.debug(f"trigger for {table.qualified_name} already tracked")

        created = await future
        return TriggerResult(table=table, created=created)

    # =========================================================================
    # WHOLE STATEMENTS
    # =========================================================================

    def tables_for(self, tree: Union[exp.Expression, Iterable[exp.Expression]]) -> List[TableReference]:
        """
        Every base table anywhere in the tree(s), nested and joined included.
        """
        trees = [tree] if isinstance(tree, exp.Expression) else list(tree)
        tables: Dict = {}
        for statement in trees:
            tables.update(
                resolve_tables(
                    statement,
                    default_schema=self.config.default_schema,
                    cte_names=collect_cte_names(statement),
                )
            )
        return [table for table in tables.values() if not table.is_derived]

    async def ensure_objects(
        self, tree: Union[exp.Expression, Iterable[exp.Expression]]
    ) -> ProvisioningResult:
        """
        Provision everything a statement needs before it may run.

        Raises:
            ProvisioningError: If any catalog lookup or DDL statement fails
        """
        tables = self.tables_for(tree)
        if not tables:
            return ProvisioningResult()

        columns = [self.config.identity_column, self.config.revision_column]
        column_calls = [self.ensure_column(table, column) for column in columns for table in tables]
        trigger_calls = [self.ensure_trigger(table) for table in tables]

        results = await asyncio.gather(*column_calls, *trigger_calls)

        result = ProvisioningResult(
            columns=list(results[:len(column_calls)]),
            triggers=list(results[len(column_calls):]),
        )
        logger.debug(f"Provisioned {len(tables)} tables ({result.created_count} objects created)")
        return result

    # =========================================================================
    # INSPECTION / RESET
    # =========================================================================

    def status(self) -> Dict[str, Any]:
        """Snapshot of the cache plus bootstrap state."""
        if self._bootstrap is None:
            bootstrap = "not_started"
        elif not self._bootstrap.done():
            bootstrap = "pending"
        elif self._bootstrap.cancelled() or self._bootstrap.exception() is not None:
            bootstrap = "failed"
        else:
            bootstrap = "complete"

        return {"bootstrap": bootstrap, "objects": self.cache.snapshot()}

    def discard_failed(self) -> int:
        """
        Forget failed work so the next request retries it.

        Returns:
            Number of discarded entries (a failed bootstrap counts as one)
        """
        removed = self.cache.discard_failed()
        if self.status()["bootstrap"] == "failed":
            self._bootstrap = None
            removed += 1
        return removed


__all__ = [
    "ColumnResult",
    "TriggerResult",
    "ProvisioningResult",
    "SchemaProvisioner",
]
