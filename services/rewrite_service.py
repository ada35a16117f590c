# ============================================================================
# REWRITE SERVICE
# ============================================================================
# STATUS: Service - Query rewriting facade
# PURPOSE: Parse, provision, inject and deparse in one call
# CREATED: 18 OCT 2026
# ============================================================================
"""
Rewrite Service

Coordinates the rewriter (pure tree work) and the provisioner (database work)
for one SQL text.

Flow for rewrite():
1. Parse the text into one tree per statement (SqlParseError on rejection)
2. Provision identity/revision objects for every base table, fully awaited
3. Inject the synthesized targets into every SELECT body
4. Deparse; several statements are joined with ";\\n"

rewrite_offline() skips step 2 for previews where no database is available.

Usage:
    rewriter = RowIdentityRewriter(client)
    result = await rewriter.rewrite("SELECT name FROM users")
    rows = await client.query(result.sql)
"""

import hashlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlglot import exp

from core.config import RowIdentityConfig, get_defaults
from core.contracts import TableKey, TableReference
from core.logging import ComponentType, get_logger, log_checkpoint, log_context
from infrastructure.postgresql import DatabaseClient
from infrastructure.provisioner import ProvisioningResult, SchemaProvisioner
from rewriter import MetaColumnInjector, collect_cte_names, deparse, parse_statements, resolve_tables

logger = get_logger(__name__, ComponentType.SERVICE)

STATEMENT_SEPARATOR = ";\n"

_SET_OPERATIONS = (exp.Union, exp.Except, exp.Intersect)


@dataclass
class RewriteResult:
    """Rewritten SQL text plus the tables its outermost bodies read."""
    sql: str
    tables: Dict[TableKey, TableReference] = field(default_factory=dict)
    provisioning: Optional[ProvisioningResult] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "sql": self.sql,
            "tables": [table.qualified_name for table in self.tables.values()],
        }
        if self.provisioning is not None:
            result["provisioning"] = self.provisioning.to_dict()
        return result


def statement_id(text: str) -> str:
    """Short stable hash of the input text, used to correlate log lines."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:12]


def _outer_bodies(node: Optional[exp.Expression]) -> List[exp.Expression]:
    """Outermost SELECT bodies of a statement (both sides of set operations)."""
    if node is None:
        return []
    if isinstance(node, exp.Select):
        return [node]
    if isinstance(node, _SET_OPERATIONS):
        return _outer_bodies(node.this) + _outer_bodies(node.expression)
    if isinstance(node, (exp.Subquery, exp.Paren)):
        return _outer_bodies(node.this)
    # INSERT ... SELECT, CREATE TABLE ... AS SELECT
    return _outer_bodies(node.args.get("expression"))


class RowIdentityRewriter:
    """
    Facade: SQL text in, rewritten SQL text out.

    Provisioning for a statement always completes before its rewritten text
    is returned, so the returned query never references a missing column.
    """

    def __init__(
        self,
        client: DatabaseClient,
        config: Optional[RowIdentityConfig] = None,
        provisioner: Optional[SchemaProvisioner] = None,
    ):
        self.config = config or (provisioner.config if provisioner else get_defaults().identity)
        self.provisioner = provisioner or SchemaProvisioner(client, self.config)
        self.injector = MetaColumnInjector(self.config)

    def top_level_tables(self, trees: List[exp.Expression]) -> Dict[TableKey, TableReference]:
        """Tables (base and derived) read directly by the outermost bodies."""
        tables: Dict[TableKey, TableReference] = {}
        for tree in trees:
            tables.update(
                resolve_tables(
                    _outer_bodies(tree),
                    default_schema=self.config.default_schema,
                    top_level_only=True,
                    include_subselects=True,
                    cte_names=collect_cte_names(tree),
                )
            )
        return tables

    def _inject(self, trees: List[exp.Expression]) -> str:
        for tree in trees:
            self.injector.inject(tree)
        return STATEMENT_SEPARATOR.join(deparse(tree) for tree in trees)

    async def rewrite(self, sql_text: str) -> RewriteResult:
        """
        Provision and rewrite a SQL text.

        Raises:
            SqlParseError: Parser rejected the text (nothing provisioned)
            ProvisioningError: A catalog lookup or DDL statement failed
        """
        with log_context(operation="rewrite", statement_id=statement_id(sql_text)):
            trees = parse_statements(sql_text)
            tables = self.top_level_tables(trees)

            provisioning = await self.provisioner.ensure_objects(trees)
            log_checkpoint("provisioning_complete", {
                "tables": len(provisioning.triggers),
                "created": provisioning.created_count,
            })

            rewritten = self._inject(trees)
            logger.info(f"Rewrote {len(trees)} statement(s) over {len(tables)} table(s)")

        return RewriteResult(sql=rewritten, tables=tables, provisioning=provisioning)

    def rewrite_offline(self, sql_text: str) -> RewriteResult:
        """
        Rewrite without touching the database.

        The returned SQL only runs against tables that are already provisioned.
        """
        with log_context(operation="rewrite_offline", statement_id=statement_id(sql_text)):
            trees = parse_statements(sql_text)
            tables = self.top_level_tables(trees)
            rewritten = self._inject(trees)
            logger.debug(f"Offline rewrite of {len(trees)} statement(s)")

        return RewriteResult(sql=rewritten, tables=tables)


__all__ = [
    "RewriteResult",
    "RowIdentityRewriter",
    "statement_id",
]
