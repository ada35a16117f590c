# ============================================================================
# BASE CONTRACTS & ENUMS
# ============================================================================
# STATUS: Foundation - Core enums and table reference contract
# PURPOSE: Define object kinds and the table reference shared by all layers
# CREATED: 18 OCT 2026
# EXPORTS: ObjectKind, TableReference, TableKey, DERIVED, table_key
# DEPENDENCIES: enum, pydantic
# ============================================================================
"""
Base contracts for the row identity rewriter.

A TableReference is what the resolver produces and what both the expression
synthesizer and the provisioner consume:

- base table:    schema + table set, alias optional
- derived table: alias only (subquery or CTE reference)

References are keyed by (schema, table) for base tables and by
(DERIVED, alias) for derived tables.
"""

from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, model_validator


# Reserved schema slot for derived-table keys. Base tables always carry a
# schema (the default schema when unqualified), so None never collides.
DERIVED = None

TableKey = Tuple[Optional[str], str]


# ============================================================================
# ENUMS
# ============================================================================

class ObjectKind(str, Enum):
    """Kinds of per-table objects tracked by the provisioning cache."""
    IDENTITY_COLUMN = "identity_column"
    REVISION_COLUMN = "revision_column"
    TRIGGER = "trigger"


# ============================================================================
# TABLE REFERENCE
# ============================================================================

class TableReference(BaseModel):
    """
    A table touched by a (sub)statement.

    Built fresh for every resolution call; never persisted.
    """
    model_config = ConfigDict(frozen=True)

    schema_name: Optional[str] = None
    table: Optional[str] = None
    alias: Optional[str] = None

    @model_validator(mode="after")
    def _check_shape(self) -> "TableReference":
        if self.table is None and self.alias is None:
            raise ValueError("A table reference needs a table name or an alias")
        if self.table is not None and self.schema_name is None:
            raise ValueError("Base table references must carry a schema")
        return self

    @classmethod
    def base(cls, schema: str, table: str, alias: Optional[str] = None) -> "TableReference":
        return cls(schema_name=schema, table=table, alias=alias)

    @classmethod
    def derived(cls, alias: str) -> "TableReference":
        return cls(alias=alias)

    @property
    def is_derived(self) -> bool:
        return self.table is None

    @property
    def key(self) -> TableKey:
        return table_key(self)

    @property
    def qualified_name(self) -> str:
        """Display name, e.g. ``public.users`` or ``sub`` for derived tables."""
        if self.is_derived:
            return self.alias
        return f"{self.schema_name}.{self.table}"

    def reference_parts(self) -> List[str]:
        """
        Qualifier parts used to address this table's columns.

        The alias wins when present (Postgres hides the table name behind
        its alias); otherwise schema + table.
        """
        if self.alias:
            return [self.alias]
        return [self.schema_name, self.table]


def table_key(table: TableReference) -> TableKey:
    """Fully-qualified key for a table reference."""
    if table.is_derived:
        return (DERIVED, table.alias)
    return (table.schema_name, table.table)


__all__ = [
    "DERIVED",
    "TableKey",
    "ObjectKind",
    "TableReference",
    "table_key",
]
