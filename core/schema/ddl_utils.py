# ============================================================================
# DDL UTILITIES
# ============================================================================
# STATUS: Core - SQL generation for identity/revision objects
# PURPOSE: Quoting helpers, DDL builders and catalog lookups using psycopg.sql
# CREATED: 18 OCT 2026
# EXPORTS: quote_identifier, quote_literal, SequenceBuilder, FunctionBuilder,
#          ColumnBuilder, TriggerBuilder, CatalogQueries, render
# DEPENDENCIES: psycopg
# ============================================================================
"""
DDL Utilities - identity/revision schema objects.

All builders return psycopg.sql.Composed objects for safe execution.
Identifiers go through sql.Identifier, literal values through sql.Literal.
Catalog lookups are parameterized; DDL cannot be, so it is composed.

Every statement is idempotent on its own (IF NOT EXISTS / OR REPLACE), so a
provisioning run that fails halfway can simply be repeated.

Usage:
    from core.schema.ddl_utils import ColumnBuilder, TriggerBuilder

    stmt = ColumnBuilder.revision('public', 'users', '__rev__', '__rev___sequence')
    await client.query(stmt)
"""

from typing import Optional

from psycopg import sql


# ============================================================================
# QUOTING
# ============================================================================

def quote_identifier(name: str) -> str:
    """Quote an identifier, doubling embedded double quotes."""
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    """Escape a string literal body, doubling embedded single quotes."""
    return value.replace("'", "''")


def qualified_identifier(schema: Optional[str], name: str) -> str:
    """Quoted, optionally schema-qualified name as plain text."""
    if schema:
        return f"{quote_identifier(schema)}.{quote_identifier(name)}"
    return quote_identifier(name)


def render(statement: sql.Composable) -> str:
    """Render a composed statement to text (logging, dry runs, tests)."""
    return statement.as_string(None)


def _sequence_regclass(schema: str, sequence: str) -> sql.Literal:
    # nextval() takes the sequence name as text, parsed like an identifier
    return sql.Literal(qualified_identifier(schema, sequence))


# ============================================================================
# SEQUENCE BUILDER
# ============================================================================

class SequenceBuilder:
    """
    Builder for the shared revision sequence.
    """

    @staticmethod
    def create(schema: str, sequence: str) -> sql.Composed:
        """CREATE SEQUENCE IF NOT EXISTS for the revision counter."""
        return sql.SQL(
            "CREATE SEQUENCE IF NOT EXISTS {name} START WITH 1 INCREMENT BY 1"
        ).format(name=sql.Identifier(schema, sequence))


# ============================================================================
# FUNCTION BUILDER
# ============================================================================

class FunctionBuilder:
    """
    Builder for the revision stamping trigger function.
    """

    @staticmethod
    def stamp_revision(
        schema: str,
        function: str,
        revision_column: str,
        sequence: str,
    ) -> sql.Composed:
        """
        CREATE OR REPLACE the stamping function.

        Assigns the next sequence value to the revision column of the row
        being inserted or updated.
        """
        return sql.SQL("""
            CREATE OR REPLACE FUNCTION {function}()
            RETURNS trigger
            LANGUAGE plpgsql
            AS $$
            BEGIN
                NEW.{column} := nextval({sequence});
                RETURN NEW;
            END;
            $$
        """).format(
            function=sql.Identifier(schema, function),
            column=sql.Identifier(revision_column),
            sequence=_sequence_regclass(schema, sequence),
        )


# ============================================================================
# COLUMN BUILDER
# ============================================================================

class ColumnBuilder:
    """
    Builder for the per-table identity/revision columns.
    """

    @staticmethod
    def identity(schema: str, table: str, column: str) -> sql.Composed:
        """Auto-incrementing identity column."""
        return sql.SQL(
            "ALTER TABLE {table} ADD COLUMN IF NOT EXISTS {column} BIGSERIAL"
        ).format(
            table=sql.Identifier(schema, table),
            column=sql.Identifier(column),
        )

    @staticmethod
    def revision(
        schema: str,
        table: str,
        column: str,
        sequence: str,
        sequence_schema: Optional[str] = None,
    ) -> sql.Composed:
        """Revision column defaulting to the next value of the shared sequence."""
        return sql.SQL(
            "ALTER TABLE {table} ADD COLUMN IF NOT EXISTS {column} BIGINT "
            "DEFAULT nextval({sequence})"
        ).format(
            table=sql.Identifier(schema, table),
            column=sql.Identifier(column),
            sequence=_sequence_regclass(sequence_schema or schema, sequence),
        )


# ============================================================================
# TRIGGER BUILDER
# ============================================================================

class TriggerBuilder:
    """
    Builder for the per-table stamping trigger.
    """

    @staticmethod
    def stamp_revision(
        schema: str,
        table: str,
        trigger: str,
        function_schema: str,
        function: str,
    ) -> sql.Composed:
        """
        BEFORE INSERT OR UPDATE row trigger bound to the stamping function.

        OR REPLACE keeps this a single idempotent statement (PostgreSQL 14+).
        """
        return sql.SQL("""
            CREATE OR REPLACE TRIGGER {name}
            BEFORE INSERT OR UPDATE ON {table}
            FOR EACH ROW
            EXECUTE FUNCTION {function}()
        """).format(
            name=sql.Identifier(trigger),
            table=sql.Identifier(schema, table),
            function=sql.Identifier(function_schema, function),
        )


# ============================================================================
# CATALOG QUERIES
# ============================================================================

class CatalogQueries:
    """
    Parameterized catalog lookups used by the provisioning bootstrap.

    Both return rows with ``schema_name`` and ``table_name``.
    """

    TABLES_WITH_COLUMN = sql.SQL("""
        SELECT
            n.nspname AS schema_name,
            c.relname AS table_name
        FROM pg_attribute a
        JOIN pg_class c ON c.oid = a.attrelid
        JOIN pg_namespace n ON n.oid = c.relnamespace
        WHERE a.attnum > 0
          AND c.relkind IN ('r', 'p')
          AND a.attname = %s
          AND NOT a.attisdropped
    """)

    TABLES_WITH_TRIGGER = sql.SQL("""
        SELECT
            n.nspname AS schema_name,
            c.relname AS table_name
        FROM pg_trigger t
        JOIN pg_class c ON c.oid = t.tgrelid
        JOIN pg_namespace n ON n.oid = c.relnamespace
        WHERE t.tgname = %s
          AND NOT t.tgisinternal
    """)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    'quote_identifier',
    'quote_literal',
    'qualified_identifier',
    'render',
    'SequenceBuilder',
    'FunctionBuilder',
    'ColumnBuilder',
    'TriggerBuilder',
    'CatalogQueries',
]
