# ============================================================================
# SCHEMA MODULE
# ============================================================================
# STATUS: Core - DDL for identity/revision objects
# PURPOSE: Quoting helpers, DDL builders and catalog lookups
# CREATED: 18 OCT 2026
# ============================================================================

from core.schema.ddl_utils import (
    quote_identifier,
    quote_literal,
    qualified_identifier,
    render,
    SequenceBuilder,
    FunctionBuilder,
    ColumnBuilder,
    TriggerBuilder,
    CatalogQueries,
)

__all__ = [
    "quote_identifier",
    "quote_literal",
    "qualified_identifier",
    "render",
    "SequenceBuilder",
    "FunctionBuilder",
    "ColumnBuilder",
    "TriggerBuilder",
    "CatalogQueries",
]
