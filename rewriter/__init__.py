# ============================================================================
# REWRITER MODULE
# ============================================================================
# STATUS: Rewriter - Parse tree analysis and mutation
# PURPOSE: Resolve tables, synthesize identity/revision targets, inject them
# CREATED: 18 OCT 2026
# ============================================================================
"""
Rewriter Module

Pure tree operations, no database access:
- parser:      sqlglot parse/deparse (PostgreSQL dialect)
- resolver:    tables touched by a (sub)tree
- expressions: composite identity/revision targets
- injector:    prepends the targets to every SELECT body

Usage:
    from rewriter import parse_statements, deparse, MetaColumnInjector

    tree = parse_statements("SELECT name FROM users")[0]
    MetaColumnInjector(config).inject(tree)
    print(deparse(tree))
"""

from rewriter.parser import DIALECT, SqlParseError, parse_statements, deparse
from rewriter.resolver import NodeKind, TableResolver, collect_cte_names, resolve_tables
from rewriter.expressions import composite_identity, composite_revision
from rewriter.injector import MetaColumnInjector, inject_meta_columns, is_grouped

__all__ = [
    # Parser
    "DIALECT",
    "SqlParseError",
    "parse_statements",
    "deparse",
    # Resolver
    "NodeKind",
    "TableResolver",
    "collect_cte_names",
    "resolve_tables",
    # Expressions
    "composite_identity",
    "composite_revision",
    # Injector
    "MetaColumnInjector",
    "inject_meta_columns",
    "is_grouped",
]
