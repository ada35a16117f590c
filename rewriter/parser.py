# ============================================================================
# SQL PARSER ADAPTER
# ============================================================================
# STATUS: Rewriter - Parse/deparse boundary
# PURPOSE: Turn SQL text into sqlglot trees and back (PostgreSQL dialect)
# CREATED: 18 OCT 2026
# DEPENDENCIES: sqlglot
# ============================================================================
"""
SQL Parser Adapter

Thin wrapper around sqlglot. The rest of the rewriter only ever sees
sqlglot expressions and never validates tree shape beyond what sqlglot
guarantees.

Usage:
    from rewriter.parser import parse_statements, deparse

    trees = parse_statements("SELECT name FROM users")
    text = deparse(trees[0])
"""

import logging
from typing import Any, Dict, List

import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError, TokenError

logger = logging.getLogger(__name__)

DIALECT = "postgres"


class SqlParseError(Exception):
    """Raised when the parser rejects the input text."""

    def __init__(self, message: str, sql: str = None, errors: List[Dict[str, Any]] = None):
        self.sql = sql
        self.errors = errors or []
        super().__init__(message)


def parse_statements(text: str) -> List[exp.Expression]:
    """
    Parse SQL text into one tree per statement.

    Raises:
        SqlParseError: With the parser's diagnostic, unmodified.
    """
    try:
        trees = sqlglot.parse(text, read=DIALECT)
    except ParseError as e:
        logger.debug(f"Parser rejected statement: {e}")
        raise SqlParseError(str(e), sql=text, errors=e.errors) from e
    except TokenError as e:
        logger.debug(f"Tokenizer rejected statement: {e}")
        raise SqlParseError(str(e), sql=text) from e

    # Empty statements (e.g. a trailing semicolon) come back as None
    trees = [tree for tree in trees if tree is not None]
    if not trees:
        raise SqlParseError("No SQL statement found", sql=text)

    return trees


def deparse(tree: exp.Expression) -> str:
    """Generate PostgreSQL text for a tree."""
    return tree.sql(dialect=DIALECT)


__all__ = [
    "DIALECT",
    "SqlParseError",
    "parse_statements",
    "deparse",
]
