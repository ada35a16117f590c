#!/usr/bin/env python
# ============================================================================
# SQL REWRITE SCRIPT
# ============================================================================
# PURPOSE: Rewrite a SELECT to carry identity/revision columns
# USAGE:
#   python scripts/rewrite_sql.py "SELECT name FROM users"             # Provision + rewrite
#   python scripts/rewrite_sql.py --dry-run "SELECT name FROM users"   # Rewrite only
#   echo "SELECT 1 FROM t" | python scripts/rewrite_sql.py -           # Read stdin
# ============================================================================

import sys
import os
import asyncio
import argparse
import json

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import get_defaults
from core.logging import configure_logging
from infrastructure import AsyncPostgreSQLClient, DatabasePool, RepositoryError
from rewriter import SqlParseError
from services import RowIdentityRewriter


async def _rewrite_online(sql_text: str, connection: str = None):
    async with DatabasePool(connection_string=connection) as pool:
        rewriter = RowIdentityRewriter(AsyncPostgreSQLClient(pool))
        return await rewriter.rewrite(sql_text)


def main():
    parser = argparse.ArgumentParser(
        description="Rewrite SQL to carry identity/revision columns",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/rewrite_sql.py "SELECT * FROM users"            # Provision and rewrite
  python scripts/rewrite_sql.py --dry-run "SELECT * FROM users"  # No database access
  python scripts/rewrite_sql.py --json - < query.sql              # JSON output from stdin

Environment Variables:
  DATABASE_URL              Full PostgreSQL connection string
  POSTGRES_HOST             Database host (default: localhost)
  POSTGRES_DB               Database name (default: postgres)
  POSTGRES_USER             Database user (default: postgres)
  POSTGRES_PASSWORD         Database password
  POSTGRES_PORT             Database port (default: 5432)
  POSTGRES_SSLMODE          SSL mode (default: prefer)
  ROWIDENT_IDENTITY_COLUMN  Identity column name (default: __id__)
  ROWIDENT_REVISION_COLUMN  Revision column name (default: __rev__)
  ROWIDENT_DEFAULT_SCHEMA   Schema for unqualified tables (default: public)
        """
    )
    parser.add_argument(
        "sql",
        help="SQL text to rewrite, or - to read from stdin"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Rewrite without provisioning (no database connection)"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON"
    )
    parser.add_argument(
        "--connection",
        type=str,
        help="PostgreSQL connection string (overrides environment)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    args = parser.parse_args()

    configure_logging(level="DEBUG" if args.verbose else "WARNING")

    sql_text = sys.stdin.read() if args.sql == "-" else args.sql

    try:
        if args.dry_run:
            result = RowIdentityRewriter(client=None, config=get_defaults().identity).rewrite_offline(sql_text)
        else:
            result = asyncio.run(_rewrite_online(sql_text, args.connection))
    except SqlParseError as e:
        print(f"Parse error: {e}", file=sys.stderr)
        sys.exit(2)
    except RepositoryError as e:
        print(f"Provisioning failed: {e}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(result.sql)


if __name__ == "__main__":
    main()
