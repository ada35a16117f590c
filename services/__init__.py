# ============================================================================
# SERVICES MODULE
# ============================================================================
# STATUS: Service - Business logic layer
# PURPOSE: Query rewriting facade over rewriter + provisioner
# CREATED: 18 OCT 2026
# ============================================================================
"""
Services Module

Usage:
    from services import RowIdentityRewriter

    rewriter = RowIdentityRewriter(client)
    result = await rewriter.rewrite("SELECT name FROM users")
"""

from .rewrite_service import RewriteResult, RowIdentityRewriter, statement_id

__all__ = [
    "RewriteResult",
    "RowIdentityRewriter",
    "statement_id",
]
