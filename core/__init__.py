# ============================================================================
# CORE MODULE
# ============================================================================
# STATUS: Core module initialization
# PURPOSE: Export contracts, configuration, and schema utilities
# CREATED: 18 OCT 2026
# ============================================================================

from core.contracts import DERIVED, ObjectKind, TableReference, table_key
from core.config import RowIdentityConfig, get_defaults

__all__ = [
    # Contracts
    "DERIVED",
    "ObjectKind",
    "TableReference",
    "table_key",
    # Config
    "RowIdentityConfig",
    "get_defaults",
]
