# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# CREATED: 18 OCT 2026
# ============================================================================
"""
Configuration Module

Provides centralized configuration and defaults for the rewriter.
"""

from core.config.defaults import (
    RowIdentityConfig,
    DatabaseDefaults,
    Defaults,
    get_defaults,
    reset_defaults,
)

__all__ = [
    "RowIdentityConfig",
    "DatabaseDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
