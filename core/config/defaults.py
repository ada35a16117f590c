# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# STATUS: Core - Default configuration values
# PURPOSE: Column naming for identity/revision objects and pool sizing
# CREATED: 18 OCT 2026
# ============================================================================
"""
Configuration Defaults

Construction-time configuration for the rewriter and provisioner.
Values can be overridden via environment variables.

Design:
- Immutable dataclasses for defaults
- Environment variable overrides
- Every physical object name (sequence, stamping function, trigger) is
  derived from the revision column name, so any instance configured with
  the same names finds objects created by another one.
"""

import os
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class RowIdentityConfig:
    """
    Names of the identity/revision objects.

    The output names carry a trailing apostrophe so that synthesized targets
    never clash with the physical columns they are computed from.
    """
    identity_column: str = "__id__"
    revision_column: str = "__rev__"
    default_schema: str = "public"

    def __post_init__(self):
        for name in ("identity_column", "revision_column", "default_schema"):
            if not getattr(self, name):
                raise ValueError(f"{name} must be a non-empty string")
        if self.identity_column == self.revision_column:
            raise ValueError("identity_column and revision_column must differ")

    @property
    def sequence_name(self) -> str:
        return f"{self.revision_column}_sequence"

    @property
    def stamp_function_name(self) -> str:
        return f"{self.revision_column}_update"

    @property
    def trigger_name(self) -> str:
        return f"{self.revision_column}_trigger"

    @property
    def identity_output(self) -> str:
        """Name of the synthesized identity target."""
        return f"{self.identity_column}'"

    @property
    def revision_output(self) -> str:
        """Name of the synthesized revision target."""
        return f"{self.revision_column}'"

    @classmethod
    def from_env(cls) -> "RowIdentityConfig":
        """Create from environment variables."""
        return cls(
            identity_column=os.getenv("ROWIDENT_IDENTITY_COLUMN", "__id__"),
            revision_column=os.getenv("ROWIDENT_REVISION_COLUMN", "__rev__"),
            default_schema=os.getenv("ROWIDENT_DEFAULT_SCHEMA", "public"),
        )


@dataclass(frozen=True)
class DatabaseDefaults:
    """
    Defaults for the async connection pool.
    """
    min_size: int = 2
    max_size: int = 10

    @classmethod
    def from_env(cls) -> "DatabaseDefaults":
        """Create from environment variables."""
        return cls(
            min_size=int(os.getenv("ROWIDENT_POOL_MIN_SIZE", 2)),
            max_size=int(os.getenv("ROWIDENT_POOL_MAX_SIZE", 10)),
        )


# ============================================================================
# GLOBAL DEFAULTS INSTANCE
# ============================================================================

@dataclass
class Defaults:
    """Container for all default configurations."""
    identity: RowIdentityConfig = field(default_factory=RowIdentityConfig)
    database: DatabaseDefaults = field(default_factory=DatabaseDefaults)

    @classmethod
    def from_env(cls) -> "Defaults":
        """Create all defaults from environment variables."""
        return cls(
            identity=RowIdentityConfig.from_env(),
            database=DatabaseDefaults.from_env(),
        )


_defaults: Optional[Defaults] = None


def get_defaults() -> Defaults:
    """Get global defaults instance."""
    global _defaults
    if _defaults is None:
        _defaults = Defaults.from_env()
    return _defaults


def reset_defaults() -> None:
    """Reset defaults (for testing)."""
    global _defaults
    _defaults = None


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "RowIdentityConfig",
    "DatabaseDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
