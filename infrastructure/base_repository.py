# ============================================================================
# BASE REPOSITORY - ERROR HANDLING PATTERNS
# ============================================================================
# STATUS: Infrastructure - Base repository patterns
# PURPOSE: Common error handling and logging for database-backed components
# CREATED: 18 OCT 2026
# ============================================================================
"""
Base Repository Patterns

Abstract base class that provides common infrastructure for components that
talk to the database:
- Consistent error handling with a context manager
- Standardized logging

The provisioner extends this; any catalog or DDL failure surfaces as a
ProvisioningError carrying the operation and the table it concerned.
"""

import logging
from abc import ABC
from contextlib import contextmanager
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Base exception for repository operations."""

    def __init__(self, message: str, operation: str = None, entity_id: str = None):
        self.operation = operation
        self.entity_id = entity_id
        super().__init__(message)


class ProvisioningError(RepositoryError):
    """Raised when a catalog query or DDL statement fails during provisioning."""


class BaseRepository(ABC):
    """
    Abstract base repository with common patterns.

    Subclasses set ``error_class`` to the exception they raise.
    """

    error_class = RepositoryError

    def __init__(self):
        """Initialize base repository."""
        self.logger = logging.getLogger(self.__class__.__name__)
        self.logger.debug(f"{self.__class__.__name__} initialized")

    @contextmanager
    def _error_context(self, operation: str, entity_id: Optional[str] = None):
        """
        Context manager for consistent error handling.

        All exceptions are logged with context before being re-raised as
        ``error_class``. Errors already of that class pass through untouched.

        Args:
            operation: Human-readable description of the operation
            entity_id: Optional entity ID for context

        Example:
            with self._error_context("add revision column", "public.users"):
                await self.client.query(stmt)
        """
        try:
            yield
        except RepositoryError:
            # Already has context, just re-raise
            raise
        except Exception as e:
            error_msg = f"{operation} failed"
            if entity_id:
                error_msg += f" for {entity_id}"
            error_msg += f": {e}"
            self.logger.error(error_msg)
            raise self.error_class(error_msg, operation=operation, entity_id=entity_id) from e

    def _log_operation(
        self,
        success: bool,
        operation: str,
        entity_id: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Log operation result with consistent formatting.

        Args:
            success: True if operation succeeded
            operation: Description of the operation
            entity_id: Entity identifier
            details: Optional additional details
        """
        status = "OK" if success else "FAILED"
        message = f"{operation} {status}: {entity_id}"
        if details:
            message += f" {details}"

        if success:
            self.logger.info(message)
        else:
            self.logger.warning(message)


__all__ = [
    "RepositoryError",
    "ProvisioningError",
    "BaseRepository",
]
