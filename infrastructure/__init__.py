# ============================================================================
# INFRASTRUCTURE MODULE
# ============================================================================
# STATUS: Infrastructure - Database access and schema provisioning
# PURPOSE: Async PostgreSQL client, pool lifecycle, identity/revision DDL
# CREATED: 18 OCT 2026
# ============================================================================
"""
Infrastructure module.

Provides:
- AsyncPostgreSQLClient / DatabasePool: psycopg3 async access
- SchemaProvisioner: idempotent identity/revision object creation
- ProvisioningCache: per-provisioner memoization of that creation

Usage:
    from infrastructure import DatabasePool, AsyncPostgreSQLClient, SchemaProvisioner

    async with DatabasePool() as pool:
        provisioner = SchemaProvisioner(AsyncPostgreSQLClient(pool))
        await provisioner.ensure_objects(tree)
"""

from infrastructure.base_repository import (
    BaseRepository,
    RepositoryError,
    ProvisioningError,
)
from infrastructure.postgresql import (
    DatabaseClient,
    AsyncPostgreSQLClient,
    DatabasePool,
    get_connection_string,
    init_pool,
    get_pool,
    close_pool,
)
from infrastructure.provisioning_cache import (
    EntryState,
    ProvisioningCache,
)
from infrastructure.provisioner import (
    ColumnResult,
    TriggerResult,
    ProvisioningResult,
    SchemaProvisioner,
)

__all__ = [
    # Errors / base
    'BaseRepository',
    'RepositoryError',
    'ProvisioningError',
    # PostgreSQL
    'DatabaseClient',
    'AsyncPostgreSQLClient',
    'DatabasePool',
    'get_connection_string',
    'init_pool',
    'get_pool',
    'close_pool',
    # Provisioning
    'EntryState',
    'ProvisioningCache',
    'ColumnResult',
    'TriggerResult',
    'ProvisioningResult',
    'SchemaProvisioner',
]
