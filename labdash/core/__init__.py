"""
Core infrastructure package for the laboratory dashboard backend.

Provides:
- Configuration management via pydantic-settings
- The asyncpg connection pool lifecycle
- The error taxonomy translated to HTTP responses by labdash.main

Re-exports the key components so other modules can write:

    from labdash.core import get_settings, init_db, InvalidWindow

FastAPI dependencies live in labdash.core.dependencies and are imported from
there directly; they depend on the service layer, which itself imports from
this package.
"""

# =============================================================================
# Re-exports from labdash.core.config
# =============================================================================
from labdash.core.config import Settings, get_settings

# =============================================================================
# Re-exports from labdash.core.database
# =============================================================================
from labdash.core.database import init_db, close_db, get_db_pool

# =============================================================================
# Re-exports from labdash.core.errors
# =============================================================================
from labdash.core.errors import (
    DashboardError,
    InvalidWindow,
    DataSourceUnavailable,
    QueryExecutionError,
)


__all__ = [
    # Configuration management (from config.py)
    'Settings',
    'get_settings',
    # Database pool lifecycle (from database.py)
    'init_db',
    'close_db',
    'get_db_pool',
    # Error taxonomy (from errors.py)
    'DashboardError',
    'InvalidWindow',
    'DataSourceUnavailable',
    'QueryExecutionError',
]
