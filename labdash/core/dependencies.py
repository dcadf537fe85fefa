"""
FastAPI dependency injection module for the laboratory dashboard backend.

This module provides reusable FastAPI dependencies for configuration, the
classification tables, the sample repository and the aggregation engine. It
keeps endpoint handlers free of infrastructure wiring and lets tests replace
any layer through `app.dependency_overrides`.

Key Dependencies Provided:
- get_settings_dependency: Returns the cached Settings singleton
- get_rules_dependency: Returns the cached ClassificationRules
- get_sample_repository: Builds a SampleRepository over the shared pool
- get_aggregation_engine: Builds an AggregationEngine from the above
- SettingsDep / RulesDep / RepositoryDep / EngineDep: Annotated type aliases

Usage Examples:
    @router.get("/top-unsatisfactory")
    async def top_unsatisfactory(engine: EngineDep, settings: SettingsDep):
        ...

    # In tests
    app.dependency_overrides[get_aggregation_engine] = lambda: fake_engine

Connection Lifetime:
    The repository does not hold a connection. Each engine operation checks
    one out of the pool and returns it before the operation completes, so
    nothing needs to be cleaned up when the request ends.
"""

from typing import Annotated

from fastapi import Depends

from labdash.core.config import Settings, get_settings
from labdash.core.database import get_db_pool
from labdash.services.aggregation import AggregationEngine
from labdash.services.classification import ClassificationRules, get_classification_rules
from labdash.services.gateway import SampleRepository


# =============================================================================
# Settings Dependency
# =============================================================================

def get_settings_dependency() -> Settings:
    """
    Return the Settings singleton instance.

    Thin wrapper around get_settings() so tests can override it:

        app.dependency_overrides[get_settings_dependency] = lambda: mock_settings
    """
    return get_settings()


# =============================================================================
# Classification Rules Dependency
# =============================================================================

def get_rules_dependency() -> ClassificationRules:
    """Return the process-wide immutable classification tables."""
    return get_classification_rules()


# =============================================================================
# Repository Dependency
# =============================================================================

async def get_sample_repository(
    settings: Annotated[Settings, Depends(get_settings_dependency)],
) -> SampleRepository:
    """
    Build a SampleRepository bound to the shared connection pool.

    Raises:
        DataSourceUnavailable: If the pool does not exist and cannot be created.
    """
    pool = await get_db_pool()
    return SampleRepository(
        pool,
        schema=settings.lab_schema,
        acquire_timeout=settings.db_acquire_timeout,
    )


# =============================================================================
# Engine Dependency
# =============================================================================

def get_aggregation_engine(
    repository: Annotated[SampleRepository, Depends(get_sample_repository)],
    rules: Annotated[ClassificationRules, Depends(get_rules_dependency)],
    settings: Annotated[Settings, Depends(get_settings_dependency)],
) -> AggregationEngine:
    return AggregationEngine(
        repository,
        rules,
        reporting_provinces=settings.reporting_provinces,
        rate_volume_thresholds=settings.rate_volume_thresholds,
        rate_volume_threshold_max=settings.rate_volume_threshold_max,
    )


# =============================================================================
# Type Aliases for Dependency Injection
# =============================================================================

# Usage: async def endpoint(settings: SettingsDep)
SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]

# Usage: async def endpoint(rules: RulesDep)
RulesDep = Annotated[ClassificationRules, Depends(get_rules_dependency)]

# Usage: async def endpoint(repository: RepositoryDep)
RepositoryDep = Annotated[SampleRepository, Depends(get_sample_repository)]

# Usage: async def endpoint(engine: EngineDep)
EngineDep = Annotated[AggregationEngine, Depends(get_aggregation_engine)]
