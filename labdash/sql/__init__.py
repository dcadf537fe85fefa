"""
SQL Query Module for the laboratory dashboard.

Provides parameterized PostgreSQL queries for:
- Unsatisfactory-sample reports (unsat_queries)
- Received/screened counts and the summary card (sample_queries)

Every query reads the archive and master partitions through one UNION ALL
CTE and binds all values as asyncpg positional parameters. Query builders
return an AggregationQuery that the gateway executes as-is.

Example usage:
    from labdash.sql import get_facility_counts_query

    query = get_facility_counts_query("phmsds", rules, window, province="LAGUNA")
    rows = await repository.run_aggregation_query(query)
"""

# =============================================================================
# PRIMITIVES
# =============================================================================

from labdash.sql.builder import (
    AggregationQuery,
    PartitionTables,
    QueryParams,
    partition_tables,
    partition_union,
)

# =============================================================================
# UNSATISFACTORY REPORTS
# =============================================================================

from labdash.sql.unsat_queries import (
    get_facility_counts_query,
    get_facility_total_query,
    get_province_comparison_query,
    get_unsatisfactory_details_query,
)

# =============================================================================
# SAMPLE COUNTS
# =============================================================================

from labdash.sql.sample_queries import (
    get_card_count_query,
    get_card_unsatisfactory_query,
    get_cumulative_count_query,
    get_monthly_count_query,
)


__all__ = [
    'AggregationQuery',
    'PartitionTables',
    'QueryParams',
    'partition_tables',
    'partition_union',
    'get_facility_counts_query',
    'get_facility_total_query',
    'get_province_comparison_query',
    'get_unsatisfactory_details_query',
    'get_card_count_query',
    'get_card_unsatisfactory_query',
    'get_cumulative_count_query',
    'get_monthly_count_query',
]
