"""
Parameterized SQL for received/screened sample counts and the summary card.

Monthly and cumulative counts group by submitter and specimen type in SQL;
the response shaper resolves each submitter to its province group and folds
the rows into months or provinces. COUNT(*) and COUNT(labno) are kept as two
columns because the dashboard reports both (total samples vs. rows carrying a
lab number).
"""

from typing import Iterable, Optional

from labdash.services.classification import ClassificationRules
from labdash.services.windows import AggregationWindow
from labdash.sql.builder import (
    AggregationQuery,
    PartitionTables,
    QueryParams,
    lab_number_exclusion_clause,
    partition_union,
    province_filter_clause,
    provider_table,
    reporting_provinces_clause,
    unsatisfactory_exists_clause,
    window_clause,
)


def get_monthly_count_query(
    schema: str,
    rules: ClassificationRules,
    window: AggregationWindow,
    category,
    province: Optional[str] = None,
) -> AggregationQuery:
    """
    Sample counts per submitter, calendar month and specimen type.

    Args:
        schema: Schema holding the sample tables.
        rules: Classification rules (code sets, nearby IDs).
        window: Report window.
        category: Specimen category variant.
        province: Optional province filter; the nearby sentinel selects the
            nearby submitters, other values prefix-match the county.

    Returns:
        AggregationQuery producing columns:
            submitter_id, county, year, month, spectype, total_labno, total_samples
    """
    params = QueryParams()
    providers = provider_table(schema)
    codes = params.bind_array(rules.category_to_specimen_codes(category), "spectypes")

    def select_for(tables: PartitionTables) -> str:
        return f"""
        SELECT
            s.labno,
            s.submid,
            s.spectype,
            s.dtrecv,
            p.county
        FROM {tables.samples} s
        JOIN {providers} p ON p.providerid = s.submid
        WHERE p.adrs_type = '1'
          AND s.spectype = ANY({codes})
          AND {window_clause(params, 's.dtrecv', window.start, window.end)}
          {province_filter_clause(params, rules, province)}
        """

    sql = f"""
    -- Monthly sample counts
    WITH combined AS (
        {partition_union(schema, select_for)}
    )
    SELECT
        submid::text AS submitter_id,
        county,
        EXTRACT(YEAR FROM dtrecv)::int AS year,
        EXTRACT(MONTH FROM dtrecv)::int AS month,
        spectype,
        COUNT(labno) AS total_labno,
        COUNT(*) AS total_samples
    FROM combined
    GROUP BY submid, county, EXTRACT(YEAR FROM dtrecv), EXTRACT(MONTH FROM dtrecv), spectype
    ORDER BY year, month, submitter_id, spectype
    """

    return AggregationQuery(name="monthly_counts", sql=sql, params=params.values)


def get_cumulative_count_query(
    schema: str,
    rules: ClassificationRules,
    window: AggregationWindow,
    category,
    provinces: Iterable[str],
) -> AggregationQuery:
    """
    Sample counts per submitter and specimen type across the whole window.

    Restricted to the literal reporting provinces plus the nearby submitters.

    Returns:
        AggregationQuery producing columns:
            submitter_id, county, spectype, total_labno, total_samples
    """
    params = QueryParams()
    providers = provider_table(schema)
    codes = params.bind_array(rules.category_to_specimen_codes(category), "spectypes")
    province_list = list(provinces)

    def select_for(tables: PartitionTables) -> str:
        return f"""
        SELECT
            s.labno,
            s.submid,
            s.spectype,
            p.county
        FROM {tables.samples} s
        JOIN {providers} p ON p.providerid = s.submid
        WHERE p.adrs_type = '1'
          AND s.spectype = ANY({codes})
          AND {window_clause(params, 's.dtrecv', window.start, window.end)}
          {reporting_provinces_clause(params, rules, province_list)}
        """

    sql = f"""
    -- Cumulative sample counts
    WITH combined AS (
        {partition_union(schema, select_for)}
    )
    SELECT
        submid::text AS submitter_id,
        county,
        spectype,
        COUNT(labno) AS total_labno,
        COUNT(*) AS total_samples
    FROM combined
    GROUP BY submid, county, spectype
    ORDER BY submitter_id, spectype
    """

    return AggregationQuery(name="cumulative_counts", sql=sql, params=params.values)


def get_card_count_query(
    schema: str,
    rules: ClassificationRules,
    window: AggregationWindow,
    category,
) -> AggregationQuery:
    """
    Number of sample rows of a category received within the window.

    Returns:
        AggregationQuery producing one row with column: total
    """
    params = QueryParams()
    codes = params.bind_array(rules.category_to_specimen_codes(category), "spectypes")

    def select_for(tables: PartitionTables) -> str:
        return f"""
        SELECT s.labno
        FROM {tables.samples} s
        WHERE s.spectype = ANY({codes})
          AND {window_clause(params, 's.dtrecv', window.start, window.end)}
        """

    sql = f"""
    -- Summary card sample count
    WITH combined AS (
        {partition_union(schema, select_for)}
    )
    SELECT COUNT(*) AS total
    FROM combined
    """

    return AggregationQuery(name="card_count", sql=sql, params=params.values)


def get_card_unsatisfactory_query(
    schema: str,
    rules: ClassificationRules,
    window: AggregationWindow,
) -> AggregationQuery:
    """
    Distinct unsatisfactory lab numbers received within the window.

    Returns:
        AggregationQuery producing one row with column: total
    """
    params = QueryParams()

    def select_for(tables: PartitionTables) -> str:
        return f"""
        SELECT s.labno
        FROM {tables.samples} s
        WHERE {window_clause(params, 's.dtrecv', window.start, window.end)}
          AND {lab_number_exclusion_clause(params, rules)}
          AND {unsatisfactory_exists_clause(params, rules, tables)}
        """

    sql = f"""
    -- Summary card unsatisfactory count
    WITH combined AS (
        {partition_union(schema, select_for)}
    )
    SELECT COUNT(DISTINCT labno) AS total
    FROM combined
    """

    return AggregationQuery(name="card_unsatisfactory", sql=sql, params=params.values)
