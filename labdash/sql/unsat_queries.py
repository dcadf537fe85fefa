"""
Parameterized SQL for the unsatisfactory-sample reports.

Every query reads both partitions of the sample data through a `combined`
CTE built with partition_union(), so callers never see the archive/master
split.

Grouping Grain:
    Facility and province reports group by submitter ID in SQL and leave
    province resolution (including the nearby bucket) to the classification
    rules in Python. A lab number belongs to exactly one submitter, so
    per-submitter COUNT(DISTINCT labno) values can be summed into a province
    total without double counting.

Unsatisfactory Flag:
    A sample is unsatisfactory when its result or disorder rows carry any of
    the configured rejection mnemonics (see unsatisfactory_exists_clause).
"""

from typing import Optional

from labdash.services.classification import ClassificationRules
from labdash.services.windows import AggregationWindow
from labdash.sql.builder import (
    AggregationQuery,
    PartitionTables,
    QueryParams,
    disorder_library_table,
    facility_name_clause,
    lab_number_exclusion_clause,
    partition_union,
    province_filter_clause,
    provider_table,
    unsatisfactory_exists_clause,
    window_clause,
)
from labdash.models.enums import SpecimenCategory


def get_facility_counts_query(
    schema: str,
    rules: ClassificationRules,
    window: AggregationWindow,
    province: Optional[str] = None,
    facility: Optional[str] = None,
) -> AggregationQuery:
    """
    Per-submitter total and unsatisfactory sample counts within a window.

    Totals cover samples in the `received` code set from address-type 1
    submitters. The unsatisfactory count is the subset of those samples with
    at least one rejection mnemonic, so it can never exceed the total.

    Returns:
        AggregationQuery producing columns:
            submitter_id, facility_name, county, total_samples, unsatisfactory_count
    """
    params = QueryParams()
    providers = provider_table(schema)
    codes = params.bind_array(
        rules.category_to_specimen_codes(SpecimenCategory.RECEIVED), "spectypes"
    )

    def select_for(tables: PartitionTables) -> str:
        return f"""
        SELECT
            s.labno,
            s.submid,
            p.descr1 AS facility_name,
            p.county,
            {unsatisfactory_exists_clause(params, rules, tables)} AS is_unsat
        FROM {tables.samples} s
        JOIN {providers} p ON p.providerid = s.submid
        WHERE p.adrs_type = '1'
          AND {window_clause(params, 's.dtrecv', window.start, window.end)}
          AND s.spectype = ANY({codes})
          AND {lab_number_exclusion_clause(params, rules)}
          {province_filter_clause(params, rules, province)}
          {facility_name_clause(params, facility)}
        """

    sql = f"""
    -- Facility sample and unsatisfactory counts
    WITH combined AS (
        {partition_union(schema, select_for)}
    )
    SELECT
        submid::text AS submitter_id,
        MIN(facility_name) AS facility_name,
        MIN(county) AS county,
        COUNT(DISTINCT labno) AS total_samples,
        COUNT(DISTINCT labno) FILTER (WHERE is_unsat) AS unsatisfactory_count
    FROM combined
    GROUP BY submid
    ORDER BY submid::text
    """

    return AggregationQuery(name="facility_counts", sql=sql, params=params.values)


def get_province_comparison_query(
    schema: str,
    rules: ClassificationRules,
    window1: AggregationWindow,
    window2: AggregationWindow,
) -> AggregationQuery:
    """
    Distinct unsatisfactory lab numbers per submitter for two windows.

    Each partition contributes one branch per period. A lab number flagged by
    several rejection mnemonics appears once per period, and COUNT(DISTINCT)
    collapses any repeat across partitions.

    Returns:
        AggregationQuery producing columns:
            submitter_id, county, period1_count, period2_count
    """
    params = QueryParams()
    providers = provider_table(schema)
    codes = params.bind_array(
        rules.category_to_specimen_codes(SpecimenCategory.PROVINCE_COMPARISON), "spectypes"
    )

    def branch(tables: PartitionTables, period: int, window: AggregationWindow) -> str:
        return f"""
        SELECT
            s.labno,
            s.submid,
            p.county,
            {period} AS period
        FROM {tables.samples} s
        JOIN {providers} p ON p.providerid = s.submid
        WHERE p.adrs_type = '1'
          AND {window_clause(params, 's.dtrecv', window.start, window.end, suffix=str(period))}
          AND s.spectype = ANY({codes})
          AND {lab_number_exclusion_clause(params, rules)}
          AND {unsatisfactory_exists_clause(params, rules, tables)}
        """

    def select_for(tables: PartitionTables) -> str:
        return (
            branch(tables, 1, window1).strip()
            + "\n\n        UNION ALL\n\n        "
            + branch(tables, 2, window2).strip()
        )

    sql = f"""
    -- Unsatisfactory samples by submitter, two periods
    WITH combined AS (
        {partition_union(schema, select_for)}
    )
    SELECT
        submid::text AS submitter_id,
        MIN(county) AS county,
        COUNT(DISTINCT labno) FILTER (WHERE period = 1) AS period1_count,
        COUNT(DISTINCT labno) FILTER (WHERE period = 2) AS period2_count
    FROM combined
    GROUP BY submid
    ORDER BY submid::text
    """

    return AggregationQuery(name="province_comparison", sql=sql, params=params.values)


def get_unsatisfactory_details_query(
    schema: str,
    rules: ClassificationRules,
    window: AggregationWindow,
    facility: str,
    unsatisfactory_only: bool = True,
) -> AggregationQuery:
    """
    One row per lab number submitted by a facility, with its result description.

    With unsatisfactory_only=False the mnemonic restriction is dropped and the
    query lists every screened patient of the facility (the "full patient"
    view used to put the unsatisfactory rows in context).

    Returns:
        AggregationQuery producing columns:
            labno, first_name, last_name, test_result, facility_name, province
    """
    params = QueryParams()
    providers = provider_table(schema)
    library = disorder_library_table(schema)
    codes = params.bind_array(
        rules.category_to_specimen_codes(SpecimenCategory.UNSAT_DETAIL), "spectypes"
    )
    mnemonic_filter = ""
    if unsatisfactory_only:
        mnemonics = params.bind_array(rules.unsatisfactory_mnemonics, "unsat_mnemonics")
        mnemonic_filter = f"AND x.mnemonic = ANY({mnemonics})"

    def source(tables: PartitionTables, flags_table: str) -> str:
        return f"""
        SELECT
            s.labno,
            s.fname,
            s.lname,
            p.descr1 AS facility_name,
            p.county,
            l.descr1 AS test_result
        FROM {tables.samples} s
        JOIN {providers} p ON p.providerid = s.submid
        JOIN {flags_table} x ON x.labno = s.labno
        JOIN {library} l ON l.mnemonic = x.mnemonic
        WHERE p.adrs_type = '1'
          AND {window_clause(params, 's.dtrecv', window.start, window.end)}
          AND s.spectype = ANY({codes})
          AND {lab_number_exclusion_clause(params, rules)}
          {mnemonic_filter}
          {facility_name_clause(params, facility)}
        """

    def select_for(tables: PartitionTables) -> str:
        return (
            source(tables, tables.disorders).strip()
            + "\n\n        UNION ALL\n\n        "
            + source(tables, tables.results).strip()
        )

    sql = f"""
    -- Lab numbers for one facility
    WITH combined AS (
        {partition_union(schema, select_for)}
    )
    SELECT
        labno,
        MIN(fname) AS first_name,
        MIN(lname) AS last_name,
        MIN(test_result) AS test_result,
        MIN(facility_name) AS facility_name,
        MIN(county) AS province
    FROM combined
    GROUP BY labno
    ORDER BY labno
    """

    name = "unsatisfactory_details" if unsatisfactory_only else "facility_patients"
    return AggregationQuery(name=name, sql=sql, params=params.values)


def get_facility_total_query(
    schema: str,
    window: AggregationWindow,
    facility: str,
) -> AggregationQuery:
    """
    Distinct samples received from one facility within a window.

    Returns:
        AggregationQuery producing one row with column: total_samples
    """
    params = QueryParams()
    providers = provider_table(schema)

    def select_for(tables: PartitionTables) -> str:
        return f"""
        SELECT s.labno
        FROM {tables.samples} s
        JOIN {providers} p ON p.providerid = s.submid
        WHERE p.adrs_type = '1'
          AND {window_clause(params, 's.dtrecv', window.start, window.end)}
          {facility_name_clause(params, facility)}
        """

    sql = f"""
    -- Total samples for one facility
    WITH combined AS (
        {partition_union(schema, select_for)}
    )
    SELECT COUNT(DISTINCT labno) AS total_samples
    FROM combined
    """

    return AggregationQuery(name="facility_total", sql=sql, params=params.values)
