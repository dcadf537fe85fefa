"""
Query-building primitives shared by every report query.

Provides:
- QueryParams: positional ($1, $2, ...) parameter binder for asyncpg
- AggregationQuery: a named, fully bound query ready for the gateway
- PartitionTables: physical table names for one partition of the sample data
- partition_union(): UNION ALL of one SELECT template over both partitions
- province_filter_clause(): SQL filter equivalent to the province grouping rules

No user-supplied value is ever interpolated into SQL text. Interpolated
fragments are limited to table names taken from configuration and to clauses
generated here; every date, code, province and facility value is bound.
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from labdash.models.enums import Partition
from labdash.services.classification import ClassificationRules, province_key


_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class QueryParams:
    """
    Collects bind values and hands out asyncpg positional placeholders.

    Binding the same value twice under the same name reuses its placeholder,
    so a date bound referenced by both partitions is sent once.
    """

    def __init__(self) -> None:
        self._values: List[Any] = []
        self._named: Dict[str, str] = {}

    def bind(self, value: Any, name: Optional[str] = None) -> str:
        if name is not None and name in self._named:
            return self._named[name]
        self._values.append(value)
        placeholder = f"${len(self._values)}"
        if name is not None:
            self._named[name] = placeholder
        return placeholder

    def bind_array(self, values, name: Optional[str] = None) -> str:
        """Bind a sequence as a text[] for use with `= ANY(...)`."""
        placeholder = self.bind([str(v) for v in values], name)
        return f"{placeholder}::text[]"

    @property
    def values(self) -> Tuple[Any, ...]:
        return tuple(self._values)


@dataclass(frozen=True)
class AggregationQuery:
    """A bound query. `name` identifies it in logs and error messages."""
    name: str
    sql: str
    params: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class PartitionTables:
    """Fully qualified table names holding one partition of the sample data."""
    partition: Partition
    samples: str
    results: str
    disorders: str


def _qualify(schema: str, table: str) -> str:
    if not _IDENTIFIER.match(schema) or not _IDENTIFIER.match(table):
        raise ValueError(f"Invalid identifier: {schema}.{table}")
    return f"{schema}.{table}"


def partition_tables(schema: str) -> Tuple[PartitionTables, PartitionTables]:
    """Archive and master table sets for a schema, archive first."""
    return (
        PartitionTables(
            partition=Partition.ARCHIVE,
            samples=_qualify(schema, "sample_demog_archive"),
            results=_qualify(schema, "result_archive"),
            disorders=_qualify(schema, "disorder_archive"),
        ),
        PartitionTables(
            partition=Partition.MASTER,
            samples=_qualify(schema, "sample_demog_master"),
            results=_qualify(schema, "result_master"),
            disorders=_qualify(schema, "disorder_master"),
        ),
    )


def provider_table(schema: str) -> str:
    return _qualify(schema, "ref_provider_address")


def disorder_library_table(schema: str) -> str:
    return _qualify(schema, "lib_disorder_result")


def partition_union(
    schema: str,
    select_for: Callable[[PartitionTables], str],
) -> str:
    """
    Render `select_for(tables)` once per partition and join with UNION ALL.

    The callable receives the partition's table names and returns a SELECT.
    Column lists must match across partitions; they do because the same
    callable renders both.
    """
    selects = [select_for(tables).strip() for tables in partition_tables(schema)]
    return "\n\n        UNION ALL\n\n        ".join(selects)


# =============================================================================
# Shared WHERE fragments
# =============================================================================

def window_clause(params: QueryParams, column: str, start, end, suffix: str = "") -> str:
    """Half-open [start, end) filter on a timestamp column."""
    lower = params.bind(start, f"start{suffix}")
    upper = params.bind(end, f"end{suffix}")
    return f"{column} >= {lower} AND {column} < {upper}"


def unsatisfactory_exists_clause(
    params: QueryParams,
    rules: ClassificationRules,
    tables: PartitionTables,
    sample_alias: str = "s",
) -> str:
    """
    True when the sample has a result or disorder row with a rejection mnemonic.

    Both lookups stay inside the sample's own partition.
    """
    mnemonics = params.bind_array(rules.unsatisfactory_mnemonics, "unsat_mnemonics")
    return (
        f"(EXISTS (SELECT 1 FROM {tables.results} r "
        f"WHERE r.labno = {sample_alias}.labno AND r.mnemonic = ANY({mnemonics}))"
        f" OR EXISTS (SELECT 1 FROM {tables.disorders} d "
        f"WHERE d.labno = {sample_alias}.labno AND d.mnemonic = ANY({mnemonics})))"
    )


def lab_number_exclusion_clause(
    params: QueryParams,
    rules: ClassificationRules,
    sample_alias: str = "s",
) -> str:
    position = params.bind(rules.excluded_labno_position, "excluded_position")
    marker = params.bind(rules.excluded_labno_marker, "excluded_marker")
    return (
        f"COALESCE(substr({sample_alias}.labno, {position}::int, 1), '') <> {marker}"
    )


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def province_filter_clause(
    params: QueryParams,
    rules: ClassificationRules,
    province: Optional[str],
    sample_alias: str = "s",
    provider_alias: str = "p",
) -> str:
    """
    SQL filter selecting exactly the rows whose province group matches `province`.

    Mirrors ClassificationRules.matches_province_filter:
    - None / "all": no filter (empty string)
    - the nearby sentinel: submitter in the nearby ID set
    - anything else: county prefix match, excluding nearby submitters, since
      they are grouped under the nearby bucket whatever their county says
    """
    if rules.is_all_provinces(province):
        return ""

    nearby_ids = params.bind_array(rules.sorted_nearby_ids, "nearby_ids")
    submitter = f"{sample_alias}.submid::text"

    if rules.is_nearby_request(province):
        return f"AND {submitter} = ANY({nearby_ids})"

    prefix = params.bind(_escape_like(province_key(province)), "province_prefix")
    return (
        f"AND upper(trim({provider_alias}.county)) LIKE {prefix} || '%' "
        f"AND NOT ({submitter} = ANY({nearby_ids}))"
    )


def reporting_provinces_clause(
    params: QueryParams,
    rules: ClassificationRules,
    provinces,
    sample_alias: str = "s",
    provider_alias: str = "p",
) -> str:
    """Rows in any of the literal reporting provinces or in the nearby bucket."""
    names = params.bind_array([province_key(p) for p in provinces], "reporting_provinces")
    nearby_ids = params.bind_array(rules.sorted_nearby_ids, "nearby_ids")
    return (
        f"AND (upper(trim({provider_alias}.county)) = ANY({names}) "
        f"OR {sample_alias}.submid::text = ANY({nearby_ids}))"
    )


def facility_name_clause(
    params: QueryParams,
    facility: Optional[str],
    provider_alias: str = "p",
) -> str:
    """Case-insensitive, padding-insensitive exact facility name match."""
    if not facility:
        return ""
    bound = params.bind(facility.strip().upper(), "facility_name")
    return f"AND upper(trim({provider_alias}.descr1)) = {bound}"
