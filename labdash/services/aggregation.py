"""
Unsatisfactory-sample aggregation and comparison engine.

This module computes every figure the dashboard reports: facility rankings by
unsatisfactory count, per-facility unsatisfactory rates, two-period province
comparisons, monthly and cumulative received/screened counts, and the summary
card totals.

Key Components:
- AggregationEngine: report operations over an injected SampleRepository
- compute_unsat_rate: unsatisfactory / total * 100, guarded against 0 and NaN
- percentage_delta: signed period-over-period change label
- volume_threshold_for: minimum volume gate for the rate report

Distinct Counting:
    Totals and unsatisfactory counts are COUNT(DISTINCT labno) per submitter,
    computed in one query over both partitions. Province figures are sums of
    per-submitter counts; a lab number belongs to exactly one submitter so the
    sums are themselves distinct counts.

Rate Volume Gate:
    Facilities with few samples produce noisy rates. The rate report only
    lists facilities whose total exceeds a threshold chosen by the window
    length in months (<=1: 50, <=3: 150, <=6: 300, longer: 600 by default).
    The gate does not apply when a single facility is requested.

Failure Semantics:
    The engine neither catches nor retries. Errors raised by the repository
    (DataSourceUnavailable, QueryExecutionError) and by window validation
    (InvalidWindow) propagate to the HTTP layer unchanged.

Example:
    engine = AggregationEngine(repository, get_classification_rules())
    window = parse_window("2024-01-01", "2024-01-31")
    top = await engine.top_unsatisfactory_by_count(window, province="BATANGAS")
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from labdash.core.errors import InvalidWindow
from labdash.models.enums import ReportType, SpecimenCategory
from labdash.models.schemas import (
    CardSummary,
    CumulativeProvinceCount,
    CumulativeReportResponse,
    FacilitySummary,
    MonthlyLabCount,
    MonthlyReportResponse,
    ProvinceComparisonRow,
    UnsatisfactoryDetail,
)
from labdash.services import shaping
from labdash.services.classification import ClassificationRules, province_key
from labdash.services.gateway import SampleRepository
from labdash.services.windows import AggregationWindow, current_month_window
from labdash.sql.sample_queries import (
    get_card_count_query,
    get_card_unsatisfactory_query,
    get_cumulative_count_query,
    get_monthly_count_query,
)
from labdash.sql.unsat_queries import (
    get_facility_counts_query,
    get_facility_total_query,
    get_province_comparison_query,
    get_unsatisfactory_details_query,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Defaults
# =============================================================================

DEFAULT_REPORTING_PROVINCES: Tuple[str, ...] = (
    "BATANGAS",
    "LAGUNA",
    "CAVITE",
    "RIZAL",
    "QUEZON",
)

# Window length in months -> minimum total samples (exclusive)
DEFAULT_RATE_VOLUME_THRESHOLDS: Dict[int, int] = {1: 50, 3: 150, 6: 300}
DEFAULT_RATE_VOLUME_THRESHOLD_MAX = 600


# =============================================================================
# Pure Calculations
# =============================================================================

def _round_half_up(value: float) -> Decimal:
    # Exact binary value of the float, ties away from zero (1.125 -> 1.13)
    return Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def compute_unsat_rate(unsatisfactory: int, total: int) -> float:
    """
    Unsatisfactory rate as a percentage rounded half-up to 2 decimals.

    Returns 0.0 when total is 0, and never NaN or infinity.

    Example:
        >>> compute_unsat_rate(5, 100)
        5.0
        >>> compute_unsat_rate(3, 0)
        0.0
    """
    if not total or total <= 0:
        return 0.0
    rate = float(unsatisfactory) / float(total) * 100.0
    if np.isnan(rate) or np.isinf(rate):
        return 0.0
    return float(_round_half_up(rate))


def percentage_delta(a: int, b: int) -> str:
    """
    Signed percentage change from a to b, formatted for display.

    Example:
        >>> percentage_delta(40, 45)
        '+12.50%'
        >>> percentage_delta(100, 97)
        '-3.00%'
        >>> percentage_delta(10, 10)
        '0.00%'
        >>> percentage_delta(0, 7)
        'N/A'
    """
    if not a:
        return "N/A"
    change = (float(b) - float(a)) / float(a) * 100.0
    if np.isnan(change) or np.isinf(change):
        return "N/A"
    change = _round_half_up(change)
    if change == 0:
        return "0.00%"
    return f"{change:+.2f}%"


def volume_threshold_for(
    span_months: int,
    thresholds: Optional[Dict[int, int]] = None,
    maximum: int = DEFAULT_RATE_VOLUME_THRESHOLD_MAX,
) -> int:
    """Minimum total samples (exclusive) for a window of span_months months."""
    table = thresholds if thresholds is not None else DEFAULT_RATE_VOLUME_THRESHOLDS
    for months in sorted(table):
        if span_months <= months:
            return table[months]
    return maximum


# =============================================================================
# Engine
# =============================================================================

class AggregationEngine:
    """
    Report operations over the laboratory store.

    Args:
        repository: Gateway used for every query.
        rules: Immutable classification tables.
        reporting_provinces: Literal provinces covered by cumulative reports.
        rate_volume_thresholds: Months -> minimum total for the rate report.
        rate_volume_threshold_max: Minimum total for longer windows.
    """

    def __init__(
        self,
        repository: SampleRepository,
        rules: ClassificationRules,
        reporting_provinces: Sequence[str] = DEFAULT_REPORTING_PROVINCES,
        rate_volume_thresholds: Optional[Dict[int, int]] = None,
        rate_volume_threshold_max: int = DEFAULT_RATE_VOLUME_THRESHOLD_MAX,
    ) -> None:
        self.repository = repository
        self.rules = rules
        self.reporting_provinces = tuple(reporting_provinces)
        self.rate_volume_thresholds = dict(
            rate_volume_thresholds if rate_volume_thresholds is not None
            else DEFAULT_RATE_VOLUME_THRESHOLDS
        )
        self.rate_volume_threshold_max = rate_volume_threshold_max

    @property
    def schema(self) -> str:
        return self.repository.schema

    async def _facility_counts(
        self,
        window: AggregationWindow,
        province: Optional[str],
        facility: Optional[str] = None,
    ) -> List[FacilitySummary]:
        query = get_facility_counts_query(
            self.schema, self.rules, window, province=province, facility=facility
        )
        rows = await self.repository.run_aggregation_query(query)
        return shaping.group_facility_rows(rows, self.rules, province)

    # -------------------------------------------------------------------------
    # Unsatisfactory reports
    # -------------------------------------------------------------------------

    async def top_unsatisfactory_by_count(
        self,
        window: AggregationWindow,
        province: Optional[str] = None,
    ) -> List[FacilitySummary]:
        """
        Facilities ranked by number of unsatisfactory samples.

        Facilities without unsatisfactory samples are omitted. Ties are broken
        by facility name, then submitter ID.
        """
        facilities = await self._facility_counts(window, province)

        ranked = [
            f.model_copy(update={
                "unsat_rate": compute_unsat_rate(f.unsatisfactory_count, f.total_samples)
            })
            for f in facilities
            if f.unsatisfactory_count > 0
        ]
        ranked.sort(key=lambda f: (-f.unsatisfactory_count, f.facility_name, f.submitter_id))

        logger.info(
            f"top_unsatisfactory {window.raw_from}..{window.raw_to} "
            f"province={province or 'all'}: {len(ranked)} facilities"
        )
        return ranked

    async def unsatisfactory_rate(
        self,
        window: AggregationWindow,
        province: Optional[str] = None,
        facility: Optional[str] = None,
    ) -> List[FacilitySummary]:
        """
        Per-facility unsatisfactory rate, highest first.

        Without a facility filter, only facilities with at least one
        unsatisfactory sample and a total above the volume threshold are
        listed. With one, the matching facility is returned whatever its
        volume.
        """
        facility = facility.strip() if facility and facility.strip() else None
        facilities = await self._facility_counts(window, province, facility)

        threshold = None
        if facility is None:
            threshold = volume_threshold_for(
                window.span_months,
                self.rate_volume_thresholds,
                self.rate_volume_threshold_max,
            )
            facilities = [
                f for f in facilities
                if f.unsatisfactory_count > 0 and f.total_samples > threshold
            ]

        rated = [
            f.model_copy(update={
                "unsat_rate": compute_unsat_rate(f.unsatisfactory_count, f.total_samples)
            })
            for f in facilities
        ]
        rated.sort(key=lambda f: (-f.unsat_rate, -f.unsatisfactory_count, f.facility_name))

        logger.info(
            f"unsat_rate {window.raw_from}..{window.raw_to} province={province or 'all'} "
            f"facility={facility or '-'} threshold={threshold}: {len(rated)} facilities"
        )
        return rated

    async def province_comparison(
        self,
        window1: AggregationWindow,
        window2: AggregationWindow,
    ) -> List[ProvinceComparisonRow]:
        """
        Distinct unsatisfactory lab numbers per province in two windows.

        One row per province present in either window, ordered by province.
        """
        query = get_province_comparison_query(self.schema, self.rules, window1, window2)
        rows = await self.repository.run_aggregation_query(query)
        periods = shaping.group_province_periods(rows, self.rules)

        comparison = [
            ProvinceComparisonRow(
                province=province,
                period1_count=first,
                period2_count=second,
                difference=second - first,
                percentage_change=percentage_delta(first, second),
            )
            for province, (first, second) in periods.items()
            if first or second
        ]
        comparison.sort(key=lambda row: province_key(row.province))
        return comparison

    async def unsatisfactory_details(
        self,
        window: AggregationWindow,
        facility: Optional[str],
    ) -> List[UnsatisfactoryDetail]:
        """One row per unsatisfactory lab number submitted by a facility."""
        return await self._facility_lab_numbers(window, facility, unsatisfactory_only=True)

    async def facility_patient_list(
        self,
        window: AggregationWindow,
        facility: Optional[str],
    ) -> List[UnsatisfactoryDetail]:
        """Every lab number submitted by a facility, unsatisfactory or not."""
        return await self._facility_lab_numbers(window, facility, unsatisfactory_only=False)

    async def _facility_lab_numbers(
        self,
        window: AggregationWindow,
        facility: Optional[str],
        unsatisfactory_only: bool,
    ) -> List[UnsatisfactoryDetail]:
        facility = _require_facility(facility)
        query = get_unsatisfactory_details_query(
            self.schema, self.rules, window, facility, unsatisfactory_only=unsatisfactory_only
        )
        rows = await self.repository.run_aggregation_query(query)
        return [
            UnsatisfactoryDetail(
                labno=shaping.clean_label(row.get("labno")),
                first_name=_optional_label(row.get("first_name")),
                last_name=_optional_label(row.get("last_name")),
                test_result=_optional_label(row.get("test_result")),
                facility_name=_optional_label(row.get("facility_name")),
                province=_optional_label(row.get("province")),
            )
            for row in rows
        ]

    async def facility_total_samples(
        self,
        window: AggregationWindow,
        facility: Optional[str],
    ) -> int:
        facility = _require_facility(facility)
        query = get_facility_total_query(self.schema, window, facility)
        rows = await self.repository.run_aggregation_query(query)
        if not rows:
            return 0
        return shaping._safe_int(rows[0].get("total_samples"))

    # -------------------------------------------------------------------------
    # Received / screened counts
    # -------------------------------------------------------------------------

    async def _monthly_rows(
        self,
        window: AggregationWindow,
        category: SpecimenCategory,
        province: Optional[str],
    ) -> Tuple[List[MonthlyLabCount], List[dict]]:
        query = get_monthly_count_query(
            self.schema, self.rules, window, category, province=province
        )
        rows = await self.repository.run_aggregation_query(query)
        return shaping.group_monthly_counts(
            rows, self.rules, _report_label(self.rules, category), province
        )

    async def monthly_lab_count(
        self,
        window: AggregationWindow,
        category: SpecimenCategory,
        province: Optional[str] = None,
    ) -> List[MonthlyLabCount]:
        """Counts per calendar month for a category, optionally one province."""
        monthly, _ = await self._monthly_rows(window, category, province)
        return monthly

    async def monthly_report(
        self,
        window: AggregationWindow,
        category: SpecimenCategory,
        province: Optional[str] = None,
    ) -> MonthlyReportResponse:
        """monthly_lab_count wrapped in its response envelope."""
        monthly, raw = await self._monthly_rows(window, category, province)
        parameters = shaping.report_parameters(
            _report_label(self.rules, category),
            self.rules.category_to_specimen_codes(category),
            window.date_range(),
            province=province,
        )
        return shaping.monthly_envelope(parameters, monthly, raw)

    async def _cumulative_rows(
        self,
        window: AggregationWindow,
        category: SpecimenCategory,
    ) -> Tuple[List[CumulativeProvinceCount], List[dict]]:
        query = get_cumulative_count_query(
            self.schema, self.rules, window, category, self.reporting_provinces
        )
        rows = await self.repository.run_aggregation_query(query)
        return shaping.group_cumulative_counts(
            rows, self.rules, _report_label(self.rules, category), self.reporting_provinces
        )

    async def cumulative_all_province(
        self,
        window: AggregationWindow,
        category: SpecimenCategory,
    ) -> List[CumulativeProvinceCount]:
        """Window totals per reporting province plus the nearby bucket."""
        cumulative, _ = await self._cumulative_rows(window, category)
        return cumulative

    async def cumulative_report(
        self,
        window: AggregationWindow,
        category: SpecimenCategory,
    ) -> CumulativeReportResponse:
        cumulative, raw = await self._cumulative_rows(window, category)
        parameters = shaping.report_parameters(
            _report_label(self.rules, category),
            self.rules.category_to_specimen_codes(category),
            window.date_range(),
        )
        return shaping.cumulative_envelope(parameters, cumulative, raw)

    async def card_summary(self, window: Optional[AggregationWindow] = None) -> CardSummary:
        """
        Received, screened and unsatisfactory totals.

        Defaults to the current calendar month. The three counts run in
        sequence on one connection.
        """
        window = window or current_month_window()
        received, screened, unsat = await self.repository.run_many([
            get_card_count_query(self.schema, self.rules, window, SpecimenCategory.RECEIVED_SUMMARY),
            get_card_count_query(self.schema, self.rules, window, SpecimenCategory.SCREENED_SUMMARY),
            get_card_unsatisfactory_query(self.schema, self.rules, window),
        ])
        summary = CardSummary(
            received=_first_total(received),
            screened=_first_total(screened),
            unsat=_first_total(unsat),
        )
        logger.info(
            f"card_summary {window.raw_from}..{window.raw_to}: received={summary.received} "
            f"screened={summary.screened} unsat={summary.unsat}"
        )
        return summary


# =============================================================================
# Helpers
# =============================================================================

def _report_label(rules: ClassificationRules, category: SpecimenCategory) -> str:
    resolved = rules.resolve_category(category)
    if resolved in (SpecimenCategory.SCREENED_DAILY, SpecimenCategory.SCREENED_SUMMARY):
        return ReportType.SCREENED.value
    return ReportType.RECEIVED.value


def _require_facility(facility: Optional[str]) -> str:
    if facility is None or not facility.strip():
        raise InvalidWindow("Missing required parameter: 'facility_name'")
    return facility.strip()


def _optional_label(value) -> Optional[str]:
    if value is None:
        return None
    return shaping.clean_label(value)


def _first_total(rows: List[dict]) -> int:
    if not rows:
        return 0
    return shaping._safe_int(rows[0].get("total"))
