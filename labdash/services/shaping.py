"""
Response Shaper

Turns the flat rows returned by the gateway into the nested structures the
dashboard renders, and builds every response envelope.

Grouping Keys:
    Province and facility values come from fixed-width columns and may carry
    trailing padding ("BATANGAS   "). Every grouping here keys on the trimmed,
    uppercased value so two spellings that differ only by padding or case land
    in the same group; the first trimmed spelling seen is the one displayed.

Empty Results:
    Zero rows is a successful response. Every envelope builder returns an
    explicit empty collection with zeroed totals rather than signalling
    "not found".
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from labdash.core.errors import DashboardError
from labdash.models.schemas import (
    CumulativeProvinceCount,
    CumulativeReportResponse,
    ErrorResponse,
    FacilityListResponse,
    FacilitySummary,
    MonthlyLabCount,
    MonthlyReportResponse,
    ReportParameters,
    ReportSummary,
    SpectypeBreakdown,
)
from labdash.services.classification import ClassificationRules, province_key


logger = logging.getLogger(__name__)


# =============================================================================
# Helper Functions
# =============================================================================

def _safe_int(value: Any) -> int:
    """
    Convert a database count to int, treating null/NaN/invalid as 0.

    Counts come back as int from asyncpg, but Decimal and float show up when a
    query sums or casts, and NaN when a float column is empty.
    """
    if value is None:
        return 0
    try:
        float_val = float(value)
        if np.isnan(float_val) or np.isinf(float_val):
            return 0
        return int(float_val)
    except (ValueError, TypeError):
        return 0


def clean_label(value: Any) -> str:
    """Display form of a padded text column."""
    if value is None:
        return ""
    return str(value).strip()


def _spectype_key(value: Any) -> Tuple[int, Any]:
    text = clean_label(value)
    return (0, int(text)) if text.isdigit() else (1, text)


def _breakdown(spectypes: Dict[str, List[int]]) -> List[SpectypeBreakdown]:
    return [
        SpectypeBreakdown(spectype=code, samples=counts[0], labno=counts[1])
        for code, counts in sorted(spectypes.items(), key=lambda kv: _spectype_key(kv[0]))
    ]


# =============================================================================
# Facility Rows
# =============================================================================

def group_facility_rows(
    rows: Iterable[Dict[str, Any]],
    rules: ClassificationRules,
    province: Optional[str] = None,
) -> List[FacilitySummary]:
    """
    Resolve each submitter's province group and merge rows per submitter.

    Rows outside the requested province filter are dropped. unsat_rate is
    left at 0.0; the aggregation engine fills it in.
    """
    merged: Dict[str, Dict[str, Any]] = {}

    for row in rows:
        submitter_id = clean_label(row.get("submitter_id"))
        group = rules.resolve_province_group(submitter_id, row.get("county"))
        if not rules.matches_province_filter(group, province):
            continue

        entry = merged.setdefault(submitter_id, {
            "submitter_id": submitter_id,
            "facility_name": clean_label(row.get("facility_name")),
            "province": group,
            "total_samples": 0,
            "unsatisfactory_count": 0,
        })
        entry["total_samples"] += _safe_int(row.get("total_samples"))
        entry["unsatisfactory_count"] += _safe_int(row.get("unsatisfactory_count"))

    return [FacilitySummary(**entry) for entry in merged.values()]


# =============================================================================
# Province Rows
# =============================================================================

def group_province_periods(
    rows: Iterable[Dict[str, Any]],
    rules: ClassificationRules,
) -> Dict[str, Tuple[int, int]]:
    """
    Sum per-submitter period counts into province groups.

    Returns:
        Mapping of display province -> (period1_count, period2_count).
        Submitters in the nearby set always land in the nearby bucket.
    """
    names: Dict[str, str] = {}
    totals: Dict[str, List[int]] = {}

    for row in rows:
        group = rules.resolve_province_group(row.get("submitter_id"), row.get("county"))
        key = province_key(group)
        names.setdefault(key, group)
        counts = totals.setdefault(key, [0, 0])
        counts[0] += _safe_int(row.get("period1_count"))
        counts[1] += _safe_int(row.get("period2_count"))

    return {names[key]: (c[0], c[1]) for key, c in totals.items()}


# =============================================================================
# Monthly / Cumulative Counts
# =============================================================================

def _collapse_raw_rows(
    rows: Iterable[Dict[str, Any]],
    rules: ClassificationRules,
    province: Optional[str],
    monthly: bool,
) -> List[Dict[str, Any]]:
    """
    Resolve province groups and merge per-submitter rows into one row per
    (year, month, province, spectype), or (province, spectype) when not monthly.
    """
    collapsed: Dict[Tuple, Dict[str, Any]] = {}

    for row in rows:
        group = rules.resolve_province_group(row.get("submitter_id"), row.get("county"))
        if not rules.matches_province_filter(group, province):
            continue

        spectype = clean_label(row.get("spectype"))
        if monthly:
            year = _safe_int(row.get("year"))
            month = _safe_int(row.get("month"))
            key = (year, month, province_key(group), spectype)
        else:
            key = (province_key(group), spectype)

        entry = collapsed.get(key)
        if entry is None:
            entry = {"province": group, "spectype": spectype, "total_samples": 0, "total_labno": 0}
            if monthly:
                entry = {
                    "year": year,
                    "month": month,
                    "month_year": f"{year:04d}-{month:02d}",
                    **entry,
                }
            collapsed[key] = entry

        entry["total_samples"] += _safe_int(row.get("total_samples"))
        entry["total_labno"] += _safe_int(row.get("total_labno"))

    # spectype is always the last key part
    ordered = sorted(collapsed, key=lambda k: k[:-1] + (_spectype_key(k[-1]),))
    return [collapsed[key] for key in ordered]


def group_monthly_counts(
    rows: Iterable[Dict[str, Any]],
    rules: ClassificationRules,
    category_label: str,
    province: Optional[str] = None,
) -> Tuple[List[MonthlyLabCount], List[Dict[str, Any]]]:
    """
    Fold rows into one MonthlyLabCount per (year, month).

    A month whose rows resolve to a single province group reports that
    group's name; a month spanning several groups reports "all".

    Returns:
        (monthly counts ordered by year and month, collapsed raw rows)
    """
    raw = _collapse_raw_rows(rows, rules, province, monthly=True)

    months: Dict[Tuple[int, int], Dict[str, Any]] = {}
    for row in raw:
        key = (row["year"], row["month"])
        entry = months.get(key)
        if entry is None:
            entry = {
                "year": row["year"],
                "month": row["month"],
                "month_year": row["month_year"],
                "province": row["province"],
                "total_samples": 0,
                "total_labno": 0,
                "spectypes": {},
            }
            months[key] = entry
        elif province_key(entry["province"]) != province_key(row["province"]):
            entry["province"] = "all"

        entry["total_samples"] += row["total_samples"]
        entry["total_labno"] += row["total_labno"]
        counts = entry["spectypes"].setdefault(row["spectype"], [0, 0])
        counts[0] += row["total_samples"]
        counts[1] += row["total_labno"]

    monthly = [
        MonthlyLabCount(
            year=entry["year"],
            month=entry["month"],
            month_year=entry["month_year"],
            province=entry["province"],
            category=category_label,
            total_samples=entry["total_samples"],
            total_labno=entry["total_labno"],
            spectypes=_breakdown(entry["spectypes"]),
        )
        for _, entry in sorted(months.items())
    ]
    return monthly, raw


def group_cumulative_counts(
    rows: Iterable[Dict[str, Any]],
    rules: ClassificationRules,
    category_label: str,
    provinces: Sequence[str],
) -> Tuple[List[CumulativeProvinceCount], List[Dict[str, Any]]]:
    """
    Fold rows into one CumulativeProvinceCount per reporting province.

    Only the listed provinces and the nearby bucket are reported, in list
    order with the nearby bucket last. Provinces without rows are omitted.
    """
    raw = _collapse_raw_rows(rows, rules, None, monthly=False)

    order = [province_key(p) for p in provinces] + [province_key(rules.nearby_group)]
    groups: Dict[str, Dict[str, Any]] = {}

    for row in raw:
        key = province_key(row["province"])
        if key not in order:
            continue
        entry = groups.setdefault(key, {
            "province": row["province"],
            "total_samples": 0,
            "total_labno": 0,
            "spectypes": {},
        })
        entry["total_samples"] += row["total_samples"]
        entry["total_labno"] += row["total_labno"]
        counts = entry["spectypes"].setdefault(row["spectype"], [0, 0])
        counts[0] += row["total_samples"]
        counts[1] += row["total_labno"]

    cumulative = [
        CumulativeProvinceCount(
            province=groups[key]["province"],
            category=category_label,
            total_samples=groups[key]["total_samples"],
            total_labno=groups[key]["total_labno"],
            spectypes=_breakdown(groups[key]["spectypes"]),
        )
        for key in order
        if key in groups
    ]
    kept = {province_key(c.province) for c in cumulative}
    return cumulative, [r for r in raw if province_key(r["province"]) in kept]


def summarize(raw_rows: Sequence[Dict[str, Any]]) -> ReportSummary:
    """Totals over the collapsed raw rows of a report."""
    return ReportSummary(
        totalRecords=len(raw_rows),
        totalSamples=sum(_safe_int(r.get("total_samples")) for r in raw_rows),
        totalLabNo=sum(_safe_int(r.get("total_labno")) for r in raw_rows),
    )


# =============================================================================
# Envelopes
# =============================================================================

def report_parameters(
    report_type: str,
    spectypes: Sequence[str],
    date_range: Dict[str, str],
    province: Optional[str] = None,
) -> ReportParameters:
    return ReportParameters(
        type=report_type,
        spectypes=list(spectypes),
        province=province,
        dateRange=date_range,
    )


def monthly_envelope(
    parameters: ReportParameters,
    monthly: List[MonthlyLabCount],
    raw: List[Dict[str, Any]],
) -> MonthlyReportResponse:
    if not monthly:
        logger.info(f"No {parameters.type} rows for {parameters.dateRange}")
    return MonthlyReportResponse(
        success=True,
        parameters=parameters,
        monthlyData=monthly,
        rawData=raw,
        summary=summarize(raw),
    )


def cumulative_envelope(
    parameters: ReportParameters,
    cumulative: List[CumulativeProvinceCount],
    raw: List[Dict[str, Any]],
) -> CumulativeReportResponse:
    if not cumulative:
        logger.info(f"No cumulative {parameters.type} rows for {parameters.dateRange}")
    return CumulativeReportResponse(
        success=True,
        parameters=parameters,
        cumulativeData=cumulative,
        rawData=raw,
        summary=summarize(raw),
    )


def facility_list_envelope(
    facilities: List[FacilitySummary],
    parameters: Dict[str, Any],
) -> FacilityListResponse:
    return FacilityListResponse(
        success=True,
        data=facilities,
        rowCount=len(facilities),
        parameters=parameters,
    )


def error_payload(exc: Exception, include_detail: bool) -> Dict[str, Any]:
    """
    JSON body for a failed request.

    DashboardError subclasses carry their own label; anything else is reported
    as a generic internal error with no exception text.
    """
    if isinstance(exc, DashboardError):
        error = exc.error
        message = exc.public_message(include_detail)
    else:
        error = "Internal server error"
        message = str(exc) if include_detail and str(exc) else "An unexpected error occurred"

    body = ErrorResponse(
        success=False,
        error=error,
        message=message,
        timestamp=datetime.now(),
    )
    return body.model_dump(mode="json")
