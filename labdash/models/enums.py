"""
Enumeration definitions for the laboratory dashboard backend.

All enums inherit from both `str` and `Enum` so they serialize as plain
strings in Pydantic models and JSON responses, and so query-string values
can be validated by simple construction (`SpecimenCategory("received")`).
"""

from enum import Enum


class SpecimenCategory(str, Enum):
    """
    Named specimen-type code sets.

    The dashboard has historically used different code sets for what is
    nominally the same category depending on the report. Each variant is kept
    under its own name instead of being merged:

    - received: monthly/cumulative received counts, facility ranking and rate
    - received_summary: "received" counter on the laboratory summary card
    - screened: alias of screened_daily
    - screened_daily: monthly/cumulative screened counts
    - screened_summary: "screened" counter on the laboratory summary card
    - unsat_detail: per-facility unsatisfactory detail and patient lists
    - province_comparison: two-period province comparison of unsatisfactory samples
    """
    RECEIVED = "received"
    RECEIVED_SUMMARY = "received_summary"
    SCREENED = "screened"
    SCREENED_DAILY = "screened_daily"
    SCREENED_SUMMARY = "screened_summary"
    UNSAT_DETAIL = "unsat_detail"
    PROVINCE_COMPARISON = "province_comparison"


class ReportType(str, Enum):
    """
    Display label echoed back in monthly and cumulative report envelopes.

    Source: the `type` / `category` fields of the sample-receive and
    sample-screened responses ('Received' / 'Screened').
    """
    RECEIVED = "Received"
    SCREENED = "Screened"


class Partition(str, Enum):
    """
    Physical partitions of the logical sample table.

    - archive: historical samples
    - master: current samples

    Both are unioned transparently by the query layer.
    """
    ARCHIVE = "archive"
    MASTER = "master"


class CardSummaryScope(str, Enum):
    """Window used by the summary card: explicit range or the current month."""
    CUSTOM = "custom"
    CURRENT_MONTH = "current_month"
