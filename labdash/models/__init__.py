"""
Package initialization file for labdash models.

Re-exports the enumerations and Pydantic schemas so other modules can import
them from labdash.models directly:

    from labdash.models import FacilitySummary, SpecimenCategory
"""

# =============================================================================
# Enums
# =============================================================================

from labdash.models.enums import (
    SpecimenCategory,
    ReportType,
    Partition,
    CardSummaryScope,
)

# =============================================================================
# Schemas
# =============================================================================

from labdash.models.schemas import (
    # Unsatisfactory reports
    FacilitySummary,
    ProvinceComparisonRow,
    UnsatisfactoryDetail,
    # Sample counts
    SpectypeBreakdown,
    MonthlyLabCount,
    CumulativeProvinceCount,
    ReportSummary,
    ReportParameters,
    # Summary card
    CardSummary,
    CardSummaryFilters,
    # Envelopes
    FacilityListResponse,
    ProvinceComparisonResponse,
    UnsatisfactoryDetailResponse,
    FacilityPatientResponse,
    FacilityTotalResponse,
    MonthlyReportResponse,
    CumulativeReportResponse,
    CardSummaryResponse,
    ErrorResponse,
)


__all__ = [
    # Enums
    'SpecimenCategory',
    'ReportType',
    'Partition',
    'CardSummaryScope',
    # Unsatisfactory reports
    'FacilitySummary',
    'ProvinceComparisonRow',
    'UnsatisfactoryDetail',
    # Sample counts
    'SpectypeBreakdown',
    'MonthlyLabCount',
    'CumulativeProvinceCount',
    'ReportSummary',
    'ReportParameters',
    # Summary card
    'CardSummary',
    'CardSummaryFilters',
    # Envelopes
    'FacilityListResponse',
    'ProvinceComparisonResponse',
    'UnsatisfactoryDetailResponse',
    'FacilityPatientResponse',
    'FacilityTotalResponse',
    'MonthlyReportResponse',
    'CumulativeReportResponse',
    'CardSummaryResponse',
    'ErrorResponse',
]
