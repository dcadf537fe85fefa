"""
Pydantic response models for the laboratory dashboard API.

Field names follow the JSON contracts the dashboard frontend already consumes:
snake_case for report rows (facility_name, total_samples, month_year, ...) and
camelCase for envelope metadata (rowCount, monthlyData, dateRange, ...).

Model groups:
- Unsatisfactory reports: FacilitySummary, ProvinceComparisonRow, UnsatisfactoryDetail
- Sample counts: SpectypeBreakdown, MonthlyLabCount, CumulativeProvinceCount, ReportSummary
- Summary card: CardSummary, CardSummaryFilters
- Envelopes: one per endpoint family, plus ErrorResponse

All models use Pydantic v2 syntax.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ConfigDict


# =============================================================================
# Unsatisfactory Reports
# =============================================================================


class FacilitySummary(BaseModel):
    """
    One submitting facility's unsatisfactory-sample figures for a window.

    unsatisfactory_count is always a subset count of total_samples, so
    unsat_rate lies in [0, 100].
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "submitter_id": "1204",
                "facility_name": "BATANGAS MEDICAL CENTER",
                "province": "BATANGAS",
                "total_samples": 100,
                "unsatisfactory_count": 5,
                "unsat_rate": 5.0,
            }
        }
    )

    submitter_id: str = Field(..., description="Submitter (facility) identifier")
    facility_name: str = Field(..., description="Facility name, padding stripped")
    province: str = Field(..., description="Resolved province group")
    total_samples: int = Field(..., ge=0, description="Distinct samples received in the window")
    unsatisfactory_count: int = Field(
        ..., ge=0, description="Distinct samples with at least one rejection mnemonic"
    )
    unsat_rate: float = Field(
        0.0, ge=0.0, le=100.0, description="unsatisfactory_count / total_samples * 100, 2 decimals"
    )


class ProvinceComparisonRow(BaseModel):
    """Distinct unsatisfactory lab numbers for one province in two windows."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "province": "LAGUNA",
                "period1_count": 40,
                "period2_count": 45,
                "difference": 5,
                "percentage_change": "+12.50%",
            }
        }
    )

    province: str
    period1_count: int = Field(0, ge=0)
    period2_count: int = Field(0, ge=0)
    difference: int = Field(0, description="period2_count - period1_count")
    percentage_change: str = Field("N/A", description="Signed change vs. period 1, or N/A")


class UnsatisfactoryDetail(BaseModel):
    """One lab number submitted by a facility, with its result description."""

    labno: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    test_result: Optional[str] = None
    facility_name: Optional[str] = None
    province: Optional[str] = None


# =============================================================================
# Received / Screened Counts
# =============================================================================


class SpectypeBreakdown(BaseModel):
    """Counts contributed by one specimen type."""

    spectype: str
    samples: int = Field(0, ge=0, description="Sample rows")
    labno: int = Field(0, ge=0, description="Rows carrying a lab number")


class MonthlyLabCount(BaseModel):
    """Counts for one calendar month, summed over both partitions."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "year": 2024,
                "month": 1,
                "month_year": "2024-01",
                "province": "BATANGAS",
                "category": "Received",
                "total_samples": 1520,
                "total_labno": 1520,
                "spectypes": [{"spectype": "20", "samples": 1500, "labno": 1500}],
            }
        }
    )

    year: int
    month: int = Field(..., ge=1, le=12)
    month_year: str = Field(..., description="YYYY-MM")
    province: str
    category: str
    total_samples: int = Field(0, ge=0)
    total_labno: int = Field(0, ge=0)
    spectypes: List[SpectypeBreakdown] = Field(default_factory=list)


class CumulativeProvinceCount(BaseModel):
    """Counts for one province across the whole window."""

    province: str
    category: str
    total_samples: int = Field(0, ge=0)
    total_labno: int = Field(0, ge=0)
    spectypes: List[SpectypeBreakdown] = Field(default_factory=list)


class ReportSummary(BaseModel):
    """Totals over a monthly or cumulative report."""

    totalRecords: int = 0
    totalSamples: int = 0
    totalLabNo: int = 0


class ReportParameters(BaseModel):
    """Request parameters echoed back for traceability."""

    type: str
    spectypes: List[str]
    province: Optional[str] = None
    dateRange: Dict[str, str]


# =============================================================================
# Summary Card
# =============================================================================


class CardSummary(BaseModel):
    received: int = 0
    screened: int = 0
    unsat: int = 0


class CardSummaryFilters(BaseModel):
    type: str
    dateFrom: Optional[str] = None
    dateTo: Optional[str] = None


# =============================================================================
# Response Envelopes
# =============================================================================


class FacilityListResponse(BaseModel):
    success: bool = True
    data: List[FacilitySummary] = Field(default_factory=list)
    rowCount: int = 0
    parameters: Dict[str, Any] = Field(default_factory=dict)


class ProvinceComparisonResponse(BaseModel):
    success: bool = True
    rows: List[ProvinceComparisonRow] = Field(default_factory=list)
    rowCount: int = 0


class UnsatisfactoryDetailResponse(BaseModel):
    success: bool = True
    data: List[UnsatisfactoryDetail] = Field(default_factory=list)
    rowCount: int = 0


class FacilityPatientResponse(BaseModel):
    total: int = 0
    rows: List[UnsatisfactoryDetail] = Field(default_factory=list)


class FacilityTotalResponse(BaseModel):
    total_samples: int = 0


class MonthlyReportResponse(BaseModel):
    success: bool = True
    parameters: ReportParameters
    monthlyData: List[MonthlyLabCount] = Field(default_factory=list)
    rawData: List[Dict[str, Any]] = Field(default_factory=list)
    summary: ReportSummary = Field(default_factory=ReportSummary)


class CumulativeReportResponse(BaseModel):
    success: bool = True
    parameters: ReportParameters
    cumulativeData: List[CumulativeProvinceCount] = Field(default_factory=list)
    rawData: List[Dict[str, Any]] = Field(default_factory=list)
    summary: ReportSummary = Field(default_factory=ReportSummary)


class CardSummaryResponse(BaseModel):
    success: bool = True
    data: CardSummary
    filters: CardSummaryFilters
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Body of every 4xx/5xx response."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": False,
                "error": "Invalid request parameters",
                "message": "Missing required parameter: 'from'",
                "timestamp": "2024-02-01T08:00:00",
            }
        }
    )

    success: bool = False
    error: str
    message: str
    timestamp: datetime
