"""
FastAPI router module for the unsatisfactory-sample reports.

Key Endpoints (mounted under /api/unsat):
- GET /top-unsatisfactory: Facilities ranked by unsatisfactory count
- GET /unsat-rate: Facilities ranked by unsatisfactory rate (volume gated)
- GET /unsat-province: Two-period unsatisfactory comparison by province
- GET /details-unsatisfactory: Unsatisfactory lab numbers for one facility
- GET /full-patient: Every lab number for one facility
- GET /total-samples: Distinct samples for one facility

Parameters:
    Dates are 'YYYY-MM-DD' or 'YYYY-MM-DD HH:mm:ss', both bounds inclusive.
    `province` is a county prefix, 'LOPEZ_NEARBY', or 'all'.
    `facility_name` matches a facility name exactly, ignoring case and padding.

Errors:
    Missing or invalid parameters raise InvalidWindow (400). Data source and
    query failures propagate as DataSourceUnavailable / QueryExecutionError
    (500). The JSON bodies are produced by the handlers in labdash.main.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query

from labdash.core.dependencies import EngineDep
from labdash.models.schemas import (
    FacilityListResponse,
    FacilityPatientResponse,
    FacilityTotalResponse,
    ProvinceComparisonResponse,
    UnsatisfactoryDetailResponse,
)
from labdash.services import shaping
from labdash.services.windows import parse_window


# =============================================================================
# Module Configuration
# =============================================================================

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Facility Rankings
# =============================================================================

@router.get("/top-unsatisfactory", response_model=FacilityListResponse)
async def top_unsatisfactory(
    engine: EngineDep,
    date_from: Optional[str] = Query(default=None, alias="from"),
    date_to: Optional[str] = Query(default=None, alias="to"),
    province: Optional[str] = Query(default=None),
) -> FacilityListResponse:
    """
    Facilities with the most unsatisfactory samples in the window.

    Returns:
        FacilityListResponse; `data` is empty (not 404) when nothing matches.
    """
    window = parse_window(date_from, date_to, province=province)
    facilities = await engine.top_unsatisfactory_by_count(window, province=window.province)
    return shaping.facility_list_envelope(facilities, {
        "province": window.province or "all",
        "dateRange": window.date_range(),
    })


@router.get("/unsat-rate", response_model=FacilityListResponse)
async def unsat_rate(
    engine: EngineDep,
    date_from: Optional[str] = Query(default=None, alias="from"),
    date_to: Optional[str] = Query(default=None, alias="to"),
    province: Optional[str] = Query(default=None),
    facility_name: Optional[str] = Query(default=None),
) -> FacilityListResponse:
    """Facilities ordered by unsatisfactory rate, highest first."""
    window = parse_window(date_from, date_to, province=province, facility=facility_name)
    facilities = await engine.unsatisfactory_rate(
        window, province=window.province, facility=window.facility
    )
    return shaping.facility_list_envelope(facilities, {
        "province": window.province or "all",
        "facility_name": window.facility,
        "dateRange": window.date_range(),
    })


# =============================================================================
# Province Comparison
# =============================================================================

@router.get("/unsat-province", response_model=ProvinceComparisonResponse)
async def unsat_province(
    engine: EngineDep,
    date_from1: Optional[str] = Query(default=None, alias="dateFrom1"),
    date_to1: Optional[str] = Query(default=None, alias="dateTo1"),
    date_from2: Optional[str] = Query(default=None, alias="dateFrom2"),
    date_to2: Optional[str] = Query(default=None, alias="dateTo2"),
) -> ProvinceComparisonResponse:
    """Distinct unsatisfactory lab numbers per province for two periods."""
    window1 = parse_window(date_from1, date_to1, from_name="dateFrom1", to_name="dateTo1")
    window2 = parse_window(date_from2, date_to2, from_name="dateFrom2", to_name="dateTo2")

    rows = await engine.province_comparison(window1, window2)
    logger.info(f"unsat_province returned {len(rows)} rows")
    return ProvinceComparisonResponse(success=True, rows=rows, rowCount=len(rows))


# =============================================================================
# Single Facility
# =============================================================================

@router.get("/details-unsatisfactory", response_model=UnsatisfactoryDetailResponse)
async def details_unsatisfactory(
    engine: EngineDep,
    date_from: Optional[str] = Query(default=None, alias="from"),
    date_to: Optional[str] = Query(default=None, alias="to"),
    facility_name: Optional[str] = Query(default=None),
) -> UnsatisfactoryDetailResponse:
    window = parse_window(date_from, date_to, facility=facility_name)
    details = await engine.unsatisfactory_details(window, window.facility)
    return UnsatisfactoryDetailResponse(success=True, data=details, rowCount=len(details))


@router.get("/full-patient", response_model=FacilityPatientResponse)
async def full_patient(
    engine: EngineDep,
    date_from: Optional[str] = Query(default=None, alias="from"),
    date_to: Optional[str] = Query(default=None, alias="to"),
    facility_name: Optional[str] = Query(default=None),
) -> FacilityPatientResponse:
    window = parse_window(date_from, date_to, facility=facility_name)
    patients = await engine.facility_patient_list(window, window.facility)
    return FacilityPatientResponse(total=len(patients), rows=patients)


@router.get("/total-samples", response_model=FacilityTotalResponse)
async def total_samples(
    engine: EngineDep,
    date_from: Optional[str] = Query(default=None, alias="from"),
    date_to: Optional[str] = Query(default=None, alias="to"),
    facility_name: Optional[str] = Query(default=None),
) -> FacilityTotalResponse:
    window = parse_window(date_from, date_to, facility=facility_name)
    total = await engine.facility_total_samples(window, window.facility)
    return FacilityTotalResponse(total_samples=total)
