"""
FastAPI router modules for received and screened sample counts.

Two routers share the same handlers, differing only in specimen category:

- received_router (mounted under /api/sample-receive): `received` code set
- screened_router (mounted under /api/sample-screened): `screened` code set

Key Endpoints (on each router):
- GET /monthly-labno-count?from&to&province: Counts per calendar month
- GET /cumulative-all-province?from&to: Window totals per reporting province

Both envelopes echo the request (type, spectypes, province, dateRange) and
carry a summary of totalRecords / totalSamples / totalLabNo. An empty window
returns zeroed totals with HTTP 200.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query

from labdash.core.dependencies import EngineDep
from labdash.models.enums import SpecimenCategory
from labdash.models.schemas import CumulativeReportResponse, MonthlyReportResponse
from labdash.services.windows import parse_window


logger = logging.getLogger(__name__)


def build_sample_router(category: SpecimenCategory) -> APIRouter:
    """Create the monthly/cumulative router for one specimen category."""
    router = APIRouter()

    @router.get("/monthly-labno-count", response_model=MonthlyReportResponse)
    async def monthly_labno_count(
        engine: EngineDep,
        date_from: Optional[str] = Query(default=None, alias="from"),
        date_to: Optional[str] = Query(default=None, alias="to"),
        province: Optional[str] = Query(default=None),
    ) -> MonthlyReportResponse:
        window = parse_window(date_from, date_to, province=province)
        report = await engine.monthly_report(window, category, province=window.province)
        logger.info(
            f"{category.value} monthly count {window.raw_from}..{window.raw_to} "
            f"province={window.province or 'all'}: {len(report.monthlyData)} months"
        )
        return report

    @router.get("/cumulative-all-province", response_model=CumulativeReportResponse)
    async def cumulative_all_province(
        engine: EngineDep,
        date_from: Optional[str] = Query(default=None, alias="from"),
        date_to: Optional[str] = Query(default=None, alias="to"),
    ) -> CumulativeReportResponse:
        window = parse_window(date_from, date_to)
        report = await engine.cumulative_report(window, category)
        logger.info(
            f"{category.value} cumulative count {window.raw_from}..{window.raw_to}: "
            f"{len(report.cumulativeData)} provinces"
        )
        return report

    return router


received_router = build_sample_router(SpecimenCategory.RECEIVED)
screened_router = build_sample_router(SpecimenCategory.SCREENED)
