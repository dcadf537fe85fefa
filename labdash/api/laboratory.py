"""
FastAPI router module for the laboratory summary card.

Key Endpoints (mounted under /api/laboratory):
- GET /card-summary?dateFrom&dateTo: received / screened / unsatisfactory totals

Both dates omitted selects the current calendar month. Supplying only one of
them is rejected.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query

from labdash.core.dependencies import EngineDep
from labdash.models.enums import CardSummaryScope
from labdash.models.schemas import CardSummaryFilters, CardSummaryResponse
from labdash.services.windows import parse_window


logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/card-summary", response_model=CardSummaryResponse)
async def card_summary(
    engine: EngineDep,
    date_from: Optional[str] = Query(default=None, alias="dateFrom"),
    date_to: Optional[str] = Query(default=None, alias="dateTo"),
) -> CardSummaryResponse:
    """
    Summary card totals.

    Returns:
        CardSummaryResponse with `filters.type` 'custom' for an explicit range
        or 'current_month' when no range was supplied.
    """
    if date_from or date_to:
        window = parse_window(date_from, date_to, from_name="dateFrom", to_name="dateTo")
        filters = CardSummaryFilters(
            type=CardSummaryScope.CUSTOM.value,
            dateFrom=window.raw_from,
            dateTo=window.raw_to,
        )
    else:
        window = None
        filters = CardSummaryFilters(type=CardSummaryScope.CURRENT_MONTH.value)

    summary = await engine.card_summary(window)
    return CardSummaryResponse(
        success=True,
        data=summary,
        filters=filters,
        timestamp=datetime.now(),
    )
