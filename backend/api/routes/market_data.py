"""Session data submission endpoints used by the admin panel."""

import logging

from fastapi import APIRouter

from api.deps import DbSession, MarketData
from api.exceptions import ValidationError
from articles.record import SlotName, SlotUpdate, parse_article_date
from schemas.market_data import (
    MarketDataAnalysisRequest,
    MarketDataCloseRequest,
    MarketDataResponse,
    SessionRecordResponse,
    SlotUpdateRequest,
)
from services.market_data import WorkflowResult

logger = logging.getLogger(__name__)

router = APIRouter(tags=["market-data"])


def _response(message: str, result: WorkflowResult) -> MarketDataResponse:
    return MarketDataResponse(
        message=message,
        date=result.record.date.isoformat(),
        slots=result.slots,
        created=result.created,
        ai_generated=result.ai_generated,
        notified=result.notified,
        record=SessionRecordResponse.from_record(result.record),
    )


@router.post("/market-data", response_model=MarketDataResponse)
async def update_slot(payload: SlotUpdateRequest, db: DbSession, market_data: MarketData) -> MarketDataResponse:
    """Write one slot exactly as submitted."""
    record_date = parse_article_date(payload.date)
    update = SlotUpdate(
        index=payload.index,
        change=payload.change,
        highlights=payload.highlights,
        narrative=payload.narrative,
    )
    result = await market_data.apply_update(db, record_date, payload.slot, update)
    return _response(f"{payload.slot.label} saved for {payload.date}", result)


@router.post("/market-data-analysis", response_model=MarketDataResponse)
async def submit_opening(
    payload: MarketDataAnalysisRequest, db: DbSession, market_data: MarketData
) -> MarketDataResponse:
    """Record opening figures, generate the analysis and notify the channel."""
    record_date = parse_article_date(payload.date)
    if payload.morning_open is not None and payload.afternoon_open is not None:
        raise ValidationError("Submit one opening session at a time")
    if payload.afternoon_open is not None:
        slot_name, data = SlotName.AFTERNOON_OPEN, payload.afternoon_open
    elif payload.morning_open is not None:
        slot_name, data = SlotName.MORNING_OPEN, payload.morning_open
    else:
        raise ValidationError("No opening session data provided", field="morning_open")

    result = await market_data.submit_opening(
        db, record_date, slot_name, data.index, data.change, data.highlights
    )
    return _response(f"{slot_name.label} analysis saved for {payload.date}", result)


@router.post("/market-data-close", response_model=MarketDataResponse)
async def submit_closing(
    payload: MarketDataCloseRequest, db: DbSession, market_data: MarketData
) -> MarketDataResponse:
    """Record closing figures and the session summaries."""
    record_date = parse_article_date(payload.date)
    closes = {}
    if payload.morning_close is not None:
        closes[SlotName.MORNING_CLOSE] = (payload.morning_close.index, payload.morning_close.change)
    if payload.afternoon_close is not None:
        closes[SlotName.AFTERNOON_CLOSE] = (payload.afternoon_close.index, payload.afternoon_close.change)
    if not closes:
        raise ValidationError("No closing data provided for any session", field="morning_close")

    result = await market_data.submit_closing(db, record_date, closes)
    labels = ", ".join(slot.label for slot in result.slots)
    return _response(f"{labels} saved for {payload.date}", result)
