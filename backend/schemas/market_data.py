"""Request and response models for session data submission."""

from decimal import Decimal

from pydantic import BaseModel, Field

from articles.record import SessionRecord, SessionSlot, SlotName


class SlotUpdateRequest(BaseModel):
    """Direct update of one slot.

    ``narrative`` is written as given; when omitted on an open slot a
    sentence is generated from ``highlights``.
    """
    date: str = Field(..., description="Trading date, YYYY-MM-DD")
    slot: SlotName
    index: Decimal | None = None
    change: Decimal | None = None
    highlights: str | None = None
    narrative: str | None = None


class SessionData(BaseModel):
    index: Decimal | None = None
    change: Decimal | None = None
    highlights: str | None = None


class MarketDataAnalysisRequest(BaseModel):
    """Opening figures for one session; exactly one session is expected."""
    date: str
    morning_open: SessionData | None = None
    afternoon_open: SessionData | None = None


class MarketDataCloseRequest(BaseModel):
    """Closing figures for one or both sessions."""
    date: str
    morning_close: SessionData | None = None
    afternoon_close: SessionData | None = None


class SlotResponse(BaseModel):
    index: float | None = None
    change: float | None = None
    highlights: str | None = None
    narrative: str = ""

    @classmethod
    def from_slot(cls, slot: SessionSlot) -> "SlotResponse":
        return cls(
            index=float(slot.index) if slot.index is not None else None,
            change=float(slot.change) if slot.change is not None else None,
            highlights=slot.highlights,
            narrative=slot.narrative,
        )


class SessionRecordResponse(BaseModel):
    date: str
    morning_open: SlotResponse
    morning_close: SlotResponse
    afternoon_open: SlotResponse
    afternoon_close: SlotResponse
    key_takeaways: list[str] = []

    @classmethod
    def from_record(cls, record: SessionRecord) -> "SessionRecordResponse":
        return cls(
            date=record.date.isoformat(),
            key_takeaways=list(record.key_takeaways),
            **{name.value: SlotResponse.from_slot(slot) for name, slot in record.slots()},
        )


class MarketDataResponse(BaseModel):
    success: bool = True
    message: str
    date: str
    slots: list[SlotName]
    created: bool = False
    ai_generated: bool = False
    notified: bool = False
    record: SessionRecordResponse
