"""In-memory model of one trading day's four session slots."""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from .errors import SlotValidationError


class Session(str, Enum):
    """Trading session within a day."""
    MORNING = "morning"
    AFTERNOON = "afternoon"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class Phase(str, Enum):
    """Whether a slot records the session open or the session close."""
    OPEN = "open"
    CLOSE = "close"


class SlotName(str, Enum):
    """The four slots of a trading day, in document order."""
    MORNING_OPEN = "morning_open"
    MORNING_CLOSE = "morning_close"
    AFTERNOON_OPEN = "afternoon_open"
    AFTERNOON_CLOSE = "afternoon_close"

    @classmethod
    def of(cls, session: Session, phase: Phase) -> "SlotName":
        return cls(f"{session.value}_{phase.value}")

    @property
    def session(self) -> Session:
        return Session(self.value.split("_")[0])

    @property
    def phase(self) -> Phase:
        return Phase(self.value.split("_")[1])

    @property
    def is_open(self) -> bool:
        return self.phase is Phase.OPEN

    @property
    def opening_slot(self) -> "SlotName":
        """The open slot of the same session."""
        return SlotName.of(self.session, Phase.OPEN)

    @property
    def label(self) -> str:
        """Human-readable name, e.g. ``Morning Session Open``."""
        return f"{self.session.display_name} Session {self.phase.value.capitalize()}"


@dataclass(frozen=True)
class SessionSlot:
    """Index reading and narrative for one slot.

    ``index`` and ``change`` are ``None`` when the slot has no numeric data.
    ``highlights`` only appears on open slots.
    """
    index: Optional[Decimal] = None
    change: Optional[Decimal] = None
    highlights: Optional[str] = None
    narrative: str = ""

    @property
    def has_reading(self) -> bool:
        return self.index is not None and self.change is not None

    @property
    def is_empty(self) -> bool:
        return not self.has_reading and not self.highlights and not self.narrative


EMPTY_SLOT = SessionSlot()


@dataclass(frozen=True)
class SessionRecord:
    """One article: a trading date and its four slots.

    Records are immutable snapshots; use :meth:`with_slot` to derive an
    updated copy.
    """
    date: date
    morning_open: SessionSlot = EMPTY_SLOT
    morning_close: SessionSlot = EMPTY_SLOT
    afternoon_open: SessionSlot = EMPTY_SLOT
    afternoon_close: SessionSlot = EMPTY_SLOT
    key_takeaways: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def empty(cls, record_date: date) -> "SessionRecord":
        return cls(date=record_date)

    def slot(self, name: SlotName) -> SessionSlot:
        return getattr(self, name.value)

    def with_slot(self, name: SlotName, slot: SessionSlot) -> "SessionRecord":
        return replace(self, **{name.value: slot})

    def slots(self) -> list[tuple[SlotName, SessionSlot]]:
        return [(name, self.slot(name)) for name in SlotName]

    @property
    def is_empty(self) -> bool:
        return all(slot.is_empty for _, slot in self.slots()) and not self.key_takeaways

    def latest_reading(self) -> tuple[Optional[SlotName], SessionSlot]:
        """Most recent slot with an index reading.

        Close readings are preferred over open readings, afternoon over
        morning, matching how article previews pick the headline figure.
        """
        for name in (
            SlotName.AFTERNOON_CLOSE,
            SlotName.MORNING_CLOSE,
            SlotName.AFTERNOON_OPEN,
            SlotName.MORNING_OPEN,
        ):
            slot = self.slot(name)
            if slot.has_reading:
                return name, slot
        return None, EMPTY_SLOT


@dataclass(frozen=True)
class SlotUpdate:
    """A partial update to a single slot.

    ``highlights`` and ``narrative`` left as ``None`` keep whatever the
    document already holds.
    """
    index: Optional[Decimal]
    change: Optional[Decimal]
    highlights: Optional[str] = None
    narrative: Optional[str] = None

    def validate(self, slot_name: SlotName) -> None:
        """Reject updates that would leave the slot without numbers."""
        if self.index is None:
            raise SlotValidationError(f"{slot_name.value}: index is required", field="index")
        if self.change is None:
            raise SlotValidationError(f"{slot_name.value}: change is required", field="change")
        if self.highlights is not None and not slot_name.is_open:
            raise SlotValidationError(
                f"{slot_name.value}: highlights are only recorded on opening sessions",
                field="highlights",
            )

    def apply(self, slot: SessionSlot) -> SessionSlot:
        """Merge this update into ``slot``."""
        return SessionSlot(
            index=self.index,
            change=self.change,
            highlights=self.highlights if self.highlights is not None else slot.highlights,
            narrative=self.narrative if self.narrative is not None else slot.narrative,
        )


def parse_article_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` slug into a date."""
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise SlotValidationError(f"'{value}' is not a YYYY-MM-DD date", field="date") from exc


def display_date(value: date) -> str:
    """Format a date the way article titles show it: ``19 September 2025``."""
    return f"{value.day} {value:%B %Y}"
