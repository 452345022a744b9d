"""Session data workflow: narratives, AI text, document updates and notifications.

The AI call always happens before the per-date lock is taken, so a slow
Gemini response never blocks updates to other slots. Gemini and Telegram
failures are logged and replaced with fallback text; they never fail the
request.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from articles.narrative import NarrativeGenerator
from articles.record import SessionRecord, SessionSlot, SlotName, SlotUpdate
from articles.store import ArticleStore, UpdateResult
from llm.gemini import GeminiClient, GeminiError
from llm.prompts import PromptLibrary
from services.article_service import article_service
from services.notifier import NotifierError, TelegramNotifier

logger = logging.getLogger(__name__)

CLOSE_SUMMARY_FALLBACK = (
    "Professional market analysis temporarily unavailable. Session data suggests "
    "mixed market conditions with intraday volatility."
)
FALLBACK_TAKEAWAYS = [
    "Market performance reflected mixed sentiment with selective sector rotation",
    "Trading patterns indicated institutional positioning for upcoming developments",
    "Technical indicators suggest continued monitoring of key support and resistance levels",
]

_BULLET_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+(.*\S)\s*$")


def two_places(value: Decimal, signed: bool = False) -> str:
    return format(value, "+.2f" if signed else ".2f")


def parse_takeaways(text: str) -> list[str]:
    """Bullet items from an AI takeaways response."""
    items = []
    for line in text.splitlines():
        match = _BULLET_RE.match(line)
        if match:
            items.append(match.group(1).strip())
    return items


def session_performance(opening: Decimal, closing: Decimal) -> tuple[str, Decimal]:
    """``("gained", points)`` or ``("lost", points)`` from open to close."""
    diff = closing - opening
    if diff < 0:
        return "lost", -diff
    return "gained", diff


@dataclass
class WorkflowResult:
    """What a submission changed."""

    record: SessionRecord
    slots: list[SlotName] = field(default_factory=list)
    created: bool = False
    ai_generated: bool = False
    notified: bool = False


class MarketDataService:
    """Orchestrates session submissions from the admin panel."""

    def __init__(
        self,
        store: ArticleStore,
        narrative: NarrativeGenerator,
        gemini: GeminiClient,
        prompts: PromptLibrary,
        notifier: TelegramNotifier,
    ) -> None:
        self.store = store
        self.narrative = narrative
        self.gemini = gemini
        self.prompts = prompts
        self.notifier = notifier

    async def _generate(self, prompt: str, purpose: str) -> str | None:
        try:
            result = await self.gemini.generate(prompt)
        except GeminiError as exc:
            logger.warning("Gemini %s unavailable, using fallback: %s", purpose, exc)
            return None
        return result.text

    async def apply_update(
        self,
        db: AsyncSession,
        record_date: date,
        slot_name: SlotName,
        update: SlotUpdate,
    ) -> WorkflowResult:
        """Write a slot update as submitted.

        An open slot without a narrative gets a sentence picked from its
        highlight codes.

        Raises:
            SlotValidationError: If the update lacks index or change.
            ArticleIOError: If the document cannot be written.
        """
        update.validate(slot_name)
        if update.narrative is None and slot_name.is_open:
            update = SlotUpdate(
                index=update.index,
                change=update.change,
                highlights=update.highlights,
                narrative=self.narrative.highlight_narrative(update.highlights or ""),
            )
        result = await self.store.update_slot(record_date, slot_name, update)
        await article_service.ensure_article(db, record_date)
        return WorkflowResult(record=result.record, slots=[slot_name], created=result.created)

    async def submit_opening(
        self,
        db: AsyncSession,
        record_date: date,
        slot_name: SlotName,
        index: Decimal | None,
        change: Decimal | None,
        highlights: str | None,
    ) -> WorkflowResult:
        """Record opening figures with an AI analysis and notify subscribers.

        Raises:
            SlotValidationError: If index or change is missing.
            ArticleIOError: If the document cannot be written.
        """
        update = SlotUpdate(index=index, change=change, highlights=highlights)
        update.validate(slot_name)

        session_type = slot_name.session.value
        prompt = self.prompts.open_analysis(
            date=record_date.isoformat(),
            session_type=session_type,
            index_value=two_places(index),
            index_change=two_places(change, signed=True),
            highlights=self.narrative.sector_highlights(highlights or ""),
        )
        analysis = await self._generate(prompt, f"{session_type} open analysis")
        ai_generated = analysis is not None

        update = SlotUpdate(
            index=index,
            change=change,
            highlights=highlights,
            narrative=analysis or self.narrative.highlight_narrative(highlights or ""),
        )
        result = await self.store.update_slot(record_date, slot_name, update)
        await article_service.ensure_article(db, record_date)

        notified = False
        try:
            notified = await self.notifier.send_market_update(
                slot_name.label,
                two_places(index),
                two_places(change, signed=True),
                record_date.isoformat(),
            )
        except NotifierError as exc:
            logger.warning("Failed to send Telegram notification: %s", exc)

        return WorkflowResult(
            record=result.record,
            slots=[slot_name],
            created=result.created,
            ai_generated=ai_generated,
            notified=notified,
        )

    async def _close_narrative(
        self,
        record_date: date,
        slot_name: SlotName,
        opening: SessionSlot,
        index: Decimal,
        change: Decimal,
    ) -> tuple[str, bool]:
        session = slot_name.session.display_name
        closed_at = f"{session} session closed at {two_places(index)} ({two_places(change, signed=True)})"
        if not opening.has_reading:
            logger.warning("No %s opening data for %s", slot_name.session.value, record_date)
            return f"<p>{closed_at}. Analysis pending opening data confirmation.</p>", False

        direction, points = session_performance(opening.index, index)
        prompt = self.prompts.close_summary(
            date=record_date.isoformat(),
            session_type=slot_name.session.value,
            opening_index=two_places(opening.index),
            opening_change=two_places(opening.change, signed=True),
            closing_index=two_places(index),
            closing_change=two_places(change, signed=True),
            session_performance=f"{direction} {two_places(points)} points",
        )
        summary = await self._generate(prompt, f"{slot_name.session.value} close summary")
        narrative = (
            f"<p>{closed_at} after {direction} {two_places(points)} points from "
            f"{two_places(opening.index)} opening. {summary or CLOSE_SUMMARY_FALLBACK}</p>"
        )
        return narrative, summary is not None

    async def _write_takeaways(self, record_date: date, index: Decimal, change: Decimal) -> UpdateResult:
        prompt = self.prompts.key_takeaways(
            date=record_date.isoformat(),
            closing_index=two_places(index),
            closing_change=two_places(change, signed=True),
        )
        text = await self._generate(prompt, "key takeaways")
        items = parse_takeaways(text) if text else []
        if not items:
            items = list(FALLBACK_TAKEAWAYS)
        return await self.store.update_takeaways(record_date, items)

    async def submit_closing(
        self,
        db: AsyncSession,
        record_date: date,
        closes: dict[SlotName, tuple[Decimal | None, Decimal | None]],
    ) -> WorkflowResult:
        """Record closing figures for one or both sessions.

        Each close is compared with the opening figures already on disk for
        its session. The afternoon close also writes the day's key
        takeaways.

        Raises:
            SlotValidationError: If any close lacks index or change. Nothing
                is written in that case.
            ArticleIOError: If the document cannot be read or written.
        """
        for slot_name, (index, change) in closes.items():
            SlotUpdate(index=index, change=change).validate(slot_name)

        record = await self.store.get(record_date)
        outcome = WorkflowResult(record=record)

        for slot_name in sorted(closes, key=list(SlotName).index):
            index, change = closes[slot_name]
            opening = record.slot(slot_name.opening_slot)
            narrative, ai_generated = await self._close_narrative(
                record_date, slot_name, opening, index, change
            )
            result = await self.store.update_slot(
                record_date,
                slot_name,
                SlotUpdate(index=index, change=change, narrative=narrative),
            )
            outcome.record = result.record
            outcome.slots.append(slot_name)
            outcome.created = outcome.created or result.created
            outcome.ai_generated = outcome.ai_generated or ai_generated

            if slot_name is SlotName.AFTERNOON_CLOSE:
                outcome.record = (await self._write_takeaways(record_date, index, change)).record

        await article_service.ensure_article(db, record_date)
        return outcome
