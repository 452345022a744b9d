"""Markdown codec for daily session articles.

An article is a markdown file with a title, a ``## Morning Session`` and an
``## Afternoon Session`` block, and an optional ``## Key Takeaways`` list.
Each session block holds up to four ``###`` subsections: opening data,
opening analysis, closing data and closing summary.

Two heading dialects exist in the wild:

- legacy: ``### Open Set`` / ``### Close Set``
- current: ``### Market Opening Data`` / ``### Market Closing Data``

Both share ``### Open Analysis`` and ``### Close Summary``. Headings are
matched one section at a time against :data:`SECTION_RULES`, so a document
mixing the two dialects still parses. New documents are always rendered in
the current dialect; merges into an existing document reuse the dialect the
document already has and leave every unrelated line untouched.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional

from .errors import ParseError
from .record import (
    EMPTY_SLOT,
    Phase,
    Session,
    SessionRecord,
    SessionSlot,
    SlotName,
    SlotUpdate,
    display_date,
)

logger = logging.getLogger(__name__)


class Dialect(str, Enum):
    """Heading vocabulary used for the data subsections."""
    LEGACY = "legacy"
    CURRENT = "current"


class SectionKind(str, Enum):
    SESSION = "session"
    DATA = "data"
    NARRATIVE = "narrative"
    TAKEAWAYS = "takeaways"
    OTHER = "other"


@dataclass(frozen=True)
class SectionRule:
    """Maps a heading prefix to the part of the record it fills."""
    heading: str
    kind: SectionKind
    session: Optional[Session] = None
    phase: Optional[Phase] = None
    dialect: Optional[Dialect] = None

    def matches(self, line: str) -> bool:
        return line.startswith(self.heading)


SECTION_RULES: tuple[SectionRule, ...] = (
    SectionRule("## Morning Session", SectionKind.SESSION, session=Session.MORNING),
    SectionRule("## Afternoon Session", SectionKind.SESSION, session=Session.AFTERNOON),
    SectionRule("## Key Takeaways", SectionKind.TAKEAWAYS),
    SectionRule("### Open Set", SectionKind.DATA, phase=Phase.OPEN, dialect=Dialect.LEGACY),
    SectionRule("### Market Opening Data", SectionKind.DATA, phase=Phase.OPEN, dialect=Dialect.CURRENT),
    SectionRule("### Open Analysis", SectionKind.NARRATIVE, phase=Phase.OPEN),
    SectionRule("### Market Analysis", SectionKind.NARRATIVE, phase=Phase.OPEN),
    SectionRule("### Close Set", SectionKind.DATA, phase=Phase.CLOSE, dialect=Dialect.LEGACY),
    SectionRule("### Market Closing Data", SectionKind.DATA, phase=Phase.CLOSE, dialect=Dialect.CURRENT),
    SectionRule("### Close Summary", SectionKind.NARRATIVE, phase=Phase.CLOSE),
    SectionRule("### Market Summary", SectionKind.NARRATIVE, phase=Phase.CLOSE),
)

TITLE_PREFIX = "# Stock Market Analysis - "
TAKEAWAYS_HEADING = "## Key Takeaways"
SESSION_HEADINGS: dict[Session, str] = {
    Session.MORNING: "## Morning Session",
    Session.AFTERNOON: "## Afternoon Session",
}
DATA_HEADINGS: dict[tuple[Dialect, Phase], str] = {
    (Dialect.LEGACY, Phase.OPEN): "### Open Set",
    (Dialect.LEGACY, Phase.CLOSE): "### Close Set",
    (Dialect.CURRENT, Phase.OPEN): "### Market Opening Data",
    (Dialect.CURRENT, Phase.CLOSE): "### Market Closing Data",
}
NARRATIVE_HEADINGS: dict[Phase, str] = {
    Phase.OPEN: "### Open Analysis",
    Phase.CLOSE: "### Close Summary",
}

HEADING_RE = re.compile(r"^(#{1,6})\s")
INDEX_LABEL_RE = re.compile(r"^[*-]\s*(?:(?:open|close)\s+)?index\s*:", re.IGNORECASE)
# Index then parenthesised change, e.g. "1302.75 (+16.49)". Precision is not
# bounded on purpose.
INDEX_VALUE_RE = re.compile(r"([+-]?\d+\.?\d*)\s*\(\s*([+-]?\d+\.?\d*)\s*\)")
HIGHLIGHTS_RE = re.compile(r"^[*-]\s*highlights\s*:\s?(.*)$", re.IGNORECASE)
SEPARATOR_RE = re.compile(r"^(?:<hr\s*/?>|-{3,}|\*{3,}|_{3,})$", re.IGNORECASE)
BULLET_RE = re.compile(r"^[-*]\s+(.*)$")


# ---------------------------------------------------------------------------
# Line helpers
# ---------------------------------------------------------------------------


def parse_index_line(line: str) -> Optional[tuple[Decimal, Decimal]]:
    """Extract ``(index, change)`` from a line such as ``1302.75 (+16.49)``.

    Returns None when the line holds no index/change pair.
    """
    match = INDEX_VALUE_RE.search(line)
    if not match:
        return None
    try:
        return Decimal(match.group(1)), Decimal(match.group(2))
    except InvalidOperation:
        return None


def format_index(value: Decimal) -> str:
    return format(value, "f")


def format_change(value: Decimal) -> str:
    """Signed change, always with an explicit ``+`` or ``-``."""
    return format(value, "+f")


def format_index_line(phase: Phase, index: Decimal, change: Decimal) -> str:
    label = "Open Index" if phase is Phase.OPEN else "Close Index"
    return f"* {label}: {format_index(index)} ({format_change(change)})"


def _is_blank(line: str) -> bool:
    return not line.strip()


def _is_filler(line: str) -> bool:
    """Blank lines and separators carry layout, not content."""
    stripped = line.strip()
    return not stripped or bool(SEPARATOR_RE.match(stripped))


def _is_label(line: str) -> bool:
    return bool(INDEX_LABEL_RE.match(line) or HIGHLIGHTS_RE.match(line))


def _is_highlights_continuation(line: str) -> bool:
    return bool(line) and not _is_label(line) and not BULLET_RE.match(line) \
        and not SEPARATOR_RE.match(line) and not HEADING_RE.match(line)


def _escape_highlights_line(line: str) -> str:
    """Continuation line as written under ``* Highlights:``.

    Lines that would otherwise read as a bullet, label, separator or heading
    get a leading backslash.
    """
    stripped = line.strip()
    if not stripped:
        return ""
    if stripped.startswith("\\") or not _is_highlights_continuation(stripped):
        return "\\" + stripped
    return stripped


def _unescape_highlights_line(line: str) -> str:
    return line[1:] if line.startswith("\\") else line


def _section_text(body: list[str]) -> str:
    """Join a section body, dropping layout lines at both edges."""
    start, end = 0, len(body)
    while start < end and _is_filler(body[start]):
        start += 1
    while end > start and _is_filler(body[end - 1]):
        end -= 1
    return "\n".join(line.rstrip("\r\n") for line in body[start:end]).strip()


# ---------------------------------------------------------------------------
# Section scanning
# ---------------------------------------------------------------------------


@dataclass
class _Section:
    rule: Optional[SectionRule]
    level: int
    session: Optional[Session]
    start: int
    end: int

    @property
    def kind(self) -> SectionKind:
        return self.rule.kind if self.rule else SectionKind.OTHER

    @property
    def slot(self) -> Optional[SlotName]:
        if self.rule is None or self.rule.phase is None or self.session is None:
            return None
        return SlotName.of(self.session, self.rule.phase)


def _match_rule(line: str) -> Optional[SectionRule]:
    for rule in SECTION_RULES:
        if rule.matches(line):
            return rule
    return None


def _scan(lines: list[str]) -> list[_Section]:
    """Split ``lines`` at every markdown heading.

    Each section runs from its heading to the next heading of any level.
    Subsections inherit the session of the enclosing ``##`` heading.
    """
    sections: list[_Section] = []
    session: Optional[Session] = None
    for i, raw in enumerate(lines):
        line = raw.strip()
        match = HEADING_RE.match(line)
        if not match:
            continue
        level = len(match.group(1))
        rule = _match_rule(line)
        if rule is not None and rule.kind is SectionKind.SESSION:
            session = rule.session
        elif level <= 2:
            session = None
        if sections:
            sections[-1].end = i
        sections.append(_Section(rule, level, session, i, len(lines)))
    return sections


def _block_end(sections: list[_Section], section: _Section, total: int) -> int:
    """End of a ``##`` block: the next heading of level 2 or above."""
    for other in sections:
        if other.start > section.start and other.level <= 2:
            return other.start
    return total


def _last(
    sections: list[_Section],
    kind: SectionKind,
    slot: Optional[SlotName] = None,
    session: Optional[Session] = None,
) -> Optional[_Section]:
    found = None
    for section in sections:
        if section.kind is not kind:
            continue
        if slot is not None and section.slot is not slot:
            continue
        if session is not None and section.rule.session is not session:
            continue
        found = section
    return found


def _document_dialect(sections: list[_Section]) -> Dialect:
    for section in sections:
        if section.rule is not None and section.rule.dialect is not None and section.slot:
            return section.rule.dialect
    return Dialect.CURRENT


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


@dataclass
class _SlotParts:
    index: Optional[Decimal] = None
    change: Optional[Decimal] = None
    highlights: Optional[str] = None
    leftover: str = ""
    narrative: str = ""

    def to_slot(self) -> SessionSlot:
        narrative = "\n\n".join(part for part in (self.leftover, self.narrative) if part)
        return SessionSlot(
            index=self.index,
            change=self.change,
            highlights=self.highlights,
            narrative=narrative,
        )


def _read_data_section(body: list[str], parts: _SlotParts, phase: Phase) -> None:
    parts.index = parts.change = parts.highlights = None
    highlights: list[str] = []
    leftovers: list[str] = []
    in_highlights = False

    for raw in body:
        line = raw.strip()
        if not line:
            if in_highlights:
                highlights.append("")
            continue
        if SEPARATOR_RE.match(line):
            in_highlights = False
            continue
        if INDEX_LABEL_RE.match(line):
            in_highlights = False
            reading = parse_index_line(line)
            if reading is None:
                logger.debug("Unreadable index line: %r", line)
                continue
            parts.index, parts.change = reading
            continue
        match = HIGHLIGHTS_RE.match(line)
        if match:
            # Close sections carried a highlights line in old templates; it is
            # not part of the close slot.
            if phase is Phase.OPEN:
                highlights = [match.group(1).strip()]
                in_highlights = True
            continue
        if in_highlights and _is_highlights_continuation(line):
            highlights.append(_unescape_highlights_line(line))
            continue
        in_highlights = False
        leftovers.append(line)

    text = "\n".join(highlights).strip()
    parts.highlights = text or None
    parts.leftover = "\n".join(leftovers)


def _read_takeaways(body: list[str]) -> tuple[str, ...]:
    items = []
    for raw in body:
        match = BULLET_RE.match(raw.strip())
        if match and match.group(1).strip():
            items.append(match.group(1).strip())
    return tuple(items)


def parse_document(text: str, record_date: date, source: Optional[str] = None) -> SessionRecord:
    """Parse article markdown into a :class:`SessionRecord`.

    Slots whose numeric line is missing or unreadable keep empty numbers;
    that never aborts the parse. Blank text yields an empty record.

    Raises:
        ParseError: If the text has content but neither an article title
            nor a recognizable session or takeaways heading.
    """
    lines = text.splitlines()
    sections = _scan(lines)
    structural = [s for s in sections if s.kind in (SectionKind.SESSION, SectionKind.TAKEAWAYS)]
    titled = any(line.strip().startswith(TITLE_PREFIX) for line in lines)
    if not structural and not titled:
        if text.strip():
            raise ParseError("no session headings found", source)
        return SessionRecord.empty(record_date)

    parts: dict[SlotName, _SlotParts] = {}
    takeaways: tuple[str, ...] = ()

    for section in sections:
        body = lines[section.start + 1:section.end]
        if section.kind is SectionKind.TAKEAWAYS:
            takeaways = _read_takeaways(body)
            continue
        slot = section.slot
        if slot is None:
            continue
        slot_parts = parts.setdefault(slot, _SlotParts())
        if section.kind is SectionKind.DATA:
            _read_data_section(body, slot_parts, slot.phase)
        elif section.kind is SectionKind.NARRATIVE:
            slot_parts.narrative = _section_text(body)

    record = SessionRecord(date=record_date, key_takeaways=takeaways)
    for slot, slot_parts in parts.items():
        record = record.with_slot(slot, slot_parts.to_slot())
    return record


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _data_lines(slot_name: SlotName, slot: SessionSlot) -> list[str]:
    lines = []
    if slot.has_reading:
        lines.append(format_index_line(slot_name.phase, slot.index, slot.change))
    if slot_name.is_open and slot.highlights:
        first, *rest = slot.highlights.strip().split("\n")
        lines.append(f"* Highlights: {first}")
        lines.extend(_escape_highlights_line(line) for line in rest)
    return lines


def _narrative_lines(narrative: str) -> list[str]:
    return narrative.strip().split("\n")


def _data_block(slot_name: SlotName, slot: SessionSlot, dialect: Dialect) -> list[str]:
    data = _data_lines(slot_name, slot)
    if not data:
        return []
    return [DATA_HEADINGS[(dialect, slot_name.phase)], *data]


def _slot_block(slot_name: SlotName, slot: SessionSlot, dialect: Dialect) -> list[str]:
    block = _data_block(slot_name, slot, dialect)
    if slot.narrative.strip():
        if block:
            block.append("")
        block.append(NARRATIVE_HEADINGS[slot_name.phase])
        block.extend(_narrative_lines(slot.narrative))
    return block


def _takeaway_lines(items: list[str] | tuple[str, ...]) -> list[str]:
    return [f"- {item.strip()}" for item in items if item.strip()]


def render_document(record: SessionRecord, dialect: Dialect = Dialect.CURRENT) -> str:
    """Render a full document for ``record``.

    Output is deterministic; empty slots and empty sessions are omitted.
    """
    lines = [f"{TITLE_PREFIX}{display_date(record.date)}", ""]
    for session in Session:
        blocks = []
        for phase in Phase:
            slot_name = SlotName.of(session, phase)
            block = _slot_block(slot_name, record.slot(slot_name), dialect)
            if block:
                blocks.append(block)
        if not blocks:
            continue
        lines.extend([SESSION_HEADINGS[session], ""])
        for block in blocks:
            lines.extend(block)
            lines.append("")
    takeaways = _takeaway_lines(record.key_takeaways)
    if takeaways:
        lines.extend([TAKEAWAYS_HEADING, "", *takeaways, ""])
    return "\n".join(lines).rstrip("\n") + "\n"


# ---------------------------------------------------------------------------
# Merging into existing documents
# ---------------------------------------------------------------------------


@dataclass
class _Edit:
    start: int
    end: int
    lines: list[str] = field(default_factory=list)


def _eol(lines: list[str]) -> list[str]:
    return [line + "\n" for line in lines]


def _content_end(lines: list[str], start: int, end: int) -> int:
    """Index just past the last non-layout line in ``lines[start:end]``."""
    for i in range(end - 1, start - 1, -1):
        if not _is_filler(lines[i]):
            return i + 1
    return start


def _insert_after(lines: list[str], pos: int, block: list[str]) -> _Edit:
    chunk = ["\n", *_eol(block)]
    if pos < len(lines) and not _is_blank(lines[pos]):
        chunk.append("\n")
    return _Edit(pos, pos, chunk)


def _insert_before(lines: list[str], pos: int, block: list[str]) -> _Edit:
    chunk = []
    if pos > 0 and not _is_blank(lines[pos - 1]):
        chunk.append("\n")
    chunk.extend(_eol(block))
    chunk.append("\n")
    return _Edit(pos, pos, chunk)


def _split_layout(body: list[str]) -> tuple[list[str], list[str], list[str]]:
    """Split a section body into leading blanks, content and trailing layout."""
    start, end = 0, len(body)
    while start < end and _is_blank(body[start]):
        start += 1
    while end > start and _is_filler(body[end - 1]):
        end -= 1
    return body[:start], body[start:end], body[end:]


def _with_ending(new_line: str, old_line: str) -> str:
    ending = old_line[len(old_line.rstrip("\r\n")):]
    return new_line + (ending or "\n")


def _merge_data_body(body: list[str], slot_name: SlotName, update: SlotUpdate) -> list[str]:
    out = list(body)
    index_line = format_index_line(slot_name.phase, update.index, update.change)

    position = next((i for i, line in enumerate(out) if INDEX_LABEL_RE.match(line.strip())), None)
    if position is None:
        leading, _, _ = _split_layout(out)
        position = len(leading)
        out.insert(position, index_line + "\n")
    else:
        out[position] = _with_ending(index_line, out[position])

    if slot_name.is_open and update.highlights is not None:
        new_lines = _eol(_data_lines(slot_name, SessionSlot(highlights=update.highlights)))
        start = next((i for i, line in enumerate(out) if HIGHLIGHTS_RE.match(line.strip())), None)
        if start is None:
            out[position + 1:position + 1] = new_lines
        else:
            stop = start + 1
            for j in range(start + 1, len(out)):
                line = out[j].strip()
                if not line:
                    continue
                if not _is_highlights_continuation(line):
                    break
                stop = j + 1
            out[start:stop] = new_lines
    return out


def _replace_narrative(body: list[str], narrative: str, at_eof: bool) -> list[str]:
    leading, _, trailing = _split_layout(body)
    if not trailing and not at_eof:
        trailing = ["\n"]
    return [*leading, *_eol(_narrative_lines(narrative)), *trailing]


def _apply(lines: list[str], edits: list[_Edit]) -> str:
    out = list(lines)
    for edit in sorted(edits, key=lambda e: (e.start, e.end), reverse=True):
        out[edit.start:edit.end] = edit.lines
    for i in range(len(out) - 1):
        if not out[i].endswith(("\n", "\r")):
            out[i] += "\n"
    return "".join(out)


def _place_new_slot(
    lines: list[str],
    sections: list[_Section],
    slot_name: SlotName,
    block: list[str],
) -> _Edit:
    """Insert a block for a slot that has no section yet, in canonical order."""
    session = slot_name.session
    session_section = _last(sections, SectionKind.SESSION, session=session)

    if session_section is not None:
        block_end = _block_end(sections, session_section, len(lines))
        if slot_name.is_open:
            for section in sections:
                if (
                    session_section.start < section.start < block_end
                    and section.rule is not None
                    and section.rule.phase is Phase.CLOSE
                ):
                    return _insert_before(lines, section.start, block)
        pos = _content_end(lines, session_section.start, block_end)
        return _insert_after(lines, pos, block)

    session_block = [SESSION_HEADINGS[session], "", *block]
    for section in sections:
        if section.kind is SectionKind.TAKEAWAYS or (
            session is Session.MORNING
            and section.kind is SectionKind.SESSION
            and section.rule.session is Session.AFTERNOON
        ):
            return _insert_before(lines, section.start, session_block)
    return _insert_after(lines, _content_end(lines, 0, len(lines)), session_block)


def merge_slot(text: str, record_date: date, slot_name: SlotName, update: SlotUpdate) -> str:
    """Apply ``update`` to one slot of an existing document.

    Only the slot's index line, its highlights line (when ``update`` carries
    highlights) and its narrative (when ``update`` carries one) change.
    Sections that do not exist yet are inserted in canonical order using the
    document's own heading dialect. A blank ``text`` produces a new document.

    Raises:
        SlotValidationError: If the update lacks index or change.
    """
    update.validate(slot_name)
    if not text.strip():
        record = SessionRecord.empty(record_date).with_slot(slot_name, update.apply(EMPTY_SLOT))
        return render_document(record)

    lines = text.splitlines(keepends=True)
    sections = _scan(lines)
    dialect = _document_dialect(sections)
    data = _last(sections, SectionKind.DATA, slot=slot_name)
    narrative = _last(sections, SectionKind.NARRATIVE, slot=slot_name)
    new_narrative = update.narrative.strip() if update.narrative is not None else None
    edits: list[_Edit] = []

    if narrative is not None and new_narrative is not None:
        body = lines[narrative.start + 1:narrative.end]
        edits.append(_Edit(
            narrative.start + 1,
            narrative.end,
            _replace_narrative(body, new_narrative, narrative.end == len(lines)),
        ))

    if data is not None:
        body = _merge_data_body(lines[data.start + 1:data.end], slot_name, update)
        if narrative is None and new_narrative:
            leading, content, trailing = _split_layout(body)
            if not trailing and data.end < len(lines):
                trailing = ["\n"]
            narrative_block = [NARRATIVE_HEADINGS[slot_name.phase], *_narrative_lines(new_narrative)]
            body = [*leading, *content, "\n", *_eol(narrative_block), *trailing]
        elif data.end < len(lines) and (not body or not _is_blank(body[-1])):
            body.append("\n")
        edits.append(_Edit(data.start + 1, data.end, body))
        return _apply(lines, edits)

    slot = SessionSlot(index=update.index, change=update.change, highlights=update.highlights)
    if narrative is not None:
        edits.append(_insert_before(lines, narrative.start, _data_block(slot_name, slot, dialect)))
        return _apply(lines, edits)

    slot = SessionSlot(
        index=update.index,
        change=update.change,
        highlights=update.highlights,
        narrative=new_narrative or "",
    )
    edits.append(_place_new_slot(lines, sections, slot_name, _slot_block(slot_name, slot, dialect)))
    return _apply(lines, edits)


def merge_takeaways(text: str, record_date: date, items: list[str]) -> str:
    """Replace the ``## Key Takeaways`` list, appending the section if absent."""
    bullets = _takeaway_lines(items)
    if not text.strip():
        record = SessionRecord(date=record_date, key_takeaways=tuple(items))
        return render_document(record)

    lines = text.splitlines(keepends=True)
    sections = _scan(lines)
    existing = _last(sections, SectionKind.TAKEAWAYS)
    if existing is None:
        edit = _insert_after(
            lines,
            _content_end(lines, 0, len(lines)),
            [TAKEAWAYS_HEADING, "", *bullets],
        )
        return _apply(lines, [edit])

    body = lines[existing.start + 1:existing.end]
    leading, _, trailing = _split_layout(body)
    if not leading:
        leading = ["\n"]
    if not trailing and existing.end < len(lines):
        trailing = ["\n"]
    return _apply(lines, [_Edit(existing.start + 1, existing.end, [*leading, *_eol(bullets), *trailing])])
