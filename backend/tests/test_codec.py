"""Tests for the article markdown codec."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from articles.codec import (
    Dialect,
    merge_slot,
    merge_takeaways,
    parse_document,
    parse_index_line,
    render_document,
)
from articles.errors import ParseError, SlotValidationError
from articles.record import SessionRecord, SessionSlot, SlotName, SlotUpdate

DAY = date(2025, 9, 19)

LEGACY_DOC = """\
# Stock Market Analysis - 19 September 2025

Intro paragraph written by hand.

## Morning Session

### Open Set
* Open Index: 1285.31 (+5.15)
* Highlights: +68 +61 +64

### Open Analysis
<p>Morning analysis.</p>

<hr>

## Editor Notes

Keep this paragraph exactly.
"""


def _full_record() -> SessionRecord:
    return SessionRecord(
        date=DAY,
        morning_open=SessionSlot(
            index=Decimal("1302.75"),
            change=Decimal("16.49"),
            highlights="+68 +61 +64",
            narrative="<p>Banks led the open.</p>\n\n<p>Energy lagged.</p>",
        ),
        morning_close=SessionSlot(
            index=Decimal("1298.10"),
            change=Decimal("-4.65"),
            narrative="<p>Morning session closed lower.</p>",
        ),
        afternoon_open=SessionSlot(
            index=Decimal("1300.00"),
            change=Decimal("1.90"),
            highlights="+12 +45<br>\n+33",
            narrative="Afternoon opened flat.",
        ),
        afternoon_close=SessionSlot(
            index=Decimal("1310.5"),
            change=Decimal("0"),
            narrative="Closed at the highs.",
        ),
        key_takeaways=("Banks outperformed", "Foreign inflows continued"),
    )


# ---------------------------------------------------------------------------
# Index line extraction
# ---------------------------------------------------------------------------


class TestParseIndexLine:

    @pytest.mark.parametrize(
        "line, expected",
        [
            ("* Open Index: 1302.75 (+16.49)", (Decimal("1302.75"), Decimal("16.49"))),
            ("* Close Index: 1290.00 (-2.50)", (Decimal("1290.00"), Decimal("-2.50"))),
            ("* Index: 1295.80 (+5.15) points", (Decimal("1295.80"), Decimal("5.15"))),
            ("1300 (-5)", (Decimal("1300"), Decimal("-5"))),
            ("1301.123 ( +0.004 )", (Decimal("1301.123"), Decimal("0.004"))),
        ],
    )
    def test_extracts_index_and_change(self, line, expected):
        assert parse_index_line(line) == expected

    def test_sign_round_trips(self):
        index, change = parse_index_line("* Close Index: 1290.00 (-2.50)")
        assert change < 0

    @pytest.mark.parametrize("line", ["* Open Index: n/a", "* Open Index: 1302.75", ""])
    def test_returns_none_without_pair(self, line):
        assert parse_index_line(line) is None


# ---------------------------------------------------------------------------
# Rendering and parsing
# ---------------------------------------------------------------------------


class TestRender:

    def test_renders_current_dialect(self):
        record = SessionRecord.empty(DAY).with_slot(
            SlotName.MORNING_OPEN,
            SessionSlot(
                index=Decimal("1302.75"),
                change=Decimal("16.49"),
                highlights="+68 +61 +64",
                narrative="Opening analysis.",
            ),
        )

        assert render_document(record) == (
            "# Stock Market Analysis - 19 September 2025\n"
            "\n"
            "## Morning Session\n"
            "\n"
            "### Market Opening Data\n"
            "* Open Index: 1302.75 (+16.49)\n"
            "* Highlights: +68 +61 +64\n"
            "\n"
            "### Open Analysis\n"
            "Opening analysis.\n"
        )

    def test_empty_record_renders_title_only(self):
        assert render_document(SessionRecord.empty(DAY)) == "# Stock Market Analysis - 19 September 2025\n"

    def test_negative_change_keeps_sign(self):
        record = SessionRecord.empty(DAY).with_slot(
            SlotName.AFTERNOON_CLOSE,
            SessionSlot(index=Decimal("1290.00"), change=Decimal("-2.50")),
        )
        text = render_document(record)
        assert "## Afternoon Session" in text
        assert "### Market Closing Data\n* Close Index: 1290.00 (-2.50)\n" in text
        assert "## Morning Session" not in text

    def test_render_is_deterministic(self):
        assert render_document(_full_record()) == render_document(_full_record())


class TestRoundTrip:

    def test_parse_of_render_is_identity(self):
        record = _full_record()
        assert parse_document(render_document(record), DAY) == record

    def test_round_trip_through_legacy_dialect(self):
        record = _full_record()
        assert parse_document(render_document(record, Dialect.LEGACY), DAY) == record

    def test_partial_record_round_trips(self):
        record = SessionRecord.empty(DAY).with_slot(
            SlotName.MORNING_CLOSE,
            SessionSlot(index=Decimal("1298.10"), change=Decimal("-4.65")),
        )
        assert parse_document(render_document(record), DAY) == record

    @pytest.mark.parametrize(
        "highlights",
        [
            "+68 +61\n\n-12 -15",
            "+68 +61\n- Banks led",
            "Banks firm\n* Index: heavy\n---\n# not a heading\n\\raw",
        ],
    )
    def test_multi_line_highlights_round_trip(self, highlights):
        slot = SessionSlot(
            index=Decimal("1300.00"),
            change=Decimal("+1.00"),
            highlights=highlights,
            narrative="Afternoon view.",
        )
        record = SessionRecord.empty(DAY).with_slot(SlotName.AFTERNOON_OPEN, slot)

        assert parse_document(render_document(record), DAY) == record

    def test_bullet_like_highlight_line_is_escaped(self):
        slot = SessionSlot(index=Decimal("1"), change=Decimal("1"), highlights="+68\n- Banks led")
        text = render_document(SessionRecord.empty(DAY).with_slot(SlotName.MORNING_OPEN, slot))
        assert "* Highlights: +68\n\\- Banks led\n" in text


class TestParse:

    def test_blank_text_is_empty_record(self):
        assert parse_document("", DAY) == SessionRecord.empty(DAY)
        assert parse_document("  \n\n", DAY).is_empty

    def test_text_without_headings_raises(self):
        with pytest.raises(ParseError):
            parse_document("Just some notes about the market.\n", DAY)

    def test_title_only_document_is_empty(self):
        assert parse_document("# Stock Market Analysis - 19 September 2025\n", DAY).is_empty

    def test_legacy_document(self):
        record = parse_document(LEGACY_DOC, DAY)

        slot = record.morning_open
        assert slot.index == Decimal("1285.31")
        assert slot.change == Decimal("5.15")
        assert slot.highlights == "+68 +61 +64"
        assert slot.narrative == "<p>Morning analysis.</p>"
        assert record.morning_close.is_empty
        assert record.afternoon_open.is_empty

    def test_dialects_parse_identically(self):
        record = _full_record()
        legacy = render_document(record, Dialect.LEGACY)
        current = render_document(record, Dialect.CURRENT)

        assert legacy != current
        assert parse_document(legacy, DAY) == parse_document(current, DAY)

    def test_mixed_dialects_in_one_document(self):
        text = (
            "## Morning Session\n\n"
            "### Open Set\n* Open Index: 1285.31 (+5.15)\n\n"
            "### Market Closing Data\n* Close Index: 1290.00 (-2.50)\n"
        )
        record = parse_document(text, DAY)
        assert record.morning_open.index == Decimal("1285.31")
        assert record.morning_close.change == Decimal("-2.50")

    def test_alternative_narrative_headings(self):
        text = (
            "## Afternoon Session\n\n"
            "### Market Opening Data\n* Open Index: 1300 (+1)\n\n"
            "### Market Analysis\nAnalysis text.\n\n"
            "### Market Closing Data\n* Close Index: 1305 (+6)\n\n"
            "### Market Summary\nSummary text.\n"
        )
        record = parse_document(text, DAY)
        assert record.afternoon_open.narrative == "Analysis text."
        assert record.afternoon_close.narrative == "Summary text."

    def test_unreadable_index_leaves_numbers_empty(self):
        text = "## Morning Session\n\n### Open Set\n* Open Index: pending\n* Highlights: +68\n"
        slot = parse_document(text, DAY).morning_open
        assert slot.index is None
        assert slot.change is None
        assert slot.highlights == "+68"

    def test_multi_line_highlights(self):
        text = (
            "## Morning Session\n\n"
            "### Open Set\n"
            "* Open Index: 1285.31 (+5.15)\n"
            "* Highlights: Banks firm <br><br> +68 +61\n"
            "Energy steady\n"
        )
        assert parse_document(text, DAY).morning_open.highlights == "Banks firm <br><br> +68 +61\nEnergy steady"

    def test_highlights_on_close_section_are_ignored(self):
        text = "## Morning Session\n\n### Close Set\n* Close Index: 1290 (-2)\n* Highlights: +11\n"
        assert parse_document(text, DAY).morning_close.highlights is None

    def test_unlabelled_data_lines_join_narrative(self):
        text = (
            "## Morning Session\n\n"
            "### Close Set\n"
            "* Close Index: 1290 (-2)\n"
            "Volume was light.\n\n"
            "### Close Summary\n"
            "Closed lower.\n"
        )
        assert parse_document(text, DAY).morning_close.narrative == "Volume was light.\n\nClosed lower."

    def test_repeated_slot_uses_last_occurrence(self):
        text = (
            "## Morning Session\n\n### Open Set\n* Open Index: 1280 (+1)\n\n"
            "## Morning Session\n\n### Open Set\n* Open Index: 1290 (+11)\n"
        )
        assert parse_document(text, DAY).morning_open.index == Decimal("1290")

    def test_unknown_section_ends_session(self):
        text = (
            "## Morning Session\n\n### Open Set\n* Open Index: 1280 (+1)\n\n"
            "## Editor Notes\n\n### Close Set\n* Close Index: 1.00 (+1.00)\n"
        )
        record = parse_document(text, DAY)
        assert record.morning_open.index == Decimal("1280")
        assert record.morning_close.is_empty

    def test_key_takeaways_accept_both_bullet_styles(self):
        text = "## Key Takeaways\n\n- First point\n* Second point\n\nTrailing prose.\n"
        assert parse_document(text, DAY).key_takeaways == ("First point", "Second point")


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------


class TestMergeSlot:

    def test_blank_document_gets_rendered(self):
        update = SlotUpdate(index=Decimal("1302.75"), change=Decimal("16.49"), highlights="+68")
        text = merge_slot("", DAY, SlotName.MORNING_OPEN, update)

        expected = SessionRecord.empty(DAY).with_slot(
            SlotName.MORNING_OPEN,
            SessionSlot(index=Decimal("1302.75"), change=Decimal("16.49"), highlights="+68"),
        )
        assert text == render_document(expected)

    def test_updating_index_changes_only_that_line(self):
        update = SlotUpdate(index=Decimal("1300.5"), change=Decimal("20.34"))
        text = merge_slot(LEGACY_DOC, DAY, SlotName.MORNING_OPEN, update)

        assert text == LEGACY_DOC.replace(
            "* Open Index: 1285.31 (+5.15)", "* Open Index: 1300.5 (+20.34)"
        )

    def test_replacing_highlights_and_narrative(self):
        update = SlotUpdate(
            index=Decimal("1285.31"),
            change=Decimal("5.15"),
            highlights="+12 +34",
            narrative="<p>Rewritten.</p>",
        )
        text = merge_slot(LEGACY_DOC, DAY, SlotName.MORNING_OPEN, update)

        expected = (
            LEGACY_DOC
            .replace("* Highlights: +68 +61 +64", "* Highlights: +12 +34")
            .replace("<p>Morning analysis.</p>", "<p>Rewritten.</p>")
        )
        assert text == expected

    def test_replacing_multi_line_highlights(self):
        first = SlotUpdate(index=Decimal("1300"), change=Decimal("1"), highlights="+68\n\n- Banks led")
        text = merge_slot("", DAY, SlotName.MORNING_OPEN, first)
        assert parse_document(text, DAY).morning_open.highlights == "+68\n\n- Banks led"

        second = SlotUpdate(index=Decimal("1300"), change=Decimal("1"), highlights="+12")
        text = merge_slot(text, DAY, SlotName.MORNING_OPEN, second)

        assert "Banks led" not in text
        assert parse_document(text, DAY).morning_open.highlights == "+12"

    def test_inserting_close_keeps_surrounding_content(self):
        update = SlotUpdate(
            index=Decimal("1290.00"),
            change=Decimal("-2.50"),
            narrative="<p>Closed lower.</p>",
        )
        text = merge_slot(LEGACY_DOC, DAY, SlotName.MORNING_CLOSE, update)

        assert text == LEGACY_DOC.replace(
            "<p>Morning analysis.</p>\n",
            "<p>Morning analysis.</p>\n"
            "\n"
            "### Close Set\n"
            "* Close Index: 1290.00 (-2.50)\n"
            "\n"
            "### Close Summary\n"
            "<p>Closed lower.</p>\n",
        )
        record = parse_document(text, DAY)
        assert record.morning_close.change == Decimal("-2.50")
        assert record.morning_open == parse_document(LEGACY_DOC, DAY).morning_open

    def test_new_session_is_appended_after_existing_content(self):
        update = SlotUpdate(index=Decimal("1301"), change=Decimal("2"), highlights="+45")
        text = merge_slot(LEGACY_DOC, DAY, SlotName.AFTERNOON_OPEN, update)

        assert text.startswith(LEGACY_DOC)
        assert "### Open Set\n* Open Index: 1301 (+2)\n* Highlights: +45\n" in text[len(LEGACY_DOC):]
        assert parse_document(text, DAY).afternoon_open.highlights == "+45"

    def test_morning_session_goes_before_afternoon(self):
        doc = render_document(
            SessionRecord.empty(DAY).with_slot(
                SlotName.AFTERNOON_OPEN,
                SessionSlot(index=Decimal("1300"), change=Decimal("1")),
            )
        )
        text = merge_slot(doc, DAY, SlotName.MORNING_OPEN, SlotUpdate(index=Decimal("1290"), change=Decimal("-1")))

        assert text.index("## Morning Session") < text.index("## Afternoon Session")
        record = parse_document(text, DAY)
        assert record.morning_open.index == Decimal("1290")
        assert record.afternoon_open.index == Decimal("1300")

    def test_open_is_inserted_before_existing_close(self):
        doc = render_document(
            SessionRecord.empty(DAY).with_slot(
                SlotName.MORNING_CLOSE,
                SessionSlot(index=Decimal("1295"), change=Decimal("3"), narrative="Summary."),
            )
        )
        text = merge_slot(doc, DAY, SlotName.MORNING_OPEN, SlotUpdate(index=Decimal("1290"), change=Decimal("-2")))

        assert text.index("### Market Opening Data") < text.index("### Market Closing Data")
        record = parse_document(text, DAY)
        assert record.morning_open.index == Decimal("1290")
        assert record.morning_close.narrative == "Summary."

    def test_narrative_is_added_to_existing_data_section(self):
        doc = "## Morning Session\n\n### Close Set\n* Close Index: 1290 (-2)\n\n## Afternoon Session\n"
        update = SlotUpdate(index=Decimal("1291"), change=Decimal("-1"), narrative="Summary.")
        text = merge_slot(doc, DAY, SlotName.MORNING_CLOSE, update)

        assert text == (
            "## Morning Session\n\n### Close Set\n* Close Index: 1291 (-1)\n\n"
            "### Close Summary\nSummary.\n\n## Afternoon Session\n"
        )

    def test_merge_uses_document_dialect(self):
        update = SlotUpdate(index=Decimal("1290"), change=Decimal("1"))
        text = merge_slot(LEGACY_DOC, DAY, SlotName.AFTERNOON_CLOSE, update)
        assert "### Close Set\n* Close Index: 1290 (+1)" in text
        assert "Market Closing Data" not in text

    def test_merge_into_repeated_slot_edits_last_occurrence(self):
        doc = (
            "## Morning Session\n\n### Open Set\n* Open Index: 1280 (+1)\n\n"
            "## Morning Session\n\n### Open Set\n* Open Index: 1290 (+11)\n"
        )
        text = merge_slot(doc, DAY, SlotName.MORNING_OPEN, SlotUpdate(index=Decimal("1295"), change=Decimal("16")))

        assert "* Open Index: 1280 (+1)" in text
        assert "* Open Index: 1290 (+11)" not in text
        assert parse_document(text, DAY).morning_open.index == Decimal("1295")

    def test_document_without_trailing_newline(self):
        doc = "## Morning Session\n\n### Open Set\n* Open Index: 1280 (+1)"
        text = merge_slot(doc, DAY, SlotName.MORNING_CLOSE, SlotUpdate(index=Decimal("1282"), change=Decimal("2")))

        record = parse_document(text, DAY)
        assert record.morning_open.index == Decimal("1280")
        assert record.morning_close.index == Decimal("1282")

    @pytest.mark.parametrize(
        "update",
        [
            SlotUpdate(index=None, change=Decimal("1")),
            SlotUpdate(index=Decimal("1"), change=None),
        ],
    )
    def test_incomplete_update_is_rejected(self, update):
        with pytest.raises(SlotValidationError):
            merge_slot(LEGACY_DOC, DAY, SlotName.MORNING_OPEN, update)

    def test_highlights_rejected_on_close(self):
        update = SlotUpdate(index=Decimal("1"), change=Decimal("1"), highlights="+11")
        with pytest.raises(SlotValidationError) as exc_info:
            merge_slot(LEGACY_DOC, DAY, SlotName.MORNING_CLOSE, update)
        assert exc_info.value.field == "highlights"


class TestMergeTakeaways:

    def test_appends_then_replaces(self):
        text = merge_takeaways(LEGACY_DOC, DAY, ["Banks led", "Volume thin"])
        assert text.startswith(LEGACY_DOC)
        assert parse_document(text, DAY).key_takeaways == ("Banks led", "Volume thin")

        text = merge_takeaways(text, DAY, ["Only point"])
        assert parse_document(text, DAY).key_takeaways == ("Only point",)
        assert "Banks led" not in text
        assert text.startswith(LEGACY_DOC)

    def test_blank_document(self):
        text = merge_takeaways("", DAY, ["One"])
        assert text == "# Stock Market Analysis - 19 September 2025\n\n## Key Takeaways\n\n- One\n"
