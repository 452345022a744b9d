"""Prompt templates for session analysis, close summaries and takeaways.

Templates are plain text files with ``{placeholder}`` fields. They are read
from ``PROMPTS_DIR`` when configured, else from the templates packaged with
:mod:`llm`, and cached in a :class:`~articles.cache.TemplateCache`. When a
template cannot be read, a built-in fallback prompt is used instead.
"""

import logging
from importlib import resources
from pathlib import Path
from typing import Optional, Union

from articles.cache import TemplateCache

logger = logging.getLogger(__name__)

OPEN_ANALYSIS = "open_analysis"
CLOSE_SUMMARY = "close_summary"
KEY_TAKEAWAYS = "key_takeaways"

FALLBACK_TEMPLATES: dict[str, str] = {
    OPEN_ANALYSIS: (
        "Generate professional Thai stock market {session_type} session analysis for {date}:\n"
        "Index: {index_value} ({index_change})\n"
        "Key Highlights: {highlights}\n\n"
        "Provide engaging analysis covering market sentiment, technical outlook, and recommendations.\n"
        "Write in English, keep under 300 words, format as 3-4 paragraphs."
    ),
    CLOSE_SUMMARY: (
        "Generate brief Thai stock market {session_type} session summary for {date}:\n"
        "Opening: {opening_index} ({opening_change})\n"
        "Closing: {closing_index} ({closing_change})\n"
        "Session: {session_performance}\n\n"
        "Provide concise analysis covering session performance, sentiment, technical outlook, and recommendations.\n"
        "Write in English, keep under 200 words, format as 3-4 paragraphs."
    ),
    KEY_TAKEAWAYS: (
        "Generate key takeaways for Thai stock market trading day {date}:\n\n"
        "Final Index: {closing_index} with total daily change of {closing_change} points\n\n"
        "Provide 3-5 key takeaways in English as bullet points starting with a dash (-)."
    ),
}


def fill(template: str, values: dict[str, str]) -> str:
    """Substitute ``{name}`` fields, leaving any other braces untouched."""
    for name, value in values.items():
        template = template.replace("{" + name + "}", value)
    return template


class PromptLibrary:
    """Loads, caches and fills prompt templates.

    Args:
        cache: Template cache shared with the rest of the application.
        prompts_dir: Optional directory overriding the packaged templates.
    """

    def __init__(self, cache: TemplateCache, prompts_dir: Optional[Union[str, Path]] = None):
        self.cache = cache
        self.prompts_dir = Path(prompts_dir) if prompts_dir else None

    def _read(self, name: str) -> str:
        filename = f"{name}.txt"
        if self.prompts_dir is not None:
            return (self.prompts_dir / filename).read_text(encoding="utf-8")
        return resources.files("llm").joinpath(f"templates/{filename}").read_text(encoding="utf-8")

    def template(self, name: str) -> str:
        """Return the template text for ``name``, or its fallback."""
        try:
            return self.cache.get_or_load(name, lambda: self._read(name))
        except OSError as exc:
            logger.warning("Could not load prompt template %s, using fallback: %s", name, exc)
            return FALLBACK_TEMPLATES[name]

    def render(self, name: str, **values: str) -> str:
        return fill(self.template(name), values)

    def open_analysis(
        self,
        date: str,
        session_type: str,
        index_value: str,
        index_change: str,
        highlights: str,
    ) -> str:
        return self.render(
            OPEN_ANALYSIS,
            date=date,
            session_type=session_type,
            open_or_close="opening",
            index_value=index_value,
            index_change=index_change,
            highlights=highlights,
        )

    def close_summary(
        self,
        date: str,
        session_type: str,
        opening_index: str,
        opening_change: str,
        closing_index: str,
        closing_change: str,
        session_performance: str,
    ) -> str:
        return self.render(
            CLOSE_SUMMARY,
            date=date,
            session_type=session_type,
            opening_index=opening_index,
            opening_change=opening_change,
            closing_index=closing_index,
            closing_change=closing_change,
            session_performance=session_performance,
        )

    def key_takeaways(self, date: str, closing_index: str, closing_change: str) -> str:
        return self.render(
            KEY_TAKEAWAYS,
            date=date,
            closing_index=closing_index,
            closing_change=closing_change,
        )
