"""Turn numeric highlight codes into readable narrative sentences.

Admins enter highlights as signed numbers such as ``+68 +61 +64``. The last
digit of a number selects a group of phrases from the phrase table, and one
phrase from the group is picked at random.
"""

import json
import logging
import random
import re
from importlib import resources
from pathlib import Path
from typing import Mapping, Optional, Sequence, Union

logger = logging.getLogger(__name__)

NO_HIGHLIGHTS_SENTENCE = "No specific market-moving highlights were noted in this session."
NO_PHRASES_SENTENCE = "General market activity was observed without a distinct focus."

NUMBER_RE = re.compile(r"[+-]?(\d+)")
GROUP_SEPARATOR_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)

PhraseTable = Mapping[str, Sequence[str]]


def load_phrase_table(path: Optional[Union[str, Path]] = None) -> dict[str, list[str]]:
    """Load the digit -> phrases table.

    Args:
        path: JSON file to read. Defaults to the table packaged with
            :mod:`articles`.

    Returns:
        Mapping of ``"0"``..``"9"`` to lists of phrases. Keys whose value is
        not a list of strings are dropped.
    """
    if path is None:
        raw = resources.files("articles").joinpath("data/highlight_phrases.json").read_text(encoding="utf-8")
        source = "packaged phrase table"
    else:
        raw = Path(path).read_text(encoding="utf-8")
        source = str(path)

    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"{source}: expected a JSON object")

    table: dict[str, list[str]] = {}
    for key, phrases in data.items():
        if not isinstance(phrases, list) or not all(isinstance(p, str) for p in phrases):
            logger.warning("Ignoring phrase group %r in %s: not a list of strings", key, source)
            continue
        table[str(key)] = list(phrases)

    logger.info("Loaded %d phrase groups from %s", len(table), source)
    return table


class NarrativeGenerator:
    """Pick narrative phrases for highlight codes.

    The table is read-only after construction so one generator can be shared
    between concurrent requests. Pass ``rng`` to make selection
    deterministic in tests.
    """

    def __init__(self, phrases: PhraseTable, rng: Optional[random.Random] = None):
        self._phrases = {key: tuple(values) for key, values in phrases.items()}
        self._rng = rng or random.Random()

    @classmethod
    def from_file(cls, path: Optional[Union[str, Path]] = None, rng: Optional[random.Random] = None):
        return cls(load_phrase_table(path), rng=rng)

    def phrases_for(self, key: str) -> tuple[str, ...]:
        return self._phrases.get(key, ())

    @staticmethod
    def key_for(raw: str) -> Optional[str]:
        """Last digit of the first number in ``raw``, or None."""
        match = NUMBER_RE.search(raw or "")
        if not match:
            return None
        return match.group(1)[-1]

    def highlight_narrative(self, raw: str) -> str:
        """One sentence for the first number in ``raw``.

        Never raises; falls back to a fixed sentence when ``raw`` holds no
        number or the table has no phrases for the digit.
        """
        key = self.key_for(raw)
        if key is None:
            return NO_HIGHLIGHTS_SENTENCE
        phrases = self.phrases_for(key)
        if not phrases:
            return NO_PHRASES_SENTENCE
        return self._rng.choice(phrases)

    def sector_highlights(self, raw: str) -> str:
        """One phrase per ``<br>``-separated group, joined by blank lines.

        Used to give the AI prompt readable sector context. Returns ``raw``
        unchanged when no group maps to a phrase.
        """
        selected = []
        for group in GROUP_SEPARATOR_RE.split(raw or ""):
            key = self.key_for(group)
            if key is None:
                continue
            phrases = self.phrases_for(key)
            if phrases:
                selected.append(self._rng.choice(phrases))
        if not selected:
            return raw
        return "\n\n".join(selected)
