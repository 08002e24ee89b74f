"""
Stop words and low-signal block-lists.

The lists are hand-tuned against the thesis corpus and live in data/lexicon.json so
they can be edited (or replaced with CONCEPTS_LEXICON_PATH) without touching the
matching code.
"""
from __future__ import annotations

import functools
import json
import logging
import pathlib
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

PACKAGED_LEXICON_PATH = pathlib.Path(__file__).resolve().parent / "data" / "lexicon.json"


@dataclass(frozen=True)
class CompositeRule:
    first: str
    heads: frozenset[str]

    def matches(self, tokens: list[str]) -> bool:
        return bool(tokens) and tokens[0] == self.first and tokens[-1] in self.heads


@dataclass(frozen=True)
class Lexicon:
    stop_words: frozenset[str]
    low_signal_head_tokens: frozenset[str]
    low_signal_anywhere_tokens: frozenset[str]
    blocked_first_tokens: frozenset[str]
    composite_rules: tuple[CompositeRule, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Lexicon":
        rules = tuple(
            CompositeRule(first=str(r["first"]), heads=frozenset(str(h) for h in r.get("heads", [])))
            for r in data.get("composite_rules", [])
            if isinstance(r, dict) and r.get("first")
        )
        return cls(
            stop_words=frozenset(data.get("stop_words", [])),
            low_signal_head_tokens=frozenset(data.get("low_signal_head_tokens", [])),
            low_signal_anywhere_tokens=frozenset(data.get("low_signal_anywhere_tokens", [])),
            blocked_first_tokens=frozenset(data.get("blocked_first_tokens", [])),
            composite_rules=rules,
        )

    def is_noise_word(self, word: str) -> bool:
        return len(word) < 4 or word in self.stop_words or word.isdigit()


def load_lexicon(path: str | pathlib.Path | None = None) -> Lexicon:
    """
    Load a lexicon file. An unreadable override falls back to the packaged lists;
    the packaged file itself is expected to be present.
    """
    if path is not None:
        override = pathlib.Path(path).expanduser()
        try:
            data = json.loads(override.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("lexicon root must be an object")
            return Lexicon.from_dict(data)
        except (OSError, ValueError) as e:
            logger.warning("Could not load lexicon override %s (%s); using packaged lexicon", override, e)
    return default_lexicon()


@functools.lru_cache(maxsize=1)
def default_lexicon() -> Lexicon:
    return Lexicon.from_dict(json.loads(PACKAGED_LEXICON_PATH.read_text(encoding="utf-8")))
