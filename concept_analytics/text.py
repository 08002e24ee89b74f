"""
Text normalization and raw-metadata helpers shared by the dictionary, the n-gram
extractor and record projection.
"""
from __future__ import annotations

import re
import unicodedata
from collections.abc import Mapping
from typing import Any, Iterable

_NON_WORD_RE = re.compile(r"[^a-z0-9\s-]")
_DASH_RUN_RE = re.compile(r"[_-]+")
_SPACE_RE = re.compile(r"\s+")
_YEAR_RE = re.compile(r"(19|20)\d{2}")
_PAGES_RE = re.compile(r"(\d{1,5})\s*(pages?|p\.|leaves?)")


def strip_diacritics(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_text(value: Any) -> str:
    """
    Fold text into the canonical token form used by every lookup table:
    ASCII lowercase letters and digits separated by single spaces.
    """
    if value is None:
        return ""
    s = strip_diacritics(str(value)).lower()
    s = _NON_WORD_RE.sub(" ", s)
    s = _DASH_RUN_RE.sub(" ", s)
    return _SPACE_RE.sub(" ", s).strip()


# ---------- Raw metadata helpers ----------

def to_list(value: Any) -> list[str]:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        out: list[str] = []
        for v in value:
            out.extend(to_list(v))
        return out
    text = str(value).strip()
    return [text] if text else []


def flatten_text(value: Any) -> str:
    return _SPACE_RE.sub(" ", " ".join(to_list(value))).strip()


def first_present(doc: Any, keys: Iterable[str]) -> Any:
    # First non-empty alias wins; empty lists count as absent.
    if not isinstance(doc, Mapping):
        return None
    for key in keys:
        val = doc.get(key)
        if val is None or val == "" or val == []:
            continue
        return val
    return None


def extract_year(raw: Any) -> int | None:
    if raw is None:
        return None
    m = _YEAR_RE.search(flatten_text(raw))
    return int(m.group(0)) if m else None


def parse_page_count(values: Iterable[str]) -> int | None:
    for value in values:
        m = _PAGES_RE.search(str(value).lower())
        if m:
            return int(m.group(1))
    return None
