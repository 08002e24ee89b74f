"""
Variant-to-canonical phrase rewriting.

A static phrase table is compiled in; a second table is read from the concept
dictionary file (its variantToCanonical object) and refreshed at most once per
reload interval. Both tables are indexed by first token with the longest variants
first, and the dynamic table is consulted before the static one.
"""
from __future__ import annotations

import functools
import json
import logging
import pathlib
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping

from concept_analytics.config import load_settings
from concept_analytics.text import normalize_text

logger = logging.getLogger(__name__)

DOMAIN_DICTIONARY: list[dict[str, Any]] = [
    {
        "canonical": "higher education",
        "variants": ["post-secondary education", "postsecondary education", "tertiary education", "university education"],
    },
    {"canonical": "doctoral education", "variants": ["doctoral studies", "doctoral programs"]},
    {
        "canonical": "teacher education",
        "variants": ["preservice teacher education", "pre-service teacher education", "initial teacher education"],
    },
    {"canonical": "educational leadership", "variants": ["school leadership", "leadership in education", "education leadership"]},
    {"canonical": "educational policy", "variants": ["education policy", "policy in education", "educational policymaking"]},
    {"canonical": "indigenous education", "variants": ["first nations education", "aboriginal education", "indigenous pedagogy"]},
    {"canonical": "decolonization", "variants": ["decolonisation", "decolonizing", "decolonising"]},
    {
        "canonical": "equity diversity inclusion",
        "variants": ["edi", "equity, diversity, and inclusion", "diversity equity inclusion"],
    },
    {"canonical": "inclusive education", "variants": ["inclusion in education", "inclusive pedagogy", "inclusive schooling"]},
    {"canonical": "curriculum", "variants": ["curriculum development", "curricular design", "curricular"]},
    {"canonical": "assessment", "variants": ["student assessment", "learning assessment", "evaluation"]},
    {
        "canonical": "professional learning",
        "variants": ["professional development", "teacher professional development", "continuing professional learning"],
    },
    {"canonical": "online learning", "variants": ["e-learning", "elearning", "digital learning", "remote learning"]},
    {"canonical": "international students", "variants": ["foreign students", "overseas students"]},
    {"canonical": "mental health", "variants": ["mental illness", "psychological wellbeing", "psychological well-being"]},
    {"canonical": "british columbia", "variants": ["bc", "b.c.", "province of british columbia"]},
    {"canonical": "university of british columbia", "variants": ["ubc", "the university of british columbia"]},
    {"canonical": "doctor of education", "variants": ["edd", "ed.d."]},
]


@dataclass(frozen=True)
class PhraseRule:
    variant_tokens: tuple[str, ...]
    canonical_tokens: tuple[str, ...]

    def __post_init__(self):
        if not self.variant_tokens:
            raise ValueError("PhraseRule needs at least one variant token")

    def matches(self, words: list[str], start: int) -> bool:
        end = start + len(self.variant_tokens)
        if end > len(words):
            return False
        return tuple(words[start:end]) == self.variant_tokens


class PhraseTable:
    """Rules bucketed by first variant token, longest variant first within a bucket."""

    def __init__(self, rules: Iterable[PhraseRule] = ()):
        buckets: dict[str, list[PhraseRule]] = {}
        # sorted() is stable, so equal-length rules keep table order
        for rule in sorted(rules, key=lambda r: len(r.variant_tokens), reverse=True):
            buckets.setdefault(rule.variant_tokens[0], []).append(rule)
        self._buckets: dict[str, tuple[PhraseRule, ...]] = {k: tuple(v) for k, v in buckets.items()}
        self._size = sum(len(v) for v in self._buckets.values())

    def candidates(self, token: str) -> tuple[PhraseRule, ...]:
        return self._buckets.get(token, ())

    def __len__(self) -> int:
        return self._size


EMPTY_TABLE = PhraseTable()


def rule_from_pair(variant: str, canonical: str) -> PhraseRule | None:
    nv = normalize_text(variant)
    nc = normalize_text(canonical)
    if not nv or not nc:
        return None
    return PhraseRule(tuple(nv.split(" ")), tuple(nc.split(" ")))


def rules_from_entries(entries: Iterable[Mapping[str, Any]]) -> list[PhraseRule]:
    rules: list[PhraseRule] = []
    for entry in entries:
        canonical = entry.get("canonical")
        if not normalize_text(canonical):
            continue
        # The canonical spelling is registered as a variant of itself.
        for variant in [canonical, *(entry.get("variants") or [])]:
            rule = rule_from_pair(variant, canonical)
            if rule is not None:
                rules.append(rule)
    return rules


def rules_from_variant_map(variant_map: Mapping[str, Any]) -> list[PhraseRule]:
    rules: list[PhraseRule] = []
    for variant, canonical in variant_map.items():
        if not isinstance(canonical, str):
            continue
        rule = rule_from_pair(variant, canonical)
        if rule is not None:
            rules.append(rule)
    return rules


class DynamicOverlay:
    """
    Time-gated owner of the runtime phrase table.

    get_active_rules() re-reads the file when the last attempt is older than
    reload_seconds. A replacement table is built completely before it is published,
    so readers see either the old table or the new one. Failed reads keep the
    previous table.
    """

    def __init__(
        self,
        path: str | pathlib.Path | None,
        reload_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.path = pathlib.Path(path) if path else None
        self.reload_seconds = float(reload_seconds)
        self._clock = clock
        self._table = EMPTY_TABLE
        self._attempted_at: float | None = None
        self._lock = threading.Lock()

    def _stale(self, now: float) -> bool:
        return self._attempted_at is None or now - self._attempted_at >= self.reload_seconds

    def get_active_rules(self) -> PhraseTable:
        now = self._clock()
        if self._stale(now):
            with self._lock:
                if self._stale(now):
                    self._attempted_at = now
                    table = self._read_table()
                    if table is not None:
                        self._table = table
        return self._table

    def _read_table(self) -> PhraseTable | None:
        if self.path is None:
            return None
        try:
            parsed = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            logger.debug("No dynamic phrase overlay at %s", self.path)
            return None
        except (OSError, ValueError) as e:
            logger.warning("Keeping previous phrase overlay; could not read %s: %s", self.path, e)
            return None
        variant_map = parsed.get("variantToCanonical") if isinstance(parsed, dict) else None
        if not isinstance(variant_map, dict):
            logger.warning("Keeping previous phrase overlay; %s has no variantToCanonical object", self.path)
            return None
        table = PhraseTable(rules_from_variant_map(variant_map))
        logger.info("Loaded %d dynamic phrase rules from %s", len(table), self.path)
        return table


class DomainDictionary:
    def __init__(
        self,
        entries: Iterable[Mapping[str, Any]] | None = None,
        overlay: DynamicOverlay | None = None,
    ):
        self.static_table = PhraseTable(rules_from_entries(DOMAIN_DICTIONARY if entries is None else entries))
        self.overlay = overlay

    def canonicalize(self, text: Any) -> str:
        normalized = normalize_text(text)
        if not normalized:
            return ""
        words = normalized.split(" ")
        dynamic = self.overlay.get_active_rules() if self.overlay is not None else EMPTY_TABLE

        out: list[str] = []
        i = 0
        while i < len(words):
            matched: PhraseRule | None = None
            for rule in (*dynamic.candidates(words[i]), *self.static_table.candidates(words[i])):
                if rule.matches(words, i):
                    matched = rule
                    break
            if matched is not None:
                out.extend(matched.canonical_tokens)
                i += len(matched.variant_tokens)
            else:
                out.append(words[i])
                i += 1
        return " ".join(out)


@functools.lru_cache(maxsize=1)
def default_domain_dictionary() -> DomainDictionary:
    settings = load_settings()
    overlay = DynamicOverlay(settings.overlay_path, reload_seconds=settings.overlay_reload_seconds)
    return DomainDictionary(overlay=overlay)
