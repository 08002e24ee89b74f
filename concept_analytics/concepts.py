from __future__ import annotations

import json
import logging
import pathlib
from dataclasses import dataclass, field
from typing import Any, Iterable

from concept_analytics.domain_dictionary import DomainDictionary, default_domain_dictionary
from concept_analytics.lexicon import Lexicon, default_lexicon
from concept_analytics.ngrams import extract_ngrams
from concept_analytics.text import normalize_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConceptDictionary:
    canonical_set: frozenset[str] = frozenset()
    variant_to_canonical: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConceptDictionary":
        canonical_set = frozenset(
            str(c["canonical"]).strip()
            for c in data.get("concepts") or []
            if isinstance(c, dict) and isinstance(c.get("canonical"), str) and c["canonical"].strip()
        )
        variant_map: dict[str, str] = {}
        raw_map = data.get("variantToCanonical") or {}
        if isinstance(raw_map, dict):
            for variant, canonical in raw_map.items():
                key = normalize_text(variant)
                if not key or not isinstance(canonical, str) or not canonical.strip():
                    continue
                variant_map.setdefault(key, canonical.strip())
        return cls(canonical_set=canonical_set, variant_to_canonical=variant_map)

    def resolve(self, term: str) -> str | None:
        if term in self.variant_to_canonical:
            return self.variant_to_canonical[term]
        return term if term in self.canonical_set else None

    def __bool__(self) -> bool:
        return bool(self.canonical_set or self.variant_to_canonical)


def load_concept_dictionary(path: str | pathlib.Path | None) -> ConceptDictionary:
    """
    Read {concepts: [{canonical}], variantToCanonical: {...}}. A missing or broken
    file gives an empty dictionary so analytics degrade instead of failing.
    """
    if path is None:
        return ConceptDictionary()
    path = pathlib.Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.warning("Concept dictionary not found at %s; no concepts will resolve", path)
        return ConceptDictionary()
    except (OSError, ValueError) as e:
        logger.warning("Could not read concept dictionary %s: %s", path, e)
        return ConceptDictionary()
    if not isinstance(data, dict):
        logger.warning("Concept dictionary %s is not a JSON object", path)
        return ConceptDictionary()
    return ConceptDictionary.from_dict(data)


def concept_terms(
    title: str,
    abstract: str,
    subjects: Iterable[str],
    limit: int,
    concept_dictionary: ConceptDictionary,
    domain: DomainDictionary | None = None,
    lexicon: Lexicon | None = None,
) -> list[str]:
    """
    Canonical concepts found in a document, 2-token phrases before 3-token ones,
    unique and capped at limit.
    """
    if limit <= 0 or not concept_dictionary:
        return []
    domain = domain or default_domain_dictionary()
    lexicon = lexicon or default_lexicon()
    text = " ".join([title or "", abstract or "", " ".join(subjects)])
    seen: set[str] = set()
    result: list[str] = []
    for n in (2, 3):
        for ngram in extract_ngrams(text, n, domain, lexicon):
            # second pass folds variants that only line up once the phrase is isolated
            term = domain.canonicalize(ngram)
            if not term:
                continue
            canonical = concept_dictionary.resolve(term)
            if canonical is None or canonical in seen:
                continue
            seen.add(canonical)
            result.append(canonical)
            if len(result) >= limit:
                return result
    return result
