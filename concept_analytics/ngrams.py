"""
Tokenization and n-gram extraction over canonicalized text.
"""
from __future__ import annotations

import re
from collections import Counter
from typing import Any

from concept_analytics.domain_dictionary import DomainDictionary, default_domain_dictionary
from concept_analytics.lexicon import Lexicon, default_lexicon

_TOKEN_CHARS_RE = re.compile(r"[^a-z0-9\s-]")


def tokenize(text: Any, lexicon: Lexicon | None = None) -> list[str]:
    """Single-word tokens for word clouds and theme terms; no phrase rewriting."""
    lexicon = lexicon or default_lexicon()
    cleaned = _TOKEN_CHARS_RE.sub(" ", str(text or "").lower())
    return [t for t in cleaned.split() if not lexicon.is_noise_word(t)]


def top_terms(text: Any, limit: int = 10, lexicon: Lexicon | None = None) -> list[str]:
    counts = Counter(tokenize(text, lexicon))
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return [term for term, _ in ranked[:limit]]


def is_low_signal_phrase(phrase: str, lexicon: Lexicon | None = None) -> bool:
    lexicon = lexicon or default_lexicon()
    tokens = str(phrase or "").split()
    if len(tokens) < 2:
        return True
    if any(t in lexicon.low_signal_anywhere_tokens for t in tokens):
        return True
    if tokens[-1] in lexicon.low_signal_head_tokens:
        return True
    if tokens[0] in lexicon.blocked_first_tokens:
        return True
    return any(rule.matches(tokens) for rule in lexicon.composite_rules)


def extract_ngrams(
    text: Any,
    n: int,
    domain: DomainDictionary | None = None,
    lexicon: Lexicon | None = None,
) -> list[str]:
    """
    All n-token windows of the canonicalized text that contain no noise word and
    are not low-signal. Duplicates are kept in order.
    """
    domain = domain or default_domain_dictionary()
    lexicon = lexicon or default_lexicon()
    words = domain.canonicalize(text).split()
    ngrams: list[str] = []
    for i in range(len(words) - n + 1):
        window = words[i:i + n]
        if any(lexicon.is_noise_word(w) for w in window):
            continue
        phrase = " ".join(window)
        if is_low_signal_phrase(phrase, lexicon):
            continue
        ngrams.append(phrase)
    return ngrams


def _is_subsequence(short: tuple[str, ...], long: tuple[str, ...]) -> bool:
    size = len(short)
    return any(long[start:start + size] == short for start in range(len(long) - size + 1))


def maximal_phrases(
    text: Any,
    domain: DomainDictionary | None = None,
    lexicon: Lexicon | None = None,
    max_tokens: int = 3,
) -> list[tuple[str, int]]:
    """
    Per-document phrase counts for the n-gram cloud.

    2-, 3- and 4-grams are counted, then a phrase is dropped when it sits inside a
    longer phrase that was kept (longest first). Kept phrases longer than
    max_tokens are not emitted.
    """
    lexicon = lexicon or default_lexicon()
    counts: Counter[str] = Counter()
    for n in (2, 3, 4):
        counts.update(extract_ngrams(text, n, domain, lexicon))

    entries = sorted(
        ((tuple(term.split(" ")), term, count) for term, count in counts.items()),
        key=lambda e: (-len(e[0]), -e[2], e[1]),
    )
    kept: list[tuple[tuple[str, ...], str, int]] = []
    for tokens, term, count in entries:
        if any(len(k[0]) > len(tokens) and _is_subsequence(tokens, k[0]) for k in kept):
            continue
        kept.append((tokens, term, count))

    return [
        (term, count)
        for tokens, term, count in kept
        if len(tokens) <= max_tokens and not is_low_signal_phrase(term, lexicon)
    ]
