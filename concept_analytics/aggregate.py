"""
Corpus-level analytics over DocumentRecord rows.

Every function is a pure view over the record list. Rankings are count descending
with ties broken by the key ascending, so equal inputs give identical payloads.
Co-occurrence and contingency counts come from sparse document x label incidence
matrices: a cell of A.T @ B counts the documents carrying both labels.
"""
from __future__ import annotations

import datetime as dt
from collections import Counter
from typing import Any, Callable, Iterable, Sequence

import numpy as np
import pandas as pd
from scipy import sparse
from sklearn.preprocessing import MultiLabelBinarizer

from concept_analytics.config import MATRIX_CONCEPT_LIMIT, PAIR_CONCEPT_LIMIT, TIMELINE_CONCEPT_LIMIT
from concept_analytics.domain_dictionary import DomainDictionary
from concept_analytics.lexicon import Lexicon
from concept_analytics.ngrams import maximal_phrases, tokenize
from concept_analytics.records import DocumentRecord

GAP_POOL_SIZE = 20

# ---------- Helpers ----------


def rank_counts(counts: dict[str, int], limit: int | None = None) -> list[tuple[str, int]]:
    items = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return items if limit is None else items[:limit]


def concept_id(term: str) -> str:
    return "c:" + "_".join(term.split())


def concept_sets(records: Sequence[DocumentRecord], limit: int) -> list[list[str]]:
    return [list(dict.fromkeys(r.concept_terms[:limit])) for r in records]


def incidence_matrix(label_sets: Sequence[Iterable[str]], classes: Sequence[str]) -> sparse.csr_matrix:
    """Binary documents x classes matrix; labels outside classes are ignored."""
    if not classes or not label_sets:
        return sparse.csr_matrix((len(label_sets), len(classes)), dtype=np.int64)
    allowed = set(classes)
    mlb = MultiLabelBinarizer(classes=list(classes), sparse_output=True)
    X = mlb.fit_transform([[label for label in labels if label in allowed] for labels in label_sets])
    return sparse.csr_matrix(X, dtype=np.int64)


def summary_stats(values: Iterable[int]) -> dict[str, Any]:
    arr = np.asarray(list(values), dtype=np.int64)
    if arr.size == 0:
        return {"count": 0, "min": None, "max": None, "mean": None}
    return {"count": int(arr.size), "min": int(arr.min()), "max": int(arr.max()), "mean": float(arr.mean())}


# ---------- Corpus and year statistics ----------


def corpus_stats(records: Sequence[DocumentRecord]) -> dict[str, Any]:
    return {
        "record_count": len(records),
        "overall_word_count": summary_stats(r.word_count for r in records),
        "overall_page_count": summary_stats(r.pages for r in records),
        "overall_char_count": summary_stats(r.char_count for r in records),
    }


def year_stats(records: Sequence[DocumentRecord]) -> dict[str, list[dict[str, Any]]]:
    """Per-year word and page statistics plus the page trend band; undated records are skipped."""
    rows = [{"year": r.year, "word_count": r.word_count, "pages": r.pages} for r in records if r.year is not None]
    if not rows:
        return {"by_year": [], "pages_by_year": [], "page_trend": []}
    grouped = pd.DataFrame(rows).groupby("year", sort=True)

    def describe(column: str) -> list[dict[str, Any]]:
        agg = grouped[column].agg(["count", "min", "max", "mean"]).reset_index()
        return [
            {
                "year": int(row["year"]),
                "count": int(row["count"]),
                "min": int(row["min"]),
                "max": int(row["max"]),
                "mean": float(row["mean"]),
            }
            for _, row in agg.iterrows()
        ]

    trend = grouped["pages"].agg(["median", "min", "max", "count"]).reset_index()
    page_trend = [
        {
            "year": int(row["year"]),
            "median": float(row["median"]),
            "min": int(row["min"]),
            "max": int(row["max"]),
            "count": int(row["count"]),
        }
        for _, row in trend.iterrows()
    ]
    return {"by_year": describe("word_count"), "pages_by_year": describe("pages"), "page_trend": page_trend}


def concept_length_stats(
    records: Sequence[DocumentRecord],
    limit: int | None = 25,
    concept_limit: int = TIMELINE_CONCEPT_LIMIT,
) -> list[dict[str, Any]]:
    """
    Average document length per concept. A document with k concepts gives each of
    them weight 1/k, so concept-heavy documents do not dominate any single average.
    """
    acc: dict[str, list[float]] = {}
    for record, concepts in zip(records, concept_sets(records, concept_limit)):
        if not concepts:
            continue
        weight = 1.0 / len(concepts)
        for concept in concepts:
            entry = acc.setdefault(concept, [0.0, 0.0, 0])
            entry[0] += record.word_count * weight
            entry[1] += weight
            entry[2] += 1

    rows = [
        {
            "concept": concept,
            "doc_count": int(doc_count),
            "weighted_doc_equivalent": float(weight_sum),
            "weighted_mean": float(word_sum / weight_sum) if weight_sum else None,
        }
        for concept, (word_sum, weight_sum, doc_count) in acc.items()
    ]
    rows.sort(key=lambda x: (-x["doc_count"], -(x["weighted_mean"] or 0.0), x["concept"]))
    return rows[:limit]


# ---------- Clouds ----------


def concept_cloud(
    records: Sequence[DocumentRecord],
    max_terms: int = 60,
    concept_limit: int = TIMELINE_CONCEPT_LIMIT,
) -> list[dict[str, Any]]:
    counts = Counter(c for concepts in concept_sets(records, concept_limit) for c in concepts)
    return [{"term": term, "count": int(count)} for term, count in rank_counts(counts, max_terms)]


def word_cloud(
    records: Sequence[DocumentRecord],
    max_terms: int = 70,
    lexicon: Lexicon | None = None,
) -> list[dict[str, Any]]:
    counts: Counter[str] = Counter()
    for r in records:
        text = " ".join([r.title, r.abstract, " ".join(r.subjects), r.program, r.degree])
        counts.update(tokenize(text, lexicon))
    return [{"term": term, "count": int(count)} for term, count in rank_counts(counts, max_terms)]


def ngram_cloud(
    records: Sequence[DocumentRecord],
    max_terms: int = 60,
    domain: DomainDictionary | None = None,
    lexicon: Lexicon | None = None,
) -> list[dict[str, Any]]:
    """Free-form phrase cloud: maximal 2-3 token phrases per document, summed over the corpus."""
    counts: Counter[str] = Counter()
    for r in records:
        text = " ".join([r.title, r.abstract, " ".join(r.subjects)])
        for term, count in maximal_phrases(text, domain, lexicon):
            counts[term] += count
    return [{"term": term, "count": int(count)} for term, count in rank_counts(counts, max_terms)]


def methodology_stats(records: Sequence[DocumentRecord]) -> list[dict[str, Any]]:
    counts = Counter(m for r in records for m in dict.fromkeys(r.methodologies))
    return [{"methodology": name, "count": int(count)} for name, count in rank_counts(counts)]


# ---------- Concept relations ----------


def term_cooccurrence(
    records: Sequence[DocumentRecord],
    top_n: int = 20,
    concept_limit: int = PAIR_CONCEPT_LIMIT,
) -> list[dict[str, Any]]:
    """Most frequent unordered concept pairs; each document counts a pair once."""
    label_sets = concept_sets(records, concept_limit)
    classes = sorted({c for s in label_sets for c in s})
    if len(classes) < 2:
        return []
    X = incidence_matrix(label_sets, classes)
    upper = sparse.triu(X.T @ X, k=1).tocoo()
    # classes are sorted, so row < col gives term_a < term_b
    pairs = [
        (classes[i], classes[j], int(c))
        for i, j, c in zip(upper.row.tolist(), upper.col.tolist(), upper.data.tolist())
        if c > 0
    ]
    pairs.sort(key=lambda p: (-p[2], p[0], p[1]))
    return [
        {
            "pair_id": f"{concept_id(a)}|{concept_id(b)}",
            "concept_id_a": concept_id(a),
            "concept_id_b": concept_id(b),
            "term_a": a,
            "term_b": b,
            "count": count,
        }
        for a, b, count in pairs[:top_n]
    ]


def concept_timeline(
    records: Sequence[DocumentRecord],
    top_n: int = 8,
    concept_limit: int = TIMELINE_CONCEPT_LIMIT,
) -> list[dict[str, Any]]:
    label_sets = concept_sets(records, concept_limit)
    doc_counts = Counter(c for s in label_sets for c in s)
    top = [c for c, _ in rank_counts(doc_counts, top_n)]
    top_set = set(top)

    rows = [
        {"concept": c, "year": r.year}
        for r, concepts in zip(records, label_sets)
        if r.year is not None
        for c in concepts
        if c in top_set
    ]
    series: dict[str, list[dict[str, int]]] = {c: [] for c in top}
    if rows:
        grouped = pd.DataFrame(rows).groupby(["concept", "year"], sort=True).size().reset_index(name="count")
        for _, row in grouped.iterrows():
            series[row["concept"]].append({"year": int(row["year"]), "count": int(row["count"])})
    return [{"concept": c, "total_docs": int(doc_counts[c]), "data": series[c]} for c in top]


def contingency_matrix(
    records: Sequence[DocumentRecord],
    row_values: Callable[[DocumentRecord], Iterable[str]],
    top_rows: int,
    top_concepts: int,
    concept_limit: int = MATRIX_CONCEPT_LIMIT,
) -> dict[str, Any]:
    """
    Dense row-category x concept document counts. Concept columns are ranked only
    over documents that carry at least one row value.
    """
    row_sets = [list(dict.fromkeys(v for v in row_values(r) if v)) for r in records]
    label_sets = concept_sets(records, concept_limit)

    row_counts = Counter(v for s in row_sets for v in s)
    col_counts = Counter(c for rows, concepts in zip(row_sets, label_sets) if rows for c in concepts)
    rows = [name for name, _ in rank_counts(row_counts, top_rows)]
    cols = [name for name, _ in rank_counts(col_counts, top_concepts)]

    if rows and cols:
        R = incidence_matrix(row_sets, rows)
        C = incidence_matrix(label_sets, cols)
        matrix = (R.T @ C).toarray()
    else:
        matrix = np.zeros((len(rows), len(cols)), dtype=np.int64)
    return {
        "rows": rows,
        "concepts": cols,
        "concept_ids": [concept_id(c) for c in cols],
        "matrix": [[int(v) for v in line] for line in matrix.tolist()],
    }


def supervisor_concept_matrix(
    records: Sequence[DocumentRecord],
    top_supervisors: int = 12,
    top_concepts: int = 10,
    concept_limit: int = MATRIX_CONCEPT_LIMIT,
) -> dict[str, Any]:
    result = contingency_matrix(records, lambda r: r.supervisors, top_supervisors, top_concepts, concept_limit)
    return {"supervisors": result.pop("rows"), **result}


def methodology_concept_matrix(
    records: Sequence[DocumentRecord],
    top_methodologies: int = 10,
    top_concepts: int = 10,
    concept_limit: int = MATRIX_CONCEPT_LIMIT,
) -> dict[str, Any]:
    result = contingency_matrix(records, lambda r: r.methodologies, top_methodologies, top_concepts, concept_limit)
    return {"methodologies": result.pop("rows"), **result}


def gap_score(count_a: int, count_b: int, cooccurrence: int) -> float:
    return float(count_a * count_b) / (cooccurrence + 1)


def research_gaps(
    records: Sequence[DocumentRecord],
    top_n: int = 15,
    pool_size: int = GAP_POOL_SIZE,
    concept_limit: int = PAIR_CONCEPT_LIMIT,
) -> list[dict[str, Any]]:
    """
    Pairs of popular concepts that rarely appear together, scored by
    count_a * count_b / (cooccurrence + 1) over the pool_size most common concepts.
    """
    label_sets = concept_sets(records, concept_limit)
    doc_counts = Counter(c for s in label_sets for c in s)
    pool = [c for c, _ in rank_counts(doc_counts, pool_size)]
    if len(pool) < 2:
        return []
    X = incidence_matrix(label_sets, pool)
    co = (X.T @ X).toarray()

    gaps: list[dict[str, Any]] = []
    for i in range(len(pool)):
        for j in range(i + 1, len(pool)):
            a, b = pool[i], pool[j]
            cooccurrence = int(co[i, j])
            count_a, count_b = int(doc_counts[a]), int(doc_counts[b])
            gaps.append(
                {
                    "concept_a": a,
                    "concept_b": b,
                    "count_a": count_a,
                    "count_b": count_b,
                    "cooccurrence": cooccurrence,
                    "gap_score": gap_score(count_a, count_b, cooccurrence),
                }
            )
    gaps.sort(key=lambda g: (-g["gap_score"], g["concept_a"], g["concept_b"]))
    return gaps[:top_n]


# ---------- Payload ----------


def build_metrics_payload(
    records: Sequence[DocumentRecord],
    domain: DomainDictionary | None = None,
    lexicon: Lexicon | None = None,
    subject_limit: int = 25,
    generated_at: dt.datetime | None = None,
) -> dict[str, Any]:
    records = list(records)
    stamp = (generated_at or dt.datetime.now(dt.timezone.utc)).strftime("%Y-%m-%dT%H:%M:%SZ")
    years = year_stats(records)
    return {
        "generated_at": stamp,
        "metrics": {
            **corpus_stats(records),
            "by_concept": concept_length_stats(records, limit=subject_limit),
            **years,
        },
        "documents": [r.to_dict() for r in records],
        "word_cloud": word_cloud(records, lexicon=lexicon),
        "concept_cloud": concept_cloud(records),
        "ngram_cloud": ngram_cloud(records, domain=domain, lexicon=lexicon),
        "methodologies": methodology_stats(records),
        "supervisor_concept_matrix": supervisor_concept_matrix(records),
        "term_cooccurrence": term_cooccurrence(records),
        "concept_timeline": concept_timeline(records),
        "methodology_concept_matrix": methodology_concept_matrix(records),
        "research_gaps": research_gaps(records),
    }
