#!/usr/bin/env python3
"""
Audit a generated concept metrics payload (Output/analytics/metrics.json).

This is a lightweight sanity check intended to catch regressions in the aggregation views:
- Missing payload sections or record counts that disagree with the documents list
- Concept lists that repeat terms or exceed the per-record cap
- Co-occurrence pairs that are unordered, unsorted or carry mismatched ids
- Gap scores that do not match count_a * count_b / (cooccurrence + 1)
- Contingency matrices whose shape disagrees with their row/column labels

Usage:
  python3 -m concept_analytics.audit_payload [path/to/metrics.json]
"""

from __future__ import annotations

import json
import math
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

from concept_analytics.aggregate import concept_id, gap_score
from concept_analytics.config import RECORD_CONCEPT_LIMIT

OUTPUT_ROOT = "Output"
DEFAULT_PAYLOAD = os.path.join(OUTPUT_ROOT, "analytics", "metrics.json")

REQUIRED_SECTIONS = (
    "metrics",
    "documents",
    "word_cloud",
    "concept_cloud",
    "ngram_cloud",
    "methodologies",
    "supervisor_concept_matrix",
    "term_cooccurrence",
    "concept_timeline",
    "methodology_concept_matrix",
    "research_gaps",
)


@dataclass(frozen=True)
class Finding:
    kind: str
    path: str
    detail: str


def _is_ranked(items: list[Any], key) -> bool:
    keys = [key(x) for x in items]
    return all(a <= b for a, b in zip(keys, keys[1:]))


def audit_sections(payload: dict[str, Any]) -> list[Finding]:
    findings: list[Finding] = []
    for section in REQUIRED_SECTIONS:
        if section not in payload:
            findings.append(Finding("payload.missing_section", section, "Section not present"))
    docs = payload.get("documents")
    metrics = payload.get("metrics")
    if isinstance(docs, list) and isinstance(metrics, dict):
        count = metrics.get("record_count")
        if count != len(docs):
            findings.append(Finding("metrics.record_count", "metrics.record_count", f"Expected {len(docs)}, got {count}"))
    return findings


def audit_documents(payload: dict[str, Any]) -> list[Finding]:
    findings: list[Finding] = []
    seen_ids: set[str] = set()
    for i, doc in enumerate(payload.get("documents") or []):
        path = f"documents[{i}]"
        if not isinstance(doc, dict):
            findings.append(Finding("documents.type", path, f"Expected object, got {type(doc).__name__}"))
            continue
        doc_id = doc.get("id")
        if doc_id in seen_ids:
            findings.append(Finding("documents.duplicate_id", path, f"Duplicate id {doc_id!r}"))
        seen_ids.add(doc_id)

        terms = doc.get("concept_terms") or []
        if len(terms) != len(set(terms)):
            findings.append(Finding("documents.concept_terms_duplicate", path, "Concept terms repeat"))
        if len(terms) > RECORD_CONCEPT_LIMIT:
            findings.append(Finding("documents.concept_terms_len", path, f"Expected <={RECORD_CONCEPT_LIMIT}, got {len(terms)}"))

        pages = doc.get("pages")
        if isinstance(pages, int) and pages < 1:
            findings.append(Finding("documents.pages_range", path, f"pages out of range: {pages}"))
    return findings


def _objects(items: Any, section: str, findings: list[Finding]) -> list[tuple[int, dict[str, Any]]]:
    """Indexed dict entries of a payload list; anything else is reported and dropped."""
    out: list[tuple[int, dict[str, Any]]] = []
    for i, item in enumerate(items or []):
        if isinstance(item, dict):
            out.append((i, item))
        else:
            findings.append(Finding(f"{section}.type", f"{section}[{i}]", f"Expected object, got {type(item).__name__}"))
    return out


def audit_cooccurrence(payload: dict[str, Any]) -> list[Finding]:
    findings: list[Finding] = []
    pairs = []
    for i, pair in _objects(payload.get("term_cooccurrence"), "term_cooccurrence", findings):
        path = f"term_cooccurrence[{i}]"
        a, b, count = pair.get("term_a"), pair.get("term_b"), pair.get("count")
        if not (isinstance(a, str) and isinstance(b, str) and isinstance(count, int)):
            findings.append(Finding("cooccurrence.fields", path, "Expected string terms and an integer count"))
            continue
        pairs.append(pair)
        if not a < b:
            findings.append(Finding("cooccurrence.pair_order", path, f"Expected term_a < term_b: {a!r}, {b!r}"))
        if count <= 0:
            findings.append(Finding("cooccurrence.count_range", path, f"count out of range: {count}"))
        if pair.get("concept_id_a") != concept_id(a) or pair.get("concept_id_b") != concept_id(b):
            findings.append(Finding("cooccurrence.concept_id", path, "concept ids do not match terms"))
    if not _is_ranked(pairs, lambda p: (-p["count"], p["term_a"], p["term_b"])):
        findings.append(Finding("cooccurrence.order", "term_cooccurrence", "Pairs not ranked by count desc, then terms"))
    return findings


def audit_gaps(payload: dict[str, Any]) -> list[Finding]:
    findings: list[Finding] = []
    gaps = []
    for i, gap in _objects(payload.get("research_gaps"), "research_gaps", findings):
        path = f"research_gaps[{i}]"
        try:
            expected = gap_score(int(gap["count_a"]), int(gap["count_b"]), int(gap["cooccurrence"]))
            score = float(gap["gap_score"])
        except (KeyError, TypeError, ValueError) as e:
            findings.append(Finding("gaps.fields", path, f"Missing or malformed field: {e}"))
            continue
        gaps.append((score, str(gap.get("concept_a", "")), str(gap.get("concept_b", ""))))
        if not math.isclose(score, expected, rel_tol=1e-9):
            findings.append(Finding("gaps.score", path, f"Expected {expected}, got {score}"))
    if not _is_ranked(gaps, lambda g: (-g[0], g[1], g[2])):
        findings.append(Finding("gaps.order", "research_gaps", "Gaps not ranked by score desc, then concepts"))
    return findings


def audit_matrices(payload: dict[str, Any]) -> list[Finding]:
    findings: list[Finding] = []
    for section, row_key in (("supervisor_concept_matrix", "supervisors"), ("methodology_concept_matrix", "methodologies")):
        block = payload.get(section)
        if not isinstance(block, dict):
            continue
        rows = block.get(row_key) or []
        cols = block.get("concepts") or []
        matrix = block.get("matrix") or []
        if len(matrix) != len(rows) or any(not isinstance(line, list) or len(line) != len(cols) for line in matrix):
            findings.append(Finding("matrix.shape", section, f"Expected {len(rows)}x{len(cols)}"))
        if block.get("concept_ids") != [concept_id(c) for c in cols]:
            findings.append(Finding("matrix.concept_ids", section, "concept_ids do not match concepts"))
    for i, series in _objects(payload.get("concept_timeline"), "concept_timeline", findings):
        path = f"concept_timeline[{i}]"
        years = [point.get("year") if isinstance(point, dict) else None for point in series.get("data") or []]
        if not all(isinstance(y, int) for y in years):
            findings.append(Finding("timeline.fields", path, "Expected objects with an integer year"))
        elif years != sorted(years):
            findings.append(Finding("timeline.order", path, "Years not ascending"))
    return findings


def audit_payload(payload: dict[str, Any]) -> list[Finding]:
    findings: list[Finding] = []
    findings.extend(audit_sections(payload))
    findings.extend(audit_documents(payload))
    findings.extend(audit_cooccurrence(payload))
    findings.extend(audit_gaps(payload))
    findings.extend(audit_matrices(payload))
    return findings


def _summarize(findings: Iterable[Finding]) -> str:
    by_kind: dict[str, int] = {}
    total = 0
    for f in findings:
        total += 1
        by_kind[f.kind] = by_kind.get(f.kind, 0) + 1

    lines = [f"Findings: {total}"]
    for kind, count in sorted(by_kind.items(), key=lambda kv: (-kv[1], kv[0])):
        lines.append(f"- {kind}: {count}")
    return "\n".join(lines)


def _write_report(findings: list[Finding], report_dir: str) -> str:
    os.makedirs(report_dir, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    path = os.path.join(report_dir, f"metrics_audit_{stamp}.md")

    lines = [
        "# Concept Metrics Audit",
        "",
        f"- Timestamp (UTC): `{stamp}`",
        f"- Total findings: `{len(findings)}`",
        "",
        "## Summary",
        "",
        "```",
        _summarize(findings),
        "```",
        "",
        "## Details",
        "",
    ]
    for f in findings[:250]:
        lines.append(f"- **{f.kind}**: `{f.path}`: {f.detail}")
    if len(findings) > 250:
        lines.append(f"- _(truncated; showing first 250 of {len(findings)})_")
    lines.append("")

    with open(path, "w", encoding="utf-8") as fp:
        fp.write("\n".join(lines))
    return path


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    payload_path = args[0] if args else DEFAULT_PAYLOAD
    if not os.path.isfile(payload_path):
        print(f"Missing `{payload_path}`; nothing to audit.", file=sys.stderr)
        return 2

    with open(payload_path, "r", encoding="utf-8") as f:
        payload = json.load(f)
    if not isinstance(payload, dict):
        print(f"`{payload_path}` is not a JSON object.", file=sys.stderr)
        return 2

    findings = audit_payload(payload)
    print(f"[concepts] {_summarize(findings)}")
    if findings:
        report = _write_report(findings, os.path.join(os.path.dirname(os.path.abspath(payload_path)), "reports"))
        print(f"[concepts] Report written: {report}")

    # Non-zero exit if any issues found.
    return 1 if findings else 0


if __name__ == "__main__":
    raise SystemExit(main())
