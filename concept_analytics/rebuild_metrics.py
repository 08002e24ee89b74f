#!/usr/bin/env python3
"""
Rebuild the concept analytics payload and warehouse tables.

Pipeline:
- Read raw catalogue metadata (JSON array, JSONL, or a directory of *.json files).
- Apply optional file-metric and committee overlays keyed by document id.
- Compute the concept analytics payload and write it to Output/analytics/metrics.json.
- Load documents, per-document concepts, concept stats, co-occurrence and research gaps
  into DuckDB (Output/concepts.duckdb) with Parquet snapshots next to the JSON.

Usage:
    python -m concept_analytics.rebuild_metrics [--base /path/to/repo] [--input docs.json]
        [--file-metrics file_metrics.json] [--committee committee.json] [--db concepts.duckdb]
"""
from __future__ import annotations

import argparse
import json
import logging
import pathlib
from typing import Any, Iterable

import duckdb
import pandas as pd

from concept_analytics.aggregate import build_metrics_payload, concept_id, concept_length_stats
from concept_analytics.concepts import load_concept_dictionary
from concept_analytics.config import load_settings
from concept_analytics.domain_dictionary import DomainDictionary, DynamicOverlay
from concept_analytics.lexicon import load_lexicon
from concept_analytics.records import DocumentRecord, build_records

# ---------- Paths ----------


def resolve_paths(base_arg: str | None) -> dict[str, pathlib.Path]:
    repo_root = pathlib.Path(base_arg).expanduser().resolve() if base_arg else pathlib.Path(__file__).resolve().parents[1]
    output = repo_root / "Output"
    analytics_dir = output / "analytics"
    analytics_dir.mkdir(parents=True, exist_ok=True)
    return {
        "repo_root": repo_root,
        "output": output,
        "analytics_dir": analytics_dir,
        "db_path": output / "concepts.duckdb",
    }


# ---------- Loading ----------


def _read_json_file(path: pathlib.Path) -> list[Any]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get("documents"), list):
        return data["documents"]
    return [data]


def load_documents(path: pathlib.Path) -> list[Any]:
    if path.is_dir():
        docs: list[Any] = []
        for p in sorted(path.glob("*.json")):
            docs.extend(_read_json_file(p))
        return docs
    if path.suffix == ".jsonl":
        docs = []
        for line in path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if line:
                docs.append(json.loads(line))
        return docs
    return _read_json_file(path)


def load_overlay(path: pathlib.Path | None) -> dict[str, Any]:
    # Optional {doc_id: {...}} or {doc_id: [names]} mapping
    if path is None or not path.exists():
        return {}
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise SystemExit(f"Expected a JSON object keyed by document id in {path}")
    return data


# ---------- Tables ----------


def _join(values: Iterable[str]) -> str:
    return "; ".join(values)


def documents_frame(records: list[DocumentRecord]) -> pd.DataFrame:
    rows = []
    for r in records:
        row = r.to_dict()
        for key in ("authors", "supervisors", "subjects", "methodologies", "concept_terms", "themes"):
            row[key] = _join(row[key])
        rows.append(row)
    df = pd.DataFrame(rows)
    if "year" in df:
        df["year"] = df["year"].astype("Int64")
    return df


def document_concepts_frame(records: list[DocumentRecord]) -> pd.DataFrame:
    rows = [
        {"doc_id": r.id, "position": position, "concept": term, "concept_id": concept_id(term), "year": r.year}
        for r in records
        for position, term in enumerate(r.concept_terms, start=1)
    ]
    df = pd.DataFrame(rows, columns=["doc_id", "position", "concept", "concept_id", "year"])
    df["year"] = df["year"].astype("Int64")
    return df


def build_tables(records: list[DocumentRecord], payload: dict[str, Any]) -> dict[str, pd.DataFrame]:
    concept_stats = concept_length_stats(records, limit=None)
    return {
        "documents": documents_frame(records),
        "document_concepts": document_concepts_frame(records),
        "concept_stats": pd.DataFrame(concept_stats),
        "term_cooccurrence": pd.DataFrame(payload["term_cooccurrence"]),
        "research_gaps": pd.DataFrame(payload["research_gaps"]),
    }


def _sql_literal(path: pathlib.Path) -> str:
    return "'" + str(path).replace("'", "''") + "'"


def persist_duckdb(db_path: pathlib.Path, tables: dict[str, pd.DataFrame], parquet_dir: pathlib.Path):
    db_path.parent.mkdir(parents=True, exist_ok=True)
    parquet_dir.mkdir(parents=True, exist_ok=True)
    con = duckdb.connect(str(db_path))
    try:
        for name, df in tables.items():
            if df is None or df.empty:
                # no rows means no column types to infer
                con.execute(f"DROP TABLE IF EXISTS {name}")
                continue
            view = f"df_{name}"
            con.register(view, df)
            con.execute(f"CREATE OR REPLACE TABLE {name} AS SELECT * FROM {view}")
            con.unregister(view)
            target = _sql_literal(parquet_dir / f"{name}.parquet")
            con.execute(f"COPY {name} TO {target} (FORMAT PARQUET, CODEC 'ZSTD')")
    finally:
        con.close()


# ---------- Summary export ----------


def write_summary(analytics_dir: pathlib.Path, payload: dict[str, Any]) -> pathlib.Path:
    out_path = analytics_dir / "metrics.json"
    analytics_dir.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(payload, indent=2))
    print(f"[concepts] Wrote metrics to {out_path}")
    return out_path


# ---------- Main entry ----------


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(description="Rebuild concept analytics JSON + DuckDB outputs.")
    parser.add_argument("--base", help="Repo root (defaults to package parent)", default=None)
    parser.add_argument("--root", dest="base", help="Alias for --base", default=None)
    parser.add_argument("--input", help="Documents JSON/JSONL file or directory (default <data_dir>/documents.json)", default=None)
    parser.add_argument("--file-metrics", help="JSON object of per-document word/page counts", default=None)
    parser.add_argument("--committee", help="JSON object of per-document committee names", default=None)
    parser.add_argument("--dictionary", help="Concept dictionary JSON (default from settings)", default=None)
    parser.add_argument("--db", help="DuckDB file path (default Output/concepts.duckdb)", default=None)
    parser.add_argument("--no-db", action="store_true", help="Skip the DuckDB/Parquet export.")
    parser.add_argument("--verbose", action="store_true", help="Show library log messages.")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    paths = resolve_paths(args.base)
    settings = load_settings(root_dir=paths["repo_root"])
    db_path = pathlib.Path(args.db).expanduser() if args.db else paths["db_path"]
    input_path = pathlib.Path(args.input).expanduser() if args.input else settings.data_dir / "documents.json"

    if not input_path.exists():
        raise SystemExit(f"No documents found at {input_path}. Export catalogue metadata first.")

    print(f"[concepts] Loading documents from {input_path}")
    documents = load_documents(input_path)
    file_metrics = load_overlay(pathlib.Path(args.file_metrics).expanduser() if args.file_metrics else None)
    committee = load_overlay(pathlib.Path(args.committee).expanduser() if args.committee else None)

    dictionary_path = pathlib.Path(args.dictionary).expanduser() if args.dictionary else settings.dictionary_path
    concept_dictionary = load_concept_dictionary(dictionary_path)
    if not concept_dictionary:
        print(f"[concepts] Concept dictionary at {dictionary_path} is empty; concept views will be empty")
    lexicon = load_lexicon(settings.lexicon_path)
    domain = DomainDictionary(overlay=DynamicOverlay(settings.overlay_path, settings.overlay_reload_seconds))

    records = build_records(documents, concept_dictionary, domain, lexicon, file_metrics=file_metrics, committee=committee)
    if not records:
        raise SystemExit("No documents could be projected into records.")
    print(f"[concepts] Projected {len(records)} of {len(documents)} documents")

    payload = build_metrics_payload(records, domain=domain, lexicon=lexicon)
    payload["paths"] = {
        "input": str(input_path),
        "dictionary": str(dictionary_path),
        "duckdb": None if args.no_db else str(db_path),
        "parquet_dir": None if args.no_db else str(paths["analytics_dir"]),
    }

    if not args.no_db:
        print(f"[concepts] Building DuckDB at {db_path}")
        persist_duckdb(db_path, build_tables(records, payload), paths["analytics_dir"])
    write_summary(paths["analytics_dir"], payload)


if __name__ == "__main__":
    main()
