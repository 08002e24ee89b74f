import contextlib
import io
import json
import pathlib
import tempfile
import unittest

import duckdb
import pandas as pd

from concept_analytics.rebuild_metrics import load_documents, main, persist_duckdb

DICTIONARY = {
    "concepts": [{"canonical": "indigenous education"}, {"canonical": "higher education"}],
    "variantToCanonical": {"aboriginal education": "indigenous education"},
}

DOCUMENTS = [
    {
        "docId": "d1",
        "metadata": {
            "title": "Aboriginal Education in Rural Schools",
            "creator": ["Doe, Jane"],
            "supervisor": ["Smith, A."],
            "dateAvailable": "2015-04-01",
            "description": "A qualitative case study.",
        },
    },
    {
        "docId": "d2",
        "metadata": {
            "title": "Post-Secondary Education Policy",
            "creator": ["Roe, Sam"],
            "supervisor": ["Smith, A."],
            "dateAvailable": "2019-09-01",
            "description": "Survey research on Indigenous education.",
        },
    },
]


class RebuildMetricsUnitTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.base = pathlib.Path(self._tmp.name)
        self.docs_path = self.base / "documents.json"
        self.docs_path.write_text(json.dumps(DOCUMENTS))
        self.dict_path = self.base / "dictionary.json"
        self.dict_path.write_text(json.dumps(DICTIONARY))
        self.metrics_path = self.base / "file_metrics.json"
        self.metrics_path.write_text(json.dumps({"d1": {"word_count": 42000, "page_count": 160}}))

    def tearDown(self):
        self._tmp.cleanup()

    def _run(self, *extra: str) -> str:
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            main(["--base", str(self.base), "--input", str(self.docs_path), "--dictionary", str(self.dict_path), *extra])
        return out.getvalue()

    def test_writes_summary_and_tables(self):
        log = self._run("--file-metrics", str(self.metrics_path))
        self.assertIn("[concepts] Projected 2 of 2 documents", log)

        payload = json.loads((self.base / "Output" / "analytics" / "metrics.json").read_text())
        self.assertEqual(payload["metrics"]["record_count"], 2)
        self.assertEqual(payload["supervisor_concept_matrix"]["supervisors"], ["Smith, A."])
        self.assertEqual(payload["documents"][0]["pages"], 160)

        con = duckdb.connect(str(self.base / "Output" / "concepts.duckdb"))
        try:
            self.assertEqual(con.execute("SELECT count(*) FROM documents").fetchone()[0], 2)
            concepts = con.execute("SELECT doc_id, concept FROM document_concepts ORDER BY doc_id, position").fetchall()
            self.assertEqual(
                concepts,
                [
                    ("Aboriginal Education in Rural Schools:Doe, Jane", "indigenous education"),
                    ("Post-Secondary Education Policy:Roe, Sam", "higher education"),
                    ("Post-Secondary Education Policy:Roe, Sam", "indigenous education"),
                ],
            )
            self.assertEqual(con.execute("SELECT count(*) FROM term_cooccurrence").fetchone()[0], 1)
            self.assertEqual(con.execute("SELECT count(*) FROM research_gaps").fetchone()[0], 1)
        finally:
            con.close()
        self.assertTrue((self.base / "Output" / "analytics" / "documents.parquet").exists())

    def test_parquet_dir_with_quote(self):
        parquet_dir = self.base / "o'brien"
        tables = {"concept_stats": pd.DataFrame([{"concept": "curriculum", "doc_count": 2}])}
        persist_duckdb(self.base / "quoted.duckdb", tables, parquet_dir)
        self.assertTrue((parquet_dir / "concept_stats.parquet").exists())

    def test_no_db_skips_warehouse(self):
        self._run("--no-db")
        self.assertTrue((self.base / "Output" / "analytics" / "metrics.json").exists())
        self.assertFalse((self.base / "Output" / "concepts.duckdb").exists())

    def test_missing_input_exits(self):
        with self.assertRaises(SystemExit):
            main(["--base", str(self.base), "--input", str(self.base / "nope.json")])

    def test_unprojectable_input_exits(self):
        self.docs_path.write_text(json.dumps(["junk", 3]))
        with self.assertRaises(SystemExit):
            self._run()

    def test_load_documents_formats(self):
        jsonl = self.base / "docs.jsonl"
        jsonl.write_text('{"title": "A"}\n\n{"title": "B"}\n')
        self.assertEqual([d["title"] for d in load_documents(jsonl)], ["A", "B"])

        folder = self.base / "batch"
        folder.mkdir()
        (folder / "b.json").write_text(json.dumps({"title": "Single"}))
        (folder / "a.json").write_text(json.dumps({"documents": [{"title": "First"}]}))
        self.assertEqual([d["title"] for d in load_documents(folder)], ["First", "Single"])


if __name__ == "__main__":
    unittest.main()
