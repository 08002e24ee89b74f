import contextlib
import copy
import io
import json
import os
import tempfile
import unittest

from concept_analytics.aggregate import build_metrics_payload
from concept_analytics.audit_payload import audit_payload, main
from concept_analytics.domain_dictionary import DomainDictionary
from concept_analytics.records import DocumentRecord


def _record(doc_id, concepts, supervisors=()):
    return DocumentRecord(
        id=doc_id,
        title="",
        abstract="",
        subjects=("(Unspecified)",),
        supervisors=tuple(supervisors),
        methodologies=(),
        concept_terms=tuple(concepts),
        themes=(),
        year=2020,
        word_count=10,
        pages=1,
        char_count=60,
    )


def _payload():
    records = [
        _record("1.0000001", ["a", "b"], ["Smith"]),
        _record("1.0000002", ["a", "c"], ["Jones"]),
        _record("1.0000003", ["b"]),
    ]
    return build_metrics_payload(records, domain=DomainDictionary(entries=[]))


class AuditPayloadUnitTests(unittest.TestCase):
    def test_generated_payload_is_clean(self):
        self.assertEqual(audit_payload(_payload()), [])

    def test_detects_tampering(self):
        payload = _payload()
        payload["research_gaps"][0]["gap_score"] = 0.5
        payload["term_cooccurrence"].reverse()
        payload["supervisor_concept_matrix"]["matrix"].append([0])
        payload["documents"][1]["concept_terms"] = ["a", "a"]
        payload["metrics"]["record_count"] = 7
        del payload["word_cloud"]

        kinds = {f.kind for f in audit_payload(payload)}
        self.assertEqual(
            kinds,
            {
                "gaps.score",
                "gaps.order",
                "cooccurrence.order",
                "matrix.shape",
                "documents.concept_terms_duplicate",
                "metrics.record_count",
                "payload.missing_section",
            },
        )

    def test_non_object_entries_are_reported(self):
        payload = _payload()
        payload["term_cooccurrence"].append("a|b")
        payload["research_gaps"].insert(0, ["a", "b"])
        payload["concept_timeline"].append(7)
        payload["concept_timeline"][0]["data"].append("2021")

        findings = audit_payload(payload)
        self.assertEqual(
            {(f.kind, f.path) for f in findings},
            {
                ("term_cooccurrence.type", f"term_cooccurrence[{len(payload['term_cooccurrence']) - 1}]"),
                ("research_gaps.type", "research_gaps[0]"),
                ("concept_timeline.type", f"concept_timeline[{len(payload['concept_timeline']) - 1}]"),
                ("timeline.fields", "concept_timeline[0]"),
            },
        )

    def test_main_exit_codes(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "metrics.json")
            out = io.StringIO()
            with contextlib.redirect_stdout(out), contextlib.redirect_stderr(io.StringIO()):
                self.assertEqual(main([os.path.join(tmp, "missing.json")]), 2)

                with open(path, "w", encoding="utf-8") as f:
                    json.dump(_payload(), f)
                self.assertEqual(main([path]), 0)
                self.assertFalse(os.path.exists(os.path.join(tmp, "reports")))

                broken = copy.deepcopy(_payload())
                broken["concept_timeline"][0]["data"].reverse()
                broken["concept_timeline"][0]["data"].append({"year": 1999, "count": 1})
                with open(path, "w", encoding="utf-8") as f:
                    json.dump(broken, f)
                self.assertEqual(main([path]), 1)
            self.assertEqual(len(os.listdir(os.path.join(tmp, "reports"))), 1)
            self.assertIn("timeline.order: 1", out.getvalue())


if __name__ == "__main__":
    unittest.main()
