import unittest

from concept_analytics.aggregate import build_metrics_payload
from concept_analytics.audit_payload import audit_payload
from concept_analytics.concepts import ConceptDictionary
from concept_analytics.domain_dictionary import DomainDictionary
from concept_analytics.records import build_records

DICTIONARY = {
    "concepts": [
        {"canonical": "indigenous education"},
        {"canonical": "decolonization"},
        {"canonical": "higher education"},
    ],
    "variantToCanonical": {},
}

DOCUMENTS = [
    {"title": "Indigenous Education Policy in British Columbia", "dateAvailable": "2018-11-01"},
    {
        "title": "Post-Secondary Education Policy",
        "description": "This thesis examines Indigenous education in universities.",
        "dateAvailable": "2020-05-01",
    },
]


class EndToEndUnitTests(unittest.TestCase):
    def setUp(self):
        self.domain = DomainDictionary()
        self.records = build_records(DOCUMENTS, ConceptDictionary.from_dict(DICTIONARY), self.domain)

    def test_documents_share_exactly_indigenous_education(self):
        first, second = self.records
        self.assertEqual(first.concept_terms, ("indigenous education",))
        self.assertEqual(second.concept_terms, ("higher education", "indigenous education"))
        self.assertEqual(set(first.concept_terms) & set(second.concept_terms), {"indigenous education"})

    def test_payload_views_agree(self):
        payload = build_metrics_payload(self.records, domain=self.domain)
        self.assertEqual(payload["concept_cloud"][0], {"term": "indigenous education", "count": 2})
        self.assertEqual(
            [(p["term_a"], p["term_b"], p["count"]) for p in payload["term_cooccurrence"]],
            [("higher education", "indigenous education", 1)],
        )
        self.assertEqual(payload["research_gaps"][0]["gap_score"], 1.0)
        timeline = {t["concept"]: t["data"] for t in payload["concept_timeline"]}
        self.assertEqual(timeline["indigenous education"], [{"year": 2018, "count": 1}, {"year": 2020, "count": 1}])
        self.assertEqual(audit_payload(payload), [])


if __name__ == "__main__":
    unittest.main()
