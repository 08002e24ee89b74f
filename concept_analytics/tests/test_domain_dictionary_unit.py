import json
import pathlib
import tempfile
import unittest

from concept_analytics.domain_dictionary import (
    DOMAIN_DICTIONARY,
    DomainDictionary,
    DynamicOverlay,
    PhraseRule,
    PhraseTable,
    rule_from_pair,
)
from concept_analytics.text import normalize_text


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


ENTRIES = [
    {"canonical": "higher education", "variants": ["post-secondary education", "tertiary education"]},
    {"canonical": "online learning", "variants": ["e-learning", "remote learning"]},
    {"canonical": "mental health", "variants": ["psychological well-being"]},
]


class PhraseTableUnitTests(unittest.TestCase):
    def test_empty_variant_is_rejected(self):
        with self.assertRaises(ValueError):
            PhraseRule((), ("anything",))
        self.assertIsNone(rule_from_pair("!!!", "anything"))

    def test_longest_first_then_table_order(self):
        short = PhraseRule(("ed",), ("education",))
        first = PhraseRule(("ed", "d"), ("x",))
        second = PhraseRule(("ed", "d"), ("y",))
        table = PhraseTable([short, first, second])
        self.assertEqual(table.candidates("ed"), (first, second, short))
        self.assertEqual(table.candidates("missing"), ())
        self.assertEqual(len(table), 3)


class CanonicalizeUnitTests(unittest.TestCase):
    def test_static_table_rewrites_variants(self):
        domain = DomainDictionary()
        self.assertEqual(domain.canonicalize("Post-Secondary Education in B.C."), "higher education in british columbia")
        self.assertEqual(domain.canonicalize("Teacher Professional Development"), "professional learning")

    def test_every_variant_maps_to_its_canonical(self):
        domain = DomainDictionary(entries=ENTRIES)
        for entry in ENTRIES:
            for variant in [entry["canonical"], *entry["variants"]]:
                self.assertEqual(domain.canonicalize(variant), normalize_text(entry["canonical"]), variant)

    def test_canonicalize_is_idempotent(self):
        domain = DomainDictionary(entries=ENTRIES)
        for text in ["Remote learning during tertiary education", "psychological well-being of e-learning students"]:
            once = domain.canonicalize(text)
            self.assertEqual(domain.canonicalize(once), once)

    def test_compiled_canonicals_map_to_themselves(self):
        domain = DomainDictionary()
        for entry in DOMAIN_DICTIONARY:
            canonical = normalize_text(entry["canonical"])
            self.assertEqual(domain.canonicalize(canonical), canonical)

    def test_compiled_table_is_idempotent(self):
        domain = DomainDictionary()
        for entry in DOMAIN_DICTIONARY:
            for variant in entry["variants"]:
                once = domain.canonicalize(variant)
                self.assertEqual(domain.canonicalize(once), once, variant)
        self.assertEqual(domain.canonicalize("Ed.D. cohort"), "doctor of education cohort")
        self.assertEqual(domain.canonicalize("EdD cohort"), "doctor of education cohort")

    def test_longest_match_wins_at_same_position(self):
        domain = DomainDictionary(
            entries=[
                {"canonical": "education", "variants": ["ed"]},
                {"canonical": "doctor of education", "variants": ["ed.d."]},
            ]
        )
        self.assertEqual(domain.canonicalize("Ed.D. program"), "doctor of education program")
        self.assertEqual(domain.canonicalize("ed program"), "education program")

    def test_unmatched_tokens_pass_through(self):
        self.assertEqual(DomainDictionary(entries=[]).canonicalize("Land-Based  Learning!"), "land based learning")
        self.assertEqual(DomainDictionary(entries=[]).canonicalize(None), "")


class DynamicOverlayUnitTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = pathlib.Path(self._tmp.name) / "latest.json"
        self.clock = FakeClock()

    def tearDown(self):
        self._tmp.cleanup()

    def _write(self, variant_map: dict):
        self.path.write_text(json.dumps({"concepts": [], "variantToCanonical": variant_map}))

    def test_missing_file_gives_empty_table(self):
        overlay = DynamicOverlay(self.path, reload_seconds=60, clock=self.clock)
        self.assertEqual(len(overlay.get_active_rules()), 0)

    def test_dynamic_rules_take_priority_over_static(self):
        self._write({"EdD": "education doctorate"})
        domain = DomainDictionary(overlay=DynamicOverlay(self.path, clock=self.clock))
        self.assertEqual(domain.canonicalize("EdD cohort"), "education doctorate cohort")

    def test_reload_is_time_gated_and_failures_keep_previous_table(self):
        self._write({"SEL": "social emotional learning"})
        overlay = DynamicOverlay(self.path, reload_seconds=60, clock=self.clock)
        domain = DomainDictionary(entries=[], overlay=overlay)
        self.assertEqual(domain.canonicalize("SEL programs"), "social emotional learning programs")

        # Broken file before the gate opens: not even read.
        self.path.write_text("{broken")
        self.clock.now = 30
        self.assertEqual(domain.canonicalize("SEL"), "social emotional learning")

        # Gate open, read fails: previous table stays.
        self.clock.now = 61
        with self.assertLogs("concept_analytics.domain_dictionary", level="WARNING"):
            self.assertEqual(domain.canonicalize("SEL"), "social emotional learning")

        # The failed attempt restarted the interval.
        self._write({"PBL": "project based learning"})
        self.clock.now = 100
        self.assertEqual(domain.canonicalize("SEL and PBL"), "social emotional learning and pbl")

        self.clock.now = 121
        self.assertEqual(domain.canonicalize("SEL and PBL"), "sel and project based learning")

    def test_object_without_variant_map_is_rejected(self):
        self._write({"ECE": "early childhood education"})
        overlay = DynamicOverlay(self.path, reload_seconds=60, clock=self.clock)
        first = overlay.get_active_rules()
        self.path.write_text(json.dumps(["not", "an", "object"]))
        self.clock.now = 60
        with self.assertLogs("concept_analytics.domain_dictionary", level="WARNING"):
            self.assertIs(overlay.get_active_rules(), first)


if __name__ == "__main__":
    unittest.main()
