import json
import pathlib
import tempfile
import unittest

from concept_analytics.domain_dictionary import DomainDictionary
from concept_analytics.lexicon import CompositeRule, Lexicon, default_lexicon, load_lexicon
from concept_analytics.ngrams import extract_ngrams, is_low_signal_phrase, maximal_phrases, tokenize, top_terms


class LexiconUnitTests(unittest.TestCase):
    def test_noise_words(self):
        lex = default_lexicon()
        self.assertTrue(lex.is_noise_word("the"))
        self.assertTrue(lex.is_noise_word("research"))
        self.assertTrue(lex.is_noise_word("2019"))
        self.assertFalse(lex.is_noise_word("education"))
        self.assertFalse(lex.is_noise_word("indigenous"))

    def test_override_file_replaces_lists(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = pathlib.Path(tmp) / "lexicon.json"
            path.write_text(json.dumps({"stop_words": ["teacher"], "low_signal_head_tokens": ["experiences"]}))
            lex = load_lexicon(path)
        self.assertTrue(lex.is_noise_word("teacher"))
        self.assertFalse(lex.is_noise_word("research"))
        self.assertEqual(lex.low_signal_head_tokens, frozenset({"experiences"}))
        self.assertEqual(lex.composite_rules, ())

    def test_broken_override_falls_back_to_packaged(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = pathlib.Path(tmp) / "lexicon.json"
            path.write_text("{not json")
            with self.assertLogs("concept_analytics.lexicon", level="WARNING"):
                lex = load_lexicon(path)
        self.assertEqual(lex, default_lexicon())


class TokenizerUnitTests(unittest.TestCase):
    def test_tokenize_drops_noise(self):
        self.assertEqual(tokenize("Research on Indigenous-led education in 2019"), ["indigenous-led", "education"])

    def test_top_terms_breaks_ties_alphabetically(self):
        self.assertEqual(top_terms("policy policy curriculum curriculum assessment", 2), ["curriculum", "policy"])

    def test_low_signal_phrases(self):
        self.assertTrue(is_low_signal_phrase("single"))
        self.assertTrue(is_low_signal_phrase("teacher experiences"))
        self.assertTrue(is_low_signal_phrase("better teaching"))
        self.assertTrue(is_low_signal_phrase("columbia schools"))
        self.assertFalse(is_low_signal_phrase("indigenous education"))

    def test_composite_rule_needs_first_and_head(self):
        lex = Lexicon(
            stop_words=frozenset(),
            low_signal_head_tokens=frozenset(),
            low_signal_anywhere_tokens=frozenset(),
            blocked_first_tokens=frozenset(),
            composite_rules=(CompositeRule("mcfd", frozenset({"however"})),),
        )
        self.assertTrue(is_low_signal_phrase("mcfd policy however", lex))
        self.assertFalse(is_low_signal_phrase("mcfd policy", lex))
        self.assertFalse(is_low_signal_phrase("policy however", lex))


class NgramUnitTests(unittest.TestCase):
    def setUp(self):
        self.plain = DomainDictionary(entries=[])
        self.lex = default_lexicon()

    def test_ngrams_skip_noise_windows_and_keep_duplicates(self):
        grams = extract_ngrams("The 2019 study of teacher wellbeing and teacher wellbeing", 2, self.plain)
        self.assertEqual(grams, ["teacher wellbeing", "teacher wellbeing"])

    def test_ngrams_never_contain_noise_words(self):
        text = "A 2020 thesis about the experiences of rural teachers within British Columbia public schools"
        for n in (2, 3, 4):
            for gram in extract_ngrams(text, n, self.plain):
                for token in gram.split():
                    self.assertFalse(self.lex.is_noise_word(token), gram)

    def test_ngrams_run_on_canonicalized_text(self):
        grams = extract_ngrams("Post-secondary education funding", 2, DomainDictionary())
        self.assertEqual(grams, ["higher education", "education funding"])

    def test_maximal_phrases_drop_contained_shorter_phrases(self):
        self.assertEqual(maximal_phrases("mental health supports", self.plain), [("mental health supports", 1)])

    def test_maximal_phrases_do_not_emit_four_token_phrases(self):
        # both 4-grams are kept and swallow every shorter phrase, then are capped out
        self.assertEqual(maximal_phrases("school based mental health supports", self.plain), [])


if __name__ == "__main__":
    unittest.main()
