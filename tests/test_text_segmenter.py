"""Tests for delimiter segmentation."""

import pytest

from narrator.narration.segmenter import TextSegmenter, segment


class TestSegment:
    def test_splits_on_terminator(self):
        assert segment("A。B。C") == ("A", "B", "C")

    def test_trailing_delimiter_leaves_empty_partial(self):
        assert segment("A。B。") == ("A", "B", "")

    def test_clause_separator_also_splits(self):
        assert segment("はい、そうです。") == ("はい", "そうです", "")

    def test_empty_text_is_single_empty_partial(self):
        assert segment("") == ("",)

    def test_unterminated_text_is_single_partial(self):
        assert segment("こんにちは") == ("こんにちは",)

    def test_adjacent_delimiters_produce_empty_segment(self):
        assert segment("A。。B") == ("A", "", "B")

    def test_is_deterministic(self):
        text = "今日は、晴れです。明日は雨"
        assert segment(text) == segment(text)


class TestTextSegmenterPolicy:
    def test_terminators_only(self):
        segmenter = TextSegmenter(terminators=["。"], separators=[])
        assert segmenter.segment("はい、そうです。") == ("はい、そうです", "")

    def test_multi_character_delimiters(self):
        segmenter = TextSegmenter(terminators=[". ", "!"], separators=[])
        assert segmenter.segment("Hi. There! ok") == ("Hi", "There", " ok")

    def test_longest_delimiter_wins(self):
        segmenter = TextSegmenter(terminators=[".", "..."], separators=[])
        assert segmenter.segment("Wait...go") == ("Wait", "go")

    def test_regex_characters_are_literal(self):
        segmenter = TextSegmenter(terminators=["?"], separators=["|"])
        assert segmenter.segment("a|b?c") == ("a", "b", "c")

    def test_requires_a_delimiter(self):
        with pytest.raises(ValueError):
            TextSegmenter(terminators=[], separators=[""])
