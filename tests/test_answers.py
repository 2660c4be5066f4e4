"""
Unit tests for answer resolution
"""
import pytest

from studysets.services.answers import resolve_answer

OPTIONS = ["A", "B", "C", "D"]


class TestResolveAnswer:
    def test_index_in_range(self):
        assert resolve_answer(2, OPTIONS).text == "C"
        assert resolve_answer(2, OPTIONS).index == 2

    def test_integral_float_index(self):
        assert resolve_answer(1.0, OPTIONS).text == "B"

    def test_exact_text_after_strip(self):
        assert resolve_answer(" D ", OPTIONS).text == "D"

    def test_case_insensitive_text(self):
        assert resolve_answer(" c ", OPTIONS).text == "C"

    def test_out_of_range_index_falls_back(self):
        assert resolve_answer(7, OPTIONS) == (0, "A")

    def test_unknown_text_falls_back(self):
        assert resolve_answer("Z", OPTIONS) == (0, "A")

    def test_bool_is_not_an_index(self):
        assert resolve_answer(True, OPTIONS).index == 0

    def test_missing_answer_falls_back(self):
        assert resolve_answer(None, OPTIONS).text == "A"

    @pytest.mark.parametrize("raw", [0, 3, "b", "Nothing", None, -1, 2.5])
    def test_result_is_always_an_option(self, raw):
        assert resolve_answer(raw, OPTIONS).text in OPTIONS

    def test_empty_options_rejected(self):
        with pytest.raises(ValueError):
            resolve_answer(0, [])
