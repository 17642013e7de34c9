"""Unit tests for the search query parser."""

from __future__ import annotations

import pytest

from designvault.services.query_parser import parse_query


class TestFreeTextTerms:
    def test_plain_words_become_terms(self) -> None:
        parsed = parse_query("grey sofa")
        assert parsed.terms == ["grey", "sofa"]
        assert parsed.filters == {}
        assert parsed.has_terms is True
        assert parsed.joined_terms == "grey sofa"

    def test_quoted_phrase_is_one_term(self) -> None:
        parsed = parse_query('"grey velvet" sofa')
        assert parsed.terms == ["grey velvet", "sofa"]

    def test_colon_inside_quotes_is_not_a_filter(self) -> None:
        parsed = parse_query('"ratio:16x9"')
        assert parsed.terms == ["ratio:16x9"]
        assert parsed.filters == {}

    def test_unterminated_quote_runs_to_end(self) -> None:
        parsed = parse_query('sofa "grey velvet')
        assert parsed.terms == ["sofa", "grey velvet"]

    def test_whitespace_only_yields_nothing(self) -> None:
        parsed = parse_query("   \t ")
        assert parsed.terms == []
        assert parsed.filters == {}
        assert parsed.has_terms is False

    def test_empty_quotes_are_dropped(self) -> None:
        assert parse_query('"" lamp').terms == ["lamp"]


class TestFilters:
    def test_key_value_becomes_filter(self) -> None:
        parsed = parse_query("category:furniture grey")
        assert parsed.filters == {"category": "furniture"}
        assert parsed.terms == ["grey"]

    def test_key_is_lowercased_value_is_not(self) -> None:
        parsed = parse_query("CATEGORY:Furniture")
        assert parsed.filters == {"category": "Furniture"}

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("a:b:c", {"a": "b:c"}),
            ("time:10:30", {"time": "10:30"}),
            ("url:http://x", {"url": "http://x"}),
        ],
    )
    def test_value_keeps_later_colons(self, raw: str, expected: dict[str, str]) -> None:
        # Split happens at the first unquoted colon; the value is not truncated at the second.
        parsed = parse_query(raw)
        assert parsed.filters == expected
        assert parsed.terms == []

    def test_quoted_value_keeps_spaces(self) -> None:
        parsed = parse_query('site:"north loft" lamp')
        assert parsed.filters == {"site": "north loft"}
        assert parsed.terms == ["lamp"]

    @pytest.mark.parametrize("raw", [":x", "x:", ":"])
    def test_empty_key_or_value_is_dropped(self, raw: str) -> None:
        parsed = parse_query(raw)
        assert parsed.filters == {}
        assert parsed.terms == []

    def test_repeated_key_keeps_last_value(self) -> None:
        assert parse_query("type:png type:jpeg").filters == {"type": "jpeg"}

    def test_filters_only_query_has_no_terms(self) -> None:
        parsed = parse_query("category:lighting type:png")
        assert parsed.has_terms is False
        assert parsed.filters == {"category": "lighting", "type": "png"}
