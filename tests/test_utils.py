"""Tests for frontmatter_sync.utils."""

import datetime

import pytest

from frontmatter_sync.utils import (
    _any_tag_matches,
    _as_elements,
    _coerce_tag_list,
    _is_empty_value,
    _scalar_text,
    _values_equal,
    extract_display_name,
    sanitize_tag_value,
)


# ---------------------------------------------------------------------------
# Scalar handling
# ---------------------------------------------------------------------------

class TestScalarText:
    def test_string(self):
        assert _scalar_text("abc") == "abc"

    def test_none(self):
        assert _scalar_text(None) == ""

    def test_booleans_yaml_spelling(self):
        assert _scalar_text(True) == "true"
        assert _scalar_text(False) == "false"

    def test_integral_float(self):
        assert _scalar_text(3.0) == "3"

    def test_fractional_float(self):
        assert _scalar_text(2.5) == "2.5"

    def test_date(self):
        assert _scalar_text(datetime.date(2024, 6, 15)) == "2024-06-15"


class TestIsEmptyValue:
    @pytest.mark.parametrize("value", [None, "", [], ()])
    def test_empty(self, value):
        assert _is_empty_value(value) is True

    @pytest.mark.parametrize("value", ["x", 0, False, ["a"]])
    def test_not_empty(self, value):
        assert _is_empty_value(value) is False


class TestAsElements:
    def test_scalar(self):
        assert _as_elements("a") == ["a"]

    def test_list(self):
        assert _as_elements(["a", "b"]) == ["a", "b"]

    def test_none(self):
        assert _as_elements(None) == []

    def test_drops_none_items(self):
        assert _as_elements(["a", None, "b"]) == ["a", "b"]

    def test_flattens_unquoted_wikilink(self):
        # YAML: category: [[My Note]]
        assert _as_elements([["My Note"]]) == ["My Note"]


class TestValuesEqual:
    def test_same_string(self):
        assert _values_equal("done", "done")

    def test_case_sensitive(self):
        assert not _values_equal("Done", "done")

    def test_number(self):
        assert _values_equal(1, 1)

    def test_bool_is_not_int(self):
        assert not _values_equal(True, 1)
        assert not _values_equal(0, False)

    def test_string_is_not_number(self):
        assert not _values_equal("1", 1)


# ---------------------------------------------------------------------------
# Value sanitizer
# ---------------------------------------------------------------------------

class TestSanitizeTagValue:
    def test_hierarchy_preserved(self):
        assert sanitize_tag_value("Sci-Fi/Space Opera!") == "Sci_Fi/Space_Opera_"

    def test_plain(self):
        assert sanitize_tag_value("urgent") == "urgent"

    def test_underscore_and_digits_kept(self):
        assert sanitize_tag_value("v2_final") == "v2_final"

    def test_non_ascii_replaced(self):
        assert sanitize_tag_value("Müller") == "M_ller"

    def test_empty(self):
        assert sanitize_tag_value("") == ""

    def test_empty_segments_kept(self):
        assert sanitize_tag_value("a//b") == "a//b"

    def test_number(self):
        assert sanitize_tag_value(42) == "42"

    def test_float(self):
        assert sanitize_tag_value(1.5) == "1_5"

    def test_bool(self):
        assert sanitize_tag_value(True) == "true"

    def test_idempotent(self):
        once = sanitize_tag_value("Sci-Fi/Space Opera!")
        assert sanitize_tag_value(once) == once


# ---------------------------------------------------------------------------
# Reference extractor
# ---------------------------------------------------------------------------

class TestExtractDisplayName:
    def test_full_reference(self):
        assert extract_display_name("[[Projects/My Book.md|Book Alias]]") == "My Book"

    def test_plain_name(self):
        assert extract_display_name("Fiction") == "Fiction"

    def test_brackets_only(self):
        assert extract_display_name("[[Fiction]]") == "Fiction"

    def test_alias_without_path(self):
        assert extract_display_name("[[Fiction|Novels]]") == "Fiction"

    def test_path_without_extension(self):
        assert extract_display_name("[[Areas/Reading/Fiction]]") == "Fiction"

    def test_trims_whitespace(self):
        assert extract_display_name("[[  Fiction  ]]") == "Fiction"

    def test_only_md_extension_stripped(self):
        assert extract_display_name("[[notes.txt]]") == "notes.txt"

    def test_empty(self):
        assert extract_display_name("") == ""
        assert extract_display_name(None) == ""

    def test_empty_reference(self):
        assert extract_display_name("[[]]") == ""


# ---------------------------------------------------------------------------
# Tag list helpers
# ---------------------------------------------------------------------------

class TestCoerceTagList:
    def test_list(self):
        assert _coerce_tag_list(["a", "b"]) == ["a", "b"]

    def test_none(self):
        assert _coerce_tag_list(None) == []

    def test_comma_string(self):
        assert _coerce_tag_list("a, b ,c") == ["a", "b", "c"]

    def test_single_string(self):
        assert _coerce_tag_list("source/book") == ["source/book"]

    def test_dedupes_in_order(self):
        assert _coerce_tag_list(["b", "a", "b"]) == ["b", "a"]

    def test_skips_empty_and_none(self):
        assert _coerce_tag_list(["a", None, "", "  "]) == ["a"]

    def test_numbers_become_text(self):
        assert _coerce_tag_list([2024]) == ["2024"]


class TestAnyTagMatches:
    def test_prefix_match(self):
        assert _any_tag_matches(["source/book"], ["source"])

    def test_not_segment_aware(self):
        assert _any_tag_matches(["sourcery"], ["source"])

    def test_no_match(self):
        assert not _any_tag_matches(["note"], ["source"])

    def test_empty_prefixes(self):
        assert not _any_tag_matches(["note"], [])
