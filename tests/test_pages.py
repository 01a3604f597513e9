"""Unit tests for page specification parsing."""

import pytest

from app.errors import MalformedPageSpec, PageRangeOutOfBounds
from app.pages import (
    Segment,
    parse_page_ranges,
    parse_page_selection,
    parse_split_points,
    plan_split_by_points,
)


class TestPageSelection:
    """Tests for the lenient selection form used by convert and extract."""

    def test_single_pages_keep_order(self):
        assert parse_page_selection("1,3,5", 10) == [1, 3, 5]

    def test_range_expands(self):
        assert parse_page_selection("1-5", 10) == [1, 2, 3, 4, 5]

    def test_duplicates_preserved(self):
        assert parse_page_selection("1-3,2", 10) == [1, 2, 3, 2]

    def test_requested_order_not_sorted(self):
        assert parse_page_selection("5,1", 10) == [5, 1]

    @pytest.mark.parametrize("spec", [None, "", "   "])
    def test_blank_means_all_pages(self, spec):
        assert parse_page_selection(spec, 4) == [1, 2, 3, 4]

    def test_whitespace_around_tokens(self):
        assert parse_page_selection(" 2 , 4 - 5 ", 10) == [2, 4, 5]

    def test_out_of_bounds_single_page_dropped(self):
        assert parse_page_selection("0,3,11", 10) == [3]

    def test_range_truncated_at_page_count(self):
        assert parse_page_selection("8-12", 10) == [8, 9, 10]

    def test_huge_range_only_walks_document_pages(self):
        assert parse_page_selection("1-300000000", 10) == list(range(1, 11))
        assert parse_page_selection("5-999999999999", 6) == [5, 6]
        assert parse_page_selection("400000000-500000000", 10) == []

    @pytest.mark.parametrize("spec, token", [("1,,3", ""), ("abc", "abc"), ("1,", ""), ("2-x", "2-x")])
    def test_malformed_tokens(self, spec, token):
        with pytest.raises(MalformedPageSpec) as exc:
            parse_page_selection(spec, 10)
        assert exc.value.token == token

    def test_reversed_range_rejected(self):
        with pytest.raises(MalformedPageSpec) as exc:
            parse_page_selection("5-2", 10)
        assert exc.value.token == "5-2"

    def test_negative_number_is_malformed(self):
        with pytest.raises(MalformedPageSpec):
            parse_page_selection("-3", 10)


class TestPageRanges:
    """Tests for the strict ranges form used by split."""

    def test_valid_ranges(self):
        assert parse_page_ranges(["1-3", "4-10"], 10) == [Segment(1, 3), Segment(4, 10)]

    def test_comma_joined_field(self):
        assert parse_page_ranges(["1-3,4-10"], 10) == [Segment(1, 3), Segment(4, 10)]

    def test_bare_page_is_single_page_range(self):
        assert parse_page_ranges(["7"], 10) == [Segment(7, 7)]

    def test_end_beyond_document(self):
        with pytest.raises(PageRangeOutOfBounds) as exc:
            parse_page_ranges(["1-3", "9-15"], 10)
        assert exc.value.page == 15
        assert exc.value.bound == 10
        assert exc.value.spec == "9-15"
        assert "15" in str(exc.value) and "10" in str(exc.value)

    def test_start_beyond_document(self):
        with pytest.raises(PageRangeOutOfBounds) as exc:
            parse_page_ranges(["11-12"], 10)
        assert exc.value.page == 11

    def test_start_zero(self):
        with pytest.raises(PageRangeOutOfBounds) as exc:
            parse_page_ranges(["0-2"], 10)
        assert exc.value.page == 0

    def test_reversed_range_is_out_of_bounds(self):
        with pytest.raises(PageRangeOutOfBounds) as exc:
            parse_page_ranges(["5-3"], 10)
        assert exc.value.page == 3

    def test_no_ranges(self):
        with pytest.raises(MalformedPageSpec):
            parse_page_ranges([], 10)

    def test_malformed_range(self):
        with pytest.raises(MalformedPageSpec):
            parse_page_ranges(["one-two"], 10)


class TestSplitPoints:
    """Tests for split point parsing and planning."""

    def test_points_in_input_order(self):
        assert parse_split_points(["7", "4"], 10) == [7, 4]

    def test_point_beyond_document(self):
        with pytest.raises(PageRangeOutOfBounds) as exc:
            parse_split_points(["12"], 10)
        assert exc.value.page == 12
        assert exc.value.bound == 10

    def test_non_numeric_point(self):
        with pytest.raises(MalformedPageSpec):
            parse_split_points(["4", "x"], 10)

    def test_plan_three_segments(self):
        assert plan_split_by_points([4, 7], 10) == [Segment(1, 3), Segment(4, 6), Segment(7, 10)]

    def test_plan_skips_collapsed_segments(self):
        assert plan_split_by_points([1, 4, 4], 10) == [Segment(1, 3), Segment(4, 10)]

    def test_plan_without_points_is_whole_document(self):
        assert plan_split_by_points([], 5) == [Segment(1, 5)]

    def test_plan_point_at_last_page(self):
        assert plan_split_by_points([10], 10) == [Segment(1, 9), Segment(10, 10)]
