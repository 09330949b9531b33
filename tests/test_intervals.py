"""Tests for half-open interval arithmetic"""
from conftest import utc

from slotwise.utils.intervals import (
    TimeRange, overlaps, merge_ranges, subtract_ranges, intersect_ranges, contains_range
)


def r(start_hour, end_hour, start_minute=0, end_minute=0):
    return TimeRange(utc(2030, 1, 8, start_hour, start_minute), utc(2030, 1, 8, end_hour, end_minute))


class TestOverlaps:

    def test_touching_ranges_do_not_overlap(self):
        a, b = r(9, 10), r(10, 11)
        assert not overlaps(a.start, a.end, b.start, b.end)

    def test_partial_overlap(self):
        a, b = r(9, 11), r(10, 12)
        assert overlaps(a.start, a.end, b.start, b.end)

    def test_containment(self):
        a, b = r(9, 12), r(10, 11)
        assert overlaps(a.start, a.end, b.start, b.end)
        assert overlaps(b.start, b.end, a.start, a.end)


class TestMerge:

    def test_merges_overlapping_and_adjacent(self):
        merged = merge_ranges([r(13, 14), r(9, 11), r(10, 12), r(12, 13)])
        assert merged == [r(9, 14)]

    def test_keeps_gaps(self):
        assert merge_ranges([r(14, 15), r(9, 10)]) == [r(9, 10), r(14, 15)]

    def test_drops_empty_ranges(self):
        assert merge_ranges([r(10, 10), r(11, 10)]) == []


class TestSubtract:

    def test_block_in_the_middle_splits(self):
        assert subtract_ranges([r(9, 12)], [r(10, 11)]) == [r(9, 10), r(11, 12)]

    def test_block_covering_everything(self):
        assert subtract_ranges([r(9, 12)], [r(8, 13)]) == []

    def test_unrelated_block(self):
        assert subtract_ranges([r(9, 12)], [r(13, 14)]) == [r(9, 12)]

    def test_multiple_blocks(self):
        result = subtract_ranges([r(9, 17)], [r(10, 11), r(12, 13), r(16, 18)])
        assert result == [r(9, 10), r(11, 12), r(13, 16)]


class TestIntersectAndContain:

    def test_intersection(self):
        result = intersect_ranges([r(9, 12), r(14, 18)], [r(11, 15)])
        assert result == [r(11, 12), r(14, 15)]

    def test_disjoint_intersection_is_empty(self):
        assert intersect_ranges([r(9, 10)], [r(10, 11)]) == []

    def test_contains_range_across_adjacent_windows(self):
        assert contains_range([r(9, 10), r(10, 12)], utc(2030, 1, 8, 9, 30), utc(2030, 1, 8, 10, 30))

    def test_does_not_contain_range_spilling_over(self):
        assert not contains_range([r(9, 12)], utc(2030, 1, 8, 11, 30), utc(2030, 1, 8, 12, 30))
