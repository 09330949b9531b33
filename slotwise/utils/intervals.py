# slotwise/utils/intervals.py
"""Half-open [start, end) interval arithmetic on UTC datetimes"""
from datetime import datetime
from typing import Iterable, List, NamedTuple


class TimeRange(NamedTuple):
    start: datetime
    end: datetime


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Two half-open intervals overlap when each starts before the other ends"""
    return a_start < b_end and b_start < a_end


def merge_ranges(ranges: Iterable[TimeRange]) -> List[TimeRange]:
    """
    Merge overlapping or adjacent ranges.

    Args:
        ranges: ranges in any order; empty or inverted ranges are dropped

    Returns:
        list: sorted, pairwise disjoint ranges
    """
    ordered = sorted((r for r in ranges if r.start < r.end), key=lambda r: r.start)
    if not ordered:
        return []

    merged = [ordered[0]]
    for current in ordered[1:]:
        last = merged[-1]
        if current.start <= last.end:
            if current.end > last.end:
                merged[-1] = TimeRange(last.start, current.end)
        else:
            merged.append(current)

    return merged


def subtract_range(interval: TimeRange, block: TimeRange) -> List[TimeRange]:
    """Remove block from interval, returning 0, 1 or 2 pieces"""
    if not overlaps(interval.start, interval.end, block.start, block.end):
        return [interval]

    pieces = []
    if block.start > interval.start:
        pieces.append(TimeRange(interval.start, block.start))
    if block.end < interval.end:
        pieces.append(TimeRange(block.end, interval.end))
    return pieces


def subtract_ranges(ranges: Iterable[TimeRange], blocks: Iterable[TimeRange]) -> List[TimeRange]:
    """Remove every block from every range"""
    remaining = merge_ranges(ranges)
    for block in merge_ranges(blocks):
        next_remaining = []
        for interval in remaining:
            next_remaining.extend(subtract_range(interval, block))
        remaining = next_remaining
    return remaining


def intersect_ranges(left: Iterable[TimeRange], right: Iterable[TimeRange]) -> List[TimeRange]:
    """Intersection of two range sets (two-pointer sweep over merged inputs)"""
    a = merge_ranges(left)
    b = merge_ranges(right)
    result = []
    i = j = 0

    while i < len(a) and j < len(b):
        start = max(a[i].start, b[j].start)
        end = min(a[i].end, b[j].end)
        if start < end:
            result.append(TimeRange(start, end))

        if a[i].end < b[j].end:
            i += 1
        else:
            j += 1

    return result


def contains_range(ranges: Iterable[TimeRange], start: datetime, end: datetime) -> bool:
    """True if [start, end) lies entirely inside one of the merged ranges"""
    return any(r.start <= start and end <= r.end for r in merge_ranges(ranges))
