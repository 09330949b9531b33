# slotwise/services/availability/slot_generator.py
"""
Pure slot generation: no database, no clock.

Given the merged free windows of one provider on one day, the provider's busy
(occupied) intervals and the service parameters, produce the ordered list of
candidate appointment start instants.
"""
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from slotwise.utils.intervals import TimeRange, merge_ranges, overlaps, subtract_ranges


def blocked_ranges(
        busy: Iterable[TimeRange],
        buffer_before_minutes: int,
        buffer_after_minutes: int
) -> List[TimeRange]:
    """
    Widen busy intervals by the candidate's own buffers.

    A candidate appointment [s, s + d) occupies [s - before, s + d + after); it is
    clear of a busy interval [b0, b1) exactly when [s, s + d) avoids
    [b0 - after, b1 + before).
    """
    before = timedelta(minutes=buffer_before_minutes)
    after = timedelta(minutes=buffer_after_minutes)
    return [TimeRange(b.start - after, b.end + before) for b in busy]


def generate_slots(
        windows: Iterable[TimeRange],
        busy: Iterable[TimeRange],
        duration_minutes: int,
        buffer_before_minutes: int = 0,
        buffer_after_minutes: int = 0,
        earliest_start: Optional[datetime] = None,
        latest_start: Optional[datetime] = None
) -> List[datetime]:
    """
    Generate bookable start instants.

    Args:
        windows: availability ranges (may overlap; merged here)
        busy: occupied intervals of existing active bookings
        duration_minutes: appointment length, also the step between starts
        buffer_before_minutes: idle time the new appointment needs before it
        buffer_after_minutes: idle time the new appointment needs after it
        earliest_start: drop starts before this instant (minimum notice)
        latest_start: drop starts at or after this instant (booking horizon)

    Returns:
        list: start instants in ascending order
    """
    if duration_minutes <= 0:
        return []

    duration = timedelta(minutes=duration_minutes)
    free = subtract_ranges(
        merge_ranges(windows),
        blocked_ranges(busy, buffer_before_minutes, buffer_after_minutes)
    )

    starts = []
    for free_range in free:
        current = free_range.start
        while current + duration <= free_range.end:
            if earliest_start is not None and current < earliest_start:
                current += duration
                continue
            if latest_start is not None and current >= latest_start:
                break
            starts.append(current)
            current += duration

    return starts


def conflicts_with_busy(
        start: datetime,
        duration_minutes: int,
        busy: Iterable[TimeRange],
        buffer_before_minutes: int = 0,
        buffer_after_minutes: int = 0
) -> bool:
    """True if the occupied interval of a candidate overlaps any busy interval"""
    occupied_start = start - timedelta(minutes=buffer_before_minutes)
    occupied_end = start + timedelta(minutes=duration_minutes + buffer_after_minutes)
    return any(overlaps(occupied_start, occupied_end, b.start, b.end) for b in busy)
