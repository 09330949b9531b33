"""Tests for day-boundary and wall-clock conversions"""
from datetime import date, datetime, time, timedelta

import pytest
import pytz

from conftest import utc
from slotwise.core.exceptions import ValidationError
from slotwise.utils.timezone import (
    get_timezone, wall_time_to_utc, local_day_bounds_utc, local_range_bounds_utc,
    ensure_utc, to_local, local_date, iter_days, parse_date, parse_wall_time, parse_instant, day_of_week
)

NEW_YORK = pytz.timezone("America/New_York")


class TestDayBounds:

    def test_utc_day(self):
        start, end = local_day_bounds_utc(date(2030, 1, 8), pytz.UTC)
        assert start == utc(2030, 1, 8)
        assert end == utc(2030, 1, 9)

    def test_spring_forward_day_has_23_hours(self):
        start, end = local_day_bounds_utc(date(2024, 3, 10), NEW_YORK)
        assert start == utc(2024, 3, 10, 5)
        assert end == utc(2024, 3, 11, 4)
        assert end - start == timedelta(hours=23)

    def test_fall_back_day_has_25_hours(self):
        start, end = local_day_bounds_utc(date(2024, 11, 3), NEW_YORK)
        assert end - start == timedelta(hours=25)

    def test_range_bounds_cover_inclusive_days(self):
        start, end = local_range_bounds_utc(date(2030, 1, 8), date(2030, 1, 10), pytz.timezone("Asia/Tokyo"))
        assert start == utc(2030, 1, 7, 15)
        assert end == utc(2030, 1, 10, 15)


class TestWallTime:

    def test_winter_offset(self):
        assert wall_time_to_utc(date(2030, 1, 8), time(9, 0), NEW_YORK) == utc(2030, 1, 8, 14)

    def test_summer_offset(self):
        assert wall_time_to_utc(date(2030, 7, 9), time(9, 0), NEW_YORK) == utc(2030, 7, 9, 13)

    def test_time_in_spring_forward_gap_moves_forward(self):
        # 02:30 does not exist on this date; it lands on 03:30 EDT
        result = wall_time_to_utc(date(2024, 3, 10), time(2, 30), NEW_YORK)
        assert result == utc(2024, 3, 10, 7, 30)
        assert to_local(result, NEW_YORK).hour == 3

    def test_ambiguous_time_uses_first_occurrence(self):
        # 01:30 happens twice on this date; the EDT one comes first
        assert wall_time_to_utc(date(2024, 11, 3), time(1, 30), NEW_YORK) == utc(2024, 11, 3, 5, 30)

    def test_naive_ambiguous_instant_uses_first_occurrence(self):
        assert ensure_utc(datetime(2024, 11, 3, 1, 30), NEW_YORK) == utc(2024, 11, 3, 5, 30)


class TestConversions:

    def test_ensure_utc_reads_naive_values_in_zone(self):
        assert ensure_utc(datetime(2030, 1, 8, 9, 0), NEW_YORK) == utc(2030, 1, 8, 14)

    def test_ensure_utc_defaults_to_utc(self):
        assert ensure_utc(datetime(2030, 1, 8, 9, 0)) == utc(2030, 1, 8, 9)

    def test_local_date_crosses_midnight(self):
        assert local_date(utc(2030, 1, 8, 2), NEW_YORK) == date(2030, 1, 7)

    def test_iter_days_inclusive(self):
        assert list(iter_days(date(2030, 1, 30), date(2030, 2, 1))) == [
            date(2030, 1, 30), date(2030, 1, 31), date(2030, 2, 1)
        ]

    def test_day_of_week_counts_from_sunday(self):
        assert day_of_week(date(2030, 1, 6)) == 0
        assert day_of_week(date(2030, 1, 7)) == 1
        assert day_of_week(date(2030, 1, 12)) == 6


class TestParsing:

    def test_parse_date(self):
        assert parse_date("2030-01-08") == date(2030, 1, 8)

    @pytest.mark.parametrize("value", ["2030-13-01", "08/01/2030", "", None])
    def test_parse_date_rejects_malformed(self, value):
        with pytest.raises(ValidationError):
            parse_date(value)

    def test_parse_wall_time(self):
        assert parse_wall_time("17:30") == time(17, 30)
        with pytest.raises(ValidationError):
            parse_wall_time("25:00")

    def test_parse_instant_accepts_z_suffix(self):
        assert parse_instant("2030-01-08T09:00:00Z") == utc(2030, 1, 8, 9)

    def test_parse_instant_rejects_garbage(self):
        with pytest.raises(ValidationError):
            parse_instant("tomorrow morning")

    def test_unknown_timezone(self):
        with pytest.raises(ValidationError):
            get_timezone("Mars/Olympus_Mons")
