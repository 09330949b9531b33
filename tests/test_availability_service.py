"""
Tests for the availability resolver: rule/override resolution, bookings,
booking window, time zones, any-provider merging and class capacity.
"""
import uuid
from datetime import date, time, timedelta

import pytest

from conftest import NOW, TUESDAY, utc
from slotwise.core.exceptions import NotFoundError, ValidationError
from slotwise.models import Booking, BookingStatus, ServiceOverride, ServiceWindow
from slotwise.services.availability.availability_service import AvailabilityService

TUESDAY_DATE = date(2030, 1, 8)


def slot_starts(result, day=None):
    days = result["days"]
    if day is not None:
        days = [d for d in days if d["date"] == day.isoformat()]
    return [slot["start_time"] for d in days for slot in d["slots"]]


def add_booking(db, service, provider, start, status=BookingStatus.CONFIRMED, key=None):
    end = start + timedelta(minutes=service.duration_minutes)
    booking_id = uuid.uuid4()
    booking = Booking(
        id=booking_id,
        tenant_id=service.tenant_id,
        service_id=service.id,
        provider_id=provider.id,
        client_name="Existing Client",
        client_email="existing@clinic.com",
        start_time=start,
        end_time=end,
        duration_minutes=service.duration_minutes,
        buffer_before_minutes=service.buffer_before_minutes,
        buffer_after_minutes=service.buffer_after_minutes,
        occupied_start=start - timedelta(minutes=service.buffer_before_minutes),
        occupied_end=end + timedelta(minutes=service.buffer_after_minutes),
        session_key=key or str(booking_id),
        currency="USD",
        status=status,
    )
    db.add(booking)
    db.commit()
    return booking


def availability(db, service, tenant, start=TUESDAY_DATE, end=TUESDAY_DATE, **kwargs):
    kwargs.setdefault("now", NOW)
    return AvailabilityService.get_availability(db, service.id, tenant.id, start, end, **kwargs)


class TestEndToEnd:

    def test_tuesday_hourly_slots(self, db, clinic):
        tenant, service, provider = clinic

        result = availability(db, service, tenant, provider_id=provider.id)

        assert slot_starts(result) == [
            "2030-01-08T09:00:00+00:00",
            "2030-01-08T10:00:00+00:00",
            "2030-01-08T11:00:00+00:00",
        ]
        day = result["days"][0]
        assert day["has_availability"] is True
        assert day["slots"][0]["provider_id"] == str(provider.id)
        assert day["slots"][0]["duration_minutes"] == 60
        assert result["total_slots"] == 3
        assert result["any_provider_mode"] is False

    def test_every_requested_day_is_listed(self, db, clinic):
        tenant, service, _ = clinic

        result = availability(db, service, tenant, start=date(2030, 1, 7), end=date(2030, 1, 13))

        assert [d["date"] for d in result["days"]] == [
            (date(2030, 1, 7) + timedelta(days=i)).isoformat() for i in range(7)
        ]
        assert [d["has_availability"] for d in result["days"]] == [
            False, True, False, False, False, False, False
        ]

    def test_accepts_string_dates(self, db, clinic):
        tenant, service, _ = clinic
        result = availability(db, service, tenant, start="2030-01-08", end="2030-01-08")
        assert result["total_slots"] == 3

    def test_repeated_queries_are_identical(self, db, clinic):
        tenant, service, _ = clinic
        first = availability(db, service, tenant, start=date(2030, 1, 6), end=date(2030, 1, 20))
        second = availability(db, service, tenant, start=date(2030, 1, 6), end=date(2030, 1, 20))
        assert first == second

    def test_service_without_providers_has_no_availability(self, db, make_tenant, make_service):
        tenant = make_tenant()
        service = make_service(tenant)

        result = availability(db, service, tenant, start=date(2030, 1, 7), end=date(2030, 1, 9))

        assert len(result["days"]) == 3
        assert all(not d["has_availability"] for d in result["days"])
        assert result["total_slots"] == 0


class TestOverrides:

    def test_unavailable_override_blocks_the_day(self, db, clinic, add_override):
        tenant, service, provider = clinic
        add_override(provider, TUESDAY_DATE, is_available=False, reason="Holiday")

        result = availability(db, service, tenant)

        assert slot_starts(result) == []
        assert result["days"][0]["has_availability"] is False

    def test_override_blocks_only_its_date(self, db, clinic, add_override):
        tenant, service, provider = clinic
        add_override(provider, TUESDAY_DATE, is_available=False)

        result = availability(db, service, tenant, end=date(2030, 1, 15))

        assert slot_starts(result, date(2030, 1, 15)) == [
            "2030-01-15T09:00:00+00:00",
            "2030-01-15T10:00:00+00:00",
            "2030-01-15T11:00:00+00:00",
        ]

    def test_custom_hours_replace_weekly_rule(self, db, clinic, add_override):
        tenant, service, provider = clinic
        add_override(provider, TUESDAY_DATE, is_available=True, start="13:00", end="15:00")

        result = availability(db, service, tenant)

        assert slot_starts(result) == ["2030-01-08T13:00:00+00:00", "2030-01-08T14:00:00+00:00"]

    def test_available_override_without_hours_keeps_weekly_rule(self, db, clinic, add_override):
        tenant, service, provider = clinic
        add_override(provider, TUESDAY_DATE, is_available=True)

        assert availability(db, service, tenant)["total_slots"] == 3

    def test_override_opens_a_day_without_rules(self, db, clinic, add_override):
        tenant, service, provider = clinic
        wednesday = date(2030, 1, 9)
        add_override(provider, wednesday, is_available=True, start="10:00", end="12:00")

        result = availability(db, service, tenant, start=wednesday, end=wednesday)

        assert slot_starts(result) == ["2030-01-09T10:00:00+00:00", "2030-01-09T11:00:00+00:00"]


class TestBookings:

    def test_active_booking_removes_slot(self, db, clinic):
        tenant, service, provider = clinic
        add_booking(db, service, provider, utc(2030, 1, 8, 10))

        assert slot_starts(availability(db, service, tenant)) == [
            "2030-01-08T09:00:00+00:00",
            "2030-01-08T11:00:00+00:00",
        ]

    def test_pending_booking_also_blocks(self, db, clinic):
        tenant, service, provider = clinic
        add_booking(db, service, provider, utc(2030, 1, 8, 10), status=BookingStatus.PENDING)

        assert availability(db, service, tenant)["total_slots"] == 2

    @pytest.mark.parametrize("status", [BookingStatus.CANCELLED, BookingStatus.REJECTED])
    def test_inactive_booking_does_not_block(self, db, clinic, status):
        tenant, service, provider = clinic
        add_booking(db, service, provider, utc(2030, 1, 8, 10), status=status)

        assert availability(db, service, tenant)["total_slots"] == 3

    def test_cancelling_frees_the_slot(self, db, clinic):
        tenant, service, provider = clinic
        booking = add_booking(db, service, provider, utc(2030, 1, 8, 10))
        assert availability(db, service, tenant)["total_slots"] == 2

        booking.status = BookingStatus.CANCELLED
        db.commit()

        assert availability(db, service, tenant)["total_slots"] == 3

    def test_trailing_buffer(self, db, make_tenant, make_provider, make_service, add_rule):
        tenant = make_tenant()
        provider = make_provider(tenant)
        service = make_service(tenant, duration=30, buffer_after=15, providers=[provider])
        add_rule(provider, TUESDAY, "09:00", "12:00")
        add_booking(db, service, provider, utc(2030, 1, 8, 10))

        starts = slot_starts(availability(db, service, tenant))

        assert "2030-01-08T10:30:00+00:00" not in starts
        assert "2030-01-08T10:40:00+00:00" not in starts
        assert "2030-01-08T10:45:00+00:00" in starts

    def test_booking_of_another_service_blocks_provider(self, db, clinic, make_service):
        tenant, service, provider = clinic
        other = make_service(tenant, name="Massage", duration=30, providers=[provider])
        add_booking(db, other, provider, utc(2030, 1, 8, 9, 30))

        assert slot_starts(availability(db, service, tenant)) == [
            "2030-01-08T10:00:00+00:00",
            "2030-01-08T11:00:00+00:00",
        ]


class TestBookingWindow:

    def test_minimum_notice(self, db, make_tenant, make_provider, make_service, add_rule):
        tenant = make_tenant()
        provider = make_provider(tenant)
        service = make_service(tenant, min_notice_hours=24, providers=[provider])
        for day in range(7):
            add_rule(provider, day, "09:00", "12:00")
        now = utc(2030, 1, 8, 9, 30)

        result = availability(db, service, tenant, end=date(2030, 1, 9), now=now)

        assert slot_starts(result, TUESDAY_DATE) == []
        assert slot_starts(result, date(2030, 1, 9)) == [
            "2030-01-09T10:00:00+00:00",
            "2030-01-09T11:00:00+00:00",
        ]

    def test_past_slots_are_never_offered(self, db, clinic):
        tenant, service, _ = clinic
        result = availability(db, service, tenant, now=utc(2030, 1, 8, 10, 15))
        assert slot_starts(result) == ["2030-01-08T11:00:00+00:00"]

    def test_max_future_days(self, db, make_tenant, make_provider, make_service, add_rule):
        tenant = make_tenant()
        provider = make_provider(tenant)
        service = make_service(tenant, max_future_days=1, providers=[provider])
        for day in range(7):
            add_rule(provider, day, "09:00", "12:00")

        result = availability(db, service, tenant, start=date(2030, 1, 7), end=date(2030, 1, 10))

        assert [d["has_availability"] for d in result["days"]] == [True, True, False, False]


class TestTimezones:

    def test_slots_rendered_in_caller_zone(self, db, clinic):
        tenant, service, _ = clinic

        result = availability(db, service, tenant, timezone="Asia/Tokyo")

        assert result["timezone"] == "Asia/Tokyo"
        assert slot_starts(result) == [
            "2030-01-08T18:00:00+09:00",
            "2030-01-08T19:00:00+09:00",
            "2030-01-08T20:00:00+09:00",
        ]

    def test_caller_day_boundaries(self, db, clinic):
        tenant, service, _ = clinic

        # 09:00-12:00 UTC on Tuesday is Monday evening in Honolulu (UTC-10)
        result = availability(
            db, service, tenant, start=date(2030, 1, 7), end=date(2030, 1, 8), timezone="Pacific/Honolulu"
        )

        assert slot_starts(result, date(2030, 1, 7)) == [
            "2030-01-07T23:00:00-10:00",
        ]
        assert slot_starts(result, date(2030, 1, 8)) == [
            "2030-01-08T00:00:00-10:00",
            "2030-01-08T01:00:00-10:00",
        ]

    def test_schedule_read_in_tenant_zone(self, db, make_tenant, make_provider, make_service, add_rule):
        tenant = make_tenant(timezone="America/New_York")
        provider = make_provider(tenant)
        service = make_service(tenant, providers=[provider])
        add_rule(provider, TUESDAY, "09:00", "11:00")

        result = availability(db, service, tenant, timezone="America/New_York")

        assert slot_starts(result) == [
            "2030-01-08T09:00:00-05:00",
            "2030-01-08T10:00:00-05:00",
        ]

    def test_spring_forward_keeps_wall_clock_hours(self, db, make_tenant, make_provider, make_service, add_rule):
        tenant = make_tenant(timezone="America/New_York")
        provider = make_provider(tenant)
        service = make_service(tenant, max_future_days=365, providers=[provider])
        add_rule(provider, 0, "09:00", "11:00")  # Sunday

        # 2030-03-10 is the Sunday clocks change in New York
        result = availability(
            db, service, tenant, start=date(2030, 3, 10), end=date(2030, 3, 10), timezone="America/New_York"
        )

        assert slot_starts(result) == [
            "2030-03-10T09:00:00-04:00",
            "2030-03-10T10:00:00-04:00",
        ]

    def test_repeated_hour_is_offered_twice(self, db, make_tenant, make_provider, make_service, add_rule):
        tenant = make_tenant(timezone="America/New_York")
        provider = make_provider(tenant)
        service = make_service(tenant, max_future_days=365, providers=[provider])
        add_rule(provider, 0, "01:00", "03:00")  # Sunday

        # Clocks fall back at 02:00 EDT on 2030-11-03, so 01:00-03:00 lasts three hours
        result = availability(
            db, service, tenant, start=date(2030, 11, 3), end=date(2030, 11, 3), timezone="America/New_York"
        )

        assert slot_starts(result) == [
            "2030-11-03T01:00:00-04:00",
            "2030-11-03T01:00:00-05:00",
            "2030-11-03T02:00:00-05:00",
        ]


class TestAnyProvider:

    def test_merges_providers_by_start(self, db, make_tenant, make_provider, make_service, add_rule):
        tenant = make_tenant()
        alice = make_provider(tenant, name="Alice", display_order=0)
        bob = make_provider(tenant, name="Bob", display_order=1)
        service = make_service(tenant, providers=[bob, alice])
        add_rule(alice, TUESDAY, "09:00", "11:00")
        add_rule(bob, TUESDAY, "10:00", "12:00")

        result = availability(db, service, tenant)
        slots = result["days"][0]["slots"]

        assert result["any_provider_mode"] is True
        assert [s["start_time"] for s in slots] == [
            "2030-01-08T09:00:00+00:00",
            "2030-01-08T10:00:00+00:00",
            "2030-01-08T11:00:00+00:00",
        ]
        assert slots[0]["available_provider_ids"] == [str(alice.id)]
        assert slots[1]["available_provider_ids"] == [str(alice.id), str(bob.id)]
        assert slots[2]["available_provider_ids"] == [str(bob.id)]

    def test_busy_provider_is_left_out(self, db, make_tenant, make_provider, make_service, add_rule):
        tenant = make_tenant()
        alice = make_provider(tenant, name="Alice")
        bob = make_provider(tenant, name="Bob", display_order=1)
        service = make_service(tenant, providers=[alice, bob])
        add_rule(alice, TUESDAY, "09:00", "10:00")
        add_rule(bob, TUESDAY, "09:00", "10:00")
        add_booking(db, service, alice, utc(2030, 1, 8, 9))

        slots = availability(db, service, tenant)["days"][0]["slots"]

        assert len(slots) == 1
        assert slots[0]["available_provider_ids"] == [str(bob.id)]

    def test_inactive_provider_is_ignored(self, db, clinic):
        tenant, service, provider = clinic
        provider.is_active = False
        db.commit()

        assert availability(db, service, tenant)["total_slots"] == 0


class TestServiceWindows:

    def test_service_hours_narrow_provider_hours(self, db, clinic):
        tenant, service, _ = clinic
        db.add(ServiceWindow(
            service_id=service.id,
            day_of_week=TUESDAY,
            start_time=time(10, 0),
            end_time=time(11, 30),
        ))
        db.commit()

        assert slot_starts(availability(db, service, tenant)) == ["2030-01-08T10:00:00+00:00"]

    def test_day_without_service_hours_is_closed(self, db, clinic):
        tenant, service, _ = clinic
        db.add(ServiceWindow(
            service_id=service.id,
            day_of_week=0,
            start_time=time(9, 0),
            end_time=time(17, 0),
        ))
        db.commit()

        assert availability(db, service, tenant)["total_slots"] == 0


class TestServiceOverrides:

    def test_closed_service_blocks_the_day(self, db, clinic):
        tenant, service, _ = clinic
        db.add(ServiceOverride(service_id=service.id, override_date=TUESDAY_DATE, is_available=False, reason="Renovation"))
        db.commit()

        result = availability(db, service, tenant)

        assert result["total_slots"] == 0
        assert result["days"][0]["has_availability"] is False

    def test_special_hours_replace_service_hours(self, db, clinic):
        tenant, service, _ = clinic
        db.add(ServiceWindow(service_id=service.id, day_of_week=TUESDAY, start_time=time(9, 0), end_time=time(10, 0)))
        db.add(ServiceOverride(
            service_id=service.id,
            override_date=TUESDAY_DATE,
            is_available=True,
            start_time=time(10, 0),
            end_time=time(12, 0),
        ))
        db.commit()

        assert slot_starts(availability(db, service, tenant)) == [
            "2030-01-08T10:00:00+00:00",
            "2030-01-08T11:00:00+00:00",
        ]

    def test_special_hours_still_need_a_provider(self, db, clinic):
        tenant, service, _ = clinic
        db.add(ServiceOverride(
            service_id=service.id,
            override_date=TUESDAY_DATE,
            is_available=True,
            start_time=time(11, 0),
            end_time=time(15, 0),
        ))
        db.commit()

        assert slot_starts(availability(db, service, tenant)) == ["2030-01-08T11:00:00+00:00"]

    def test_blocked_range_is_cut_from_service_hours(self, db, clinic):
        tenant, service, _ = clinic
        db.add(ServiceWindow(service_id=service.id, day_of_week=TUESDAY, start_time=time(9, 0), end_time=time(12, 0)))
        db.add(ServiceOverride(
            service_id=service.id,
            override_date=TUESDAY_DATE,
            is_available=False,
            start_time=time(10, 0),
            end_time=time(11, 0),
        ))
        db.commit()

        assert slot_starts(availability(db, service, tenant)) == [
            "2030-01-08T09:00:00+00:00",
            "2030-01-08T11:00:00+00:00",
        ]

    def test_blocked_range_on_unrestricted_service(self, db, clinic):
        tenant, service, _ = clinic
        db.add(ServiceOverride(
            service_id=service.id,
            override_date=TUESDAY_DATE,
            is_available=False,
            start_time=time(10, 0),
            end_time=time(11, 0),
        ))
        db.commit()

        assert slot_starts(availability(db, service, tenant)) == [
            "2030-01-08T09:00:00+00:00",
            "2030-01-08T11:00:00+00:00",
        ]

    def test_override_only_touches_its_date(self, db, clinic):
        tenant, service, _ = clinic
        db.add(ServiceOverride(service_id=service.id, override_date=TUESDAY_DATE, is_available=False))
        db.commit()
        next_tuesday = TUESDAY_DATE + timedelta(days=7)

        result = availability(db, service, tenant, start=TUESDAY_DATE, end=next_tuesday)

        assert slot_starts(result, TUESDAY_DATE) == []
        assert len(slot_starts(result, next_tuesday)) == 3

    def test_slot_check_honours_service_closure(self, db, clinic):
        tenant, service, _ = clinic
        db.add(ServiceOverride(service_id=service.id, override_date=TUESDAY_DATE, is_available=False))
        db.commit()

        free = AvailabilityService.get_providers_for_slot(db, service.id, tenant.id, utc(2030, 1, 8, 9))

        assert free == []


class TestClassCapacity:

    @pytest.fixture
    def yoga(self, make_tenant, make_provider, make_service, add_rule):
        tenant = make_tenant()
        provider = make_provider(tenant, name="Coach")
        service = make_service(tenant, name="Yoga", max_capacity=2, providers=[provider])
        add_rule(provider, TUESDAY, "09:00", "11:00")
        return tenant, service, provider

    def test_remaining_seats_are_reported(self, db, yoga):
        tenant, service, provider = yoga
        key = f"{service.id}:2030-01-08T09:00:00Z"
        add_booking(db, service, provider, utc(2030, 1, 8, 9), key=key)

        slots = availability(db, service, tenant, provider_id=provider.id)["days"][0]["slots"]

        assert [(s["start_time"], s["remaining_capacity"]) for s in slots] == [
            ("2030-01-08T09:00:00+00:00", 1),
            ("2030-01-08T10:00:00+00:00", 2),
        ]

    def test_full_session_disappears(self, db, yoga):
        tenant, service, provider = yoga
        key = f"{service.id}:2030-01-08T09:00:00Z"
        add_booking(db, service, provider, utc(2030, 1, 8, 9), key=key)
        add_booking(db, service, provider, utc(2030, 1, 8, 9), key=key)

        assert slot_starts(availability(db, service, tenant)) == ["2030-01-08T10:00:00+00:00"]


class TestSummary:

    def test_counts_per_day(self, db, clinic):
        tenant, service, _ = clinic

        summary = AvailabilityService.get_summary(
            db, service.id, tenant.id, date(2030, 1, 7), date(2030, 1, 8), now=NOW
        )

        assert [(d["date"], d["slot_count"]) for d in summary["days"]] == [
            ("2030-01-07", 0),
            ("2030-01-08", 3),
        ]
        assert summary["total_slots"] == 3


class TestProvidersForSlot:

    def test_lists_free_providers_in_order(self, db, make_tenant, make_provider, make_service, add_rule):
        tenant = make_tenant()
        alice = make_provider(tenant, name="Alice")
        bob = make_provider(tenant, name="Bob", display_order=1)
        carol = make_provider(tenant, name="Carol", display_order=2)
        service = make_service(tenant, providers=[carol, bob, alice])
        for provider in (alice, bob, carol):
            add_rule(provider, TUESDAY, "09:00", "12:00")
        add_booking(db, service, bob, utc(2030, 1, 8, 10))

        free = AvailabilityService.get_providers_for_slot(db, service.id, tenant.id, utc(2030, 1, 8, 10))

        assert [p.name for p in free] == ["Alice", "Carol"]

    def test_interval_outside_hours(self, db, clinic):
        tenant, service, _ = clinic
        free = AvailabilityService.get_providers_for_slot(db, service.id, tenant.id, utc(2030, 1, 8, 11, 30))
        assert free == []

    def test_explicit_end_time(self, db, clinic):
        tenant, service, provider = clinic
        free = AvailabilityService.get_providers_for_slot(
            db, service.id, tenant.id, utc(2030, 1, 8, 9), end_time=utc(2030, 1, 8, 12)
        )
        assert free == [provider]

    def test_end_before_start(self, db, clinic):
        tenant, service, _ = clinic
        with pytest.raises(ValidationError):
            AvailabilityService.get_providers_for_slot(
                db, service.id, tenant.id, utc(2030, 1, 8, 10), end_time=utc(2030, 1, 8, 9)
            )


class TestErrors:

    def test_unknown_service(self, db, clinic):
        tenant, _, _ = clinic
        with pytest.raises(NotFoundError):
            AvailabilityService.get_availability(db, uuid.uuid4(), tenant.id, TUESDAY_DATE, TUESDAY_DATE)

    def test_unknown_tenant(self, db, clinic):
        _, service, _ = clinic
        with pytest.raises(NotFoundError):
            AvailabilityService.get_availability(db, service.id, uuid.uuid4(), TUESDAY_DATE, TUESDAY_DATE)

    def test_service_of_another_tenant(self, db, clinic, make_tenant):
        _, service, _ = clinic
        other = make_tenant(slug="other")
        with pytest.raises(NotFoundError):
            availability(db, service, other)

    def test_provider_not_assigned(self, db, clinic, make_provider):
        tenant, service, _ = clinic
        stranger = make_provider(tenant, name="Stranger")
        with pytest.raises(NotFoundError):
            availability(db, service, tenant, provider_id=stranger.id)

    def test_malformed_date(self, db, clinic):
        tenant, service, _ = clinic
        with pytest.raises(ValidationError):
            availability(db, service, tenant, start="2030-02-30", end="2030-03-01")

    def test_start_after_end(self, db, clinic):
        tenant, service, _ = clinic
        with pytest.raises(ValidationError):
            availability(db, service, tenant, start=date(2030, 1, 9), end=date(2030, 1, 8))

    def test_range_too_long(self, db, clinic):
        tenant, service, _ = clinic
        with pytest.raises(ValidationError):
            availability(db, service, tenant, start=date(2030, 1, 1), end=date(2030, 6, 1))

    def test_unknown_timezone(self, db, clinic):
        tenant, service, _ = clinic
        with pytest.raises(ValidationError):
            availability(db, service, tenant, timezone="Nowhere/Land")
