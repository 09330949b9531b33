"""Tests for single-slot re-validation"""
import uuid
from datetime import timedelta

from conftest import NOW, TUESDAY, utc
from slotwise.models import Booking, BookingStatus
from slotwise.services.availability.slot_validator import SlotValidator


def check(db, service, tenant, provider_id, start, **kwargs):
    kwargs.setdefault("now", NOW)
    return SlotValidator.check_slot(db, service.id, tenant.id, provider_id, start, **kwargs)


def book(db, service, provider, start, key=None):
    end = start + timedelta(minutes=service.duration_minutes)
    booking_id = uuid.uuid4()
    db.add(Booking(
        id=booking_id,
        tenant_id=service.tenant_id,
        service_id=service.id,
        provider_id=provider.id,
        client_name="Existing Client",
        client_email="existing@clinic.com",
        start_time=start,
        end_time=end,
        duration_minutes=service.duration_minutes,
        occupied_start=start - timedelta(minutes=service.buffer_before_minutes),
        occupied_end=end + timedelta(minutes=service.buffer_after_minutes),
        session_key=key or str(booking_id),
        status=BookingStatus.CONFIRMED,
    ))
    db.commit()


class TestCheckSlot:

    def test_free_slot(self, db, clinic):
        tenant, service, provider = clinic

        result = check(db, service, tenant, provider.id, utc(2030, 1, 8, 10))

        assert result.available is True
        assert result.to_dict() == {"available": True}

    def test_iso_string_input(self, db, clinic):
        tenant, service, provider = clinic
        assert check(db, service, tenant, provider.id, "2030-01-08T10:00:00Z").available

    def test_naive_start_read_in_caller_zone(self, db, clinic):
        tenant, service, provider = clinic
        # 05:00 in New York is 10:00 UTC in January
        result = check(db, service, tenant, provider.id, "2030-01-08T05:00:00", timezone="America/New_York")
        assert result.available

    def test_provider_not_assigned(self, db, clinic, make_provider):
        tenant, service, _ = clinic
        stranger = make_provider(tenant, name="Stranger")

        result = check(db, service, tenant, stranger.id, utc(2030, 1, 8, 10))

        assert not result.available
        assert result.reason == "provider not assigned to service"
        assert result.conflict_type == "provider"

    def test_outside_booking_window(self, db, clinic):
        tenant, service, provider = clinic

        result = check(db, service, tenant, provider.id, utc(2030, 1, 8, 10), now=utc(2030, 1, 8, 10, 30))

        assert result.reason == "outside booking window"
        assert result.conflict_type == "window"

    def test_beyond_horizon(self, db, clinic):
        tenant, service, provider = clinic
        result = check(db, service, tenant, provider.id, utc(2030, 6, 4, 10))
        assert result.reason == "outside booking window"

    def test_outside_availability(self, db, clinic):
        tenant, service, provider = clinic

        result = check(db, service, tenant, provider.id, utc(2030, 1, 8, 11, 30))

        assert result.to_dict() == {
            "available": False,
            "reason": "outside availability",
            "conflict_type": "schedule",
        }

    def test_day_off(self, db, clinic, add_override):
        tenant, service, provider = clinic
        add_override(provider, utc(2030, 1, 8).date(), is_available=False)

        result = check(db, service, tenant, provider.id, utc(2030, 1, 8, 10))

        assert result.reason == "outside availability"

    def test_conflicts_with_booking(self, db, clinic):
        tenant, service, provider = clinic
        book(db, service, provider, utc(2030, 1, 8, 10))

        result = check(db, service, tenant, provider.id, utc(2030, 1, 8, 10))

        assert result.reason == "conflicts with existing booking"
        assert result.conflict_type == "booking"

    def test_off_lattice_start_inside_hours_is_accepted(self, db, clinic):
        tenant, service, provider = clinic
        assert check(db, service, tenant, provider.id, utc(2030, 1, 8, 9, 30)).available

    def test_buffer_of_existing_booking(self, db, make_tenant, make_provider, make_service, add_rule):
        tenant = make_tenant()
        provider = make_provider(tenant)
        service = make_service(tenant, duration=30, buffer_after=15, providers=[provider])
        add_rule(provider, TUESDAY, "09:00", "12:00")
        book(db, service, provider, utc(2030, 1, 8, 10))

        assert check(db, service, tenant, provider.id, utc(2030, 1, 8, 10, 40)).reason == \
            "conflicts with existing booking"
        assert check(db, service, tenant, provider.id, utc(2030, 1, 8, 10, 45)).available

    def test_session_full(self, db, make_tenant, make_provider, make_service, add_rule):
        tenant = make_tenant()
        provider = make_provider(tenant)
        service = make_service(tenant, name="Yoga", max_capacity=2, providers=[provider])
        add_rule(provider, TUESDAY, "09:00", "12:00")
        key = f"{service.id}:2030-01-08T09:00:00Z"
        book(db, service, provider, utc(2030, 1, 8, 9), key=key)

        assert check(db, service, tenant, provider.id, utc(2030, 1, 8, 9)).available

        book(db, service, provider, utc(2030, 1, 8, 9), key=key)
        result = check(db, service, tenant, provider.id, utc(2030, 1, 8, 9))

        assert result.reason == "session is full"
        assert result.conflict_type == "capacity"

    def test_overlapping_class_session_at_another_start(self, db, make_tenant, make_provider, make_service, add_rule):
        tenant = make_tenant()
        provider = make_provider(tenant)
        service = make_service(tenant, name="Yoga", max_capacity=5, providers=[provider])
        add_rule(provider, TUESDAY, "09:00", "12:00")
        book(db, service, provider, utc(2030, 1, 8, 9), key=f"{service.id}:2030-01-08T09:00:00Z")

        result = check(db, service, tenant, provider.id, utc(2030, 1, 8, 9, 30))

        assert result.reason == "conflicts with existing booking"
