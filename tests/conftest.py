"""
Shared fixtures: a throwaway SQLite database per test and small factories
for tenants, services, providers, schedules and users.
"""
import os

# Settings are read once at import time, so the environment goes first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["NOTIFICATIONS_ENABLED"] = "false"
os.environ["DEFAULT_TIMEZONE"] = "UTC"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["PROVIDER_ASSIGNMENT_STRATEGY"] = "first_available"

from datetime import datetime, time  # noqa: E402

import pytest  # noqa: E402
import pytz  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from slotwise.models import (  # noqa: E402
    Base, Tenant, Service, ServiceType, Provider, WeeklyRule, DateOverride, ServiceOverride, User, UserRole
)

# Monday 2030-01-07 08:00 UTC; 2030-01-08 is a Tuesday (weekdays count from Sunday = 0)
NOW = datetime(2030, 1, 7, 8, 0, tzinfo=pytz.UTC)
TUESDAY = 2


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=pytz.UTC)


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'slotwise_test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_tenant(db):
    def _make(slug="studio", timezone="UTC", auto_confirm=False):
        tenant = Tenant(name=slug.title(), slug=slug, timezone=timezone, auto_confirm_bookings=auto_confirm)
        db.add(tenant)
        db.commit()
        return tenant
    return _make


@pytest.fixture
def make_service(db):
    def _make(tenant, name="Consultation", duration=60, buffer_before=0, buffer_after=0,
              min_notice_hours=0, max_future_days=60, max_capacity=1, providers=(), service_type=None):
        if service_type is None:
            service_type = ServiceType.CLASS if max_capacity > 1 else ServiceType.CONSULTATION
        service = Service(
            tenant_id=tenant.id,
            name=name,
            service_type=service_type,
            duration_minutes=duration,
            buffer_before_minutes=buffer_before,
            buffer_after_minutes=buffer_after,
            min_notice_hours=min_notice_hours,
            max_future_days=max_future_days,
            max_capacity=max_capacity,
            price=50,
            currency="USD",
        )
        service.providers.extend(providers)
        db.add(service)
        db.commit()
        return service
    return _make


@pytest.fixture
def make_provider(db):
    def _make(tenant, name="Alice", display_order=0, user=None, email=None):
        provider = Provider(
            tenant_id=tenant.id,
            name=name,
            display_order=display_order,
            user_id=user.id if user else None,
            email=email,
        )
        db.add(provider)
        db.commit()
        return provider
    return _make


@pytest.fixture
def add_rule(db):
    def _add(provider, day_of_week, start, end):
        rule = WeeklyRule(
            provider_id=provider.id,
            day_of_week=day_of_week,
            start_time=time.fromisoformat(start),
            end_time=time.fromisoformat(end),
        )
        db.add(rule)
        db.commit()
        return rule
    return _add


@pytest.fixture
def add_override(db):
    def _add(provider, override_date, is_available, start=None, end=None, reason=None):
        override = DateOverride(
            provider_id=provider.id,
            override_date=override_date,
            is_available=is_available,
            start_time=time.fromisoformat(start) if start else None,
            end_time=time.fromisoformat(end) if end else None,
            reason=reason,
        )
        db.add(override)
        db.commit()
        return override
    return _add


@pytest.fixture
def make_user(db):
    def _make(tenant, role=UserRole.CLIENT, email=None, full_name=None):
        user = User(
            tenant_id=tenant.id,
            email=email or f"{role.value}-{os.urandom(3).hex()}@clinic.com",
            full_name=full_name or role.value.title(),
            role=role,
        )
        db.add(user)
        db.commit()
        return user
    return _make


@pytest.fixture
def clinic(make_tenant, make_provider, make_service, add_rule):
    """One tenant, one 60-minute service, one provider working Tuesdays 09:00-12:00 UTC"""
    tenant = make_tenant()
    provider = make_provider(tenant)
    service = make_service(tenant, providers=[provider])
    add_rule(provider, TUESDAY, "09:00", "12:00")
    return tenant, service, provider
