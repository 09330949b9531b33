# slotwise/models/booking.py
"""
Booking Model - the ledger of reserved provider time.

occupied_start/occupied_end cover the appointment plus the buffers snapshotted
at creation. Active bookings of one provider may never have overlapping
occupied intervals unless they share a session_key (same class session); the
database enforces this with the ``bookings_no_overlap`` guard below.

Seats of a class session are capped at the service max_capacity: on SQLite by
the ``bookings_session_full`` triggers, on PostgreSQL by the seat recount the
booking flow runs under a provider row lock.
"""
from sqlalchemy import (
    Column, String, Integer, Text, Numeric, ForeignKey, Index, CheckConstraint, Uuid, DDL, event
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from slotwise.models.base import Base, UTCDateTime

OVERLAP_CONSTRAINT_NAME = "bookings_no_overlap"
SESSION_FULL_GUARD_NAME = "bookings_session_full"


class BookingStatus:
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    COMPLETED = "completed"
    NO_SHOW = "no_show"

    # Statuses that hold the provider's time
    ACTIVE = (PENDING, CONFIRMED)
    TERMINAL = (CANCELLED, REJECTED, COMPLETED, NO_SHOW)


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_bookings_range"),
        CheckConstraint("occupied_start <= start_time AND end_time <= occupied_end", name="ck_bookings_occupied"),
        Index("ix_bookings_provider_occupied", "provider_id", "occupied_start", "occupied_end"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # References
    tenant_id = Column(Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    service_id = Column(Uuid, ForeignKey("services.id"), nullable=False, index=True)
    provider_id = Column(Uuid, ForeignKey("providers.id"), nullable=False, index=True)
    client_user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    # Client info
    client_name = Column(String(200), nullable=False)
    client_email = Column(String(255), nullable=False)
    client_phone = Column(String(50), nullable=True)
    client_notes = Column(Text, nullable=True)

    # Appointment interval as shown to the client
    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=False)

    # Snapshot of the service at booking time
    duration_minutes = Column(Integer, nullable=False)
    buffer_before_minutes = Column(Integer, nullable=False, default=0)
    buffer_after_minutes = Column(Integer, nullable=False, default=0)
    price = Column(Numeric(10, 2), nullable=True)
    currency = Column(String(3), nullable=False, default="USD")

    # Provider time actually held: [start - buffer_before, end + buffer_after)
    occupied_start = Column(UTCDateTime, nullable=False)
    occupied_end = Column(UTCDateTime, nullable=False)

    # Bookings sharing a key may overlap (class sessions); otherwise the booking id
    session_key = Column(String(120), nullable=False)

    # Status tracking
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING, index=True)
    internal_notes = Column(Text, nullable=True)

    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now())
    cancelled_at = Column(UTCDateTime, nullable=True)
    cancelled_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    service = relationship("Service")
    provider = relationship("Provider")
    tenant = relationship("Tenant")

    def __repr__(self):
        return f"<Booking(id={self.id}, provider_id={self.provider_id}, start={self.start_time}, status={self.status})>"

    @property
    def is_active(self) -> bool:
        return self.status in BookingStatus.ACTIVE

    def to_dict(self):
        return {
            "id": str(self.id),
            "tenant_id": str(self.tenant_id),
            "service_id": str(self.service_id),
            "provider_id": str(self.provider_id),
            "client_user_id": str(self.client_user_id) if self.client_user_id else None,
            "client_name": self.client_name,
            "client_email": self.client_email,
            "client_phone": self.client_phone,
            "client_notes": self.client_notes,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration_minutes": self.duration_minutes,
            "buffer_before_minutes": self.buffer_before_minutes,
            "buffer_after_minutes": self.buffer_after_minutes,
            "price": float(self.price) if self.price is not None else None,
            "currency": self.currency,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
            "cancellation_reason": self.cancellation_reason,
        }


_ACTIVE_SQL = "('pending', 'confirmed')"

# PostgreSQL: atomic exclusion constraint on the occupied range
event.listen(
    Booking.__table__,
    "after_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        f"ALTER TABLE bookings ADD CONSTRAINT {OVERLAP_CONSTRAINT_NAME} "
        "EXCLUDE USING gist ("
        "provider_id WITH =, "
        "session_key WITH <>, "
        "tstzrange(occupied_start, occupied_end, '[)') WITH &&"
        f") WHERE (status IN {_ACTIVE_SQL})"
    ).execute_if(dialect="postgresql"),
)

# SQLite: the same guard as BEFORE INSERT/UPDATE triggers
_SQLITE_OVERLAP_CHECK = f"""
    SELECT RAISE(ABORT, '{OVERLAP_CONSTRAINT_NAME}')
    WHERE EXISTS (
        SELECT 1 FROM bookings b
        WHERE b.provider_id = NEW.provider_id
          AND b.id <> NEW.id
          AND b.status IN {_ACTIVE_SQL}
          AND b.session_key <> NEW.session_key
          AND b.occupied_start < NEW.occupied_end
          AND NEW.occupied_start < b.occupied_end
    );
"""

event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        f"CREATE TRIGGER {OVERLAP_CONSTRAINT_NAME}_insert BEFORE INSERT ON bookings "
        f"WHEN NEW.status IN {_ACTIVE_SQL} BEGIN {_SQLITE_OVERLAP_CHECK} END"
    ).execute_if(dialect="sqlite"),
)
event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        f"CREATE TRIGGER {OVERLAP_CONSTRAINT_NAME}_update BEFORE UPDATE ON bookings "
        f"WHEN NEW.status IN {_ACTIVE_SQL} BEGIN {_SQLITE_OVERLAP_CHECK} END"
    ).execute_if(dialect="sqlite"),
)

# SQLite: seat limit of a class session, checked inside the writing statement
_SQLITE_CAPACITY_CHECK = f"""
    SELECT RAISE(ABORT, '{SESSION_FULL_GUARD_NAME}')
    WHERE (
        SELECT COUNT(*) FROM bookings b
        WHERE b.session_key = NEW.session_key
          AND b.id <> NEW.id
          AND b.status IN {_ACTIVE_SQL}
    ) >= (SELECT s.max_capacity FROM services s WHERE s.id = NEW.service_id);
"""

event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        f"CREATE TRIGGER {SESSION_FULL_GUARD_NAME}_insert BEFORE INSERT ON bookings "
        f"WHEN NEW.status IN {_ACTIVE_SQL} BEGIN {_SQLITE_CAPACITY_CHECK} END"
    ).execute_if(dialect="sqlite"),
)
event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        f"CREATE TRIGGER {SESSION_FULL_GUARD_NAME}_update BEFORE UPDATE ON bookings "
        f"WHEN NEW.status IN {_ACTIVE_SQL} AND OLD.status NOT IN {_ACTIVE_SQL} "
        f"BEGIN {_SQLITE_CAPACITY_CHECK} END"
    ).execute_if(dialect="sqlite"),
)
