# slotwise/models/provider.py
"""
Provider Model - the person or resource whose time is booked
"""
from sqlalchemy import Column, String, Integer, Boolean, ForeignKey, Table, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from slotwise.models.base import Base, UTCDateTime

# Which providers may deliver which services
service_providers = Table(
    "service_providers",
    Base.metadata,
    Column("service_id", Uuid, ForeignKey("services.id", ondelete="CASCADE"), primary_key=True),
    Column("provider_id", Uuid, ForeignKey("providers.id", ondelete="CASCADE"), primary_key=True),
    Column("created_at", UTCDateTime, server_default=func.now()),
)


class Provider(Base):
    __tablename__ = "providers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, unique=True)

    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False, index=True)
    display_order = Column(Integer, default=0, nullable=False)  # any-provider listing order

    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now())

    tenant = relationship("Tenant", back_populates="providers")
    user = relationship("User", back_populates="provider_profile")
    services = relationship("Service", secondary=service_providers, back_populates="providers")
    weekly_rules = relationship("WeeklyRule", back_populates="provider", cascade="all, delete-orphan")
    overrides = relationship("DateOverride", back_populates="provider", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Provider(id={self.id}, name={self.name}, tenant_id={self.tenant_id})>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "tenant_id": str(self.tenant_id),
            "user_id": str(self.user_id) if self.user_id else None,
            "name": self.name,
            "email": self.email,
            "is_active": self.is_active,
            "display_order": self.display_order,
        }
