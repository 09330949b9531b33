# slotwise/models/user.py
from sqlalchemy import Column, String, Boolean, ForeignKey, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
import enum

from slotwise.models.base import Base, UTCDateTime


class UserRole(str, enum.Enum):
    """Tenant-level user roles."""
    ADMIN = "admin"        # Manages the tenant, any provider's schedule and bookings
    PROVIDER = "provider"  # Manages own schedule and assigned bookings
    CLIENT = "client"      # Books and cancels own appointments


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)
    full_name = Column(String(255), nullable=True)

    role = Column(
        SQLEnum(UserRole, name="userrole"),
        default=UserRole.CLIENT,
        nullable=False,
        index=True
    )

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(UTCDateTime, server_default=func.now())

    provider_profile = relationship("Provider", back_populates="user", uselist=False)

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"

    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def is_provider(self) -> bool:
        return self.role == UserRole.PROVIDER

    def to_dict(self):
        return {
            "id": str(self.id),
            "tenant_id": str(self.tenant_id),
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role.value if self.role else None,
            "is_active": self.is_active,
        }
