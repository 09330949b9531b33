# slotwise/schemas/booking.py
from pydantic import BaseModel, Field, EmailStr
from typing import Optional, List, Literal
from datetime import datetime
from uuid import UUID


class ClientInfo(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = Field(None, max_length=2000)


class BookingCreateRequest(BaseModel):
    """Book a slot; omit provider_id to let the system pick a free provider"""
    service_id: UUID
    tenant_id: UUID
    provider_id: Optional[UUID] = None
    start_time: datetime = Field(..., description="ISO-8601; naive values are read in `timezone`")
    timezone: Optional[str] = Field(None, description="IANA timezone of the caller")
    client: ClientInfo


class BookingCancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class BookingStatusUpdate(BaseModel):
    status: Literal["confirmed", "rejected", "cancelled", "completed", "no_show"]
    internal_notes: Optional[str] = Field(None, max_length=2000)


class BookingResponse(BaseModel):
    id: str
    tenant_id: str
    service_id: str
    provider_id: str
    client_user_id: Optional[str] = None
    client_name: str
    client_email: str
    client_phone: Optional[str] = None
    client_notes: Optional[str] = None
    start_time: str
    end_time: str
    duration_minutes: int
    buffer_before_minutes: int
    buffer_after_minutes: int
    price: Optional[float] = None
    currency: str
    status: str
    created_at: Optional[str] = None
    cancelled_at: Optional[str] = None
    cancellation_reason: Optional[str] = None


class BookingListResponse(BaseModel):
    total: int
    skip: int
    limit: int
    bookings: List[BookingResponse]
