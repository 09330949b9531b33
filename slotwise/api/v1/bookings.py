# ============================================================================
# FILE: slotwise/api/v1/bookings.py
# Client booking endpoints (guest-bookable create, owner-only cancel)
# ============================================================================
from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID

from slotwise.api.dependencies import get_current_active_user, optional_current_user
from slotwise.config.database import get_db
from slotwise.models.user import User
from slotwise.schemas.booking import BookingCreateRequest, BookingCancelRequest, BookingResponse
from slotwise.services.booking.booking_service import BookingService

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
        payload: BookingCreateRequest,
        current_user: Optional[User] = Depends(optional_current_user),
        db: Session = Depends(get_db)
):
    """
    Book a slot. Works for guests; a valid token links the booking to the client.
    409 when the slot is gone (re-validation failed or another request won the race).
    """
    booking = BookingService.create_booking(
        db=db,
        service_id=payload.service_id,
        tenant_id=payload.tenant_id,
        start_time=payload.start_time,
        client=payload.client.model_dump(),
        provider_id=payload.provider_id,
        timezone=payload.timezone,
        actor=current_user
    )
    return booking.to_dict()


@router.get("/mine", response_model=List[BookingResponse])
async def list_my_bookings(
        upcoming: bool = Query(False, description="Only future active bookings"),
        current_user: User = Depends(get_current_active_user),
        db: Session = Depends(get_db)
):
    return [b.to_dict() for b in BookingService.list_client_bookings(db, current_user, upcoming_only=upcoming)]


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
        booking_id: UUID = Path(..., description="The booking ID"),
        current_user: User = Depends(get_current_active_user),
        db: Session = Depends(get_db)
):
    return BookingService.get_booking(db, booking_id, current_user).to_dict()


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
        payload: Optional[BookingCancelRequest] = None,
        booking_id: UUID = Path(..., description="The booking ID"),
        current_user: User = Depends(get_current_active_user),
        db: Session = Depends(get_db)
):
    """Cancel your own booking; the time becomes bookable again immediately"""
    booking = BookingService.cancel_booking(
        db=db,
        booking_id=booking_id,
        actor=current_user,
        reason=payload.reason if payload else None
    )
    return booking.to_dict()
