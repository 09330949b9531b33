# ============================================================================
# FILE: slotwise/api/v1/dashboard/bookings.py
# Admin/provider booking management - thin HTTP layer
# ============================================================================
from fastapi import APIRouter, Depends, Query, Path
from sqlalchemy.orm import Session
from datetime import date
from typing import Optional
from uuid import UUID

from slotwise.api.dependencies import require_staff
from slotwise.config.database import get_db
from slotwise.models.user import User
from slotwise.schemas.booking import BookingListResponse, BookingResponse, BookingStatusUpdate
from slotwise.services.booking.booking_service import BookingService

router = APIRouter(prefix="/bookings", tags=["dashboard-bookings"])


@router.get("", response_model=BookingListResponse)
async def list_bookings(
        start_date: Optional[date] = Query(None, description="Bookings starting on or after this date"),
        end_date: Optional[date] = Query(None, description="Bookings starting on or before this date"),
        status: Optional[str] = Query(None,
                                      description="Filter by status (pending, confirmed, cancelled, rejected, completed, no_show)"),
        provider_id: Optional[UUID] = Query(None, description="Admins only"),
        service_id: Optional[UUID] = Query(None),
        skip: int = Query(0, ge=0, description="Number of records to skip"),
        limit: int = Query(50, ge=1, le=100, description="Number of records to return"),
        current_user: User = Depends(require_staff),
        db: Session = Depends(get_db)
):
    """
    Bookings of your tenant. Providers only see their own.
    """
    return BookingService.list_tenant_bookings(
        db=db,
        actor=current_user,
        status=status,
        provider_id=provider_id,
        service_id=service_id,
        start_date=start_date,
        end_date=end_date,
        skip=skip,
        limit=limit
    )


@router.patch("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
        payload: BookingStatusUpdate,
        booking_id: UUID = Path(..., description="The booking ID"),
        current_user: User = Depends(require_staff),
        db: Session = Depends(get_db)
):
    """Confirm, reject, complete, mark no-show or cancel a booking"""
    booking = BookingService.update_status(
        db=db,
        booking_id=booking_id,
        new_status=payload.status,
        actor=current_user,
        internal_notes=payload.internal_notes
    )
    return booking.to_dict()
