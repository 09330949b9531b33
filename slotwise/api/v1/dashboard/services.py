# ============================================================================
# FILE: slotwise/api/v1/dashboard/services.py
# Service booking hours and date overrides (admin)
# ============================================================================
from datetime import date
from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.orm import Session
from uuid import UUID

from slotwise.api.dependencies import require_admin
from slotwise.config.database import get_db
from slotwise.models.user import User
from slotwise.schemas.schedule import ServiceWindowsUpdate, ServiceOverrideUpsert, ServiceOverrideResponse
from slotwise.services.schedule.schedule_service import ScheduleService

router = APIRouter(prefix="/services", tags=["dashboard-services"])


@router.put("/{service_id}/windows")
async def update_service_windows(
        payload: ServiceWindowsUpdate,
        service_id: UUID = Path(..., description="The service ID"),
        current_user: User = Depends(require_admin),
        db: Session = Depends(get_db)
):
    """
    Restrict when a service can be booked on one weekday.
    An empty list for every weekday removes the restriction.
    """
    windows = ScheduleService.update_service_windows(
        db=db,
        actor=current_user,
        service_id=service_id,
        day_of_week=payload.day_of_week,
        windows=[w.model_dump() for w in payload.windows]
    )
    return {
        "service_id": str(service_id),
        "day_of_week": payload.day_of_week,
        "windows": [w.to_dict() for w in windows],
    }


@router.put("/{service_id}/overrides", response_model=ServiceOverrideResponse)
async def upsert_service_override(
        payload: ServiceOverrideUpsert,
        service_id: UUID = Path(..., description="The service ID"),
        current_user: User = Depends(require_admin),
        db: Session = Depends(get_db)
):
    """Close the service or set its hours for one date"""
    override = ScheduleService.upsert_service_override_for_actor(
        db=db,
        actor=current_user,
        service_id=service_id,
        override_date=payload.override_date,
        is_available=payload.is_available,
        start_time=payload.start_time,
        end_time=payload.end_time,
        reason=payload.reason
    )
    return override.to_dict()


@router.delete("/{service_id}/overrides/{override_date}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_service_override(
        service_id: UUID = Path(..., description="The service ID"),
        override_date: date = Path(..., description="YYYY-MM-DD"),
        current_user: User = Depends(require_admin),
        db: Session = Depends(get_db)
):
    ScheduleService.delete_service_override_for_actor(db, current_user, service_id, override_date)
