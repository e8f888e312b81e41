import uuid
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.db import get_session
from app.core.security import get_principal, require_roles, Principal
from app.modules.availability.service import AvailabilityService
from app.modules.bookings.models import BookingStatus
from app.modules.bookings.schemas import ReserveRequest, BookingOut
from app.modules.bookings.service import BookingLifecycleManager

router = APIRouter()

def lifecycle(session: AsyncSession = Depends(get_session)) -> BookingLifecycleManager:
    return BookingLifecycleManager(session)

def availability(session: AsyncSession = Depends(get_session)) -> AvailabilityService:
    return AvailabilityService(session)

@router.post("/bookings", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
async def reserve_slot(
    payload: ReserveRequest,
    principal: Principal = Depends(get_principal),
    service: AvailabilityService = Depends(availability),
):
    return await service.reserve_slot(payload.clinic_id, payload.doctor_id, principal.user_id, payload.date, payload.slot_time)

@router.get("/bookings/mine", response_model=list[BookingOut])
async def my_bookings(
    limit: int = Query(100, ge=1, le=500), offset: int = Query(0, ge=0),
    principal: Principal = Depends(get_principal),
    service: BookingLifecycleManager = Depends(lifecycle),
):
    return await service.list_for_patient(principal, limit=limit, offset=offset)

@router.get("/bookings/managed", response_model=list[BookingOut])
async def managed_bookings(
    booking_status: BookingStatus | None = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500), offset: int = Query(0, ge=0),
    principal: Principal = Depends(require_roles("provider")),
    service: BookingLifecycleManager = Depends(lifecycle),
):
    return await service.list_for_operator(principal, status=booking_status, limit=limit, offset=offset)

@router.post("/bookings/{booking_id}/confirm", response_model=BookingOut)
async def confirm_booking(booking_id: uuid.UUID, principal: Principal = Depends(get_principal), service: BookingLifecycleManager = Depends(lifecycle)):
    return await service.confirm(booking_id, principal)

@router.post("/bookings/{booking_id}/cancel", response_model=BookingOut)
async def cancel_booking(booking_id: uuid.UUID, principal: Principal = Depends(get_principal), service: BookingLifecycleManager = Depends(lifecycle)):
    return await service.cancel(booking_id, principal)

@router.post("/bookings/{booking_id}/complete", response_model=BookingOut)
async def complete_booking(booking_id: uuid.UUID, principal: Principal = Depends(get_principal), service: BookingLifecycleManager = Depends(lifecycle)):
    return await service.complete(booking_id, principal)
