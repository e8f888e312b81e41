import uuid
import logging
from datetime import datetime, tzinfo
from typing import Callable
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.config import settings
from app.core.errors import InvalidTransition, NotAuthorized, NotFound, storage_errors
from app.core.security import Principal
from app.modules.bookings.models import Booking, BookingStatus, TERMINAL_STATUSES
from app.modules.bookings.repository import BookingRepository
from app.modules.directory.repository import DirectoryRepository
from app.modules.events.outbox import OutboxService

logger = logging.getLogger(__name__)

VALID_NEXT = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingStatus.COMPLETED},
    BookingStatus.CONFIRMED: {BookingStatus.CANCELLED, BookingStatus.COMPLETED},
    BookingStatus.CANCELLED: set(),
    BookingStatus.COMPLETED: set(),
}

def can_transition(current: BookingStatus, nxt: BookingStatus) -> bool:
    return nxt in VALID_NEXT.get(current, set())

class BookingLifecycleManager:
    """Status changes on bookings, plus the patient and operator booking lists."""

    def __init__(self, session: AsyncSession, tz: tzinfo | None = None, clock: Callable[[], datetime] | None = None):
        self.session = session
        self.tz = tz or settings.facility_tz
        self.clock = clock or (lambda: datetime.now(self.tz))
        self.bookings = BookingRepository(session)
        self.directory = DirectoryRepository(session)

    async def _get(self, booking_id: uuid.UUID) -> Booking:
        obj = await self.bookings.get(booking_id)
        if not obj:
            raise NotFound("booking not found")
        return obj

    async def _is_operator(self, actor: Principal, booking: Booking) -> bool:
        clinic = await self.directory.get_clinic(booking.clinic_id)
        return clinic is not None and clinic.owner_id == actor.user_id

    def _starts_in_future(self, booking: Booking) -> bool:
        ts = booking.booking_timestamp
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=self.tz)
        return ts > self.clock()

    async def _transition(self, booking: Booking, nxt: BookingStatus, actor: Principal) -> Booking:
        current = BookingStatus(booking.status)
        if not can_transition(current, nxt):
            raise InvalidTransition(f"cannot move booking from {current.value} to {nxt.value}")
        with storage_errors(f"booking {nxt.value.lower()}"):
            updated = await self.bookings.update_status(booking.id, nxt, expected=[current])
            if updated is None:
                # someone else changed the row between our read and write
                await self.session.rollback()
                raise InvalidTransition("booking status changed concurrently")
            await OutboxService(self.session).enqueue(
                "BOOKING_STATUS_CHANGED", "booking", booking.id,
                {"from": current.value, "to": nxt.value, "actor_id": str(actor.user_id)},
            )
            await self.session.commit()
        logger.info("Booking %s %s -> %s by %s", booking.id, current.value, nxt.value, actor.user_id)
        return updated

    async def confirm(self, booking_id: uuid.UUID, actor: Principal) -> Booking:
        with storage_errors("booking confirm"):
            booking = await self._get(booking_id)
            if not await self._is_operator(actor, booking):
                raise NotAuthorized("only the facility operator can confirm bookings")
            if booking.status == BookingStatus.CONFIRMED.value:
                return booking
            if booking.status != BookingStatus.PENDING.value:
                raise InvalidTransition(f"cannot confirm a {booking.status} booking")
            return await self._transition(booking, BookingStatus.CONFIRMED, actor)

    async def cancel(self, booking_id: uuid.UUID, actor: Principal) -> Booking:
        with storage_errors("booking cancel"):
            booking = await self._get(booking_id)
            is_operator = await self._is_operator(actor, booking)
            is_patient = booking.patient_id == actor.user_id
            if not (is_operator or is_patient):
                raise NotAuthorized("only the patient or the facility operator can cancel")
            if BookingStatus(booking.status) in TERMINAL_STATUSES:
                raise InvalidTransition(f"cannot cancel a {booking.status} booking")
            if not is_operator and not self._starts_in_future(booking):
                raise InvalidTransition("past bookings can no longer be cancelled by the patient")
            return await self._transition(booking, BookingStatus.CANCELLED, actor)

    async def complete(self, booking_id: uuid.UUID, actor: Principal) -> Booking:
        with storage_errors("booking complete"):
            booking = await self._get(booking_id)
            if not await self._is_operator(actor, booking):
                raise NotAuthorized("only the facility operator can complete bookings")
            return await self._transition(booking, BookingStatus.COMPLETED, actor)

    # ---- Dashboards ----
    async def list_for_patient(self, actor: Principal, limit: int = 100, offset: int = 0):
        with storage_errors("list_for_patient"):
            return await self.bookings.list_for_patient(actor.user_id, limit=limit, offset=offset)

    async def list_for_operator(self, actor: Principal, status: BookingStatus | None = None, limit: int = 100, offset: int = 0):
        with storage_errors("list_for_operator"):
            clinic_ids = await self.directory.list_owned_clinic_ids(actor.user_id)
            return await self.bookings.list_for_clinics(clinic_ids, status=status, limit=limit, offset=offset)
