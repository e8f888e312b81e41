import uuid
import logging
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterable, Sequence
from sqlalchemy import select, update, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.errors import SlotUnavailable
from app.modules.bookings.models import Booking, BookingStatus, SLOT_INDEX_NAME

logger = logging.getLogger(__name__)

def is_slot_conflict(exc: IntegrityError) -> bool:
    """True when ``exc`` is a violation of the live-booking slot index."""
    msg = str(exc.orig) if exc.orig is not None else str(exc)
    # postgres names the index; sqlite lists the indexed columns
    return SLOT_INDEX_NAME in msg or ("UNIQUE" in msg and "booking_timestamp" in msg)

def day_bounds(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min, tzinfo=tz)
    return start, datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)

class BookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, booking_id: uuid.UUID) -> Booking | None:
        q = select(Booking).where(Booking.id == booking_id, Booking.deleted_at.is_(None))
        res = await self.session.execute(q.execution_options(populate_existing=True))
        return res.scalar_one_or_none()

    async def list_bookings(self, doctor_id: uuid.UUID, day: date, tz: tzinfo) -> Sequence[Booking]:
        """Non-cancelled bookings of ``doctor_id`` on the local calendar ``day``."""
        start, end = day_bounds(day, tz)
        q = select(Booking).where(and_(
            Booking.doctor_id == doctor_id,
            Booking.deleted_at.is_(None),
            Booking.status != BookingStatus.CANCELLED.value,
            Booking.booking_timestamp >= start,
            Booking.booking_timestamp < end,
        )).order_by(Booking.booking_timestamp)
        res = await self.session.execute(q)
        return res.scalars().all()

    async def create_booking_if_free(self, booking: Booking) -> Booking:
        """Insert ``booking``; the slot index is the final authority on conflicts.

        On a slot conflict the transaction is rolled back and
        :class:`SlotUnavailable` is raised; other integrity errors propagate.
        """
        self.session.add(booking)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            await self.session.rollback()
            if is_slot_conflict(exc):
                logger.info("Slot conflict for doctor %s at %s", booking.doctor_id, booking.booking_timestamp)
                raise SlotUnavailable("slot already booked") from exc
            raise
        return booking

    async def update_status(self, booking_id: uuid.UUID, new_status: BookingStatus, *, expected: Iterable[BookingStatus] | None = None) -> Booking | None:
        """Set the status, only if the row is still in one of ``expected``.

        Returns the refreshed booking, or ``None`` when no row matched.
        """
        cond = [Booking.id == booking_id, Booking.deleted_at.is_(None)]
        if expected is not None:
            cond.append(Booking.status.in_([s.value for s in expected]))
        q = (
            update(Booking)
            .where(and_(*cond))
            .values(status=new_status.value, version=Booking.version + 1, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        res = await self.session.execute(q)
        if res.rowcount == 0:
            return None
        return await self.get(booking_id)

    async def list_for_patient(self, patient_id: uuid.UUID, limit: int = 100, offset: int = 0) -> Sequence[Booking]:
        q = select(Booking).where(
            Booking.patient_id == patient_id,
            Booking.deleted_at.is_(None),
        ).order_by(Booking.booking_timestamp.desc()).limit(limit).offset(offset)
        res = await self.session.execute(q)
        return res.scalars().all()

    async def list_for_clinics(self, clinic_ids: Sequence[uuid.UUID], *, status: BookingStatus | None = None, limit: int = 100, offset: int = 0) -> Sequence[Booking]:
        if not clinic_ids:
            return []
        cond = [Booking.clinic_id.in_(clinic_ids), Booking.deleted_at.is_(None)]
        if status:
            cond.append(Booking.status == status.value)
        q = select(Booking).where(and_(*cond)).order_by(Booking.booking_timestamp.desc()).limit(limit).offset(offset)
        res = await self.session.execute(q)
        return res.scalars().all()
