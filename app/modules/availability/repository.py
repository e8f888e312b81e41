import uuid
from typing import Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from app.modules.availability.models import DoctorSchedule

class ScheduleRepository:
    def __init__(self, s: AsyncSession): self.s = s

    async def create(self, **data) -> DoctorSchedule:
        obj = DoctorSchedule(**data); self.s.add(obj); await self.s.flush(); return obj

    async def get(self, schedule_id: uuid.UUID) -> DoctorSchedule | None:
        res = await self.s.execute(select(DoctorSchedule).where(
            DoctorSchedule.id == schedule_id,
            DoctorSchedule.deleted_at.is_(None),
        ))
        return res.scalar_one_or_none()

    async def get_weekly_window(self, doctor_id: uuid.UUID, day_of_week: int) -> DoctorSchedule | None:
        res = await self.s.execute(select(DoctorSchedule).where(
            DoctorSchedule.doctor_id == doctor_id,
            DoctorSchedule.day_of_week == day_of_week,
            DoctorSchedule.deleted_at.is_(None),
        ))
        return res.scalars().first()

    async def list_weekly_windows(self, doctor_id: uuid.UUID) -> Sequence[DoctorSchedule]:
        res = await self.s.execute(select(DoctorSchedule).where(
            DoctorSchedule.doctor_id == doctor_id,
            DoctorSchedule.deleted_at.is_(None),
        ).order_by(DoctorSchedule.day_of_week))
        return res.scalars().all()

    async def update(self, obj: DoctorSchedule, **data) -> DoctorSchedule:
        for k, v in data.items():
            setattr(obj, k, v)
        obj.version = (obj.version or 0) + 1
        await self.s.flush()
        return obj

    async def delete(self, obj: DoctorSchedule) -> None:
        # hard delete: a soft-deleted row would still hold the (doctor, weekday) unique slot
        await self.s.delete(obj)
        await self.s.flush()
