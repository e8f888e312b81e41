import uuid
from typing import Sequence
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.modules.directory.models import Clinic, Doctor, ClinicDoctor

class DirectoryRepository:
    def __init__(self, s: AsyncSession): self.s = s

    # clinics
    async def create_clinic(self, owner_id: uuid.UUID, **data) -> Clinic:
        obj = Clinic(owner_id=owner_id, **data); self.s.add(obj); await self.s.flush(); return obj

    async def get_clinic(self, clinic_id: uuid.UUID) -> Clinic | None:
        res = await self.s.execute(select(Clinic).where(Clinic.id == clinic_id, Clinic.deleted_at.is_(None)))
        return res.scalar_one_or_none()

    async def list_owned_clinic_ids(self, owner_id: uuid.UUID) -> list[uuid.UUID]:
        res = await self.s.execute(select(Clinic.id).where(Clinic.owner_id == owner_id, Clinic.deleted_at.is_(None)))
        return list(res.scalars().all())

    # doctors
    async def create_doctor(self, **data) -> Doctor:
        obj = Doctor(**data); self.s.add(obj); await self.s.flush(); return obj

    async def get_doctor(self, doctor_id: uuid.UUID) -> Doctor | None:
        res = await self.s.execute(select(Doctor).where(Doctor.id == doctor_id, Doctor.deleted_at.is_(None)))
        return res.scalar_one_or_none()

    async def link(self, clinic_id: uuid.UUID, doctor_id: uuid.UUID) -> ClinicDoctor:
        obj = ClinicDoctor(clinic_id=clinic_id, doctor_id=doctor_id); self.s.add(obj); await self.s.flush(); return obj

    async def is_linked(self, clinic_id: uuid.UUID, doctor_id: uuid.UUID) -> bool:
        res = await self.s.execute(select(ClinicDoctor.id).where(
            ClinicDoctor.clinic_id == clinic_id,
            ClinicDoctor.doctor_id == doctor_id,
            ClinicDoctor.deleted_at.is_(None),
        ))
        return res.first() is not None

    async def list_clinic_doctors(self, clinic_id: uuid.UUID) -> Sequence[Doctor]:
        res = await self.s.execute(
            select(Doctor)
            .join(ClinicDoctor, ClinicDoctor.doctor_id == Doctor.id)
            .where(ClinicDoctor.clinic_id == clinic_id, ClinicDoctor.deleted_at.is_(None), Doctor.deleted_at.is_(None))
            .order_by(Doctor.name_en)
        )
        return res.scalars().unique().all()

    async def owner_has_doctor(self, owner_id: uuid.UUID, doctor_id: uuid.UUID) -> bool:
        res = await self.s.execute(
            select(ClinicDoctor.id)
            .join(Clinic, Clinic.id == ClinicDoctor.clinic_id)
            .where(
                Clinic.owner_id == owner_id,
                Clinic.deleted_at.is_(None),
                ClinicDoctor.doctor_id == doctor_id,
                ClinicDoctor.deleted_at.is_(None),
            )
            .limit(1)
        )
        return res.first() is not None
