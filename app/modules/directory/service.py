import uuid
import logging
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.errors import NotFound, NotAuthorized, storage_errors
from app.core.security import Principal
from app.modules.directory.repository import DirectoryRepository
from app.modules.directory.schemas import ClinicCreate, DoctorCreate
from app.modules.directory.models import Clinic, Doctor

logger = logging.getLogger(__name__)

class DirectoryService:
    """Clinic and doctor records the scheduling engine depends on."""

    def __init__(self, s: AsyncSession):
        self.s = s
        self.repo = DirectoryRepository(s)

    async def create_clinic(self, actor: Principal, p: ClinicCreate) -> Clinic:
        with storage_errors("create_clinic"):
            obj = await self.repo.create_clinic(actor.user_id, **p.model_dump(exclude_unset=True))
            await self.s.commit()
        logger.info("Clinic %s created by %s", obj.id, actor.user_id)
        return obj

    async def get_clinic(self, clinic_id: uuid.UUID) -> Clinic:
        with storage_errors("get_clinic"):
            clinic = await self.repo.get_clinic(clinic_id)
        if not clinic:
            raise NotFound("clinic not found")
        return clinic

    async def get_doctor(self, doctor_id: uuid.UUID) -> Doctor:
        with storage_errors("get_doctor"):
            doctor = await self.repo.get_doctor(doctor_id)
        if not doctor:
            raise NotFound("doctor not found")
        return doctor

    async def owns_clinic(self, actor: Principal, clinic_id: uuid.UUID) -> bool:
        clinic = await self.get_clinic(clinic_id)
        return clinic.owner_id == actor.user_id

    async def owns_doctor(self, actor: Principal, doctor_id: uuid.UUID) -> bool:
        """True when ``doctor_id`` practises at a clinic owned by ``actor``."""
        with storage_errors("owns_doctor"):
            return await self.repo.owner_has_doctor(actor.user_id, doctor_id)

    async def add_doctor(self, clinic_id: uuid.UUID, actor: Principal, p: DoctorCreate) -> Doctor:
        if not await self.owns_clinic(actor, clinic_id):
            raise NotAuthorized("only the clinic owner can add doctors")
        with storage_errors("add_doctor"):
            doctor = await self.repo.create_doctor(**p.model_dump(exclude_unset=True))
            await self.repo.link(clinic_id, doctor.id)
            await self.s.commit()
        return doctor

    async def link_doctor(self, clinic_id: uuid.UUID, doctor_id: uuid.UUID, actor: Principal) -> None:
        if not await self.owns_clinic(actor, clinic_id):
            raise NotAuthorized("only the clinic owner can link doctors")
        await self.get_doctor(doctor_id)
        with storage_errors("link_doctor"):
            if await self.repo.is_linked(clinic_id, doctor_id):
                return
            await self.repo.link(clinic_id, doctor_id)
            await self.s.commit()

    async def list_clinic_doctors(self, clinic_id: uuid.UUID):
        await self.get_clinic(clinic_id)
        with storage_errors("list_clinic_doctors"):
            return await self.repo.list_clinic_doctors(clinic_id)
