import uuid
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.db import get_session
from app.core.security import require_roles, Principal
from app.modules.directory.schemas import ClinicCreate, ClinicOut, DoctorCreate, DoctorOut
from app.modules.directory.service import DirectoryService

router = APIRouter()

def svc(s: AsyncSession = Depends(get_session)) -> DirectoryService:
    return DirectoryService(s)

@router.post("/clinics", response_model=ClinicOut, status_code=status.HTTP_201_CREATED)
async def create_clinic(payload: ClinicCreate, principal: Principal = Depends(require_roles("provider")), service: DirectoryService = Depends(svc)):
    return await service.create_clinic(principal, payload)

@router.get("/clinics/{clinic_id}", response_model=ClinicOut)
async def get_clinic(clinic_id: uuid.UUID, service: DirectoryService = Depends(svc)):
    return await service.get_clinic(clinic_id)

@router.post("/clinics/{clinic_id}/doctors", response_model=DoctorOut, status_code=status.HTTP_201_CREATED)
async def add_doctor(clinic_id: uuid.UUID, payload: DoctorCreate, principal: Principal = Depends(require_roles("provider")), service: DirectoryService = Depends(svc)):
    return await service.add_doctor(clinic_id, principal, payload)

@router.put("/clinics/{clinic_id}/doctors/{doctor_id}", status_code=status.HTTP_204_NO_CONTENT)
async def link_doctor(clinic_id: uuid.UUID, doctor_id: uuid.UUID, principal: Principal = Depends(require_roles("provider")), service: DirectoryService = Depends(svc)):
    await service.link_doctor(clinic_id, doctor_id, principal)

@router.get("/clinics/{clinic_id}/doctors", response_model=list[DoctorOut])
async def list_clinic_doctors(clinic_id: uuid.UUID, service: DirectoryService = Depends(svc)):
    return await service.list_clinic_doctors(clinic_id)

@router.get("/doctors/{doctor_id}", response_model=DoctorOut)
async def get_doctor(doctor_id: uuid.UUID, service: DirectoryService = Depends(svc)):
    return await service.get_doctor(doctor_id)
