import uuid
from pydantic import BaseModel, ConfigDict, Field

class ClinicCreate(BaseModel):
    name_en: str = Field(..., min_length=1, max_length=160)
    name_ar: str | None = None
    contact_phone: str | None = None

class ClinicOut(ClinicCreate):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    owner_id: uuid.UUID
    is_verified: bool

class DoctorCreate(BaseModel):
    name_en: str = Field(..., min_length=1, max_length=160)
    name_ar: str | None = None
    specialty_ids: list[int] = []
    bio: str | None = None
    photo_url: str | None = None

class DoctorOut(DoctorCreate):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    specialty_id: int | None = None  # legacy single-specialty view
