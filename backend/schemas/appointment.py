from datetime import date, datetime, time

from pydantic import BaseModel, Field, field_validator

from backend.core.params import MAX_INTEGER_ID
from backend.models.appointment import APPOINTMENT_STATUSES, STATUS_SCHEDULED

MAX_REASON_LENGTH = 600


class AppointmentCreateRequest(BaseModel):
    users_id: int = Field(alias='usersId', ge=1, le=MAX_INTEGER_ID)
    provider_id: int = Field(alias='providerId', ge=1, le=MAX_INTEGER_ID)
    appointment_date: date = Field(alias='appointmentDate')
    appointment_time: time = Field(alias='appointmentTime')
    reason: str | None = None
    status: str = STATUS_SCHEDULED

    class Config:
        populate_by_name = True

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_REASON_LENGTH:
            raise ValueError(f'El motivo debe tener como máximo {MAX_REASON_LENGTH} caracteres.')

        return normalized

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in APPOINTMENT_STATUSES:
            raise ValueError(f'Estado inválido. Valores permitidos: {", ".join(APPOINTMENT_STATUSES)}.')
        return normalized


class AppointmentUpdateRequest(AppointmentCreateRequest):
    id: int = Field(alias='appointmentId', ge=1, le=MAX_INTEGER_ID)


class AppointmentResponse(BaseModel):
    id: int = Field(alias='appointmentId')
    users_id: int = Field(alias='usersId')
    provider_id: int = Field(alias='providerId')
    appointment_date: date = Field(alias='appointmentDate')
    appointment_time: time = Field(alias='appointmentTime')
    reason: str | None = None
    status: str
    created_at: datetime | None = Field(default=None, alias='createdAt')
    patient_name: str | None = None
    provider_name: str | None = None
    provider_specialty: str | None = None

    class Config:
        from_attributes = True
        populate_by_name = True
