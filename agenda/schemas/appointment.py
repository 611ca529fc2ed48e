"""
Schemas para Appointment: reserva, confirmación, cancelación
y reprogramación de citas.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from agenda.models.appointment import AppointmentStatus


# ── Solicitudes ──────────────────────────────────────

class ReservationRequest(BaseModel):
    patient_id: UUID
    doctor_id: UUID
    appointment_datetime: datetime
    duration_minutes: int = Field(30, gt=0)
    reason: str | None = Field(None, max_length=500)


class BookingRequest(ReservationRequest):
    """Reserva y confirmación en un solo paso."""
    notes: str | None = Field(None, max_length=2000)


class ConfirmRequest(BaseModel):
    notes: str | None = Field(None, max_length=2000)


class CancelRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)


class RescheduleRequest(BaseModel):
    new_datetime: datetime
    reason: str | None = Field(None, max_length=500)


class OutcomeRequest(BaseModel):
    """Resultado operativo de una cita ya atendida (o no)."""
    status: AppointmentStatus

    @field_validator("status")
    @classmethod
    def only_outcomes(cls, v: AppointmentStatus) -> AppointmentStatus:
        if v not in (AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW):
            raise ValueError("Solo se acepta 'completed' o 'no_show'")
        return v


# ── Respuestas ───────────────────────────────────────

class AppointmentResponse(BaseModel):
    id: UUID
    patient_id: UUID
    doctor_id: UUID
    appointment_datetime: datetime
    duration_minutes: int
    end_time: datetime
    status: AppointmentStatus
    reservation_expires_at: datetime | None = None
    reason: str | None = None
    notes: str | None = None
    cancellation_reason: str | None = None
    cancelled_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AppointmentListResponse(BaseModel):
    """Respuesta paginada de listado de citas."""
    items: list[AppointmentResponse]
    total: int
    page: int
    size: int
    pages: int


class AppointmentConflictResponse(BaseModel):
    has_conflicts: bool
    conflicts: list[AppointmentResponse]


class BookingAvailabilityResponse(BaseModel):
    doctor_id: UUID
    appointment_datetime: datetime
    duration_minutes: int
    available: bool
