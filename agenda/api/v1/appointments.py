"""
Endpoints de citas: reserva, confirmación, cancelación,
reprogramación y consultas.
"""

from datetime import date, datetime, timedelta
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.database import get_db
from agenda.models.appointment import AppointmentStatus
from agenda.schemas.appointment import (
    AppointmentConflictResponse,
    AppointmentListResponse,
    AppointmentResponse,
    BookingAvailabilityResponse,
    BookingRequest,
    CancelRequest,
    ConfirmRequest,
    OutcomeRequest,
    RescheduleRequest,
    ReservationRequest,
)
from agenda.services import conflict_service, reservation_service

router = APIRouter()


# ── Consultas ────────────────────────────────────────

@router.get("", response_model=AppointmentListResponse)
async def list_appointments(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    doctor_id: UUID | None = Query(None, description="Filtrar por doctor"),
    patient_id: UUID | None = Query(None, description="Filtrar por paciente"),
    status: AppointmentStatus | None = Query(None, description="Filtrar por estado"),
    date_from: date | None = Query(None, description="Desde fecha (YYYY-MM-DD)"),
    date_to: date | None = Query(None, description="Hasta fecha (YYYY-MM-DD)"),
    db: AsyncSession = Depends(get_db),
):
    """Lista citas con filtros por doctor, paciente, estado y fechas."""
    return await reservation_service.list_appointments(
        db,
        page=page,
        size=size,
        doctor_id=doctor_id,
        patient_id=patient_id,
        status=status,
        date_from=date_from,
        date_to=date_to,
    )


@router.get("/availability/check", response_model=BookingAvailabilityResponse)
async def check_availability(
    doctor_id: UUID = Query(...),
    appointment_datetime: datetime = Query(..., description="Fecha y hora ISO 8601"),
    duration_minutes: int = Query(30, ge=1),
    db: AsyncSession = Depends(get_db),
):
    """Ninguna cita activa ocupa el intervalo solicitado."""
    available = await reservation_service.is_time_slot_available(
        db, doctor_id, appointment_datetime, duration_minutes
    )
    return BookingAvailabilityResponse(
        doctor_id=doctor_id,
        appointment_datetime=appointment_datetime,
        duration_minutes=duration_minutes,
        available=available,
    )


@router.get("/conflicts", response_model=AppointmentConflictResponse)
async def check_conflicts(
    doctor_id: UUID = Query(...),
    start: datetime = Query(..., description="Inicio ISO 8601"),
    end: datetime | None = Query(None, description="Fin ISO 8601"),
    duration_minutes: int = Query(30, ge=1),
    exclude_id: UUID | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    conflicts = await conflict_service.find_conflicting_appointments(
        db,
        doctor_id,
        start,
        end or start + timedelta(minutes=duration_minutes),
        exclude_id=exclude_id,
    )
    return AppointmentConflictResponse(
        has_conflicts=bool(conflicts),
        conflicts=[AppointmentResponse.model_validate(a) for a in conflicts],
    )


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(appointment_id: UUID, db: AsyncSession = Depends(get_db)):
    return await reservation_service.get_appointment(db, appointment_id)


# ── Ciclo de vida ────────────────────────────────────

@router.post("/reserve", response_model=AppointmentResponse, status_code=201)
async def reserve(data: ReservationRequest, db: AsyncSession = Depends(get_db)):
    """
    Reserva temporal de un horario. Debe confirmarse antes de que
    venza `reservation_expires_at`.
    """
    return await reservation_service.reserve(
        db,
        patient_id=data.patient_id,
        doctor_id=data.doctor_id,
        when=data.appointment_datetime,
        reason=data.reason,
        duration_minutes=data.duration_minutes,
    )


@router.post("/book", response_model=AppointmentResponse, status_code=201)
async def book(data: BookingRequest, db: AsyncSession = Depends(get_db)):
    """Reserva y confirma en un solo paso."""
    return await reservation_service.book(
        db,
        patient_id=data.patient_id,
        doctor_id=data.doctor_id,
        when=data.appointment_datetime,
        reason=data.reason,
        duration_minutes=data.duration_minutes,
        notes=data.notes,
    )


@router.post("/{appointment_id}/confirm", response_model=AppointmentResponse)
async def confirm(
    appointment_id: UUID,
    data: ConfirmRequest | None = None,
    db: AsyncSession = Depends(get_db),
):
    return await reservation_service.confirm(
        db, appointment_id, data.notes if data else None
    )


@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel(
    appointment_id: UUID,
    data: CancelRequest | None = None,
    db: AsyncSession = Depends(get_db),
):
    """Cancela la cita (al menos 24h antes)."""
    return await reservation_service.cancel(
        db, appointment_id, data.reason if data else None
    )


@router.post("/{appointment_id}/reschedule", response_model=AppointmentResponse)
async def reschedule(
    appointment_id: UUID,
    data: RescheduleRequest,
    db: AsyncSession = Depends(get_db),
):
    """Mueve la cita a otro horario (al menos 24h antes de la hora actual)."""
    return await reservation_service.reschedule(
        db, appointment_id, data.new_datetime, data.reason
    )


@router.patch("/{appointment_id}/outcome", response_model=AppointmentResponse)
async def record_outcome(
    appointment_id: UUID,
    data: OutcomeRequest,
    db: AsyncSession = Depends(get_db),
):
    return await reservation_service.record_outcome(db, appointment_id, data.status)
