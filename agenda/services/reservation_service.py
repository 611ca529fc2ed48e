"""
Servicio de reservas: ciclo de vida de una cita.

    reserve  → crea la cita en estado RESERVED con plazo de confirmación
    confirm  → RESERVED → CONFIRMED (si el plazo no venció)
    book     → reserve + confirm en la misma transacción
    cancel   → CANCELLED, con al menos 24h de anticipación
    reschedule → cambia la hora, estado RESCHEDULED, misma regla de 24h
"""

import logging
import math
from datetime import date, datetime, timedelta
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from agenda.config import get_settings
from agenda.core import timeutils
from agenda.core.exceptions import (
    ConflictException,
    NotFoundException,
    PolicyException,
    ReservationExpiredException,
    ValidationException,
)
from agenda.database import lock_doctor
from agenda.models.appointment import (
    VALID_TRANSITIONS,
    Appointment,
    AppointmentStatus,
    is_valid_transition,
)
from agenda.schemas.appointment import AppointmentListResponse, AppointmentResponse
from agenda.services import conflict_service, notification_service
from agenda.services.conflict_service import intervals_overlap
from agenda.services.identity_service import ensure_doctor_exists, ensure_patient_exists
from agenda.stores import booking_store

logger = logging.getLogger(__name__)
settings = get_settings()

SLOT_TAKEN_MESSAGE = "El horario seleccionado ya no está disponible"


# ── Validaciones ─────────────────────────────────────

def _validate_request(when: datetime, duration_minutes: int, now: datetime) -> None:
    if when <= now:
        raise ValidationException("La cita debe programarse en una fecha y hora futura")
    if not (
        settings.MIN_APPOINTMENT_MINUTES
        <= duration_minutes
        <= settings.MAX_APPOINTMENT_MINUTES
    ):
        raise ValidationException(
            f"La duración de la cita debe estar entre {settings.MIN_APPOINTMENT_MINUTES} "
            f"y {settings.MAX_APPOINTMENT_MINUTES} minutos"
        )


def _ensure_transition(appt: Appointment, new_status: AppointmentStatus, action: str) -> None:
    if not is_valid_transition(appt.status, new_status):
        valid = VALID_TRANSITIONS.get(appt.status, [])
        raise PolicyException(
            f"No se puede {action} una cita en estado '{appt.status.value}'. "
            f"Transiciones válidas: {', '.join(s.value for s in valid) or 'ninguna'}"
        )


def _ensure_notice(appt: Appointment, now: datetime, action: str) -> None:
    """La cita debe estar al menos CANCELLATION_NOTICE_HOURS en el futuro."""
    notice = timedelta(hours=settings.CANCELLATION_NOTICE_HOURS)
    if timeutils.as_utc(appt.appointment_datetime) - now < notice:
        raise PolicyException(
            f"Solo se puede {action} una cita con al menos "
            f"{settings.CANCELLATION_NOTICE_HOURS} horas de anticipación"
        )


def _hold_expired(appt: Appointment, now: datetime) -> bool:
    return (
        appt.status == AppointmentStatus.RESERVED
        and appt.reservation_expires_at is not None
        and now > timeutils.as_utc(appt.reservation_expires_at)
    )


async def _discard_expired(db: AsyncSession, appt: Appointment) -> None:
    """
    Elimina una reserva vencida y confirma la eliminación antes de
    fallar, para que el rollback del request no la restaure.
    """
    await booking_store.delete(db, appt)
    await db.commit()
    logger.info(f"Reserva vencida {appt.id} eliminada")
    raise ReservationExpiredException()


async def _purge_expired_holds(
    db: AsyncSession,
    doctor_id: UUID,
    start: datetime,
    end: datetime,
    now: datetime,
) -> None:
    """Libera las reservas vencidas del doctor que ocupan [start, end)."""
    for held in await booking_store.list_expired_reservations(db, now, doctor_id):
        if intervals_overlap(
            timeutils.as_utc(held.appointment_datetime),
            timeutils.as_utc(held.end_time),
            start,
            end,
        ):
            await booking_store.delete_if_expired(db, held.id, now)


async def _get_for_update(db: AsyncSession, appointment_id: UUID) -> Appointment:
    appt = await booking_store.get(db, appointment_id, for_update=True)
    if not appt:
        raise NotFoundException("Cita")
    return appt


async def _flush(db: AsyncSession, appt: Appointment) -> Appointment:
    """Flush con el mapeo de carreras a errores de negocio."""
    try:
        await db.flush()
    except StaleDataError as exc:
        # La fila fue eliminada por la limpieza de reservas
        raise ReservationExpiredException() from exc
    except IntegrityError as exc:
        raise ConflictException(SLOT_TAKEN_MESSAGE) from exc
    await db.refresh(appt)
    return appt


# ── Reserva ──────────────────────────────────────────

async def reserve(
    db: AsyncSession,
    patient_id: UUID,
    doctor_id: UUID,
    when: datetime,
    reason: str | None = None,
    duration_minutes: int | None = None,
) -> Appointment:
    """
    Reserva temporalmente un horario. La reserva debe confirmarse
    dentro de RESERVATION_HOLD_MINUTES o se descarta.
    """
    now = timeutils.utcnow()
    when = timeutils.as_utc(when)
    duration = (
        settings.DEFAULT_APPOINTMENT_MINUTES if duration_minutes is None else duration_minutes
    )
    _validate_request(when, duration, now)

    await ensure_patient_exists(db, patient_id)
    await ensure_doctor_exists(db, doctor_id)

    await lock_doctor(db, doctor_id)
    end = when + timedelta(minutes=duration)
    await _purge_expired_holds(db, doctor_id, when, end, now)

    conflicts = await conflict_service.find_conflicting_appointments(db, doctor_id, when, end)
    if conflicts:
        raise ConflictException(SLOT_TAKEN_MESSAGE)

    appointment = Appointment(
        patient_id=patient_id,
        doctor_id=doctor_id,
        appointment_datetime=when,
        duration_minutes=duration,
        end_time=end,
        status=AppointmentStatus.RESERVED,
        reservation_expires_at=now + timedelta(minutes=settings.RESERVATION_HOLD_MINUTES),
        reason=reason,
    )
    try:
        appointment = await booking_store.add(db, appointment)
    except IntegrityError as exc:
        raise ConflictException(SLOT_TAKEN_MESSAGE) from exc

    logger.info(
        f"Reserva {appointment.id} creada doctor={doctor_id} "
        f"inicio={when.isoformat()} vence={appointment.reservation_expires_at.isoformat()}"
    )
    return appointment


async def confirm(
    db: AsyncSession, appointment_id: UUID, notes: str | None = None
) -> Appointment:
    """Confirma una reserva vigente."""
    now = timeutils.utcnow()
    appt = await _get_for_update(db, appointment_id)

    if _hold_expired(appt, now):
        await _discard_expired(db, appt)

    _ensure_transition(appt, AppointmentStatus.CONFIRMED, "confirmar")

    appt.status = AppointmentStatus.CONFIRMED
    appt.reservation_expires_at = None
    if notes is not None:
        appt.notes = notes
    appt = await _flush(db, appt)

    logger.info(f"Cita {appt.id} confirmada")
    notification_service.notify_confirmation(db, appt)
    return appt


async def book(
    db: AsyncSession,
    patient_id: UUID,
    doctor_id: UUID,
    when: datetime,
    reason: str | None = None,
    duration_minutes: int | None = None,
    notes: str | None = None,
) -> Appointment:
    """Reserva y confirma en un solo paso."""
    appt = await reserve(db, patient_id, doctor_id, when, reason, duration_minutes)
    return await confirm(db, appt.id, notes)


async def cancel(
    db: AsyncSession, appointment_id: UUID, reason: str | None = None
) -> Appointment:
    now = timeutils.utcnow()
    appt = await _get_for_update(db, appointment_id)

    if _hold_expired(appt, now):
        await _discard_expired(db, appt)

    _ensure_transition(appt, AppointmentStatus.CANCELLED, "cancelar")
    _ensure_notice(appt, now, "cancelar")

    appt.status = AppointmentStatus.CANCELLED
    appt.cancellation_reason = reason
    appt.cancelled_at = now
    appt.reservation_expires_at = None
    appt = await _flush(db, appt)

    logger.info(f"Cita {appt.id} cancelada")
    notification_service.notify_cancellation(db, appt)
    return appt


async def reschedule(
    db: AsyncSession,
    appointment_id: UUID,
    new_when: datetime,
    reason: str | None = None,
) -> Appointment:
    """
    Mueve una cita confirmada a otro horario. La regla de 24h se mide
    contra la hora actual de la cita, no contra la nueva.
    """
    now = timeutils.utcnow()
    new_when = timeutils.as_utc(new_when)
    appt = await _get_for_update(db, appointment_id)

    if _hold_expired(appt, now):
        await _discard_expired(db, appt)

    _ensure_transition(appt, AppointmentStatus.RESCHEDULED, "reprogramar")
    _ensure_notice(appt, now, "reprogramar")
    _validate_request(new_when, appt.duration_minutes, now)

    await lock_doctor(db, appt.doctor_id)
    new_end = new_when + timedelta(minutes=appt.duration_minutes)
    await _purge_expired_holds(db, appt.doctor_id, new_when, new_end, now)

    conflicts = await conflict_service.find_conflicting_appointments(
        db, appt.doctor_id, new_when, new_end, exclude_id=appt.id
    )
    if conflicts:
        raise ConflictException(SLOT_TAKEN_MESSAGE)

    previous = timeutils.as_utc(appt.appointment_datetime)
    appt.appointment_datetime = new_when
    appt.end_time = new_end
    appt.status = AppointmentStatus.RESCHEDULED
    if reason:
        appt.reason = reason
    appt = await _flush(db, appt)

    logger.info(
        f"Cita {appt.id} reprogramada de {previous.isoformat()} a {new_when.isoformat()}"
    )
    notification_service.notify_reschedule(db, appt, previous)
    return appt


async def record_outcome(
    db: AsyncSession, appointment_id: UUID, status: AppointmentStatus
) -> Appointment:
    """Registra si la cita se atendió (COMPLETED) o el paciente no asistió (NO_SHOW)."""
    if status not in (AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW):
        raise ValidationException("Solo se puede registrar 'completed' o 'no_show'")

    appt = await _get_for_update(db, appointment_id)
    _ensure_transition(appt, status, "cerrar")

    appt.status = status
    appt = await _flush(db, appt)
    logger.info(f"Cita {appt.id} cerrada como {status.value}")
    return appt


# ── Consultas ────────────────────────────────────────

async def is_time_slot_available(
    db: AsyncSession,
    doctor_id: UUID,
    when: datetime,
    duration_minutes: int | None = None,
) -> bool:
    """Ninguna cita activa del doctor ocupa [when, when + duración)."""
    when = timeutils.as_utc(when)
    duration = (
        settings.DEFAULT_APPOINTMENT_MINUTES if duration_minutes is None else duration_minutes
    )
    conflicts = await conflict_service.find_conflicting_appointments(
        db, doctor_id, when, when + timedelta(minutes=duration)
    )
    return not conflicts


async def get_appointment(db: AsyncSession, appointment_id: UUID) -> Appointment:
    appt = await booking_store.get(db, appointment_id)
    if not appt:
        raise NotFoundException("Cita")
    return appt


async def list_appointments(
    db: AsyncSession,
    *,
    page: int = 1,
    size: int = 20,
    doctor_id: UUID | None = None,
    patient_id: UUID | None = None,
    status: AppointmentStatus | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> AppointmentListResponse:
    """Lista citas con paginación y filtros."""
    start = timeutils.day_bounds(date_from)[0] if date_from else None
    end = timeutils.day_bounds(date_to)[1] if date_to else None

    items, total = await booking_store.list_filtered(
        db,
        offset=(page - 1) * size,
        limit=size,
        doctor_id=doctor_id,
        patient_id=patient_id,
        status=status,
        start=start,
        end=end,
    )
    return AppointmentListResponse(
        items=[AppointmentResponse.model_validate(a) for a in items],
        total=total,
        page=page,
        size=size,
        pages=math.ceil(total / size) if total > 0 else 0,
    )
