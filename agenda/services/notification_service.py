"""
Notificaciones de citas (confirmación, cancelación, reprogramación).

Los servicios de reserva registran la notificación en la sesión y la
tarea se encola después del commit; si el broker no está disponible
se registra una advertencia y la operación sigue su curso.
La tarea arma el mensaje y lo deja registrado en notification_logs.
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session, joinedload

from agenda.models.appointment import Appointment
from agenda.models.notification_log import (
    NotificationLog,
    NotificationStatus,
    NotificationType,
)

logger = logging.getLogger(__name__)

DATE_FORMAT = "%d/%m/%Y a las %H:%M"


# ── Mensajes ─────────────────────────────────────────

def build_confirmation_message(
    patient_name: str,
    doctor_name: str,
    appointment_time: datetime,
) -> str:
    """Construye mensaje de confirmación de cita."""
    return (
        f"Hola {patient_name}, su cita ha sido confirmada. "
        f"Doctor: {doctor_name}. "
        f"Fecha: {appointment_time.strftime(DATE_FORMAT)} (UTC). "
        f"¡Lo esperamos!"
    )


def build_cancellation_message(
    patient_name: str,
    doctor_name: str,
    appointment_time: datetime,
    reason: str | None = None,
) -> str:
    message = (
        f"Hola {patient_name}, su cita con {doctor_name} del "
        f"{appointment_time.strftime(DATE_FORMAT)} (UTC) ha sido cancelada."
    )
    if reason:
        message += f" Motivo: {reason}."
    return message


def build_reschedule_message(
    patient_name: str,
    doctor_name: str,
    previous_time: datetime,
    new_time: datetime,
) -> str:
    return (
        f"Hola {patient_name}, su cita con {doctor_name} fue reprogramada "
        f"del {previous_time.strftime(DATE_FORMAT)} al "
        f"{new_time.strftime(DATE_FORMAT)} (UTC)."
    )


# ── Registro ─────────────────────────────────────────

async def log_notification(
    db: AsyncSession,
    *,
    appointment_id: UUID | None,
    notification_type: NotificationType,
    message: str,
    status: NotificationStatus,
    error_message: str | None = None,
) -> NotificationLog:
    """Registra una notificación en la tabla notification_logs."""
    record = NotificationLog(
        appointment_id=appointment_id,
        notification_type=notification_type,
        message=message,
        status=status,
        error_message=error_message,
    )
    db.add(record)
    await db.flush()
    return record


async def deliver_notification(
    db: AsyncSession,
    appointment_id: UUID,
    notification_type: NotificationType,
    previous_datetime: datetime | None = None,
) -> NotificationLog | None:
    """
    Arma el mensaje de la notificación y lo registra como enviado.
    Retorna None si la cita ya no existe.
    """
    result = await db.execute(
        select(Appointment)
        .options(joinedload(Appointment.patient), joinedload(Appointment.doctor))
        .where(Appointment.id == appointment_id)
    )
    appt = result.scalar_one_or_none()
    if not appt:
        logger.warning(f"Appointment {appointment_id} no encontrado, notificación descartada")
        return None

    patient_name = appt.patient.first_name
    doctor_name = f"Dr. {appt.doctor.full_name}"

    if notification_type == NotificationType.CONFIRMATION:
        message = build_confirmation_message(
            patient_name, doctor_name, appt.appointment_datetime
        )
    elif notification_type == NotificationType.CANCELLATION:
        message = build_cancellation_message(
            patient_name, doctor_name, appt.appointment_datetime, appt.cancellation_reason
        )
    else:
        message = build_reschedule_message(
            patient_name,
            doctor_name,
            previous_datetime or appt.appointment_datetime,
            appt.appointment_datetime,
        )

    record = await log_notification(
        db,
        appointment_id=appt.id,
        notification_type=notification_type,
        message=message,
        status=NotificationStatus.SENT,
    )
    logger.info(f"Notificación {notification_type.value} registrada para cita {appt.id}")
    return record


# ── Encolado ─────────────────────────────────────────

def _enqueue(
    appointment_id: UUID,
    notification_type: NotificationType,
    previous_datetime: datetime | None = None,
) -> None:
    from agenda.tasks.notification_tasks import send_appointment_notification_task

    try:
        send_appointment_notification_task.delay(
            str(appointment_id),
            notification_type.value,
            previous_datetime.isoformat() if previous_datetime else None,
        )
    except Exception as exc:
        logger.warning(
            f"No se pudo encolar notificación {notification_type.value} "
            f"para cita {appointment_id}: {exc}"
        )


# ── Despacho tras el commit ──────────────────────────
# Las notificaciones se acumulan en la sesión y se encolan recién
# cuando la transacción se confirma; un rollback las descarta.

PENDING_KEY = "pending_notifications"


@event.listens_for(Session, "after_commit")
def _dispatch_pending(session: Session) -> None:
    for args in session.info.pop(PENDING_KEY, []):
        _enqueue(*args)


@event.listens_for(Session, "after_rollback")
def _discard_pending(session: Session) -> None:
    discarded = session.info.pop(PENDING_KEY, [])
    if discarded:
        logger.info(f"Notificaciones descartadas por rollback: {len(discarded)}")


def _schedule(
    db: AsyncSession,
    appointment_id: UUID,
    notification_type: NotificationType,
    previous_datetime: datetime | None = None,
) -> None:
    db.info.setdefault(PENDING_KEY, []).append(
        (appointment_id, notification_type, previous_datetime)
    )


def notify_confirmation(db: AsyncSession, appointment: Appointment) -> None:
    _schedule(db, appointment.id, NotificationType.CONFIRMATION)


def notify_cancellation(db: AsyncSession, appointment: Appointment) -> None:
    _schedule(db, appointment.id, NotificationType.CANCELLATION)


def notify_reschedule(
    db: AsyncSession, appointment: Appointment, previous_datetime: datetime
) -> None:
    _schedule(db, appointment.id, NotificationType.RESCHEDULE, previous_datetime)
