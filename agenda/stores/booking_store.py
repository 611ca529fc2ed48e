"""
Acceso a datos de citas.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy import delete as sql_delete
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.core.timeutils import day_bounds
from agenda.models.appointment import ACTIVE_STATUSES, Appointment, AppointmentStatus


def _is_occupying(now: datetime):
    """Condición SQL: la cita ocupa el horario del doctor en `now`."""
    return and_(
        Appointment.status.in_(ACTIVE_STATUSES),
        or_(
            Appointment.status != AppointmentStatus.RESERVED,
            Appointment.reservation_expires_at.is_(None),
            Appointment.reservation_expires_at >= now,
        ),
    )


async def get(
    db: AsyncSession,
    appointment_id: UUID,
    for_update: bool = False,
) -> Appointment | None:
    query = select(Appointment).where(Appointment.id == appointment_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query.execution_options(populate_existing=True))
    return result.scalar_one_or_none()


async def list_active_for_day(
    db: AsyncSession,
    doctor_id: UUID,
    target_date: date,
    now: datetime,
) -> list[Appointment]:
    """Citas que ocupan el horario del doctor y empiezan en `target_date`."""
    start, end = day_bounds(target_date)
    result = await db.execute(
        select(Appointment)
        .where(
            Appointment.doctor_id == doctor_id,
            Appointment.appointment_datetime >= start,
            Appointment.appointment_datetime < end,
            _is_occupying(now),
        )
        .order_by(Appointment.appointment_datetime)
    )
    return list(result.scalars().all())


async def list_active_overlapping(
    db: AsyncSession,
    doctor_id: UUID,
    start: datetime,
    end: datetime,
    now: datetime,
    exclude_id: UUID | None = None,
) -> list[Appointment]:
    """
    Citas activas cuyo intervalo se cruza con [start, end).
    Dos intervalos se solapan si: existing.start < new.end AND existing.end > new.start
    """
    query = select(Appointment).where(
        Appointment.doctor_id == doctor_id,
        Appointment.appointment_datetime < end,
        Appointment.end_time > start,
        _is_occupying(now),
    )
    if exclude_id:
        query = query.where(Appointment.id != exclude_id)
    result = await db.execute(query.order_by(Appointment.appointment_datetime))
    return list(result.scalars().all())


async def list_active_at(
    db: AsyncSession,
    doctor_id: UUID,
    when: datetime,
    now: datetime,
) -> list[Appointment]:
    """Citas activas que empiezan exactamente en `when`."""
    result = await db.execute(
        select(Appointment).where(
            Appointment.doctor_id == doctor_id,
            Appointment.appointment_datetime == when,
            _is_occupying(now),
        )
    )
    return list(result.scalars().all())


async def list_expired_reservations(
    db: AsyncSession,
    now: datetime,
    doctor_id: UUID | None = None,
) -> list[Appointment]:
    query = select(Appointment).where(
        Appointment.status == AppointmentStatus.RESERVED,
        Appointment.reservation_expires_at < now,
    )
    if doctor_id:
        query = query.where(Appointment.doctor_id == doctor_id)
    result = await db.execute(query.order_by(Appointment.reservation_expires_at))
    return list(result.scalars().all())


async def delete_if_expired(
    db: AsyncSession, appointment_id: UUID, now: datetime
) -> bool:
    """
    Elimina la reserva solo si sigue RESERVED y vencida.
    Una cita confirmada en paralelo no se toca.
    """
    result = await db.execute(
        sql_delete(Appointment)
        .where(
            Appointment.id == appointment_id,
            Appointment.status == AppointmentStatus.RESERVED,
            Appointment.reservation_expires_at < now,
        )
        .execution_options(synchronize_session="fetch")
    )
    return bool(result.rowcount)


async def add(db: AsyncSession, appointment: Appointment) -> Appointment:
    db.add(appointment)
    await db.flush()
    await db.refresh(appointment)
    return appointment


async def delete(db: AsyncSession, appointment: Appointment) -> None:
    await db.delete(appointment)
    await db.flush()


async def list_filtered(
    db: AsyncSession,
    *,
    offset: int,
    limit: int,
    doctor_id: UUID | None = None,
    patient_id: UUID | None = None,
    status: AppointmentStatus | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> tuple[list[Appointment], int]:
    """Listado paginado con filtros. Retorna (items, total)."""
    query = select(Appointment)
    if doctor_id:
        query = query.where(Appointment.doctor_id == doctor_id)
    if patient_id:
        query = query.where(Appointment.patient_id == patient_id)
    if status:
        query = query.where(Appointment.status == status)
    if start:
        query = query.where(Appointment.appointment_datetime >= start)
    if end:
        query = query.where(Appointment.appointment_datetime < end)

    count_query = select(func.count()).select_from(
        query.with_only_columns(Appointment.id).subquery()
    )
    total = (await db.execute(count_query)).scalar() or 0

    query = query.order_by(Appointment.appointment_datetime.desc())
    result = await db.execute(query.offset(offset).limit(limit))
    return list(result.scalars().all()), total

