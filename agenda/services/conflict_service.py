"""
Detección de conflictos de horario.

Todos los intervalos son semiabiertos [inicio, fin): dos bloques
consecutivos (uno termina a las 10:00 y otro empieza a las 10:00)
no se solapan.
"""

from datetime import date, datetime, time
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.core import timeutils
from agenda.core.exceptions import ValidationException
from agenda.models.appointment import Appointment
from agenda.models.availability import AvailabilityWindow, WindowKind
from agenda.stores import booking_store


def intervals_overlap(a_start, a_end, b_start, b_end) -> bool:
    """a.start < b.end AND b.start < a.end"""
    return a_start < b_end and b_start < a_end


# ── Disponibilidad ───────────────────────────────────

async def find_overlapping_availability(
    db: AsyncSession,
    doctor_id: UUID,
    start_time: time,
    end_time: time,
    *,
    day_of_week: int | None = None,
    specific_date: date | None = None,
    exclude_id: UUID | None = None,
) -> list[AvailabilityWindow]:
    """
    Ventanas del mismo doctor y del mismo grupo que se solapan con
    [start_time, end_time). Si se pasa `specific_date` se busca entre
    las ventanas de esa fecha; si no, entre las semanales de `day_of_week`.
    """
    query = select(AvailabilityWindow).where(
        AvailabilityWindow.doctor_id == doctor_id,
        AvailabilityWindow.start_time < end_time,
        AvailabilityWindow.end_time > start_time,
    )

    if specific_date is not None:
        query = query.where(
            AvailabilityWindow.kind == WindowKind.SPECIFIC_DATE,
            AvailabilityWindow.specific_date == specific_date,
        )
    elif day_of_week is not None:
        query = query.where(
            AvailabilityWindow.kind == WindowKind.RECURRING,
            AvailabilityWindow.day_of_week == day_of_week,
        )
    else:
        raise ValidationException("Debe indicar day_of_week o specific_date")

    if exclude_id:
        query = query.where(AvailabilityWindow.id != exclude_id)

    result = await db.execute(query.order_by(AvailabilityWindow.start_time))
    return list(result.scalars().all())


async def has_availability_conflict(
    db: AsyncSession,
    doctor_id: UUID,
    start_time: time,
    end_time: time,
    *,
    day_of_week: int | None = None,
    specific_date: date | None = None,
    exclude_id: UUID | None = None,
) -> bool:
    overlapping = await find_overlapping_availability(
        db,
        doctor_id,
        start_time,
        end_time,
        day_of_week=day_of_week,
        specific_date=specific_date,
        exclude_id=exclude_id,
    )
    return len(overlapping) > 0


# ── Citas ────────────────────────────────────────────

async def find_conflicting_appointments(
    db: AsyncSession,
    doctor_id: UUID,
    start: datetime,
    end: datetime,
    exclude_id: UUID | None = None,
) -> list[Appointment]:
    """
    Citas activas del doctor que se cruzan con [start, end).
    Las reservas temporales vencidas no cuentan.
    """
    if end <= start:
        raise ValidationException("El fin del intervalo debe ser posterior al inicio")
    return await booking_store.list_active_overlapping(
        db,
        doctor_id,
        timeutils.as_utc(start),
        timeutils.as_utc(end),
        timeutils.utcnow(),
        exclude_id=exclude_id,
    )
