"""
Generación de slots de cita y vista de calendario.
"""

from datetime import date, datetime, timedelta
from typing import Iterable, Literal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from agenda.config import get_settings
from agenda.core import timeutils
from agenda.core.exceptions import ValidationException
from agenda.models.appointment import Appointment
from agenda.models.availability import AvailabilityWindow
from agenda.schemas.slot import CalendarDayResponse, CalendarDayStatus, TimeSlot
from agenda.services import availability_service
from agenda.services.conflict_service import intervals_overlap
from agenda.services.identity_service import ensure_doctor_exists
from agenda.stores import booking_store

settings = get_settings()

BookingMatch = Literal["exact", "overlap"]


def _is_booked(
    slot_start: datetime,
    slot_end: datetime,
    bookings: list[Appointment],
    match_mode: BookingMatch,
) -> bool:
    if match_mode == "overlap":
        return any(
            intervals_overlap(
                timeutils.as_utc(b.appointment_datetime),
                timeutils.as_utc(b.end_time),
                slot_start,
                slot_end,
            )
            for b in bookings
        )
    return any(timeutils.as_utc(b.appointment_datetime) == slot_start for b in bookings)


def generate_slots(
    windows: Iterable[AvailabilityWindow],
    target_date: date,
    bookings: list[Appointment],
    match_mode: BookingMatch = "exact",
) -> list[TimeSlot]:
    """
    Divide cada ventana en slots de `slot_duration_minutes`.

    No se genera un slot parcial al final de la ventana. En modo
    "exact" un slot está reservado si alguna cita empieza exactamente
    en su inicio; en modo "overlap", si alguna cita se cruza con él.
    """
    slots: list[TimeSlot] = []

    for window in windows:
        current = timeutils.combine_utc(target_date, window.start_time)
        end = timeutils.combine_utc(target_date, window.end_time)
        delta = timedelta(minutes=window.slot_duration_minutes)

        while current + delta <= end:
            slot_end = current + delta
            booked = _is_booked(current, slot_end, bookings, match_mode)
            slots.append(TimeSlot(
                slot_datetime=current,
                start_time=current.time(),
                end_time=slot_end.time(),
                duration_minutes=window.slot_duration_minutes,
                is_available=window.is_available and not booked,
                is_booked=booked,
            ))
            current = slot_end

    # Orden estable: ante inicios repetidos se conserva el primero
    slots.sort(key=lambda s: s.slot_datetime)
    unique: list[TimeSlot] = []
    seen: set[datetime] = set()
    for slot in slots:
        if slot.slot_datetime in seen:
            continue
        seen.add(slot.slot_datetime)
        unique.append(slot)
    return unique


async def get_day_slots(
    db: AsyncSession, doctor_id: UUID, target_date: date
) -> list[TimeSlot]:
    """Slots de un doctor para una fecha, marcando los ya reservados."""
    windows = await availability_service.resolve_day(db, doctor_id, target_date)
    if not windows:
        return []
    bookings = await booking_store.list_active_for_day(
        db, doctor_id, target_date, timeutils.utcnow()
    )
    return generate_slots(windows, target_date, bookings, settings.SLOT_BOOKING_MATCH)


def _calendar_day(target_date: date, slots: list[TimeSlot]) -> CalendarDayResponse:
    available = sum(1 for s in slots if s.is_available)
    booked = sum(1 for s in slots if s.is_booked)

    if not slots:
        status = CalendarDayStatus.UNAVAILABLE
    elif available == 0:
        status = CalendarDayStatus.FULLY_BOOKED
    elif booked == 0:
        status = CalendarDayStatus.FULLY_AVAILABLE
    else:
        status = CalendarDayStatus.PARTIALLY_AVAILABLE

    return CalendarDayResponse(
        date=target_date,
        has_availability=available > 0,
        available_slots=available,
        booked_slots=booked,
        total_slots=len(slots),
        availability_status=status,
        slots=slots,
    )


async def generate_calendar_range(
    db: AsyncSession,
    doctor_id: UUID,
    start_date: date,
    end_date: date,
) -> list[CalendarDayResponse]:
    """Resumen de slots por día para un rango de fechas (inclusive)."""
    if end_date < start_date:
        raise ValidationException("end_date no puede ser anterior a start_date")
    days = (end_date - start_date).days + 1
    if days > settings.CALENDAR_MAX_DAYS:
        raise ValidationException(
            f"El rango no puede superar {settings.CALENDAR_MAX_DAYS} días"
        )

    await ensure_doctor_exists(db, doctor_id)

    calendar: list[CalendarDayResponse] = []
    for offset in range(days):
        current = start_date + timedelta(days=offset)
        slots = await get_day_slots(db, doctor_id, current)
        calendar.append(_calendar_day(current, slots))
    return calendar


async def is_time_slot_available(
    db: AsyncSession, doctor_id: UUID, when: datetime
) -> bool:
    """
    El doctor atiende en `when` (alguna ventana del día lo contiene)
    y ninguna cita activa empieza exactamente a esa hora.
    """
    when = timeutils.as_utc(when)
    windows = await availability_service.resolve_day(db, doctor_id, when.date())
    at = when.time()
    if not any(w.start_time <= at < w.end_time for w in windows):
        return False

    taken = await booking_store.list_active_at(db, doctor_id, when, timeutils.utcnow())
    return not taken
