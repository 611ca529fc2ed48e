"""
Schemas de slots y vista de calendario.
"""

import enum
from datetime import date, datetime, time
from uuid import UUID

from pydantic import BaseModel


class TimeSlot(BaseModel):
    """Un slot de tiempo dentro de una ventana de disponibilidad."""
    slot_datetime: datetime
    start_time: time
    end_time: time
    duration_minutes: int
    is_available: bool = True
    is_booked: bool = False


class DaySlotsResponse(BaseModel):
    doctor_id: UUID
    date: date
    slots: list[TimeSlot]


class CalendarDayStatus(str, enum.Enum):
    FULLY_AVAILABLE = "fully_available"
    PARTIALLY_AVAILABLE = "partially_available"
    FULLY_BOOKED = "fully_booked"
    UNAVAILABLE = "unavailable"


class CalendarDayResponse(BaseModel):
    date: date
    has_availability: bool
    available_slots: int
    booked_slots: int
    total_slots: int
    availability_status: CalendarDayStatus
    slots: list[TimeSlot]


class SlotCheckResponse(BaseModel):
    doctor_id: UUID
    when: datetime
    available: bool
