"""
Endpoints de slots: horarios reservables por día y vista de calendario.
"""

from datetime import date, datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.database import get_db
from agenda.schemas.slot import CalendarDayResponse, DaySlotsResponse, SlotCheckResponse
from agenda.services import slot_service

router = APIRouter()


@router.get("/doctor/{doctor_id}/calendar", response_model=list[CalendarDayResponse])
async def get_calendar(
    doctor_id: UUID,
    start_date: date = Query(..., description="Desde (YYYY-MM-DD)"),
    end_date: date = Query(..., description="Hasta, inclusive (YYYY-MM-DD)"),
    db: AsyncSession = Depends(get_db),
):
    """Resumen por día de slots disponibles y reservados."""
    return await slot_service.generate_calendar_range(db, doctor_id, start_date, end_date)


@router.get("/doctor/{doctor_id}/check", response_model=SlotCheckResponse)
async def check_slot(
    doctor_id: UUID,
    when: datetime = Query(..., description="Fecha y hora ISO 8601"),
    db: AsyncSession = Depends(get_db),
):
    """El doctor atiende a esa hora y nadie reservó ese inicio."""
    available = await slot_service.is_time_slot_available(db, doctor_id, when)
    return SlotCheckResponse(doctor_id=doctor_id, when=when, available=available)


@router.get("/doctor/{doctor_id}/{target_date}", response_model=DaySlotsResponse)
async def get_day_slots(
    doctor_id: UUID,
    target_date: date,
    db: AsyncSession = Depends(get_db),
):
    slots = await slot_service.get_day_slots(db, doctor_id, target_date)
    return DaySlotsResponse(doctor_id=doctor_id, date=target_date, slots=slots)
