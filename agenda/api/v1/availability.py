"""
Endpoints de disponibilidad de doctores: ventanas semanales,
fechas específicas, excepciones y operaciones masivas.
"""

from datetime import date, time
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.database import get_db
from agenda.schemas.availability import (
    AvailabilityConflictResponse,
    AvailabilitySummaryResponse,
    AvailabilityWindowCreate,
    AvailabilityWindowResponse,
    AvailabilityWindowUpdate,
    BulkDeleteRequest,
    BulkDeleteResponse,
    BulkRecurringCreate,
    BulkSpecificDatesCreate,
    BulkUpdateRequest,
    CopyAvailabilityRequest,
    ExceptionDateCreate,
    MarkUnavailableRequest,
    RecurringWindowCreate,
    SpecificDateWindowCreate,
)
from agenda.services import availability_service

router = APIRouter()


# ── Creación ─────────────────────────────────────────

@router.post("", response_model=AvailabilityWindowResponse, status_code=201)
async def create_window(
    data: AvailabilityWindowCreate,
    db: AsyncSession = Depends(get_db),
):
    """Crea una ventana semanal o de fecha específica según `kind`."""
    return await availability_service.create_window(db, data)


@router.post("/recurring", response_model=AvailabilityWindowResponse, status_code=201)
async def create_recurring(
    data: RecurringWindowCreate,
    db: AsyncSession = Depends(get_db),
):
    return await availability_service.create_recurring(db, data)


@router.post("/specific-date", response_model=AvailabilityWindowResponse, status_code=201)
async def create_specific_date(
    data: SpecificDateWindowCreate,
    db: AsyncSession = Depends(get_db),
):
    return await availability_service.create_specific_date(db, data)


@router.post("/exception-date", response_model=AvailabilityWindowResponse, status_code=201)
async def create_exception_date(
    data: ExceptionDateCreate,
    db: AsyncSession = Depends(get_db),
):
    """Excepción de fecha: reemplaza el horario semanal ese día."""
    return await availability_service.create_exception(db, data)


@router.post("/mark-unavailable", response_model=AvailabilityWindowResponse, status_code=201)
async def mark_unavailable(
    data: MarkUnavailableRequest,
    db: AsyncSession = Depends(get_db),
):
    """Bloquea un día completo (feriado, vacaciones)."""
    return await availability_service.mark_unavailable(
        db, data.doctor_id, data.unavailable_date
    )


# ── Operaciones masivas ──────────────────────────────

@router.post(
    "/bulk/recurring",
    response_model=list[AvailabilityWindowResponse],
    status_code=201,
)
async def bulk_create_recurring(
    data: BulkRecurringCreate,
    db: AsyncSession = Depends(get_db),
):
    """Crea el mismo bloque en varios días de la semana. Todo o nada."""
    return await availability_service.bulk_create_recurring(db, data)


@router.post(
    "/bulk/specific-dates",
    response_model=list[AvailabilityWindowResponse],
    status_code=201,
)
async def bulk_create_specific_dates(
    data: BulkSpecificDatesCreate,
    db: AsyncSession = Depends(get_db),
):
    return await availability_service.bulk_create_specific_dates(db, data)


@router.put("/bulk/update", response_model=list[AvailabilityWindowResponse])
async def bulk_update(
    data: BulkUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    return await availability_service.bulk_update(db, data)


@router.post("/bulk/delete", response_model=BulkDeleteResponse)
async def bulk_delete(
    data: BulkDeleteRequest,
    db: AsyncSession = Depends(get_db),
):
    deleted = await availability_service.bulk_delete(db, data.availability_ids)
    return BulkDeleteResponse(deleted=deleted)


@router.post("/copy", response_model=list[AvailabilityWindowResponse], status_code=201)
async def copy_day(
    data: CopyAvailabilityRequest,
    db: AsyncSession = Depends(get_db),
):
    """Copia el horario de un día de la semana a otros días."""
    return await availability_service.copy_day(db, data)


# ── Consultas ────────────────────────────────────────

@router.get("/conflicts", response_model=AvailabilityConflictResponse)
async def check_conflicts(
    doctor_id: UUID = Query(...),
    start_time: time = Query(..., description="HH:MM"),
    end_time: time = Query(..., description="HH:MM"),
    day_of_week: int | None = Query(None, ge=0, le=6),
    specific_date: date | None = Query(None, description="YYYY-MM-DD"),
    exclude_id: UUID | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Verifica si un bloque propuesto chocaría con ventanas existentes."""
    return await availability_service.check_conflicts(
        db,
        doctor_id,
        start_time,
        end_time,
        day_of_week=day_of_week,
        specific_date=specific_date,
        exclude_id=exclude_id,
    )


@router.get("/doctor/{doctor_id}", response_model=list[AvailabilityWindowResponse])
async def list_for_doctor(doctor_id: UUID, db: AsyncSession = Depends(get_db)):
    return await availability_service.list_for_doctor(db, doctor_id)


@router.get("/doctor/{doctor_id}/recurring", response_model=list[AvailabilityWindowResponse])
async def list_recurring(doctor_id: UUID, db: AsyncSession = Depends(get_db)):
    return await availability_service.list_recurring(db, doctor_id)


@router.get(
    "/doctor/{doctor_id}/specific-dates",
    response_model=list[AvailabilityWindowResponse],
)
async def list_specific_dates(doctor_id: UUID, db: AsyncSession = Depends(get_db)):
    return await availability_service.list_specific_dates(db, doctor_id)


@router.get(
    "/doctor/{doctor_id}/date/{target_date}",
    response_model=list[AvailabilityWindowResponse],
)
async def list_for_date(
    doctor_id: UUID,
    target_date: date,
    db: AsyncSession = Depends(get_db),
):
    """Ventanas que aplican en una fecha (excepciones incluidas)."""
    return await availability_service.list_for_date(db, doctor_id, target_date)


@router.get(
    "/doctor/{doctor_id}/exception-dates",
    response_model=list[AvailabilityWindowResponse],
)
async def list_exception_dates(doctor_id: UUID, db: AsyncSession = Depends(get_db)):
    return await availability_service.list_exception_dates(db, doctor_id)


@router.get(
    "/doctor/{doctor_id}/unavailable-dates",
    response_model=list[AvailabilityWindowResponse],
)
async def list_unavailable_dates(doctor_id: UUID, db: AsyncSession = Depends(get_db)):
    return await availability_service.list_unavailable_dates(db, doctor_id)


@router.delete("/doctor/{doctor_id}/exception-date/{exception_date}", status_code=204)
async def delete_exception_date(
    doctor_id: UUID,
    exception_date: date,
    db: AsyncSession = Depends(get_db),
):
    await availability_service.delete_exception_date(db, doctor_id, exception_date)


@router.get("/doctor/{doctor_id}/summary", response_model=AvailabilitySummaryResponse)
async def get_summary(doctor_id: UUID, db: AsyncSession = Depends(get_db)):
    return await availability_service.get_summary(db, doctor_id)


# ── Edición ──────────────────────────────────────────

@router.put("/{window_id}", response_model=AvailabilityWindowResponse)
async def update_window(
    window_id: UUID,
    data: AvailabilityWindowUpdate,
    db: AsyncSession = Depends(get_db),
):
    return await availability_service.update_window(db, window_id, data)


@router.delete("/{window_id}", status_code=204)
async def delete_window(window_id: UUID, db: AsyncSession = Depends(get_db)):
    await availability_service.delete_window(db, window_id)
