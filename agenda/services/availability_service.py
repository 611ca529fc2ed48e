"""
Servicio de disponibilidad de doctores: resolución del día,
CRUD de ventanas, excepciones, operaciones masivas y resumen.

Reglas:
    - Las ventanas de fecha específica reemplazan por completo el
      horario semanal de esa fecha.
    - Una ventana de fecha específica no disponible bloquea el día.
    - Dentro del mismo grupo (día de semana o fecha) las ventanas de
      un doctor no pueden solaparse.
"""

import logging
from datetime import date, time, timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from agenda.config import get_settings
from agenda.core.exceptions import (
    ConflictException,
    NotFoundException,
    ValidationException,
)
from agenda.database import lock_doctor
from agenda.models.availability import DAY_NAMES, AvailabilityWindow, WindowKind
from agenda.schemas.availability import (
    AvailabilityConflictResponse,
    AvailabilitySummaryResponse,
    AvailabilityWindowResponse,
    AvailabilityWindowUpdate,
    BulkRecurringCreate,
    BulkSpecificDatesCreate,
    BulkUpdateRequest,
    CopyAvailabilityRequest,
    ExceptionDateCreate,
    RecurringWindowCreate,
    SpecificDateWindowCreate,
)
from agenda.services import conflict_service
from agenda.services.conflict_service import intervals_overlap
from agenda.services.identity_service import ensure_doctor_exists
from agenda.stores import availability_store

logger = logging.getLogger(__name__)
settings = get_settings()


# ── Helpers ──────────────────────────────────────────

def _validate_window(start_time: time, end_time: time, slot_minutes: int) -> None:
    """Valida el rango horario y la duración del slot."""
    if end_time <= start_time:
        raise ValidationException("La hora de fin debe ser posterior a la hora de inicio")
    if not (
        settings.MIN_SLOT_DURATION_MINUTES
        <= slot_minutes
        <= settings.MAX_SLOT_DURATION_MINUTES
    ):
        raise ValidationException(
            f"La duración del slot debe estar entre {settings.MIN_SLOT_DURATION_MINUTES} "
            f"y {settings.MAX_SLOT_DURATION_MINUTES} minutos"
        )


def _bucket_label(day_of_week: int | None, specific_date: date | None) -> str:
    if specific_date is not None:
        return specific_date.isoformat()
    return DAY_NAMES[day_of_week]


async def _ensure_no_overlap(
    db: AsyncSession,
    doctor_id: UUID,
    start_time: time,
    end_time: time,
    *,
    day_of_week: int | None = None,
    specific_date: date | None = None,
    exclude_id: UUID | None = None,
) -> None:
    overlapping = await conflict_service.find_overlapping_availability(
        db,
        doctor_id,
        start_time,
        end_time,
        day_of_week=day_of_week,
        specific_date=specific_date,
        exclude_id=exclude_id,
    )
    if overlapping:
        existing = overlapping[0]
        raise ConflictException(
            f"Ya existe disponibilidad entre {existing.start_time.strftime('%H:%M')} "
            f"y {existing.end_time.strftime('%H:%M')} para "
            f"{_bucket_label(day_of_week, specific_date)}"
        )


def _ensure_no_batch_overlap(planned: list[AvailabilityWindow]) -> None:
    """Verifica que las ventanas de un mismo lote no se solapen entre sí."""
    for i, a in enumerate(planned):
        for b in planned[i + 1:]:
            same_bucket = (
                a.doctor_id == b.doctor_id
                and a.kind == b.kind
                and a.day_of_week == b.day_of_week
                and a.specific_date == b.specific_date
            )
            if same_bucket and intervals_overlap(
                a.start_time, a.end_time, b.start_time, b.end_time
            ):
                raise ConflictException(
                    "El lote contiene ventanas que se superponen para "
                    f"{_bucket_label(a.day_of_week, a.specific_date)}"
                )


async def _get_window_or_404(db: AsyncSession, window_id: UUID) -> AvailabilityWindow:
    window = await availability_store.get_by_id(db, window_id)
    if not window:
        raise NotFoundException("Disponibilidad")
    return window


# ── Resolución del día ───────────────────────────────

async def resolve_day(
    db: AsyncSession, doctor_id: UUID, target_date: date
) -> list[AvailabilityWindow]:
    """
    Ventanas que aplican a un doctor en una fecha.

    Si existen ventanas de fecha específica, reemplazan al horario
    semanal; si alguna de ellas no está disponible, el día queda
    bloqueado y se retorna lista vacía.
    """
    await ensure_doctor_exists(db, doctor_id)

    specific = await availability_store.list_specific_for_date(db, doctor_id, target_date)
    if specific:
        if any(not w.is_available for w in specific):
            return []
        return specific

    return await availability_store.list_recurring_for_day(
        db, doctor_id, target_date.weekday(), only_available=True
    )


async def list_for_date(
    db: AsyncSession, doctor_id: UUID, target_date: date
) -> list[AvailabilityWindow]:
    return await resolve_day(db, doctor_id, target_date)


# ── Creación ─────────────────────────────────────────

async def create_recurring(
    db: AsyncSession, data: RecurringWindowCreate
) -> AvailabilityWindow:
    """Crea una ventana semanal para un doctor."""
    _validate_window(data.start_time, data.end_time, data.slot_duration_minutes)
    await ensure_doctor_exists(db, data.doctor_id)
    await lock_doctor(db, data.doctor_id)
    await _ensure_no_overlap(
        db, data.doctor_id, data.start_time, data.end_time,
        day_of_week=data.day_of_week,
    )

    window = await availability_store.add(db, AvailabilityWindow(
        doctor_id=data.doctor_id,
        kind=WindowKind.RECURRING,
        day_of_week=data.day_of_week,
        start_time=data.start_time,
        end_time=data.end_time,
        slot_duration_minutes=data.slot_duration_minutes,
        is_available=data.is_available,
    ))
    logger.info(f"Disponibilidad semanal creada: {window!r} doctor={data.doctor_id}")
    return window


async def create_specific_date(
    db: AsyncSession, data: SpecificDateWindowCreate
) -> AvailabilityWindow:
    """Crea una ventana para una fecha puntual."""
    _validate_window(data.start_time, data.end_time, data.slot_duration_minutes)
    await ensure_doctor_exists(db, data.doctor_id)
    await lock_doctor(db, data.doctor_id)
    await _ensure_no_overlap(
        db, data.doctor_id, data.start_time, data.end_time,
        specific_date=data.specific_date,
    )

    window = await availability_store.add(db, AvailabilityWindow(
        doctor_id=data.doctor_id,
        kind=WindowKind.SPECIFIC_DATE,
        specific_date=data.specific_date,
        start_time=data.start_time,
        end_time=data.end_time,
        slot_duration_minutes=data.slot_duration_minutes,
        is_available=data.is_available,
    ))
    logger.info(f"Disponibilidad por fecha creada: {window!r} doctor={data.doctor_id}")
    return window


async def create_window(
    db: AsyncSession, data: RecurringWindowCreate | SpecificDateWindowCreate
) -> AvailabilityWindow:
    if isinstance(data, RecurringWindowCreate):
        return await create_recurring(db, data)
    return await create_specific_date(db, data)


async def create_exception(
    db: AsyncSession, data: ExceptionDateCreate
) -> AvailabilityWindow:
    """
    Crea una excepción de fecha. Por defecto bloquea el día completo;
    con is_available=True define un horario especial para esa fecha.
    """
    return await create_specific_date(db, SpecificDateWindowCreate(
        doctor_id=data.doctor_id,
        specific_date=data.exception_date,
        start_time=data.start_time,
        end_time=data.end_time,
        slot_duration_minutes=data.slot_duration_minutes,
        is_available=data.is_available,
    ))


async def mark_unavailable(
    db: AsyncSession, doctor_id: UUID, unavailable_date: date
) -> AvailabilityWindow:
    """Bloquea un día completo (00:00–23:59)."""
    return await create_exception(db, ExceptionDateCreate(
        doctor_id=doctor_id,
        exception_date=unavailable_date,
        start_time=time(0, 0),
        end_time=time(23, 59),
        is_available=False,
        slot_duration_minutes=settings.DEFAULT_SLOT_DURATION_MINUTES,
    ))


# ── Actualización / eliminación ──────────────────────

def _apply_update(window: AvailabilityWindow, data: AvailabilityWindowUpdate) -> None:
    if data.start_time is not None:
        window.start_time = data.start_time
    if data.end_time is not None:
        window.end_time = data.end_time
    if data.slot_duration_minutes is not None:
        window.slot_duration_minutes = data.slot_duration_minutes
    if data.is_available is not None:
        window.is_available = data.is_available


async def _check_updated_window(
    db: AsyncSession, window: AvailabilityWindow, data: AvailabilityWindowUpdate
) -> tuple[time, time]:
    start = data.start_time if data.start_time is not None else window.start_time
    end = data.end_time if data.end_time is not None else window.end_time
    slot = (
        data.slot_duration_minutes
        if data.slot_duration_minutes is not None
        else window.slot_duration_minutes
    )
    _validate_window(start, end, slot)
    await _ensure_no_overlap(
        db, window.doctor_id, start, end,
        day_of_week=window.day_of_week,
        specific_date=window.specific_date,
        exclude_id=window.id,
    )
    return start, end


async def update_window(
    db: AsyncSession, window_id: UUID, data: AvailabilityWindowUpdate
) -> AvailabilityWindow:
    """Actualiza una ventana validando rango y solapamiento."""
    window = await _get_window_or_404(db, window_id)
    await lock_doctor(db, window.doctor_id)
    await _check_updated_window(db, window, data)

    _apply_update(window, data)
    await db.flush()
    await db.refresh(window)
    return window


async def delete_window(db: AsyncSession, window_id: UUID) -> None:
    window = await _get_window_or_404(db, window_id)
    await availability_store.delete_window(db, window)
    logger.info(f"Disponibilidad eliminada: {window_id}")


async def delete_exception_date(
    db: AsyncSession, doctor_id: UUID, exception_date: date
) -> int:
    """Elimina todas las ventanas de una fecha específica."""
    await ensure_doctor_exists(db, doctor_id)
    deleted = await availability_store.delete_specific_for_date(db, doctor_id, exception_date)
    logger.info(f"Excepciones eliminadas doctor={doctor_id} fecha={exception_date}: {deleted}")
    return deleted


# ── Operaciones masivas ──────────────────────────────

async def _create_batch(
    db: AsyncSession, doctor_id: UUID, planned: list[AvailabilityWindow]
) -> list[AvailabilityWindow]:
    """
    Inserta un lote completo o nada: todas las ventanas se validan
    contra la base y entre sí antes de escribir.
    """
    await ensure_doctor_exists(db, doctor_id)
    await lock_doctor(db, doctor_id)

    for window in planned:
        _validate_window(window.start_time, window.end_time, window.slot_duration_minutes)
    _ensure_no_batch_overlap(planned)
    for window in planned:
        await _ensure_no_overlap(
            db, doctor_id, window.start_time, window.end_time,
            day_of_week=window.day_of_week,
            specific_date=window.specific_date,
        )

    created = await availability_store.add_all(db, planned)
    logger.info(f"Lote de disponibilidad creado doctor={doctor_id}: {len(created)} ventanas")
    return created


async def bulk_create_recurring(
    db: AsyncSession, data: BulkRecurringCreate
) -> list[AvailabilityWindow]:
    """Crea el mismo bloque semanal en varios días."""
    planned = [
        AvailabilityWindow(
            doctor_id=data.doctor_id,
            kind=WindowKind.RECURRING,
            day_of_week=day,
            start_time=data.start_time,
            end_time=data.end_time,
            slot_duration_minutes=data.slot_duration_minutes,
            is_available=True,
        )
        for day in dict.fromkeys(data.days_of_week)
    ]
    return await _create_batch(db, data.doctor_id, planned)


async def bulk_create_specific_dates(
    db: AsyncSession, data: BulkSpecificDatesCreate
) -> list[AvailabilityWindow]:
    """Crea el mismo bloque en cada fecha del rango (inclusive)."""
    days = (data.end_date - data.start_date).days + 1
    if days > settings.CALENDAR_MAX_DAYS:
        raise ValidationException(
            f"El rango no puede superar {settings.CALENDAR_MAX_DAYS} días"
        )
    planned = [
        AvailabilityWindow(
            doctor_id=data.doctor_id,
            kind=WindowKind.SPECIFIC_DATE,
            specific_date=data.start_date + timedelta(days=offset),
            start_time=data.start_time,
            end_time=data.end_time,
            slot_duration_minutes=data.slot_duration_minutes,
            is_available=data.is_available,
        )
        for offset in range(days)
    ]
    return await _create_batch(db, data.doctor_id, planned)


async def bulk_update(
    db: AsyncSession, data: BulkUpdateRequest
) -> list[AvailabilityWindow]:
    """
    Aplica la misma actualización a varias ventanas.
    Si algún id no existe o alguna ventana queda en conflicto, no se
    actualiza ninguna.
    """
    ids = list(dict.fromkeys(data.availability_ids))
    windows = await availability_store.get_many(db, ids)
    found = {w.id for w in windows}
    missing = [str(i) for i in ids if i not in found]
    if missing:
        raise NotFoundException(
            "Disponibilidad", f"Disponibilidad no encontrada: {', '.join(missing)}"
        )

    for doctor_id in sorted({w.doctor_id for w in windows}, key=str):
        await lock_doctor(db, doctor_id)

    batch_ids = set(found)
    projected: list[AvailabilityWindow] = []
    for window in windows:
        start = data.start_time if data.start_time is not None else window.start_time
        end = data.end_time if data.end_time is not None else window.end_time
        slot = (
            data.slot_duration_minutes
            if data.slot_duration_minutes is not None
            else window.slot_duration_minutes
        )
        _validate_window(start, end, slot)

        overlapping = await conflict_service.find_overlapping_availability(
            db, window.doctor_id, start, end,
            day_of_week=window.day_of_week,
            specific_date=window.specific_date,
        )
        # Las otras ventanas del lote se evalúan con sus valores nuevos
        if any(o.id not in batch_ids for o in overlapping):
            raise ConflictException(
                f"La actualización genera solapamiento para "
                f"{_bucket_label(window.day_of_week, window.specific_date)}"
            )
        projected.append(AvailabilityWindow(
            doctor_id=window.doctor_id,
            kind=window.kind,
            day_of_week=window.day_of_week,
            specific_date=window.specific_date,
            start_time=start,
            end_time=end,
            slot_duration_minutes=slot,
        ))

    _ensure_no_batch_overlap(projected)

    update = AvailabilityWindowUpdate(
        start_time=data.start_time,
        end_time=data.end_time,
        slot_duration_minutes=data.slot_duration_minutes,
        is_available=data.is_available,
    )
    for window in windows:
        _apply_update(window, update)
    await db.flush()
    for window in windows:
        await db.refresh(window)

    logger.info(f"Actualización masiva de disponibilidad: {len(windows)} ventanas")
    return windows


async def bulk_delete(db: AsyncSession, availability_ids: list[UUID]) -> int:
    """Elimina varias ventanas. Los ids inexistentes se ignoran."""
    deleted = await availability_store.delete_by_ids(db, list(dict.fromkeys(availability_ids)))
    logger.info(f"Eliminación masiva de disponibilidad: {deleted} ventanas")
    return deleted


async def copy_day(
    db: AsyncSession, data: CopyAvailabilityRequest
) -> list[AvailabilityWindow]:
    """
    Copia las ventanas semanales disponibles de un día a otros días.
    El día origen se omite si aparece entre los destinos.
    """
    await ensure_doctor_exists(db, data.doctor_id)
    sources = await availability_store.list_recurring_for_day(
        db, data.doctor_id, data.source_day_of_week, only_available=True
    )
    if not sources:
        raise NotFoundException(
            "Disponibilidad",
            f"No hay disponibilidad para el día origen: {DAY_NAMES[data.source_day_of_week]}",
        )

    planned = [
        AvailabilityWindow(
            doctor_id=data.doctor_id,
            kind=WindowKind.RECURRING,
            day_of_week=day,
            start_time=source.start_time,
            end_time=source.end_time,
            slot_duration_minutes=source.slot_duration_minutes,
            is_available=source.is_available,
        )
        for day in dict.fromkeys(data.target_days_of_week)
        if day != data.source_day_of_week
        for source in sources
    ]
    if not planned:
        return []
    return await _create_batch(db, data.doctor_id, planned)


# ── Consultas ────────────────────────────────────────

async def list_for_doctor(db: AsyncSession, doctor_id: UUID) -> list[AvailabilityWindow]:
    await ensure_doctor_exists(db, doctor_id)
    return await availability_store.list_by_doctor(db, doctor_id)


async def list_recurring(db: AsyncSession, doctor_id: UUID) -> list[AvailabilityWindow]:
    await ensure_doctor_exists(db, doctor_id)
    return await availability_store.list_by_doctor(
        db, doctor_id, kind=WindowKind.RECURRING, is_available=True
    )


async def list_specific_dates(db: AsyncSession, doctor_id: UUID) -> list[AvailabilityWindow]:
    await ensure_doctor_exists(db, doctor_id)
    return await availability_store.list_by_doctor(
        db, doctor_id, kind=WindowKind.SPECIFIC_DATE
    )


async def list_exception_dates(db: AsyncSession, doctor_id: UUID) -> list[AvailabilityWindow]:
    """Fechas con horario especial (disponibles)."""
    await ensure_doctor_exists(db, doctor_id)
    return await availability_store.list_by_doctor(
        db, doctor_id, kind=WindowKind.SPECIFIC_DATE, is_available=True
    )


async def list_unavailable_dates(db: AsyncSession, doctor_id: UUID) -> list[AvailabilityWindow]:
    """Fechas bloqueadas."""
    await ensure_doctor_exists(db, doctor_id)
    return await availability_store.list_by_doctor(
        db, doctor_id, kind=WindowKind.SPECIFIC_DATE, is_available=False
    )


async def get_summary(db: AsyncSession, doctor_id: UUID) -> AvailabilitySummaryResponse:
    recurring = await list_recurring(db, doctor_id)
    exceptions = await list_exception_dates(db, doctor_id)
    unavailable = await list_unavailable_dates(db, doctor_id)
    return AvailabilitySummaryResponse(
        doctor_id=doctor_id,
        recurring_count=len(recurring),
        exception_count=len(exceptions),
        unavailable_count=len(unavailable),
        recurring=[AvailabilityWindowResponse.model_validate(w) for w in recurring],
        exception_dates=[AvailabilityWindowResponse.model_validate(w) for w in exceptions],
        unavailable_dates=[AvailabilityWindowResponse.model_validate(w) for w in unavailable],
    )


async def check_conflicts(
    db: AsyncSession,
    doctor_id: UUID,
    start_time: time,
    end_time: time,
    *,
    day_of_week: int | None = None,
    specific_date: date | None = None,
    exclude_id: UUID | None = None,
) -> AvailabilityConflictResponse:
    """Reporta las ventanas existentes que chocarían con un bloque propuesto."""
    if end_time <= start_time:
        raise ValidationException("La hora de fin debe ser posterior a la hora de inicio")
    conflicts = await conflict_service.find_overlapping_availability(
        db, doctor_id, start_time, end_time,
        day_of_week=day_of_week,
        specific_date=specific_date,
        exclude_id=exclude_id,
    )
    return AvailabilityConflictResponse(
        has_conflicts=bool(conflicts),
        conflicts=[AvailabilityWindowResponse.model_validate(w) for w in conflicts],
        message=(
            f"Se encontraron {len(conflicts)} conflictos"
            if conflicts
            else "Sin conflictos"
        ),
    )
