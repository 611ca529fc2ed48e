"""
Acceso a datos de ventanas de disponibilidad.
Solo guarda y consulta; las reglas viven en los servicios.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.models.availability import AvailabilityWindow, WindowKind


async def get_by_id(db: AsyncSession, window_id: UUID) -> AvailabilityWindow | None:
    return await db.get(AvailabilityWindow, window_id)


async def get_many(
    db: AsyncSession, window_ids: list[UUID]
) -> list[AvailabilityWindow]:
    result = await db.execute(
        select(AvailabilityWindow).where(AvailabilityWindow.id.in_(window_ids))
    )
    return list(result.scalars().all())


async def list_by_doctor(
    db: AsyncSession,
    doctor_id: UUID,
    kind: WindowKind | None = None,
    is_available: bool | None = None,
) -> list[AvailabilityWindow]:
    """Ventanas de un doctor, opcionalmente filtradas por tipo y estado."""
    query = select(AvailabilityWindow).where(AvailabilityWindow.doctor_id == doctor_id)
    if kind is not None:
        query = query.where(AvailabilityWindow.kind == kind)
    if is_available is not None:
        query = query.where(AvailabilityWindow.is_available.is_(is_available))
    query = query.order_by(
        AvailabilityWindow.kind,
        AvailabilityWindow.day_of_week,
        AvailabilityWindow.specific_date,
        AvailabilityWindow.start_time,
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def list_recurring_for_day(
    db: AsyncSession,
    doctor_id: UUID,
    day_of_week: int,
    only_available: bool = False,
) -> list[AvailabilityWindow]:
    query = select(AvailabilityWindow).where(
        AvailabilityWindow.doctor_id == doctor_id,
        AvailabilityWindow.kind == WindowKind.RECURRING,
        AvailabilityWindow.day_of_week == day_of_week,
    )
    if only_available:
        query = query.where(AvailabilityWindow.is_available.is_(True))
    result = await db.execute(query.order_by(AvailabilityWindow.start_time))
    return list(result.scalars().all())


async def list_specific_for_date(
    db: AsyncSession,
    doctor_id: UUID,
    target_date: date,
) -> list[AvailabilityWindow]:
    result = await db.execute(
        select(AvailabilityWindow)
        .where(
            AvailabilityWindow.doctor_id == doctor_id,
            AvailabilityWindow.kind == WindowKind.SPECIFIC_DATE,
            AvailabilityWindow.specific_date == target_date,
        )
        .order_by(AvailabilityWindow.start_time)
    )
    return list(result.scalars().all())


async def add(db: AsyncSession, window: AvailabilityWindow) -> AvailabilityWindow:
    db.add(window)
    await db.flush()
    await db.refresh(window)
    return window


async def add_all(
    db: AsyncSession, windows: list[AvailabilityWindow]
) -> list[AvailabilityWindow]:
    db.add_all(windows)
    await db.flush()
    for window in windows:
        await db.refresh(window)
    return windows


async def delete_window(db: AsyncSession, window: AvailabilityWindow) -> None:
    await db.delete(window)
    await db.flush()


async def delete_by_ids(db: AsyncSession, window_ids: list[UUID]) -> int:
    """Elimina las ventanas indicadas; los ids desconocidos se ignoran."""
    result = await db.execute(
        delete(AvailabilityWindow).where(AvailabilityWindow.id.in_(window_ids))
    )
    return result.rowcount or 0


async def delete_specific_for_date(
    db: AsyncSession, doctor_id: UUID, target_date: date
) -> int:
    result = await db.execute(
        delete(AvailabilityWindow).where(
            AvailabilityWindow.doctor_id == doctor_id,
            AvailabilityWindow.kind == WindowKind.SPECIFIC_DATE,
            AvailabilityWindow.specific_date == target_date,
        )
    )
    return result.rowcount or 0
