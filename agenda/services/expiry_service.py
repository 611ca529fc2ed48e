"""
Limpieza de reservas temporales vencidas.
"""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from agenda.core import timeutils
from agenda.stores import booking_store

logger = logging.getLogger(__name__)


async def sweep_expired_reservations(
    db: AsyncSession, now: datetime | None = None
) -> int:
    """
    Elimina las reservas RESERVED cuyo plazo ya venció.

    Cada reserva se elimina en su propia transacción: un error en una
    se registra y no impide liberar las demás. Retorna cuántas se
    eliminaron.
    """
    now = timeutils.as_utc(now) if now else timeutils.utcnow()
    expired = await booking_store.list_expired_reservations(db, now)
    expired_ids = [appt.id for appt in expired]
    await db.commit()

    removed = 0
    for appointment_id in expired_ids:
        try:
            if await booking_store.delete_if_expired(db, appointment_id, now):
                removed += 1
            await db.commit()
        except Exception as exc:
            await db.rollback()
            logger.warning(f"No se pudo eliminar la reserva vencida {appointment_id}: {exc}")

    if expired_ids:
        logger.info(f"Reservas vencidas eliminadas: {removed}/{len(expired_ids)}")
    return removed
