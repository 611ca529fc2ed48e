"""
Tarea periódica que libera reservas temporales vencidas.
"""

import asyncio
import logging

from agenda.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="reservations.sweep_expired")
def sweep_expired_reservations_task() -> int:
    """
    Elimina las reservas no confirmadas cuyo plazo venció.
    Programada con Celery Beat; si falla, el siguiente ciclo reintenta.
    """

    async def _sweep() -> int:
        from agenda.database import async_session_factory
        from agenda.services.expiry_service import sweep_expired_reservations

        async with async_session_factory() as db:
            return await sweep_expired_reservations(db)

    try:
        removed = asyncio.run(_sweep())
    except Exception as exc:
        logger.error(f"Error liberando reservas vencidas: {exc}")
        return 0

    if removed:
        logger.info(f"Reservas vencidas liberadas: {removed}")
    return removed
