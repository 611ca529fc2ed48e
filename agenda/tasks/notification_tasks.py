"""
Tareas Celery para notificaciones de citas.
Cada notificación queda registrada en notification_logs.
"""

import asyncio
import logging
from datetime import datetime
from uuid import UUID

from agenda.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    max_retries=2,
    default_retry_delay=30,
    name="notifications.send_appointment_notification",
)
def send_appointment_notification_task(
    self,
    appointment_id: str,
    notification_type: str,
    previous_datetime: str | None = None,
):
    """Registra la notificación de confirmación, cancelación o reprogramación."""

    async def _send():
        from agenda.database import async_session_factory
        from agenda.models.notification_log import NotificationType
        from agenda.services.notification_service import deliver_notification

        async with async_session_factory() as db:
            await deliver_notification(
                db,
                UUID(appointment_id),
                NotificationType(notification_type),
                datetime.fromisoformat(previous_datetime) if previous_datetime else None,
            )
            await db.commit()

    try:
        asyncio.run(_send())
    except Exception as exc:
        logger.error(f"Error en notificación {notification_type} de cita {appointment_id}: {exc}")
        raise self.retry(exc=exc)
