"""
Configuración de Celery para tareas asíncronas y programadas.
"""

from celery import Celery

from agenda.config import get_settings

settings = get_settings()

celery_app = Celery(
    "agenda",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "agenda.tasks.notification_tasks",
        "agenda.tasks.reservation_tasks",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.CELERY_TIMEZONE,
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)

# ── Celery Beat ──────────────────────────────────────
celery_app.conf.beat_schedule = {
    "sweep-expired-reservations": {
        "task": "reservations.sweep_expired",
        "schedule": float(settings.EXPIRY_SWEEP_INTERVAL_SECONDS),
    },
}
