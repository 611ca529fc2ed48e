"""
Utilidades de fecha/hora. Todo instante se maneja en UTC y con tzinfo.
"""

from datetime import date, datetime, time, timedelta, timezone


def utcnow() -> datetime:
    """Instante actual en UTC (punto único para poder fijarlo en tests)."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """
    Normaliza un datetime a UTC.
    Los valores naive se asumen en UTC (SQLite los devuelve sin tzinfo).
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def combine_utc(target_date: date, at: time) -> datetime:
    return datetime.combine(target_date, at).replace(tzinfo=timezone.utc)


def day_bounds(target_date: date) -> tuple[datetime, datetime]:
    """Inicio (inclusive) y fin (exclusivo) del día en UTC."""
    start = combine_utc(target_date, time.min)
    return start, start + timedelta(days=1)

