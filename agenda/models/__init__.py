"""
Modelos SQLAlchemy: exportar todos para que Alembic los detecte.
"""

from agenda.models.user import User, UserRole
from agenda.models.availability import AvailabilityWindow, WindowKind
from agenda.models.appointment import Appointment, AppointmentStatus
from agenda.models.notification_log import (
    NotificationLog,
    NotificationStatus,
    NotificationType,
)

__all__ = [
    "User",
    "UserRole",
    "AvailabilityWindow",
    "WindowKind",
    "Appointment",
    "AppointmentStatus",
    "NotificationLog",
    "NotificationStatus",
    "NotificationType",
]
