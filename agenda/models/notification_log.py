"""
Modelo NotificationLog: Historial de notificaciones de citas.

No tiene FK a appointments: el historial sobrevive a la
eliminación de reservas vencidas.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Enum, Index, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from agenda.database import Base
from agenda.models.types import UTCDateTime


class NotificationType(str, enum.Enum):
    CONFIRMATION = "confirmation"
    CANCELLATION = "cancellation"
    RESCHEDULE = "reschedule"


class NotificationStatus(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class NotificationLog(Base):
    __tablename__ = "notification_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    appointment_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    notification_type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType), nullable=False
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[NotificationStatus] = mapped_column(
        Enum(NotificationStatus), nullable=False, default=NotificationStatus.PENDING
    )
    error_message: Mapped[str | None] = mapped_column(String(500))

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now()
    )

    __table_args__ = (
        Index("idx_notification_appointment", "appointment_id"),
    )

    def __repr__(self) -> str:
        return f"<NotificationLog {self.notification_type.value} [{self.status.value}]>"
