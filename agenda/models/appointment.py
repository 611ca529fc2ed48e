"""
Modelo Appointment: Citas médicas con state machine de estados.

Estados válidos y transiciones:
    reserved → confirmed → completed
    reserved → cancelled
    confirmed → cancelled | rescheduled | no_show
    rescheduled → cancelled | rescheduled | completed | no_show

Además, una cita `reserved` cuya reserva vence sin confirmarse
se elimina (no pasa a ningún estado).
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agenda.database import Base
from agenda.models.types import UTCDateTime


class AppointmentStatus(str, enum.Enum):
    """Estados de una cita médica."""
    RESERVED = "reserved"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"
    NO_SHOW = "no_show"


# Estados que ocupan el horario del doctor
ACTIVE_STATUSES: tuple[AppointmentStatus, ...] = (
    AppointmentStatus.RESERVED,
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.RESCHEDULED,
)

# Condición del índice único parcial, derivada de ACTIVE_STATUSES
ACTIVE_STATUS_CLAUSE = "status IN ({})".format(
    ", ".join(f"'{s.name}'" for s in ACTIVE_STATUSES)
)


# ── Transiciones válidas de la state machine ─────────
VALID_TRANSITIONS: dict[AppointmentStatus, list[AppointmentStatus]] = {
    AppointmentStatus.RESERVED: [
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
    ],
    AppointmentStatus.CONFIRMED: [
        AppointmentStatus.CANCELLED,
        AppointmentStatus.RESCHEDULED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.NO_SHOW,
    ],
    AppointmentStatus.RESCHEDULED: [
        AppointmentStatus.CANCELLED,
        AppointmentStatus.RESCHEDULED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.NO_SHOW,
    ],
    # Estados terminales: no tienen transiciones
    AppointmentStatus.COMPLETED: [],
    AppointmentStatus.CANCELLED: [],
    AppointmentStatus.NO_SHOW: [],
}


def is_valid_transition(current: AppointmentStatus, new: AppointmentStatus) -> bool:
    """Verifica si una transición de estado es válida."""
    return new in VALID_TRANSITIONS.get(current, [])


class Appointment(Base):
    __tablename__ = "appointments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    patient_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    doctor_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )

    # ── Datos de la cita ─────────────────────────────
    appointment_datetime: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False
    )
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    end_time: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False,
        comment="appointment_datetime + duration_minutes"
    )
    status: Mapped[AppointmentStatus] = mapped_column(
        Enum(AppointmentStatus),
        nullable=False,
        default=AppointmentStatus.RESERVED,
    )
    reservation_expires_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        comment="Solo mientras status = reserved"
    )
    reason: Mapped[str | None] = mapped_column(String(500))
    notes: Mapped[str | None] = mapped_column(Text)

    # ── Metadata de cancelación ──────────────────────
    cancellation_reason: Mapped[str | None] = mapped_column(String(500))
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime())

    # ── Timestamps ───────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), onupdate=func.now()
    )

    # ── Relaciones ───────────────────────────────────
    patient: Mapped["User"] = relationship("User", foreign_keys=[patient_id])  # noqa: F821
    doctor: Mapped["User"] = relationship("User", foreign_keys=[doctor_id])  # noqa: F821

    # ── Índices para consultas frecuentes ────────────
    __table_args__ = (
        Index("idx_appointment_doctor_date", "doctor_id", "appointment_datetime"),
        Index("idx_appointment_patient", "patient_id", "appointment_datetime"),
        Index("idx_appointment_status_expiry", "status", "reservation_expires_at"),
        # Respaldo de la verificación de solapamiento: un solo inicio activo por doctor
        Index(
            "uq_appointment_doctor_active_start",
            "doctor_id",
            "appointment_datetime",
            unique=True,
            postgresql_where=text(ACTIVE_STATUS_CLAUSE),
            sqlite_where=text(ACTIVE_STATUS_CLAUSE),
        ),
    )

    def __repr__(self) -> str:
        return f"<Appointment {self.id} [{self.status.value}] {self.appointment_datetime}>"
