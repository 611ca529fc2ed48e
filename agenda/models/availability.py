"""
Modelo AvailabilityWindow: Ventanas de disponibilidad de cada doctor.

Una ventana es de uno de dos tipos:
    RECURRING      → se repite cada semana en `day_of_week`
    SPECIFIC_DATE  → aplica solo en `specific_date`

Una ventana SPECIFIC_DATE con is_available=False es una excepción
que bloquea el día completo (feriado, vacaciones).
"""

import enum
import uuid
from datetime import date, datetime, time

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    Enum,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    Time,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agenda.database import Base
from agenda.models.types import UTCDateTime

DAY_NAMES = ["Lunes", "Martes", "Miércoles", "Jueves", "Viernes", "Sábado", "Domingo"]


class WindowKind(str, enum.Enum):
    """Variante de la ventana de disponibilidad."""
    RECURRING = "recurring"
    SPECIFIC_DATE = "specific_date"


class AvailabilityWindow(Base):
    __tablename__ = "availability_windows"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    doctor_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )

    # ── Variante: semanal o fecha específica ─────────
    kind: Mapped[WindowKind] = mapped_column(Enum(WindowKind), nullable=False)
    day_of_week: Mapped[int | None] = mapped_column(
        SmallInteger,
        comment="0=Lunes, 1=Martes, 2=Miércoles, 3=Jueves, 4=Viernes, 5=Sábado, 6=Domingo"
    )
    specific_date: Mapped[date | None] = mapped_column(Date)

    # ── Bloque de horario ────────────────────────────
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    slot_duration_minutes: Mapped[int] = mapped_column(
        Integer, nullable=False, default=30,
        comment="Duración de cada slot de cita en minutos"
    )

    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), onupdate=func.now()
    )

    doctor: Mapped["User"] = relationship("User")  # noqa: F821

    __table_args__ = (
        CheckConstraint(
            "(kind = 'RECURRING' AND day_of_week IS NOT NULL AND specific_date IS NULL)"
            " OR (kind = 'SPECIFIC_DATE' AND specific_date IS NOT NULL AND day_of_week IS NULL)",
            name="ck_availability_kind_fields",
        ),
        CheckConstraint("start_time < end_time", name="ck_availability_time_range"),
        CheckConstraint("slot_duration_minutes > 0", name="ck_availability_slot_positive"),
        Index("idx_availability_doctor_day", "doctor_id", "day_of_week"),
        Index("idx_availability_doctor_date", "doctor_id", "specific_date"),
    )

    def __repr__(self) -> str:
        if self.kind == WindowKind.RECURRING:
            day = DAY_NAMES[self.day_of_week] if 0 <= self.day_of_week <= 6 else "?"
        else:
            day = self.specific_date.isoformat()
        flag = "" if self.is_available else " BLOQUEADO"
        return (
            f"<AvailabilityWindow {day} {self.start_time}-{self.end_time} "
            f"({self.slot_duration_minutes}min){flag}>"
        )
