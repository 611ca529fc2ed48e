"""
Schemas para disponibilidad de doctores.

La creación usa una unión discriminada por `kind`:
    {"kind": "recurring", "day_of_week": 0, ...}
    {"kind": "specific_date", "specific_date": "2026-03-02", ...}
"""

from datetime import date, datetime, time
from typing import Annotated, Literal, Union
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from agenda.models.availability import DAY_NAMES, WindowKind


def _check_range(start: time | None, end: time | None) -> None:
    if start is not None and end is not None and end <= start:
        raise ValueError("end_time debe ser posterior a start_time")


# ── Creación ─────────────────────────────────────────

class _WindowBase(BaseModel):
    doctor_id: UUID
    start_time: time
    end_time: time
    slot_duration_minutes: int = Field(30, gt=0, le=240)
    is_available: bool = True

    @model_validator(mode="after")
    def end_after_start(self):
        _check_range(self.start_time, self.end_time)
        return self


class RecurringWindowCreate(_WindowBase):
    kind: Literal["recurring"] = "recurring"
    day_of_week: int = Field(..., ge=0, le=6, description="0=Lunes ... 6=Domingo")


class SpecificDateWindowCreate(_WindowBase):
    kind: Literal["specific_date"] = "specific_date"
    specific_date: date


AvailabilityWindowCreate = Annotated[
    Union[RecurringWindowCreate, SpecificDateWindowCreate],
    Field(discriminator="kind"),
]


class ExceptionDateCreate(BaseModel):
    """Excepción que reemplaza el horario semanal en una fecha."""
    doctor_id: UUID
    exception_date: date
    start_time: time = time(0, 0)
    end_time: time = time(23, 59)
    is_available: bool = False
    slot_duration_minutes: int = Field(30, gt=0, le=240)

    @model_validator(mode="after")
    def end_after_start(self):
        _check_range(self.start_time, self.end_time)
        return self


class MarkUnavailableRequest(BaseModel):
    doctor_id: UUID
    unavailable_date: date


# ── Actualización ────────────────────────────────────

class AvailabilityWindowUpdate(BaseModel):
    start_time: time | None = None
    end_time: time | None = None
    slot_duration_minutes: int | None = Field(None, gt=0, le=240)
    is_available: bool | None = None

    @model_validator(mode="after")
    def end_after_start(self):
        _check_range(self.start_time, self.end_time)
        return self


# ── Operaciones masivas ──────────────────────────────

class BulkRecurringCreate(BaseModel):
    doctor_id: UUID
    days_of_week: list[int] = Field(..., min_length=1)
    start_time: time
    end_time: time
    slot_duration_minutes: int = Field(30, gt=0, le=240)

    @field_validator("days_of_week")
    @classmethod
    def valid_days(cls, v: list[int]) -> list[int]:
        if any(d < 0 or d > 6 for d in v):
            raise ValueError("day_of_week debe estar entre 0 (Lunes) y 6 (Domingo)")
        return v

    @model_validator(mode="after")
    def end_after_start(self):
        _check_range(self.start_time, self.end_time)
        return self


class BulkSpecificDatesCreate(BaseModel):
    doctor_id: UUID
    start_date: date
    end_date: date
    start_time: time
    end_time: time
    slot_duration_minutes: int = Field(30, gt=0, le=240)
    is_available: bool = True

    @model_validator(mode="after")
    def valid_ranges(self):
        _check_range(self.start_time, self.end_time)
        if self.end_date < self.start_date:
            raise ValueError("end_date no puede ser anterior a start_date")
        return self


class BulkUpdateRequest(AvailabilityWindowUpdate):
    availability_ids: list[UUID] = Field(..., min_length=1)


class BulkDeleteRequest(BaseModel):
    availability_ids: list[UUID] = Field(..., min_length=1)


class BulkDeleteResponse(BaseModel):
    deleted: int


class CopyAvailabilityRequest(BaseModel):
    doctor_id: UUID
    source_day_of_week: int = Field(..., ge=0, le=6)
    target_days_of_week: list[int] = Field(..., min_length=1)

    @field_validator("target_days_of_week")
    @classmethod
    def valid_days(cls, v: list[int]) -> list[int]:
        if any(d < 0 or d > 6 for d in v):
            raise ValueError("day_of_week debe estar entre 0 (Lunes) y 6 (Domingo)")
        return v


# ── Respuestas ───────────────────────────────────────

class AvailabilityWindowResponse(BaseModel):
    id: UUID
    doctor_id: UUID
    kind: WindowKind
    day_of_week: int | None = None
    day_name: str | None = None
    specific_date: date | None = None
    start_time: time
    end_time: time
    slot_duration_minutes: int
    is_available: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}

    @model_validator(mode="after")
    def fill_day_name(self):
        day = self.day_of_week
        if day is None and self.specific_date is not None:
            day = self.specific_date.weekday()
        if day is not None and 0 <= day <= 6:
            self.day_name = DAY_NAMES[day]
        return self


class AvailabilityConflictResponse(BaseModel):
    has_conflicts: bool
    conflicts: list[AvailabilityWindowResponse]
    message: str


class AvailabilitySummaryResponse(BaseModel):
    doctor_id: UUID
    recurring_count: int
    exception_count: int
    unavailable_count: int
    recurring: list[AvailabilityWindowResponse]
    exception_dates: list[AvailabilityWindowResponse]
    unavailable_dates: list[AvailabilityWindowResponse]
