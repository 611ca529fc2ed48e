"""
Tests del servicio de disponibilidad: resolución del día, conflictos,
excepciones y operaciones masivas.
"""

from datetime import date, time
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.core.exceptions import ConflictException, NotFoundException, ValidationException
from agenda.models.availability import WindowKind
from agenda.schemas.availability import (
    AvailabilityWindowUpdate,
    BulkRecurringCreate,
    BulkSpecificDatesCreate,
    BulkUpdateRequest,
    CopyAvailabilityRequest,
    ExceptionDateCreate,
    RecurringWindowCreate,
    SpecificDateWindowCreate,
)
from agenda.services import availability_service, conflict_service, slot_service

MONDAY = date(2026, 3, 9)
TUESDAY = date(2026, 3, 10)


async def _recurring(db, doctor, day=0, start=time(9, 0), end=time(11, 0), slot=30):
    return await availability_service.create_recurring(db, RecurringWindowCreate(
        doctor_id=doctor.id,
        day_of_week=day,
        start_time=start,
        end_time=end,
        slot_duration_minutes=slot,
    ))


# ── Resolución del día ───────────────────────────────

@pytest.mark.asyncio
async def test_resolve_day_uses_weekly_pattern(db_session: AsyncSession, doctor):
    await _recurring(db_session, doctor)

    monday = await availability_service.resolve_day(db_session, doctor.id, MONDAY)
    tuesday = await availability_service.resolve_day(db_session, doctor.id, TUESDAY)

    assert len(monday) == 1
    assert monday[0].start_time == time(9, 0)
    assert tuesday == []


@pytest.mark.asyncio
async def test_resolve_day_orders_by_start_time(db_session: AsyncSession, doctor):
    await _recurring(db_session, doctor, start=time(15, 0), end=time(17, 0))
    await _recurring(db_session, doctor, start=time(9, 0), end=time(11, 0))

    windows = await availability_service.resolve_day(db_session, doctor.id, MONDAY)

    assert [w.start_time for w in windows] == [time(9, 0), time(15, 0)]


@pytest.mark.asyncio
async def test_specific_date_replaces_weekly_pattern(db_session: AsyncSession, doctor):
    await _recurring(db_session, doctor)
    await availability_service.create_specific_date(db_session, SpecificDateWindowCreate(
        doctor_id=doctor.id,
        specific_date=MONDAY,
        start_time=time(14, 0),
        end_time=time(16, 0),
    ))

    windows = await availability_service.resolve_day(db_session, doctor.id, MONDAY)

    assert len(windows) == 1
    assert windows[0].kind == WindowKind.SPECIFIC_DATE
    assert windows[0].start_time == time(14, 0)


@pytest.mark.asyncio
async def test_blocked_date_resolves_empty_and_has_no_slots(db_session: AsyncSession, doctor):
    await _recurring(db_session, doctor)
    blocked = await availability_service.mark_unavailable(db_session, doctor.id, MONDAY)

    assert blocked.is_available is False
    assert blocked.start_time == time(0, 0)
    assert blocked.end_time == time(23, 59)
    assert await availability_service.resolve_day(db_session, doctor.id, MONDAY) == []
    assert await slot_service.get_day_slots(db_session, doctor.id, MONDAY) == []
    # La semana siguiente sigue el horario normal
    assert len(await availability_service.resolve_day(db_session, doctor.id, date(2026, 3, 16))) == 1


@pytest.mark.asyncio
async def test_resolve_day_is_idempotent(db_session: AsyncSession, doctor):
    await _recurring(db_session, doctor)

    first = await slot_service.get_day_slots(db_session, doctor.id, MONDAY)
    second = await slot_service.get_day_slots(db_session, doctor.id, MONDAY)

    assert first == second
    assert len(first) == 4


@pytest.mark.asyncio
async def test_resolve_day_unknown_doctor(db_session: AsyncSession):
    with pytest.raises(NotFoundException):
        await availability_service.resolve_day(db_session, uuid4(), MONDAY)


@pytest.mark.asyncio
async def test_patient_is_not_a_doctor(db_session: AsyncSession, patient):
    with pytest.raises(NotFoundException):
        await availability_service.list_for_doctor(db_session, patient.id)


# ── Conflictos ───────────────────────────────────────

@pytest.mark.asyncio
async def test_overlapping_recurring_window_is_rejected(db_session: AsyncSession, doctor):
    await _recurring(db_session, doctor, start=time(9, 0), end=time(11, 0))

    with pytest.raises(ConflictException):
        await _recurring(db_session, doctor, start=time(10, 30), end=time(12, 0))


@pytest.mark.asyncio
async def test_back_to_back_windows_do_not_conflict(db_session: AsyncSession, doctor):
    await _recurring(db_session, doctor, start=time(9, 0), end=time(11, 0))
    await _recurring(db_session, doctor, start=time(11, 0), end=time(12, 0))

    windows = await availability_service.list_recurring(db_session, doctor.id)
    assert len(windows) == 2


@pytest.mark.asyncio
async def test_same_hours_other_day_or_other_doctor_is_fine(
    db_session: AsyncSession, doctor, other_doctor
):
    await _recurring(db_session, doctor, day=0)
    await _recurring(db_session, doctor, day=1)
    await _recurring(db_session, other_doctor, day=0)


@pytest.mark.asyncio
async def test_recurring_and_specific_date_buckets_never_conflict(db_session: AsyncSession, doctor):
    await _recurring(db_session, doctor)
    await availability_service.create_specific_date(db_session, SpecificDateWindowCreate(
        doctor_id=doctor.id,
        specific_date=MONDAY,
        start_time=time(9, 0),
        end_time=time(11, 0),
    ))

    assert not await conflict_service.has_availability_conflict(
        db_session, doctor.id, time(11, 0), time(12, 0), day_of_week=0
    )
    assert await conflict_service.has_availability_conflict(
        db_session, doctor.id, time(10, 0), time(12, 0), specific_date=MONDAY
    )


@pytest.mark.asyncio
async def test_find_overlapping_requires_a_bucket(db_session: AsyncSession, doctor):
    with pytest.raises(ValidationException):
        await conflict_service.find_overlapping_availability(
            db_session, doctor.id, time(9, 0), time(10, 0)
        )


@pytest.mark.asyncio
async def test_slot_duration_out_of_range(db_session: AsyncSession, doctor):
    with pytest.raises(ValidationException):
        await _recurring(db_session, doctor, slot=3)


# ── Edición ──────────────────────────────────────────

@pytest.mark.asyncio
async def test_update_window_checks_overlap_excluding_itself(db_session: AsyncSession, doctor):
    first = await _recurring(db_session, doctor, start=time(9, 0), end=time(11, 0))
    await _recurring(db_session, doctor, start=time(14, 0), end=time(16, 0))

    updated = await availability_service.update_window(
        db_session, first.id, AvailabilityWindowUpdate(end_time=time(12, 0))
    )
    assert updated.end_time == time(12, 0)

    with pytest.raises(ConflictException):
        await availability_service.update_window(
            db_session, first.id, AvailabilityWindowUpdate(end_time=time(15, 0))
        )


@pytest.mark.asyncio
async def test_update_window_rejects_inverted_range(db_session: AsyncSession, doctor):
    window = await _recurring(db_session, doctor, start=time(9, 0), end=time(11, 0))

    with pytest.raises(ValidationException):
        await availability_service.update_window(
            db_session, window.id, AvailabilityWindowUpdate(start_time=time(12, 0))
        )


@pytest.mark.asyncio
async def test_delete_window(db_session: AsyncSession, doctor):
    window = await _recurring(db_session, doctor)

    await availability_service.delete_window(db_session, window.id)

    assert await availability_service.list_for_doctor(db_session, doctor.id) == []
    with pytest.raises(NotFoundException):
        await availability_service.delete_window(db_session, window.id)


# ── Excepciones ──────────────────────────────────────

@pytest.mark.asyncio
async def test_exception_dates_and_summary(db_session: AsyncSession, doctor):
    await _recurring(db_session, doctor, day=0)
    await _recurring(db_session, doctor, day=2)
    await availability_service.create_exception(db_session, ExceptionDateCreate(
        doctor_id=doctor.id,
        exception_date=TUESDAY,
        start_time=time(8, 0),
        end_time=time(10, 0),
        is_available=True,
    ))
    await availability_service.mark_unavailable(db_session, doctor.id, MONDAY)

    summary = await availability_service.get_summary(db_session, doctor.id)

    assert summary.recurring_count == 2
    assert summary.exception_count == 1
    assert summary.unavailable_count == 1
    assert summary.unavailable_dates[0].specific_date == MONDAY
    assert summary.unavailable_dates[0].day_name == "Lunes"


@pytest.mark.asyncio
async def test_marking_a_date_twice_conflicts(db_session: AsyncSession, doctor):
    await availability_service.mark_unavailable(db_session, doctor.id, MONDAY)

    with pytest.raises(ConflictException):
        await availability_service.mark_unavailable(db_session, doctor.id, MONDAY)


@pytest.mark.asyncio
async def test_delete_exception_date_restores_weekly_pattern(db_session: AsyncSession, doctor):
    await _recurring(db_session, doctor)
    await availability_service.mark_unavailable(db_session, doctor.id, MONDAY)

    deleted = await availability_service.delete_exception_date(db_session, doctor.id, MONDAY)

    assert deleted == 1
    assert len(await availability_service.resolve_day(db_session, doctor.id, MONDAY)) == 1


# ── Operaciones masivas ──────────────────────────────

@pytest.mark.asyncio
async def test_bulk_create_recurring(db_session: AsyncSession, doctor):
    created = await availability_service.bulk_create_recurring(db_session, BulkRecurringCreate(
        doctor_id=doctor.id,
        days_of_week=[0, 2, 4],
        start_time=time(9, 0),
        end_time=time(13, 0),
    ))

    assert sorted(w.day_of_week for w in created) == [0, 2, 4]


@pytest.mark.asyncio
async def test_bulk_create_is_all_or_nothing(db_session: AsyncSession, doctor):
    await _recurring(db_session, doctor, day=2, start=time(12, 0), end=time(14, 0))

    with pytest.raises(ConflictException):
        await availability_service.bulk_create_recurring(db_session, BulkRecurringCreate(
            doctor_id=doctor.id,
            days_of_week=[0, 2, 4],
            start_time=time(9, 0),
            end_time=time(13, 0),
        ))

    windows = await availability_service.list_recurring(db_session, doctor.id)
    assert [w.day_of_week for w in windows] == [2]


@pytest.mark.asyncio
async def test_bulk_create_specific_dates_inclusive_range(db_session: AsyncSession, doctor):
    created = await availability_service.bulk_create_specific_dates(
        db_session,
        BulkSpecificDatesCreate(
            doctor_id=doctor.id,
            start_date=MONDAY,
            end_date=date(2026, 3, 13),
            start_time=time(9, 0),
            end_time=time(12, 0),
        ),
    )

    assert [w.specific_date for w in created] == [
        date(2026, 3, 9), date(2026, 3, 10), date(2026, 3, 11),
        date(2026, 3, 12), date(2026, 3, 13),
    ]


@pytest.mark.asyncio
async def test_bulk_update_unknown_id_updates_nothing(db_session: AsyncSession, doctor):
    window = await _recurring(db_session, doctor)

    with pytest.raises(NotFoundException):
        await availability_service.bulk_update(db_session, BulkUpdateRequest(
            availability_ids=[window.id, uuid4()],
            slot_duration_minutes=15,
        ))

    refreshed = await availability_service.list_recurring(db_session, doctor.id)
    assert refreshed[0].slot_duration_minutes == 30


@pytest.mark.asyncio
async def test_bulk_update_applies_to_all(db_session: AsyncSession, doctor):
    a = await _recurring(db_session, doctor, day=0)
    b = await _recurring(db_session, doctor, day=1)

    updated = await availability_service.bulk_update(db_session, BulkUpdateRequest(
        availability_ids=[a.id, b.id],
        end_time=time(12, 0),
        slot_duration_minutes=20,
    ))

    assert {(w.end_time, w.slot_duration_minutes) for w in updated} == {(time(12, 0), 20)}


@pytest.mark.asyncio
async def test_bulk_delete_ignores_unknown_ids(db_session: AsyncSession, doctor):
    a = await _recurring(db_session, doctor, day=0)
    b = await _recurring(db_session, doctor, day=1)

    deleted = await availability_service.bulk_delete(db_session, [a.id, b.id, uuid4()])

    assert deleted == 2
    assert await availability_service.list_for_doctor(db_session, doctor.id) == []


@pytest.mark.asyncio
async def test_copy_day(db_session: AsyncSession, doctor):
    await _recurring(db_session, doctor, day=0, start=time(9, 0), end=time(11, 0))
    await _recurring(db_session, doctor, day=0, start=time(15, 0), end=time(17, 0), slot=20)

    copied = await availability_service.copy_day(db_session, CopyAvailabilityRequest(
        doctor_id=doctor.id,
        source_day_of_week=0,
        target_days_of_week=[0, 3],
    ))

    assert len(copied) == 2
    assert {w.day_of_week for w in copied} == {3}
    assert {w.slot_duration_minutes for w in copied} == {30, 20}


@pytest.mark.asyncio
async def test_copy_day_without_source(db_session: AsyncSession, doctor):
    with pytest.raises(NotFoundException):
        await availability_service.copy_day(db_session, CopyAvailabilityRequest(
            doctor_id=doctor.id,
            source_day_of_week=5,
            target_days_of_week=[6],
        ))
