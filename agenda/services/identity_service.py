"""
Verificación de doctores y pacientes referenciados por la agenda.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.core.exceptions import NotFoundException
from agenda.models.user import User, UserRole


async def _get_active_user(
    db: AsyncSession, user_id: UUID, role: UserRole
) -> User | None:
    result = await db.execute(
        select(User).where(
            User.id == user_id,
            User.role == role,
            User.is_active.is_(True),
        )
    )
    return result.scalar_one_or_none()


async def ensure_doctor_exists(db: AsyncSession, doctor_id: UUID) -> User:
    doctor = await _get_active_user(db, doctor_id, UserRole.DOCTOR)
    if not doctor:
        raise NotFoundException("Doctor")
    return doctor


async def ensure_patient_exists(db: AsyncSession, patient_id: UUID) -> User:
    patient = await _get_active_user(db, patient_id, UserRole.PATIENT)
    if not patient:
        raise NotFoundException("Paciente")
    return patient
