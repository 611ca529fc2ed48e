"""
Configuración de base de datos con SQLAlchemy 2.0 async.
Incluye el lock por doctor que serializa las escrituras
dependientes de una verificación de conflictos.
"""

import zlib
from typing import AsyncGenerator
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from agenda.config import get_settings

settings = get_settings()


def _engine_options(url: str) -> dict:
    # SQLite no acepta parámetros de pool
    if url.startswith("sqlite"):
        return {"echo": settings.DEBUG}
    return {
        "echo": settings.DEBUG,
        "pool_size": settings.DATABASE_POOL_SIZE,
        "max_overflow": settings.DATABASE_MAX_OVERFLOW,
        "pool_pre_ping": True,
    }


# ── Engine async ─────────────────────────────────────
engine = create_async_engine(
    settings.DATABASE_URL,
    **_engine_options(settings.DATABASE_URL),
)

# ── Session factory ──────────────────────────────────
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ── Base declarativa ─────────────────────────────────
class Base(DeclarativeBase):
    pass


# ── Lock por doctor ──────────────────────────────────
def doctor_lock_key(doctor_id: UUID) -> int:
    """Clave estable de 32 bits para el advisory lock de un doctor."""
    return zlib.crc32(UUID(str(doctor_id)).bytes)


async def lock_doctor(session: AsyncSession, doctor_id: UUID) -> None:
    """
    Toma un advisory lock de transacción sobre el doctor.

    En PostgreSQL usa `pg_advisory_xact_lock`, que se libera solo al
    hacer commit/rollback. En SQLite no hace nada: el lock de escritura
    de la base ya serializa a los escritores.
    """
    if session.bind.dialect.name != "postgresql":
        return
    await session.execute(
        text("SELECT pg_advisory_xact_lock(:key)"),
        {"key": doctor_lock_key(doctor_id)},
    )


# ── Dependency: sesión de DB ─────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency de FastAPI que provee una sesión de base de datos.
    Cada request es una unidad de trabajo: commit al final o rollback.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
