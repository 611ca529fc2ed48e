"""
Fixtures compartidas para Pytest.
Configura base de datos de test, cliente HTTP, reloj fijo y
captura de notificaciones.
"""

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from agenda.database import Base, get_db
from agenda.main import app
from agenda.models.user import User, UserRole

# ── Engine de test (SQLite async) ────────────────────
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"

# Lunes 2 de marzo de 2026, 08:00 UTC
FROZEN_NOW = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def engine():
    """Crea y destruye las tablas para cada test."""
    test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest_asyncio.fixture
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Provee una sesión de DB de test."""
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Cliente HTTP de test que usa la DB de test."""

    async def _get_test_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = _get_test_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Reloj ────────────────────────────────────────────

class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def clock(monkeypatch) -> FrozenClock:
    """Fija `utcnow` para todos los servicios."""
    frozen = FrozenClock(FROZEN_NOW)
    monkeypatch.setattr("agenda.core.timeutils.utcnow", frozen)
    return frozen


# ── Notificaciones ───────────────────────────────────

class FakeNotificationTask:
    def __init__(self):
        self.calls: list[tuple] = []
        self.fail = False

    def delay(self, *args):
        if self.fail:
            raise ConnectionError("broker no disponible")
        self.calls.append(args)


@pytest.fixture(autouse=True)
def notifications(monkeypatch) -> FakeNotificationTask:
    """Reemplaza la tarea Celery para no depender del broker."""
    fake = FakeNotificationTask()
    monkeypatch.setattr(
        "agenda.tasks.notification_tasks.send_appointment_notification_task", fake
    )
    return fake


# ── Usuarios ─────────────────────────────────────────

@pytest_asyncio.fixture
async def doctor(db_session: AsyncSession) -> User:
    user = User(
        id=uuid4(),
        email="doctor@test.com",
        role=UserRole.DOCTOR,
        first_name="Gregorio",
        last_name="Salas",
        is_active=True,
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def other_doctor(db_session: AsyncSession) -> User:
    user = User(
        id=uuid4(),
        email="doctora@test.com",
        role=UserRole.DOCTOR,
        first_name="Lucía",
        last_name="Ramos",
        is_active=True,
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def patient(db_session: AsyncSession) -> User:
    user = User(
        id=uuid4(),
        email="paciente@test.com",
        role=UserRole.PATIENT,
        first_name="Ana",
        last_name="Quispe",
        is_active=True,
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def other_patient(db_session: AsyncSession) -> User:
    user = User(
        id=uuid4(),
        email="paciente2@test.com",
        role=UserRole.PATIENT,
        first_name="Luis",
        last_name="Huamán",
        is_active=True,
    )
    db_session.add(user)
    await db_session.commit()
    return user
