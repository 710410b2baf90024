"""
COPO backend - test configuration and fixtures
"""
import os
from typing import AsyncGenerator

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from faker import Faker

# Set testing environment before the app reads its config
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///./test.db'
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['ENV'] = 'TESTING'
os.environ['WHATSAPP_MODE'] = 'DEVELOPMENT'

from copo.main import app
from copo import database
from copo.database import Base, init_db
from copo.models.user import Role, User
from copo.security import get_password_hash

fake = Faker()

DEFAULT_PASSWORD = 'password123'


@pytest.fixture(scope='function')
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh tables for each test, on the same engine the app and audit writer use"""
    await init_db()

    async with database.SessionLocal() as session:
        yield session
        await session.rollback()

    async with database.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await database.engine.dispose()


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Anonymous client"""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Insert a user directly, bypassing the registration rules"""
    async def _make_user(role: Role, department_id=None, whatsapp_number=None, password=DEFAULT_PASSWORD) -> User:
        user = User(
            name=fake.name(),
            username=fake.unique.user_name(),
            password=get_password_hash(password),
            role=role.value,
            department_id=department_id,
            whatsapp_number=whatsapp_number,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
async def login_as(db_session: AsyncSession):
    """
    Log a user in and hand back a client carrying their session cookie.

    Each actor gets its own client so cookies never leak between them.
    """
    clients = []

    async def _login_as(user: User, password: str = DEFAULT_PASSWORD) -> AsyncClient:
        ac = AsyncClient(transport=ASGITransport(app=app), base_url='http://test')
        clients.append(ac)
        response = await ac.post('/api/login', json={'username': user.username, 'password': password})
        assert response.status_code == 200, response.text
        return ac

    yield _login_as

    for ac in clients:
        await ac.aclose()


@pytest.fixture
async def admin_user(make_user) -> User:
    return await make_user(Role.ADMIN)


@pytest.fixture
async def hod_user(make_user) -> User:
    return await make_user(Role.HOD)


@pytest.fixture
async def faculty_user(make_user) -> User:
    return await make_user(Role.FACULTY)


@pytest.fixture
async def student_user(make_user) -> User:
    return await make_user(Role.STUDENT)


@pytest.fixture
async def admin_client(admin_user, login_as) -> AsyncClient:
    return await login_as(admin_user)


@pytest.fixture
async def hod_client(hod_user, login_as) -> AsyncClient:
    return await login_as(hod_user)


@pytest.fixture
async def faculty_client(faculty_user, login_as) -> AsyncClient:
    return await login_as(faculty_user)


@pytest.fixture
async def student_client(student_user, login_as) -> AsyncClient:
    return await login_as(student_user)


@pytest.fixture
def subject_data():
    return {
        'code': f"CS{fake.unique.random_int(min=100, max=999)}",
        'name': 'Data Structures',
        'departmentId': 1,
        'semester': 3,
        'academicYear': '2024-2025',
    }


@pytest.fixture
def fetch_all(db_session: AsyncSession):
    """Read rows through a new session so nothing cached by the test session is returned"""
    async def _fetch_all(model, *where):
        async with database.SessionLocal() as session:
            result = await session.execute(select(model).where(*where).order_by(model.id))
            return list(result.scalars().all())

    return _fetch_all
