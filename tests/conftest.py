"""Fixtures compartidas: base de datos SQLite en memoria, cliente HTTP y tokens del staff"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["RATE_LIMIT_STORAGE_URI"] = "memory://"
os.environ["ADMISSION_LOCK_ENABLED"] = "false"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"
os.environ["SUPABASE_URL"] = "http://supabase.test"

import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from main import app
from shared.auth.supabase_client import get_auth_client
from shared.database.connection import Base
from shared.database.models import Profile, Registration, UserRole
from shared.database.session import get_db
from shared.utils.rate_limiter import limiter

JWT_SECRET = "test-jwt-secret"


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    yield


class FakeAuthClient:
    """Supabase Auth en memoria"""

    def __init__(self):
        self.sessions: Dict[str, Dict] = {}
        self.signed_out = []
        self.deleted_users = []

    def add_user(self, email: str, password: str, user_id: str):
        self.sessions[email] = {
            "password": password,
            "session": {
                "access_token": make_token(user_id, email),
                "refresh_token": "refresh-" + user_id,
                "expires_in": 3600,
                "user": {"id": user_id, "email": email},
            },
        }

    async def sign_in(self, email, password):
        entry = self.sessions.get(email)
        if entry is None or entry["password"] != password:
            return None
        return entry["session"]

    async def sign_out(self, token):
        self.signed_out.append(token)

    async def delete_user(self, user_id):
        self.deleted_users.append(user_id)


@pytest.fixture
def auth_client():
    return FakeAuthClient()


@pytest.fixture
async def client(session_maker, auth_client):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_auth_client] = lambda: auth_client
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client
    app.dependency_overrides.clear()


def make_token(user_id: str, email: str, expires_in: int = 3600) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": user_id,
        "email": email,
        "aud": "authenticated",
        "role": "authenticated",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
    }
    return jwt.encode(claims, JWT_SECRET, algorithm="HS256")


async def create_staff(db: AsyncSession, email: str, roles: Iterable[str]) -> Dict:
    """Crear perfil + roles y devolver id, email y headers de autorización"""
    user_id = uuid.uuid4()
    profile = Profile(id=user_id, email=email, display_name=email.split("@")[0])
    profile.roles = [UserRole(user_id=user_id, role=role) for role in roles]
    db.add(profile)
    await db.commit()

    return {
        "id": str(user_id),
        "email": email,
        "headers": {"Authorization": f"Bearer {make_token(str(user_id), email)}"},
    }


async def create_registration(db: AsyncSession, telefono: str = "555-0000", **fields) -> Registration:
    registration = Registration(
        nombre=fields.pop("nombre", "Ana López"),
        telefono=telefono,
        direccion=fields.pop("direccion", "Managua"),
        confirmado=True,
        checked_in=fields.pop("checked_in", False),
        **fields,
    )
    db.add(registration)
    await db.commit()
    await db.refresh(registration)
    return registration


@pytest.fixture
def staff_factory(db):
    async def factory(email: str, *roles: str) -> Dict:
        return await create_staff(db, email, roles)
    return factory


@pytest.fixture
def registration_factory(db):
    async def factory(telefono: str = "555-0000", **fields) -> Registration:
        return await create_registration(db, telefono, **fields)
    return factory
