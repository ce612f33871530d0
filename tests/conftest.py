"""Shared test fixtures.

Each test gets its own SQLite database file and a fresh schema. Redis is not
initialised, so caching, rate limiting and pub/sub are disabled unless a test
passes a mock client explicitly.
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import AsyncGenerator
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from mentorhub.auth.jwt import create_access_token, reset_keys
from mentorhub.config import get_settings
from mentorhub.database import close_db, get_engine, get_session, init_db
from mentorhub.db.models import Base, Course, CourseProblem, Problem, User

T0 = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)

_KEY_DIR: str | None = None


def _ensure_test_keys() -> None:
    """Generate an RSA key pair once per session and point settings at it."""
    global _KEY_DIR  # noqa: PLW0603
    if _KEY_DIR is None:
        _KEY_DIR = tempfile.mkdtemp(prefix="mh_test_keys_")
        key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        private_pem = key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
        public_pem = key.public_key().public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        with open(os.path.join(_KEY_DIR, "jwt_private.pem"), "wb") as f:
            f.write(private_pem)
        with open(os.path.join(_KEY_DIR, "jwt_public.pem"), "wb") as f:
            f.write(public_pem)

    os.environ["MH_JWT_PRIVATE_KEY_PATH"] = os.path.join(_KEY_DIR, "jwt_private.pem")
    os.environ["MH_JWT_PUBLIC_KEY_PATH"] = os.path.join(_KEY_DIR, "jwt_public.pem")


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[str, None]:
    """Fresh SQLite database with all tables created."""
    _ensure_test_keys()
    url = f"sqlite+aiosqlite:///{tmp_path / 'mentorhub.db'}"
    os.environ["MH_DATABASE_URL"] = url
    get_settings.cache_clear()
    reset_keys()

    await init_db(url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield url
    await close_db()


@pytest_asyncio.fixture
async def db_session(database: str) -> AsyncGenerator[AsyncSession, None]:
    """Get a direct database session for setup and assertions."""
    async for session in get_session():
        yield session
        break


@pytest_asyncio.fixture
async def client(database: str) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client bound to the test database."""
    from mentorhub.main import create_app

    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def make_user(db: AsyncSession, username: str, **fields: object) -> User:
    user = User(username=username, created_at=T0, **fields)
    db.add(user)
    await db.commit()
    return user


async def make_course(
    db: AsyncSession, slug: str, problems: list[tuple[str, str | None]],
) -> tuple[Course, list[Problem]]:
    """Create a course with (title, difficulty) problems in the given ordinal order."""
    course = Course(slug=slug, title=slug.upper())
    db.add(course)
    created = [Problem(title=title, difficulty=difficulty, solution_url=f"https://solutions.test/{title}")
               for title, difficulty in problems]
    db.add_all(created)
    await db.flush()
    for ordinal, problem in enumerate(created):
        db.add(CourseProblem(course_id=course.id, problem_id=problem.id, ordinal=ordinal))
    await db.commit()
    return course, created


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.username)}"}


@pytest_asyncio.fixture
async def alice(db_session: AsyncSession) -> User:
    return await make_user(
        db_session, "alice", display_name="Alice", institution="MIT", country="US",
    )


@pytest_asyncio.fixture
async def bob(db_session: AsyncSession) -> User:
    return await make_user(
        db_session, "bob", display_name="user 42", full_name="Bob Builder", institution="ETH", country="CH",
    )


@pytest_asyncio.fixture
async def dsa_course(db_session: AsyncSession) -> tuple[Course, list[Problem]]:
    """Course 'dsa' with one problem per difficulty, listed hard-first by ordinal."""
    return await make_course(
        db_session, "dsa", [("graphs", "hard"), ("arrays", "easy"), ("trees", "medium")],
    )


@pytest.fixture
def now() -> datetime:
    return T0
