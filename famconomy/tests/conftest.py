"""
Shared fixtures for FamConomy tests.

Every test gets its own in-memory SQLite database, a fresh app whose
``get_session`` dependency is bound to it, and a recording stand-in for the
Socket.IO gateway.
"""

import os

# Settings are read at import time, so the environment goes first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["SESSION_SECRET"] = "test-session-secret"
os.environ["ENVIRONMENT"] = "test"
os.environ["TESTING"] = "true"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

import pytest
from httpx import ASGITransport, AsyncClient

from famconomy.api.main import create_app
from famconomy.api.routers.auth import create_access_token, hash_password
from famconomy.shared.database import (
    create_database_engine,
    create_session_factory,
    get_session,
    init_database,
)
from famconomy.shared.models import Family, FamilyMember, FamilyRole, User


# ============================================================================
# Test Doubles
# ============================================================================

class RecordingRealtime:
    """Collects emits instead of sending them over Socket.IO."""

    def __init__(self):
        self.user_events: List[Tuple[UUID, str, Dict[str, Any]]] = []
        self.family_events: List[Tuple[int, str, Dict[str, Any]]] = []

    async def notify_user(self, user_id: UUID, event: str, payload: Dict[str, Any]) -> None:
        self.user_events.append((user_id, event, payload))

    async def emit_to_family(
        self,
        family_id: int,
        event: str,
        payload: Dict[str, Any],
        skip_sid: Optional[str] = None,
    ) -> None:
        self.family_events.append((family_id, event, payload))


class DataFactory:
    """Inserts rows directly, bypassing the API."""

    def __init__(self, session_factory):
        self.session_factory = session_factory
        self._count = 0

    async def user(self, first_name: str = "Test", email: Optional[str] = None, password: str = "password123") -> User:
        self._count += 1
        async with self.session_factory() as session:
            user = User(
                email=email or f"user{self._count}@example.com",
                first_name=first_name,
                last_name="Tester",
                password_hash=hash_password(password),
            )
            session.add(user)
            await session.commit()
            await session.refresh(user)
            return user

    async def family(self, owner: User, name: str = "Test Family") -> Family:
        async with self.session_factory() as session:
            family = Family(name=name, created_by_user_id=owner.id)
            session.add(family)
            await session.flush()
            session.add(FamilyMember(family_id=family.id, user_id=owner.id, role=FamilyRole.PARENT))
            await session.commit()
            await session.refresh(family)
            return family

    async def member(self, family: Family, user: User, role: FamilyRole) -> FamilyMember:
        async with self.session_factory() as session:
            membership = FamilyMember(family_id=family.id, user_id=user.id, role=role)
            session.add(membership)
            await session.commit()
            return membership

    async def add(self, *rows):
        async with self.session_factory() as session:
            session.add_all(rows)
            await session.commit()
            for row in rows:
                await session.refresh(row)
        return rows[0] if len(rows) == 1 else rows


def auth_headers(user: User) -> Dict[str, str]:
    token, _ = create_access_token(str(user.id))
    return {"Authorization": f"Bearer {token}"}


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
async def engine():
    """Fresh in-memory database with the full schema."""
    test_engine = create_database_engine("sqlite+aiosqlite:///:memory:")
    await init_database(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def db_session(session_factory):
    """Session for arranging and inspecting data directly."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def factory(session_factory):
    return DataFactory(session_factory)


@pytest.fixture
def realtime():
    return RecordingRealtime()


@pytest.fixture
def app(session_factory, realtime):
    """Application wired to the test database and the recording gateway."""
    application = create_app()

    async def _override_get_session():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_session] = _override_get_session
    application.state.realtime = realtime
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    """Async HTTP client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client


@pytest.fixture
async def household(factory):
    """A family with a parent and a child, plus an outsider with no membership."""
    parent = await factory.user("Pat")
    child = await factory.user("Kid")
    outsider = await factory.user("Stranger")
    family = await factory.family(parent, name="Rivera")
    await factory.member(family, child, FamilyRole.CHILD)

    return SimpleNamespace(
        family=family,
        family_id=family.id,
        parent=parent,
        child=child,
        outsider=outsider,
        parent_headers=auth_headers(parent),
        child_headers=auth_headers(child),
        outsider_headers=auth_headers(outsider),
    )


@pytest.fixture
def headers_for():
    """Bearer headers for any user."""
    return auth_headers
