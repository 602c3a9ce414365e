"""
Pytest fixtures for the CA firm practice API.

Each test gets its own SQLite database file and upload directory, plus one
firm seeded with an account for every role.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test-bootstrap.db")
os.environ["SMTP_USER"] = ""
os.environ["SMTP_PASSWORD"] = ""

from dataclasses import dataclass
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from cafirm.core.config import settings
from cafirm.core.dependencies import get_db
from cafirm.core.security import get_password_hash
from cafirm.db.base import Base
from cafirm.main import app
from cafirm.models import (
    Admin,
    Client,
    ClientAssignment,
    Firm,
    ProjectManager,
    SuperAdmin,
    TeamMember,
)
from cafirm.services.auth_service import issue_token, user_context

PASSWORD = "Password@123"
# Hashed once, bcrypt is slow
PASSWORD_HASH = get_password_hash(PASSWORD)


@dataclass
class Seed:
    """One firm with an account per role."""

    firm: Firm
    super_admin: SuperAdmin
    admin: Admin
    project_manager: ProjectManager
    team_member: TeamMember
    other_team_member: TeamMember
    client: Client
    other_client: Client


def auth_headers(account) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_token(account)}"}


def ctx(account):
    """UserContext for calling services directly."""
    return user_context(account)


@pytest_asyncio.fixture
async def session_maker(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh SQLite database per test."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    """Uploads land in the test's temporary directory."""
    path = tmp_path / "uploads"
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(path))
    return path


@pytest_asyncio.fixture
async def seed(db_session: AsyncSession) -> Seed:
    """Creates the test firm and its accounts."""
    firm = Firm(name="Sharma & Associates", email="office@sharmaca.in", gstin="27AAAPL1234C1ZV")
    db_session.add(firm)
    await db_session.flush()

    def account(model, email, name, **extra):
        row = model(
            firm_id=firm.id,
            email=email,
            name=name,
            hashed_password=PASSWORD_HASH,
            **extra,
        )
        db_session.add(row)
        return row

    super_admin = account(SuperAdmin, "owner@sharmaca.in", "Ravi Sharma")
    admin = account(Admin, "admin@sharmaca.in", "Anita Desai")
    project_manager = account(ProjectManager, "pm@sharmaca.in", "Vikram Rao")
    team_member = account(TeamMember, "tm@sharmaca.in", "Priya Nair", designation="Article Assistant")
    other_team_member = account(TeamMember, "tm2@sharmaca.in", "Karan Mehta")
    await db_session.flush()

    client = account(
        Client,
        "client@acmetraders.in",
        "Acme Traders",
        company_name="Acme Traders Pvt Ltd",
        pan="AAACA1234B",
        managed_by_id=project_manager.id,
    )
    other_client = account(Client, "other@globex.in", "Globex Exports")
    await db_session.flush()

    db_session.add(
        ClientAssignment(
            firm_id=firm.id,
            team_member_id=team_member.id,
            client_id=client.id,
        )
    )
    await db_session.commit()

    return Seed(
        firm=firm,
        super_admin=super_admin,
        admin=admin,
        project_manager=project_manager,
        team_member=team_member,
        other_team_member=other_team_member,
        client=client,
        other_client=other_client,
    )


@pytest_asyncio.fixture
async def api(session_maker, seed: Seed) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the test database. Authenticate with auth_headers()."""

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
