import asyncio
import os
import sys
import tempfile
from datetime import date, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

TEST_DIR = Path(tempfile.mkdtemp(prefix="calendario-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DIR / 'calendar.sqlite3'}"
os.environ["LOG_DIR"] = str(TEST_DIR / "logs")
os.environ["SERVICE_ROLE_KEY"] = "tests-service-role-key"
os.environ["SECRET_KEY"] = "tests-secret-key-long-enough-for-hs256-signing"
os.environ["ADMIN_KEY"] = "tests-admin-key"
os.environ.pop("PUBLIC_KEY", None)

from app.core.config import settings
from app.core.database import AsyncSessionLocal, Base, engine
from app.main import app as application
from app.services.identity import identity_provider

PASSWORD = "Abc12345!"


async def _reset_schema() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture(autouse=True)
def reset_database():
    asyncio.run(_reset_schema())
    yield


@pytest.fixture()
def client():
    with TestClient(application) as test_client:
        yield test_client


def exam_date(days_ahead: int = 20) -> str:
    return (date.today() + timedelta(days=days_ahead)).isoformat()


def create_account(name: str, email: str, password: str = PASSWORD, is_admin: bool = False) -> str:
    async def _create() -> str:
        async with AsyncSessionLocal() as db:
            account = await identity_provider.admin(settings.SERVICE_ROLE_KEY).create_user(
                db, name=name, email=email, password=password, is_admin=is_admin
            )
            return account.id

    return asyncio.run(_create())


def login(client: TestClient, email: str, password: str = PASSWORD) -> dict:
    response = client.post("/api/v1/auth/login", data={"username": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture()
def make_account(client):
    def factory(name: str, email: str, is_admin: bool = False, password: str = PASSWORD):
        user_id = create_account(name, email, password=password, is_admin=is_admin)
        return user_id, login(client, email, password)

    return factory
