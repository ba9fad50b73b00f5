"""Pytest configuration for the Custodian test suite."""

import os


def _ensure_test_env() -> None:
    """Seed required environment variables for tests."""
    os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./custodian-test.db")
    os.environ.setdefault("LOG_LEVEL", "WARNING")


_ensure_test_env()

import httpx  # noqa: E402
import pytest  # noqa: E402

from custodian import create_app  # noqa: E402
from custodian.api.deps import get_session_factory  # noqa: E402
from custodian.core.database import create_engine, create_session_factory, init_db  # noqa: E402
from custodian.core.permissions import Principal  # noqa: E402
from custodian.models.asset import Asset  # noqa: E402
from custodian.models.user import User  # noqa: E402


@pytest.fixture
async def engine(tmp_path):
    """Fresh file-backed SQLite database per test."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'custodian.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def make_user(session_factory):
    """Insert a user and return the matching principal."""

    async def _make_user(
        user_id: str,
        role: str = "user",
        department: str = None,
        is_active: bool = True,
        **fields,
    ) -> Principal:
        async with session_factory() as session:
            async with session.begin():
                session.add(
                    User(
                        id=user_id,
                        name=fields.pop("name", user_id.title()),
                        email=fields.pop("email", f"{user_id}@example.com"),
                        role=role,
                        department=department,
                        is_active=is_active,
                        **fields,
                    )
                )
        return Principal(id=user_id, role=role, department=department, is_active=is_active)

    return _make_user


@pytest.fixture
def make_asset(session_factory):
    """Insert an asset directly and return its id."""
    counter = {"value": 0}

    async def _make_asset(
        name: str = "ThinkPad T14",
        category: str = "laptop",
        status: str = "available",
        **fields,
    ) -> int:
        counter["value"] += 1
        async with session_factory() as session:
            async with session.begin():
                asset = Asset(
                    asset_tag=fields.pop("asset_tag", f"TEST-{counter['value']:04d}"),
                    name=name,
                    category=category,
                    status=status,
                    **fields,
                )
                session.add(asset)
                await session.flush()
                asset_id = asset.id
        return asset_id

    return _make_asset


@pytest.fixture
async def client(session_factory):
    """HTTP client bound to the app, using the test database."""
    app = create_app()
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client
