import os
import sys
from pathlib import Path


def _configure_path() -> None:
    src_path = Path(__file__).resolve().parents[1] / "src"
    if src_path.exists():
        sys.path.insert(0, str(src_path))


_configure_path()
os.environ.setdefault("TRACING_ENABLED", "false")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from loyalty_admin_api.app import create_app  # noqa: E402
from loyalty_admin_api.db.base import Base  # noqa: E402
from loyalty_admin_api.db.session import get_session, get_session_factory  # noqa: E402
from loyalty_admin_api.models import WILDCARD_PERMISSION, Admin, Customer, Role  # noqa: E402
from loyalty_admin_api.observability.referrals import get_referral_store  # noqa: E402


@pytest.fixture(autouse=True)
def reset_referral_store():
    store = get_referral_store()
    store.reset()
    yield
    store.reset()


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def app_with_db(session_factory):
    app = create_app()

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    try:
        yield app, session_factory
    finally:
        app.dependency_overrides.clear()


async def create_admin(session_factory, *, permissions, email="admin@loyalty.test", is_active=True) -> Admin:
    async with session_factory() as session:
        role = Role(name=f"role-{email}", permissions=list(permissions))
        session.add(role)
        await session.flush()
        admin = Admin(name="Test Admin", email=email, role_id=role.id, is_active=is_active)
        session.add(admin)
        await session.commit()
        return admin


async def create_customers(session_factory, count: int, *, prefix: str = "customer") -> list[Customer]:
    async with session_factory() as session:
        customers = [Customer(name=f"{prefix} {index}", email=f"{prefix}{index}@loyalty.test") for index in range(count)]
        session.add_all(customers)
        await session.commit()
        return customers


@pytest_asyncio.fixture
async def admin_headers(session_factory) -> dict[str, str]:
    admin = await create_admin(session_factory, permissions=[WILDCARD_PERMISSION])
    return {"X-Admin-Id": str(admin.id)}
