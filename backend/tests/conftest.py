"""Shared fixtures: in-memory database, fake Telegram bot and an HTTP client."""

import os

os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["BOT_TOKEN"] = "123456:test-token"
os.environ["BASE_URL"] = ""
os.environ["SMTP_HOST"] = ""

from collections.abc import AsyncGenerator  # noqa: E402
from typing import Any  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from happytail.db.base import Base  # noqa: E402
from happytail.db.session import get_db_session  # noqa: E402
from happytail.main import create_app  # noqa: E402
from happytail.models.organization import Organization  # noqa: E402
from happytail.models.task import Task  # noqa: E402
from happytail.models.user import User, UserRole  # noqa: E402
from happytail.security import create_access_token, hash_password  # noqa: E402
from happytail.services.telegram import (  # noqa: E402
    TelegramClient,
    TelegramError,
    get_telegram_client,
)

PASSWORD = "secret123"


class FakeTelegram(TelegramClient):
    """Records Bot API calls instead of sending them."""

    def __init__(self, token: str = "123456:test-token"):
        super().__init__(token)
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.failing_chats: set[str] = set()

    async def _call(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        if not self.configured:
            raise TelegramError(method, "Bot token is not configured")
        if str(payload.get("chat_id")) in self.failing_chats:
            raise TelegramError(method, "Forbidden: bot was blocked by the user", 403)
        self.calls.append((method, payload))
        return {"message_id": len(self.calls)}

    def sent(self) -> list[tuple[str, str]]:
        return [
            (str(payload["chat_id"]), payload["text"])
            for method, payload in self.calls
            if method == "sendMessage"
        ]


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def bot() -> FakeTelegram:
    return FakeTelegram()


@pytest.fixture
def app(session_factory, bot):
    app = create_app()

    async def override_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_telegram_client] = lambda: bot
    return app


@pytest.fixture
async def client(app) -> AsyncGenerator[httpx.AsyncClient, None]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def make_organization(db):
    async def factory(**fields: Any) -> Organization:
        organization = Organization(**{"title": "Happy Paws Shelter", **fields})
        db.add(organization)
        await db.commit()
        await db.refresh(organization)
        return organization

    return factory


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    async def factory(
        role: UserRole = UserRole.USER,
        organization: Organization | None = None,
        **fields: Any,
    ) -> User:
        counter["n"] += 1
        user = User(
            **{
                "email": f"user{counter['n']}@example.com",
                "password": hash_password(PASSWORD),
                "first_name": f"User{counter['n']}",
                "role": role.value,
                "organization_id": organization.id if organization else None,
                **fields,
            }
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    return factory


@pytest.fixture
def make_task(db):
    async def factory(owner: User, **fields: Any) -> Task:
        task = Task(
            **{
                "title": "Walk the dogs",
                "description": "Two dogs, one hour",
                "owner_id": owner.id,
                "organization_id": owner.organization_id,
                **fields,
            }
        )
        db.add(task)
        await db.commit()
        await db.refresh(task)
        return task

    return factory


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}
