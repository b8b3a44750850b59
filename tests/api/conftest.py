"""Shared fixtures for API tests."""
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from api.main import app
from core.auth import get_current_user
from db.session import get_async_session
from models.user import User


@asynccontextmanager
async def create_user2_client(
    db_session: AsyncSession,
    auth0_id: str = "auth0|user2",
    email: str = "user2@example.com",
) -> AsyncGenerator[AsyncClient]:
    """
    Create an AsyncClient acting as a second user.

    Overrides the current-user dependency so requests resolve to the new user
    instead of the dev-mode user. Cleans up dependency overrides on exit.
    """
    user2 = User(auth0_id=auth0_id, email=email)
    db_session.add(user2)
    await db_session.flush()

    async def override_get_async_session() -> AsyncGenerator[AsyncSession]:
        yield db_session

    async def override_get_current_user() -> User:
        return user2

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[get_current_user] = override_get_current_user

    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as user2_client:
            yield user2_client
    finally:
        app.dependency_overrides.pop(get_current_user, None)


# Constant for non-existent entity ID
FAKE_UUID = "00000000-0000-0000-0000-000000000000"
