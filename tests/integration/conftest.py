"""
API Fixtures.

An httpx client over the real application, with the request session
replaced by the test's db_session, plus helpers for checking envelopes.
Tests that need several independent sessions use file_session_factory.
"""

from collections.abc import AsyncGenerator
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import outliner.backend.core.concurrency as concurrency_module
from outliner.backend.core.database import get_db_session
from outliner.backend.models.base import Base


@pytest.fixture(autouse=True)
def _fresh_group_locks():
    """asyncio locks belong to one loop; never share the registry across tests."""
    concurrency_module._group_locks = None
    yield
    concurrency_module._group_locks = None


@pytest.fixture
async def file_session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """
    Sessions over a SQLite file, each on its own connection.

    The in-memory database shares one connection between sessions, so
    it cannot show what one session sees of another's writes.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'outline.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Client for the full app. Every request reuses db_session.

        async def test_list_roots(client):
            response = await client.get("/api/v1/nodes")
    """
    from outliner.backend.main import create_app

    async def _session_override() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app = create_app()
    app.dependency_overrides[get_db_session] = _session_override

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def create_node(client: AsyncClient):
    """
    POST a node and return its `data` payload.

        root = await create_node("Root")
        child = await create_node("Child", parent_id=root["id"])
    """
    async def _create(content: str, **fields: Any) -> dict[str, Any]:
        response = await client.post("/api/v1/nodes", json={"content": content, **fields})
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _create


class ApiAssertions:
    """Envelope checks returning the decoded body."""

    @staticmethod
    def _expect_status(response: Response, status: int) -> dict[str, Any]:
        assert response.status_code == status, (
            f"wanted {status}, got {response.status_code}: {response.text}"
        )
        return response.json()

    @classmethod
    def assert_success(cls, response: Response, expected_status: int = 200) -> dict[str, Any]:
        body = cls._expect_status(response, expected_status)
        assert body.get("success") is True, body
        return body

    @classmethod
    def assert_error(
        cls,
        response: Response,
        expected_status: int,
        expected_code: str | None = None,
    ) -> dict[str, Any]:
        body = cls._expect_status(response, expected_status)
        assert body.get("success") is False, body
        assert body.get("error"), body
        if expected_code is not None:
            assert body["error"]["code"] == expected_code, body["error"]
        return body

    @classmethod
    def assert_validation_error(cls, response: Response, field: str | None = None) -> dict[str, Any]:
        """422 VAL_REQUEST_INVALID, optionally naming `field` among the offenders."""
        body = cls.assert_error(response, 422, "VAL_REQUEST_INVALID")
        if field is not None:
            reported = [
                entry.get("field", "")
                for entry in body["error"].get("details", {}).get("validation_errors", [])
            ]
            assert any(field in name for name in reported), reported
        return body


@pytest.fixture
def api() -> ApiAssertions:
    return ApiAssertions()
