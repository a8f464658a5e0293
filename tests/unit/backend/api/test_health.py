"""
Unit Tests for Health Check Endpoints.

Database access and configuration are mocked.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import HTTPException

from outliner.backend.api.health import check_database, health_check, readiness_check


def _config_with_health_timeout(seconds: float) -> MagicMock:
    config = MagicMock()
    config.application.timeouts.health = seconds
    return config


class TestHealthCheck:
    """Tests for the liveness endpoint."""

    @pytest.mark.asyncio
    async def test_returns_healthy(self):
        assert await health_check() == {"status": "healthy"}


class TestCheckDatabase:
    """Tests for check_database()."""

    @pytest.mark.asyncio
    async def test_healthy_on_successful_query(self):
        session = AsyncMock()
        factory = MagicMock()
        factory.return_value.__aenter__ = AsyncMock(return_value=session)
        factory.return_value.__aexit__ = AsyncMock(return_value=None)

        with patch("outliner.backend.api.health.get_session_factory", return_value=factory):
            result = await check_database()

        assert result["status"] == "healthy"
        assert "latency_ms" in result
        session.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unhealthy_on_connection_error(self):
        factory = MagicMock(side_effect=OSError("unable to open database file"))

        with patch("outliner.backend.api.health.get_session_factory", return_value=factory):
            result = await check_database()

        assert result == {"status": "unhealthy", "error": "unable to open database file"}


class TestReadinessCheck:
    """Tests for the readiness endpoint."""

    @pytest.mark.asyncio
    async def test_healthy_when_database_answers(self):
        with patch(
            "outliner.backend.api.health.get_app_config",
            return_value=_config_with_health_timeout(5),
        ), patch(
            "outliner.backend.api.health.check_database",
            AsyncMock(return_value={"status": "healthy", "latency_ms": 1}),
        ):
            result = await readiness_check()

        assert result["status"] == "healthy"
        assert result["checks"]["database"]["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_raises_503_when_database_unhealthy(self):
        with patch(
            "outliner.backend.api.health.get_app_config",
            return_value=_config_with_health_timeout(5),
        ), patch(
            "outliner.backend.api.health.check_database",
            AsyncMock(return_value={"status": "unhealthy", "error": "down"}),
        ):
            with pytest.raises(HTTPException) as exc_info:
                await readiness_check()

        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_raises_503_when_database_too_slow(self):
        async def slow_check():
            await asyncio.sleep(1)
            return {"status": "healthy"}

        with patch(
            "outliner.backend.api.health.get_app_config",
            return_value=_config_with_health_timeout(0.01),
        ), patch("outliner.backend.api.health.check_database", slow_check):
            with pytest.raises(HTTPException) as exc_info:
                await readiness_check()

        assert exc_info.value.status_code == 503
        assert "no response" in exc_info.value.detail["checks"]["database"]["error"]
