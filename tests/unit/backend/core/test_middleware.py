"""
Unit Tests for Request Context Middleware.

Tests the RequestContextMiddleware functionality including:
- Request ID generation and propagation
- Client source extraction from X-Client-Source
- Response timing headers
- Structlog context binding
"""

from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
from starlette.requests import Request
from starlette.responses import Response

from outliner.backend.core.middleware import RequestContextMiddleware

CONTEXTVARS = "outliner.backend.core.middleware.structlog.contextvars"


@pytest.fixture
def middleware() -> RequestContextMiddleware:
    return RequestContextMiddleware(MagicMock())


@pytest.fixture
def mock_request():
    request = MagicMock(spec=Request)
    request.headers = {}
    request.method = "PUT"
    request.url = MagicMock()
    request.url.path = "/api/v1/nodes/n1/move"
    request.client = MagicMock()
    request.client.host = "127.0.0.1"
    request.state = MagicMock()
    return request


async def _ok(request):
    return Response(content="OK", status_code=200)


class TestClientSource:
    """Tests for X-Client-Source handling."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "header,expected",
        [
            ("web", "web"),
            ("CLI", "cli"),
            ("api", "api"),
            ("fax-machine", "unknown"),
            (None, "unknown"),
        ],
    )
    async def test_source_on_request_state(self, middleware, mock_request, header, expected):
        if header is not None:
            mock_request.headers = {"X-Client-Source": header}
        seen = {}

        async def call_next(request):
            seen["source"] = request.state.source
            return await _ok(request)

        with patch(CONTEXTVARS):
            await middleware.dispatch(mock_request, call_next)

        assert seen["source"] == expected


class TestRequestId:
    """Tests for X-Request-ID handling."""

    @pytest.mark.asyncio
    async def test_generates_request_id_when_not_provided(self, middleware, mock_request):
        with patch(CONTEXTVARS):
            response = await middleware.dispatch(mock_request, _ok)

        assert len(response.headers["X-Request-ID"]) == 36
        assert mock_request.state.request_id == response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_uses_provided_request_id(self, middleware, mock_request):
        mock_request.headers = {"X-Request-ID": "trace-abc"}

        with patch(CONTEXTVARS):
            response = await middleware.dispatch(mock_request, _ok)

        assert response.headers["X-Request-ID"] == "trace-abc"


class TestTiming:
    """Tests for timing state and headers."""

    @pytest.mark.asyncio
    async def test_adds_response_time_header(self, middleware, mock_request):
        with patch(CONTEXTVARS):
            response = await middleware.dispatch(mock_request, _ok)

        value = response.headers["X-Response-Time"]
        assert value.endswith("ms")
        assert value[:-2].isdigit()

    @pytest.mark.asyncio
    async def test_start_time_is_naive_utc(self, middleware, mock_request):
        with patch(CONTEXTVARS):
            await middleware.dispatch(mock_request, _ok)

        assert isinstance(mock_request.state.start_time, datetime)
        assert mock_request.state.start_time.tzinfo is None


class TestStructlogContext:
    """Tests for log context binding."""

    @pytest.mark.asyncio
    async def test_binds_request_fields(self, middleware, mock_request):
        mock_request.headers = {"X-Client-Source": "cli", "X-Request-ID": "r-1"}

        with patch(CONTEXTVARS) as mock_ctx:
            await middleware.dispatch(mock_request, _ok)

        mock_ctx.bind_contextvars.assert_called_once_with(
            request_id="r-1",
            source="cli",
            method="PUT",
            path="/api/v1/nodes/n1/move",
        )
        assert mock_ctx.clear_contextvars.call_count == 2

    @pytest.mark.asyncio
    async def test_clears_context_and_reraises_on_exception(self, middleware, mock_request):
        async def call_next(request):
            raise RuntimeError("store exploded")

        with patch(CONTEXTVARS) as mock_ctx:
            with pytest.raises(RuntimeError, match="store exploded"):
                await middleware.dispatch(mock_request, call_next)

        assert mock_ctx.clear_contextvars.call_count == 2

    @pytest.mark.asyncio
    async def test_handles_missing_client(self, middleware, mock_request):
        mock_request.client = None

        with patch(CONTEXTVARS):
            response = await middleware.dispatch(mock_request, _ok)

        assert response.status_code == 200
