"""
eLabel API — Middleware, Health and Lifecycle Tests
====================================================

What we test:
    ✅ X-Request-ID generated, echoed, and included in error bodies
    ✅ Security headers (strict set outside development)
    ✅ 413 for oversized bodies, declared or streamed
    ✅ CORS preflight for allowed and unknown origins
    ✅ /health healthy and unhealthy
    ✅ Unknown route / wrong method use the error envelope
    ✅ Lifespan: config errors abort startup, shutdown timeout forces exit
"""

import asyncio
import json
import logging
import re
import signal
from logging.handlers import RotatingFileHandler
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.responses import PlainTextResponse
from starlette.routing import Route

import elabel.main as main_module
from elabel.config import settings
from elabel.main import handle_loop_exception, lifespan, setup_logging
from elabel.middleware.logging import ACCESS_LOGGER_NAME
from elabel.middleware.security_headers import SecurityHeadersMiddleware


@pytest.mark.asyncio
class TestRequestID:

    async def test_generated_when_absent(self, client):
        response = await client.get("/api/auth/health")
        assert re.fullmatch(r"[0-9a-f]{8}", response.headers["X-Request-ID"])

    async def test_client_id_echoed(self, client):
        response = await client.get("/api/auth/health", headers={"X-Request-ID": "scan-42"})
        assert response.headers["X-Request-ID"] == "scan-42"

    async def test_overlong_client_id_replaced(self, client):
        response = await client.get("/api/auth/health", headers={"X-Request-ID": "x" * 65})
        assert len(response.headers["X-Request-ID"]) == 8

    async def test_error_body_carries_id(self, client):
        response = await client.get(
            "/api/labels/identifier/NOPE", headers={"X-Request-ID": "scan-43"}
        )
        assert response.status_code == 404
        assert response.json()["request_id"] == "scan-43"


@pytest.mark.asyncio
class TestSecurityHeaders:

    async def test_strict_headers_outside_development(self, client):
        response = await client.get("/api/auth/health")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "SAMEORIGIN"
        assert response.headers["Referrer-Policy"] == "no-referrer"
        assert "default-src 'self'" in response.headers["Content-Security-Policy"]
        assert response.headers["Cross-Origin-Embedder-Policy"] == "require-corp"

    async def test_relaxed_headers(self):
        async def ok(request):
            return PlainTextResponse("ok")

        app = Starlette(
            routes=[Route("/", ok)],
            middleware=[Middleware(SecurityHeadersMiddleware, strict=False)],
        )
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            response = await ac.get("/")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert "Content-Security-Policy" not in response.headers


@pytest.mark.asyncio
class TestBodyLimit:

    async def test_oversized_body_rejected(self, client):
        response = await client.post(
            "/api/labels",
            content=b"x" * (settings.max_body_size + 1),
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 413
        body = response.json()
        assert body["error"] == "payload_too_large"
        assert body["message"] == (
            f"Request body too large. Maximum allowed size is {settings.max_body_size} bytes."
        )
        assert body["request_id"] == response.headers["X-Request-ID"]

    async def test_streamed_body_counted(self, client):
        async def chunks():
            for _ in range(10):
                yield b"x" * settings.max_body_size

        # No Content-Length: httpx sends the generator chunked
        response = await client.post(
            "/api/labels", content=chunks(), headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 413
        assert response.json()["error"] == "payload_too_large"

    async def test_small_streamed_body_reaches_route(self, client, make_label_payload):
        payload = json.dumps(make_label_payload()).encode()

        async def chunks():
            yield payload[:50]
            yield payload[50:]

        response = await client.post(
            "/api/labels", content=chunks(), headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 201
        assert response.json()["identifierCode"] == "ABC123"


@pytest.mark.asyncio
class TestCORS:

    async def test_preflight_allowed_origin(self, client):
        response = await client.options(
            "/api/labels",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Content-Type, Authorization",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
        assert response.headers["access-control-allow-credentials"] == "true"
        assert response.headers["access-control-max-age"] == "86400"

    async def test_preflight_unknown_origin(self, client):
        response = await client.options(
            "/api/labels",
            headers={
                "Origin": "https://evil.example.com",
                "Access-Control-Request-Method": "POST",
            },
        )

        assert response.status_code == 400
        assert "access-control-allow-origin" not in response.headers

    async def test_simple_request_exposes_request_id(self, client):
        response = await client.get(
            "/api/auth/health", headers={"Origin": "http://localhost:5173"}
        )

        assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
        assert "X-Request-ID" in response.headers["access-control-expose-headers"]


@pytest.mark.asyncio
class TestHealth:

    async def test_healthy(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["uptime_seconds"] >= 0

    async def test_unhealthy_when_store_unreachable(self, client, monkeypatch):
        monkeypatch.setattr(
            "elabel.routes.health.ping", AsyncMock(side_effect=ConnectionRefusedError("down"))
        )

        response = await client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"
        assert response.json()["database"] == "disconnected"


@pytest.mark.asyncio
class TestErrorEnvelope:

    async def test_unknown_route(self, client):
        response = await client.get("/api/nothing-here")

        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "not_found"
        assert body["message"] == "Not Found - /api/nothing-here"
        assert body["request_id"] == response.headers["X-Request-ID"]

    async def test_wrong_method(self, client):
        response = await client.delete("/api/labels")

        assert response.status_code == 405
        assert response.json()["error"] == "http_error"
        assert response.json()["message"] == "Method Not Allowed"


class TestLoopExceptionHandler:

    def test_logs_and_signals_shutdown(self, monkeypatch, caplog):
        kill = MagicMock()
        monkeypatch.setattr(main_module.os, "kill", kill)

        with caplog.at_level(logging.CRITICAL, logger="elabel.main"):
            handle_loop_exception(
                MagicMock(),
                {"message": "Task exception was never retrieved", "exception": RuntimeError("boom")},
            )

        kill.assert_called_once_with(main_module.os.getpid(), signal.SIGTERM)
        assert "Task exception was never retrieved" in caplog.text


class TestSetupLogging:

    def test_access_log_file_attached_once(self, monkeypatch, tmp_path):
        # Leave pytest's own root handlers in place
        monkeypatch.setattr(main_module.logging, "basicConfig", MagicMock())
        monkeypatch.setattr(settings, "access_log_dir", str(tmp_path / "logs"))
        access_logger = logging.getLogger(ACCESS_LOGGER_NAME)

        setup_logging()
        setup_logging()

        handlers = [h for h in access_logger.handlers if isinstance(h, RotatingFileHandler)]
        try:
            assert len(handlers) == 1
            assert handlers[0].maxBytes == 10 * 1024 * 1024
            assert handlers[0].backupCount == 7
            assert (tmp_path / "logs" / "access.log").exists()
        finally:
            for handler in handlers:
                access_logger.removeHandler(handler)
                handler.close()


@pytest.mark.asyncio
class TestLifespan:

    @pytest.fixture(autouse=True)
    def _quiet_logging_setup(self, monkeypatch):
        monkeypatch.setattr(main_module, "setup_logging", MagicMock())

    async def test_missing_secret_aborts_startup(self, monkeypatch):
        monkeypatch.setattr(settings, "jwt_secret", "")
        verify = AsyncMock()
        monkeypatch.setattr(main_module, "verify_connection", verify)

        with pytest.raises(ValueError, match="JWT_SECRET"):
            async with lifespan(MagicMock()):
                pass
        verify.assert_not_awaited()

    async def test_unreachable_store_aborts_startup(self, monkeypatch):
        monkeypatch.setattr(
            main_module, "verify_connection", AsyncMock(side_effect=OSError("refused"))
        )

        with pytest.raises(OSError):
            async with lifespan(MagicMock()):
                pass

    async def test_clean_start_and_stop(self, monkeypatch):
        monkeypatch.setattr(main_module, "verify_connection", AsyncMock())
        dispose = AsyncMock()
        monkeypatch.setattr(main_module, "dispose_engine", dispose)
        loop = asyncio.get_running_loop()
        previous = loop.get_exception_handler()

        try:
            async with lifespan(MagicMock()):
                assert loop.get_exception_handler() is handle_loop_exception
        finally:
            loop.set_exception_handler(previous)

        dispose.assert_awaited_once_with(timeout=settings.shutdown_timeout)

    async def test_shutdown_timeout_forces_exit(self, monkeypatch):
        monkeypatch.setattr(main_module, "verify_connection", AsyncMock())
        monkeypatch.setattr(
            main_module, "dispose_engine", AsyncMock(side_effect=asyncio.TimeoutError())
        )
        force_exit = MagicMock()
        monkeypatch.setattr(main_module.os, "_exit", force_exit)
        loop = asyncio.get_running_loop()
        previous = loop.get_exception_handler()

        try:
            async with lifespan(MagicMock()):
                pass
        finally:
            loop.set_exception_handler(previous)

        force_exit.assert_called_once_with(1)
