"""Tests for RequestLogMiddleware request-ID handling and log line."""

import logging

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from httpx import ASGITransport, AsyncClient

from src.uh_gateway.middleware.request_log import RequestLogMiddleware


@pytest.fixture
async def http() -> AsyncClient:
    app = FastAPI()
    app.add_middleware(RequestLogMiddleware)

    @app.get("/echo")
    async def echo(request: Request) -> dict:
        return {"request_id": request.state.request_id}

    @app.get("/cached")
    async def cached() -> JSONResponse:
        return JSONResponse({"ok": True}, headers={"X-Cache": "HIT"})

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


class TestRequestId:
    async def test_generated_when_absent(self, http) -> None:
        resp = await http.get("/echo")
        rid = resp.headers["x-request-id"]
        assert rid.startswith("req_")
        assert len(rid) == 16
        assert resp.json()["request_id"] == rid

    async def test_incoming_id_is_honoured(self, http) -> None:
        resp = await http.get("/echo", headers={"X-Request-ID": "trace-abc-123"})
        assert resp.headers["x-request-id"] == "trace-abc-123"
        assert resp.json()["request_id"] == "trace-abc-123"

    async def test_oversized_incoming_id_is_replaced(self, http) -> None:
        resp = await http.get("/echo", headers={"X-Request-ID": "x" * 200})
        assert resp.headers["x-request-id"].startswith("req_")


class TestLogLine:
    async def test_logs_method_path_status(self, http, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="uh.request"):
            await http.get("/echo", headers={"X-Request-ID": "rid-1"})
        line = caplog.records[-1].getMessage()
        assert line.startswith("[GET] /echo → 200")
        assert "rid-1" in line
        assert "cache=" not in line

    async def test_logs_cache_marker(self, http, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="uh.request"):
            await http.get("/cached")
        assert caplog.records[-1].getMessage().endswith("cache=HIT")
