"""Tests for application wiring: error rendering, gate headers and sweeps."""

from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from api.app import crate_match_error_handler
from api.middleware.headers import ResponseHeadersMiddleware, queue_response_header
from shared.exceptions import CrateMatchError, NotFoundError


def _app() -> FastAPI:
    app = FastAPI()
    app.add_exception_handler(CrateMatchError, crate_match_error_handler)
    app.add_middleware(ResponseHeadersMiddleware)

    @app.get("/ok")
    async def ok(request: Request):
        queue_response_header(request, "X-Auto-Downgraded", "true")
        return {"ok": True}

    @app.get("/missing")
    async def missing(request: Request):
        queue_response_header(request, "X-New-Access-Token", "fresh")
        raise NotFoundError("Nothing here", code="NOT_FOUND", details={"id": "x"})

    return app


class TestErrorHandler:
    def test_renders_error_body(self):
        response = TestClient(_app()).get("/missing")

        assert response.status_code == 404
        assert response.json() == {"error": "NOT_FOUND", "message": "Nothing here", "id": "x"}


class TestResponseHeaders:
    def test_queued_headers_are_stamped(self):
        response = TestClient(_app()).get("/ok")

        assert response.headers["X-Auto-Downgraded"] == "true"

    def test_error_responses_carry_queued_headers(self):
        response = TestClient(_app()).get("/missing")

        assert response.headers["X-New-Access-Token"] == "fresh"


class TestBackgroundSweeps:
    def test_container_schedules_every_cache_sweep(self, container, test_settings):
        scheduler = container.build_scheduler()

        intervals = {task.name: task.interval for task in scheduler.tasks}
        assert intervals == {
            "session-cache": test_settings.session_cache_sweep_seconds,
            "entitlement-cache": test_settings.entitlement_cache_sweep_seconds,
            "rate-limiter": test_settings.rate_limit_sweep_seconds,
            "database-cache": test_settings.database_cache_sweep_seconds,
        }

    def test_lifespan_creates_working_directories(self, client, test_settings):
        with client:
            assert test_settings.staging_dir.is_dir()
            assert test_settings.crates_dir.is_dir()
