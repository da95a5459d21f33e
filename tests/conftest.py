"""Shared fixtures: an in-memory query pool and app/client factories."""

from typing import Any, Callable, Optional

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from portal.app.core.config import Settings
from portal.app.db.pool import get_query_pool
from portal.app.exceptions import DatabaseError
from portal.app.main import create_app
from portal.app.services.admission import AdmissionState


class FakePool:
    """Stands in for QueryPool; answers from programmed results and records calls."""

    def __init__(self):
        self.results: dict[str, Any] = {}
        self.raw_results: list[dict[str, Any]] = []
        self.calls: list[tuple[str, Optional[dict]]] = []
        self.raw_calls: list[str] = []
        self.healthy = True

    def program(self, sql: str, result: Any) -> None:
        """Rows (or an exception instance) to return for ``sql``."""
        self.results[sql] = result

    def fail(self, sql: str) -> None:
        self.results[sql] = DatabaseError()

    async def execute(self, sql: str, params: Optional[dict] = None) -> list[dict[str, Any]]:
        self.calls.append((sql, params))
        result = self.results.get(sql, [])
        if isinstance(result, Exception):
            raise result
        return result

    async def execute_raw(self, sql: str) -> list[dict[str, Any]]:
        self.raw_calls.append(sql)
        if isinstance(self.raw_results, Exception):
            raise self.raw_results
        return self.raw_results

    async def ping(self) -> bool:
        return self.healthy

    def status(self) -> dict:
        return {"size": 1, "checkedin": 1, "checkedout": 0, "overflow": 0}


def make_settings(**overrides: Any) -> Settings:
    """Settings for tests: no load shedding, generous limits."""
    values: dict[str, Any] = {
        "load_shedding_enabled": False,
        "rate_limit_requests_per_minute": 500,
        "request_timeout_seconds": 5.0,
        "raw_query_enabled": True,
        "cors_origins": ["*"],
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def pool() -> FakePool:
    return FakePool()


@pytest.fixture
def build_app(pool: FakePool) -> Callable[..., FastAPI]:
    """Factory returning a fresh app (and admission state) wired to ``pool``."""

    def _build(admission: Optional[AdmissionState] = None, **overrides: Any) -> FastAPI:
        settings = make_settings(**overrides)
        app = create_app(settings, admission=admission)
        app.dependency_overrides[get_query_pool] = lambda: pool
        return app

    return _build


@pytest.fixture
def client(build_app: Callable[..., FastAPI]) -> TestClient:
    return TestClient(build_app())
