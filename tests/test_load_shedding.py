"""Tests for the loop lag monitor and load shedding middleware."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from portal.app.middleware.load_shedding import OVERLOADED_MESSAGE
from portal.app.services.admission import AdmissionState
from portal.app.services.connection_tracker import ConnectionTracker
from portal.app.middleware.rate_limit import InMemoryRateLimiter
from portal.app.services.loop_monitor import LoopLagMonitor


class TestLoopLagMonitor:

    def test_not_overloaded_under_threshold(self):
        monitor = LoopLagMonitor(max_lag_ms=100, rand=lambda: 0.0)
        monitor.current_lag_ms = 100

        assert monitor.is_overloaded() is False

    def test_always_overloaded_at_twice_threshold(self):
        monitor = LoopLagMonitor(max_lag_ms=100, rand=lambda: 0.999)
        monitor.current_lag_ms = 200

        assert monitor.is_overloaded() is True

    def test_shedding_probability_scales_with_excess(self):
        monitor = LoopLagMonitor(max_lag_ms=100)
        monitor.current_lag_ms = 150

        monitor._rand = lambda: 0.49
        assert monitor.is_overloaded() is True
        monitor._rand = lambda: 0.51
        assert monitor.is_overloaded() is False

    def test_record_smooths_samples(self):
        monitor = LoopLagMonitor(max_lag_ms=100, smoothing=1 / 3)

        monitor.record(300)
        assert monitor.current_lag_ms == pytest.approx(100)

        monitor.record(300)
        assert monitor.current_lag_ms == pytest.approx(300 / 3 + 2 / 3 * 100)

    def test_negative_samples_clamped(self):
        monitor = LoopLagMonitor()

        monitor.record(-5)

        assert monitor.current_lag_ms == 0

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        monitor = LoopLagMonitor(interval_ms=10)

        monitor.start()
        assert monitor.running is True
        await asyncio.sleep(0.03)
        await monitor.stop()

        assert monitor.running is False


def _admission_with(monitor: LoopLagMonitor) -> AdmissionState:
    return AdmissionState(
        tracker=ConnectionTracker(),
        limiter=InMemoryRateLimiter(),
        monitor=monitor,
    )


class TestLoadSheddingMiddleware:

    def test_overloaded_server_answers_503_without_db_access(self, build_app, pool):
        monitor = LoopLagMonitor(max_lag_ms=100, rand=lambda: 0.0)
        monitor.current_lag_ms = 250
        client = TestClient(build_app(admission=_admission_with(monitor), load_shedding_enabled=True))

        resp = client.get("/api/get-empresas")

        assert resp.status_code == 503
        assert resp.json() == {"error": OVERLOADED_MESSAGE}
        assert pool.calls == []

    def test_healthy_server_passes_requests(self, build_app):
        monitor = LoopLagMonitor(max_lag_ms=100, rand=lambda: 0.0)
        client = TestClient(build_app(admission=_admission_with(monitor), load_shedding_enabled=True))

        assert client.get("/api/get-empresas").status_code == 200

    def test_whitelist_runs_before_load_shedding(self, build_app):
        monitor = LoopLagMonitor(max_lag_ms=100, rand=lambda: 0.0)
        monitor.current_lag_ms = 250
        client = TestClient(build_app(admission=_admission_with(monitor), load_shedding_enabled=True))

        assert client.get("/not-allowed").status_code == 403
