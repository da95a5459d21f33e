"""Tests for the assembled application: config, health, error rendering."""

from fastapi.testclient import TestClient

from portal.app.core.config import settings


def test_config_endpoint_reflects_host_header(client):
    resp = client.get("/api/config", headers={"Host": "portal.example.com:9000"})

    assert resp.status_code == 200
    assert resp.json() == {
        "server": "portal.example.com",
        "port": "9000",
        "apiUrl": "http://portal.example.com:9000/api",
    }


def test_config_endpoint_falls_back_to_configured_port(client):
    resp = client.get("/api/config")

    data = resp.json()
    assert data["server"] == "testserver"
    assert data["port"] == str(settings.port)
    assert data["apiUrl"] == "http://testserver/api"


def test_health_reports_database_and_admission(client):
    resp = client.get("/api/health")

    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["components"]["database"]["status"] == "ok"
    assert "connections" in data["components"]["admission"]


def test_health_degraded_when_database_down(client, pool):
    pool.healthy = False

    data = client.get("/api/health").json()

    assert data["status"] == "degraded"
    assert data["components"]["database"]["status"] == "error"


def test_unknown_api_route_returns_json_404(client):
    resp = client.get("/api/does-not-exist")

    assert resp.status_code == 404
    assert "error" in resp.json()


def test_unhandled_exception_is_generic_500(build_app):
    app = build_app()

    @app.get("/api/boom")
    async def boom():
        raise RuntimeError("connection string with password")

    client = TestClient(app, raise_server_exceptions=False)
    resp = client.get("/api/boom")

    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal server error."}
    assert "password" not in resp.text


def test_request_id_echoed_and_generated(client):
    resp = client.get("/api/get-empresas", headers={"X-Request-ID": "req-123"})
    assert resp.headers["X-Request-ID"] == "req-123"

    generated = client.get("/api/get-empresas").headers["X-Request-ID"]
    assert len(generated) == 36


def test_overlong_request_id_replaced(client):
    resp = client.get("/api/get-empresas", headers={"X-Request-ID": "x" * 500})

    assert resp.headers["X-Request-ID"] != "x" * 500


def test_lifespan_starts_and_stops_admission(build_app):
    app = build_app()
    admission = app.state.admission

    with TestClient(app) as client:
        assert client.get("/api/health").status_code == 200
        assert admission._sweep_task is not None

    assert admission._sweep_task is None


def test_security_headers_on_every_response(build_app):
    app = build_app(load_shedding_enabled=True)
    monitor = app.state.admission.monitor
    client = TestClient(app)

    responses = [
        client.get("/api/get-empresas"),
        client.get("/api/does-not-exist"),
        client.get("/wp-login.php"),
    ]
    monitor.current_lag_ms = monitor.max_lag_ms * 3
    monitor._rand = lambda: 0.0
    responses.append(client.get("/api/get-empresas"))

    assert [resp.status_code for resp in responses] == [200, 404, 403, 503]
    for resp in responses:
        assert resp.headers["X-Frame-Options"] == "SAMEORIGIN"
        assert "default-src 'self'" in resp.headers["Content-Security-Policy"]


def test_security_headers_on_unhandled_500(build_app):
    app = build_app()

    @app.get("/api/boom")
    async def boom():
        raise RuntimeError("boom")

    resp = TestClient(app, raise_server_exceptions=False).get("/api/boom")

    assert resp.status_code == 500
    assert resp.headers["X-Frame-Options"] == "SAMEORIGIN"
    assert "default-src 'self'" in resp.headers["Content-Security-Policy"]


def test_debug_setting_reaches_app(build_app):
    assert build_app().debug is False
    assert build_app(debug=True).debug is True


def test_cors_allows_any_origin(client):
    resp = client.get("/api/get-empresas", headers={"Origin": "https://elsewhere.example"})

    assert resp.headers["access-control-allow-origin"] == "*"
