"""Tests for the site content endpoints."""

import base64
from datetime import date, datetime
from decimal import Decimal

from portal.app.api import site
from portal.app.api.serializers import format_date, serialize_row, to_base64


class TestSerializers:

    def test_to_base64_encodes_bytes_and_memoryview(self):
        assert to_base64(b"\x89PNG") == base64.b64encode(b"\x89PNG").decode()
        assert to_base64(memoryview(b"abc")) == "YWJj"
        assert to_base64(bytearray(b"abc")) == "YWJj"

    def test_to_base64_leaves_other_values(self):
        assert to_base64("text") == "text"
        assert to_base64(None) is None

    def test_to_base64_empty_binary_is_none(self):
        assert to_base64(b"") is None
        assert to_base64(memoryview(b"")) is None
        assert to_base64(bytearray()) is None

    def test_format_date(self):
        assert format_date(date(2024, 3, 7)) == "07/03/2024"
        assert format_date(datetime(2024, 12, 31, 23, 59)) == "31/12/2024"
        assert format_date(None) is None

    def test_serialize_row_only_formats_named_dates(self):
        row = {
            "fecha": date(2024, 1, 2),
            "creado": date(2024, 1, 2),
            "precio": Decimal("1.50"),
            "logo": None,
        }
        out = serialize_row(row, date_fields=("fecha",))
        assert out["fecha"] == "02/01/2024"
        assert out["creado"] == "2024-01-02"
        assert out["precio"] == 1.5
        assert out["logo"] is None


class TestNoticias:

    def test_get_noticia_returns_single_object(self, client, pool):
        image = b"\xff\xd8\xff\xe0binary"
        pool.program(site.NOTICIA_SQL, [{
            "id": 7,
            "titulo": "Nueva sede",
            "noticia": "Texto",
            "link": None,
            "destacar": True,
            "imagen": image,
            "fecha": date(2024, 5, 9),
        }])

        resp = client.get("/api/get-noticia/7")

        assert resp.status_code == 200
        data = resp.json()
        assert isinstance(data, dict)
        assert data["fecha"] == "09/05/2024"
        assert base64.b64decode(data["imagen"], validate=True) == image
        assert pool.calls == [(site.NOTICIA_SQL, {"id": 7})]

    def test_get_noticia_not_found(self, client, pool):
        resp = client.get("/api/get-noticia/999")

        assert resp.status_code == 404
        assert resp.json() == {"error": "Noticia no encontrada"}

    def test_get_noticia_non_numeric_id_rejected_without_query(self, client, pool):
        resp = client.get("/api/get-noticia/abc")

        assert resp.status_code == 400
        assert "error" in resp.json()
        assert pool.calls == []

    def test_get_noticia_database_error(self, client, pool):
        pool.fail(site.NOTICIA_SQL)

        resp = client.get("/api/get-noticia/1")

        assert resp.status_code == 500
        assert resp.json() == {"error": "Error al obtener la noticia"}

    def test_get_noticias_formats_dates(self, client, pool):
        pool.program(site.NOTICIAS_SQL, [
            {"id": 3, "titulo": "c", "imagen": b"3", "fecha": date(2024, 3, 1)},
            {"id": 2, "titulo": "b", "imagen": None, "fecha": date(2024, 2, 1)},
        ])

        resp = client.get("/api/get-noticias")

        assert resp.status_code == 200
        data = resp.json()
        assert [n["fecha"] for n in data] == ["01/03/2024", "01/02/2024"]
        assert data[0]["imagen"] == "Mw=="
        assert data[1]["imagen"] is None

    def test_get_noticias_database_error(self, client, pool):
        pool.fail(site.NOTICIAS_SQL)

        resp = client.get("/api/get-noticias")

        assert resp.status_code == 500
        assert resp.json() == {"error": "Error al obtener las noticias"}

    def test_get_noticias_destacadas(self, client, pool):
        pool.program(site.NOTICIAS_DESTACADAS_SQL, [{"id": 1, "titulo": "x", "imagen": b"i"}])

        resp = client.get("/api/get-noticias-destacadas")

        assert resp.status_code == 200
        assert resp.json() == [{"id": 1, "titulo": "x", "imagen": "aQ=="}]


class TestServices:

    def test_unknown_service_returns_404_without_second_query(self, client, pool):
        resp = client.get("/api/get-service/nope")

        assert resp.status_code == 404
        assert resp.json() == {"error": "Service not found"}
        assert pool.calls == [(site.SERVICE_BY_NAME_SQL, {"nombre": "nope"})]

    def test_service_with_product_lines(self, client, pool):
        pool.program(site.SERVICE_BY_NAME_SQL, [
            {"id": 4, "nombre": "Redes", "descripcion": "d", "contacto": "c", "img": b"a", "img2": None},
        ])
        pool.program(site.PRODUCT_LINES_SQL, [
            {"id": 1, "titulo": "Fibra", "descripcion": "f", "img": None},
            {"id": 2, "titulo": "Radio", "descripcion": "r", "img": None},
        ])

        resp = client.get("/api/get-service/Redes")

        assert resp.status_code == 200
        data = resp.json()
        assert data["service"]["nombre"] == "Redes"
        assert data["service"]["img"] == "YQ=="
        assert [line["titulo"] for line in data["productLines"]] == ["Fibra", "Radio"]
        assert pool.calls[1] == (site.PRODUCT_LINES_SQL, {"servicio_id": 4})

    def test_get_services_database_error_is_generic(self, client, pool):
        pool.fail(site.SERVICES_SQL)

        resp = client.get("/api/get-services")

        assert resp.status_code == 500
        assert resp.json() == {"error": "Database error."}


class TestListings:

    def test_get_eventos_formats_both_dates(self, client, pool):
        pool.program(site.EVENTOS_SQL, [{
            "id": 1,
            "titulo": "Feria",
            "fechai": date(2024, 6, 1),
            "fechaf": date(2024, 6, 3),
            "imagen": b"img",
        }])

        resp = client.get("/api/get-eventos")

        assert resp.status_code == 200
        evento = resp.json()[0]
        assert evento["fechai"] == "01/06/2024"
        assert evento["fechaf"] == "03/06/2024"
        assert evento["imagen"] == "aW1n"

    def test_get_eventos_database_error(self, client, pool):
        pool.fail(site.EVENTOS_SQL)

        resp = client.get("/api/get-eventos")

        assert resp.status_code == 500
        assert resp.json() == {"error": "Error al obtener los eventos"}

    def test_get_empresas_details_logo_base64_or_null(self, client, pool):
        pool.program(site.EMPRESAS_DETAILS_SQL, [
            {"id": 1, "empresa": "A", "logo": b"logo", "especializada": True},
            {"id": 2, "empresa": "B", "logo": None, "especializada": False},
            {"id": 3, "empresa": "C", "logo": b"", "especializada": False},
        ])

        resp = client.get("/api/get-empresas-details")

        assert resp.status_code == 200
        assert [e["logo"] for e in resp.json()] == ["bG9nbw==", None, None]

    def test_empty_tables_return_empty_arrays(self, client):
        for path in (
            "/api/get-presentacion",
            "/api/get-services",
            "/api/get-preguntas-frecuentes",
            "/api/get-empresas",
        ):
            resp = client.get(path)
            assert resp.status_code == 200, path
            assert resp.json() == []

    def test_reads_are_idempotent(self, client, pool):
        pool.program(site.EMPRESAS_SQL, [{"empresa": "A"}, {"empresa": "B"}])

        first = client.get("/api/get-empresas")
        second = client.get("/api/get-empresas")

        assert first.json() == second.json() == [{"empresa": "A"}, {"empresa": "B"}]
