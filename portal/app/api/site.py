"""Read-only site content endpoints.

Each endpoint runs one fixed, parameterized query against the ``sitio``
schema (two for a service and its product lines) and returns the rows as
JSON. Binary image columns are base64 encoded and date columns rendered as
DD/MM/YYYY after ordering on the real date.
"""

from typing import Any

from fastapi import APIRouter

from portal.app.api.serializers import serialize_row, serialize_rows
from portal.app.core.logging import get_logger
from portal.app.db.dependencies import PoolDep
from portal.app.exceptions import DatabaseError, NotFoundError

router = APIRouter(prefix="/api", tags=["site"])
logger = get_logger(__name__)

PRESENTACION_SQL = """
    SELECT id, titulo, qsomos, objetivo, qhacemos, clogramos, descripcion, imagen, img
    FROM sitio.presentacion
"""

NOTICIAS_DESTACADAS_SQL = """
    SELECT id, titulo, noticia, imagen, link
    FROM sitio.noticias
    WHERE destacar = true
    ORDER BY id DESC
"""

NOTICIAS_SQL = """
    SELECT id, titulo, noticia, link, destacar, imagen, fecha
    FROM sitio.noticias
    ORDER BY fecha DESC
    LIMIT 3
"""

NOTICIA_SQL = """
    SELECT id, titulo, noticia, link, destacar, imagen, fecha
    FROM sitio.noticias
    WHERE id = :id
"""

SERVICES_SQL = """
    SELECT id, nombre, descripcion, img, link
    FROM sitio.productos_servicios
    ORDER BY id ASC
"""

SERVICE_BY_NAME_SQL = """
    SELECT id, nombre, descripcion, contacto, img, img2
    FROM sitio.productos_servicios
    WHERE nombre = :nombre
"""

PRODUCT_LINES_SQL = """
    SELECT id, titulo, descripcion, img
    FROM sitio.lineaprod
    WHERE servicioid = :servicio_id
    ORDER BY id ASC
"""

PREGUNTAS_SQL = """
    SELECT id, pregunta, respuesta, fecha
    FROM sitio.preguntas
    ORDER BY id ASC
"""

EMPRESAS_SQL = "SELECT empresa FROM sitio.empresas ORDER BY id"

EMPRESAS_DETAILS_SQL = """
    SELECT id, empresa, descripcion, direccion, telf, mail, sitio, logo, especializada
    FROM sitio.empresas
    ORDER BY especializada DESC, empresa ASC
"""

EVENTOS_SQL = """
    SELECT id, titulo, fechai, fechaf, descripcion, link, descarga, lugar, imagen
    FROM sitio.eventos
    ORDER BY fechai DESC
"""


@router.get("/get-presentacion")
async def get_presentacion(pool: PoolDep) -> list[dict[str, Any]]:
    """Institutional presentation copy."""
    return serialize_rows(await pool.execute(PRESENTACION_SQL))


@router.get("/get-noticias-destacadas")
async def get_noticias_destacadas(pool: PoolDep) -> list[dict[str, Any]]:
    return serialize_rows(await pool.execute(NOTICIAS_DESTACADAS_SQL))


@router.get("/get-noticias")
async def get_noticias(pool: PoolDep) -> list[dict[str, Any]]:
    """Latest three news items."""
    try:
        rows = await pool.execute(NOTICIAS_SQL)
    except DatabaseError as exc:
        raise DatabaseError("Error al obtener las noticias") from exc
    return serialize_rows(rows, date_fields=("fecha",))


@router.get("/get-noticia/{noticia_id}")
async def get_noticia(noticia_id: int, pool: PoolDep) -> dict[str, Any]:
    """Single news item by numeric id."""
    try:
        rows = await pool.execute(NOTICIA_SQL, {"id": noticia_id})
    except DatabaseError as exc:
        raise DatabaseError("Error al obtener la noticia") from exc
    if not rows:
        raise NotFoundError("Noticia no encontrada")
    return serialize_row(rows[0], date_fields=("fecha",))


@router.get("/get-services")
async def get_services(pool: PoolDep) -> list[dict[str, Any]]:
    return serialize_rows(await pool.execute(SERVICES_SQL))


@router.get("/get-service/{nombre}")
async def get_service(nombre: str, pool: PoolDep) -> dict[str, Any]:
    """A service looked up by name, together with its product lines.

    Unknown names return 404 without querying product lines.
    """
    services = await pool.execute(SERVICE_BY_NAME_SQL, {"nombre": nombre})
    if not services:
        raise NotFoundError("Service not found")

    service = services[0]
    product_lines = await pool.execute(PRODUCT_LINES_SQL, {"servicio_id": service["id"]})
    return {
        "service": serialize_row(service),
        "productLines": serialize_rows(product_lines),
    }


@router.get("/get-preguntas-frecuentes")
async def get_preguntas_frecuentes(pool: PoolDep) -> list[dict[str, Any]]:
    return serialize_rows(await pool.execute(PREGUNTAS_SQL))


@router.get("/get-empresas")
async def get_empresas(pool: PoolDep) -> list[dict[str, Any]]:
    """Partner company names only."""
    return serialize_rows(await pool.execute(EMPRESAS_SQL))


@router.get("/get-empresas-details")
async def get_empresas_details(pool: PoolDep) -> list[dict[str, Any]]:
    """Full company records; specialised companies first, then by name."""
    return serialize_rows(await pool.execute(EMPRESAS_DETAILS_SQL))


@router.get("/get-eventos")
async def get_eventos(pool: PoolDep) -> list[dict[str, Any]]:
    try:
        rows = await pool.execute(EVENTOS_SQL)
    except DatabaseError as exc:
        raise DatabaseError("Error al obtener los eventos") from exc
    return serialize_rows(rows, date_fields=("fechai", "fechaf"))
