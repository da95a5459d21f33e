"""Row serialization helpers shared by the site endpoints."""

import base64
from datetime import date, datetime
from typing import Any, Iterable, Mapping

from fastapi.encoders import jsonable_encoder

DATE_FORMAT = "%d/%m/%Y"


def to_base64(value: Any) -> Any:
    """Base64-encode binary column values; anything else is returned as is.

    An empty binary value is treated like a missing one and becomes None.
    """
    if isinstance(value, memoryview):
        value = value.tobytes()
    if isinstance(value, (bytes, bytearray)):
        if not value:
            return None
        return base64.b64encode(bytes(value)).decode("ascii")
    return value


def format_date(value: Any) -> Any:
    """Render a date column as DD/MM/YYYY. None and strings pass through."""
    if isinstance(value, (date, datetime)):
        return value.strftime(DATE_FORMAT)
    return value


def serialize_row(row: Mapping[str, Any], date_fields: Iterable[str] = ()) -> dict[str, Any]:
    """Make one database row JSON-ready.

    Binary values become base64 strings, the named date columns are
    formatted as DD/MM/YYYY, and the rest goes through FastAPI's encoder
    (ISO dates, numeric Decimals).
    """
    date_fields = set(date_fields)
    out: dict[str, Any] = {}
    for key, value in row.items():
        value = to_base64(value)
        if key in date_fields:
            value = format_date(value)
        out[key] = value
    return jsonable_encoder(out)


def serialize_rows(
    rows: Iterable[Mapping[str, Any]], date_fields: Iterable[str] = ()
) -> list[dict[str, Any]]:
    date_fields = tuple(date_fields)
    return [serialize_row(row, date_fields) for row in rows]
