"""
Response envelope helpers.
"""

from typing import Any, Optional, Sequence
from urllib.parse import quote

from fastapi import Response
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel

from logiops.data.models.common import Pagination
from logiops.tools.spreadsheets import ExportFile


def ok(data: Any = None) -> dict[str, Any]:
    """Success envelope."""
    return {"ok": True, "data": jsonable_encoder(data)}


def error_body(code: str, message: str, details: Any = None) -> dict[str, Any]:
    """Error envelope."""
    error: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        error["details"] = jsonable_encoder(details)
    return {"ok": False, "error": error}


def dump(schema: type[BaseModel], obj: Any) -> dict[str, Any]:
    return schema.model_validate(obj).model_dump(mode="json")


def paginated(
    schema: type[BaseModel],
    items: Sequence[Any],
    pagination: Pagination,
    extra: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Envelope for list endpoints: ``{items, pagination}``."""
    data: dict[str, Any] = {
        "items": [dump(schema, item) for item in items],
        "pagination": pagination.model_dump(),
    }
    if extra:
        data.update(extra)
    return ok(data)


def download(export: ExportFile) -> Response:
    """File download response (RFC 5987 file name for non-ASCII names)."""
    disposition = f"attachment; filename*=UTF-8''{quote(export.filename)}"
    return Response(
        content=export.content,
        media_type=export.media_type,
        headers={"Content-Disposition": disposition},
    )
