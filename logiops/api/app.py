"""
FastAPI application factory.

Wires the configuration, logging, database and routers together and maps
every error onto the JSON envelope.
"""

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException

from logiops import __version__
from logiops.api.responses import error_body
from logiops.api.routes import ROUTERS
from logiops.core.config import ConfigManager, EnvironmentSettings, get_config
from logiops.core.errors import LogiOpsError
from logiops.core.logging import configure_logging, get_logger
from logiops.data.database import create_engine_from_settings, create_session_factory, init_db

logger = get_logger(component="api")

HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
}


def _field_errors(errors: list[dict[str, Any]]) -> list[dict[str, str]]:
    fields = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "form")]
        fields.append({"field": ".".join(loc), "message": error.get("msg", "Invalid value")})
    return fields


def _validation_response(errors: list[dict[str, Any]]) -> JSONResponse:
    fields = _field_errors(errors)
    message = "; ".join(f"{f['field']}: {f['message']}" if f["field"] else f["message"] for f in fields)
    return JSONResponse(
        status_code=400,
        content=error_body("VALIDATION_ERROR", message or "Invalid request", fields),
    )


def register_error_handlers(app: FastAPI, production: bool = False) -> None:
    """Render all errors as ``{"ok": false, "error": {...}}``."""

    @app.exception_handler(LogiOpsError)
    async def _logiops_error(request: Request, exc: LogiOpsError) -> JSONResponse:
        logger.warning(
            "request_failed",
            path=request.url.path,
            method=request.method,
            code=exc.code,
            error=exc.message,
        )
        return JSONResponse(status_code=exc.status_code, content={"ok": False, "error": exc.to_dict()})

    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _validation_response(list(exc.errors()))

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
        return JSONResponse(status_code=exc.status_code, content=error_body(code, str(exc.detail)))

    @app.exception_handler(Exception)
    async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled_error", path=request.url.path, method=request.method, error=str(exc))
        message = "Internal server error" if production else str(exc) or exc.__class__.__name__
        return JSONResponse(status_code=500, content=error_body("INTERNAL_ERROR", message))


def create_app(
    settings: Optional[EnvironmentSettings] = None,
    session_factory: Optional[sessionmaker[Session]] = None,
    config_manager: Optional[ConfigManager] = None,
) -> FastAPI:
    """
    Build the API application.

    Args:
        settings: Environment settings; read from the environment when omitted
        session_factory: Session factory; built from DATABASE_URL (and the
            tables created) when omitted
        config_manager: Business configuration; the process-wide one when omitted

    Returns:
        Configured FastAPI app with every router mounted under /api
    """
    config_manager = config_manager or get_config()
    settings = settings or config_manager.env
    configure_logging(settings)

    if session_factory is None:
        engine = create_engine_from_settings(settings)
        init_db(engine)
        session_factory = create_session_factory(engine)

    app = FastAPI(title="LogiOps", version=__version__)
    app.state.session_factory = session_factory
    app.state.config_manager = config_manager

    register_error_handlers(app, production=settings.is_production)
    for router in ROUTERS:
        app.include_router(router, prefix="/api")

    logger.info("app_created", env=settings.app_env, routers=len(ROUTERS))
    return app
