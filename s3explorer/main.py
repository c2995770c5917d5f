import logging
from datetime import datetime, timezone

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic.alias_generators import to_camel
from sqlalchemy import inspect, text
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import ArgumentError, OperationalError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException

from s3explorer.api.deps import get_db
from s3explorer.api.routers.buckets import router as buckets_router
from s3explorer.api.routers.connections import router as connections_router
from s3explorer.api.routers.objects import router as objects_router
from s3explorer.common.config import Settings, get_settings
from s3explorer.common.logging import setup_logging
from s3explorer.infra.db.alembic_support import get_head_revision, upgrade_to_head
from s3explorer.infra.db.session import get_engine
from s3explorer.infra.observability.metrics import metrics_app
from s3explorer.infra.observability.middleware import MetricsMiddleware

ERROR_CODE_BY_STATUS = {
    400: "bad_request",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    412: "precondition_failed",
    413: "payload_too_large",
    415: "unsupported_media_type",
    500: "internal_error",
    502: "bad_gateway",
    503: "service_unavailable",
}

REQUIRED_TABLES = {"connections"}
DB_CONTEXT_KEYS = ("db_driver", "db_username", "db_host", "db_port", "db_name")


def _normalize_detail(detail):
    """Split an HTTPException detail into (message, error_code, extra fields).

    Extra keys of a dict detail are returned camelCased so they can be merged
    into the problem body; keys whose value is None are dropped.
    """
    if not isinstance(detail, dict):
        return detail, None, {}
    code = detail.get("error_code")
    message = detail.get("message")
    extras = {
        to_camel(key): value
        for key, value in detail.items()
        if key not in ("error_code", "message") and value is not None
    }
    if message is None and extras:
        message, extras = extras, {}
    return message, code if isinstance(code, str) else None, extras


def _resolve_error_code(status_code: int, override: str | None = None) -> str:
    if override:
        return override
    if status_code == 422:
        return "validation_error"
    return ERROR_CODE_BY_STATUS.get(status_code, "unknown_error")


def _collect_db_metadata(db_url: str) -> dict[str, object]:
    try:
        url = make_url(db_url)
    except ArgumentError:
        return {"db_target": "<invalid>", "db_driver": "<unknown>"}

    values = {
        "db_driver": url.drivername,
        "db_username": url.username,
        "db_host": url.host,
        "db_port": url.port,
        "db_name": url.database,
    }
    return {key: value for key, value in values.items() if value}


def _format_db_context(db_url: str) -> str:
    # 密码永远不会出现在日志上下文中
    meta = _collect_db_metadata(db_url)
    return ", ".join(f"{key}={meta[key]}" for key in DB_CONTEXT_KEYS if key in meta)


def _problem(
    request: Request,
    status_code: int,
    title: str,
    message,
    error_code: str,
    detail=None,
    **extras,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        media_type="application/problem+json",
        content={
            "type": "about:blank",
            "title": title,
            "status": status_code,
            "detail": message if detail is None else detail,
            "error": message,
            "errorCode": error_code,
            **extras,
            "instance": str(request.url),
            "requestId": request.headers.get("X-Request-Id"),
        },
    )


def _apply_migrations(settings: Settings) -> None:
    """Check the database is reachable, then upgrade it to the alembic head."""
    startup_logger = logging.getLogger("s3explorer.startup")
    db_context = _format_db_context(settings.DB_URL)
    startup_logger.info(
        "启动前检查数据库连接。[event=auto_migration_precheck] (%s)", db_context
    )
    try:
        with get_engine().connect() as connection:
            connection.execute(text("SELECT 1"))
    except OperationalError as exc:
        startup_logger.error(
            "数据库不可用，停止启动；请确认 DB_URL 与 DATA_DIR。"
            " [event=auto_migration_connection_failed] (%s，error=%s)",
            db_context,
            exc,
        )
        raise
    try:
        upgrade_to_head()
    except Exception as exc:
        startup_logger.exception(
            "数据库迁移执行失败。 [event=auto_migration_failed] (%s，error=%s)",
            db_context,
            exc,
        )
        raise
    startup_logger.info(
        "数据库已迁移到最新版本。 [event=auto_migration_succeeded] (%s)", db_context
    )


def _readiness(db: Session) -> dict[str, object]:
    """Report missing tables and pending migrations; empty when ready."""
    db.execute(text("SELECT 1"))
    tables = set(inspect(db.get_bind()).get_table_names())
    problems: dict[str, object] = {}

    missing = sorted(REQUIRED_TABLES - tables)
    if missing:
        problems["missing_tables"] = missing

    expected = get_head_revision()
    if "alembic_version" not in tables:
        problems["migrations"] = {"status": "version_table_missing", "expected": expected}
        return problems
    current = db.execute(
        text("SELECT version_num FROM alembic_version")
    ).scalar_one_or_none()
    if expected and current != expected:
        problems["migrations"] = {
            "status": "out_of_date",
            "current": current,
            "expected": expected,
        }
    return problems


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging()
    app = FastAPI(
        title="S3 Explorer",
        version="v1.0",
        description="Browser backend for S3-compatible object storage",
    )

    if settings.CORS_ENABLED:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS or ["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(buckets_router, prefix="/api", tags=["buckets"])
    app.include_router(objects_router, prefix="/api", tags=["objects"])
    app.include_router(connections_router, prefix="/api", tags=["connections"])

    if settings.ENABLE_METRICS:
        app.add_middleware(MetricsMiddleware)
        app.mount("/metrics", metrics_app)

    @app.on_event("startup")
    def on_startup() -> None:
        if settings.AUTO_APPLY_MIGRATIONS:
            _apply_migrations(settings)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        message, code_override, extras = _normalize_detail(exc.detail)
        error_code = _resolve_error_code(exc.status_code, code_override)
        logging.getLogger("http").log(
            logging.WARNING if exc.status_code < 500 else logging.ERROR,
            "http_exception status=%s error_code=%s detail=%s method=%s path=%s",
            exc.status_code,
            error_code,
            message,
            request.method,
            request.url.path,
            extra={
                "extra": {
                    "status": exc.status_code,
                    "detail": message,
                    "error_code": error_code,
                    "s3_code": extras.get("s3Code"),
                    "method": request.method,
                    "route": request.url.path,
                    "request_id": request.headers.get("X-Request-Id"),
                }
            },
        )
        return _problem(
            request,
            exc.status_code,
            "HTTP Error",
            message,
            error_code,
            **jsonable_encoder(extras),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        return _problem(
            request,
            422,
            "Validation Error",
            "Request validation failed",
            _resolve_error_code(422),
            # 确保可序列化
            detail=jsonable_encoder(exc.errors()),
        )

    @app.get("/api/health")
    async def health():
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/api/ready")
    def ready(db=Depends(get_db)):
        try:
            problems = _readiness(db)
        except OperationalError as exc:
            return {"status": "not_ready", "detail": {"db": str(exc)}}
        if problems:
            return {"status": "not_ready", "detail": problems}
        return {"status": "ready"}

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("s3explorer.main:app", host="0.0.0.0", port=8000, reload=True)
