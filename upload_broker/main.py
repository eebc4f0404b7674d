import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from upload_broker.api.v1.deps import require_api_key
from upload_broker.api.v1.routers.identity import legacy_router as identity_legacy
from upload_broker.api.v1.routers.identity import router as identity_router
from upload_broker.api.v1.routers.uploads import legacy_router as uploads_legacy
from upload_broker.api.v1.routers.uploads import router as uploads_router
from upload_broker.common.config import Settings, get_settings
from upload_broker.common.logging import STARTUP_LOGGER, setup_logging
from upload_broker.infra.observability.metrics import metrics_app
from upload_broker.infra.observability.middleware import MetricsMiddleware

ERROR_CODE_BY_STATUS = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    413: "payload_too_large",
    415: "unsupported_media_type",
    429: "too_many_requests",
    500: "internal_error",
    502: "bad_gateway",
    503: "service_unavailable",
}


def _normalize_detail(detail):
    if isinstance(detail, dict):
        maybe_code = detail.get("error_code")
        cleaned = {k: v for k, v in detail.items() if k != "error_code"}
        if len(cleaned) == 1 and "message" in cleaned:
            cleaned = cleaned["message"]
        if not cleaned:
            cleaned = None
        return cleaned, maybe_code if isinstance(maybe_code, str) else None
    return detail, None


def _resolve_error_code(status_code: int, override: str | None = None) -> str:
    if override:
        return override
    if status_code == 422:
        return "validation_error"
    return ERROR_CODE_BY_STATUS.get(status_code, "unknown_error")


def _describe_storage_target(settings: Settings) -> str:
    if not settings.S3_BUCKET:
        return "<unconfigured>"
    endpoint = settings.S3_ENDPOINT_URL or "aws"
    prefix = settings.S3_KEY_PREFIX or ""
    return f"s3://{settings.S3_BUCKET}/{prefix} ({endpoint}, {settings.S3_REGION})"


def _format_config_context(settings: Settings) -> str:
    parts = [
        f"storage={_describe_storage_target(settings)}",
        f"part_url_expires_s={settings.PART_URL_EXPIRES_SECONDS}",
        f"identity_pool={settings.IDENTITY_POOL_ID or '<unconfigured>'}",
        f"login_provider={settings.IDENTITY_LOGIN_PROVIDER or '<unconfigured>'}",
        f"static_keys={'yes' if settings.S3_ACCESS_KEY_ID else 'no'}",
        f"auth={'on' if settings.AUTH_ENABLED else 'off'}",
    ]
    return ", ".join(parts)


def _readiness_problems(settings: Settings) -> dict[str, object]:
    detail: dict[str, object] = {}
    if not settings.storage_configured:
        detail["storage"] = "S3_BUCKET is not set"
    if not settings.identity_configured:
        detail["identity"] = "IDENTITY_POOL_ID or IDENTITY_LOGIN_PROVIDER is not set"
    if settings.AUTH_ENABLED and not settings.AUTH_TOKEN_SECRET:
        detail["auth"] = "AUTH_TOKEN_SECRET is not set while AUTH_ENABLED is true"
    return detail


def _log_startup(settings: Settings) -> None:
    startup_logger = logging.getLogger(STARTUP_LOGGER)
    startup_logger.info(
        "Upload broker starting. [event=startup] (%s)",
        _format_config_context(settings),
    )
    for component, problem in _readiness_problems(settings).items():
        startup_logger.warning(
            "%s endpoints will answer 503: %s [event=config_incomplete]",
            component,
            problem,
        )


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging()

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        _log_startup(settings)
        yield

    app = FastAPI(
        lifespan=lifespan,
        title="Upload Broker",
        version="v1.0",
        description=(
            "Brokers signed authorization for direct browser-to-object-store "
            "multipart uploads"
        ),
    )

    if settings.CORS_ENABLED:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS or ["*"],
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
            expose_headers=["X-Request-Id"],
        )

    app.include_router(
        uploads_router,
        prefix="/api/v1",
        tags=["uploads"],
        dependencies=[Depends(require_api_key)],
    )
    app.include_router(
        identity_router,
        prefix="/api/v1",
        tags=["identity"],
        dependencies=[Depends(require_api_key)],
    )
    if settings.LEGACY_ROUTES_ENABLED:
        app.include_router(uploads_legacy, dependencies=[Depends(require_api_key)])
        app.include_router(identity_legacy, dependencies=[Depends(require_api_key)])

    if settings.ENABLE_METRICS:
        app.add_middleware(MetricsMiddleware)
        app.mount("/metrics", metrics_app)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        logger = logging.getLogger("http")
        normalized_detail, code_override = _normalize_detail(exc.detail)
        logger.log(
            logging.WARNING if exc.status_code < 500 else logging.ERROR,
            "http_exception status=%s detail=%s method=%s path=%s request_id=%s",
            exc.status_code,
            normalized_detail,
            request.method,
            request.url.path,
            request.headers.get("X-Request-Id"),
            extra={
                "extra": {
                    "status": exc.status_code,
                    "detail": normalized_detail,
                    "method": request.method,
                    "route": request.url.path,
                    "request_id": request.headers.get("X-Request-Id"),
                    "user_id": request.headers.get("X-User-Id") or "<missing>",
                }
            },
        )
        return JSONResponse(
            status_code=exc.status_code,
            media_type="application/problem+json",
            content={
                "type": "about:blank",
                "title": "HTTP Error",
                "status": exc.status_code,
                "detail": normalized_detail,
                "error_code": _resolve_error_code(exc.status_code, code_override),
                "instance": str(request.url),
                "request_id": request.headers.get("X-Request-Id"),
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        return JSONResponse(
            status_code=422,
            media_type="application/problem+json",
            content={
                "type": "about:blank",
                "title": "Validation Error",
                "status": 422,
                "detail": jsonable_encoder(exc.errors()),
                "error_code": _resolve_error_code(422),
                "instance": str(request.url),
                "request_id": request.headers.get("X-Request-Id"),
            },
        )

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/ready")
    async def ready():
        detail = _readiness_problems(get_settings())
        if detail:
            return {"status": "not_ready", "detail": detail}
        return {"status": "ready"}

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("upload_broker.main:app", host="0.0.0.0", port=8080, reload=True)
