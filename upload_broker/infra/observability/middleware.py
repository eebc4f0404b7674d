import json
import logging
import re
import time
import uuid
from typing import Any

from fastapi import Request
from starlette.concurrency import iterate_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from upload_broker.common.config import get_settings
from upload_broker.infra.observability.metrics import LATENCY, REQUESTS

MAX_TRACE_BODY_CHARS = 2048

_TEXT_SECRET_PATTERNS = (
    re.compile(
        r"(?i)(token|secret|api_key|x-api-key|password|authorization)\s*[:=]\s*[^\s]+"
    ),
    re.compile(r"(?i)authorization\s*:\s*bearer\s+[A-Za-z0-9\-_.]+"),
)
# presigned URLs carry their signature and session token in the query string
_URL_SECRET_PATTERN = re.compile(
    r"(?i)(X-Amz-Signature|X-Amz-Security-Token|X-Amz-Credential)=[^&\s\"]+"
)


class MetricsMiddleware(BaseHTTPMiddleware):
    SENSITIVE_KEYS = {
        "password",
        "secret",
        "token",
        "access_token",
        "refresh_token",
        "api_key",
        "x-api-key",
        "authorization",
        "secretaccesskey",
        "sessiontoken",
    }

    def _mask_mapping(self, obj: Any) -> Any:
        if isinstance(obj, dict):
            masked: dict[str, Any] = {}
            for k, v in obj.items():
                if isinstance(k, str) and k.lower() in self.SENSITIVE_KEYS:
                    masked[k] = "***"
                else:
                    masked[k] = self._mask_mapping(v)
            return masked
        if isinstance(obj, list):
            return [self._mask_mapping(x) for x in obj]
        if isinstance(obj, str):
            return _URL_SECRET_PATTERN.sub(lambda m: f"{m.group(1)}=***", obj)
        return obj

    def _mask_text(self, text: str) -> str:
        masked = text
        for pattern in _TEXT_SECRET_PATTERNS:
            masked = pattern.sub(
                lambda m: m.group(0).split(":")[0].split("=")[0] + ": ***",
                masked,
            )
        return _URL_SECRET_PATTERN.sub(lambda m: f"{m.group(1)}=***", masked)

    def _render_body(self, raw_body: bytes) -> str | None:
        if not raw_body:
            return None
        decoded_body = raw_body.decode("utf-8", errors="replace")
        try:
            parsed = json.loads(decoded_body)
        except ValueError:
            masked_text = self._mask_text(decoded_body)
        else:
            masked_text = json.dumps(self._mask_mapping(parsed), ensure_ascii=False)
        if len(masked_text) > MAX_TRACE_BODY_CHARS:
            masked_text = masked_text[:MAX_TRACE_BODY_CHARS] + "...<truncated>"
        return masked_text

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        client_ip = request.headers.get("X-Forwarded-For")
        if client_ip:
            client_ip = client_ip.split(",")[0].strip()
        elif request.client:
            client_ip = request.client.host
        else:
            client_ip = None
        user_id = request.headers.get("X-User-Id") or "<missing>"
        logger = logging.getLogger("http")

        trace_http = get_settings().TRACE_HTTP
        request_body: str | None = None
        if trace_http:
            raw_body = await request.body()
            request_body = self._render_body(raw_body)

            async def receive():
                return {
                    "type": "http.request",
                    "body": raw_body,
                    "more_body": False,
                }

            request._receive = receive

        try:
            response = await call_next(request)
        except Exception as exc:
            elapsed = time.perf_counter() - start
            logger.exception(
                "request_error method=%s route=%s status=%s duration_ms=%.3f "
                "request_id=%s user_id=%s client_ip=%s",
                request.method,
                request.url.path,
                500,
                round(elapsed * 1000, 3),
                request_id,
                user_id,
                client_ip or "-",
                extra={
                    "extra": {
                        "method": request.method,
                        "route": request.url.path,
                        "status": 500,
                        "duration_ms": round(elapsed * 1000, 3),
                        "request_id": request_id,
                        "user_id": user_id,
                        "client_ip": client_ip,
                        "exception": repr(exc),
                    }
                },
            )
            raise

        elapsed = time.perf_counter() - start
        status_code = response.status_code

        route_template = request.scope.get("route", None)
        if route_template and hasattr(route_template, "path"):
            route = route_template.path
        else:
            route = request.url.path

        REQUESTS.labels(request.method, route, str(status_code)).inc()
        LATENCY.labels(request.method, route).observe(elapsed)

        if "X-Request-Id" not in response.headers:
            response.headers["X-Request-Id"] = request_id

        level = logging.INFO
        if status_code >= 500:
            level = logging.ERROR
        elif status_code >= 400:
            level = logging.WARNING

        response_body: str | None = None
        if trace_http:
            response_body_bytes = b""
            async for chunk in response.body_iterator:
                response_body_bytes += chunk
            response.body_iterator = iterate_in_threadpool(iter([response_body_bytes]))
            response_body = self._render_body(response_body_bytes)

        duration_ms = round(elapsed * 1000, 3)
        extra_payload = {
            "method": request.method,
            "route": route,
            "query": request.url.query,
            "status": status_code,
            "duration_ms": duration_ms,
            "request_id": request_id,
            "user_id": user_id,
            "client_ip": client_ip,
            "user_agent": request.headers.get("User-Agent"),
            "origin": request.headers.get("Origin"),
        }
        if trace_http:
            extra_payload["request_body"] = request_body
            extra_payload["response_body"] = response_body

        logger.log(
            level,
            "request method=%s route=%s status=%s duration_ms=%.3f "
            "request_id=%s user_id=%s client_ip=%s origin=%s",
            request.method,
            route,
            status_code,
            duration_ms,
            request_id,
            user_id,
            client_ip or "-",
            request.headers.get("Origin") or "-",
            extra={"extra": extra_payload},
        )
        return response
