import json
import logging
import re
import time
import uuid
from typing import Any

from fastapi import Request
from starlette.concurrency import iterate_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from s3explorer.common.config import get_settings
from s3explorer.infra.observability.metrics import LATENCY, REQUESTS

logger = logging.getLogger("http")

MAX_TRACE_CHARS = 2048
# 仅对 JSON 负载做追踪：上传的 multipart 表单与对象代理流可能很大
TRACEABLE_CONTENT_TYPES = ("application/json", "application/problem+json")

SENSITIVE_KEYS = frozenset(
    {
        "accesskey",
        "access_key",
        "secretkey",
        "secret_key",
        "credentials_key",
        "x-amz-security-token",
        "password",
        "secret",
        "token",
        "authorization",
    }
)

_TEXT_SECRET_PATTERNS = (
    re.compile(r"(?i)authorization\s*:\s*bearer\s+[A-Za-z0-9\-_.]+"),
    re.compile(
        r"(?i)(access_?key|secret_?key|token|secret|password)\s*[:=]\s*[^\s,&]+"
    ),
)


def _is_traceable(content_type: str | None) -> bool:
    if not content_type:
        return False
    return content_type.split(";")[0].strip().lower() in TRACEABLE_CONTENT_TYPES


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def _route_label(request: Request) -> str:
    # 使用路由模板（/api/objects/{bucket}）而非实际路径，避免标签基数爆炸
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def mask_secrets(value: Any) -> Any:
    """Replace values stored under credential-like keys with ``***``."""
    if isinstance(value, dict):
        return {
            k: "***"
            if isinstance(k, str) and k.lower() in SENSITIVE_KEYS
            else mask_secrets(v)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [mask_secrets(item) for item in value]
    return value


def _mask_match(match: re.Match) -> str:
    label = re.split(r"[:=]", match.group(0), maxsplit=1)[0]
    return f"{label}: ***"


def mask_text(text: str) -> str:
    for pattern in _TEXT_SECRET_PATTERNS:
        text = pattern.sub(_mask_match, text)
    return text


def render_trace_body(raw: bytes) -> str:
    decoded = raw.decode("utf-8", errors="replace")
    try:
        rendered = json.dumps(mask_secrets(json.loads(decoded)), ensure_ascii=False)
    except ValueError:
        rendered = mask_text(decoded)
    if len(rendered) > MAX_TRACE_CHARS:
        rendered = rendered[:MAX_TRACE_CHARS] + "...<truncated>"
    return rendered


class MetricsMiddleware(BaseHTTPMiddleware):
    """Request metrics, request-id propagation and structured access logs.

    With ``TRACE_HTTP`` enabled, JSON request and response bodies are attached
    to the access log after credential fields are masked.
    """

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        trace_http = get_settings().TRACE_HTTP
        base = {
            "method": request.method,
            "query": request.url.query,
            "request_id": request_id,
            "client_ip": _client_ip(request),
            "user_agent": request.headers.get("User-Agent"),
        }

        request_body = None
        if trace_http and _is_traceable(request.headers.get("Content-Type")):
            request_body = await self._capture_request(request)

        try:
            response = await call_next(request)
        except Exception as exc:
            duration_ms = round((time.perf_counter() - start) * 1000, 3)
            logger.exception(
                "request_error method=%s route=%s status=500 duration_ms=%.3f request_id=%s",
                request.method,
                request.url.path,
                duration_ms,
                request_id,
                extra={
                    "extra": {
                        **base,
                        "route": request.url.path,
                        "status": 500,
                        "duration_ms": duration_ms,
                        "exception": repr(exc),
                    }
                },
            )
            raise

        elapsed = time.perf_counter() - start
        route = _route_label(request)
        REQUESTS.labels(request.method, route, str(response.status_code)).inc()
        LATENCY.labels(request.method, route).observe(elapsed)
        if "X-Request-Id" not in response.headers:
            response.headers["X-Request-Id"] = request_id

        payload = {
            **base,
            "route": route,
            "status": response.status_code,
            "duration_ms": round(elapsed * 1000, 3),
        }
        if trace_http:
            payload["request_body"] = request_body
            payload["response_body"] = (
                await self._capture_response(response)
                if _is_traceable(response.headers.get("Content-Type"))
                else None
            )

        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(
            level,
            "request method=%s route=%s status=%s duration_ms=%.3f request_id=%s client_ip=%s",
            request.method,
            route,
            response.status_code,
            payload["duration_ms"],
            request_id,
            base["client_ip"] or "-",
            extra={"extra": payload},
        )
        return response

    @staticmethod
    async def _capture_request(request: Request) -> str | None:
        try:
            raw = await request.body()
        except Exception:
            return "<unavailable>"
        if not raw:
            return None

        # 重新注入已读取的请求体，供下游路由再次读取
        async def receive():
            return {"type": "http.request", "body": raw, "more_body": False}

        request._receive = receive
        return render_trace_body(raw)

    @staticmethod
    async def _capture_response(response: Response) -> str | None:
        try:
            raw = b"".join([chunk async for chunk in response.body_iterator])
        except Exception:
            return "<unavailable>"
        response.body_iterator = iterate_in_threadpool(iter([raw]))
        return render_trace_body(raw) if raw else None
