"""
HTTP middleware for the TickBot API.

Provides:
- Request correlation IDs for log tracing
- Structured JSON logging
- Optional API-key authentication
- Write-request logging with credential redaction
- Rate limiting
"""
import json
import logging
import secrets
import time
import uuid
from contextvars import ContextVar
from typing import Any

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from config.settings import get_settings

logger = logging.getLogger(__name__)

SENSITIVE_KEYS = {
    "apikey",
    "api_key",
    "apisecret",
    "api_secret",
    "secretphrase",
    "secret_phrase",
    "password",
    "token",
    "authorization",
}
AUTH_SKIP_PATHS = {
    "/",
    "/status",
    "/openapi.json",
    "/docs",
    "/docs/oauth2-redirect",
    "/redoc",
}

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")


def get_request_id() -> str:
    """Get the current request correlation ID."""
    return request_id_ctx.get("")


# In-memory storage; the API runs as a single local process.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["120/minute"],
    storage_uri="memory://",
)


def rate_limit_exceeded_handler(_request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={
            "detail": f"Rate limit exceeded: {exc.detail}",
            "retry_after": str(getattr(exc, "retry_after", 60)),
        },
    )


async def correlation_id_middleware(request: Request, call_next) -> Response:
    """
    Attach a correlation ID to every request and log its timing.

    An incoming X-Request-ID header is reused; otherwise a new one is minted.
    """
    rid = request.headers.get("x-request-id", "").strip()
    if not rid:
        rid = uuid.uuid4().hex[:16]
    token = request_id_ctx.set(rid)
    start = time.monotonic()
    try:
        response: Response = await call_next(request)
        elapsed_ms = (time.monotonic() - start) * 1000
        response.headers["X-Request-ID"] = rid
        log_level = logging.DEBUG if request.method == "GET" else logging.INFO
        logger.log(
            log_level,
            "req=%s method=%s path=%s status=%d duration_ms=%.1f",
            rid,
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response
    except Exception:
        elapsed_ms = (time.monotonic() - start) * 1000
        logger.exception(
            "req=%s method=%s path=%s duration_ms=%.1f unhandled_exception",
            rid,
            request.method,
            request.url.path,
            elapsed_ms,
        )
        raise
    finally:
        request_id_ctx.reset(token)


def redact_payload(value: Any) -> Any:
    """Mask credential-looking keys anywhere in a nested dict/list payload."""
    if isinstance(value, dict):
        redacted = {}
        for key, item in value.items():
            if str(key).lower() in SENSITIVE_KEYS:
                redacted[key] = "***REDACTED***"
            else:
                redacted[key] = redact_payload(item)
        return redacted
    if isinstance(value, list):
        return [redact_payload(item) for item in value]
    return value


def extract_api_key(request: Request) -> str:
    """Extract API key from X-API-Key or Bearer token header."""
    direct_key = request.headers.get("x-api-key", "").strip()
    if direct_key:
        return direct_key
    auth_header = request.headers.get("authorization", "").strip()
    if auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip()
    return ""


def should_skip_auth(path: str) -> bool:
    if path in AUTH_SKIP_PATHS:
        return True
    return path.startswith("/docs") or path.startswith("/redoc") or path.startswith("/openapi")


async def api_auth_middleware(request: Request, call_next) -> Response:
    """Require the configured API key on non-public endpoints. Disabled when no key is set."""
    if request.method == "OPTIONS" or should_skip_auth(request.url.path):
        return await call_next(request)

    expected_key = (get_settings().api_auth_key or "").strip()
    if not expected_key:
        return await call_next(request)

    provided_key = extract_api_key(request)
    if not provided_key or not secrets.compare_digest(provided_key, expected_key):
        return JSONResponse(status_code=401, content={"detail": "Unauthorized"})
    return await call_next(request)


async def security_logging_middleware(request: Request, call_next) -> Response:
    """Log write requests with their query parameters redacted."""
    if request.method in {"POST", "PUT", "PATCH", "DELETE"}:
        query_payload = dict(request.query_params.items())
        logger.info("HTTP %s %s query=%s", request.method, request.url.path, redact_payload(query_payload))
    return await call_next(request)


class StructuredFormatter(logging.Formatter):
    """JSON log formatter that includes the request correlation ID."""

    def format(self, record: logging.LogRecord) -> str:
        rid = request_id_ctx.get("")
        payload = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if rid:
            payload["request_id"] = rid
        if record.exc_info and record.exc_info[1]:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_structured_logging(log_level: str = "INFO") -> None:
    """
    Reconfigure the root logger to use structured JSON formatting.
    Existing handlers keep their targets but get the JSON formatter.
    """
    root = logging.getLogger()
    level = getattr(logging, log_level.upper(), logging.INFO)
    root.setLevel(level)

    formatter = StructuredFormatter()
    for handler in root.handlers:
        handler.setFormatter(formatter)

    if not any(isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler) for h in root.handlers):
        console = logging.StreamHandler()
        console.setLevel(level)
        console.setFormatter(formatter)
        root.addHandler(console)
