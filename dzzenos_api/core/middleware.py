"""Custom middleware for the DzzenOS API."""

import ipaddress
import secrets
import time
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from dzzenos_api.core.logging import get_logger, request_context

logger = get_logger(__name__)

# X-Forwarded-For is only honoured when the direct peer is a local proxy.
TRUSTED_PROXY_NETS = [
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("::1/128"),
]


def _is_trusted_proxy(client_ip: str) -> bool:
    try:
        ip = ipaddress.ip_address(client_ip)
    except ValueError:
        return False
    return any(ip in net for net in TRUSTED_PROXY_NETS)


def get_client_ip(request: Request) -> str:
    """Best-effort client address used as the rate-limit key."""
    direct_ip = request.client.host if request.client else None
    forwarded_for = request.headers.get("x-forwarded-for", "")
    if forwarded_for and direct_ip and _is_trusted_proxy(direct_ip):
        first_ip = forwarded_for.split(",")[0].strip()
        if first_ip:
            return first_ip
    return direct_ip or "unknown"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware to inject request context for logging."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or secrets.token_hex(8)
        start_time = time.perf_counter()

        ctx = {
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
        }
        token = request_context.set(ctx)

        try:
            response = await call_next(request)

            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                f"{request.method} {request.url.path} -> {response.status_code}",
                data={"duration_ms": round(duration_ms, 2)},
            )

            response.headers["X-Request-ID"] = request_id
            return response

        finally:
            request_context.reset(token)
