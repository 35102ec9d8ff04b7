"""Application exceptions and their FastAPI handlers."""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dzzenos_api.core.logging import get_logger, request_context

logger = get_logger(__name__)


class DzzenosError(Exception):
    """Base exception for the DzzenOS API."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        code: str = "E5000",
        details: dict = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details or {}
        super().__init__(message)


class ValidationFailed(DzzenosError):
    """Malformed body, enum value or query parameter."""

    def __init__(self, message: str = "Invalid request"):
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST, code="E4000")


class NotFoundError(DzzenosError):
    """Resource not found."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND, code="E4040")


class ConflictError(DzzenosError):
    """State transition no longer possible (e.g. approval already decided)."""

    def __init__(self, message: str = "Conflict"):
        super().__init__(message, status_code=status.HTTP_409_CONFLICT, code="E4090")


class RateLimitedError(DzzenosError):
    def __init__(self, message: str = "Too many requests", retry_after: int | None = None):
        super().__init__(
            message,
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            code="E4290",
            details={"retry_after": retry_after} if retry_after is not None else {},
        )


class ProviderError(DzzenosError):
    """Completion provider call failed or is not configured."""

    def __init__(self, message: str, upstream_status: int | None = None):
        super().__init__(
            message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            code="E3000",
        )
        self.upstream_status = upstream_status


def _request_id() -> str | None:
    ctx = request_context.get()
    return ctx.get("request_id") if ctx else None


def _envelope(message, code: str, **extra) -> dict:
    return {
        "detail": message,
        "error": {
            "code": code,
            "message": message,
            "request_id": _request_id(),
        },
        **extra,
    }


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers with FastAPI app."""

    @app.exception_handler(DzzenosError)
    async def dzzenos_exception_handler(request: Request, exc: DzzenosError) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            f"Request failed: {exc.message}",
            data={"status_code": exc.status_code, "code": exc.code, "details": exc.details},
        )
        headers = None
        if exc.details.get("retry_after") is not None:
            headers = {"Retry-After": str(exc.details["retry_after"])}
        return JSONResponse(
            status_code=exc.status_code,
            content=_envelope(exc.message, exc.code, **exc.details),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Malformed JSON bodies and query parameters are plain 400s."""
        errors = exc.errors()
        logger.warning("Validation error", data={"errors": errors})
        message = "Invalid request"
        if errors:
            first = errors[0]
            loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
            message = f"{loc}: {first.get('msg')}" if loc else str(first.get("msg"))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_envelope(message, "E4000", errors=jsonable_errors(errors)),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_envelope(exc.detail, f"E{exc.status_code}0"),
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            f"Unhandled exception: {type(exc).__name__}: {exc}",
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_envelope("Internal server error", "E5000"),
        )


def jsonable_errors(errors) -> list:
    """Strip non-serializable context (exception objects) from pydantic errors."""
    cleaned = []
    for err in errors:
        item = {k: v for k, v in err.items() if k in ("loc", "msg", "type")}
        item["loc"] = [str(p) for p in item.get("loc", ())]
        cleaned.append(item)
    return cleaned
