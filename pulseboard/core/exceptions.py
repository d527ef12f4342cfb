"""Error types raised by the query, push and target services.

Every error carries a machine-readable ``code`` and an HTTP ``status``; the
API renders them as ``{"error": {"code", "message", "status", "details"}}``.
"""

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse

logger = structlog.get_logger()


class PulseError(Exception):
    code = "internal_error"
    status = 500
    default_message = "Unexpected Pulseboard error."

    def __init__(
        self,
        message: str | None = None,
        details: dict | None = None,
        *,
        code: str | None = None,
        status: int | None = None,
    ):
        self.message = message or self.default_message
        self.details = details if details is not None else self.default_details()
        if code is not None:
            self.code = code
        if status is not None:
            self.status = status
        super().__init__(self.message)

    def default_details(self) -> dict:
        return {}

    def to_dict(self) -> dict:
        body = {"code": self.code, "message": self.message, "status": self.status}
        if self.details:
            body["details"] = self.details
        return {"error": body}


class QueryValidationError(PulseError):
    """Rejected query parameters: bad window, granularity, ceiling or point budget."""

    code = "invalid_request"
    status = 400
    default_message = "Invalid query parameters."


class NotFoundError(PulseError):
    """Unknown target id, or a push token with no active target."""

    code = "not_found"
    status = 404
    default_message = "Resource not found."


class StoreUnavailableError(PulseError):
    """The heartbeat database could not be read or written."""

    code = "store_unavailable"
    status = 503
    default_message = "Heartbeat store is unavailable."

    def default_details(self) -> dict:
        return {"suggestion": "The database may be busy or unreachable. Try again shortly."}


async def pulse_error_handler(request: Request, exc: PulseError) -> JSONResponse:
    if exc.status >= 500:
        logger.error("request_failed", path=request.url.path, code=exc.code, error=exc.message)
    return JSONResponse(status_code=exc.status, content=exc.to_dict())
