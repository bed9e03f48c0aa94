"""Domain errors and their HTTP rendering.

Every error leaves the service as ``{"error": {"code": ..., "message": ...}}``.
Codes are stable and machine readable; messages are for humans.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from mediashop.core.logging import get_logger

log = get_logger("errors")


class DomainError(Exception):
    status_code = 400
    code = "DOMAIN_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class NotFound(DomainError):
    """Entity absent, or owned by someone else where existence must not leak."""
    status_code = 404
    code = "NOT_FOUND"


class ProductNotFound(NotFound):
    code = "PRODUCT_NOT_FOUND"


class Forbidden(DomainError):
    status_code = 403
    code = "FORBIDDEN"


class InvalidState(DomainError):
    status_code = 400
    code = "INVALID_STATE"


class AlreadyProcessed(InvalidState):
    code = "PAYMENT_ALREADY_PROCESSED"


class ValidationError(DomainError):
    status_code = 422
    code = "VALIDATION_ERROR"


class PaymentProcessingError(DomainError):
    """The confirm transaction was rolled back; the payment can be confirmed again."""
    status_code = 503
    code = "PAYMENT_RETRYABLE"


def error_body(code: str, message: str) -> dict:
    return {"error": {"code": code, "message": message}}


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def _domain(request: Request, exc: DomainError):
        log.info("domain_error", code=exc.code, status=exc.status_code, path=request.url.path)
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.code, exc.message))

    @app.exception_handler(HTTPException)
    async def _http(request: Request, exc: HTTPException):
        code = {401: "UNAUTHENTICATED", 403: "FORBIDDEN", 404: "NOT_FOUND"}.get(exc.status_code, "HTTP_ERROR")
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(code, str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def _validation(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg', 'invalid input')}" if field else "Invalid request"
        return JSONResponse(status_code=422, content=error_body("VALIDATION_ERROR", message))

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        log.exception("unhandled_error", path=request.url.path)
        return JSONResponse(status_code=500, content=error_body("INTERNAL_ERROR", "Internal server error"))
