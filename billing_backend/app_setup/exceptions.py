"""
Gestionnaires d’exceptions utilisés par la factory.
Toutes les erreurs sortent sous la même forme JSON, sans trace:
    {"success": false, "error": "<code stable>", "detail": "<message>"}
"""
import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from billing_backend.errors import BillingError

logger = logging.getLogger(__name__)

# Codes stables pour les HTTPException levées par FastAPI/Starlette ou les dépendances
HTTP_REASONS = {
    400: "invalid_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    429: "too_many_requests",
}

def error_body(reason: str, detail: str) -> dict:
    return {"success": False, "error": reason, "detail": detail}

def register_exception_handlers(app: FastAPI) -> None:
    """
    Enregistre les handlers:
    - BillingError: statut et code portés par l'erreur métier
    - HTTPException: code dérivé du statut (401 unauthorized, 405 method_not_allowed, ...)
    - RequestValidationError: 400 invalid_request
    - Exception: 500 internal_error, loggée
    """
    @app.exception_handler(BillingError)
    async def billing_error_handler(request: Request, exc: BillingError):
        if exc.status_code >= 500:
            logger.error("billing error %s on %s: %s", exc.reason, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.reason, exc.message))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        reason = HTTP_REASONS.get(exc.status_code, "http_error")
        detail = str(exc.detail) if exc.detail else reason
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(reason, detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        fields = [".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()]
        return JSONResponse(
            status_code=400,
            content=error_body("invalid_request", "Invalid request: " + ", ".join(fields)),
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("unhandled error on %s", request.url.path)
        return JSONResponse(status_code=500, content=error_body("internal_error", "Internal server error"))
