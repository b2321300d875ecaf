"""
Gestionnaires d'exceptions: seul point de traduction des erreurs typées en HTTP.
- CheckoutError et sous-classes -> {"error", "code"} (+ "field" pour la validation)
- HTTPException -> {"detail"} (forme FastAPI conservée, ex: 429 du rate limiting)
- Erreurs de schéma pydantic -> 400 sur le premier champ fautif
- Toute autre exception -> 500 générique, détail uniquement dans les logs
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from boutique.errors import CheckoutError, ValidationError

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Une erreur est survenue. Veuillez réessayer dans quelques instants."


def _field_from_loc(loc) -> str:
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header")]
    return ".".join(parts) or "body"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(CheckoutError)
    async def checkout_error_handler(request: Request, exc: CheckoutError):
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            "http.error path=%s code=%s status=%s details=%s",
            request.url.path, exc.code, exc.status_code, exc.details,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = _field_from_loc(first.get("loc", ()))
        logger.info("http.invalid_body path=%s field=%s type=%s", request.url.path, field, first.get("type"))
        err = ValidationError(field, "Requête invalide")
        return JSONResponse(status_code=err.status_code, content=err.to_payload())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("http.unhandled path=%s", request.url.path)
        return JSONResponse(status_code=500, content={"error": GENERIC_ERROR, "code": "internal_error"})
