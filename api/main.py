"""
License Storefront API - Main Application.

FastAPI application with CORS enabled for frontend communication. Domain errors
raised anywhere below the routers are translated here into one stable error
shape (see api.models.ErrorResponse).
"""

import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api import __version__
from api.models import ErrorResponse, FieldErrorResponse
from domain.errors import (
    ConflictError,
    DomainError,
    NotFoundError,
    OutOfStockError,
    ValidationError,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title="License Storefront API",
    description="REST API for selling license keys and managing license inventory",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

_allowed_origins = [
    origin.strip() for origin in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if origin.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _status_for(exc: DomainError) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ConflictError):
        return 409
    # ValidationError, OutOfStockError and any other business rejection
    return 400


def _error_response(status_code: int, error: str, detail=None, errors=None) -> JSONResponse:
    body = ErrorResponse(error=error, detail=detail, status_code=status_code, errors=errors)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", exclude_none=True))


@app.exception_handler(DomainError)
def handle_domain_error(request: Request, exc: DomainError) -> JSONResponse:
    status_code = _status_for(exc)
    errors = None
    if isinstance(exc, ValidationError) and exc.errors:
        errors = [FieldErrorResponse(field=e.field, message=e.message) for e in exc.errors]
    if isinstance(exc, OutOfStockError):
        logger.info("Purchase rejected: %s", exc.message, extra={"license_type": exc.license_type})
    return _error_response(status_code, exc.message, exc.code, errors)


@app.exception_handler(RequestValidationError)
def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        FieldErrorResponse(
            field=".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            message=str(err.get("msg", "Invalid value")),
        )
        for err in exc.errors()
    ]
    return _error_response(400, "Invalid request data", "VALIDATION_ERROR", errors)


@app.exception_handler(StarletteHTTPException)
def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_response(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(500, "Internal server error")


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status and version.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "license-storefront-api",
    }


@app.get("/", tags=["Root"])
def root():
    """
    Root endpoint with API information.
    """
    return {
        "message": "License Storefront API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


# Import and include routers
from api.routers import customers, dashboard, licenses, sale_requests, sales  # noqa: E402

app.include_router(licenses.router, prefix="/api/v1", tags=["Licenses"])
app.include_router(customers.router, prefix="/api/v1", tags=["Customers"])
app.include_router(sales.router, prefix="/api/v1", tags=["Sales"])
app.include_router(dashboard.router, prefix="/api/v1", tags=["Dashboard"])
app.include_router(sale_requests.router, prefix="/api/v1", tags=["Requests"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
