"""FastAPI application factory"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from loan_origination.api.dependencies import get_request_id
from loan_origination.api.middleware import RequestIDMiddleware, MetricsMiddleware
from loan_origination.api.v1 import affordability, applications, compliance, contracts
from loan_origination.api.v1.schemas import ErrorResponse
from loan_origination.domain.exceptions import (
    AttemptsExceededError,
    ComplianceViolationError,
    ConflictError,
    CoolingOffExpiredError,
    CredentialExpiredError,
    DomainException,
    ExternalDeliveryFailedError,
    InvalidCredentialError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from loan_origination.infrastructure.database.session import create_schema
from loan_origination.infrastructure.observability.logging import setup_logging
from loan_origination.config import settings

# Setup structured logging
setup_logging(settings.log_level)

# Resolved along the exception MRO; AlreadySignedError maps as InvalidStateTransitionError
STATUS_CODES = {
    NotFoundError: 404,
    InvalidStateTransitionError: 409,
    ValidationFailedError: 422,
    ConflictError: 409,
    CredentialExpiredError: 410,
    AttemptsExceededError: 429,
    InvalidCredentialError: 400,
    CoolingOffExpiredError: 409,
    ExternalDeliveryFailedError: 502,
}


def status_code_for(exc: DomainException) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 400


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Translate domain failures into HTTP responses"""
    status_code = status_code_for(exc)
    body = ErrorResponse(detail=str(exc))

    if isinstance(exc, ValidationFailedError):
        body.errors = exc.errors
    if isinstance(exc, ComplianceViolationError):
        body.error_code = exc.result.error_code

    logging.warning(
        f"{type(exc).__name__}: {exc}",
        extra={"request_id": get_request_id(request), "status_code": status_code, "path": request.url.path},
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.auto_create_schema:
        create_schema()
        logging.info("Database schema ensured")
    yield


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Loan Origination Core",
        description="Loan application lifecycle, affordability, compliance and contract signing",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(DomainException, domain_exception_handler)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(applications.router, prefix="/v1", tags=["applications"])
    app.include_router(affordability.router, prefix="/v1", tags=["affordability"])
    app.include_router(compliance.router, prefix="/v1", tags=["compliance"])
    app.include_router(contracts.router, prefix="/v1", tags=["contracts"])

    return app


app = create_app()
