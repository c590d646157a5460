from __future__ import annotations

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from capex.core.logging import configure_logging
from capex.core.middleware.request_id import RequestIdMiddleware
from capex.domain.audit.routes.audit import router as audit_router
from capex.domain.cashflows.routes.cashflows import router as cashflows_router
from capex.domain.investments.routes.investments import router as investments_router
from capex.domain.notifications.routes.notifications import router as notifications_router
from capex.shared.exceptions import (
    AppError,
    InvalidTransition,
    InvariantViolation,
    NotAuthorized,
    NotFound,
    ValidationError,
)


logger = structlog.get_logger(__name__)

# Most specific first; the first isinstance match wins.
ERROR_STATUS: tuple[tuple[type[AppError], int], ...] = (
    (NotFound, status.HTTP_404_NOT_FOUND),
    (NotAuthorized, status.HTTP_403_FORBIDDEN),
    (InvalidTransition, status.HTTP_409_CONFLICT),
    (InvariantViolation, status.HTTP_400_BAD_REQUEST),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
)


def status_for(exc: AppError) -> int:
    for cls, code in ERROR_STATUS:
        if isinstance(exc, cls):
            return code
    return status.HTTP_400_BAD_REQUEST


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    code = status_for(exc)
    logger.info("request.rejected", path=request.url.path, error=type(exc).__name__, status_code=code, detail=str(exc))
    return JSONResponse(status_code=code, content={"detail": str(exc), "error": type(exc).__name__})


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title="Capex Planning - Backend", version="0.1.0")
    app.add_middleware(RequestIdMiddleware)
    app.add_exception_handler(AppError, app_error_handler)

    @app.get("/health", tags=["admin"])
    def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(investments_router)
    app.include_router(cashflows_router)
    app.include_router(notifications_router)
    app.include_router(audit_router)

    # /api aliases for reverse proxies that forward under /api/*.
    app.include_router(investments_router, prefix="/api")
    app.include_router(cashflows_router, prefix="/api")
    app.include_router(notifications_router, prefix="/api")
    app.include_router(audit_router, prefix="/api")

    return app


app = create_app()
