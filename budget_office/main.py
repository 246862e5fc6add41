"""FastAPI application entrypoint."""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from budget_office.api.router import api_router
from budget_office.core.config import get_settings
from budget_office.core.errors import (
    AuthorizationError,
    BudgetOfficeError,
    DomainInvariantError,
    NotFoundError,
    OperationalError,
    ValidationError,
)
from budget_office.core.logging import configure_logging

ERROR_STATUS: dict[type[BudgetOfficeError], int] = {
    AuthorizationError: status.HTTP_403_FORBIDDEN,
    ValidationError: 422,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    DomainInvariantError: status.HTTP_409_CONFLICT,
    OperationalError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _status_for(exc: BudgetOfficeError) -> int:
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


async def handle_domain_error(_: Request, exc: BudgetOfficeError) -> JSONResponse:
    body: dict[str, object] = {"detail": exc.message, "code": exc.code}
    if isinstance(exc, ValidationError):
        body["errors"] = exc.errors
    return JSONResponse(status_code=_status_for(exc), content=body)


async def handle_request_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
    """Report payload schema violations in the same field -> messages shape as domain validation."""

    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        field = ".".join(location) or "body"
        errors.setdefault(field, []).append(error.get("msg", "Invalid value."))
    body = {"detail": ValidationError(errors).message, "code": ValidationError.code, "errors": errors}
    return JSONResponse(status_code=422, content=body)


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""

    settings = get_settings()
    configure_logging(settings.log_level, json_logs=settings.log_json)

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(BudgetOfficeError, handle_domain_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/", tags=["system"])
    def root() -> dict[str, str]:
        return {"service": settings.app_name, "status": "running"}

    return app


app = create_app()
