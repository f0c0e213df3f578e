from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from fulfillment_api.core.deps import get_platform_id
from fulfillment_api.core.errors import FOREIGN_KEY_VIOLATION, UNIQUE_VIOLATION, pg_error_details
from fulfillment_api.core.logging import configure_logging, correlation_id_var, platform_id_var
from fulfillment_api.core.settings import get_app_settings
from fulfillment_api.db.run_migrations import main as run_alembic
from fulfillment_api.db.seed import seed_all
from fulfillment_api.schemas.common import ErrorResponse, ErrorSource, MessageResponse, PlatformEcho

# Routers
from fulfillment_api.api.routes.auth import router as auth_router
from fulfillment_api.api.routes.platforms import router as platforms_router
from fulfillment_api.api.routes.companies import router as companies_router
from fulfillment_api.api.routes.users import router as users_router
# Reference data
from fulfillment_api.api.routes.countries import router as countries_router
from fulfillment_api.api.routes.cities import router as cities_router
from fulfillment_api.api.routes.brands import router as brands_router
# Inventory
from fulfillment_api.api.routes.warehouses import router as warehouses_router
from fulfillment_api.api.routes.zones import router as zones_router
from fulfillment_api.api.routes.assets import router as assets_router
from fulfillment_api.api.routes.collections import router as collections_router
# Commercial
from fulfillment_api.api.routes.pricing_tiers import router as pricing_tiers_router
from fulfillment_api.api.routes.orders import router as orders_router
from fulfillment_api.api.routes.invoices import router as invoices_router
from fulfillment_api.api.routes.analytics import router as analytics_router
from fulfillment_api.api.routes.notification_logs import router as notification_logs_router
from fulfillment_api.api.routes.exports import router as exports_router

settings = get_app_settings()

# Configure structured logging once at import
configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "Health", "description": "Liveness and platform header checks."},
    {"name": "Auth", "description": "Login, token refresh and hostname context."},
    {"name": "Platforms", "description": "Platform configuration and feature flags."},
    {"name": "Companies", "description": "Client companies."},
    {"name": "Users", "description": "User administration."},
    {"name": "Locations", "description": "Countries and cities."},
    {"name": "Brands", "description": "Company brands."},
    {"name": "Warehouses", "description": "Warehouses."},
    {"name": "Zones", "description": "Warehouse zones reserved for a company."},
    {"name": "Assets", "description": "Rentable asset inventory."},
    {"name": "Collections", "description": "Reusable asset sets and their availability."},
    {"name": "Pricing Tiers", "description": "Location and volume based pricing."},
    {"name": "Orders", "description": "Order lifecycle, items and pricing."},
    {"name": "Invoices", "description": "Invoice generation and payment confirmation."},
    {"name": "Analytics", "description": "Revenue and margin reporting."},
    {"name": "Notifications", "description": "Email delivery log and retries."},
    {"name": "Exports", "description": "Order exports (CSV/Excel/PDF)."},
]

app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    openapi_tags=openapi_tags,
)

# CORS - avoid wildcard with credentials
cors_allow_credentials = settings.CORS_ALLOW_CREDENTIALS
if settings.CORS_ORIGINS == ["*"] and cors_allow_credentials:
    logger.warning("CORS_ALLOW_CREDENTIALS=True with '*' origins is not permitted; disabling credentials.")
    cors_allow_credentials = False

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=cors_allow_credentials,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """
    Enrich request context with correlation_id and platform_id for logging and error responses.
    Adds 'X-Correlation-ID' to every response.
    """
    corr = request.headers.get("X-Correlation-ID") or request.headers.get("X-Request-ID") or str(uuid4())
    platform = request.headers.get("X-Platform")
    token_corr = correlation_id_var.set(corr)
    token_platform = platform_id_var.set(platform)
    request.state.correlation_id = corr
    request.state.platform_id = platform

    logger.info("Incoming request %s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
    finally:
        correlation_id_var.reset(token_corr)
        platform_id_var.reset(token_platform)

    response.headers["X-Correlation-ID"] = corr
    return response


def _build_error_response(
    request: Request,
    status_code: int,
    message: str,
    sources: Optional[List[ErrorSource]] = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    """Build a standardized ErrorResponse JSONResponse."""
    err = ErrorResponse(
        message=message,
        error_sources=sources or [ErrorSource(path="", message=message)],
        correlation_id=getattr(request.state, "correlation_id", None),
        platform_id=getattr(request.state, "platform_id", None),
        path=request.url.path,
        method=request.method,
        timestamp=datetime.now(tz=timezone.utc),
    )
    return JSONResponse(status_code=status_code, content=err.model_dump(mode="json"), headers=headers)


def _validation_message(error: dict[str, Any]) -> str:
    msg = str(error.get("msg", "Invalid value"))
    return msg[len("Value error, "):] if msg.startswith("Value error, ") else msg


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Global handler for HTTPException to produce a standardized error envelope.
    """
    message = exc.detail if isinstance(exc.detail, str) else "HTTP Error"
    return _build_error_response(
        request=request,
        status_code=exc.status_code,
        message=message,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Request validation errors are reported as 400 with one source per offending field.
    """
    sources = [
        ErrorSource(
            path=".".join(str(part) for part in err.get("loc", ())[1:]),
            message=_validation_message(err),
        )
        for err in exc.errors()
    ]
    message = " | ".join(s.message for s in sources) or "Request validation failed"
    return _build_error_response(request=request, status_code=400, message=message, sources=sources)


@app.exception_handler(IntegrityError)
async def integrity_exception_handler(request: Request, exc: IntegrityError):
    """
    Constraint violations that no route translated into a domain message.
    """
    code, constraint = pg_error_details(exc)
    if code == UNIQUE_VIOLATION:
        return _build_error_response(
            request=request,
            status_code=409,
            message="Duplicate value violates a unique constraint",
            sources=[ErrorSource(path=constraint or "", message="Duplicate value violates a unique constraint")],
        )
    if code == FOREIGN_KEY_VIOLATION:
        return _build_error_response(request=request, status_code=400, message="Referenced record does not exist")
    logger.exception("Unhandled integrity error")
    return _build_error_response(request=request, status_code=500, message="Something went wrong!")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Catch-all handler to avoid leaking stack traces and to return a structured error.
    """
    logger.exception("Unhandled error processing request")
    return _build_error_response(request=request, status_code=500, message="Something went wrong!")


@app.on_event("startup")
async def on_startup() -> None:
    """
    Run migrations and optional seeding on service startup.

    This ensures the database schema is up to date. Seeding is opt-in via settings.
    """
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        try:
            logger.info("Running Alembic migrations: upgrade head")
            # env.py drives its own event loop, so keep it off the server loop.
            await run_in_threadpool(run_alembic, ["upgrade", "head"])
            logger.info("Migrations completed.")
        except Exception as exc:
            logger.exception("Migration step failed: %s", exc)
            # Do not crash the app in case of transient DB issues; rely on retries or later readiness checks.

    if settings.AUTO_SEED:
        try:
            logger.info("Running database seeding...")
            await seed_all(settings)
            logger.info("Seeding completed.")
        except Exception as exc:
            logger.exception("Seeding step failed: %s", exc)


# Build API v1 router and include sub-routers
api_v1 = APIRouter(prefix="/api/v1")


# PUBLIC_INTERFACE
@api_v1.get(
    "/health",
    response_model=MessageResponse,
    summary="Health Check",
    tags=["Health"],
)
def health_check() -> MessageResponse:
    """
    Basic liveness health check endpoint.

    Returns:
        MessageResponse: Simple confirmation that the service is running.
    """
    return MessageResponse(message="Healthy")


# PUBLIC_INTERFACE
@api_v1.get(
    "/health/platform",
    response_model=PlatformEcho,
    summary="Platform Header Echo",
    description="Echoes the platform context to verify X-Platform header handling.",
    tags=["Health"],
)
async def platform_health_echo(platform_id: UUID = Depends(get_platform_id)) -> PlatformEcho:
    """
    Echo the provided platform ID.

    Parameters:
        X-Platform (header): UUID of the platform.
    Returns:
        PlatformEcho: The platform_id extracted from the header.
    """
    return PlatformEcho(platform_id=platform_id)


# Include all routers under /api/v1
api_v1.include_router(auth_router)
api_v1.include_router(platforms_router)
api_v1.include_router(companies_router)
api_v1.include_router(users_router)
api_v1.include_router(countries_router)
api_v1.include_router(cities_router)
api_v1.include_router(brands_router)
api_v1.include_router(warehouses_router)
api_v1.include_router(zones_router)
api_v1.include_router(assets_router)
api_v1.include_router(collections_router)
api_v1.include_router(pricing_tiers_router)
api_v1.include_router(orders_router)
api_v1.include_router(invoices_router)
api_v1.include_router(analytics_router)
api_v1.include_router(notification_logs_router)
api_v1.include_router(exports_router)

# Attach api_v1 to app
app.include_router(api_v1)
