from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import UUID, uuid4

from fastapi import APIRouter, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from jose import JWTError
from starlette.exceptions import HTTPException as StarletteHTTPException

from shieldcuisine_api.core.errors import ServiceError
from shieldcuisine_api.core.logging import configure_logging, correlation_id_var, tenant_id_var
from shieldcuisine_api.core.security import ACCESS_TOKEN_TYPE, decode_token
from shieldcuisine_api.core.settings import get_app_settings
from shieldcuisine_api.db.run_migrations import main as run_alembic
from shieldcuisine_api.db.seed import seed_all
from shieldcuisine_api.schemas.common import ErrorInfo, ErrorResponse, MessageResponse
from shieldcuisine_api.schemas.realtime import WsEnvelope
from shieldcuisine_api.services.realtime import broadcast_manager

# Routers
from shieldcuisine_api.api.routes.auth import router as auth_router
from shieldcuisine_api.api.routes.users import router as users_router
from shieldcuisine_api.api.routes.roles import router as roles_router
from shieldcuisine_api.api.routes.locations import router as locations_router
# Domain routers
from shieldcuisine_api.api.routes.appcc import router as appcc_router
from shieldcuisine_api.api.routes.inventory import router as inventory_router
from shieldcuisine_api.api.routes.cms import router as cms_router
from shieldcuisine_api.api.routes.media import router as media_router
from shieldcuisine_api.api.routes.elearning import router as elearning_router
from shieldcuisine_api.api.routes.notifications import router as notifications_router
from shieldcuisine_api.api.routes.ai import router as ai_router

# Configure structured logging once at import
configure_logging()
logger = logging.getLogger(__name__)

settings = get_app_settings()

openapi_tags = [
    {"name": "System", "description": "System and operational endpoints."},
    {"name": "Auth", "description": "Registration, login, session cookie and tokens."},
    {"name": "Users", "description": "User administration endpoints."},
    {"name": "Roles", "description": "Role administration endpoints."},
    {"name": "Locations", "description": "Establishments of the company."},
    {"name": "APPCC", "description": "Food-safety control templates, records and reports."},
    {"name": "Inventory", "description": "Products, suppliers and stock movements."},
    {"name": "CMS", "description": "Block-based pages, versions, public site and forms."},
    {"name": "Media", "description": "Media library uploads and categories."},
    {"name": "E-learning", "description": "Courses, lessons, enrollments and progress."},
    {"name": "Notifications", "description": "User notifications and preferences."},
    {"name": "AI", "description": "Content generation, image analysis and APPCC analysis."},
    {"name": "WebSocket", "description": "Real-time notification push."},
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
    Enrich request context with correlation_id and tenant_id for logging and error responses.
    Adds 'X-Correlation-ID' to every response.
    """
    corr = request.headers.get("X-Correlation-ID") or request.headers.get("X-Request-ID") or str(uuid4())
    tenant = request.headers.get("X-Tenant-ID")
    token_corr = correlation_id_var.set(corr)
    token_tenant = tenant_id_var.set(tenant)
    request.state.correlation_id = corr
    request.state.tenant_id = tenant

    logger.info("Incoming request %s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
    finally:
        correlation_id_var.reset(token_corr)
        tenant_id_var.reset(token_tenant)

    response.headers["X-Correlation-ID"] = corr
    return response


def _build_error_response(
    request: Request,
    status_code: int,
    error_type: str,
    message: str,
    details: Any | None = None,
) -> JSONResponse:
    """Build a standardized ErrorResponse JSONResponse."""
    err = ErrorResponse(
        status=status_code,
        message=message,
        error=ErrorInfo(type=error_type, message=message, details=details),
        correlation_id=getattr(request.state, "correlation_id", None),
        tenant_id=getattr(request.state, "tenant_id", None),
        path=request.url.path,
        method=request.method,
        timestamp=datetime.now(tz=timezone.utc),
    )
    headers = None
    if status_code == 401:
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=status_code, content=err.model_dump(mode="json"), headers=headers)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Global handler for HTTPException to produce a standardized error envelope.
    """
    detail = exc.detail if isinstance(exc.detail, str) else "HTTP Error"
    return _build_error_response(
        request=request,
        status_code=exc.status_code,
        error_type="http_error",
        message=str(detail),
        details=None if isinstance(exc.detail, str) else exc.detail,
    )


@app.exception_handler(ServiceError)
async def service_exception_handler(request: Request, exc: ServiceError):
    """Domain errors raised by services carry their own status code and type."""
    if exc.status_code >= 500:
        logger.warning("Service error %s: %s", exc.error_type, exc.message)
    return _build_error_response(
        request=request,
        status_code=exc.status_code,
        error_type=exc.error_type,
        message=exc.message,
        details=exc.details,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Global handler for request validation errors with a standard structure.
    """
    return _build_error_response(
        request=request,
        status_code=422,
        error_type="validation_error",
        message="Request validation failed",
        details=_jsonable_errors(exc),
    )


def _jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may hold exception instances that are not JSON serializable
    out = []
    for err in exc.errors():
        err = dict(err)
        if "ctx" in err:
            err["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        out.append(err)
    return out


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Catch-all handler to avoid leaking stack traces and to return a structured error.
    """
    logger.exception("Unhandled error processing request")
    return _build_error_response(
        request=request,
        status_code=500,
        error_type="internal_error",
        message="An unexpected error occurred",
        details=None,
    )


@app.on_event("startup")
async def on_startup() -> None:
    """
    Run migrations and optional seeding on service startup.

    This ensures the database schema is up to date. Seeding is opt-in via settings.
    """
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        try:
            logger.info("Running Alembic migrations: upgrade head")
            run_alembic(["upgrade", "head"])
            logger.info("Migrations completed.")
        except Exception as exc:
            logger.exception("Migration step failed: %s", exc)
            # Keep serving; readiness depends on the database coming up later.

    if settings.AUTO_SEED:
        try:
            logger.info("Running database seeding...")
            await seed_all()
            logger.info("Seeding completed.")
        except Exception as exc:
            logger.exception("Seeding step failed: %s", exc)


# Build the API router and include sub-routers
api = APIRouter(prefix="/api")


# PUBLIC_INTERFACE
@api.get(
    "/status",
    response_model=MessageResponse,
    summary="Health Check",
    tags=["System"],
)
def status_check() -> MessageResponse:
    """
    Basic liveness health check endpoint.

    Returns:
        MessageResponse: Simple confirmation that the service is running.
    """
    return MessageResponse(message="ok", details={"version": settings.APP_VERSION})


api.include_router(auth_router)
api.include_router(users_router)
api.include_router(roles_router)
api.include_router(locations_router)
api.include_router(appcc_router)
api.include_router(inventory_router)
api.include_router(cms_router)
api.include_router(media_router)
api.include_router(elearning_router)
api.include_router(notifications_router)
api.include_router(ai_router)

app.include_router(api)

# Uploaded media is served from disk
_upload_dir = Path(settings.UPLOAD_DIR)
_upload_dir.mkdir(parents=True, exist_ok=True)
app.mount(settings.UPLOAD_URL_PREFIX, StaticFiles(directory=str(_upload_dir)), name="uploads")


async def _authenticate_ws(websocket: WebSocket) -> tuple[str, str] | None:
    """
    Validate the 'token' query param of an accepted WebSocket.

    The tenant comes from the 'X-Tenant-ID' header when present and must match the
    token claim. Returns (tenant_id, user_id), or None after closing the socket.
    """
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=4401)
        return None
    try:
        claims = decode_token(token, expected_type=ACCESS_TOKEN_TYPE)
    except JWTError:
        await websocket.close(code=4401)
        return None

    tenant_id = str(claims.get("tenant_id") or "")
    header_tenant = websocket.headers.get("x-tenant-id")
    if not tenant_id or (header_tenant and header_tenant != tenant_id):
        await websocket.close(code=4403)
        return None

    user_id = claims.get("sub")
    try:
        UUID(str(user_id))
    except ValueError:
        await websocket.close(code=4401)
        return None
    return tenant_id, str(user_id)


# PUBLIC_INTERFACE
@app.websocket("/ws/notifications")
async def ws_notifications(websocket: WebSocket):
    """
    WebSocket endpoint pushing the user's new notifications.

    Security:
      - Query param 'token' must be a valid access JWT.
      - Optional header 'X-Tenant-ID' must match the JWT tenant_id.
    Messages:
      - Server -> Client: type='notification.created' payload=NotificationRead
      - Client -> Server: 'ping' answered with 'pong'; other messages ignored.
    """
    await websocket.accept()
    identity = await _authenticate_ws(websocket)
    if identity is None:
        return
    tenant_id, user_id = identity

    topic = broadcast_manager.user_topic(tenant_id, user_id)
    await broadcast_manager.connect(topic, websocket)
    await websocket.send_json(WsEnvelope(type="system.welcome", channel=topic).model_dump(mode="json"))

    try:
        while True:
            msg = await websocket.receive_text()
            if msg and msg.lower() == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        await broadcast_manager.disconnect(topic, websocket)
    except Exception:
        logger.exception("Error on ws_notifications connection")
        await broadcast_manager.disconnect(topic, websocket)
        await websocket.close()
