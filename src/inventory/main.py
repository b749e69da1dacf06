import os
import logging
from datetime import datetime, timezone

from fastapi import FastAPI, APIRouter
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from src.inventory.db import dispose_engine, init_db, ping
from src.inventory.errors import classify_db_error, register_exception_handlers
from src.inventory.responses import ApiResponse, success_envelope
from src.inventory.routes.applications import router as applications_router
from src.inventory.routes.dashboard import router as dashboard_router
from src.inventory.routes.resource_groups import router as resource_groups_router
from src.inventory.routes.resources import router as resources_router
from src.inventory.routes.subscriptions import router as subscriptions_router
from src.inventory.routes.tags import router as tags_router
from src.inventory.schemas import HealthOut

__version__ = "1.0.0"

openapi_tags = [
    {"name": "Resources", "description": "Resource inventory, search and application links"},
    {"name": "Subscriptions", "description": "Azure subscriptions"},
    {"name": "Resource Groups", "description": "Azure resource groups"},
    {"name": "Applications", "description": "Business applications owning resources"},
    {"name": "Tags", "description": "Tag vocabulary and autocomplete"},
    {"name": "Dashboard", "description": "Inventory summaries"},
    {"name": "Health", "description": "Health and diagnostics"},
]

app = FastAPI(
    title="Azure Resource Inventory API",
    version=__version__,
    description="CRUD inventory of Azure resources, subscriptions, resource groups and applications "
    "with filtered, sorted and paginated search.",
    openapi_tags=openapi_tags,
)

# CORS from environment (comma-separated origins). Defaults to '*' for dev.
# Prefer CORS_ORIGINS; also accept ALLOWED_ORIGINS.
cors_env = os.getenv("CORS_ORIGINS") or os.getenv("ALLOWED_ORIGINS", "*")
allow_origins = ["*"] if cors_env.strip() == "*" else [o.strip() for o in cors_env.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.on_event("startup")
async def on_startup():
    """Initialize the database schema."""
    _log = logging.getLogger("inventory.startup")
    _log.info("Startup CORS allow_origins=%s", "*" if cors_env.strip() == "*" else allow_origins)
    await init_db()


@app.on_event("shutdown")
async def on_shutdown():
    await dispose_engine()


# PUBLIC_INTERFACE
async def health_response() -> ApiResponse[HealthOut]:
    """Health check for readiness probes.

    Pings the database; a failing database surfaces as 503 through the error handlers.
    """
    try:
        await ping()
    except (SQLAlchemyError, OSError) as exc:
        raise classify_db_error(exc, "Health check failed") from exc
    return success_envelope(
        HealthOut(status="healthy", timestamp=datetime.now(timezone.utc), version=__version__)
    )


# Register health endpoints for compatibility across environments:
# - Root path "/"
# - Conventional "/health"
# - Versioned "/api/v1/health"
# - Optional custom path via HEALTHCHECK_PATH
for _path in ("/", "/health", "/api/v1/health"):
    app.add_api_route(
        _path,
        endpoint=health_response,
        methods=["GET"],
        tags=["Health"],
        summary="Health Check",
        description="Database-backed health check.",
        response_model=ApiResponse[HealthOut],
    )
_health_env_path = (os.getenv("HEALTHCHECK_PATH") or "").strip()
if _health_env_path and _health_env_path not in {"/", "/health", "/api/v1/health"}:
    app.add_api_route(
        _health_env_path,
        endpoint=health_response,
        methods=["GET"],
        tags=["Health"],
        summary="Health Check",
        description=f"Health check alias for configured path {_health_env_path}",
        response_model=ApiResponse[HealthOut],
    )

_routers = (
    resources_router,
    subscriptions_router,
    resource_groups_router,
    applications_router,
    tags_router,
    dashboard_router,
)

# Register routers at root
for _router in _routers:
    app.include_router(_router)

# Also expose the same routes under /api/v1 to avoid base-path mismatches in some environments
api_v1 = APIRouter(prefix="/api/v1")
for _router in _routers:
    api_v1.include_router(_router)
app.include_router(api_v1)


if __name__ == "__main__":
    # Allow direct execution: python src/inventory/main.py
    import uvicorn

    host = os.getenv("HOST", "0.0.0.0")
    try:
        port = int(os.getenv("PORT") or "3001")
    except ValueError:
        port = 3001
    reload_flag = os.getenv("RELOAD", "0") == "1"
    log_level = os.getenv("LOG_LEVEL", "info")

    uvicorn.run(app, host=host, port=port, reload=reload_flag, log_level=log_level)
