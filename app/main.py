"""FastAPI application entrypoint. No business logic; only wiring, error mapping and middleware."""

import logging

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1 import router as v1_router
from app.core.config import settings
from app.core.database import SessionLocal
from app.core.errors import AppError, DeniedError
from app.services.authz_cache import AuthorizationCache
from app.services.media_resolver import MediaResolver
from app.services.object_storage import S3Storage
from app.services.permission_resolver import PermissionResolver
from app.services.permission_store import SqlPermissionStore

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Event Reporting API",
    version="0.1.0",
    debug=settings.DEBUG,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.APP_ENV == "dev" else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# One cache per process, shared by every request through app.state.
app.state.authz_cache = AuthorizationCache(
    SqlPermissionStore(SessionLocal),
    ttl_seconds=settings.RBAC_CACHE_TTL_SEC,
)
app.state.permission_resolver = PermissionResolver(app.state.authz_cache)

if settings.s3_configured:
    app.state.object_storage = S3Storage.from_settings(settings)
    app.state.media_resolver = MediaResolver(app.state.object_storage, settings.MEDIA_URL_MAX_TTL_SEC)
else:
    logger.warning("AWS_S3_BUCKET_NAME is not set; media endpoints will fail until storage is configured")
    app.state.object_storage = None
    app.state.media_resolver = None


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    content: dict[str, str] = {"detail": exc.message}
    if isinstance(exc, DeniedError) and exc.required_permission:
        content["required_permission"] = exc.required_permission
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    if settings.is_production:
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
    return JSONResponse(status_code=500, content={"detail": str(exc)})


app.include_router(v1_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
def root() -> dict[str, str]:
    """Root route; minimal payload for discovery."""
    return {"message": "Event Reporting API"}
