"""Main FastAPI application."""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware

from pushhub.api.push import router as push_router
from pushhub.domain.common.errors import (
    AuthorizationError as DomainAuthorizationError,
    NotFoundError as DomainNotFoundError,
    ValidationError as DomainValidationError,
)
from pushhub.infra.cache.redis_store import RedisStore
from pushhub.services.push_service import build_push_service
from pushhub.settings import get_settings, settings

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    store = RedisStore(get_settings().redis_url)
    try:
        await store.connect()
    except RedisError as e:
        # Don't fail startup; the store reconnects lazily on first use
        logger.warning("Could not connect to Redis during startup: %s", e)
    app.state.store = store
    app.state.push_service = build_push_service(get_settings(), store)
    logger.info("Push service started: %s", app.state.push_service.stats().model_dump(mode="json"))

    yield

    # Shutdown
    await app.state.push_service.aclose()
    await store.disconnect()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=settings.cors_origin_regex,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)


class AccessLogMiddleware(BaseHTTPMiddleware):
    """One log line per request with status and latency in ms."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "%s %s -> %s (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response


app.add_middleware(AccessLogMiddleware)


# Domain error handlers: map domain exceptions to correct HTTP status
@app.exception_handler(DomainNotFoundError)
async def domain_not_found_handler(request: Request, exc: DomainNotFoundError):
    """Return 404 when a resource is not found."""
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(DomainAuthorizationError)
async def domain_authorization_handler(request: Request, exc: DomainAuthorizationError):
    """Return 403 when the user is not authorized."""
    return JSONResponse(status_code=403, content={"detail": exc.message})


@app.exception_handler(DomainValidationError)
async def domain_validation_handler(request: Request, exc: DomainValidationError):
    """Return 400 for domain validation errors (including unsupported push providers)."""
    return JSONResponse(status_code=400, content={"detail": exc.message})


@app.exception_handler(RedisError)
async def store_unavailable_handler(request: Request, exc: RedisError):
    """Return 503 when the token / credential store is unreachable."""
    logger.error("Store unavailable on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Token store unavailable"})


@app.get("/health")
@app.get(f"{settings.api_v1_prefix}/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "version": settings.app_version}


@app.get("/ready")
async def readiness(request: Request):
    """Readiness endpoint: run all checks and return 200 if ready, 503 otherwise."""
    from pushhub.readiness import is_ready, run_all_checks_async
    checks = await run_all_checks_async(getattr(request.app.state, "push_service", None))
    ready, summary = is_ready(checks)
    if ready:
        return {"ready": True, "checks": summary}
    return JSONResponse(status_code=503, content={"ready": False, "checks": summary})


# API v1 routes
app.include_router(push_router, prefix=settings.api_v1_prefix)
