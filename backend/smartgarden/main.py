import json
import logging
import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.concurrency import run_in_threadpool

from smartgarden import __version__
from smartgarden.config import get_settings
from smartgarden.database import close_pool, init_pool
from smartgarden.errors import ConnectivityFailure, GardenError
from smartgarden.rate_limit import limiter
from smartgarden.routers import admin_router, queries_router, tables_router

settings = get_settings()
logger = logging.getLogger("smartgarden")
logging.basicConfig(level=settings.log_level.upper())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the connection pool on startup; drain and close it on shutdown."""
    init_pool(settings)
    yield
    # uvicorn runs this on SIGINT/SIGTERM
    await run_in_threadpool(close_pool)


app = FastAPI(
    title="Smart Garden API",
    description="CRUD API over gardens, plants, sections, tools and maintenance logs",
    version=__version__,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-ID"],
)


@app.exception_handler(GardenError)
async def garden_error_handler(request: Request, exc: GardenError):
    connectivity = isinstance(exc, ConnectivityFailure)
    return JSONResponse(
        status_code=503 if connectivity else 500,
        content={"success": False, "message": exc.message, "error": "connectivity" if connectivity else "engine"},
    )


@app.middleware("http")
async def structured_logging_middleware(request: Request, call_next):
    start = time.perf_counter()
    request.state.request_id = request.headers.get("X-Request-ID", str(uuid4()))

    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        response.headers["X-Request-ID"] = str(request.state.request_id)
        return response
    finally:
        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.info(json.dumps({
            "request_id": str(request.state.request_id),
            "path": request.url.path,
            "method": request.method,
            "status": status_code,
            "duration_ms": duration_ms,
        }))


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Set basic security headers for all API responses."""
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


app.include_router(admin_router)
app.include_router(tables_router)
app.include_router(queries_router)

Instrumentator().instrument(app).expose(app, include_in_schema=False, should_gzip=True)


@app.get("/health")
def health_check():
    """Liveness probe; does not touch the database."""
    return {"status": "healthy"}


@app.get("/")
def root():
    """Root endpoint with API information."""
    return {
        "name": "Smart Garden API",
        "version": __version__,
        "docs": "/docs",
        "reset": "/reset-database",
    }
