"""
CrisisSync - Disaster incident reporting and dispatch

FastAPI application entry point.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from crisissync.api import auth, health, incidents
from crisissync.core.config import get_settings
from crisissync.core.exceptions import StorageError
from crisissync.core.logging import setup_logging, get_logger
from crisissync.middleware.trace import TracingMiddleware

settings = get_settings()

# Initialize logging
setup_logging(level=settings.log_level)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    from crisissync.core.init_db import init_database
    await init_database(seed=settings.seed_on_startup)

    if not settings.enforce_server_permissions:
        logger.warning(
            "ENFORCE_SERVER_PERMISSIONS is off: incident updates are accepted "
            "without authentication. Access control is client-side only."
        )

    yield
    logger.info(f"Shutting down {settings.app_name}")

    from crisissync.core.database import engine
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description="Citizen disaster reporting, AI triage and resource dispatch",
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(TracingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Correlation-ID"],
)


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.warning(f"Storage rejected {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=400, content={"error": str(exc)})


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(
    auth.router,
    prefix=f"{settings.api_prefix}/auth",
    tags=["Authentication"],
)
app.include_router(
    incidents.router,
    prefix=f"{settings.api_prefix}/incidents",
    tags=["Incidents"],
)


@app.get("/")
async def root():
    return {"message": f"{settings.app_name} API is running"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("crisissync.main:app", host="0.0.0.0", port=settings.backend_port)
