import os
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import OperationalError
import structlog

from .config import settings
from .db import init_db, shutdown_db
from .logging import setup_logging, RequestIdMiddleware
from .auth.router import router as auth_router
from .routes.client_app import router as client_router
from .routes.driver_app import router as driver_router
from .routes.admin_app import router as admin_router
from .routes.fleet_app import router as fleet_router
from .routes.devices import router as devices_router


logger = structlog.get_logger(__name__)


async def storage_unavailable_handler(request: Request, exc: OperationalError):
    logger.error("database_unavailable", path=request.url.path, error=str(exc.orig))
    return JSONResponse(status_code=500, content={"detail": "Database unavailable"})


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    app.add_exception_handler(OperationalError, storage_unavailable_handler)

    # Routers
    app.include_router(auth_router)
    app.include_router(client_router)
    app.include_router(driver_router)
    app.include_router(admin_router)
    app.include_router(fleet_router)
    app.include_router(devices_router)

    # Locally stored creatives (development storage provider)
    if settings.storage_provider == "local":
        os.makedirs(settings.local_storage_dir, exist_ok=True)
        app.mount("/files/local", StaticFiles(directory=settings.local_storage_dir), name="local-files")

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.on_event("startup")
    def _startup():
        logger.info("startup", environment=settings.environment)
        # Ensure local SQLite directory exists
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs("var", exist_ok=True)
        if settings.auto_create_db:
            init_db()
            logger.info("database_ready")

    @app.on_event("shutdown")
    def _shutdown():
        shutdown_db()
        logger.info("shutdown")

    return app


app = create_app()
