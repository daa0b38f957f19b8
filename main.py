from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import SQLAlchemyError
import os
import uvicorn

from aetherra.core.config import settings
from aetherra.core.logging import configure_logger, api_logger
from aetherra.core.database import AsyncSessionLocal, init_db
from aetherra.core.exceptions import AetherraError
from aetherra.api.v1.endpoints import router as api_router
from aetherra.dependencies.cache import build_cache
from aetherra.dependencies.rate_limiter import build_rate_limiter
from aetherra.middleware.request_logger import RequestLoggerMiddleware
from aetherra.services.report_builder import purge_expired_reports

# Initialize logger
logger = configure_logger()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Carbon emissions tracking: calculations, dashboards, goals, AI analyses and reports.",
        version="1.0.0"
    )

    # Per-instance services, injected into handlers through app.state
    app.state.dashboard_cache = build_cache("dashboard", default_ttl=settings.DASHBOARD_CACHE_TTL_SECONDS)
    app.state.rate_limiter = build_rate_limiter()

    # Middleware: CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add request logger middleware
    app.add_middleware(RequestLoggerMiddleware)

    # Routers
    app.include_router(api_router, prefix=settings.API_V1_STR)

    # Health check
    @app.get("/", tags=["Health"])
    async def health():
        return JSONResponse(status_code=200, content={"status": "ok", "service": settings.PROJECT_NAME})

    # Exception handling
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.warning(f"HTTP error: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error on {request.method} {request.url.path}")
        return JSONResponse(status_code=422, content={"detail": jsonable_encoder(exc.errors())})

    @app.exception_handler(AetherraError)
    async def domain_exception_handler(request: Request, exc: AetherraError):
        if exc.status_code >= 500:
            logger.error(f"{type(exc).__name__}: {exc.detail}")
        else:
            logger.warning(f"{type(exc).__name__}: {exc.detail}")
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    # Startup
    @app.on_event("startup")
    async def startup_event():
        logger.info(f"🚀 Starting {settings.PROJECT_NAME}...")

        # Ensure log directory exists
        os.makedirs(settings.LOG_DIR, exist_ok=True)

        try:
            await init_db()
            logger.info("✅ Database connection established.")
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"❌ Database init failed: {e}")
            return

        try:
            async with AsyncSessionLocal() as session:
                purged = await purge_expired_reports(session)
            logger.info(f"🧹 Expired report sweep removed {purged} reports.")
        except (AetherraError, SQLAlchemyError) as e:
            logger.warning(f"⚠️ Expired report sweep skipped: {e}")

        api_logger.info("✅ Request logging middleware initialized")

    return app


# Entry point
app = create_app()

if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG, log_level="info")
