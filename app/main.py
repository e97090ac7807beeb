import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError

from app.config import settings
from app.database import db_manager, check_db_connection
from app.utils.exceptions import AppException
from app.middleware.error_handler import (
    app_exception_handler,
    validation_exception_handler,
    integrity_error_handler,
    generic_exception_handler,
)

from app.api.v1 import otp
from app.api.v1 import session
from app.api.v1 import admin

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version="1.0.0",
        description="Passwordless (OTP) login and session API for the Huntier job board",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # ─── CORS ─────────────────────────────────────────────────────────────────
    # Credentials travel in cookies, so origins must be listed explicitly
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ─── Exception Handlers ───────────────────────────────────────────────────
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # ─── Routers ──────────────────────────────────────────────────────────────
    PREFIX = settings.API_PREFIX
    app.include_router(otp.router,     prefix=PREFIX, tags=["OTP"])
    app.include_router(session.router, prefix=PREFIX, tags=["Session"])
    app.include_router(admin.router,   prefix=PREFIX, tags=["Admin"])

    # ─── Startup / Shutdown ───────────────────────────────────────────────────
    @app.on_event("startup")
    def on_startup():
        if not db_manager.is_initialized:
            db_manager.init()
        ok = check_db_connection()
        logger.info("✅ DB connected" if ok else "❌ DB connection FAILED")

    @app.on_event("shutdown")
    def on_shutdown():
        db_manager.dispose()

    # ─── Health ───────────────────────────────────────────────────────────────
    @app.get("/health", tags=["Health"])
    def health():
        return {
            "status": "ok" if check_db_connection() else "degraded",
            "app": settings.APP_NAME,
            "version": "1.0.0",
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host=settings.APP_HOST, port=settings.APP_PORT,
                reload=settings.is_development)
