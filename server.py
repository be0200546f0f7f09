"""Shared FastAPI application assembly for both deployables."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
import time
from typing import Iterable, Optional

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from config import Settings, check_environment
from database import Database
from email_service import EmailService, build_email_service
from exceptions import register_exception_handlers
from logger_config import Logger, setup_logging


def build_app(
    title: str,
    settings: Settings,
    routers: Iterable[APIRouter],
    mongo_client: Optional[MongoClient] = None,
    email_service: Optional[EmailService] = None,
) -> FastAPI:
    setup_logging(settings.LOG_LEVEL, settings.LOG_DIR)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        for warning in check_environment(settings):
            Logger.base.warning(warning)
        database = Database.connect(settings, mongo_client)
        try:
            database.ensure_indexes()
        except PyMongoError as e:
            Logger.base.error(f"Could not create indexes: {e}")
        app.state.database = database
        app.state.email_service = email_service or build_email_service(settings)
        app.state.started_at = time.monotonic()
        Logger.base.info(f"{title} started ({settings.ENVIRONMENT})")
        yield
        app.state.email_service.close()
        database.close()
        Logger.base.info(f"{title} stopped")

    app = FastAPI(title=title, version=settings.VERSION, lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_origin_regex=r"https://.*\.vercel\.app",
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "userid", "user-id"],
    )
    register_exception_handlers(app)
    for router in routers:
        app.include_router(router)

    @app.get("/health")
    def health():
        try:
            database_status = "connected" if app.state.database.ping() else "unavailable"
        except Exception as e:
            database_status = f"error: {str(e)[:50]}"
        return {
            "status": "OK",
            "message": f"{title} is running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": round(time.monotonic() - app.state.started_at, 3),
            "environment": settings.ENVIRONMENT,
            "database": database_status,
        }

    return app
