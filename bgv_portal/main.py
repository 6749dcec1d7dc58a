import logging

from fastapi import FastAPI
from starlette.staticfiles import StaticFiles

from bgv_portal.api.router import api_router
from bgv_portal.core.config import settings
from bgv_portal.db.base import Base
from bgv_portal.db.session import engine
from bgv_portal.middleware.errors import setup_exception_handlers
from bgv_portal.middleware.logging import RequestLoggingMiddleware
from bgv_portal.middleware.request_context import RequestContextMiddleware
from bgv_portal.services.blob_store import LOCAL_FILES_PATH, local_storage_root

import bgv_portal.models  # noqa: F401  registers tables on Base.metadata

logging.basicConfig(level=logging.INFO)
logging.getLogger("botocore").setLevel(logging.WARNING)
logger = logging.getLogger("bgv")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestContextMiddleware)
    setup_exception_handlers(app)

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "environment": settings.environment}

    app.include_router(api_router)

    if settings.storage_backend == "local":
        app.mount(
            LOCAL_FILES_PATH,
            StaticFiles(directory=local_storage_root(), check_dir=False),
            name="files",
        )

    @app.on_event("startup")
    async def _create_tables() -> None:
        if settings.database_url.startswith("sqlite"):
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("sqlite_schema_ready")

    return app


app = create_app()
