"""compscout API: reference-library progress and comp cleaning over HTTP."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Response
from prometheus_fastapi_instrumentator import Instrumentator

from compscout.api.routes import comps, families
from compscout.config import settings
from compscout.db.models import Base
from compscout.db.session import engine
from compscout.logging_config import setup_logging

setup_logging("api")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"compscout API starting on {settings.app_host}:{settings.app_port}")

    # Tables are normally created by alembic; this covers fresh dev databases
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    await engine.dispose()
    logger.info("compscout API stopped")


def create_app() -> FastAPI:
    application = FastAPI(
        title="compscout",
        description="Reference-image library progress and sold-comp price guidance",
        version="0.1.0",
        lifespan=lifespan,
    )

    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/metrics", "/health", "/favicon.ico"],
    ).instrument(application).expose(application, include_in_schema=True, tags=["monitoring"])

    for module in (families, comps):
        application.include_router(module.router)

    @application.get("/health")
    async def health():
        return {"status": "healthy"}

    @application.get("/favicon.ico", include_in_schema=False)
    async def favicon():
        return Response(status_code=204)

    return application


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "compscout.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
