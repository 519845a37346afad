"""FastAPI app factory."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from inkscribe.config import settings

load_dotenv()

logging.basicConfig(
    level=getattr(logging, settings.inkscribe_log_level.upper(), logging.DEBUG),
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    from inkscribe.dependencies import get_session_manager, shutdown_executor

    get_session_manager().close_all()
    shutdown_executor()
    logger.info("All sessions closed, recognition pool released")


def create_app() -> FastAPI:
    app = FastAPI(
        title="InkScribe",
        description="Handwritten glyph segmentation and dual-lane recognition sessions",
        version="0.1.0",
        lifespan=_lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from inkscribe.api.router import api_router

    app.include_router(api_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)
