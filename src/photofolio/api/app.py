"""FastAPI application factory."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from .. import __version__
from ..backend import Backend, create_backend
from ..logging_config import configure_structured_logging, get_logger
from .upload import router as upload_router

logger = get_logger(__name__)


def create_app(backend: Backend | None = None) -> FastAPI:
    """
    Build the HTTP app.

    Args:
        backend: Backend to serve; built from configuration when omitted
    """
    configure_structured_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.backend.close()

    app = FastAPI(title="PhotoFolio", version=__version__, lifespan=lifespan)
    app.state.backend = backend or create_backend()
    app.include_router(upload_router)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "storage_configured": app.state.backend.storage is not None}

    logger.info("api_app_created", storage_configured=app.state.backend.storage is not None)
    return app
