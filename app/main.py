# app/main.py
from typing import Optional

from fastapi import FastAPI
from app.core.config import settings
from app.core.errors import install_exception_handlers
from app.core.version import VERSION
from app.api.endpoints import downloads, payment_links, wallet
from app.services.content_catalog import ContentCatalog
from app.services.download_registry import DownloadRegistry
from app.services.link_store import PaymentLinkStore
import logging

# Configure basic logging
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


def create_app(
    link_store: Optional[PaymentLinkStore] = None,
    download_registry: Optional[DownloadRegistry] = None,
    content_catalog: Optional[ContentCatalog] = None,
) -> FastAPI:
    """
    Build the application with its own in-memory state.

    Each call gets a fresh store, registry and catalog unless they are
    passed in, so tests can run against isolated instances.
    """
    application = FastAPI(
        title=settings.PROJECT_NAME,
        version=VERSION,
        openapi_url=f"{settings.API_PREFIX}/openapi.json"
    )

    if link_store is None:
        link_store = PaymentLinkStore()
        if settings.SEED_SAMPLE_DATA:
            link_store.seed_sample_data()

    application.state.link_store = link_store
    application.state.download_registry = download_registry or DownloadRegistry()
    application.state.content_catalog = content_catalog or ContentCatalog()

    install_exception_handlers(application)

    application.include_router(payment_links.router, prefix=f"{settings.API_PREFIX}/payment-links", tags=["payment-links"])
    application.include_router(downloads.router, prefix=f"{settings.API_PREFIX}/download", tags=["download"])
    application.include_router(wallet.router, prefix=settings.API_PREFIX, tags=["wallet"])

    @application.get("/", summary="Health Check", tags=["default"])
    def read_root():
        """ Basic health check endpoint. """
        logger.info("Root endpoint '/' accessed.")
        return {"status": "ok", "message": f"Welcome to {settings.PROJECT_NAME}", "version": VERSION}

    return application


app = create_app()

# TODO: Add CORS middleware once the payment pages are served from a separate frontend origin
