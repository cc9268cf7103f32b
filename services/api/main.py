"""
Rubin Seeds Admin Panel - Backend API
FastAPI over customer sheets, with JSON file or SQLite storage.

Install dependencies:
pip install -e .

Run server:
uvicorn main:app --host 0.0.0.0 --port 8000
"""

import logging
from typing import Optional

from cachetools import TTLCache
from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from adapters.base import StorageAdapter
from routers import customers, sheets
from schemas import HealthCheck
from settings import Settings, get_settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

PDF_CACHE_SIZE = 64


# ============================================================================
# STORAGE ADAPTER INITIALIZATION
# ============================================================================

def build_storage_adapter(settings: Settings) -> StorageAdapter:
    backend = settings.storage_backend.lower()
    logger.info(f"Storage Backend: {backend.upper()}")

    if backend == "json":
        from adapters.json import JsonAdapter

        return JsonAdapter(data_dir=settings.data_dir)

    if backend == "sqlite":
        from adapters.sqlite import SqliteAdapter

        return SqliteAdapter.from_url(settings.db_url)

    raise ValueError(f"Unknown STORAGE_BACKEND: {backend}")


# ============================================================================
# FASTAPI APP
# ============================================================================

def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[StorageAdapter] = None,
) -> FastAPI:
    """
    Build the API. Tests pass their own settings and storage; uvicorn uses
    the module-level `app` built from the environment.
    """
    settings = settings or get_settings()
    if storage is None:
        storage = build_storage_adapter(settings)

    app = FastAPI(
        title="Rubin Seeds Admin API",
        description="Customers and their editable sheets, with PDF export",
        version="1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings
    app.state.storage_adapter = storage
    app.state.pdf_cache = TTLCache(maxsize=PDF_CACHE_SIZE, ttl=settings.pdf_cache_ttl_seconds)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"}
        )

    @app.get("/health", response_model=HealthCheck)
    def health_check():
        """Health check endpoint"""
        return HealthCheck(ok=True, backend=settings.storage_backend.lower())

    app.include_router(customers.router)
    app.include_router(sheets.router)

    return app


app = create_app()
