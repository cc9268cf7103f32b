# services/api/routers/deps.py
from __future__ import annotations

from typing import Annotated

from cachetools import TTLCache
from fastapi import Depends, Request

from adapters.base import StorageAdapter
from settings import Settings


def get_storage(request: Request) -> StorageAdapter:
    """Storage adapter built once by create_app()."""
    return request.app.state.storage_adapter


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_pdf_cache(request: Request) -> TTLCache:
    return request.app.state.pdf_cache


# ---- DI aliases (no default value allowed) ----
Storage = Annotated[StorageAdapter, Depends(get_storage)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
PdfCache = Annotated[TTLCache, Depends(get_pdf_cache)]
