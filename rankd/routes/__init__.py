"""APIRouter registration for the ordered collections service."""

from __future__ import annotations

from fastapi import APIRouter

from rankd.routes.collections import router as collections_router

api_router = APIRouter()
api_router.include_router(collections_router, tags=["Collections", "Ordering"])

__all__ = ["api_router"]
