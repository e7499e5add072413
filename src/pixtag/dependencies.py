"""Shared dependencies for FastAPI endpoints."""

from fastapi import Header, HTTPException, status

from pixtag.annotation import VisionAnnotator
from pixtag.database import get_db
from pixtag.image import ImageProcessor
from pixtag.settings import settings
from pixtag.storage import ObjectStore, create_object_store

__all__ = [
    "get_db",
    "get_owner_id",
    "get_object_store",
    "get_annotator",
    "get_image_processor",
]

_object_store: ObjectStore | None = None


async def get_owner_id(x_user_id: str = Header(..., alias="X-User-ID")) -> str:
    """Resolve the requesting owner from the X-User-ID header.

    Raises:
        HTTPException 401: header present but blank
    """
    owner_id = (x_user_id or "").strip()
    if not owner_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return owner_id


def get_object_store() -> ObjectStore:
    """Process-wide object store built from settings on first use."""
    global _object_store
    if _object_store is None:
        _object_store = create_object_store(settings)
    return _object_store


def get_annotator() -> VisionAnnotator:
    return VisionAnnotator.from_settings(settings)


def get_image_processor() -> ImageProcessor:
    return ImageProcessor(
        thumbnail_size=(settings.thumbnail_size, settings.thumbnail_size),
        quality=settings.thumbnail_quality,
    )
