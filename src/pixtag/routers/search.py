"""Keyword and color search endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pixtag.dependencies import get_db, get_object_store, get_owner_id
from pixtag.records import serialize_image
from pixtag.search import filter_by_color, search_by_text
from pixtag.storage import ObjectStore

router = APIRouter(
    prefix="/api/v1/search",
    tags=["search"]
)


@router.get("/text", response_model=dict, operation_id="search_images_by_text")
def search_text(
    q: str = Query("", description="Substring matched against descriptions and tags"),
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
):
    images = search_by_text(db, owner_id, q)
    return {
        "query": q,
        "total": len(images),
        "images": [serialize_image(image, store) for image in images],
    }


@router.get("/color", response_model=dict, operation_id="search_images_by_color")
def search_color(
    color: str = Query(..., description="Hex color, e.g. #4A90E2"),
    threshold: Optional[float] = Query(None, ge=0),
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
):
    """Images with a dominant color equal to or near ``color``."""
    images = filter_by_color(db, owner_id, color, threshold=threshold)
    return {
        "color": color,
        "total": len(images),
        "images": [serialize_image(image, store) for image in images],
    }
