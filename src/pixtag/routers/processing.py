"""Service endpoints for thumbnail derivation and image annotation."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from pixtag.annotation import VisionAnnotator
from pixtag.dependencies import get_annotator, get_db, get_image_processor, get_object_store, get_owner_id
from pixtag.errors import NotFound, PixtagError
from pixtag.image import ImageProcessor, derive_thumbnail
from pixtag.ingest_pipeline import annotate_stored_image
from pixtag.models.requests import AnnotateRequest, ThumbnailRequest
from pixtag.storage import ObjectStore, THUMBNAIL_PREFIX

router = APIRouter(
    prefix="/api/v1",
    tags=["processing"]
)
logger = logging.getLogger(__name__)


def _require_owned_path(path: str, prefix: str) -> None:
    if not path.startswith(prefix) or ".." in path.split("/"):
        raise HTTPException(status_code=403, detail=f"Path {path} is outside {prefix}")


@router.post("/thumbnails", response_model=dict, operation_id="generate_thumbnail")
def generate_thumbnail(
    request: ThumbnailRequest,
    owner_id: str = Depends(get_owner_id),
    store: ObjectStore = Depends(get_object_store),
    processor: ImageProcessor = Depends(get_image_processor),
):
    """Derive a thumbnail for one of the owner's stored originals."""
    if not request.image_path or not request.thumbnail_path:
        raise HTTPException(status_code=400, detail="Image path and thumbnail path are required")
    _require_owned_path(request.image_path, f"{owner_id}/")
    _require_owned_path(request.thumbnail_path, f"{THUMBNAIL_PREFIX}/{owner_id}/")

    try:
        derived = derive_thumbnail(store, request.image_path, request.thumbnail_path, processor=processor)
    except PixtagError as exc:
        logger.exception("Thumbnail generation failed for %s", request.image_path)
        raise HTTPException(status_code=500, detail=f"Failed to generate thumbnail: {exc}")

    return {
        "success": True,
        "thumbnailPath": derived.thumbnail_path,
        "thumbnailUrl": derived.thumbnail_url,
    }


@router.post("/annotations", response_model=dict, operation_id="annotate_image")
def annotate(
    request: AnnotateRequest,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    annotator: VisionAnnotator = Depends(get_annotator),
):
    """Annotate one of the owner's stored images and persist the result.

    Vision failures degrade to a fallback annotation; only a failed image
    lookup or annotation write is reported as an error.
    """
    if not request.image_path or request.image_id is None:
        raise HTTPException(status_code=400, detail="Image path and image ID are required")

    try:
        outcome = annotate_stored_image(
            db=db,
            store=store,
            annotator=annotator,
            image_id=request.image_id,
            owner_id=owner_id,
            image_path=request.image_path,
        )
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except PixtagError as exc:
        logger.exception("Annotation failed for image %s", request.image_id)
        raise HTTPException(status_code=500, detail=f"Failed to process image: {exc}")

    return {"success": True, **outcome.result.to_dict()}
