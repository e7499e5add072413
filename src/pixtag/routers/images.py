"""Image endpoints: upload, list, get, status, annotation edits, delete, similar."""

import logging
import math
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy.orm import Session

from pixtag.annotation import VisionAnnotator
from pixtag.color import normalize_hex_color
from pixtag.dependencies import (
    get_annotator,
    get_db,
    get_image_processor,
    get_object_store,
    get_owner_id,
)
from pixtag.image import ImageProcessor
from pixtag.ingest_pipeline import IngestPipeline, UploadItem, UploadStatus
from pixtag.metadata import PROCESSING_STATUSES
from pixtag.models.requests import AnnotationUpdateRequest, ProcessingStatusRequest
from pixtag.records import (
    count_owner_images,
    delete_image as delete_image_record,
    get_annotation,
    get_image,
    list_owner_images,
    serialize_annotation,
    serialize_image,
    set_processing_status,
    upsert_annotation,
)
from pixtag.similarity import find_similar
from pixtag.storage import ObjectStore

router = APIRouter(
    prefix="/api/v1",
    tags=["images"]
)
logger = logging.getLogger(__name__)


@router.post("/images/upload", response_model=dict, operation_id="upload_images")
async def upload_images(
    files: List[UploadFile] = File(...),
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    annotator: VisionAnnotator = Depends(get_annotator),
    processor: ImageProcessor = Depends(get_image_processor),
):
    """Store, thumbnail and annotate uploaded images one after another."""
    items = []
    for file in files:
        items.append(UploadItem(
            filename=file.filename or "upload",
            data=await file.read(),
            mime_type=file.content_type,
        ))

    events = []
    pipeline = IngestPipeline(db=db, store=store, annotator=annotator, processor=processor)
    progress = pipeline.ingest_batch(owner_id, items, on_event=events.append)

    results = [progress[item.file_id].to_dict() for item in items]
    return {
        "uploaded": len([r for r in results if r["status"] == UploadStatus.COMPLETED.value]),
        "failed": len([r for r in results if r["status"] == UploadStatus.ERROR.value]),
        "results": results,
        "events": [
            {"kind": e.kind, "file_id": e.file_id, "title": e.title, "message": e.message}
            for e in events
        ],
    }


@router.get("/images", response_model=dict, operation_id="list_images")
def list_images(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
):
    """List the owner's images with annotations, newest first."""
    total = count_owner_images(db, owner_id)
    images = list_owner_images(db, owner_id, offset=(page - 1) * limit, limit=limit)
    return {
        "images": [serialize_image(image, store) for image in images],
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": math.ceil(total / limit) if total else 0,
    }


@router.get("/images/{image_id}", response_model=dict, operation_id="get_image")
def get_image_detail(
    image_id: int,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
):
    return serialize_image(get_image(db, image_id, owner_id), store)


@router.get("/images/{image_id}/status", response_model=dict, operation_id="get_processing_status")
def get_processing_status(
    image_id: int,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    annotation = get_annotation(db, image_id, owner_id)
    return {"image_id": image_id, "processing_status": annotation.processing_status}


@router.put("/images/{image_id}/status", response_model=dict, operation_id="update_processing_status")
def update_processing_status(
    image_id: int,
    request: ProcessingStatusRequest,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """Set the processing status. A completed annotation keeps its status."""
    if request.processing_status not in PROCESSING_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid processing status: {request.processing_status}")
    annotation = set_processing_status(db, image_id, owner_id, request.processing_status)
    return {"image_id": image_id, "processing_status": annotation.processing_status}


@router.put("/images/{image_id}/annotation", response_model=dict, operation_id="update_image_annotation")
def update_image_annotation(
    image_id: int,
    request: AnnotationUpdateRequest,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """Replace description, tags or colors of an owned image."""
    if request.processing_status not in PROCESSING_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid processing status: {request.processing_status}")

    get_image(db, image_id, owner_id)
    tags = None
    if request.tags is not None:
        tags = [tag.strip() for tag in request.tags if tag and tag.strip()]
    colors = None
    if request.colors is not None:
        colors = [normalize_hex_color(color) for color in request.colors]

    annotation = upsert_annotation(
        db,
        image_id=image_id,
        owner_id=owner_id,
        description=request.description,
        tags=tags,
        colors=colors,
        status=request.processing_status,
    )
    return serialize_annotation(annotation)


@router.delete("/images/{image_id}", response_model=dict, operation_id="delete_image")
def delete_image(
    image_id: int,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
):
    """Delete an image's binaries, record and annotation."""
    delete_image_record(db, store, image_id, owner_id)
    logger.info("Deleted image %s for %s", image_id, owner_id)
    return {"deleted": True, "image_id": image_id}


@router.get("/images/{image_id}/similar", response_model=dict, operation_id="get_similar_images")
def get_similar_images(
    image_id: int,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
):
    """Images sharing a tag or an exact dominant color with the given image."""
    images = find_similar(db, image_id, owner_id)
    return {
        "image_id": image_id,
        "images": [serialize_image(image, store) for image in images],
    }
