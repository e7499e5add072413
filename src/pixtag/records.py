"""Owner-scoped reads and writes for image and annotation records."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from pixtag.annotation import PARSE_FALLBACK_COLORS, PARSE_FALLBACK_TAGS, PLACEHOLDER_DESCRIPTION
from pixtag.errors import NotFound, StoreError
from pixtag.metadata import (
    Image,
    ImageAnnotation,
    PROCESSING_COMPLETED,
    PROCESSING_FAILED,
    PROCESSING_PENDING,
    PROCESSING_PROCESSING,
    PROCESSING_STATUSES,
)
from pixtag.storage import ObjectStore

logger = logging.getLogger(__name__)


def owner_filter(model, owner_id: str):
    """Column filter restricting a query to one owner's rows."""
    return model.owner_id == str(owner_id)


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreError(f"Failed to {action}: {exc}") from exc


def create_image(
    db: Session,
    *,
    owner_id: str,
    filename: str,
    original_path: str,
    thumbnail_path: Optional[str],
    file_size: Optional[int] = None,
    mime_type: Optional[str] = None,
) -> Image:
    """Insert the image record for a stored upload."""
    image = Image(
        owner_id=str(owner_id),
        filename=filename,
        original_path=original_path,
        thumbnail_path=thumbnail_path,
        file_size=file_size,
        mime_type=mime_type,
    )
    db.add(image)
    _commit(db, "create image record")
    db.refresh(image)
    return image


def get_image(db: Session, image_id: int, owner_id: str) -> Image:
    image = (
        db.query(Image)
        .options(selectinload(Image.annotation))
        .filter(Image.id == image_id, owner_filter(Image, owner_id))
        .first()
    )
    if image is None:
        raise NotFound(f"Image {image_id} not found")
    return image


def get_annotation(db: Session, image_id: int, owner_id: str) -> ImageAnnotation:
    annotation = (
        db.query(ImageAnnotation)
        .filter(ImageAnnotation.image_id == image_id, owner_filter(ImageAnnotation, owner_id))
        .first()
    )
    if annotation is None:
        raise NotFound(f"Annotation for image {image_id} not found")
    return annotation


STATUS_RANK = {
    PROCESSING_PENDING: 0,
    PROCESSING_PROCESSING: 1,
    PROCESSING_COMPLETED: 2,
    PROCESSING_FAILED: 2,
}


def _resolve_status(current: Optional[str], requested: str) -> str:
    # Status only moves forward; completed is terminal, failed may be re-completed.
    if current is None:
        return requested
    if current == PROCESSING_COMPLETED and requested != PROCESSING_COMPLETED:
        logger.debug("Ignoring status regression %s -> %s", current, requested)
        return current
    if STATUS_RANK[requested] < STATUS_RANK.get(current, 0):
        logger.debug("Ignoring status regression %s -> %s", current, requested)
        return current
    return requested


def _fill_completed(annotation: ImageAnnotation) -> None:
    """A completed annotation always carries a description, tags and colors."""
    if not annotation.description:
        annotation.description = PLACEHOLDER_DESCRIPTION
    if not annotation.tags:
        annotation.tags = list(PARSE_FALLBACK_TAGS)
    if not annotation.colors:
        annotation.colors = list(PARSE_FALLBACK_COLORS)


def upsert_annotation(
    db: Session,
    *,
    image_id: int,
    owner_id: str,
    description: Optional[str] = None,
    tags: Optional[Iterable[str]] = None,
    colors: Optional[Iterable[str]] = None,
    status: str = PROCESSING_COMPLETED,
) -> ImageAnnotation:
    """Create or replace the annotation for an image, keyed by image id.

    Fields passed as ``None`` keep their stored value. Status never moves
    backwards, and a completed annotation gets placeholder values for any
    field still empty.
    """
    if status not in PROCESSING_STATUSES:
        raise ValueError(f"Unknown processing status: {status}")

    annotation = (
        db.query(ImageAnnotation)
        .filter(ImageAnnotation.image_id == image_id)
        .first()
    )
    if annotation is None:
        annotation = ImageAnnotation(
            image_id=image_id,
            owner_id=str(owner_id),
            tags=[],
            colors=[],
            processing_status=PROCESSING_PENDING,
        )
        db.add(annotation)
    elif annotation.owner_id != str(owner_id):
        raise NotFound(f"Image {image_id} not found")

    if description is not None:
        annotation.description = description
    if tags is not None:
        annotation.tags = list(tags)
    if colors is not None:
        annotation.colors = list(colors)
    annotation.processing_status = _resolve_status(annotation.processing_status, status)
    if annotation.processing_status == PROCESSING_COMPLETED:
        _fill_completed(annotation)

    _commit(db, "update image annotation")
    db.refresh(annotation)
    return annotation


def set_processing_status(db: Session, image_id: int, owner_id: str, status: str) -> ImageAnnotation:
    get_image(db, image_id, owner_id)
    return upsert_annotation(db, image_id=image_id, owner_id=owner_id, status=status)


def list_owner_images(
    db: Session,
    owner_id: str,
    *,
    offset: int = 0,
    limit: Optional[int] = None,
) -> List[Image]:
    """Owner's images with annotations loaded, newest first."""
    query = (
        db.query(Image)
        .options(selectinload(Image.annotation))
        .filter(owner_filter(Image, owner_id))
        .order_by(Image.created_at.desc(), Image.id.desc())
    )
    if offset:
        query = query.offset(offset)
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def count_owner_images(db: Session, owner_id: str) -> int:
    return db.query(Image).filter(owner_filter(Image, owner_id)).count()


def delete_image(db: Session, store: ObjectStore, image_id: int, owner_id: str) -> None:
    """Remove an image's binaries, then its record and annotation."""
    image = get_image(db, image_id, owner_id)
    try:
        store.delete([image.original_path, image.thumbnail_path])
    except StoreError:
        # Record removal proceeds; orphaned objects are only wasted space.
        logger.exception("Storage deletion failed for image %s", image_id)

    db.delete(image)
    _commit(db, "delete image record")


def serialize_annotation(annotation: Optional[ImageAnnotation]) -> Optional[Dict[str, Any]]:
    if annotation is None:
        return None
    return {
        "image_id": annotation.image_id,
        "description": annotation.description,
        "tags": list(annotation.tags or []),
        "colors": list(annotation.colors or []),
        "processing_status": annotation.processing_status,
        "created_at": annotation.created_at.isoformat() if annotation.created_at else None,
        "updated_at": annotation.updated_at.isoformat() if annotation.updated_at else None,
    }


def serialize_image(image: Image, store: ObjectStore) -> Dict[str, Any]:
    """Image payload decorated with public URLs for its binaries."""
    return {
        "id": image.id,
        "owner_id": image.owner_id,
        "filename": image.filename,
        "original_path": image.original_path,
        "thumbnail_path": image.thumbnail_path,
        "original_url": store.public_url(image.original_path),
        "thumbnail_url": store.public_url(image.thumbnail_path),
        "file_size": image.file_size,
        "mime_type": image.mime_type,
        "created_at": image.created_at.isoformat() if image.created_at else None,
        "annotation": serialize_annotation(image.annotation),
    }
