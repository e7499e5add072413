"""Keyword and color filtering over an owner's annotated images."""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from pixtag.color import is_similar_color, normalize_hex_color
from pixtag.errors import InvalidColor
from pixtag.metadata import Image, ImageAnnotation
from pixtag.records import list_owner_images
from pixtag.settings import settings

logger = logging.getLogger(__name__)


def matches_text(query: str, annotation: Optional[ImageAnnotation]) -> bool:
    """Case-insensitive substring match against the description or any tag."""
    if not (query or "").strip() or annotation is None:
        return False
    needle = query.lower()
    if needle in (annotation.description or "").lower():
        return True
    return any(needle in str(tag).lower() for tag in annotation.tags or [])


def matches_color(
    target: str,
    annotation: Optional[ImageAnnotation],
    threshold: Optional[float] = None,
) -> bool:
    """True when any recorded color equals ``target`` or lies within ``threshold``.

    ``target`` must already be a valid hex color; recorded colors that fail to
    parse never match.
    """
    if annotation is None or not annotation.colors:
        return False
    threshold = settings.color_similarity_threshold if threshold is None else threshold
    wanted = target.strip().upper()
    for color in annotation.colors:
        candidate = str(color).strip().upper()
        if candidate == wanted:
            return True
        try:
            if is_similar_color(candidate, wanted, threshold):
                return True
        except InvalidColor:
            logger.debug("Skipping malformed stored color %r on image %s", color, annotation.image_id)
    return False


def search_by_text(db: Session, owner_id: str, query: str) -> List[Image]:
    """Owner's images whose description or tags contain ``query``. Empty query matches nothing."""
    if not (query or "").strip():
        return []
    return [image for image in list_owner_images(db, owner_id) if matches_text(query, image.annotation)]


def filter_by_color(
    db: Session,
    owner_id: str,
    color: str,
    threshold: Optional[float] = None,
) -> List[Image]:
    """Owner's images with a dominant color near ``color``.

    Raises:
        InvalidColor: ``color`` is not a hex color
    """
    target = normalize_hex_color(color)
    return [
        image
        for image in list_owner_images(db, owner_id)
        if matches_color(target, image.annotation, threshold)
    ]
