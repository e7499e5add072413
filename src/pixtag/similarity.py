"""Find an owner's images that share tags or dominant colors with a given image."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from pixtag.metadata import Image
from pixtag.records import get_annotation, list_owner_images
from pixtag.settings import settings

logger = logging.getLogger(__name__)


def shares_tags_or_colors(
    tags: Iterable[str],
    colors: Iterable[str],
    query_tags: set[str],
    query_colors: set[str],
) -> bool:
    """True when any tag, or any color by exact string, overlaps the query sets."""
    if query_tags and not query_tags.isdisjoint(tags or []):
        return True
    if query_colors and not query_colors.isdisjoint(colors or []):
        return True
    return False


def find_similar(
    db: Session,
    image_id: int,
    owner_id: str,
    limit: Optional[int] = None,
) -> List[Image]:
    """Return up to ``limit`` other images of the owner similar to ``image_id``.

    Candidates qualify by tag overlap or exact color overlap and are ordered
    most recent first. An image with neither tags nor colors has no similar
    images.

    Raises:
        NotFound: the image has no annotation visible to ``owner_id``
    """
    limit = settings.similar_images_limit if limit is None else limit
    source = get_annotation(db, image_id, owner_id)
    query_tags = set(source.tags or [])
    query_colors = set(source.colors or [])
    if not query_tags and not query_colors:
        return []

    results: List[Image] = []
    for image in list_owner_images(db, owner_id):
        if image.id == image_id or image.annotation is None:
            continue
        if shares_tags_or_colors(image.annotation.tags, image.annotation.colors, query_tags, query_colors):
            results.append(image)
            if len(results) >= limit:
                break

    logger.debug("Found %d image(s) similar to %s", len(results), image_id)
    return results
