"""Object store abstractions."""

from .providers import (
    THUMBNAIL_PREFIX,
    ObjectStore,
    GcsObjectStore,
    create_object_store,
    build_original_path,
    build_thumbnail_path,
)

__all__ = [
    "THUMBNAIL_PREFIX",
    "ObjectStore",
    "GcsObjectStore",
    "create_object_store",
    "build_original_path",
    "build_thumbnail_path",
]
