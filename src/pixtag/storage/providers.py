"""Object store abstraction with a Google Cloud Storage implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
import mimetypes
from pathlib import PurePosixPath
import secrets
import time
from typing import Any, Iterable, Optional
from urllib.parse import quote

from pixtag.errors import StoreError
from pixtag.settings import Settings, settings as default_settings


logger = logging.getLogger(__name__)

THUMBNAIL_PREFIX = "thumbnails"


class ObjectStore(ABC):
    """Abstract binary store contract. Paths are opaque object keys."""

    provider_name: str

    @abstractmethod
    def upload(self, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        """Store bytes at ``path`` (overwriting) and return the stored path."""

    @abstractmethod
    def download(self, path: str) -> bytes:
        """Return the full bytes stored at ``path``."""

    @abstractmethod
    def delete(self, paths: Iterable[str]) -> None:
        """Remove the objects at ``paths``."""

    @abstractmethod
    def public_url(self, path: Optional[str]) -> Optional[str]:
        """Resolve a stored path into a publicly fetchable URL."""


class GcsObjectStore(ObjectStore):
    """Objects stored in a single GCS bucket, namespaced by owner."""

    provider_name = "gcs"

    def __init__(
        self,
        *,
        bucket_name: str,
        project_id: Optional[str] = None,
        public_base_url: Optional[str] = None,
        client: Optional[Any] = None,
    ):
        if not bucket_name:
            raise ValueError("GcsObjectStore requires a storage bucket name")

        if client is None:
            from google.cloud import storage

            client = storage.Client(project=project_id) if project_id else storage.Client()

        self._bucket = client.bucket(bucket_name)
        base = (public_base_url or "").strip()
        self._public_base_url = base.rstrip("/") if base else f"https://storage.googleapis.com/{bucket_name}"

    def upload(self, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        if not path:
            raise StoreError("Object path is required")
        blob = self._bucket.blob(path)
        try:
            blob.upload_from_string(
                data,
                content_type=content_type or mimetypes.guess_type(path)[0] or "application/octet-stream",
            )
        except Exception as exc:
            raise StoreError(f"Failed to upload {path}: {exc}") from exc
        return path

    def download(self, path: str) -> bytes:
        if not path:
            raise StoreError("Object path is required")
        blob = self._bucket.blob(path)
        try:
            return blob.download_as_bytes()
        except Exception as exc:
            raise StoreError(f"Failed to download {path}: {exc}") from exc

    def delete(self, paths: Iterable[str]) -> None:
        failures = []
        for path in paths:
            if not path:
                continue
            try:
                self._bucket.blob(path).delete()
            except Exception as exc:
                failures.append(f"{path}: {exc}")
        if failures:
            raise StoreError("Failed to delete objects: " + "; ".join(failures))

    def public_url(self, path: Optional[str]) -> Optional[str]:
        if not path:
            return None
        return f"{self._public_base_url}/{quote(path, safe='/')}"


def create_object_store(config: Optional[Settings] = None, client: Optional[Any] = None) -> ObjectStore:
    """Instantiate the configured object store."""
    config = config or default_settings
    return GcsObjectStore(
        bucket_name=config.storage_bucket_name,
        project_id=config.gcp_project_id,
        public_base_url=config.storage_public_base,
        client=client,
    )


def build_original_path(owner_id: str, filename: str, now: Optional[float] = None) -> str:
    """Build an owner-namespaced object key for an uploaded original.

    Format: ``{owner_id}/{epoch_ms}-{random}.{ext}``
    """
    owner = str(owner_id or "").strip()
    if not owner:
        raise ValueError("owner_id is required to build a storage path")
    suffix = PurePosixPath(filename or "").suffix.lstrip(".").lower() or "bin"
    timestamp_ms = int((now if now is not None else time.time()) * 1000)
    return f"{owner}/{timestamp_ms}-{secrets.token_hex(6)}.{suffix}"


def build_thumbnail_path(original_path: str) -> str:
    """Thumbnail key that mirrors the original key under ``thumbnails/``."""
    return f"{THUMBNAIL_PREFIX}/{original_path}"
