"""Upload ingestion pipeline shared by the web API and the CLI.

Each file in a batch runs through, in order:

    read -> store original -> derive + store thumbnail -> create image record -> annotate

Files are processed one at a time in submission order. A failure before the
annotation stage marks that file as ``error`` and the batch moves on; the
annotation stage never fails a file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
import mimetypes
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence
import uuid

from sqlalchemy.orm import Session

from pixtag.annotation import FAILURE_ANNOTATION, AnnotationResult, VisionAnnotator
from pixtag.errors import StoreError
from pixtag.image import ImageProcessor, derive_thumbnail
from pixtag.metadata import Image, ImageAnnotation, PROCESSING_COMPLETED, PROCESSING_PROCESSING
from pixtag.records import create_image, get_image, upsert_annotation
from pixtag.storage import ObjectStore, build_original_path, build_thumbnail_path

logger = logging.getLogger(__name__)

PROGRESS_QUEUED = 0
PROGRESS_STORE_STARTED = 10
PROGRESS_ORIGINAL_STORED = 50
PROGRESS_THUMBNAIL_STORED = 70
PROGRESS_RECORD_CREATED = 90
PROGRESS_COMPLETED = 100


class UploadStatus(str, Enum):
    UPLOADING = "uploading"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class UploadItem:
    """One file submitted for ingestion.

    Either ``data`` holds the bytes or ``source_path`` names a local file that
    is read when the file's turn comes.
    """

    filename: str
    data: Optional[bytes] = None
    mime_type: Optional[str] = None
    file_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    source_path: Optional[Path] = None

    @property
    def size(self) -> int:
        return len(self.data or b"")

    def read(self) -> bytes:
        if self.data is None and self.source_path is not None:
            self.data = Path(self.source_path).read_bytes()
        return self.data or b""


@dataclass
class UploadProgress:
    """Per-file progress for the duration of a batch."""

    file_id: str
    filename: str
    progress: int = PROGRESS_QUEUED
    status: UploadStatus = UploadStatus.UPLOADING
    error: Optional[str] = None
    image_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_id": self.file_id,
            "filename": self.filename,
            "progress": self.progress,
            "status": self.status.value,
            "error": self.error,
            "image_id": self.image_id,
        }


@dataclass
class IngestEvent:
    """User-facing notification emitted when a file finishes or fails."""

    kind: str  # "success" or "error"
    file_id: str
    filename: str
    title: str
    message: str
    image_id: Optional[int] = None


@dataclass
class AnnotationOutcome:
    annotation: ImageAnnotation
    result: AnnotationResult


ProgressCallback = Callable[[UploadProgress], None]
EventCallback = Callable[[IngestEvent], None]


def annotate_image(
    *,
    db: Session,
    store: ObjectStore,
    annotator: VisionAnnotator,
    image_id: int,
    owner_id: str,
    image_path: str,
) -> AnnotationOutcome:
    """Annotate one stored image and persist the result as ``completed``.

    Any failure of the vision call is replaced by ``FAILURE_ANNOTATION``.
    Metadata-store failures propagate as ``StoreError``.
    """
    upsert_annotation(db, image_id=image_id, owner_id=owner_id, status=PROCESSING_PROCESSING)

    try:
        result = annotator.annotate(store.public_url(image_path))
    except Exception as exc:
        logger.warning("Annotation failed for image %s, using fallback: %s", image_id, exc)
        result = FAILURE_ANNOTATION

    annotation = upsert_annotation(
        db,
        image_id=image_id,
        owner_id=owner_id,
        description=result.description,
        tags=result.tags,
        colors=result.colors,
        status=PROCESSING_COMPLETED,
    )
    logger.info("Annotated image %s (source=%s)", image_id, result.source.value)
    return AnnotationOutcome(annotation=annotation, result=result)


def annotate_stored_image(
    *,
    db: Session,
    store: ObjectStore,
    annotator: VisionAnnotator,
    image_id: int,
    owner_id: str,
    image_path: str,
) -> AnnotationOutcome:
    """Annotate an owned image whose stored original is at ``image_path``.

    Raises:
        NotFound: ``owner_id`` has no image ``image_id``
        ValueError: ``image_path`` is not the image's stored original
        StoreError: the annotation write failed
    """
    image = get_image(db, image_id, owner_id)
    if image_path != image.original_path:
        raise ValueError(f"Path {image_path} does not belong to image {image_id}")
    return annotate_image(
        db=db,
        store=store,
        annotator=annotator,
        image_id=image_id,
        owner_id=owner_id,
        image_path=image_path,
    )


class IngestPipeline:
    """Drive uploaded files through storage, thumbnailing, records and annotation."""

    def __init__(
        self,
        *,
        db: Session,
        store: ObjectStore,
        annotator: Optional[VisionAnnotator] = None,
        processor: Optional[ImageProcessor] = None,
    ):
        self.db = db
        self.store = store
        self.annotator = annotator or VisionAnnotator.from_settings()
        self.processor = processor or ImageProcessor()

    def ingest_batch(
        self,
        owner_id: str,
        files: Sequence[UploadItem],
        on_progress: Optional[ProgressCallback] = None,
        on_event: Optional[EventCallback] = None,
    ) -> Dict[str, UploadProgress]:
        """Ingest ``files`` sequentially and return progress keyed by file id."""
        progress: Dict[str, UploadProgress] = {}
        for item in files:
            if item.file_id in progress:
                raise ValueError(f"Duplicate file id in batch: {item.file_id}")
            progress[item.file_id] = UploadProgress(file_id=item.file_id, filename=item.filename)

        for tracker in progress.values():
            self._notify(on_progress, tracker)

        for item in files:
            self._ingest_one(owner_id, item, progress[item.file_id], on_progress, on_event)

        completed = sum(1 for p in progress.values() if p.status == UploadStatus.COMPLETED)
        logger.info("Ingested batch for %s: %d/%d completed", owner_id, completed, len(progress))
        return progress

    def ingest_file(
        self,
        owner_id: str,
        item: UploadItem,
        on_progress: Optional[ProgressCallback] = None,
        on_event: Optional[EventCallback] = None,
    ) -> UploadProgress:
        return self.ingest_batch(owner_id, [item], on_progress, on_event)[item.file_id]

    def _ingest_one(
        self,
        owner_id: str,
        item: UploadItem,
        tracker: UploadProgress,
        on_progress: Optional[ProgressCallback],
        on_event: Optional[EventCallback],
    ) -> None:
        try:
            self._advance(tracker, PROGRESS_STORE_STARTED, UploadStatus.UPLOADING, on_progress)
            image = self._store_and_record(owner_id, item, tracker, on_progress)
            tracker.image_id = image.id
            self._advance(tracker, PROGRESS_RECORD_CREATED, UploadStatus.PROCESSING, on_progress)

            self._annotate(image)
            self._advance(tracker, PROGRESS_COMPLETED, UploadStatus.COMPLETED, on_progress)
        except Exception as exc:
            logger.warning("Upload failed for %s: %s", item.filename, exc)
            tracker.progress = PROGRESS_QUEUED
            tracker.status = UploadStatus.ERROR
            tracker.error = str(exc) or exc.__class__.__name__
            self._notify(on_progress, tracker)
            self._emit(on_event, IngestEvent(
                kind="error",
                file_id=item.file_id,
                filename=item.filename,
                title="Upload Failed",
                message=tracker.error,
            ))
            return

        self._emit(on_event, IngestEvent(
            kind="success",
            file_id=item.file_id,
            filename=item.filename,
            title="Upload Successful",
            message=f"{item.filename} uploaded and analyzed successfully",
            image_id=tracker.image_id,
        ))

    def _store_and_record(
        self,
        owner_id: str,
        item: UploadItem,
        tracker: UploadProgress,
        on_progress: Optional[ProgressCallback],
    ) -> Image:
        data = item.read()
        mime_type = item.mime_type or mimetypes.guess_type(item.filename)[0]
        original_path = build_original_path(owner_id, item.filename)
        self.store.upload(original_path, data, content_type=mime_type)
        self._advance(tracker, PROGRESS_ORIGINAL_STORED, UploadStatus.UPLOADING, on_progress)

        written: List[str] = [original_path]
        try:
            thumbnail_path = build_thumbnail_path(original_path)
            written.append(thumbnail_path)
            derived = derive_thumbnail(self.store, original_path, thumbnail_path, processor=self.processor)
            self._advance(tracker, PROGRESS_THUMBNAIL_STORED, UploadStatus.PROCESSING, on_progress)

            return create_image(
                self.db,
                owner_id=owner_id,
                filename=item.filename,
                original_path=original_path,
                thumbnail_path=derived.thumbnail_path,
                file_size=len(data),
                mime_type=mime_type,
            )
        except Exception:
            self._discard(written)
            raise

    def _annotate(self, image: Image) -> None:
        try:
            annotate_image(
                db=self.db,
                store=self.store,
                annotator=self.annotator,
                image_id=image.id,
                owner_id=image.owner_id,
                image_path=image.original_path,
            )
        except Exception:
            logger.exception("Annotation stage failed for image %s", image.id)

    def _discard(self, paths: List[str]) -> None:
        try:
            self.store.delete(paths)
        except StoreError as exc:
            logger.warning("Could not remove partial upload %s: %s", paths, exc)

    def _advance(
        self,
        tracker: UploadProgress,
        progress: int,
        status: UploadStatus,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        tracker.progress = progress
        tracker.status = status
        self._notify(on_progress, tracker)

    @staticmethod
    def _notify(on_progress: Optional[ProgressCallback], tracker: UploadProgress) -> None:
        if on_progress is None:
            return
        try:
            on_progress(tracker)
        except Exception:
            logger.exception("Progress callback failed for %s", tracker.filename)

    @staticmethod
    def _emit(on_event: Optional[EventCallback], event: IngestEvent) -> None:
        if on_event is None:
            return
        try:
            on_event(event)
        except Exception:
            logger.exception("Event callback failed for %s", event.filename)
