"""Test the upload ingestion pipeline."""

import httpx
import pytest

from pixtag.annotation import FAILURE_ANNOTATION, MOCK_ANNOTATION, AnnotationSource, VisionAnnotator
from pixtag.errors import NotFound
from pixtag.ingest_pipeline import (
    IngestPipeline,
    UploadItem,
    UploadStatus,
    annotate_image,
    annotate_stored_image,
)
from pixtag.metadata import Image, ImageAnnotation
from pixtag.records import create_image, get_annotation

from conftest import make_jpeg


def _failing_annotator() -> VisionAnnotator:
    def handler(request):
        raise httpx.ConnectError("network unreachable", request=request)

    return VisionAnnotator(api_key="sk-test", http_client=httpx.Client(transport=httpx.MockTransport(handler)))


def _fail_nth_thumbnail(n: int):
    seen = []

    def fail(path: str) -> bool:
        if not path.startswith("thumbnails/"):
            return False
        seen.append(path)
        return len(seen) == n

    return fail


@pytest.fixture
def pipeline(test_db, object_store):
    return IngestPipeline(db=test_db, store=object_store, annotator=VisionAnnotator(api_key=None))


def test_single_file_completes(pipeline, test_db, bucket):
    item = UploadItem(filename="photo.jpg", data=make_jpeg(), mime_type="image/jpeg")

    progress = pipeline.ingest_batch("user-1", [item])

    tracker = progress[item.file_id]
    assert tracker.status == UploadStatus.COMPLETED
    assert tracker.progress == 100
    assert tracker.error is None

    image = test_db.query(Image).one()
    assert tracker.image_id == image.id
    assert image.owner_id == "user-1"
    assert image.original_path.startswith("user-1/") and image.original_path.endswith(".jpg")
    assert image.thumbnail_path == f"thumbnails/{image.original_path}"
    assert image.file_size == len(item.data)
    assert set(bucket.objects) == {image.original_path, image.thumbnail_path}

    annotation = get_annotation(test_db, image.id, "user-1")
    assert annotation.processing_status == "completed"
    assert annotation.description == MOCK_ANNOTATION.description
    assert annotation.tags == MOCK_ANNOTATION.tags


def test_progress_checkpoints_in_order(pipeline):
    item = UploadItem(filename="photo.jpg", data=make_jpeg())
    snapshots = []

    pipeline.ingest_batch("user-1", [item], on_progress=lambda p: snapshots.append((p.progress, p.status.value)))

    assert snapshots == [
        (0, "uploading"),
        (10, "uploading"),
        (50, "uploading"),
        (70, "processing"),
        (90, "processing"),
        (100, "completed"),
    ]


def test_failed_file_does_not_abort_batch(pipeline, test_db, bucket):
    bucket.fail_upload = _fail_nth_thumbnail(2)
    items = [UploadItem(filename=f"{i}.jpg", data=make_jpeg()) for i in range(1, 4)]
    events = []

    progress = pipeline.ingest_batch("user-1", items, on_event=events.append)

    first, second, third = (progress[item.file_id] for item in items)
    assert first.status == UploadStatus.COMPLETED
    assert third.status == UploadStatus.COMPLETED
    assert second.status == UploadStatus.ERROR
    assert second.progress == 0
    assert "upload rejected" in second.error
    assert second.image_id is None

    assert test_db.query(Image).count() == 2
    assert test_db.query(ImageAnnotation).count() == 2
    assert [image.filename for image in test_db.query(Image).order_by(Image.id)] == ["1.jpg", "3.jpg"]
    # The stored original of the failed file is cleaned up.
    assert len(bucket.objects) == 4
    assert [(e.kind, e.filename) for e in events] == [("success", "1.jpg"), ("error", "2.jpg"), ("success", "3.jpg")]


def test_undecodable_upload_is_an_error(pipeline, test_db, bucket):
    item = UploadItem(filename="broken.jpg", data=b"not an image")

    tracker = pipeline.ingest_file("user-1", item)

    assert tracker.status == UploadStatus.ERROR
    assert tracker.error
    assert test_db.query(Image).count() == 0
    assert bucket.objects == {}


def test_original_upload_failure_is_an_error(pipeline, test_db, bucket):
    bucket.fail_upload = lambda path: True

    tracker = pipeline.ingest_file("user-1", UploadItem(filename="a.jpg", data=make_jpeg()))

    assert tracker.status == UploadStatus.ERROR
    assert tracker.progress == 0
    assert test_db.query(Image).count() == 0


def test_network_error_during_annotation_still_completes(test_db, object_store):
    pipeline = IngestPipeline(db=test_db, store=object_store, annotator=_failing_annotator())
    item = UploadItem(filename="a.jpg", data=make_jpeg())

    tracker = pipeline.ingest_file("user-1", item)

    assert tracker.status == UploadStatus.COMPLETED
    annotation = get_annotation(test_db, tracker.image_id, "user-1")
    assert annotation.processing_status == "completed"
    assert annotation.description == FAILURE_ANNOTATION.description
    assert annotation.tags == ["image", "photo", "picture"]
    assert annotation.colors == ["#808080"]


def test_callback_errors_do_not_fail_the_file(pipeline):
    def broken(progress):
        raise RuntimeError("display gone")

    item = UploadItem(filename="a.jpg", data=make_jpeg())
    progress = pipeline.ingest_batch("user-1", [item], on_progress=broken, on_event=broken)

    assert progress[item.file_id].status == UploadStatus.COMPLETED


def test_duplicate_file_ids_rejected(pipeline):
    items = [UploadItem(filename="a.jpg", data=b"", file_id="same"), UploadItem(filename="b.jpg", data=b"", file_id="same")]
    with pytest.raises(ValueError):
        pipeline.ingest_batch("user-1", items)


def test_upload_item_defaults():
    item = UploadItem(filename="a.jpg", data=b"123")
    assert item.size == 3
    assert len(item.file_id) == 32


def test_upload_item_reads_source_path_lazily(tmp_path):
    path = tmp_path / "a.jpg"
    item = UploadItem(filename="a.jpg", source_path=path)
    path.write_bytes(b"1234")

    assert item.size == 0
    assert item.read() == b"1234"
    assert item.size == 4


def test_unreadable_source_is_an_error(pipeline, test_db, tmp_path):
    good = tmp_path / "good.jpg"
    good.write_bytes(make_jpeg())
    missing = UploadItem(filename="gone.jpg", source_path=tmp_path / "gone.jpg")
    readable = UploadItem(filename="good.jpg", source_path=good)
    events = []

    progress = pipeline.ingest_batch("user-1", [missing, readable], on_event=events.append)

    assert progress[missing.file_id].status == UploadStatus.ERROR
    assert progress[readable.file_id].status == UploadStatus.COMPLETED
    assert [event.kind for event in events] == ["error", "success"]
    assert [image.filename for image in test_db.query(Image)] == ["good.jpg"]
    assert test_db.query(Image).one().file_size == len(good.read_bytes())


class TestAnnotateImage:

    def _stored_image(self, test_db):
        return create_image(
            test_db,
            owner_id="user-1",
            filename="a.jpg",
            original_path="user-1/a.jpg",
            thumbnail_path="thumbnails/user-1/a.jpg",
        )

    def test_model_result_is_persisted(self, test_db, object_store):
        image = self._stored_image(test_db)
        seen = {}

        def handler(request):
            seen["body"] = request.content.decode()
            return httpx.Response(200, json={"choices": [{"message": {
                "content": '{"description": "A lone tree.", "tags": ["tree"], "colors": ["#00aa00"]}'
            }}]})

        annotator = VisionAnnotator(api_key="sk-test", http_client=httpx.Client(transport=httpx.MockTransport(handler)))
        outcome = annotate_image(
            db=test_db,
            store=object_store,
            annotator=annotator,
            image_id=image.id,
            owner_id="user-1",
            image_path=image.original_path,
        )

        assert outcome.result.source == AnnotationSource.MODEL
        assert outcome.annotation.colors == ["#00AA00"]
        assert outcome.annotation.processing_status == "completed"
        assert "https://cdn.example.test/test-bucket/user-1/a.jpg" in seen["body"]

    def test_upstream_failure_uses_fallback(self, test_db, object_store):
        image = self._stored_image(test_db)

        outcome = annotate_stored_image(
            db=test_db,
            store=object_store,
            annotator=_failing_annotator(),
            image_id=image.id,
            owner_id="user-1",
            image_path=image.original_path,
        )

        assert outcome.result is FAILURE_ANNOTATION
        assert outcome.annotation.description == FAILURE_ANNOTATION.description
        assert outcome.annotation.processing_status == "completed"

    def test_unknown_image(self, test_db, object_store):
        with pytest.raises(NotFound):
            annotate_stored_image(
                db=test_db,
                store=object_store,
                annotator=VisionAnnotator(api_key=None),
                image_id=999,
                owner_id="user-1",
                image_path="user-1/a.jpg",
            )

    def test_other_owners_image_is_not_found(self, test_db, object_store):
        image = self._stored_image(test_db)
        with pytest.raises(NotFound):
            annotate_stored_image(
                db=test_db,
                store=object_store,
                annotator=VisionAnnotator(api_key=None),
                image_id=image.id,
                owner_id="user-2",
                image_path=image.original_path,
            )
        assert test_db.query(ImageAnnotation).count() == 0

    def test_path_must_be_the_stored_original(self, test_db, object_store):
        image = self._stored_image(test_db)
        with pytest.raises(ValueError):
            annotate_stored_image(
                db=test_db,
                store=object_store,
                annotator=VisionAnnotator(api_key=None),
                image_id=image.id,
                owner_id="user-1",
                image_path="user-2/b.jpg",
            )
        assert test_db.query(ImageAnnotation).count() == 0
