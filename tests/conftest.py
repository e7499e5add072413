"""Test configuration and fixtures."""

import io
import os

# Settings are read at import time; keep tests off Postgres and the real vision API.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["OPENAI_API_KEY"] = ""

import pytest
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pixtag.metadata import Base
from pixtag.storage import GcsObjectStore


class FakeUploadError(Exception):
    pass


class FakeBlob:
    def __init__(self, bucket: "FakeBucket", name: str):
        self.bucket = bucket
        self.name = name

    def upload_from_string(self, data, content_type=None):
        if self.bucket.fail_upload(self.name):
            raise FakeUploadError(f"upload rejected for {self.name}")
        self.bucket.objects[self.name] = bytes(data)
        self.bucket.content_types[self.name] = content_type

    def download_as_bytes(self):
        if self.name not in self.bucket.objects:
            raise FakeUploadError(f"404 {self.name} not found")
        return self.bucket.objects[self.name]

    def delete(self):
        if self.bucket.fail_delete:
            raise FakeUploadError(f"delete rejected for {self.name}")
        self.bucket.objects.pop(self.name, None)
        self.bucket.deleted.append(self.name)


class FakeBucket:
    def __init__(self, name: str):
        self.name = name
        self.objects = {}
        self.content_types = {}
        self.deleted = []
        self.fail_delete = False
        self.fail_upload = lambda path: False

    def blob(self, name: str) -> FakeBlob:
        return FakeBlob(self, name)


class FakeStorageClient:
    def __init__(self):
        self.buckets = {}

    def bucket(self, name: str) -> FakeBucket:
        if name not in self.buckets:
            self.buckets[name] = FakeBucket(name)
        return self.buckets[name]


def make_jpeg(width: int = 100, height: int = 100, color: str = "red") -> bytes:
    img = Image.new("RGB", (width, height), color=color)
    buffer = io.BytesIO()
    img.save(buffer, format="JPEG")
    return buffer.getvalue()


@pytest.fixture
def test_db():
    """Create test database."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(engine)


@pytest.fixture
def sample_image_data():
    """Generate sample image data for testing."""
    return make_jpeg()


@pytest.fixture
def storage_client():
    return FakeStorageClient()


@pytest.fixture
def object_store(storage_client):
    """GCS-backed object store wired to an in-memory fake client."""
    return GcsObjectStore(
        bucket_name="test-bucket",
        public_base_url="https://cdn.example.test/test-bucket",
        client=storage_client,
    )


@pytest.fixture
def bucket(storage_client, object_store):
    return storage_client.bucket("test-bucket")
