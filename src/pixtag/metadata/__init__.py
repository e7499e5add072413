"""Metadata storage and management."""

from datetime import datetime

from sqlalchemy import Column, String, Integer, BigInteger, DateTime, Text, ForeignKey, Index, CheckConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import relationship
from sqlalchemy.ext.compiler import compiles

@compiles(JSONB, "sqlite")
def compile_jsonb_for_sqlite(element, compiler, **kw):
    return compiler.visit_JSON(element, **kw)


Base = declarative_base()


PROCESSING_PENDING = "pending"
PROCESSING_PROCESSING = "processing"
PROCESSING_COMPLETED = "completed"
PROCESSING_FAILED = "failed"
PROCESSING_STATUSES = (
    PROCESSING_PENDING,
    PROCESSING_PROCESSING,
    PROCESSING_COMPLETED,
    PROCESSING_FAILED,
)


class Image(Base):
    """An uploaded image and the object-store pointers for its binaries."""

    __tablename__ = "images"

    id = Column(Integer, primary_key=True)
    owner_id = Column(String(255), nullable=False, index=True)

    # File information
    filename = Column(String(1024), nullable=False)
    original_path = Column(String(2048), nullable=False)  # Object key of the uploaded original
    thumbnail_path = Column(String(2048), nullable=True)  # Set once by the thumbnail step
    file_size = Column(BigInteger)
    mime_type = Column(String(255))

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    annotation = relationship(
        "ImageAnnotation",
        back_populates="image",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_images_owner_created", "owner_id", "created_at"),
    )


class ImageAnnotation(Base):
    """Vision-model annotation for one image (description, tags, dominant colors)."""

    __tablename__ = "image_annotations"

    id = Column(Integer, primary_key=True)
    image_id = Column(Integer, ForeignKey("images.id", ondelete="CASCADE"), nullable=False, unique=True)
    owner_id = Column(String(255), nullable=False, index=True)

    description = Column(Text)
    tags = Column(JSONB, nullable=False, default=list)  # Ordered list of strings
    colors = Column(JSONB, nullable=False, default=list)  # List of "#RRGGBB"
    processing_status = Column(String(20), nullable=False, default=PROCESSING_PENDING)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    image = relationship("Image", back_populates="annotation")

    __table_args__ = (
        CheckConstraint(
            "processing_status IN ('pending', 'processing', 'completed', 'failed')",
            name="ck_image_annotations_processing_status",
        ),
    )
