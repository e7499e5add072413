"""Pydantic request models for API endpoints."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ThumbnailRequest(BaseModel):
    """Request model for the thumbnail derivation endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    image_path: Optional[str] = Field(default=None, alias="imagePath")
    thumbnail_path: Optional[str] = Field(default=None, alias="thumbnailPath")


class AnnotateRequest(BaseModel):
    """Request model for the annotate endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    image_path: Optional[str] = Field(default=None, alias="imagePath")
    image_id: Optional[int] = Field(default=None, alias="imageId")


class AnnotationUpdateRequest(BaseModel):
    """Manual annotation edit. Omitted fields keep their stored value."""
    description: Optional[str] = None
    tags: Optional[List[str]] = None
    colors: Optional[List[str]] = None
    processing_status: str = "completed"


class ProcessingStatusRequest(BaseModel):
    processing_status: str
