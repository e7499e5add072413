"""Image decoding and thumbnail derivation."""

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from pixtag.errors import SourceUnreadable
from pixtag.settings import settings
from pixtag.storage import ObjectStore

logger = logging.getLogger(__name__)

# Register HEIC support if available
try:
    from pillow_heif import register_heif_opener
    register_heif_opener()
    HEIC_SUPPORTED = True
except ImportError:
    HEIC_SUPPORTED = False
    logger.warning("pillow-heif not installed. HEIC files will not be supported.")


THUMBNAIL_CONTENT_TYPE = "image/jpeg"


@dataclass
class DerivedThumbnail:
    """Where a derived thumbnail was stored."""

    thumbnail_path: str
    thumbnail_url: Optional[str]


class ImageProcessor:
    """Decode images and derive fixed-size display thumbnails."""

    SUPPORTED_FORMATS = {".jpg", ".jpeg", ".png", ".webp", ".bmp", ".tiff", ".gif"}

    def __init__(
        self,
        thumbnail_size: Tuple[int, int] = (settings.thumbnail_size, settings.thumbnail_size),
        quality: int = settings.thumbnail_quality,
    ):
        """Initialize processor."""
        self.thumbnail_size = thumbnail_size
        self.quality = quality

    def is_supported(self, filename: str) -> bool:
        """Check if file format is supported."""
        suffix = Path(filename).suffix.lower()

        # Check HEIC separately since it requires pillow-heif
        if suffix in {".heic", ".heif"}:
            return HEIC_SUPPORTED

        return suffix in self.SUPPORTED_FORMATS

    def load_image(self, data: bytes) -> Image.Image:
        """Load and fully decode an image from bytes."""
        if not data:
            raise SourceUnreadable("Image data is empty")
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
            raise SourceUnreadable(f"Cannot decode image: {exc}") from exc
        return image

    def create_thumbnail(self, data: bytes) -> bytes:
        """Create a cover-fit thumbnail and return it as JPEG bytes.

        The source is scaled so its shorter edge matches the target and the
        longer edge is center-cropped. Aspect ratio is preserved and the
        output is never letterboxed.
        """
        image = self.load_image(data)
        img = ImageOps.exif_transpose(image)
        if img.mode != "RGB":
            img = img.convert("RGB")

        img = ImageOps.fit(
            img,
            self.thumbnail_size,
            method=Image.Resampling.LANCZOS,
            centering=(0.5, 0.5),
        )

        buffer = io.BytesIO()
        img.save(buffer, format="JPEG", quality=self.quality, optimize=True)
        return buffer.getvalue()


def derive_thumbnail(
    store: ObjectStore,
    image_path: str,
    thumbnail_path: str,
    processor: Optional[ImageProcessor] = None,
) -> DerivedThumbnail:
    """Fetch a stored original, derive its thumbnail and store it at ``thumbnail_path``.

    Raises:
        StoreError: source fetch or thumbnail upload failed
        SourceUnreadable: the stored original is not a decodable image
    """
    processor = processor or ImageProcessor()
    source = store.download(image_path)
    thumbnail = processor.create_thumbnail(source)
    stored_path = store.upload(thumbnail_path, thumbnail, content_type=THUMBNAIL_CONTENT_TYPE)
    logger.debug("Derived thumbnail %s from %s (%d bytes)", stored_path, image_path, len(thumbnail))
    return DerivedThumbnail(
        thumbnail_path=stored_path,
        thumbnail_url=store.public_url(stored_path),
    )
