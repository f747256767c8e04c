"""Image validation and preview generation."""

import base64
import io
from datetime import datetime

from PIL import Image, ImageOps, UnidentifiedImageError

from ..config import get_env
from ..errors import ImageProcessingError, ValidationError
from ..logging_config import get_logger, log_error, log_performance

logger = get_logger(__name__)

# Pillow format name -> MIME type, raster formats only
FORMAT_CONTENT_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
}

ALLOWED_CONTENT_TYPES = frozenset(FORMAT_CONTENT_TYPES.values())


class ImageProcessor:
    """Checks uploads and produces downscaled JPEG previews."""

    def __init__(self, max_file_size: int | None = None) -> None:
        self.MAX_FILE_SIZE = max_file_size or int(get_env("MAX_FILE_SIZE", 20 * 1024 * 1024, int))

    @staticmethod
    def is_allowed_content_type(content_type: str | None) -> bool:
        return (content_type or "").lower() in ALLOWED_CONTENT_TYPES

    def validate_file_size(self, image_data: bytes, filename: str) -> None:
        """
        Raises:
            ValidationError: Empty file or larger than MAX_FILE_SIZE
        """
        file_size = len(image_data)

        if file_size == 0:
            raise ValidationError(f"File '{filename}' is empty", code="file_empty", details={"filename": filename})

        if file_size > self.MAX_FILE_SIZE:
            max_size_mb = self.MAX_FILE_SIZE / (1024 * 1024)
            logger.warning("file_size_too_large", filename=filename, file_size=file_size, max_size=self.MAX_FILE_SIZE)
            raise ValidationError(
                f"File '{filename}' is too large ({file_size / (1024 * 1024):.1f}MB). Maximum size: {max_size_mb:.0f}MB",
                code="file_too_large",
                details={"filename": filename, "file_size": file_size, "max_size": self.MAX_FILE_SIZE},
            )

    def detect_content_type(self, image_data: bytes, filename: str = "") -> str:
        """
        Identify the image format from its bytes.

        Returns:
            str: MIME type of a supported raster format

        Raises:
            ValidationError: Readable image of an unsupported format
            ImageProcessingError: Bytes that are not an image
        """
        try:
            with Image.open(io.BytesIO(image_data)) as image:
                image_format = image.format
        except (UnidentifiedImageError, OSError) as e:
            raise ImageProcessingError(
                f"'{filename}' is not a readable image: {e}",
                code="unreadable_image",
                details={"filename": filename},
                original_exception=e,
            ) from e

        content_type = FORMAT_CONTENT_TYPES.get(image_format or "")
        if content_type is None:
            raise ValidationError(
                f"Unsupported image format '{image_format}' for '{filename}'",
                code="unsupported_format",
                user_message="Only JPEG, PNG, GIF and WEBP images are supported.",
                details={"filename": filename, "format": image_format},
            )
        return content_type

    def prepare_preview(self, image_data: bytes, max_size: int = 512, quality: int = 85) -> bytes:
        """
        Downscale an image to a JPEG preview, honouring EXIF orientation.

        Raises:
            ImageProcessingError: If the image cannot be decoded
        """
        start_time = datetime.now()

        try:
            with Image.open(io.BytesIO(image_data)) as image:
                image = ImageOps.exif_transpose(image)
                if image.mode != "RGB":
                    image = image.convert("RGB")
                image.thumbnail((max_size, max_size), Image.Resampling.LANCZOS)

                buffer = io.BytesIO()
                image.save(buffer, format="JPEG", quality=quality, optimize=True)
                preview = buffer.getvalue()
                preview_size = image.size
        except (UnidentifiedImageError, OSError, ValueError) as e:
            log_error(e, {"operation": "prepare_preview", "original_file_size": len(image_data)})
            raise ImageProcessingError(
                f"Failed to prepare preview: {e}",
                code="preview_generation_failed",
                details={"original_file_size": len(image_data), "max_size": max_size},
                original_exception=e,
            ) from e

        log_performance(
            "prepare_preview",
            (datetime.now() - start_time).total_seconds(),
            preview_size=preview_size,
            original_file_size=len(image_data),
            preview_file_size=len(preview),
        )
        return preview

    @staticmethod
    def to_data_uri(image_data: bytes, content_type: str = "image/jpeg") -> str:
        return f"data:{content_type};base64,{base64.b64encode(image_data).decode('ascii')}"
