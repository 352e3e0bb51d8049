import logging
import os

from devcamper.core.config import Settings
from devcamper.core.errors import ServerError, ValidationError

logger = logging.getLogger(__name__)


def photo_filename(bootcamp_id: int, original_name: str) -> str:
    _, ext = os.path.splitext(original_name or "")
    return f"photo_{bootcamp_id}{ext.lower()}"


def validate_photo(content_type: str | None, size: int, settings: Settings) -> None:
    if not content_type or not content_type.startswith("image"):
        raise ValidationError("Please upload an image file")
    if size > settings.max_file_upload_size:
        raise ValidationError(f"Please upload an image less than {settings.max_file_upload_size} bytes")


def save_bootcamp_photo(
    bootcamp_id: int,
    original_name: str,
    content_type: str | None,
    data: bytes,
    settings: Settings,
) -> str:
    validate_photo(content_type, len(data), settings)

    filename = photo_filename(bootcamp_id, original_name)
    destination = os.path.join(settings.file_upload_path, filename)
    try:
        os.makedirs(settings.file_upload_path, exist_ok=True)
        with open(destination, "wb") as handle:
            handle.write(data)
    except OSError as exc:
        logger.exception("Could not store upload at %s", destination)
        raise ServerError("Problem with file upload") from exc

    return filename
