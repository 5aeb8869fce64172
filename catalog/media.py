# catalog/media.py
"""
Image uploads for the media library: validation (size, detected MIME type,
extension) and storage through Django's default storage.
"""
import logging
import uuid
from dataclasses import dataclass

from django.conf import settings
from django.core.files.storage import default_storage
from django.db import transaction
from PIL import Image as PILImage, UnidentifiedImageError
from rest_framework.exceptions import ValidationError

from catalog.models import Image

logger = logging.getLogger(__name__)


class FileUploadError(ValidationError):
    """Upload refused; `code` is invalid_size, invalid_mime_type or invalid_extension."""

    @classmethod
    def invalid_size(cls, size, max_size):
        return cls(
            f"File size {size} bytes exceeds the maximum of {max_size} bytes.",
            code="invalid_size",
        )

    @classmethod
    def invalid_mime_type(cls, mime, allowed):
        return cls(
            f"File type {mime} is not allowed. Allowed types: {', '.join(allowed)}.",
            code="invalid_mime_type",
        )

    @classmethod
    def invalid_extension(cls, extension, allowed):
        return cls(
            f"File extension '{extension}' is not allowed. Allowed extensions: {', '.join(allowed)}.",
            code="invalid_extension",
        )


@dataclass(frozen=True)
class UploadRules:
    max_size: int
    allowed_mime_types: tuple = ()
    allowed_extensions: tuple = ()
    directory: str = "brands"

    @classmethod
    def from_settings(cls):
        conf = settings.BACKOFFICE
        return cls(
            max_size=conf["UPLOAD_MAX_SIZE"],
            allowed_mime_types=tuple(conf["UPLOAD_ALLOWED_MIME_TYPES"]),
            allowed_extensions=tuple(conf["UPLOAD_ALLOWED_EXTENSIONS"]),
            directory=conf["UPLOAD_DIRECTORY"],
        )


def _extension(filename):
    return filename.rsplit(".", 1)[-1].lower() if filename and "." in filename else ""


def inspect_image(upload):
    """(mime, width, height) sniffed from the file content; mime is None for non-images."""
    try:
        with PILImage.open(upload) as img:
            mime = PILImage.MIME.get(img.format)
            width, height = img.size
    except (UnidentifiedImageError, OSError):
        return None, None, None
    finally:
        upload.seek(0)
    return mime, width, height


def validate_upload(upload, rules: UploadRules):
    """Raises FileUploadError; returns the (mime, width, height) it detected."""
    if upload.size > rules.max_size:
        raise FileUploadError.invalid_size(upload.size, rules.max_size)

    mime, width, height = inspect_image(upload)
    if rules.allowed_mime_types and mime not in rules.allowed_mime_types:
        raise FileUploadError.invalid_mime_type(mime or "unknown", rules.allowed_mime_types)

    extension = _extension(upload.name)
    if rules.allowed_extensions and extension not in rules.allowed_extensions:
        raise FileUploadError.invalid_extension(extension, rules.allowed_extensions)

    return mime, width, height


def _save_file(upload, brand, rules):
    folder = f"{rules.directory}/{brand.pk}" if brand else f"{rules.directory}/shared"
    return default_storage.save(f"{folder}/{uuid.uuid4().hex}.{_extension(upload.name)}", upload)


def store_images(uploads, brand=None, alt="", rules=None):
    """
    Validate every upload, then store them all and create their library rows
    attached to the brand. Nothing is stored when any file is refused, and
    files already written are removed when a later one fails.
    """
    rules = rules or UploadRules.from_settings()
    checked = []
    for upload in uploads:
        try:
            checked.append((upload, validate_upload(upload, rules)))
        except FileUploadError:
            logger.warning("Rejected upload %r for brand %s", upload.name, getattr(brand, "pk", None))
            raise

    saved = []
    try:
        with transaction.atomic():
            images = []
            for upload, (mime, width, height) in checked:
                path = _save_file(upload, brand, rules)
                saved.append(path)
                image = Image.objects.create(
                    name=upload.name,
                    src=path,
                    alt=alt or "",
                    meta={"size": upload.size, "mime": mime, "width": width, "height": height},
                )
                if brand is not None:
                    image.brands.add(brand)
                images.append(image)
    except Exception:
        for path in saved:
            default_storage.delete(path)
        raise
    return images
