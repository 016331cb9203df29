import io
import logging
import time
import uuid

from PIL import Image, UnidentifiedImageError

from core.errors import StorageUploadError, ValidationFailed
from core.storage import SIGNED_URL_TTL
from services.data_access import ScopedRepository

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 10 * 1024 * 1024

# Pillow format name -> stored extension
IMAGE_EXTENSIONS = {
    "JPEG": "jpg",
    "PNG": "png",
    "GIF": "gif",
    "WEBP": "webp",
    "BMP": "bmp",
    "TIFF": "tiff",
}


def sniff_image(data: bytes) -> str:
    """
    Check that `data` is an image Pillow can read and return its extension.
    Raises ValidationFailed otherwise.
    """
    if not data:
        raise ValidationFailed({"photo": "The uploaded file is empty"})
    if len(data) > MAX_UPLOAD_BYTES:
        raise ValidationFailed({"photo": "Image must be 10 MB or smaller"})
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError):
        raise ValidationFailed({"photo": "Please upload a valid image file"})

    ext = IMAGE_EXTENSIONS.get(fmt)
    if ext is None:
        raise ValidationFailed({"photo": f"Unsupported image format: {fmt}"})
    return ext


def build_object_path(clinic_id: str, patient_id: str, ext: str, prefix: str = "") -> str:
    timestamp = int(time.time() * 1000)
    return f"{clinic_id}/{patient_id}/{prefix}{timestamp}_{uuid.uuid4().hex}.{ext}"


def _upload(context, patient_id: str, data: bytes, prefix: str = "") -> str:
    if context.bucket is None:
        raise StorageUploadError("No storage bucket configured")

    # Raises NotFound for patients outside the caller's clinic
    patient = ScopedRepository(context, "patients").get(patient_id)

    ext = sniff_image(data)
    object_path = build_object_path(patient.clinic_id, patient.id, ext, prefix)
    content_type = Image.MIME.get({v: k for k, v in IMAGE_EXTENSIONS.items()}[ext], "application/octet-stream")

    context.bucket.upload(object_path, data, content_type=content_type)
    logger.info("Uploaded image for patient %s", patient.id, extra={"object_path": object_path})
    return context.bucket.create_signed_url(object_path, SIGNED_URL_TTL)


def upload_visit_photo(context, patient_id: str, filename: str, data: bytes) -> str:
    """Store a prescription photo and return a signed URL valid for one year."""
    logger.debug("Uploading prescription photo %s", filename)
    return _upload(context, patient_id, data)


def upload_patient_photo(context, patient_id: str, filename: str, data: bytes) -> str:
    logger.debug("Uploading patient photo %s", filename)
    return _upload(context, patient_id, data, prefix="profile_")
