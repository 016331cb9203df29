"""
Blob storage for clinic media (prescription and patient photos).

Objects live under `{clinic_id}/{patient_id}/...` inside a bucket so the
owning clinic can be read straight off the path. Two backends:

- LocalStorageBucket: files on disk, URLs signed with HMAC-SHA256.
- MinioStorageBucket: an S3-compatible bucket via the MinIO client.
"""
import hashlib
import hmac
import io
import logging
import os
import time
from datetime import timedelta
from pathlib import Path
from urllib.parse import parse_qs, urlparse

from core.errors import SignedUrlError, StorageUploadError

logger = logging.getLogger(__name__)

PRESCRIPTIONS_BUCKET = "prescriptions"
SIGNED_URL_TTL = 60 * 60 * 24 * 365  # 1 year
MINIO_MAX_TTL = 60 * 60 * 24 * 7  # MinIO refuses presigned URLs beyond 7 days


def _check_object_path(object_path: str) -> str:
    parts = object_path.split("/")
    if not object_path or object_path.startswith("/") or any(p in ("", ".", "..") for p in parts):
        raise StorageUploadError(f"invalid object path '{object_path}'")
    return object_path


class LocalStorageBucket:
    def __init__(self, root: str, bucket: str, signing_key: str, base_url: str = "local://storage"):
        self.root = Path(root)
        self.bucket = bucket
        self.signing_key = signing_key.encode("utf-8")
        self.base_url = base_url.rstrip("/")

    def _file_for(self, object_path: str) -> Path:
        return self.root / self.bucket / object_path

    def upload(self, object_path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        _check_object_path(object_path)
        dest = self._file_for(object_path)
        if dest.exists():
            raise StorageUploadError(f"object '{object_path}' already exists")
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            with open(dest, "xb") as f:
                f.write(data)
        except OSError as exc:
            raise StorageUploadError(str(exc)) from exc
        return object_path

    def exists(self, object_path: str) -> bool:
        return self._file_for(object_path).is_file()

    def read(self, object_path: str) -> bytes:
        with open(self._file_for(object_path), "rb") as f:
            return f.read()

    def _token(self, object_path: str, expires: int) -> str:
        message = f"{self.bucket}/{object_path}:{expires}".encode("utf-8")
        return hmac.new(self.signing_key, message, hashlib.sha256).hexdigest()

    def create_signed_url(self, object_path: str, expires_in: int = SIGNED_URL_TTL) -> str:
        if expires_in <= 0:
            raise SignedUrlError("expiry must be positive")
        if not self.exists(object_path):
            raise SignedUrlError(f"object '{object_path}' not found")
        expires = int(time.time()) + int(expires_in)
        token = self._token(object_path, expires)
        return f"{self.base_url}/object/sign/{self.bucket}/{object_path}?expires={expires}&token={token}"

    def verify_signed_url(self, url: str, now: float = None) -> str:
        """Return the object path a signed URL grants, or raise SignedUrlError."""
        parsed = urlparse(url)
        query = parse_qs(parsed.query)
        try:
            expires = int(query["expires"][0])
            token = query["token"][0]
        except (KeyError, IndexError, ValueError):
            raise SignedUrlError("malformed signed URL")

        marker = f"/object/sign/{self.bucket}/"
        full_path = f"{parsed.netloc}{parsed.path}"
        if marker not in full_path:
            raise SignedUrlError("URL does not belong to this bucket")
        object_path = full_path.split(marker, 1)[1]

        if not hmac.compare_digest(token, self._token(object_path, expires)):
            raise SignedUrlError("invalid signature")
        if (now if now is not None else time.time()) > expires:
            raise SignedUrlError("signed URL expired")
        return object_path


class MinioStorageBucket:
    def __init__(self, client, bucket: str):
        self.client = client
        self.bucket = bucket

    def upload(self, object_path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        from minio.error import MinioException
        from urllib3.exceptions import HTTPError

        _check_object_path(object_path)
        try:
            self.client.put_object(
                self.bucket,
                object_path,
                io.BytesIO(data),
                length=len(data),
                content_type=content_type,
            )
        except (MinioException, HTTPError) as exc:
            raise StorageUploadError(str(exc)) from exc
        return object_path

    def create_signed_url(self, object_path: str, expires_in: int = SIGNED_URL_TTL) -> str:
        from minio.error import MinioException
        from urllib3.exceptions import HTTPError

        seconds = min(int(expires_in), MINIO_MAX_TTL)
        try:
            return self.client.presigned_get_object(
                bucket_name=self.bucket,
                object_name=object_path,
                expires=timedelta(seconds=seconds),
            )
        except (MinioException, HTTPError, ValueError) as exc:
            raise SignedUrlError(str(exc)) from exc


def get_minio_client(settings):
    """Get configured MinIO client instance."""
    from minio import Minio

    return Minio(
        settings.minio_endpoint,
        access_key=settings.minio_access_key,
        secret_key=settings.minio_secret_key,
        secure=settings.minio_use_ssl,
    )


def build_bucket(settings, bucket: str = PRESCRIPTIONS_BUCKET):
    if settings.uses_minio:
        return MinioStorageBucket(get_minio_client(settings), bucket)
    return LocalStorageBucket(os.path.abspath(settings.storage_dir), bucket, settings.signing_key)
