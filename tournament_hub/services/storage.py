"""
tournament_hub/services/storage.py
Bucketed object storage on the local filesystem

Buckets:
- payment-screenshots: private, read through signed URLs only
- avatars: public

Signed URLs carry a short-lived JWT naming the bucket and object path.
"""
import logging
import time
from datetime import datetime, timedelta
from pathlib import Path, PurePosixPath
from typing import Optional, Tuple

import aiofiles
from fastapi import Request, UploadFile
from jose import JWTError, jwt

from tournament_hub.config.settings import settings
from tournament_hub.errors import ValidationError, NotFoundError, ForbiddenError, ErrorCode

logger = logging.getLogger(__name__)

PAYMENT_SCREENSHOTS_BUCKET = "payment-screenshots"
AVATARS_BUCKET = "avatars"

PRIVATE_BUCKETS = {PAYMENT_SCREENSHOTS_BUCKET}
PUBLIC_BUCKETS = {AVATARS_BUCKET}

ALLOWED_IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "webp", "gif"}
MAX_UPLOAD_SIZE = 5 * 1024 * 1024  # 5MB

SIGNED_TOKEN_TYPE = "storage"


def object_path(owner_id: str, filename: str, now_ms: Optional[int] = None) -> str:
    """
    Storage path for an upload: "{owner_id}/{epoch_ms}.{ext}".

    Raises:
        ValidationError: filename has no allowed image extension
    """
    ext = PurePosixPath(filename or "").suffix.lower().lstrip(".")
    if ext not in ALLOWED_IMAGE_EXTENSIONS:
        raise ValidationError(
            f"Only image files are allowed ({', '.join(sorted(ALLOWED_IMAGE_EXTENSIONS))})",
            code=ErrorCode.INVALID_INPUT,
            details={"filename": filename}
        )
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{owner_id}/{now_ms}.{ext}"


async def read_upload(file: UploadFile, limit: int = MAX_UPLOAD_SIZE) -> bytes:
    """
    Read an uploaded file, never holding more than limit + 1 bytes.

    Raises:
        ValidationError: file is larger than limit
    """
    data = await file.read(limit + 1)
    if len(data) > limit:
        raise ValidationError(
            f"File exceeds {limit // (1024 * 1024)}MB limit",
            code=ErrorCode.INVALID_INPUT
        )
    return data


class ObjectStore:
    """Files under <root>/<bucket>/<path>."""

    def __init__(
        self,
        root: str,
        secret_key: str,
        algorithm: str = "HS256",
        signed_url_expire_seconds: int = 3600,
    ):
        self.root = Path(root)
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.signed_url_expire_seconds = signed_url_expire_seconds

    def _resolve(self, bucket: str, path: str) -> Path:
        if bucket not in PRIVATE_BUCKETS | PUBLIC_BUCKETS:
            raise NotFoundError("Bucket", bucket)

        relative = PurePosixPath(path)
        if not path or relative.is_absolute() or ".." in relative.parts:
            raise ValidationError("Invalid object path", code=ErrorCode.INVALID_INPUT, details={"path": path})

        return self.root / bucket / Path(*relative.parts)

    async def upload(self, bucket: str, path: str, data: bytes) -> str:
        """Write an object, replacing any existing one. Returns the path."""
        if len(data) > MAX_UPLOAD_SIZE:
            raise ValidationError(
                f"File exceeds {MAX_UPLOAD_SIZE // (1024 * 1024)}MB limit",
                code=ErrorCode.INVALID_INPUT
            )
        if not data:
            raise ValidationError("File is empty", code=ErrorCode.INVALID_INPUT)

        target = self._resolve(bucket, path)
        target.parent.mkdir(parents=True, exist_ok=True)

        async with aiofiles.open(target, "wb") as f:
            await f.write(data)

        logger.info(f"Stored {bucket}/{path} ({len(data)} bytes)")
        return path

    async def read(self, bucket: str, path: str) -> bytes:
        target = self._resolve(bucket, path)
        if not target.is_file():
            raise NotFoundError("Object", f"{bucket}/{path}")
        async with aiofiles.open(target, "rb") as f:
            return await f.read()

    def create_signed_url(self, bucket: str, path: str, expires_in: Optional[int] = None) -> str:
        """URL granting read access to one object until the token expires."""
        self._resolve(bucket, path)
        seconds = expires_in if expires_in is not None else self.signed_url_expire_seconds
        payload = {
            "type": SIGNED_TOKEN_TYPE,
            "bucket": bucket,
            "path": path,
            "exp": datetime.utcnow() + timedelta(seconds=seconds),
        }
        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        return f"/api/storage/signed/{token}"

    def verify_signed_token(self, token: str) -> Tuple[str, str]:
        """
        Decode a signed-URL token.

        Raises:
            ForbiddenError: token expired, tampered with, or not a storage token
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            raise ForbiddenError("Signed URL is invalid or has expired")

        if payload.get("type") != SIGNED_TOKEN_TYPE or not payload.get("bucket") or not payload.get("path"):
            raise ForbiddenError("Signed URL is invalid or has expired")
        return payload["bucket"], payload["path"]

    def public_url(self, bucket: str, path: str) -> str:
        if bucket not in PUBLIC_BUCKETS:
            raise ForbiddenError(f"Bucket '{bucket}' is private")
        self._resolve(bucket, path)
        return f"/api/storage/public/{bucket}/{path}"


def build_object_store() -> ObjectStore:
    return ObjectStore(
        root=settings.STORAGE_ROOT,
        secret_key=settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
        signed_url_expire_seconds=settings.SIGNED_URL_EXPIRE_SECONDS,
    )


def get_object_store(request: Request) -> ObjectStore:
    """Dependency for the application's object store"""
    return request.app.state.object_store
