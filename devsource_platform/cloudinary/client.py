from __future__ import annotations

import io
from typing import Any, Dict, Optional

import cloudinary.api
import cloudinary.exceptions
import cloudinary.uploader

from devsource_platform.errors import UpstreamFailure, ValidationError


ALLOWED_FORMATS = ("jpg", "png", "jpeg")

_CONTENT_TYPES = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/pjpeg": "jpg",
    "image/png": "png",
}


def _debug(msg: str) -> None:
    print(f"[cloudinary] {msg}")


def image_format(filename: Optional[str], content_type: Optional[str]) -> str:
    """Return the image format for an upload or raise ValidationError if not allowed."""
    ext = ""
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[-1].strip().lower()
    if ext in ALLOWED_FORMATS:
        return ext
    fmt = _CONTENT_TYPES.get((content_type or "").split(";")[0].strip().lower())
    if fmt:
        return fmt
    raise ValidationError(
        "Invalid file type. Allowed formats: jpg, png, jpeg.",
        error="invalid_image_format",
    )


class CloudinaryClient:
    """Profile-picture host backed by the Cloudinary SDK.

    Credentials travel with each call instead of the global `cloudinary.config()`,
    so the client holds all of its own state.
    """

    def __init__(
        self,
        *,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        folder: str = "devsource_profiles",
        upload_prefix: Optional[str] = None,
        timeout_seconds: int = 60,
    ):
        if not cloud_name or not api_key or not api_secret:
            raise ValueError("cloudinary_credentials_missing")
        self.cloud_name = cloud_name
        self.folder = folder
        self.timeout_seconds = int(timeout_seconds)
        self._options: Dict[str, Any] = {
            "cloud_name": cloud_name,
            "api_key": api_key,
            "api_secret": api_secret,
        }
        if upload_prefix:
            self._options["upload_prefix"] = upload_prefix.rstrip("/")

    def ping(self) -> bool:
        """Check credentials against the Admin API. Never raises."""
        try:
            cloudinary.api.ping(timeout=self.timeout_seconds, **self._options)
        except cloudinary.exceptions.Error as e:
            _debug(f"Ping failed: {e}")
            return False
        return True

    def upload_image(self, *, filename: str, content: bytes, content_type: Optional[str] = None) -> str:
        """Upload an image and return its durable https URL."""
        if not content:
            raise ValidationError("No file uploaded")
        image_format(filename, content_type)

        _debug(f"Uploading {filename!r} ({len(content)} bytes) to folder={self.folder}")
        try:
            result = cloudinary.uploader.upload(
                io.BytesIO(content),
                filename=filename or "upload",
                folder=self.folder,
                resource_type="image",
                allowed_formats=list(ALLOWED_FORMATS),
                timeout=self.timeout_seconds,
                **self._options,
            )
        except cloudinary.exceptions.Error as e:
            raise UpstreamFailure("Upload failed", error=f"Cloudinary upload error: {e}") from e

        secure_url = None
        if isinstance(result, dict):
            secure_url = result.get("secure_url")
        if not secure_url:
            raise UpstreamFailure("Upload failed", error=f"Cloudinary returned unexpected payload: {result}")
        return str(secure_url)
