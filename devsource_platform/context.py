from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from passlib.context import CryptContext

from devsource_platform.cloudinary.client import CloudinaryClient
from devsource_platform.config import Config
from devsource_platform.errors import AppError


@dataclass
class AppContext:
    """Process-wide state, created once at startup and released at shutdown.

    `pwd` hashes and verifies passwords at the configured work factor; it is
    built from `cfg` when not given.
    """

    cfg: Config
    images: Optional[CloudinaryClient] = None
    pwd: Optional[CryptContext] = None

    def __post_init__(self) -> None:
        if self.pwd is None:
            from devsource_platform.auth.security import password_context

            self.pwd = password_context(self.cfg.AUTH_PASSWORD_ROUNDS)

    def close(self) -> None:
        self.images = None


def build_context(cfg: Config) -> AppContext:
    images = None
    if cfg.cloudinary_enabled:
        images = CloudinaryClient(
            cloud_name=str(cfg.CLOUDINARY_CLOUD_NAME),
            api_key=str(cfg.CLOUDINARY_API_KEY),
            api_secret=str(cfg.CLOUDINARY_API_SECRET),
            folder=cfg.CLOUDINARY_FOLDER,
            upload_prefix=cfg.CLOUDINARY_UPLOAD_PREFIX,
            timeout_seconds=cfg.CLOUDINARY_TIMEOUT_SECONDS,
        )
    return AppContext(cfg=cfg, images=images)


def get_context(request: Request) -> AppContext:
    ctx = getattr(request.app.state, "ctx", None)
    if ctx is None:
        raise AppError("Server error", error="server_context_missing")
    return ctx
