import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

# Load a local .env file if present.
load_dotenv()

# passlib's own pbkdf2_sha256 default; lower counts are not accepted.
MIN_PASSWORD_ROUNDS = 29000


class ConfigError(RuntimeError):
    """Raised when required configuration is missing or invalid."""


def _env_int(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def _env_str(name: str) -> Optional[str]:
    """Return a stripped env var, treating blank values as unset."""
    return (os.environ.get(name) or "").strip() or None


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    IMPORTANT: Provide secrets via environment variables or a .env file.
    Do not hardcode secrets in source code.

    Values are read when the instance is created (see `load_config`), so
    tests can build a Config directly with keyword arguments.
    """

    # -----------------
    # Core
    # -----------------
    # Preferred: set DEVSOURCE_DATABASE_URL (or DATABASE_URL) to use Postgres.
    # Fallback: DEVSOURCE_DB_PATH for SQLite.
    DB_DSN: str = ""

    # -----------------
    # Auth (JWT)
    # -----------------
    # Required. There is no default; the API refuses to start without it.
    AUTH_JWT_SECRET: str = ""

    # pbkdf2_sha256 rounds used for new password hashes.
    AUTH_PASSWORD_ROUNDS: int = MIN_PASSWORD_ROUNDS

    # Bootstrap an admin account on startup when none exists.
    # Both email and password must be set; nothing is created otherwise.
    AUTH_BOOTSTRAP_ADMIN_NAME: str = "Administrator"
    AUTH_BOOTSTRAP_ADMIN_EMAIL: Optional[str] = None
    AUTH_BOOTSTRAP_ADMIN_PASSWORD: Optional[str] = None

    # -----------------
    # Cloudinary (profile pictures)
    # -----------------
    CLOUDINARY_CLOUD_NAME: Optional[str] = None
    CLOUDINARY_API_KEY: Optional[str] = None
    CLOUDINARY_API_SECRET: Optional[str] = None
    CLOUDINARY_FOLDER: str = "devsource_profiles"
    # API host override, e.g. https://api-eu.cloudinary.com (SDK default otherwise).
    CLOUDINARY_UPLOAD_PREFIX: Optional[str] = None
    CLOUDINARY_TIMEOUT_SECONDS: int = 60

    # -----------------
    # CORS
    # -----------------
    CORS_ALLOW_ORIGINS: str = "https://dev-source-final-frontend-e5e7.vercel.app"

    @property
    def cloudinary_enabled(self) -> bool:
        return bool(self.CLOUDINARY_CLOUD_NAME and self.CLOUDINARY_API_KEY and self.CLOUDINARY_API_SECRET)

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in (self.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]

    def validate(self) -> "Config":
        """Fail fast on configuration the API cannot safely run with."""
        if not (self.AUTH_JWT_SECRET or "").strip():
            raise ConfigError("AUTH_JWT_SECRET is not set; refusing to start without a signing secret")
        if int(self.AUTH_PASSWORD_ROUNDS) < MIN_PASSWORD_ROUNDS:
            raise ConfigError(f"AUTH_PASSWORD_ROUNDS must be at least {MIN_PASSWORD_ROUNDS}")
        if not (self.DB_DSN or "").strip():
            raise ConfigError("No database configured (set DEVSOURCE_DATABASE_URL or DEVSOURCE_DB_PATH)")
        return self


def load_config() -> Config:
    return Config(
        DB_DSN=(
            os.environ.get("DEVSOURCE_DATABASE_URL")
            or os.environ.get("DATABASE_URL")
            or os.environ.get("DEVSOURCE_DB_PATH", "./devsource.sqlite")
        ),
        AUTH_JWT_SECRET=os.environ.get("AUTH_JWT_SECRET", ""),
        AUTH_PASSWORD_ROUNDS=_env_int("AUTH_PASSWORD_ROUNDS", MIN_PASSWORD_ROUNDS),
        AUTH_BOOTSTRAP_ADMIN_NAME=_env_str("AUTH_BOOTSTRAP_ADMIN_NAME") or "Administrator",
        AUTH_BOOTSTRAP_ADMIN_EMAIL=_env_str("AUTH_BOOTSTRAP_ADMIN_EMAIL"),
        AUTH_BOOTSTRAP_ADMIN_PASSWORD=_env_str("AUTH_BOOTSTRAP_ADMIN_PASSWORD"),
        CLOUDINARY_CLOUD_NAME=_env_str("CLOUDINARY_CLOUD_NAME"),
        CLOUDINARY_API_KEY=_env_str("CLOUDINARY_API_KEY"),
        CLOUDINARY_API_SECRET=_env_str("CLOUDINARY_API_SECRET"),
        CLOUDINARY_FOLDER=_env_str("CLOUDINARY_FOLDER") or "devsource_profiles",
        CLOUDINARY_UPLOAD_PREFIX=_env_str("CLOUDINARY_UPLOAD_PREFIX"),
        CLOUDINARY_TIMEOUT_SECONDS=_env_int("CLOUDINARY_TIMEOUT_SECONDS", 60),
        CORS_ALLOW_ORIGINS=os.environ.get(
            "CORS_ALLOW_ORIGINS",
            "https://dev-source-final-frontend-e5e7.vercel.app",
        ),
    )
