import logging
import os
import secrets
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    app_env: str = "development"
    jwt_secret: str = ""
    admin_email: Optional[str] = None
    admin_password: Optional[str] = None
    admin_id: str = "admin-001"
    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None
    cloudinary_folder: str = "catalog"
    strict_hierarchy: bool = False
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


def load_settings() -> Settings:
    app_env = os.getenv("APP_ENV", "development").strip().lower()
    secret = os.getenv("JWT_SECRET", "").strip()
    if not secret:
        if app_env == "production":
            raise RuntimeError("JWT_SECRET must be set in production")
        # Per-process secret: sessions are lost on restart.
        logger.warning("JWT_SECRET not set, using a random per-process secret")
        secret = secrets.token_urlsafe(32)

    origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

    return Settings(
        app_env=app_env,
        jwt_secret=secret,
        admin_email=os.getenv("ADMIN_EMAIL") or None,
        admin_password=os.getenv("ADMIN_PASSWORD") or None,
        admin_id=os.getenv("ADMIN_ID", "admin-001"),
        cloudinary_cloud_name=os.getenv("CLOUDINARY_CLOUD_NAME") or None,
        cloudinary_api_key=os.getenv("CLOUDINARY_API_KEY") or None,
        cloudinary_api_secret=os.getenv("CLOUDINARY_API_SECRET") or None,
        cloudinary_folder=os.getenv("CLOUDINARY_FOLDER", "catalog"),
        strict_hierarchy=_flag(os.getenv("STRICT_HIERARCHY")),
        cors_origins=origins or ["*"],
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


@lru_cache()
def get_settings() -> Settings:
    return load_settings()
