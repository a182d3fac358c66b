from functools import lru_cache
from typing import List

import json
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_ORIGINS = ",".join(
    [
        "http://localhost:3000",
        "https://app.flutterflow.io",
        "https://r2-image-compressor.onrender.com",
    ]
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "R2 Image Compressor"
    api_prefix: str = ""
    env_name: str = "production"
    log_level: str = "INFO"
    port: int = 10000

    # comma-separated or JSON array
    allowed_origins: str = DEFAULT_ORIGINS

    r2_endpoint: str | None = None
    r2_bucket: str | None = None
    r2_access_key_id: str | None = None
    r2_secret_access_key: str | None = None
    r2_region: str = "auto"
    r2_use_path_style: bool = True
    public_base_url: str | None = None
    derivative_cache_control: str | None = "public, max-age=31536000, immutable"

    max_upload_mb: int = 15
    max_image_pixels: int = 50_000_000
    cleanup_partial_uploads: bool = False
    concurrent_derivatives: bool = False

    signed_url_default_expires: int = 3600
    signed_url_max_expires: int = 604800
    image_cache_seconds: int = 300

    @field_validator("max_upload_mb", "max_image_pixels", "signed_url_default_expires", "signed_url_max_expires")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("api_prefix")
    @classmethod
    def normalize_prefix(cls, value: str) -> str:
        value = (value or "").strip().rstrip("/")
        if value and not value.startswith("/"):
            value = f"/{value}"
        return value

    @property
    def is_development(self) -> bool:
        return self.env_name.strip().lower() == "development"

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    @property
    def allowed_origins_list(self) -> List[str]:
        s = (self.allowed_origins or "").strip()
        if not s:
            return []
        # accept JSON array format, e.g. '["https://a.example","https://b.example"]'
        if s.startswith("[") and s.endswith("]"):
            try:
                arr = json.loads(s)
                return [str(item).strip() for item in arr if str(item).strip()]
            except json.JSONDecodeError:
                pass
        # accept comma-separated string
        return [item.strip() for item in s.split(",") if item.strip()]

    @property
    def storage_configured(self) -> bool:
        return bool(self.r2_endpoint and self.r2_bucket and self.r2_access_key_id and self.r2_secret_access_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
