"""Application settings and environment configuration."""

from typing import Optional
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[2]
ENV_FILE = BASE_DIR / ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_name: str = "Pixtag"
    debug: bool = False
    environment: str = "dev"  # 'dev' or 'prod'

    # Database
    database_url: str = "postgresql://localhost/pixtag"
    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_pool_recycle: int = 1800
    db_pool_pre_ping: bool = True

    # Cloud Storage
    gcp_project_id: Optional[str] = None
    storage_bucket_name: str = "pixtag-images"
    # Public base for resolving stored paths; defaults to the GCS public endpoint.
    storage_public_base_url: str = ""

    # Vision model (annotations). Leaving the key unset enables mock annotations.
    openai_api_key: Optional[str] = None
    vision_api_url: str = "https://api.openai.com/v1/chat/completions"
    vision_model: str = "gpt-4o"
    vision_max_tokens: int = 500
    # Upper bound on a single vision call; the model otherwise has no deadline.
    vision_timeout_seconds: float = 60.0
    description_fallback_length: int = 200

    # Processing
    thumbnail_size: int = 300
    thumbnail_quality: int = 80

    # Search
    similar_images_limit: int = 12
    color_similarity_threshold: float = 50.0

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    api_workers: int = 4

    # Application URL (for CORS)
    app_url: str = "http://localhost:8080"

    @property
    def storage_public_base(self) -> str:
        """Base URL for public object links."""
        base = (self.storage_public_base_url or "").strip()
        if base:
            return base.rstrip("/")
        return f"https://storage.googleapis.com/{self.storage_bucket_name}"

    @property
    def vision_enabled(self) -> bool:
        """True when a vision-model credential is configured."""
        return bool((self.openai_api_key or "").strip())

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "prod"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment.lower() == "dev"


settings = Settings()
