"""Runtime configuration loaded from the environment."""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigurationError
from .models import ImageExtractionOptions

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer", value=value) from e


@dataclass
class Settings:
    """Configuration for one ingestion service instance."""
    database_url: Optional[str] = None
    openai_api_key: Optional[str] = None
    model: str = "gpt-4o-mini"
    vision_model: str = "gpt-4o"
    temperature: float = 0.3
    max_chars: int = 100_000
    llm_attempts: int = 1
    use_ai: bool = True
    alt_text: bool = False

    blob_backend: str = "local"
    blob_root: str = "./object_store"
    public_base_url: Optional[str] = None
    s3_bucket_prefix: str = ""
    source_bucket: str = "documents"
    image_bucket: str = "document-images"

    min_image_width: int = 50
    min_image_height: int = 50
    max_images: int = 50
    image_format: str = "png"
    image_quality: int = 85
    batch_size: int = 5

    log_level: str = "INFO"
    json_logs: bool = False

    def image_options(self) -> ImageExtractionOptions:
        return ImageExtractionOptions(
            min_width=self.min_image_width,
            min_height=self.min_image_height,
            max_images=self.max_images,
            output_format=self.image_format,
            quality=self.image_quality,
            batch_size=self.batch_size,
        )

    def require(self, *names: str) -> None:
        """Raise ConfigurationError if any named credential is unset."""
        missing = [name for name in names if not getattr(self, name, None)]
        if missing:
            raise ConfigurationError(
                "Missing required configuration: " + ", ".join(name.upper() for name in missing)
            )


def load_settings() -> Settings:
    """Build settings from environment variables."""
    image_format = os.getenv("SKRIPTOR_IMAGE_FORMAT", "png").lower()
    if image_format == "jpg":
        image_format = "jpeg"
    if image_format not in ("png", "jpeg"):
        raise ConfigurationError("SKRIPTOR_IMAGE_FORMAT must be png or jpeg", value=image_format)

    blob_backend = os.getenv("SKRIPTOR_BLOB_BACKEND", "local").lower()
    if blob_backend not in ("local", "s3"):
        raise ConfigurationError("SKRIPTOR_BLOB_BACKEND must be local or s3", value=blob_backend)

    return Settings(
        database_url=os.getenv("DATABASE_URL"),
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        model=os.getenv("SKRIPTOR_MODEL", "gpt-4o-mini"),
        vision_model=os.getenv("SKRIPTOR_VISION_MODEL", "gpt-4o"),
        max_chars=_env_int("SKRIPTOR_MAX_CHARS", 100_000),
        llm_attempts=max(1, _env_int("SKRIPTOR_LLM_ATTEMPTS", 1)),
        use_ai=_env_bool("SKRIPTOR_USE_AI", True),
        alt_text=_env_bool("SKRIPTOR_ALT_TEXT", False),
        blob_backend=blob_backend,
        blob_root=os.getenv("SKRIPTOR_BLOB_ROOT", "./object_store"),
        public_base_url=os.getenv("SKRIPTOR_PUBLIC_BASE_URL"),
        s3_bucket_prefix=os.getenv("SKRIPTOR_S3_BUCKET_PREFIX", ""),
        min_image_width=_env_int("SKRIPTOR_MIN_IMAGE_WIDTH", 50),
        min_image_height=_env_int("SKRIPTOR_MIN_IMAGE_HEIGHT", 50),
        max_images=_env_int("SKRIPTOR_MAX_IMAGES", 50),
        image_format=image_format,
        image_quality=_env_int("SKRIPTOR_IMAGE_QUALITY", 85),
        batch_size=max(1, _env_int("SKRIPTOR_BATCH_SIZE", 5)),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        json_logs=_env_bool("JSON_LOGS", False),
    )
