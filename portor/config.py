"""Configuration management from environment variables."""
import os
from dotenv import load_dotenv

# Load .env file
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration."""

    # Registry transport
    TIMEOUT: int = int(os.getenv("TIMEOUT", "20"))
    MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "3"))

    # OCR
    TESSERACT_CMD: str | None = os.getenv("TESSERACT_CMD")

    # Caches
    DETAIL_CACHE_TTL_SECONDS: int = int(os.getenv("DETAIL_CACHE_TTL_SECONDS", str(24 * 60 * 60)))
    DETAIL_CACHE_MAX_ENTRIES: int = int(os.getenv("DETAIL_CACHE_MAX_ENTRIES", "100"))
    SEARCH_CACHE_TTL_SECONDS: int = int(os.getenv("SEARCH_CACHE_TTL_SECONDS", str(24 * 60 * 60)))
    SEARCH_CACHE_MAX_ENTRIES: int = int(os.getenv("SEARCH_CACHE_MAX_ENTRIES", "100"))
    CACHE_ENABLED: bool = _env_bool("CACHE_ENABLED", "true")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "3000"))

    @classmethod
    def validate(cls) -> None:
        """Validate configuration values."""
        errors = []
        if cls.TIMEOUT <= 0:
            errors.append("TIMEOUT must be positive")
        if cls.MAX_RETRIES < 1:
            errors.append("MAX_RETRIES must be at least 1")
        for name in ("DETAIL_CACHE_TTL_SECONDS", "SEARCH_CACHE_TTL_SECONDS"):
            if getattr(cls, name) <= 0:
                errors.append(f"{name} must be positive")
        for name in ("DETAIL_CACHE_MAX_ENTRIES", "SEARCH_CACHE_MAX_ENTRIES"):
            if getattr(cls, name) < 1:
                errors.append(f"{name} must be at least 1")
        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")


config = Config()
