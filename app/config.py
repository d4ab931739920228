"""
Configuration settings for the speech evaluation backend.
Loads environment variables and provides application settings.
"""
from typing import List, Optional

from pydantic_settings import BaseSettings

from app.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Azure Speech (Pronunciation Assessment)
    AZURE_SUBSCRIPTION_KEY: str = ""
    AZURE_SERVICE_REGION: str = ""
    AZURE_SPEECH_LANGUAGE: str = "en-US"

    # Server
    PORT: int = 3001
    LOG_LEVEL: str = "info"
    ENVIRONMENT: str = "production"

    # CORS (Vite and other common dev ports)
    CORS_ALLOWED_ORIGINS: str = "http://localhost:5173,http://localhost:3000,http://localhost:8080"

    # Upload
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
    DEFAULT_REFERENCE_TEXT: str = "The quick brown fox jumps over the lazy dog."

    # Assessment behavior
    # None = 타임아웃 없음 (단일 시도, 재시도 없음)
    RECOGNITION_TIMEOUT_SECONDS: Optional[float] = None
    ENABLE_PROSODY_ASSESSMENT: bool = False
    TRANSCODE_COMPRESSED_AUDIO: bool = False
    # "synthesize": 단어 상세가 없으면 참조 문장으로 대체 결과 생성
    # "strict": 단어 상세가 없으면 요청 실패
    WORD_FALLBACK_POLICY: str = "synthesize"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def allowed_origins_list(self) -> List[str]:
        """Convert CORS allowed origins string to list."""
        return [origin.strip() for origin in self.CORS_ALLOWED_ORIGINS.split(',') if origin.strip()]

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"


def validate_azure_config(config: Settings) -> None:
    """
    Check that Azure Speech credentials are configured.

    Called once at startup (warn-only) and on every evaluation request (fail-fast).

    Args:
        config: Settings to inspect

    Raises:
        ConfigurationError: If the subscription key or region is missing
    """
    if not config.AZURE_SUBSCRIPTION_KEY or not config.AZURE_SERVICE_REGION:
        raise ConfigurationError(
            "Azure Speech Service configuration missing. "
            "Please set AZURE_SUBSCRIPTION_KEY and AZURE_SERVICE_REGION in your .env file."
        )


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency returning the global settings instance."""
    return settings
