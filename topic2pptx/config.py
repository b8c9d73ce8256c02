"""
Settings configuration for topic2pptx.

Values come from the environment (or a local .env file).
"""
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .catalog import PRIMARY_IMAGE_MODEL
from .errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Logging
    LOG_LEVEL: str = Field("INFO")

    # Server
    API_HOST: str = Field("0.0.0.0")
    API_PORT: int = Field(8000, validation_alias="PORT")

    # Google AI Studio credential, shared by Gemini (text) and Imagen (image)
    GOOGLE_AI_STUDIO_API_KEY: Optional[str] = Field(None)
    GEMINI_API_BASE: str = Field("https://generativelanguage.googleapis.com/v1beta")

    # Image generation
    IMAGEN_MODEL: str = Field(PRIMARY_IMAGE_MODEL)
    MAX_IMAGE_SLIDES: int = Field(1, ge=0)

    # Generation pipeline
    DECK_CACHE_TTL_SECONDS: float = Field(300.0, gt=0)
    GENERATION_TIMEOUT_SECONDS: float = Field(120.0, gt=0)
    HTTP_TIMEOUT_SECONDS: float = Field(60.0, gt=0)

    def require_api_key(self) -> str:
        """Return the API key or raise ConfigurationError when it is unset."""
        key = (self.GOOGLE_AI_STUDIO_API_KEY or "").strip()
        if not key:
            raise ConfigurationError("Missing GOOGLE_AI_STUDIO_API_KEY")
        return key


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
