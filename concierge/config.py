"""Service configuration pulled from environment variables via pydantic-settings."""
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="config")

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_KNOWLEDGE_PATH = PROJECT_ROOT / "knowledge" / "cellar-sc" / "business-info.yaml"


class Settings(BaseSettings):
    """Environment-driven configuration for the concierge service."""
    model_config = SettingsConfigDict(env_prefix="CONCIERGE_", extra="ignore")

    # completion provider (OpenAI-compatible)
    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4.1-mini"
    openai_stream_model: str = "gpt-3.5-turbo"
    max_tokens: int = 500
    stream_max_tokens: int = 250
    temperature: float = 0.3
    completion_timeout_seconds: float = 60.0
    stream_read_timeout_seconds: float = 60.0

    # weather + geocoding providers
    tomorrow_api_key: str | None = None
    tomorrow_base_url: str = "https://api.tomorrow.io/v4/weather"
    tomorrow_fields: str = "temperature,weatherCode"
    nominatim_base_url: str = "https://nominatim.openstreetmap.org"
    nominatim_user_agent: str = "local-business-concierge/0.1"

    cache_ttl_seconds: int = 120
    cache_max_entries: int | None = None
    http_timeout_seconds: float = 8.0
    http_max_attempts: int = 3

    default_business_location: str = "San Francisco, CA"
    knowledge_path: str = str(DEFAULT_KNOWLEDGE_PATH)
    routing_tables_path: str | None = None

    api_key: str | None = None
    api_key_redis_url: str | None = None
    api_key_redis_set: str = "api_keys"
    max_user_message_chars: int = 4000

    @field_validator("openai_base_url", "tomorrow_base_url", "nominatim_base_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs to avoid double slashes."""
        return str(v).rstrip("/")


settings = Settings()


if __name__ == "__main__":
    logger.logger.setLevel("DEBUG")
    logger.debug(
        "Loaded settings: %s",
        settings.model_dump_json(indent=4, exclude={"openai_api_key", "tomorrow_api_key", "api_key"}),
    )
