from functools import lru_cache
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from quizfeed.core.config import ENCODE_CHUNK_SIZE, MAX_FILE_BYTES, QUESTION_COUNT


class Settings(BaseSettings):
    # Relational store (Supabase REST) settings
    SUPABASE_URL: str = Field(...)
    SUPABASE_SERVICE_ROLE_KEY: str = Field(...)

    # Generation provider settings
    GEMINI_API_KEY: str = Field(...)
    GEMINI_MODEL: str = Field("gemini-1.5-flash")
    GEMINI_API_BASE: str = Field("https://generativelanguage.googleapis.com/v1beta")

    # Pipeline settings
    QUESTION_COUNT: int = Field(QUESTION_COUNT)
    MAX_FILE_BYTES: int = Field(MAX_FILE_BYTES)
    ENCODE_CHUNK_SIZE: int = Field(ENCODE_CHUNK_SIZE)
    PROVIDER_MAX_ATTEMPTS: int = Field(3)
    PROVIDER_BACKOFF_MS: int = Field(2000)
    STATUS_UPDATE_ATTEMPTS: int = Field(2)
    STRICT_QUESTION_VALIDATION: bool = Field(False)
    HTTP_TIMEOUT: float = Field(120.0)
    FEED_PAGE_SIZE: int = Field(8)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @field_validator("SUPABASE_URL", "GEMINI_API_BASE")
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def rest_url(self) -> str:
        return f"{self.SUPABASE_URL}/rest/v1"


@lru_cache
def get_settings() -> Settings:
    """Build the settings once per process; missing credentials fail here."""
    return Settings()
