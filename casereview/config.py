# casereview/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    openai_api_key: str | None = Field(None, validation_alias="OPENAI_API_KEY")
    openai_base_url: str | None = Field(None, validation_alias="OPENAI_BASE_URL")
    llm_model: str = Field("deepseek-chat", validation_alias="LLM_MODEL")

    # Clinical consistency matters more than variety in the staged pipeline.
    stage_temperature: float = Field(0.0, validation_alias="STAGE_TEMPERATURE")
    legacy_temperature: float = Field(0.2, validation_alias="LEGACY_TEMPERATURE")
    chat_temperature: float = Field(0.3, validation_alias="CHAT_TEMPERATURE")

    # Seconds
    request_timeout: float = Field(60.0, validation_alias="REQUEST_TIMEOUT")
    max_retries: int = Field(1, validation_alias="MAX_RETRIES")
    probe_timeout: float = Field(5.0, validation_alias="PROBE_TIMEOUT")
    analysis_timeout: float = Field(180.0, validation_alias="ANALYSIS_TIMEOUT")

    cache_ttl_seconds: float = Field(3600.0, validation_alias="CACHE_TTL_SECONDS")
    cache_max_entries: int = Field(100, validation_alias="CACHE_MAX_ENTRIES")
    cache_sweep_interval_seconds: float = Field(
        1800.0, validation_alias="CACHE_SWEEP_INTERVAL_SECONDS"
    )

    enhanced_analysis_enabled: bool = Field(True, validation_alias="ENHANCED_ANALYSIS_ENABLED")
    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
