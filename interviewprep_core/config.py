"""Configuration for the interview prep AI core."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Service settings
    service_name: str = "interviewprep-core"
    log_level: str = "info"
    log_json: bool = True

    # Provider gateway settings
    openrouter_api_key: str = Field(default="", description="OpenRouter API key")
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openai_api_key: str = Field(default="", description="OpenAI API key")
    openai_base_url: str = "https://api.openai.com/v1"
    google_api_key: str = Field(default="", description="Google AI Studio API key")
    google_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    request_timeout: float = 60.0

    # Orchestration
    orchestrator_max_steps: int = 5

    # Search provider (Tavily)
    tavily_api_key: str = Field(default="", description="Tavily API key")
    tavily_base_url: str = "https://api.tavily.com"
    search_enabled: bool = True

    # Crawl provider (Crawl4AI)
    crawl4ai_url: Optional[str] = None
    crawl4ai_token: Optional[str] = None
    crawl4ai_timeout_ms: int = 30000
    crawl_enabled: bool = True

    # Storage
    redis_url: Optional[str] = None

    # Caching
    pricing_source_url: str = "https://openrouter.ai/api/v1/models"
    pricing_cache_ttl: float = 15 * 60
    tier_config_cache_ttl: float = 60.0

    # Crawl quotas (defaults, overridable per plan in the settings store)
    crawl_quota_free: int = 10
    crawl_quota_pro: int = 75
    crawl_quota_max: int = 250
    crawl_max_urls_free: int = 3
    crawl_max_urls_pro: int = 10
    crawl_max_urls_max: int = 25


@lru_cache
def get_settings() -> Settings:
    """Get cached settings."""
    return Settings()
