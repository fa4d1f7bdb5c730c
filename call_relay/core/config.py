"""
Configuration management for Call Relay
Uses Pydantic Settings for environment variable management
"""

from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application Settings
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    secret_key: str = Field(default="default-secret-key")
    environment: str = Field(default="development")

    # Server Configuration
    server_host: str = Field(default="0.0.0.0")
    server_port: int = Field(default=8000)
    api_base_url: str = Field(default="http://localhost:8000")
    dashboard_url: str = Field(default="http://localhost:3000/settings")

    # CORS Settings
    allowed_origins: str = Field(default="http://localhost:3000,http://localhost:8000")

    # Database Configuration
    database_type: str = Field(default="sqlite")  # sqlite | turso | postgres
    sqlite_path: str = Field(default="call_relay.db")
    turso_db_url: Optional[str] = Field(default=None)
    turso_db_auth_token: Optional[str] = Field(default=None)
    database_url: Optional[str] = Field(default=None)

    # Redis / Celery
    redis_url: str = Field(default="redis://localhost:6379/0")
    celery_broker_url: Optional[str] = Field(default=None)

    # Cache TTLs (seconds)
    cache_ttl_recordings: int = Field(default=300)
    cache_ttl_call_details: int = Field(default=600)
    cache_ttl_intent_analysis: int = Field(default=600)
    cache_ttl_intent_summary: int = Field(default=300)
    cache_ttl_enhanced_data: int = Field(default=1800)

    # Salesforce
    salesforce_client_id: Optional[str] = Field(default=None)
    salesforce_client_secret: Optional[str] = Field(default=None)
    salesforce_login_url: str = Field(default="https://login.salesforce.com")

    # HubSpot
    hubspot_client_id: Optional[str] = Field(default=None)
    hubspot_client_secret: Optional[str] = Field(default=None)

    # Dynamics 365
    dynamics_client_id: Optional[str] = Field(default=None)
    dynamics_client_secret: Optional[str] = Field(default=None)
    dynamics_directory_id: str = Field(default="common")

    # OAuth
    oauth_callback_base_url: Optional[str] = Field(default=None)
    token_refresh_skew_seconds: int = Field(default=300)

    # Outbound HTTP timeouts (seconds)
    crm_http_timeout: float = Field(default=30.0)
    webhook_http_timeout: float = Field(default=10.0)
    openai_http_timeout: float = Field(default=60.0)
    addon_http_timeout: float = Field(default=15.0)
    caller_lookup_timeout: float = Field(default=5.0)

    # OpenAI Configuration
    openai_model: str = Field(default="gpt-4o-mini")
    openai_temperature: float = Field(default=0.3)

    # Addons
    enhanced_data_url: str = Field(default="https://enhance-data-production.up.railway.app/phone")

    # Maintenance
    active_call_stale_seconds: int = Field(default=3600)
    active_call_sweep_interval_seconds: int = Field(default=600)

    @property
    def cors_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.allowed_origins.split(",")]

    @property
    def callback_base_url(self) -> str:
        return (self.oauth_callback_base_url or self.api_base_url).rstrip("/")

    @property
    def broker_url(self) -> str:
        return self.celery_broker_url or self.redis_url


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
