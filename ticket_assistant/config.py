"""
Ticket Assistant - Configuration Management
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings"""

    # FastAPI
    fastapi_env: str = "development"
    fastapi_host: str = "0.0.0.0"
    fastapi_port: int = 8000

    # LLM
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_temperature: float = 0.7

    # Zendesk
    zendesk_subdomain: str = ""
    zendesk_email: str = ""
    zendesk_api_token: str = ""
    zendesk_cache_ttl_seconds: float = 60 * 60

    # Intercom
    intercom_access_token: str = ""
    intercom_region: str = "US"
    intercom_workspace_id: str = ""
    intercom_admin_id: str = ""
    intercom_cache_ttl_seconds: float = 24 * 60 * 60

    # Helpdesk HTTP
    http_timeout: float = 30.0
    rate_limit_default_wait_seconds: float = 60.0

    # Conversation history
    history_dir: str = ".query-history"
    history_max_entries: int = 50
    history_response_chars: int = 500
    history_context_entries: int = 10

    # Fallback prompt
    fallback_ticket_limit: int = 50
    listing_default_count: int = 5

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False
    )

    @property
    def INTERCOM_BASE_URL(self) -> str:
        """Regional Intercom API endpoint (US, EU, AU)"""
        endpoints = {
            "US": "https://api.intercom.io",
            "EU": "https://api.eu.intercom.io",
            "AU": "https://api.au.intercom.io",
        }
        return endpoints.get(self.intercom_region.upper(), endpoints["US"])


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
