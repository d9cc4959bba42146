"""Application Settings - Central Configuration"""
from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # MongoDB
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "govflow_dev"

    # Azure AD (Entra) Configuration
    aad_tenant_id: str = ""
    aad_client_id: str = ""
    aad_audience: str = ""

    # Definition store
    definition_cache_ttl_seconds: int = 300  # 5 minutes

    # Instances & votes
    instance_retention_days: int = 90
    max_concurrency_retries: int = 3
    default_required_votes: int = 3

    # Router - treat a committee match as auto-startable
    router_committee_implies_auto_start: bool = False

    # Audit
    audit_namespace: str = "unite-workflows"

    # Document management service
    dms_base_url: str = ""
    dms_api_key: str = ""

    # Webhooks
    webhook_timeout_seconds: float = 5.0

    # Scheduler
    scheduler_enabled: bool = True
    sla_check_interval_seconds: int = 60

    # Logging
    logs_path: str = "./logs"
    log_level: str = "INFO"

    # CORS - set to "*" to allow all origins
    cors_origins: str = "*"

    # Environment
    environment: str = "development"
    debug: bool = True

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string to list"""
        return [origin.strip() for origin in self.cors_origins.split(",")]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
