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
    mongo_db: str = "provider_portal_dev"
    
    # Logging
    logs_path: str = "./logs"
    log_level: str = "INFO"
    
    # CORS - set to "*" to allow all origins
    cors_origins: str = "*"
    
    # Frontend URL (completion links point at /complete-application)
    frontend_url: str = "http://localhost:3000"
    
    # Completion links
    completion_link_ttl_hours: int = 72
    completion_token_bytes: int = 32
    
    # Local drafts (browser-side persistence)
    draft_retention_days: int = 30
    draft_max_entries: int = 5
    draft_total_steps: int = 5
    draft_storage_capacity_bytes: int = 5 * 1024 * 1024
    draft_storage_warning_percent: float = 80.0
    autosave_interval_seconds: float = 15.0
    
    # Submission
    document_generation_timeout_seconds: float = 30.0
    
    # Provider provisioning
    provider_code_prefix: str = "RUSH"
    default_license_state: str = "MI"
    
    # Environment
    environment: str = "development"
    debug: bool = True
    
    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string to list"""
        return [origin.strip() for origin in self.cors_origins.split(",")]
    
    @property
    def completion_url_base(self) -> str:
        """Page that consumes completion tokens"""
        return f"{self.frontend_url.rstrip('/')}/complete-application"
    
    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
