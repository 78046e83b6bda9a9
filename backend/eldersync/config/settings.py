"""
Configuration Settings.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # App info
    app_name: str = "ElderSync"
    app_version: str = "2.0.0"
    debug: bool = True

    # Security (local identity provider)
    secret_key: str = "your-secret-key-change-this-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7  # 7 days

    # Key-value storage
    storage_backend: str = "local"  # local, supabase
    local_storage_path: str = "./data"
    kv_table: str = "kv_store_ba5f214e"

    # Identity provider
    auth_backend: str = "local"  # local, supabase

    # Hosted database / auth
    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    http_timeout: float = 30.0

    # Metrics
    timezone: str = "America/Sao_Paulo"  # zone whose hour picks the circadian bucket
    history_page_size: int = 100

    # CORS
    cors_origins: list[str] = ["*"]

    # Logging configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file_path: str = "./logs/eldersync.log"
    log_file_enabled: bool = True
    log_console_enabled: bool = True
    log_json_format: bool = True  # JSON format for files, human-readable for console
    log_api_requests: bool = True  # Log all API requests/responses

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
