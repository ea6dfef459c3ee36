"""
Configuration management using Pydantic Settings
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env from project root
# config.py is at: backend/promptvc/core/config.py
_current_file = Path(__file__).resolve()
_backend_dir = _current_file.parent.parent.parent
_project_root = _backend_dir.parent
ENV_FILE = _project_root / ".env"
# Fallback: try in backend/ directory if not found in project root
if not ENV_FILE.exists():
    ENV_FILE = _backend_dir / ".env"
if ENV_FILE.exists():
    load_dotenv(ENV_FILE, override=True)


class Settings(BaseSettings):
    """Engine settings"""

    # Application
    app_name: str = "promptvc"
    app_env: str = Field(default="development", description="Application environment")
    log_level: str = Field(default="INFO", description="Logging level")

    # Logging
    log_sqlalchemy: bool = Field(default=False, description="Enable SQLAlchemy query logging")
    log_module_levels: Optional[str] = Field(
        default=None,
        description='Module-specific log levels (JSON string, e.g., {"promptvc.services": "DEBUG"})'
    )
    log_format: str = Field(
        default="json",
        description="Log format: 'json' for structured logging, 'text' for plain text"
    )
    log_file_enabled: bool = Field(default=False, description="Enable file logging")
    log_file_path: str = Field(
        default="logs/promptvc.log",
        description="Path to log file (relative to project root)"
    )
    log_file_retention: int = Field(
        default=30,
        ge=1,
        description="Number of days to keep log files"
    )
    log_sensitive_data: bool = Field(
        default=False,
        description="Enable logging of sensitive data (API keys, tokens) - NOT RECOMMENDED"
    )

    # Database
    database_dsn: Optional[str] = Field(
        default=None,
        description="Full SQLAlchemy URL; overrides the POSTGRES_* fields when set"
    )
    postgres_host: Optional[str] = Field(default=None, description="PostgreSQL host")
    postgres_db: str = Field(default="promptvc", description="PostgreSQL database name")
    postgres_user: str = Field(default="promptvc", description="PostgreSQL user")
    postgres_password: str = Field(default="", description="PostgreSQL password")
    postgres_port: int = Field(default=5432, ge=1, le=65535, description="PostgreSQL port")
    database_pool_size: int = Field(default=20, ge=1, description="Database pool size")
    database_max_overflow: int = Field(default=10, ge=0, description="Database max overflow")

    # Models
    default_model_vendor: str = Field(
        default="OPENAI",
        description="Vendor of the built-in model prompts fall back to when a provider is removed"
    )
    default_model_name: str = Field(
        default="gpt-4o",
        description="Name of the built-in model prompts fall back to when a provider is removed"
    )
    parameter_schemas_dir: Optional[str] = Field(
        default=None,
        description="Extra directory with *.json model catalogs, merged over the packaged ones"
    )

    # Custom providers
    provider_request_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="HTTP timeout for provider model listing requests (seconds)"
    )

    # Reconciliation / deletion policy
    reindex_abort_on_error: bool = Field(
        default=False,
        description="Abort a reindex batch on the first failing prompt instead of skipping it"
    )
    provider_deletion_recheck: bool = Field(
        default=True,
        description="Recount provider model usage inside the deletion transaction"
    )

    @field_validator("default_model_vendor", mode="before")
    @classmethod
    def normalize_vendor(cls, v):
        """Vendors are stored upper-case"""
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @property
    def database_url(self) -> str:
        """Construct database URL"""
        if self.database_dsn:
            return self.database_dsn
        if self.postgres_host:
            return (
                f"postgresql://{self.postgres_user}:{self.postgres_password}"
                f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
            )
        return f"sqlite:///{_project_root / 'promptvc.db'}"

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE) if ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
