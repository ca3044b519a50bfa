from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./assetdesk.db"
    auto_create_tables: bool = False  # dev convenience; production uses alembic

    # Remote API used by the approval client service
    api_base_url: str = "http://localhost:8000/api"
    remote_timeout_seconds: float = 30.0

    # Local mirror (best-effort offline copy of approvals, events and users)
    mirror_dir: str = ".assetdesk_mirror"
    approval_cache_ttl_seconds: float = 30.0

    # Email
    email_mode: str = "dev"  # dev | prod
    sendgrid_api_key: Optional[str] = None
    email_from_address: str = "noreply@assetdesk.local"
    email_from_name: str = "AssetDesk"

    # App
    debug: bool = False
    allowed_origins: str = ""  # comma-separated, added to the localhost default


settings = Settings()
