"""
Application Configuration Settings
Kiosk Sign-In Service
"""

from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Application
    APP_NAME: str = "Sign-In Kiosk"
    APP_VERSION: str = "1.0.0"
    SITE_BASE_URL: str = "http://localhost:8000"

    # Database
    DATABASE_URL: str = "sqlite:///./signin.db"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE_SECONDS: int = 1800
    DB_STATEMENT_TIMEOUT_MS: int = 30000  # PostgreSQL only

    # Request handling
    REQUEST_TIMEOUT_SECONDS: float = 60.0

    # Sessions
    SESSION_SECRET: str = "change-this-session-secret"
    SESSION_ALGORITHM: str = "HS256"
    SESSION_COOKIE_NAME: str = "signin_session"
    SESSION_TTL_MINUTES: int = 480

    # Azure AD / Entra ID - OIDC Authentication (admin console)
    AZURE_AD_TENANT_ID: str = ""
    AZURE_AD_CLIENT_ID: str = ""
    AZURE_AD_CLIENT_SECRET: str = ""
    AZURE_AD_REDIRECT_URI: str = ""  # e.g., https://signin.example.edu/api/auth/callback

    # Microsoft Graph - directory sync (app-only credentials)
    GRAPH_TENANT_ID: str = ""
    GRAPH_CLIENT_ID: str = ""
    GRAPH_CLIENT_SECRET: str = ""
    GRAPH_PAGE_SIZE: int = 100

    # Directory sync
    SYNC_ENABLED: bool = True
    SYNC_INTERVAL_SECONDS: int = 300
    SYNC_TIMEOUT_SECONDS: int = 240
    SYNC_PRUNE_GROUPS: bool = True

    # Local bootstrap admin (username "admin")
    INITIAL_ADMIN_PASSWORD: str = ""
    LOCAL_ADMIN_ENABLED: bool = True

    # Asset storage ("database" or "azure_blob")
    ASSET_BACKEND: str = "database"
    AZURE_STORAGE_CONNECTION_STRING: str = ""
    AZURE_STORAGE_CONTAINER: str = "signin-assets"
    PORTAL_BACKGROUND_MAX_BYTES: int = 2 * 1024 * 1024

    # Security
    ALLOWED_ORIGINS: List[str] = ["http://localhost:5173"]

    class Config:
        env_file = ".env"
        case_sensitive = True
        frozen = True

    @property
    def graph_configured(self) -> bool:
        """Directory sync needs all three app-only credentials."""
        return bool(self.GRAPH_TENANT_ID and self.GRAPH_CLIENT_ID and self.GRAPH_CLIENT_SECRET)

    @property
    def local_admin_available(self) -> bool:
        return self.LOCAL_ADMIN_ENABLED and bool(self.INITIAL_ADMIN_PASSWORD)

    @property
    def secure_cookies(self) -> bool:
        return self.ENVIRONMENT != "development" or self.SITE_BASE_URL.startswith("https://")


settings = Settings()
