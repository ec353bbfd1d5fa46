"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock modes enable local development without Google Drive or MongoDB.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "DriveLink API"
    api_version: str = "v1"
    base_url: str = Field(
        default="http://localhost:8000",
        description="Public site URL. Viewer links are built as {base_url}/?video={number}."
    )

    # Admin Access
    admin_username: str = Field(
        default="",
        description="Username for the admin panel."
    )
    admin_password: str = Field(
        default="",
        description="Password for the admin panel."
    )
    session_secret: str = Field(
        default="",
        description="Secret used to sign the admin session cookie."
    )
    session_max_age_seconds: int = Field(
        default=24 * 60 * 60,
        description="Admin session lifetime. One day."
    )

    # Google Drive Configuration
    google_client_id: str = Field(
        default="",
        description="OAuth client ID for the Drive connection."
    )
    google_client_secret: str = Field(
        default="",
        description="OAuth client secret for the Drive connection."
    )
    google_redirect_uri: str = Field(
        default="",
        description="OAuth redirect URI, must point at /auth/google/callback."
    )
    google_drive_folder_id: str = Field(
        default="",
        description="Drive folder that receives every upload."
    )
    google_drive_scopes: str = Field(
        default="https://www.googleapis.com/auth/drive.file",
        description="Comma-separated OAuth scopes. drive.file only grants access to files we created."
    )
    drive_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of Google Drive. Enables local dev without OAuth."
    )

    # Primary store (JSON file)
    videos_file_path: str = Field(
        default="public/videos.json",
        description="Path of the JSON registry file. Created empty on first run."
    )

    # Secondary store (MongoDB)
    mongodb_uri: Optional[str] = Field(
        default=None,
        description="MongoDB connection string. Leave empty to run on the JSON file only."
    )
    mongodb_database: str = Field(
        default="drivelink",
        description="MongoDB database name"
    )
    mongodb_collection: str = Field(
        default="videos",
        description="MongoDB collection holding video records"
    )
    mongodb_retry_delay_seconds: float = Field(
        default=5.0,
        description="Fixed delay between connection attempts while MongoDB is unreachable."
    )
    mongodb_timeout_ms: int = Field(
        default=5000,
        description="Server selection and socket timeout for MongoDB operations."
    )
    mongo_mock_mode: bool = Field(
        default=False,
        description="Use in-memory document store instead of MongoDB."
    )

    # Application Behavior
    max_upload_size_mb: int = Field(
        default=500,
        description="Maximum upload size in MB. Uploads are buffered in memory before going to Drive."
    )
    expose_error_details: bool = Field(
        default=False,
        description="Include raw error text in failure responses. Development only."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def google_drive_scopes_list(self) -> list[str]:
        """Parse comma-separated OAuth scopes into a list."""
        return [scope.strip() for scope in self.google_drive_scopes.split(",") if scope.strip()]

    @property
    def public_base_url(self) -> str:
        """Base URL without a trailing slash, ready for link building."""
        return self.base_url.rstrip("/")

    @property
    def secondary_store_enabled(self) -> bool:
        """True when a document store is configured (real or mock)."""
        return self.mongo_mock_mode or bool(self.mongodb_uri)

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode.
        """
        missing = []

        # Admin access is always required
        if not self.admin_username:
            missing.append("ADMIN_USERNAME")
        if not self.admin_password:
            missing.append("ADMIN_PASSWORD")
        if not self.session_secret:
            missing.append("SESSION_SECRET")

        # Google only required if not in mock mode
        if not self.drive_mock_mode:
            if not self.google_client_id:
                missing.append("GOOGLE_CLIENT_ID")
            if not self.google_client_secret:
                missing.append("GOOGLE_CLIENT_SECRET")
            if not self.google_redirect_uri:
                missing.append("GOOGLE_REDIRECT_URI")
            if not self.google_drive_folder_id:
                missing.append("GOOGLE_DRIVE_FOLDER_ID")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    This is safe because settings don't change during runtime.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
