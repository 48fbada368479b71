"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./form_builder.db"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # File uploads (file fields)
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_SIZE_BYTES: int = 10 * 1024 * 1024
    ALLOWED_UPLOAD_EXTENSIONS: str = "jpeg,jpg,png,gif,pdf,doc,docx,txt"
    ALLOWED_UPLOAD_MIME_TYPES: str = (
        "image/jpeg,image/png,image/gif,application/pdf,application/msword,"
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document,"
        "text/plain"
    )

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Rate Limiting (requests per minute, public respondent endpoints)
    RATE_LIMIT_PUBLIC: int = 120
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def allowed_upload_extensions_list(self) -> list[str]:
        """Parse ALLOWED_UPLOAD_EXTENSIONS into lowercase list."""
        return [
            e.strip().lower().lstrip(".")
            for e in self.ALLOWED_UPLOAD_EXTENSIONS.split(",")
            if e.strip()
        ]

    @property
    def allowed_upload_mime_types_list(self) -> list[str]:
        """Parse ALLOWED_UPLOAD_MIME_TYPES into lowercase list."""
        return [m.strip().lower() for m in self.ALLOWED_UPLOAD_MIME_TYPES.split(",") if m.strip()]


settings = Settings()
