from __future__ import annotations

from typing import Optional

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    DotEnvSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class SnipoConfig(BaseSettings):
    """
    קונפיגורציה של מנוע הגיבוי והסנכרון המבוססת על Pydantic Settings.

    - קורא אוטומטית משתני סביבה (עם קידומת SNIPO_) ו-`.env`.
    - מבצע המרות טיפוסים ו-Validation ברור.
    """

    # שדות חובה
    MONGODB_URL: str = Field(..., description="MongoDB connection string")

    # בסיסי DB
    DATABASE_NAME: str = Field(default="snipo", description="MongoDB database name")
    MONGODB_SERVER_SELECTION_TIMEOUT_MS: int = Field(
        default=3_000,
        ge=100,
        le=600_000,
        description="MongoDB server selection timeout in ms (serverSelectionTimeoutMS)",
    )
    MONGODB_SOCKET_TIMEOUT_MS: int = Field(
        default=20_000,
        ge=0,
        le=3_600_000,
        description="MongoDB socket timeout in ms (socketTimeoutMS)",
    )
    MONGODB_CONNECT_TIMEOUT_MS: int = Field(
        default=10_000,
        ge=0,
        le=3_600_000,
        description="MongoDB connect timeout in ms (connectTimeoutMS)",
    )
    MONGODB_APPNAME: Optional[str] = Field(
        default=None, description="MongoDB appName client metadata"
    )

    # מגבלות
    MAX_FILES_PER_SNIPPET: int = Field(
        default=10, ge=1, le=1_000, description="Maximum files kept per snippet"
    )
    MAX_BACKUP_SIZE_MB: int = Field(
        default=50,
        ge=1,
        le=10_000,
        description="Maximum size of a backup payload accepted for import (MB)",
    )

    # S3-compatible object storage
    S3_ENABLED: bool = Field(default=False, description="Enable S3 backup sync")
    S3_ENDPOINT: Optional[str] = Field(
        default=None, description="S3 endpoint host[:port] (without scheme)"
    )
    S3_ACCESS_KEY: Optional[str] = Field(default=None, description="S3 access key id")
    S3_SECRET_KEY: Optional[str] = Field(default=None, description="S3 secret access key")
    S3_BUCKET: Optional[str] = Field(default=None, description="S3 bucket for backups")
    S3_REGION: str = Field(default="us-east-1", description="S3 region")
    S3_USE_SSL: bool = Field(default=True, description="Use https for the S3 endpoint")
    S3_CONNECT_TIMEOUT_SECS: float = Field(
        default=10.0, gt=0, le=600, description="botocore connect timeout (seconds)"
    )
    S3_READ_TIMEOUT_SECS: float = Field(
        default=60.0, gt=0, le=3_600, description="botocore read timeout (seconds)"
    )
    S3_PRESIGN_TTL_SECS: int = Field(
        default=900,
        ge=1,
        le=604_800,
        description="Default lifetime of presigned download URLs (seconds)",
    )

    # לוגים ודיווח שגיאות
    LOG_LEVEL: str = Field(default="INFO", description="Minimum log level")
    LOG_FORMAT: str = Field(default="json", description="json or console")
    SENTRY_DSN: Optional[str] = Field(
        default=None, description="Sentry DSN for error reporting"
    )
    ENVIRONMENT: str = Field(default="production", description="Deployment environment")

    # הגדרות קריאה מ-.env ומשתני סביבה
    model_config = SettingsConfigDict(
        env_prefix="SNIPO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """אפשר שרשרת קבצי .env: קודם .env.local ואז .env, בנוסף למשתני סביבה."""
        return (
            init_settings,
            env_settings,
            # local overrides
            DotEnvSettingsSource(settings_cls, env_file=".env.local", case_sensitive=True),
            # default .env
            DotEnvSettingsSource(settings_cls, env_file=".env", case_sensitive=True),
            file_secret_settings,
        )

    @field_validator("MONGODB_URL")
    @classmethod
    def _validate_mongodb_url(cls, v: str) -> str:
        if not v or not v.startswith(("mongodb://", "mongodb+srv://")):
            raise ValueError(
                "MONGODB_URL must start with mongodb:// or mongodb+srv://"
            )
        return v

    @field_validator("LOG_FORMAT")
    @classmethod
    def _validate_log_format(cls, v: str) -> str:
        fmt = (v or "").strip().lower()
        if fmt not in {"json", "console"}:
            raise ValueError("LOG_FORMAT must be 'json' or 'console'")
        return fmt

    @field_validator("S3_ENDPOINT")
    @classmethod
    def _strip_endpoint_scheme(cls, v: Optional[str]) -> Optional[str]:
        """S3_ENDPOINT is host[:port]; a pasted scheme is dropped (S3_USE_SSL decides it)."""
        if v is None:
            return None
        s = v.strip()
        for prefix in ("https://", "http://"):
            if s.lower().startswith(prefix):
                s = s[len(prefix):]
        return s.rstrip("/") or None

    @model_validator(mode="after")
    def _require_s3_settings_when_enabled(self) -> "SnipoConfig":
        if not self.S3_ENABLED:
            return self
        missing = [
            name
            for name in ("S3_ENDPOINT", "S3_ACCESS_KEY", "S3_SECRET_KEY", "S3_BUCKET")
            if not getattr(self, name)
        ]
        if missing:
            raise ValueError(
                f"S3_ENABLED requires: {', '.join('SNIPO_' + m for m in missing)}"
            )
        return self

    @property
    def s3_endpoint_url(self) -> Optional[str]:
        if not self.S3_ENDPOINT:
            return None
        scheme = "https" if self.S3_USE_SSL else "http"
        return f"{scheme}://{self.S3_ENDPOINT}"

    @property
    def max_backup_size_bytes(self) -> int:
        return int(self.MAX_BACKUP_SIZE_MB) * 1024 * 1024


def load_config() -> SnipoConfig:
    """
    טוען את הקונפיגורציה ומחזיר מופע של SnipoConfig.
    """
    return SnipoConfig()


# יצירת אינסטנס גלובלי של הקונפיגורציה בזמן import
try:
    config = load_config()
except ValidationError as exc:
    # המרה ל-ValueError כדי לשמר התנהגות היסטורית
    raise ValueError(str(exc)) from exc
