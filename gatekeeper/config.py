"""
Application Configuration
Uses Pydantic Settings for environment-based configuration
"""

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra env vars like MARIADB_* used by docker-compose
    )

    # Application
    PROJECT_NAME: str = "Gatekeeper API"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = Field(default="development", pattern="^(development|staging|production)$")
    DEBUG: bool = Field(default=False)
    API_V1_STR: str = "/api/v1"

    # Token signing (access and refresh tokens use distinct secrets)
    JWT_SECRET: str
    JWT_REFRESH_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_SECONDS: int = Field(default=3600, gt=0)
    REFRESH_TOKEN_EXPIRE_SECONDS: int = Field(default=7 * 24 * 60 * 60, gt=0)

    # Ledger and session lifetimes
    REFRESH_TOKEN_EXPIRE_DAYS: int = Field(default=7, gt=0)
    SESSION_EXPIRE_DAYS: int = Field(default=30, gt=0)
    SESSION_IDLE_DAYS: int = Field(default=30, gt=0)

    # Password hashing work factor (bcrypt accepts 4..31)
    BCRYPT_ROUNDS: int = Field(default=12, ge=4, le=31)

    # OAuth state tokens (CSRF protection for the redirect flow)
    OAUTH_STATE_EXPIRE_SECONDS: int = 600

    # CORS
    # Allow str because it can be a comma-separated string in .env
    CORS_ORIGINS: str | list[str] = Field(default=["http://localhost:3000"])

    # Frontend URL (OAuth callbacks redirect here with the token pair)
    FRONTEND_URL: str = "http://localhost:3000"

    # Database
    DATABASE_URL: str
    # Sync URL for Alembic migrations
    DATABASE_URL_SYNC: str | None = None
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_ECHO: bool = False

    # Arq worker (runs the reconciler cron jobs)
    ARQ_REDIS_URL: str = Field(default="redis://localhost:6379/1")
    ARQ_KEEP_RESULT: int = 3600  # 1 hour

    # OAuth providers
    GOOGLE_CLIENT_ID: str | None = None
    GOOGLE_CLIENT_SECRET: str | None = None
    GOOGLE_CALLBACK_URL: str = "http://localhost:8000/api/v1/auth/oauth/google/callback"
    GITHUB_CLIENT_ID: str | None = None
    GITHUB_CLIENT_SECRET: str | None = None
    GITHUB_CALLBACK_URL: str = "http://localhost:8000/api/v1/auth/oauth/github/callback"
    LINKEDIN_CLIENT_ID: str | None = None
    LINKEDIN_CLIENT_SECRET: str | None = None
    LINKEDIN_CALLBACK_URL: str = "http://localhost:8000/api/v1/auth/oauth/linkedin/callback"
    OAUTH_HTTP_TIMEOUT: float = 10.0

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from comma-separated string"""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @model_validator(mode="after")
    def check_distinct_secrets(self) -> "Settings":
        """Refresh tokens must not be verifiable with the access secret."""
        if self.JWT_SECRET == self.JWT_REFRESH_SECRET:
            raise ValueError("JWT_SECRET and JWT_REFRESH_SECRET must differ")
        return self


# Create global settings instance

load_dotenv()
settings = Settings()  # type: ignore[call-arg]


class UserRole:
    """User role constants"""

    USER = "USER"
    MODERATOR = "MODERATOR"
    ADMIN = "ADMIN"

    ALL = (USER, MODERATOR, ADMIN)


class AuthProvider:
    """Account provider constants"""

    LOCAL = "LOCAL"
    GOOGLE = "GOOGLE"
    GITHUB = "GITHUB"
    LINKEDIN = "LINKEDIN"


class TokenType:
    """JWT `type` claim values"""

    ACCESS = "access"
    REFRESH = "refresh"
    OAUTH_STATE = "oauth_state"
