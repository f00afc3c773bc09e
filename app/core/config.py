# app/core/config.py - Application settings read from the environment and .env
from pydantic import Field, field_validator, ValidationInfo
from pydantic_settings import BaseSettings
from typing import List
from pathlib import Path

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

DATABASE_PREFIXES = (
    "postgresql://",
    "postgresql+psycopg2://",
    "postgresql+psycopg://",
    "sqlite:///",
)


class Settings(BaseSettings):
    # Runtime
    ENV: str = Field(default="dev", description="dev, test, staging or prod")
    API_HOST: str = Field(default="0.0.0.0", description="Bind address when run directly")
    API_PORT: int = Field(default=5002, ge=1, le=65535, description="Port when run directly")
    API_TITLE: str = Field(default="Accounting API", description="Title shown in the docs")
    API_VERSION: str = Field(default="1.0.0", description="Reported by /health")
    LOG_LEVEL: str = Field(default="INFO", description="Root logging level")

    # Database
    DATABASE_URL: str = Field(..., description="postgresql:// or sqlite:/// URL")
    DATABASE_ECHO: bool = Field(default=False, description="Log every SQL statement")
    DATABASE_POOL_SIZE: int = Field(default=5, ge=1, le=100)
    DATABASE_MAX_OVERFLOW: int = Field(default=10, ge=0, le=100)
    DATABASE_POOL_TIMEOUT: int = Field(default=30, ge=1, le=300)
    DATABASE_POOL_RECYCLE: int = Field(default=3600, ge=300)

    # Tokens and passwords
    JWT_SECRET: str = Field(..., min_length=32, description="HMAC key for access tokens")
    JWT_ALGORITHM: str = Field(default="HS256")
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60 * 24, ge=1, le=10080)
    JWT_ISSUER: str = Field(default="accounting-api")
    JWT_AUDIENCE: str = Field(default="accounting-users")
    BCRYPT_ROUNDS: int = Field(default=10, ge=4, le=15)

    # CORS
    CORS_ORIGINS: List[str] = Field(default=DEFAULT_CORS_ORIGINS, description="Allowed browser origins")
    CORS_ALLOW_CREDENTIALS: bool = Field(default=True)

    # Files
    UPLOAD_DIR: str = Field(default="uploads", description="Attachments and logos live here")
    BACKUP_DIR: str = Field(default="backups", description="Backup archives are written here")
    MAX_FILE_SIZE_MB: int = Field(default=10, ge=1, le=100, description="Upload size limit")

    # Database liveness and the offline demo
    SYSTEM_CHECK_INTERVAL_SECONDS: float = Field(default=10.0, ge=0, description="Min seconds between database checks")
    SYSTEM_CHECK_TIMEOUT_SECONDS: float = Field(default=2.0, gt=0, description="Database check timeout")
    DEMO_EMAIL: str = Field(default="demo@example.com", description="Login accepted while offline")
    DEMO_PASSWORDS: List[str] = Field(default=["demo123", "password"], description="Passwords accepted for the demo login")

    # Scheduled backups
    ENABLE_BACKUP_SCHEDULER: bool = Field(default=False, description="Run the daily automated backup")
    BACKUP_CRON_HOUR: int = Field(default=2, ge=0, le=23, description="Hour of the daily backup")
    BACKUP_TIMEZONE: str = Field(default="Asia/Dhaka", description="Timezone for the backup schedule")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"

    @field_validator("ENV")
    @classmethod
    def validate_environment(cls, v):
        allowed = ["dev", "development", "test", "staging", "prod", "production"]
        if v.lower() not in allowed:
            raise ValueError(f"ENV must be one of: {allowed}")
        return v.lower()

    @field_validator("JWT_SECRET")
    @classmethod
    def validate_jwt_secret(cls, v, info: ValidationInfo):
        if info.data.get("ENV") in ["prod", "production"] and v.startswith("change_me"):
            raise ValueError("JWT_SECRET must be changed in production")
        return v

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v):
        if not v.startswith(DATABASE_PREFIXES):
            raise ValueError("DATABASE_URL must be a postgresql or sqlite connection string")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in levels:
            raise ValueError(f"LOG_LEVEL must be one of: {levels}")
        return v.upper()

    @field_validator("CORS_ORIGINS", "DEMO_PASSWORDS", mode="before")
    @classmethod
    def parse_csv_list(cls, v):
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @property
    def is_development(self) -> bool:
        return self.ENV in ["dev", "development"]

    @property
    def is_production(self) -> bool:
        return self.ENV in ["prod", "production"]

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    @property
    def max_file_size_bytes(self) -> int:
        return self.MAX_FILE_SIZE_MB * 1024 * 1024

    @property
    def upload_path(self) -> Path:
        return Path(self.UPLOAD_DIR).resolve()

    @property
    def backup_path(self) -> Path:
        return Path(self.BACKUP_DIR).resolve()

    def get_cors_config(self) -> dict:
        """Keyword arguments for CORSMiddleware; X-System-Mode must be readable by the browser"""
        return {
            "allow_origins": self.CORS_ORIGINS,
            "allow_credentials": self.CORS_ALLOW_CREDENTIALS,
            "allow_methods": ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
            "allow_headers": ["*"],
            "expose_headers": ["X-System-Mode", "Content-Disposition"],
        }


settings = Settings()


def validate_critical_settings():
    errors = []
    if settings.is_production and settings.JWT_SECRET.startswith("change_me"):
        errors.append("JWT_SECRET must be set to a secure value in production")
    if settings.SYSTEM_CHECK_TIMEOUT_SECONDS > settings.SYSTEM_CHECK_INTERVAL_SECONDS > 0:
        errors.append("SYSTEM_CHECK_TIMEOUT_SECONDS must not exceed SYSTEM_CHECK_INTERVAL_SECONDS")
    if errors:
        raise ValueError("Critical configuration errors:\n" + "\n".join(f"  - {e}" for e in errors))


validate_critical_settings()

__all__ = ["settings", "Settings"]
