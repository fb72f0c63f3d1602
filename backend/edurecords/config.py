from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "EduRecords"
    app_env: str = "development"
    log_level: str = "INFO"

    # Falls back to a local sqlite file when DATABASE_URL is not set
    database_url: str = "sqlite:///./edurecords.db"
    create_tables: bool = True

    # JWT
    secret_key: str = "change-me"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 480

    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # Assignment submission uploads
    upload_dir: str = "uploads/assignments"
    max_upload_bytes: int = 5 * 1024 * 1024

    @field_validator("database_url")
    @classmethod
    def _fix_postgres_scheme(cls, value: str) -> str:
        # SQLAlchemy 1.4+ requires 'postgresql://' instead of 'postgres://'
        if value.startswith("postgres://"):
            return value.replace("postgres://", "postgresql://", 1)
        return value


settings = Settings()
