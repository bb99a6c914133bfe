"""
Configuration module - loads all env vars using pydantic-settings.
This is the SINGLE SOURCE OF TRUTH for all config values.
"""

from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # MongoDB
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "stagora"

    # JWT Auth
    jwt_secret_key: str = "change-this-secret"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 1440

    # Mailer (SMTP)
    mail_host: str = "smtp.gmail.com"
    mail_port: int = 587
    mail_use_tls: bool = True
    mail_user: str = ""
    mail_pass: str = ""
    mail_from_name: str = "No-Reply"
    mail_from_email: str = ""

    # Object storage (S3 / MinIO)
    s3_endpoint_url: str = ""
    s3_region: str = "us-east-1"
    s3_access_key: str = ""
    s3_secret_key: str = ""
    s3_bucket: str = "uploads"
    upload_url_expiry: int = 600      # 10 minutes for PUT
    download_url_expiry: int = 3600   # 1 hour for GET

    # Bulk imports
    import_max_size_bytes: int = 2 * 1024 * 1024
    import_max_rows: int = 1000

    # App
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"
    log_format: str = "json"   # json or console
    debug: bool = True

    @property
    def mail_default_from(self) -> str:
        """Sender used when a mail does not override `from`."""
        if not self.mail_from_email:
            return "no-reply@localhost"
        return f'"{self.mail_from_name}" <{self.mail_from_email}>'

    # Pydantic v2 config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
