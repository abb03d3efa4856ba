from pydantic_settings import BaseSettings, SettingsConfigDict

import os

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./contentdesk.db"
    db_connect_retries: int = 3
    environment: str = "local"

    # JWT signing key for the session cookie
    secret_key: str = os.getenv("JWT_SECRET", "change-me-in-production-for-jwt")
    access_token_days: int = 7
    cookie_secure: bool = True

    uploads_dir: str = "uploads"
    max_upload_mb: int = 25
    public_base_url: str = os.getenv("BASE_URL", "http://localhost:8000")

    superadmin_email: str | None = None
    superadmin_password: str | None = None

    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"

    email_api_key: str | None = None
    email_api_url: str = "https://api.resend.com/emails"
    email_from: str = "ContentDesk <no-reply@contentdesk.local>"

    linkedin_client_id: str | None = None
    linkedin_client_secret: str | None = None
    linkedin_redirect_uri: str | None = None

    # Remote log ingest (Better Stack style HTTP source)
    log_ship_token: str | None = None
    log_ship_url: str = "https://in.logs.betterstack.com"

    scheduler_enabled: bool = True

    realtime_allowed_origins: list[str] = ["http://localhost:3000"]

settings = Settings()
