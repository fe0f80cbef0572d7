"""All settings, loaded from the .env file."""
from functools import lru_cache

from pydantic_settings import BaseSettings

APP_VERSION = "1.4.0"


class Settings(BaseSettings):
    # App
    app_name: str = "Alina Visitor Parking"
    app_url: str = "http://localhost:8000"
    environment: str = "development"
    secret_key: str = "change-me"
    database_url: str = "sqlite:///./alina_parking.db"
    default_timezone: str = "America/New_York"

    # Auth
    session_max_age_days: int = 30
    bcrypt_rounds: int = 12

    # Email (Resend)
    resend_api_key: str = ""
    resend_api_url: str = "https://api.resend.com/emails"
    notification_from: str = "Alina Parking <noreply@alinahospital.com>"
    notification_max_attempts: int = 3

    # Rate limiting (per client IP)
    rate_limit_enabled: bool = True
    rate_limit_default: str = "100/15 minutes"
    rate_limit_registration: str = "5/15 minutes"
    rate_limit_pass_lookup: str = "20/15 minutes"
    rate_limit_login: str = "5/15 minutes"

    # OCR
    ocr_languages: str = "en"
    ocr_gpu: bool = False

    # Background jobs
    scheduler_enabled: bool = True
    expiration_warning_minutes: int = 30
    expire_passes_interval_min: int = 5
    notification_retry_interval_min: int = 15

    # Patrol client offline cache
    patrol_cache_path: str = "patrol_cache.db"
    patrol_cache_ttl_minutes: int = 30

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
