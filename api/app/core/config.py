"""Application configuration from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    app_name: str = "CourtSlot"
    debug: bool = True
    secret_key: str = "dev-secret-change-in-production"
    api_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Club
    club_name: str = "Tennisclub Winterbach e.V. 1973"
    club_timezone: str = "Europe/Berlin"

    # Database
    database_url: str = "postgresql+asyncpg://courtslot:courtslot@db:5432/courtslot"
    database_echo: bool = False

    # Redis (Celery broker for the expiry sweep)
    redis_url: str = "redis://redis:6379/0"
    sweep_interval_minutes: int = 15

    # Admin auth (member bookings are identity-checked against the roster instead)
    admin_email: str = "admin@courtslot.local"
    admin_password_hash: str = ""
    access_token_expire_minutes: int = 60
    jwt_algorithm: str = "HS256"

    # Self-service rate limit: accepted bookings per client IP per window
    booking_rate_limit: int = 3
    booking_rate_window_minutes: int = 10

    # Email / SMTP
    smtp_host: str = "localhost"
    smtp_port: int = 1025
    smtp_from: str = "noreply@courtslot.local"

    model_config = {"env_prefix": "CS_", "env_file": ".env", "extra": "ignore"}


settings = Settings()
