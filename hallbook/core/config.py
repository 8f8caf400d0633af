"""Application configuration from environment variables."""

from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    app_name: str = "Hallbook"
    debug: bool = True
    secret_key: str = "dev-secret-change-in-production"
    api_prefix: str = "/api"
    log_level: str = "INFO"

    # Database
    database_url: str = "postgresql+asyncpg://hallbook:hallbook@db:5432/hallbook"
    database_echo: bool = False

    # Business
    business_name: str = "Greenwood Hall"
    business_timezone: str = "America/New_York"
    business_open_hour: int = 8
    business_close_hour: int = 24  # 24 = midnight at the end of the event date
    admin_notification_email: str = "events@example.com"

    # Pricing (cents)
    weekday_rate_cents: int = 15000
    weekend_rate_cents: int = 17500
    extra_setup_hourly_cents: int = 10000
    security_deposit_cents: int = 20000
    weekend_minimum_hours: int = 4

    # Showings
    default_showing_duration_minutes: int = 30
    allow_showings_on_event_days: bool = True

    # Stripe (test mode)
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_success_url: str = ""
    stripe_cancel_url: str = ""
    currency: str = "usd"

    # Email / SMTP
    smtp_host: str = "localhost"
    smtp_port: int = 1025
    smtp_from: str = "noreply@example.com"
    public_base_url: str = "https://localhost:3000"

    # Admin auth
    admin_email: str = ""
    admin_password_hash: str = ""
    access_token_expire_minutes: int = 720
    jwt_algorithm: str = "HS256"

    model_config = {"env_prefix": "HB_", "env_file": ".env", "extra": "ignore"}

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.business_timezone)


settings = Settings()
