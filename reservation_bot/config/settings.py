from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # Database
    database_url: str = "duckdb://./data/reservation_bot.duckdb"

    # API
    api_title: str = "Reservation Bot API"
    api_version: str = "1.0.0"
    api_prefix: str = "/api/v1"

    # Development mode
    debug: bool = False
    log_level: str = "INFO"

    # Store used when a request does not name one
    default_store_id: str = "restaurant-002"

    # Operator tokens for the admin endpoints
    jwt_secret_key: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_expire_hours: int = 24 * 7
    admin_auth_enabled: bool = True

    # Admission control
    capacity_fail_open: bool = True  # collaborator failure admits with a warning
    collaborator_timeout_seconds: float = 3.0
    atomic_admission: bool = False
    suggestion_offset_minutes: int = 30

    # LINE messaging
    line_channel_access_token: Optional[str] = None
    line_reply_url: str = "https://api.line.me/v2/bot/message/reply"
    # LINE user ids allowed to send slash commands; others get the default reply
    line_operator_user_ids: List[str] = []
    liff_id: str = "2006487877-0Ll31QKD"
    booking_page_url: str = "https://line-booking-account2-new.vercel.app/liff-calendar"
    admin_page_url: str = "https://line-booking-account2-new.vercel.app/admin-calendar"

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
