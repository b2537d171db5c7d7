from functools import lru_cache
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    # === App Metadata ===
    PROJECT_NAME: str = "InterviewEngine"
    ENVIRONMENT: str = "dev"  # dev, staging, prod
    DEBUG_MODE: bool = True
    API_VERSION: str = "v1"

    # === Security ===
    API_KEY: str = "super-secret-key"
    ENABLE_API_KEY_SECURITY: bool = True

    # === Logging ===
    LOG_LEVEL: str = "INFO"
    ENABLE_JSON_LOGS: bool = False
    LOG_DIR: str = "./logs"
    SENTRY_DSN: str = ""

    # === Database ===
    DATABASE_URL: str = "sqlite:///./interviews.db"

    # === Business Calendar ===
    BUSINESS_TIMEZONE: str = "UTC"
    BUSINESS_START_HOUR: int = 9
    BUSINESS_END_HOUR: int = 18
    SLOT_STRIDE_MINUTES: int = 30
    MAX_SLOT_SEARCH_DAYS: int = 31

    # === Scheduling Rules ===
    CONFLICT_BUFFER_MINUTES: int = 15
    MIN_ADVANCE_NOTICE_MINUTES: int = 60
    COMPLETION_GRACE_MINUTES: int = 10
    NO_SHOW_GRACE_MINUTES: int = 15
    MAX_DURATION_MINUTES: int = 480
    REMINDER_LEAD_HOURS: int = 24
    SCHEDULABLE_STATUSES: List[str] = ["Shortlisted", "Interview", "UnderReview", "TestCompleted"]
    STAFF_ROLES: List[str] = ["HR", "Admin", "SuperAdmin"]

    # === Evaluations ===
    EVALUATION_EDIT_WINDOW_DAYS: int = 7

    # === Meeting Providers ===
    MEETING_PROVIDER: str = "jitsi"  # jitsi, google_meet, google_calendar
    MEETING_ORGANIZER_EMAIL: str = "recruitment@company.com"
    GOOGLE_CREDENTIALS_FILE: str = "secrets/gcal_service_account.json"
    GOOGLE_CALENDAR_ID: str = "primary"

    # === Email SMTP ===
    SMTP_SERVER: str = "smtp.mailtrap.io"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    DEFAULT_SENDER: str = "noreply@interviews.local"

    @property
    def SMTP_ENABLED(self) -> bool:
        return all([self.SMTP_SERVER, self.SMTP_USER, self.SMTP_PASSWORD])

    @field_validator("BUSINESS_END_HOUR")
    @classmethod
    def validate_business_window(cls, end_hour, info):
        start_hour = info.data.get("BUSINESS_START_HOUR", 0)
        if not 0 < end_hour <= 24 or end_hour <= start_hour:
            raise ValueError("BUSINESS_END_HOUR must be after BUSINESS_START_HOUR and at most 24")
        return end_hour

    @field_validator("MEETING_PROVIDER")
    @classmethod
    def validate_meeting_provider(cls, provider):
        if provider not in ("jitsi", "google_meet", "google_calendar"):
            raise ValueError("MEETING_PROVIDER must be one of: jitsi, google_meet, google_calendar")
        return provider

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> AppConfig:
    return AppConfig()


# Global config instance
settings = get_settings()
