"""
Configuration module for the spa scheduling service.
Loads environment variables and provides typed configuration.
"""

from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

from scheduling.hours import BusinessHours, parse_clock

# Load .env file
env_path = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=env_path)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""

    # Business location
    timezone: str = "Pacific/Guam"

    # Business hours (single source of truth for the scheduling engine)
    business_open: str = "09:00"
    business_close: str = "19:00"
    slot_minutes: int = 15
    buffer_minutes: int = 15
    last_booking_offset_minutes: int = 60
    max_advance_days: int = 30
    min_notice_hours: int = 2
    same_day_warning_minutes: int = 60
    on_call_default_notice_hours: int = 2
    reduced_staffing_days: List[int] = [0, 2, 4]  # Sunday=0

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    environment: str = "development"  # development, staging, production

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def business_hours(self) -> BusinessHours:
        """
        Build the business hours object injected into scheduling components.

        Returns:
            Frozen BusinessHours built from the configured values
        """
        return BusinessHours(
            open_time=parse_clock(self.business_open),
            close_time=parse_clock(self.business_close),
            slot_minutes=self.slot_minutes,
            buffer_minutes=self.buffer_minutes,
            last_booking_offset_minutes=self.last_booking_offset_minutes,
            max_advance_days=self.max_advance_days,
            min_notice_hours=self.min_notice_hours,
            same_day_warning_minutes=self.same_day_warning_minutes,
            on_call_default_notice_hours=self.on_call_default_notice_hours,
            reduced_staffing_days=tuple(self.reduced_staffing_days),
        )

    def validate_all_required(self) -> None:
        """
        Validate that all required settings are present.

        Raises:
            ValueError: If required fields are missing or invalid
        """
        required_fields = ["supabase_url", "supabase_key"]

        missing = []
        for field in required_fields:
            value = getattr(self, field, None)

            if not value:
                missing.append(field)
                continue

            # Placeholder values copied from .env.example
            if str(value).lower().startswith("your_"):
                missing.append(field)

        if missing:
            raise ValueError(
                f"Missing or invalid required configuration: "
                f"{', '.join(missing)}. "
                f"Please check your .env file and ensure all required "
                f"values are set."
            )


# Global settings instance
settings = Settings()
