from datetime import date, datetime, time, timedelta
from typing import Iterator, Optional, Tuple
from zoneinfo import ZoneInfo

from interview_engine.base.config import AppConfig, settings
from interview_engine.base.errors import RequestValidationFailed
from interview_engine.utils.time_utils import Clock, add_minutes, ensure_utc, utcnow


class BusinessCalendar:
    """
    Business day and business hour rules, evaluated in the configured zone.

    Instants go in and come out as UTC; only the weekday and wall-clock
    checks happen in local time.
    """

    def __init__(self, config: AppConfig = settings, clock: Clock = utcnow):
        self.config = config
        self.clock = clock
        self.tz = ZoneInfo(config.BUSINESS_TIMEZONE)

    def is_business_day(self, day: date) -> bool:
        return day.weekday() < 5

    def local_date(self, instant: datetime) -> date:
        return ensure_utc(instant).astimezone(self.tz).date()

    def business_window(self, day: date) -> Tuple[datetime, datetime]:
        """UTC bounds of the business window on a local calendar day."""
        midnight = datetime.combine(day, time.min, tzinfo=self.tz)
        opens = midnight + timedelta(hours=self.config.BUSINESS_START_HOUR)
        closes = midnight + timedelta(hours=self.config.BUSINESS_END_HOUR)
        return ensure_utc(opens), ensure_utc(closes)

    def earliest_start(self, now: Optional[datetime] = None) -> datetime:
        return add_minutes(now or self.clock(), self.config.MIN_ADVANCE_NOTICE_MINUTES)

    def iter_days(self, start_date: date, end_date: date) -> Iterator[date]:
        day = start_date
        while day <= end_date:
            yield day
            day += timedelta(days=1)

    def validate_duration(self, duration_minutes: int) -> None:
        if not 1 <= duration_minutes <= self.config.MAX_DURATION_MINUTES:
            raise RequestValidationFailed(
                f"Duration must be between 1 and {self.config.MAX_DURATION_MINUTES} minutes"
            )

    def validate_slot(self, start: datetime, duration_minutes: int) -> None:
        """Raise RequestValidationFailed unless [start, start+duration) is a bookable slot."""
        self.validate_duration(duration_minutes)

        now = self.clock()
        start = ensure_utc(start)
        if start < now:
            raise RequestValidationFailed("Interview cannot be scheduled in the past")
        if start < self.earliest_start(now):
            raise RequestValidationFailed(
                f"Interviews must be scheduled at least {self.config.MIN_ADVANCE_NOTICE_MINUTES} minutes in advance"
            )

        day = self.local_date(start)
        if not self.is_business_day(day):
            raise RequestValidationFailed("Interviews cannot be scheduled on weekends")

        opens, closes = self.business_window(day)
        if start < opens or add_minutes(start, duration_minutes) > closes:
            raise RequestValidationFailed(
                f"Interview must take place within business hours "
                f"({self.config.BUSINESS_START_HOUR:02d}:00-{self.config.BUSINESS_END_HOUR:02d}:00 "
                f"{self.config.BUSINESS_TIMEZONE})"
            )
