"""
System Attributes

Computed once per session on its first turn and stored under `System`:

    {
        "Holiday": "false",
        "OperatingHours": {"Main": {"Open": "true"}},
        "DialledNumber": "+61299990000",
        "DateTimeUTC": "2024-03-01T09:30:00Z",
        "DateTimeLocal": "2024-03-01T20:30:00+11:00",
        "TimeLocal": "08:30 PM",
        "TimeOfDay": "evening"
    }
"""

from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

import pytz
import structlog
from pydantic import BaseModel, ConfigDict, Field

from ..core.clock import format_timestamp, utc_now

logger = structlog.get_logger(__name__)


UNKNOWN_DIALLED_NUMBER = "Unknown"


class TimeOfDay(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


def time_of_day(local_hour: int) -> TimeOfDay:
    if local_hour < 12:
        return TimeOfDay.MORNING
    if local_hour < 18:
        return TimeOfDay.AFTERNOON
    return TimeOfDay.EVENING


# =============================================================================
# Operating Hours
# =============================================================================


class ClockTime(BaseModel):
    """Hour and minute of a day."""

    model_config = ConfigDict(populate_by_name=True)

    hours: int = Field(default=0, alias="Hours")
    minutes: int = Field(default=0, alias="Minutes")


class DayHours(BaseModel):
    """Opening window for one day of the week."""

    model_config = ConfigDict(populate_by_name=True)

    day: str = Field(alias="Day")  # MONDAY .. SUNDAY
    start: ClockTime = Field(default_factory=ClockTime, alias="StartTime")
    end: ClockTime = Field(default_factory=ClockTime, alias="EndTime")

    @property
    def always_open(self) -> bool:
        return (
            self.start.hours == 0 and self.start.minutes == 0
            and self.end.hours == 0 and self.end.minutes == 0
        )

    def is_open(self, hour: int, minute: int) -> bool:
        if self.always_open:
            return True
        start_ok = (self.start.hours, self.start.minutes) <= (hour, minute)
        end_ok = (self.end.hours, self.end.minutes) >= (hour, minute)
        return start_ok and end_ok


class OperatingHours(BaseModel):
    """A named weekly schedule in its own timezone."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias="Name")
    timezone: str = Field(default="UTC", alias="TimeZone")
    days: List[DayHours] = Field(default_factory=list, alias="Config")

    def is_open(self, moment: datetime) -> bool:
        local = moment.astimezone(pytz.timezone(self.timezone))
        day_name = local.strftime("%A").upper()
        return any(
            day.is_open(local.hour, local.minute)
            for day in self.days
            if day.day.upper() == day_name
        )


# =============================================================================
# Provider
# =============================================================================


class SystemAttributeProvider:
    """Computes the System attribute for a new session."""

    def __init__(
        self,
        timezone: str = "Australia/Sydney",
        holidays: Optional[Iterable[str]] = None,
        operating_hours: Optional[Iterable[Any]] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.timezone = pytz.timezone(timezone)
        self.holidays = set(holidays or [])
        self.operating_hours = [
            hours if isinstance(hours, OperatingHours) else OperatingHours.model_validate(hours)
            for hours in (operating_hours or [])
        ]
        self._clock = clock

    def is_holiday(self, moment: datetime) -> bool:
        """Holidays are configured as local YYYYMMDD dates."""
        return moment.astimezone(self.timezone).strftime("%Y%m%d") in self.holidays

    def evaluate_operating_hours(self, moment: datetime) -> Dict[str, Dict[str, str]]:
        return {
            hours.name: {"Open": "true" if hours.is_open(moment) else "false"}
            for hours in self.operating_hours
        }

    def compute(self, dialled_number: Optional[str]) -> Dict[str, Any]:
        now = self._clock()
        local = now.astimezone(self.timezone)

        attributes = {
            "Holiday": "true" if self.is_holiday(now) else "false",
            "OperatingHours": self.evaluate_operating_hours(now),
            "DialledNumber": dialled_number or UNKNOWN_DIALLED_NUMBER,
            "DateTimeUTC": format_timestamp(now),
            "DateTimeLocal": local.replace(microsecond=0).isoformat(),
            "TimeLocal": local.strftime("%I:%M %p"),
            "TimeOfDay": time_of_day(local.hour).value,
        }
        logger.info(
            "system_attributes_computed",
            dialled_number=attributes["DialledNumber"],
            holiday=attributes["Holiday"],
            time_of_day=attributes["TimeOfDay"],
        )
        return attributes
