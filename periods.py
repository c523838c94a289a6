from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings
from errors import ValidationError


@dataclass(frozen=True)
class Month:
    year: int
    month: int

    @property
    def start(self) -> datetime:
        return datetime(self.year, self.month, 1)

    @property
    def end(self) -> datetime:
        """Exclusive upper bound: the first instant of the following month."""
        return self.shift(1).start

    def shift(self, count: int) -> "Month":
        index = self.year * 12 + (self.month - 1) + count
        return Month(index // 12, index % 12 + 1)

    def contains(self, moment: datetime) -> bool:
        return moment.year == self.year and moment.month == self.month

    def day(self, day_of_month: int) -> date:
        # Days past the end of a short month snap to its last day.
        last = (self.end - self.start).days
        return date(self.year, self.month, min(day_of_month, last))


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def resolve_month(
    month: Optional[int],
    year: Optional[int],
    *,
    today: Optional[date] = None,
) -> Month:
    today = today or local_today()
    month = today.month if month is None else month
    year = today.year if year is None else year
    errors: dict[str, str] = {}
    if not 1 <= month <= 12:
        errors["month"] = "Month must be between 1 and 12"
    if not 1970 <= year <= 3000:
        errors["year"] = "Year must be between 1970 and 3000"
    if errors:
        raise ValidationError("Invalid period", errors)
    return Month(year, month)
