from datetime import date

from app.core.config import get_settings
from app.core.exceptions import ValidationError


def iso_week_date(year: int, week: int, day: int) -> date:
    """Concrete date of ISO (year, week, weekday). Rejects week 53 in 52-week years."""
    try:
        return date.fromisocalendar(year, week, day)
    except ValueError as exc:
        raise ValidationError(
            f"Invalid calendar position: year {year}, week {week}, day {day}",
            details={"year": year, "calendar_week": week, "day_of_week": day},
        ) from exc


def iso_position(value: date) -> tuple[int, int, int]:
    iso = value.isocalendar()
    return iso[0], iso[1], iso[2]


def is_school_day(value: date) -> bool:
    return value.isoweekday() <= get_settings().school_days
