from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# Independent of the process locale
FRENCH_DAYS = ("lundi", "mardi", "mercredi", "jeudi", "vendredi", "samedi", "dimanche")
FRENCH_MONTHS = (
    "janvier",
    "février",
    "mars",
    "avril",
    "mai",
    "juin",
    "juillet",
    "août",
    "septembre",
    "octobre",
    "novembre",
    "décembre",
)


def format_long_date(value: date) -> str:
    """``01 juin 2024``"""
    return f"{value.day:02d} {FRENCH_MONTHS[value.month - 1]} {value.year}"


def format_day_heading(value: date) -> str:
    """``samedi 01 juin 2024``"""
    return f"{FRENCH_DAYS[value.weekday()]} {format_long_date(value)}"


def format_time(value: time) -> str:
    """``09h00``"""
    return f"{value.hour:02d}h{value.minute:02d}"


def format_timestamp(value: datetime) -> str:
    """``01 juin 2024 à 14:05``"""
    return f"{format_long_date(value.date())} à {value.hour:02d}:{value.minute:02d}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def get_timezone(name: str | None) -> ZoneInfo:
    try:
        return ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")


def to_local(value: datetime, tz_name: str | None) -> datetime:
    """Convert to ``tz_name``; naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(get_timezone(tz_name))
