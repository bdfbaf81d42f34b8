from datetime import date, datetime

DATE_FORMAT = "%Y-%m-%d"
DATE_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def today() -> date:
    return date.today()


def now() -> datetime:
    """Return the current local time truncated to whole seconds."""
    return datetime.now().replace(microsecond=0)


def format_date(value: date | None) -> str:
    return value.strftime(DATE_FORMAT) if value else ""


def parse_date(text: str) -> date | None:
    """Parse yyyy-MM-dd; an empty string means no date."""
    text = (text or "").strip()
    if not text:
        return None
    return datetime.strptime(text, DATE_FORMAT).date()


def format_datetime(value: datetime) -> str:
    return value.strftime(DATE_TIME_FORMAT)


def parse_datetime(text: str) -> datetime:
    return datetime.strptime((text or "").strip(), DATE_TIME_FORMAT)
