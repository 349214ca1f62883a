import re
from datetime import datetime, time, timedelta, timezone

from dateutil import parser as dtparser, tz

from dmh_scraper import config
from dmh_scraper.utils.text import clean

LONDON = tz.gettz(config.TZ)
ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.000Z"

TIME_24H = re.compile(r"\b([01]?\d|2[0-3]):([0-5]\d)\b(?!\s*[ap]m)", re.IGNORECASE)
TIME_12H = re.compile(r"\b(1[0-2]|0?[1-9])(?:[:.]([0-5]\d))?\s*(am|pm)\b", re.IGNORECASE)
ISO_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")
YEAR = re.compile(r"\b\d{4}\b")
RANGE_SPLIT = re.compile(r"\s+[-–—]\s+|\s*[–—]\s*")
SAME_MONTH_RANGE = re.compile(r"^(?:[A-Za-z]+\s+)?(\d{1,2})\s*[-–]\s*(?:[A-Za-z]+\s+)?\d{1,2}\s+([A-Za-z]+)\.?\s+(\d{4})")

# Year-less dates further in the past than this belong to next year.
ROLLOVER_DAYS = 60


def format_utc(value):
    """Render an aware datetime as the UTC ISO string the front-end reads."""
    return value.astimezone(timezone.utc).strftime(ISO_FORMAT)


def parse_iso(iso):
    """Parse an ISO string into an aware UTC datetime, or None."""
    if not iso:
        return None
    try:
        value = dtparser.isoparse(iso)
    except (ValueError, OverflowError):
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def first_date_of_range(text):
    """
    Reduce a date range to its first date.
    "7 - 11 Oct 2025" -> "7 Oct 2025"
    "Tue 7 Oct - Sat 11 Oct 2025" -> "Tue 7 Oct 2025"
    """
    same_month = SAME_MONTH_RANGE.match(text)
    if same_month:
        day, month, year = same_month.groups()
        return f"{day} {month} {year}"

    parts = [p.strip() for p in RANGE_SPLIT.split(text) if p.strip()]
    if len(parts) < 2:
        return text

    first, last = parts[0], parts[-1]
    if not YEAR.search(first):
        year = YEAR.search(last)
        if year:
            first = f"{first} {year.group()}"
    return first


def _start_iso(value, has_clock):
    # a naive 00:00 is how date-only datetime attributes are usually written
    if value.tzinfo is None and value.time() == time.min:
        has_clock = False
    if not has_clock:
        return format_utc(datetime(value.year, value.month, value.day, tzinfo=timezone.utc))
    if value.tzinfo is None:
        value = value.replace(tzinfo=LONDON)
    return format_utc(value)


def normalize_start(date_text):
    """
    Turn a card's datetime attribute or date text into a UTC ISO start.

    Date-only input becomes UTC midnight of that day (refined later), naive
    date-times are read as London wall-clock, aware ones are converted.
    Returns None when nothing parses.
    """
    text = clean(date_text)
    if not text:
        return None

    if ISO_PREFIX.match(text):
        try:
            value = dtparser.isoparse(text)
        except (ValueError, OverflowError):
            value = None
        if value is not None:
            return _start_iso(value, has_clock=len(text) > 10)
        # "2025-10-07 19:30 onwards": year-first, so no dayfirst here
        try:
            value = dtparser.parse(text, fuzzy=True)
        except (ValueError, OverflowError):
            return None
        return _start_iso(value, has_clock=bool(TIME_24H.search(text) or TIME_12H.search(text)))

    text = first_date_of_range(text)
    has_clock = bool(TIME_24H.search(text) or TIME_12H.search(text))
    now = datetime.now()

    try:
        value = dtparser.parse(text, fuzzy=True, dayfirst=True, default=datetime(now.year, 1, 1))
    except (ValueError, OverflowError):
        return None

    if not YEAR.search(text) and value < now - timedelta(days=ROLLOVER_DAYS):
        try:
            value = value.replace(year=value.year + 1)
        except ValueError:
            return None

    return _start_iso(value, has_clock)


def has_time(iso):
    """False when the start sits on UTC midnight, i.e. only the date is known."""
    value = parse_iso(iso)
    if value is None:
        return False
    return not (value.hour == 0 and value.minute == 0)


def ymd(iso):
    value = parse_iso(iso)
    if value is None:
        return None
    return value.year, value.month, value.day


def at_local_time(y, m, d, hours, minutes):
    """London wall-clock on the given day as a UTC ISO string."""
    try:
        local = datetime(y, m, d, hours, minutes, tzinfo=LONDON)
    except ValueError:
        return None
    return format_utc(local)


def find_time_in_text(text):
    """
    First clock time in text as (hours, minutes).
    24-hour "19:30" wins over 12-hour "7.30pm"/"7pm".
    """
    if not text:
        return None

    match = TIME_24H.search(text)
    if match:
        return int(match.group(1)), int(match.group(2))

    match = TIME_12H.search(text)
    if match:
        hours = int(match.group(1))
        minutes = int(match.group(2)) if match.group(2) else 0
        meridiem = match.group(3).lower()
        if meridiem == "pm" and hours < 12:
            hours += 12
        if meridiem == "am" and hours == 12:
            hours = 0
        return hours, minutes

    return None


def start_from_text(text, y, m, d):
    found = find_time_in_text(text)
    if not found:
        return None
    return at_local_time(y, m, d, *found)


def find_start_in_isoish(text, y, m, d):
    """Look for a "YYYY-MM-DD[T ]HH:MM" signature of the given day in text."""
    if not text:
        return None

    day = f"{y:04d}-{m:02d}-{d:02d}"
    match = re.search(
        rf"{day}[T\s]([01]?\d|2[0-3]):([0-5]\d)(?::\d{{2}}(?:\.\d+)?)?(Z|[+-]\d{{2}}:?\d{{2}})?",
        text,
    )
    if not match:
        return None

    hours, minutes, offset = int(match.group(1)), int(match.group(2)), match.group(3)
    if not offset:
        return at_local_time(y, m, d, hours, minutes)

    try:
        value = dtparser.isoparse(f"{day}T{hours:02d}:{minutes:02d}{offset}")
    except ValueError:
        return at_local_time(y, m, d, hours, minutes)
    return format_utc(value)


def local_wallclock(iso):
    """Return (London wall-clock "YYYY-MM-DDTHH:MM:00", tz name) for a UTC start."""
    value = parse_iso(iso)
    if value is None:
        return None, config.TZ
    local = value.astimezone(LONDON)
    return local.strftime("%Y-%m-%dT%H:%M:00"), config.TZ


def parse_window_date(text):
    """Parse a DMH_FROM / DMH_TO bound into an aware UTC datetime."""
    if not text:
        return None
    try:
        value = dtparser.parse(text)
    except (ValueError, OverflowError):
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value
