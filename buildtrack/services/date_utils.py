# buildtrack/services/date_utils.py
import logging
from datetime import datetime, date

import pytz

logger = logging.getLogger(__name__)


def parse_datetime(value):
    """
    Parse a date or datetime string coming from the frontend or the AI reply.

    Accepts 'YYYY-MM-DD' and full ISO-8601 strings. The frontend sends ISO
    strings with a 'Z' suffix (e.g. "2025-08-01T13:00:00.000Z"), which
    fromisoformat can parse once the 'Z' is rewritten as '+00:00'.
    Timezone-aware values are converted to naive UTC for storage.

    Args:
        value (str | date | datetime | None): The value to parse

    Returns:
        datetime | None: Parsed naive UTC datetime, None for empty input

    Raises:
        ValueError: If the string is not a recognised date format
    """
    if value is None or value == '':
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        iso_string = value.strip()
        if iso_string.endswith('Z'):
            iso_string = iso_string[:-1] + '+00:00'
        parsed = datetime.fromisoformat(iso_string)
    else:
        raise ValueError(f"Unsupported date value: {value!r}")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(pytz.utc).replace(tzinfo=None)
    return parsed


def parse_receipt_date(value):
    """
    Parse the 'date' field of an extraction reply.

    Returns None when the value is missing or not a date, so a bad date
    never fails a whole receipt.
    """
    if not value:
        return None
    try:
        return parse_datetime(str(value)[:10])
    except ValueError:
        logger.warning(f"Ignoring unparseable receipt date: {value!r}")
        return None


def current_year(timezone_name='America/Los_Angeles'):
    """Current year in the business timezone, used for contract numbering."""
    try:
        tz = pytz.timezone(timezone_name)
    except pytz.UnknownTimeZoneError:
        logger.warning(f"Unknown timezone '{timezone_name}', falling back to UTC")
        tz = pytz.utc
    return datetime.now(tz).year
