import calendar
import logging
import re
from datetime import date, datetime
from typing import Any, Optional

import pytz

logger = logging.getLogger(__name__)

US_TZ = pytz.timezone('America/New_York')

_YMD_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse an API date value into an aware datetime.

    Accepts ISO strings (with or without a trailing Z), datetime and date
    objects. Naive values are treated as UTC, the way the backend stores them.
    Returns None for empty or unparsable input.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, datetime.min.time())
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = pytz.utc.localize(parsed)
    return parsed


def format_datetime_us(value: Any) -> str:
    """Format as M/D/YYYY, h:mm:ss AM/PM in US Eastern time."""
    dt = parse_datetime(value)
    if dt is None:
        return ''
    local = dt.astimezone(US_TZ)
    hour = local.hour % 12 or 12
    suffix = 'AM' if local.hour < 12 else 'PM'
    return f"{local.month}/{local.day}/{local.year}, {hour}:{local.minute:02d}:{local.second:02d} {suffix}"


def format_date_us(value: Any) -> str:
    """Format as MM/DD/YYYY in US Eastern time."""
    # Calendar dates (YYYY-MM-DD) carry no time zone
    if isinstance(value, str) and _YMD_RE.match(value.strip()):
        y, m, d = value.strip().split('-')
        return f"{m}/{d}/{y}"
    if isinstance(value, date) and not isinstance(value, datetime):
        return value.strftime('%m/%d/%Y')
    dt = parse_datetime(value)
    if dt is None:
        return ''
    return dt.astimezone(US_TZ).strftime('%m/%d/%Y')


def today_ymd(now: Optional[datetime] = None) -> str:
    current = now or datetime.now(US_TZ)
    return current.strftime('%Y-%m-%d')


def to_ymd(value: Any) -> str:
    """Return the YYYY-MM-DD prefix of a value, or '' when it has none."""
    if isinstance(value, datetime):
        return value.strftime('%Y-%m-%d')
    if isinstance(value, date):
        return value.isoformat()
    head = str(value or '')[:10]
    return head if _YMD_RE.match(head) else ''


def add_months_ymd(ymd: str, months: int) -> str:
    """
    Add calendar months to a YYYY-MM-DD string.

    The day is clamped to the last day of the target month (Jan 31 + 1 month
    gives Feb 28/29). Returns '' when the input is not a valid date.
    The legacy web client rolled over instead (Jan 31 + 1 month gave Mar 2/3),
    so ship date hints near a month end can be a few days earlier than it showed.
    """
    text = str(ymd or '').strip()
    if not _YMD_RE.match(text):
        return ''
    try:
        base = datetime.strptime(text, '%Y-%m-%d').date()
    except ValueError:
        return ''

    month_index = base.month - 1 + int(months or 0)
    year = base.year + month_index // 12
    month = month_index % 12 + 1
    day = min(base.day, calendar.monthrange(year, month)[1])
    return date(year, month, day).isoformat()


def ymd_to_date(ymd: str) -> Optional[date]:
    text = to_ymd(ymd)
    if not text:
        return None
    try:
        return datetime.strptime(text, '%Y-%m-%d').date()
    except ValueError:
        return None


def timestamp_compact(sep: str = '-', now: Optional[datetime] = None) -> str:
    """Timestamp used in export file names, e.g. 20240131-154501."""
    current = now or datetime.now(US_TZ)
    return current.strftime(f'%Y%m%d{sep}%H%M%S')
