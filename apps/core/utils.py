# core/utils.py

"""
Central utilities for LibraryDesk.

Settings lookup, library-timezone aware "now"/"today", money formatting
and CSV export used across all apps.
"""
from django.conf import settings
from django.http import HttpResponse
from decimal import Decimal, InvalidOperation
from datetime import datetime, date, time
import logging

from librarydesk.managers import get_current_library
from utils.exceptions import ValidationFailed

logger = logging.getLogger(__name__)


APP_DEFAULTS = {
    'NEW_STUDENT_WINDOW_HOURS': 24,
    'DEFAULT_PAGE_SIZE': 10,
    'CASH_IN_HAND_METHODS': ['CASH', 'UPI'],
    'EXPIRY_REMINDER_DAYS': 3,
    'SHORT_SESSION_MINUTES': 120,
    'FULL_DAY_MINUTES': 360,
    'DEFAULT_TIMEZONE': 'Asia/Kolkata',
    'DEFAULT_CURRENCY': 'INR',
}


def get_setting(name):
    """
    Read a ``LIBRARYDESK_*`` setting, falling back to the built-in default.

    Example:
        >>> from core.utils import get_setting
        >>> get_setting('DEFAULT_PAGE_SIZE')
        10
    """
    return getattr(settings, f'LIBRARYDESK_{name}', APP_DEFAULTS[name])


# =============================================================================
# CURRENCY & MONEY FORMATTING
# =============================================================================

def safe_decimal(value, default=Decimal('0.00')):
    """Convert ``value`` to Decimal, returning ``default`` when it can't be parsed"""
    if value is None or value == '':
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default


def format_money(amount, library=None, include_symbol=True):
    """
    Format a money amount with the library's currency symbol.

    Example:
        >>> format_money(1500)        # "₹1,500.00"
        >>> format_money(1500, include_symbol=False)  # "1,500.00"
    """
    library = library or get_current_library()
    symbol = library.currency_symbol if library is not None else '₹'

    formatted = f"{safe_decimal(amount):,.2f}"
    return f"{symbol}{formatted}" if include_symbol else formatted


def calculate_percentage(part, whole, decimal_places=2):
    """
    Calculate percentage with safe division.

    Returns:
        Decimal: Percentage value, 0 if whole is 0
    """
    part = safe_decimal(part)
    whole = safe_decimal(whole)

    if whole == 0:
        return Decimal('0.00')

    percentage = (part / whole) * 100
    return percentage.quantize(Decimal(1).scaleb(-decimal_places))


# =============================================================================
# TIMEZONE UTILITY FUNCTIONS
# =============================================================================

def get_library_timezone(library=None):
    """
    Get the library's operational timezone.

    Uses the explicit library, then the library bound to this thread,
    then ``LIBRARYDESK_DEFAULT_TIMEZONE``.
    """
    from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

    library = library or get_current_library()
    name = library.timezone if library is not None else get_setting('DEFAULT_TIMEZONE')
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError:
        logger.error(f"Unknown timezone '{name}', using {get_setting('DEFAULT_TIMEZONE')}")
        return ZoneInfo(get_setting('DEFAULT_TIMEZONE'))


def get_library_current_time(library=None):
    """Current time in the library's timezone"""
    from django.utils import timezone
    return timezone.now().astimezone(get_library_timezone(library))


def get_library_today(library=None):
    """
    Today's date in the library's timezone.

    Always use this instead of ``date.today()`` for subscription end dates,
    attendance days and billing months.
    """
    return get_library_current_time(library).date()


def localize_datetime(dt, library=None):
    """Convert a datetime to the library's timezone"""
    from django.utils import timezone
    if dt is None:
        return None
    if timezone.is_naive(dt):
        dt = timezone.make_aware(dt)
    return dt.astimezone(get_library_timezone(library))


def get_month_bounds(month=None, library=None):
    """
    Return (month_start, month_end) as aware datetimes in the library's
    timezone. ``month`` is a date inside the month or a 'YYYY-MM' string;
    defaults to the current month. ``month_end`` is exclusive.
    """
    tz = get_library_timezone(library)

    if month is None or month == '':
        month = get_library_today(library)
    elif isinstance(month, str):
        try:
            month = datetime.strptime(month.strip(), '%Y-%m').date()
        except ValueError:
            raise ValidationFailed(f"Invalid month: {month}")
    elif isinstance(month, datetime):
        month = month.date()

    first = date(month.year, month.month, 1)
    if first.month == 12:
        following = date(first.year + 1, 1, 1)
    else:
        following = date(first.year, first.month + 1, 1)

    return (
        datetime.combine(first, time.min, tzinfo=tz),
        datetime.combine(following, time.min, tzinfo=tz),
    )


# =============================================================================
# EXPORT UTILITIES
# =============================================================================

def generate_csv_response(data, filename, headers=None):
    """
    Generate CSV HTTP response from data.

    Args:
        data: List of lists/tuples containing row data
        filename: Output filename
        headers: Optional list of column headers
    """
    import csv

    response = HttpResponse(content_type='text/csv')
    response['Content-Disposition'] = f'attachment; filename="{filename}"'

    writer = csv.writer(response)

    if headers:
        writer.writerow(headers)

    for row in data:
        writer.writerow(row)

    return response
