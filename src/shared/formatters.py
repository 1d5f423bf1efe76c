"""Display formatting shared by filters, summaries and exports."""

from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Dict, Union

from .exceptions import ValidationError


# Single source for category glyphs; every call site goes through
# get_category_emoji.
CATEGORY_EMOJI: Dict[str, str] = {
    "food": "🍽️",
    "transport": "🚗",
    "entertainment": "🎬",
    "shopping": "🛍️",
    "utilities": "💡",
    "health": "🏥",
    "education": "📚",
    "travel": "✈️",
    "other": "📝",
}

DEFAULT_CATEGORY_EMOJI = "📝"

DateLike = Union[str, date, datetime]


def parse_date(value: DateLike) -> date:
    """
    Resolve a date or datetime value to its UTC calendar date.

    Bare dates are taken as-is. Datetimes with an offset are converted to
    UTC first; naive datetimes are assumed to already be UTC.

    Args:
        value: ISO date string, ISO datetime string, date or datetime

    Returns:
        Calendar date

    Raises:
        ValidationError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        return value
    else:
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"Invalid date: {value!r}")

        text = value.strip()
        if len(text) == 10:
            try:
                return datetime.strptime(text, '%Y-%m-%d').date()
            except ValueError:
                raise ValidationError(f"Invalid date: {value!r}")

        if text.endswith(('Z', 'z')):
            text = text[:-1] + '+00:00'

        try:
            moment = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(f"Invalid date: {value!r}")

    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.date()


def to_calendar_date(value: DateLike) -> str:
    """Normalize a date or datetime to its UTC calendar date (YYYY-MM-DD)."""
    return parse_date(value).isoformat()


def format_currency(amount: float) -> str:
    """
    Format an amount as US dollars.

    Args:
        amount: Amount to format

    Returns:
        String such as "$1,234.50" or "-$3.00"
    """
    sign = '-' if amount < 0 else ''
    return f"{sign}${round_half_up(abs(amount), 2):,.2f}"


def format_date(value: DateLike) -> str:
    """Short human date, e.g. "Jan 5, 2024"."""
    day = parse_date(value)
    return f"{day:%b} {day.day}, {day.year}"


def format_category(category: str) -> str:
    """Capitalize the first letter of a category key."""
    category = str(getattr(category, 'value', category))
    return category[:1].upper() + category[1:]


def get_category_emoji(category: str) -> str:
    """Emoji for a category; unknown categories get the default glyph."""
    key = str(getattr(category, 'value', category))
    return CATEGORY_EMOJI.get(key, DEFAULT_CATEGORY_EMOJI)


def as_utc(moment: datetime) -> datetime:
    """Convert to UTC; naive datetimes are taken to be UTC already."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def format_generated_date(moment: datetime) -> str:
    """Numeric UTC generation stamp, e.g. "1/5/2024"."""
    moment = as_utc(moment)
    return f"{moment.month}/{moment.day}/{moment.year}"


def round_half_up(value: float, places: int) -> Decimal:
    """
    Round the exact binary value of a float, ties away from zero.

    Matches the fixed-point rendering of the web and mobile clients, which
    differs from Python's round-half-even on ties such as 0.125.

    Raises:
        ValidationError: If the value is infinite or NaN
    """
    exact = Decimal(value)
    if not exact.is_finite():
        raise ValidationError(f"Amount must be a finite number: {value}")

    # Precision must cover every integer digit plus the kept places
    with localcontext() as context:
        context.prec = max(context.prec, exact.adjusted() + places + 2)
        return exact.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
