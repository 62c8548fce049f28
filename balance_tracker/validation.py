"""Input parsing and validation helpers.

Normalizes request values into the types the core works with:
    amounts (decimal.Decimal, 2 places), transaction timestamps
    (datetime.datetime), month/year pairs and free-text fields.
"""

from __future__ import annotations

import datetime as dt
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Tuple

from .errors import InvalidInput

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
MAX_AMOUNT = Decimal("999999999999999999.99")
MIN_YEAR = 1
MAX_YEAR = 9998

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]+$")
_PASSWORD_SPECIALS = re.compile(r"[_\-&@:]")


def to_decimal(value) -> Decimal:
    """Coerce a stored or computed numeric value to a 2-place Decimal."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _parse_decimal(value) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).replace(",", "").strip()
    if not text:
        return None
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    if not number.is_finite():
        return None
    return number.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(value, message: str = "Amount must be a positive number") -> Decimal:
    number = _parse_decimal(value)
    if number is None or number <= 0 or number > MAX_AMOUNT:
        raise InvalidInput(message)
    return number


def parse_balance(value, message: str, default: Optional[Decimal] = None) -> Decimal:
    """Parse a non-negative balance; ``default`` is used when the value is absent."""
    if value in (None, "") and default is not None:
        return default
    number = _parse_decimal(value)
    if number is None or number < 0 or number > MAX_AMOUNT:
        raise InvalidInput(message)
    return number


def parse_transaction_date(value, now: Optional[dt.datetime] = None) -> dt.datetime:
    """Parse a transaction date.

    A bare ``YYYY-MM-DD`` gets the current time of day appended; a full ISO
    timestamp is kept as given (timezone-aware values are converted to local
    naive time).
    """
    if value in (None, ""):
        raise InvalidInput("Date is required")
    if isinstance(value, dt.datetime):
        parsed = value
    elif isinstance(value, dt.date):
        parsed = _with_time_of_day(value, now)
    else:
        text = str(value).strip()
        try:
            if len(text) == 10:
                parsed = _with_time_of_day(dt.date.fromisoformat(text), now)
            else:
                parsed = dt.datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError as exc:
            raise InvalidInput("Invalid date format") from exc
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def _with_time_of_day(day: dt.date, now: Optional[dt.datetime]) -> dt.datetime:
    clock = (now or dt.datetime.now()).time().replace(microsecond=0)
    return dt.datetime.combine(day, clock)


def parse_optional_date(value, message: str) -> Optional[dt.date]:
    if value in (None, ""):
        return None
    try:
        return dt.date.fromisoformat(str(value).strip()[:10])
    except ValueError as exc:
        raise InvalidInput(message) from exc


def _check_year(year_value: int) -> int:
    # The month after the selected one must still be a valid date.
    if not MIN_YEAR <= year_value <= MAX_YEAR:
        raise InvalidInput("Year is out of range")
    return year_value


def parse_year(year) -> int:
    try:
        year_value = int(year)
    except (TypeError, ValueError) as exc:
        raise InvalidInput("Year must be a number") from exc
    return _check_year(year_value)


def parse_month_year(month, year) -> Tuple[int, int]:
    if month in (None, "") or year in (None, ""):
        raise InvalidInput("Month and year are required")
    try:
        month_value = int(month)
        year_value = int(year)
    except (TypeError, ValueError) as exc:
        raise InvalidInput("Month and year must be numbers") from exc
    if not 1 <= month_value <= 12:
        raise InvalidInput("Month must be between 1 and 12")
    return month_value, _check_year(year_value)


def parse_optional_int(value, message: str) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInput(message) from exc


def require_text(value, message: str) -> str:
    text = "" if value is None else str(value).strip()
    if not text:
        raise InvalidInput(message)
    return text


def validate_password(password: str) -> Optional[str]:
    """Return the first rule the password breaks, or None when it is acceptable."""
    if len(password) < 8 or len(password) > 16:
        return "Password must be between 8 and 16 characters long"
    if not re.search(r"[a-z]", password):
        return "Password must contain at least one lowercase letter"
    if not re.search(r"[A-Z]", password):
        return "Password must contain at least one uppercase letter"
    if not re.search(r"[0-9]", password):
        return "Password must contain at least one number"
    if not _PASSWORD_SPECIALS.search(password):
        return "Password must contain at least one special character (_, -, @, :, or &)"
    return None


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email or ""))


def is_valid_username(username: str) -> bool:
    return bool(_USERNAME_RE.match(username or ""))
