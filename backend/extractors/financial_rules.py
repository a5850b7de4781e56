"""
Financial Rules Module
Locale-aware parsing of amounts, share counts, exchange rates, dates and
currency codes as they appear in German bank and broker statements.
"""

import logging
import re
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Optional

from babel.numbers import (
    NumberFormatError,
    format_decimal,
    get_currency_precision,
    is_currency,
    parse_decimal,
)

logger = logging.getLogger(__name__)

# Statements are German: "1.930,17" means one thousand nine hundred thirty
DOCUMENT_LOCALE = "de_DE"

# Exchange rates keep enough digits that multiplying them into principal
# amounts does not accumulate rounding errors
EXCHANGE_RATE_PRECISION = Decimal("0.0000000001")

DATE_FORMATS = ["%d.%m.%Y", "%d.%m.%y"]
TIME_FORMATS = ["%H:%M:%S", "%H:%M"]


class InvalidNumericLiteral(ValueError):
    """Raised when captured text is not a locale-formatted number."""
    pass


class InvalidCurrencyCode(ValueError):
    """Raised when captured text is not a recognized ISO 4217 code."""
    pass


def parse_amount(text: str) -> Decimal:
    """
    Parse a locale-formatted number into an exact decimal.

    Comma is the decimal separator, dots group thousands. A trailing minus
    ("123,45-") negates the value, as does a leading one.

    Args:
        text: Captured number text

    Returns:
        Exact decimal value ("0,00" is a valid zero)

    Raises:
        InvalidNumericLiteral: If the text is not a number
    """
    if text is None:
        raise InvalidNumericLiteral("Missing numeric literal")

    clean = text.strip()
    negative = False
    if clean.endswith("-"):
        negative = True
        clean = clean[:-1].rstrip()

    if not clean or not re.search(r"\d", clean):
        raise InvalidNumericLiteral(f"Invalid numeric literal: {text!r}")

    try:
        value = parse_decimal(clean, locale=DOCUMENT_LOCALE)
    except (NumberFormatError, InvalidOperation) as e:
        logger.debug(f"Cannot parse number '{text}': {e}")
        raise InvalidNumericLiteral(f"Invalid numeric literal: {text!r}") from e

    return -value if negative else value


def format_amount(value: Decimal, trailing_sign: bool = False) -> str:
    """
    Format a decimal the way statements print it, e.g. "1.930,17".

    Args:
        value: Amount to format
        trailing_sign: Render negatives as "500,00-" instead of "-500,00"
    """
    if trailing_sign and value < 0:
        return format_decimal(-value, format="#,##0.00", locale=DOCUMENT_LOCALE) + "-"
    return format_decimal(value, format="#,##0.00", locale=DOCUMENT_LOCALE)


def parse_shares(text: str) -> Decimal:
    """Parse a share count such as "7,1535" or "16,000"."""
    shares = parse_amount(text)
    if shares < 0:
        raise InvalidNumericLiteral(f"Share count cannot be negative: {text!r}")
    return shares


def parse_exchange_rate(text: str) -> Decimal:
    """
    Parse an exchange rate and fix its precision.

    Raises:
        InvalidNumericLiteral: If the text is not a number or not positive
    """
    rate = parse_amount(text)
    if rate <= 0:
        raise InvalidNumericLiteral(f"Exchange rate must be positive: {text!r}")
    return rate.quantize(EXCHANGE_RATE_PRECISION, rounding=ROUND_HALF_UP)


def as_currency_code(text: str) -> str:
    """
    Return the canonical ISO 4217 code for a captured currency.

    Raises:
        InvalidCurrencyCode: If the code is not a known currency
    """
    if not text:
        raise InvalidCurrencyCode("Missing currency code")

    code = text.strip().upper()
    if len(code) != 3 or not is_currency(code):
        raise InvalidCurrencyCode(f"Unknown currency code: {text!r}")
    return code


def round_to_currency(amount: Decimal, currency: str) -> Decimal:
    """Round an amount to the minor unit of its currency (2 for EUR/USD)."""
    precision = get_currency_precision(currency)
    return amount.quantize(Decimal(1).scaleb(-precision), rounding=ROUND_HALF_UP)


def convert_to_home(amount: Decimal, exchange_rate: Decimal, home_currency: str) -> Decimal:
    """
    Convert a foreign amount into the home currency.

    The rate is quoted as foreign units per one home unit ("EUR/USD 1,24495"),
    so the home amount is the foreign amount divided by the rate.
    """
    if exchange_rate <= 0:
        raise InvalidNumericLiteral(f"Exchange rate must be positive: {exchange_rate}")
    return round_to_currency(amount / exchange_rate, home_currency)


def convert_from_home(amount: Decimal, exchange_rate: Decimal, foreign_currency: str) -> Decimal:
    """Inverse of convert_to_home: home amount times the rate, rounded to the foreign currency."""
    if exchange_rate <= 0:
        raise InvalidNumericLiteral(f"Exchange rate must be positive: {exchange_rate}")
    return round_to_currency(amount * exchange_rate, foreign_currency)


def compute_front_load_fee(
    gross_amount: Decimal,
    load_percent: Decimal,
    bonus_percent: Decimal,
    currency: str
) -> Decimal:
    """
    Derive the up-front fee ("Ausgabeaufschlag") hidden in a fund purchase.

    The gross amount already includes the load, so the net price is
    gross / (1 + load). The customer bonus ("Kundenbonifikation") refunds a
    share of the load.

    Args:
        gross_amount: Kurswert including the load
        load_percent: Ausgabeaufschlag in percent, e.g. 5
        bonus_percent: Kundenbonifikation in percent of the load, e.g. 40
        currency: Currency used for rounding

    Returns:
        The fee actually paid
    """
    hundred = Decimal(100)
    load = load_percent / hundred
    bonus = bonus_percent / hundred

    fee = (gross_amount / (1 + load)) * load * (1 - bonus)
    return round_to_currency(fee, currency)


def parse_date(date_text: str, time_text: Optional[str] = None) -> datetime:
    """
    Parse a statement date with optional time of day.

    Separators are normalized, so "03.06.2015" and "03/06/2015" both work.

    Raises:
        InvalidNumericLiteral: If the date or time is malformed
    """
    if not date_text:
        raise InvalidNumericLiteral("Missing date")

    normalized = re.sub(r"\D", ".", date_text.strip())

    parsed_date = None
    for fmt in DATE_FORMATS:
        try:
            parsed_date = datetime.strptime(normalized, fmt)
            break
        except ValueError:
            continue

    if parsed_date is None:
        raise InvalidNumericLiteral(f"Invalid date: {date_text!r}")

    if not time_text:
        return parsed_date

    for fmt in TIME_FORMATS:
        try:
            parsed_time = datetime.strptime(time_text.strip(), fmt).time()
            return datetime.combine(parsed_date.date(), parsed_time)
        except ValueError:
            continue

    raise InvalidNumericLiteral(f"Invalid time: {time_text!r}")
