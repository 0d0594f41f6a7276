"""
Field parsers for CAS column values.

Statement numbers use Indian digit grouping ("1,00,000.00" or "100,000.00")
and print negatives in parentheses, e.g. "(5,000.00)". Blank columns are
common for administrative rows, so every parser here returns None instead
of raising.
"""

import logging
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

logger = logging.getLogger(__name__)

DATE_FORMAT = "%d-%b-%Y"

# Column value: plain or comma-grouped digits, optional fraction, optional
# parentheses or leading minus.
NUMERIC_TOKEN_PATTERN = re.compile(r"^(\()?-?(?:\d+(?:,\d+)*)?(?:\.\d+)?(\))?$")
PLAIN_NUMBER_PATTERN = re.compile(r"^-?(?:\d+(?:\.\d*)?|\.\d+)$")


def is_numeric_token(token: str) -> bool:
    """
    Check whether a whitespace-delimited token is a numeric column value.

    Parenthesised tokens must carry a decimal point or digit grouping, so
    instalment counters such as "(1)" in "Systematic Investment (1)" stay
    part of the description.

    Args:
        token: Token to check.

    Returns:
        True if the token should be treated as a column value.
    """
    if not token or not any(ch.isdigit() for ch in token):
        return False
    match = NUMERIC_TOKEN_PATTERN.match(token)
    if not match:
        return False
    opened, closed = match.group(1), match.group(2)
    if bool(opened) != bool(closed):
        return False
    if opened and "." not in token and "," not in token:
        return False
    return True


def parse_decimal(token: Optional[str]) -> Optional[Decimal]:
    """
    Parse a statement number into a signed Decimal.

    Args:
        token: Raw token, e.g. "10,000.00", "(5,000.00)" or "".

    Returns:
        Decimal value with the source precision, or None when the token is
        empty or not numeric.
    """
    if token is None:
        return None

    clean = token.strip()
    if not clean:
        return None

    negative = False
    if clean.startswith("(") and clean.endswith(")"):
        negative = True
        clean = clean[1:-1].strip()

    clean = clean.replace(",", "")
    if not PLAIN_NUMBER_PATTERN.match(clean):
        logger.debug(f"Not a numeric token: {token!r}")
        return None

    try:
        value = Decimal(clean)
    except InvalidOperation:
        logger.debug(f"Failed to parse numeric token: {token!r}")
        return None

    return -value if negative else value


def parse_statement_date(token: Optional[str]) -> Optional[date]:
    """
    Parse a DD-Mon-YYYY statement date.

    Args:
        token: Date string such as "27-Sep-2023".

    Returns:
        Parsed date, or None for malformed or impossible dates.
    """
    if not token:
        return None
    try:
        return datetime.strptime(token.strip(), DATE_FORMAT).date()
    except ValueError:
        logger.debug(f"Unparseable statement date: {token!r}")
        return None
