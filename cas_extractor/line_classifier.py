"""
Line classifier for CAS folio blocks.

PDF text extraction frequently breaks one logical transaction across two or
more physical lines: the date and numbers on one line, the description on
the next, or an administrative marker on a line of its own. The classifier
labels each physical line so the folio parser can stitch them back together.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum, auto
from typing import List, Optional

from cas_extractor.fields import parse_decimal, parse_statement_date

logger = logging.getLogger(__name__)


class LineKind(Enum):
    """Kinds of lines found inside a folio block."""
    DATE_TRANSACTION_START = auto()
    CONTINUATION_TEXT = auto()
    ADMINISTRATIVE_MARKER = auto()
    OPENING_BALANCE_MARKER = auto()
    CLOSING_BALANCE_MARKER = auto()
    NOISE = auto()


@dataclass
class ClassifiedLine:
    """
    A classified line.

    Attributes:
        kind: Line kind
        text: Line with whitespace collapsed to single spaces
        date: Leading date for DATE_TRANSACTION_START lines
        remainder: Text after the leading date (date lines) or the full text
        value: Balance for OPENING/CLOSING_BALANCE_MARKER lines
    """
    kind: LineKind
    text: str
    date: Optional[date] = None
    remainder: str = ""
    value: Optional[Decimal] = None


class LineClassifier:
    """
    Classifies raw statement lines into transaction-parsing roles.

    Precedence: balance markers, statement-period ranges, dated lines,
    boilerplate, administrative markers, then continuation text (only while
    inside a folio).
    """

    DATE_START_PATTERN = re.compile(r"^(\d{2}-[A-Za-z]{3}-\d{4})(?=\s|$)")
    DATE_RANGE_PATTERN = re.compile(
        r"^\d{2}-[A-Za-z]{3}-\d{4}\s+to\b", re.IGNORECASE
    )
    ADMIN_MARKER_PATTERN = re.compile(r"\*{3}\s*(.*?)\s*\*{3}")
    OPENING_PATTERN = re.compile(
        r"^(?:[A-Z]{2,}\s+)?Opening\s+Unit\s+Balance\s*:?\s*(\(?[\d,]*\.?\d+\)?)",
        re.IGNORECASE,
    )
    CLOSING_PATTERN = re.compile(
        r"^(?:[A-Z]{2,}\s+)?Closing\s+Unit\s+Balance\s*:?\s*(\(?[\d,]*\.?\d+\)?)",
        re.IGNORECASE,
    )

    # Header, footer and column-heading boilerplate that can appear between
    # the lines of a folio block (mostly at page breaks).
    NOISE_PATTERNS: List[str] = [
        r"(?i)^page\s*\d+\s*(?:of\s*\d+)?$",
        r"(?i)^date\s+transaction\b",
        r"(?i)^\(?INR\)?(?:\s+\(?INR\)?)*$",
        r"(?i)^(?:amount|units|price|unit|balance|\(inr\)|\s)+$",
        r"(?i)consolidated\s+account\s+statement",
        r"(?i)^folio\s*no\b",
        r"(?i)\bISIN\s*:",
        r"(?i)^registrar\s*:",
        r"(?i)^nominee\s*\d*\s*:",
        r"(?i)^(?:PAN|KYC)\s*:",
        r"(?i)no\s+transactions\s+during\s+this\s+statement\s+period",
        r"(?i)^this\s+is\s+a\s+computer\s+generated",
    ]

    def __init__(self):
        """Initialize the classifier with compiled noise patterns."""
        self.noise_patterns = [re.compile(p) for p in self.NOISE_PATTERNS]

    def classify(self, line: str, in_folio: bool = True) -> ClassifiedLine:
        """
        Classify a single line.

        Args:
            line: Raw text line.
            in_folio: Whether the parser is inside a folio block; text lines
                outside a folio are noise rather than continuations.

        Returns:
            ClassifiedLine describing the line.
        """
        text = " ".join(line.split()) if line else ""
        if not text:
            return ClassifiedLine(LineKind.NOISE, text)

        opening = self.OPENING_PATTERN.match(text)
        if opening:
            return ClassifiedLine(
                LineKind.OPENING_BALANCE_MARKER,
                text,
                remainder=text,
                value=parse_decimal(opening.group(1)),
            )

        closing = self.CLOSING_PATTERN.match(text)
        if closing:
            return ClassifiedLine(
                LineKind.CLOSING_BALANCE_MARKER,
                text,
                remainder=text,
                value=parse_decimal(closing.group(1)),
            )

        if self.DATE_RANGE_PATTERN.match(text):
            logger.debug(f"Statement period range ignored: {text}")
            return ClassifiedLine(LineKind.NOISE, text)

        date_match = self.DATE_START_PATTERN.match(text)
        if date_match:
            tx_date = parse_statement_date(date_match.group(1))
            if tx_date is not None:
                return ClassifiedLine(
                    LineKind.DATE_TRANSACTION_START,
                    text,
                    date=tx_date,
                    remainder=text[date_match.end():].strip(),
                )
            logger.warning(f"Line starts with an invalid date, not a transaction: {text}")

        if self.is_noise(text):
            return ClassifiedLine(LineKind.NOISE, text)

        if self.ADMIN_MARKER_PATTERN.search(text):
            return ClassifiedLine(LineKind.ADMINISTRATIVE_MARKER, text, remainder=text)

        if in_folio:
            return ClassifiedLine(LineKind.CONTINUATION_TEXT, text, remainder=text)

        return ClassifiedLine(LineKind.NOISE, text)

    def is_noise(self, text: str) -> bool:
        """Check a whitespace-normalized line against the boilerplate patterns."""
        return any(p.search(text) for p in self.noise_patterns)
