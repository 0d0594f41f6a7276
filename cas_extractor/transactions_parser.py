"""
Folio transaction parser for CAS statements.

This module walks the text of one folio block line by line, stitching
multi-line transactions together, and emits typed Transaction records plus
the folio-level balances printed around them.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum, auto
from typing import List, Optional, Tuple, Union

from cas_extractor.fields import is_numeric_token, parse_decimal, parse_statement_date
from cas_extractor.line_classifier import ClassifiedLine, LineClassifier, LineKind
from cas_extractor.models import Transaction
from cas_extractor.type_resolver import TransactionTypeResolver

logger = logging.getLogger(__name__)

# Printed unit balances may differ from the running sum by rounding only.
UNITS_TOLERANCE = Decimal("0.001")

# Amount, NAV, units and unit balance.
COLUMN_COUNT = 4


class FolioState(Enum):
    """States of the folio parsing state machine."""
    AWAITING_OPENING_BALANCE = auto()
    IN_FOLIO = auto()
    CLOSED = auto()


@dataclass
class TransactionBuffer:
    """
    Transaction being accumulated across physical lines.

    Attributes:
        date: Transaction date
        numbers: Numeric column tokens in the order they were seen
        text_parts: Description fragments in the order they were seen
    """
    date: Optional[date]
    numbers: List[str] = field(default_factory=list)
    text_parts: List[str] = field(default_factory=list)

    @property
    def description(self) -> str:
        return " ".join(" ".join(self.text_parts).split())

    @property
    def has_text(self) -> bool:
        return bool(self.description)

    def add_line(self, text: str) -> None:
        """
        Split a line into leading numbers, description text and trailing
        numbers. Numbers inside the text (e.g. "Instalment 3 of 12") stay in
        the description, as do numbers preceding a full run of trailing
        columns (e.g. "Instalment 3 10,000.00 100.000 100.00 100.000").
        """
        tokens = text.split()
        start = 0
        while start < len(tokens) and is_numeric_token(tokens[start]):
            start += 1
        end = len(tokens)
        while (
            end > start
            and len(tokens) - end < COLUMN_COUNT
            and is_numeric_token(tokens[end - 1])
        ):
            end -= 1

        self.numbers.extend(tokens[:start])
        if end > start:
            self.text_parts.append(" ".join(tokens[start:end]))
        self.numbers.extend(tokens[end:])


@dataclass
class FolioParseResult:
    """
    Parsed content of one folio block.

    Attributes:
        transactions: Transactions in document order
        opening_unit_balance: Opening unit balance, if printed
        closing_unit_balance: Closing unit balance, if printed
        nav_on_date: NAV printed on the closing line
        nav_date: Date of that NAV
        total_cost_value: Total cost value printed on the closing line
        market_value: Market value printed on the closing line
        balance_mismatches: Printed unit balances disagreeing with the
            running balance
    """
    transactions: List[Transaction] = field(default_factory=list)
    opening_unit_balance: Optional[Decimal] = None
    closing_unit_balance: Optional[Decimal] = None
    nav_on_date: Optional[Decimal] = None
    nav_date: Optional[date] = None
    total_cost_value: Optional[Decimal] = None
    market_value: Optional[Decimal] = None
    balance_mismatches: int = 0


@dataclass
class ParserContext:
    """
    State threaded through one folio scan.

    Attributes:
        state: Current state machine state
        buffer: Transaction being accumulated, if any
        last_seen_date: Most recent transaction date, inherited by
            administrative markers printed without a date
        running_balance: Opening balance plus financial units seen so far
    """
    state: FolioState = FolioState.AWAITING_OPENING_BALANCE
    buffer: Optional[TransactionBuffer] = None
    last_seen_date: Optional[date] = None
    running_balance: Optional[Decimal] = None


class FolioTransactionParser:
    """
    Parser for the transaction block of a single folio.

    Handles:
    - Descriptions wrapping before or after the numeric columns
    - Administrative markers on their own line or on the dated line
    - Missing opening/closing balance markers (lenient partial extraction)
    - Running unit balance tracking
    """

    NAV_PATTERN = re.compile(
        r"NAV\s+on\s+(\d{2}-[A-Za-z]{3}-\d{4})\s*:\s*(?:INR|Rs\.?)?\s*([\d,]+\.?\d*)",
        re.IGNORECASE,
    )
    COST_VALUE_PATTERN = re.compile(
        r"(?:Total\s+)?Cost\s+Value\s*:\s*(?:INR|Rs\.?)?\s*([\d,]+\.?\d*)", re.IGNORECASE
    )
    MARKET_VALUE_PATTERN = re.compile(
        r"(?:Market\s+Value|Valuation)\s+on\s+\d{2}-[A-Za-z]{3}-\d{4}\s*:\s*(?:INR|Rs\.?)?\s*([\d,]+\.?\d*)",
        re.IGNORECASE,
    )

    def __init__(self):
        """Initialize the folio parser."""
        self.classifier = LineClassifier()
        self.type_resolver = TransactionTypeResolver()
        self.context = ParserContext()

    def parse(self, block: Union[str, List[str]]) -> FolioParseResult:
        """
        Parse one folio block.

        Args:
            block: Folio text, either a single string or a list of lines.

        Returns:
            FolioParseResult with transactions and balances.
        """
        lines = block.splitlines() if isinstance(block, str) else list(block)
        self.context = ParserContext()
        result = FolioParseResult()

        for line in lines:
            if self.context.state == FolioState.CLOSED:
                break
            classified = self.classifier.classify(
                line, in_folio=self.context.state == FolioState.IN_FOLIO
            )
            self._handle_line(classified, result)

        if self.context.state != FolioState.CLOSED:
            self._flush(result)
            if result.transactions or result.opening_unit_balance is not None:
                logger.warning(
                    f"Folio block ended without a closing balance "
                    f"({len(result.transactions)} transactions)"
                )

        logger.debug(f"Parsed {len(result.transactions)} folio transactions")
        return result

    def _handle_line(self, line: ClassifiedLine, result: FolioParseResult) -> None:
        kind = line.kind

        if kind == LineKind.OPENING_BALANCE_MARKER:
            if result.opening_unit_balance is None:
                result.opening_unit_balance = line.value
                self.context.running_balance = line.value
            else:
                logger.debug(f"Repeated opening balance ignored: {line.text}")
            self.context.state = FolioState.IN_FOLIO

        elif kind == LineKind.DATE_TRANSACTION_START:
            if self.context.state == FolioState.AWAITING_OPENING_BALANCE:
                logger.debug("Transaction before opening balance, starting folio implicitly")
                self.context.state = FolioState.IN_FOLIO
            self._flush(result)
            self.context.last_seen_date = line.date
            self.context.buffer = TransactionBuffer(date=line.date)
            self.context.buffer.add_line(line.remainder)

        elif kind == LineKind.CONTINUATION_TEXT:
            if self.context.buffer is not None:
                self.context.buffer.add_line(line.remainder)
            else:
                logger.debug(f"Text outside a transaction discarded: {line.text}")

        elif kind == LineKind.ADMINISTRATIVE_MARKER:
            if self.context.state == FolioState.AWAITING_OPENING_BALANCE:
                self.context.state = FolioState.IN_FOLIO
            buffer = self.context.buffer
            if buffer is not None and not buffer.has_text:
                buffer.add_line(line.remainder)
                self._flush(result)
            else:
                self._flush(result)
                if self.context.last_seen_date is None:
                    logger.warning(f"Administrative marker without a preceding date: {line.text}")
                self.context.buffer = TransactionBuffer(date=self.context.last_seen_date)
                self.context.buffer.add_line(line.remainder)
                self._flush(result)

        elif kind == LineKind.CLOSING_BALANCE_MARKER:
            self._flush(result)
            self._record_closing(line, result)
            self.context.state = FolioState.CLOSED

    def _flush(self, result: FolioParseResult) -> None:
        """Finalize the open transaction buffer, if any."""
        buffer = self.context.buffer
        if buffer is None:
            return
        self.context.buffer = None

        amount, nav, units, unit_balance = self._assign_columns(buffer.numbers)
        resolution = self.type_resolver.resolve(buffer.description, amount)

        transaction = Transaction(
            date=buffer.date,
            transaction_type=resolution.transaction_type,
            description=resolution.description,
            is_administrative=resolution.is_administrative,
            amount=amount,
            nav=nav,
            units=units,
            unit_balance=unit_balance,
        )
        self._track_balance(transaction, result)
        result.transactions.append(transaction)
        logger.debug(
            f"Parsed transaction: {transaction.date} {transaction.transaction_type} "
            f"amount={amount} units={units}"
        )

    def _assign_columns(
        self, tokens: List[str]
    ) -> Tuple[Optional[Decimal], Optional[Decimal], Optional[Decimal], Optional[Decimal]]:
        """
        Assign numeric tokens to amount, NAV, units and balance columns.

        Columns are positional, trailing columns may be missing. Units carry
        exactly three decimals in CAS statements; when the second token looks
        like units and the third does not, the row uses the
        amount/units/price layout instead.

        Args:
            tokens: Numeric tokens in document order.

        Returns:
            Tuple of (amount, nav, units, unit_balance).
        """
        if len(tokens) > COLUMN_COUNT:
            logger.debug(f"Ignoring extra numeric columns: {tokens[COLUMN_COUNT:]}")
        columns = tokens[:COLUMN_COUNT] + [None] * (COLUMN_COUNT - min(len(tokens), COLUMN_COUNT))
        amount_tok, nav_tok, units_tok, balance_tok = columns

        if nav_tok is not None and units_tok is not None:
            if _decimal_places(nav_tok) == 3 and _decimal_places(units_tok) != 3:
                nav_tok, units_tok = units_tok, nav_tok

        return (
            parse_decimal(amount_tok),
            parse_decimal(nav_tok),
            parse_decimal(units_tok),
            parse_decimal(balance_tok),
        )

    def _track_balance(self, transaction: Transaction, result: FolioParseResult) -> None:
        """Advance the running unit balance and compare with the printed one."""
        if transaction.is_administrative:
            return

        running = self.context.running_balance
        if running is not None and transaction.units is not None:
            running += transaction.units

        printed = transaction.unit_balance
        if printed is not None:
            if running is not None and abs(running - printed) > UNITS_TOLERANCE:
                result.balance_mismatches += 1
                logger.warning(
                    f"Unit balance mismatch on {transaction.date}: "
                    f"printed={printed}, running={running}"
                )
            running = printed

        self.context.running_balance = running

    def _record_closing(self, line: ClassifiedLine, result: FolioParseResult) -> None:
        result.closing_unit_balance = line.value

        nav_match = self.NAV_PATTERN.search(line.text)
        if nav_match:
            result.nav_date = parse_statement_date(nav_match.group(1))
            result.nav_on_date = parse_decimal(nav_match.group(2))

        cost_match = self.COST_VALUE_PATTERN.search(line.text)
        if cost_match:
            result.total_cost_value = parse_decimal(cost_match.group(1))

        market_match = self.MARKET_VALUE_PATTERN.search(line.text)
        if market_match:
            result.market_value = parse_decimal(market_match.group(1))

        running = self.context.running_balance
        if (
            running is not None
            and result.closing_unit_balance is not None
            and abs(running - result.closing_unit_balance) > UNITS_TOLERANCE
        ):
            logger.warning(
                f"Closing balance {result.closing_unit_balance} differs from "
                f"running balance {running}"
            )


def _decimal_places(token: str) -> int:
    stripped = token.strip("()")
    if "." not in stripped:
        return 0
    return len(stripped.rsplit(".", 1)[1])


def parse_transactions(block: Union[str, List[str]]) -> List[Transaction]:
    """
    Convenience function to parse the transactions of one folio block.

    Args:
        block: Folio text or list of lines.

    Returns:
        List of parsed Transaction objects.
    """
    parser = FolioTransactionParser()
    return parser.parse(block).transactions
