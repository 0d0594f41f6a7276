"""
Fund transaction aggregator for CAS statements.

The transaction section of a CAMS/KFintech CAS repeats the same layout per
scheme:

    Aditya Birla Sun Life Mutual Fund
    Folio No: 1234567 / 89 PAN: ABCDE1234F KYC: OK PAN: OK
    G357-ABSL Small Cap Fund - Growth - ISIN: INF209K01LS1(Advisor: ARN-123456) Registrar : CAMS
    Opening Unit Balance: 12871.468
    ...transactions...
    Closing Unit Balance: 10740.804 NAV on 18-Jul-2025: INR 85.1234 ...

This module slices the statement into folio segments at those folio and
scheme boundaries, runs the folio parser on each segment, and assembles the
funds -> folios -> transactions tree.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from cas_extractor.models import (
    ExtractionError,
    ExtractionResult,
    Folio,
    Fund,
    PortfolioSummary,
)
from cas_extractor.portfolio_parser import parse_scheme_header
from cas_extractor.transactions_parser import FolioTransactionParser

logger = logging.getLogger(__name__)


def mask_pan(pan: Optional[str]) -> Optional[str]:
    """
    Mask a PAN, keeping the last four characters.

    Args:
        pan: PAN as printed (possibly already masked).

    Returns:
        Masked PAN, or None.
    """
    if not pan:
        return None
    pan = pan.strip().upper()
    if "*" in pan or len(pan) <= 4:
        return pan
    return "*" * (len(pan) - 4) + pan[-4:]


@dataclass
class FolioSegment:
    """
    Lines of one scheme section under one folio.

    Attributes:
        folio_number: Folio number from the preceding "Folio No:" line
        pan: PAN from that line, unmasked
        scheme_name: Scheme name from the header line
        isin: ISIN from the header line
        advisor: Advisor code from the header line
        registrar: Registrar from the header line
        lines: Lines after the header up to the next boundary
    """
    folio_number: Optional[str]
    pan: Optional[str]
    scheme_name: str
    isin: str
    advisor: Optional[str] = None
    registrar: Optional[str] = None
    lines: List[str] = field(default_factory=list)


class FundTransactionAggregator:
    """
    Assembles funds, folios and transactions from a whole statement.
    """

    FOLIO_PATTERN = re.compile(
        r"Folio\s*No\s*:\s*([A-Z0-9/\s]+?)(?:\s+(?:KYC|PAN)\b|$)", re.IGNORECASE
    )
    PAN_PATTERN = re.compile(r"\bPAN\s*:\s*([A-Z*]{5}[0-9*]{4}[A-Z*])")

    def __init__(self):
        """Initialize the aggregator."""
        self.folio_parser = FolioTransactionParser()

    def segment(self, lines: List[str]) -> List[FolioSegment]:
        """
        Split statement lines into folio segments.

        Args:
            lines: All statement lines.

        Returns:
            Segments in document order.
        """
        segments: List[FolioSegment] = []
        current: Optional[FolioSegment] = None
        pending_folio: Optional[str] = None
        pending_pan: Optional[str] = None
        previous: Optional[str] = None

        for raw in lines:
            line = " ".join(raw.split())
            if not line:
                continue

            folio_match = self.FOLIO_PATTERN.search(line)
            if folio_match:
                current = None
                pending_folio = "".join(folio_match.group(1).split())
                pan_match = self.PAN_PATTERN.search(line)
                pending_pan = pan_match.group(1) if pan_match else None
                logger.debug(f"Found Folio: {pending_folio}")
                previous = line
                continue

            scheme = parse_scheme_header(line, previous)
            if scheme:
                current = FolioSegment(
                    folio_number=pending_folio,
                    pan=pending_pan,
                    scheme_name=scheme.scheme_name,
                    isin=scheme.isin,
                    advisor=scheme.advisor,
                    registrar=scheme.registrar,
                )
                segments.append(current)
                previous = line
                continue

            if current is not None:
                current.lines.append(line)
            previous = line

        logger.info(f"Segmented statement into {len(segments)} folio sections")
        return segments

    def aggregate(self, source: Union[str, List[str]], summary: PortfolioSummary) -> ExtractionResult:
        """
        Build the extraction result for a statement.

        Args:
            source: Statement text or list of lines.
            summary: Portfolio summary providing fund order and fund count.

        Returns:
            ExtractionResult with funds in document order.

        Raises:
            ExtractionError: If no folio could be found in the statement.
        """
        lines = source.splitlines() if isinstance(source, str) else list(source)

        funds: Dict[str, Fund] = {}
        for scheme in summary.schemes:
            funds[scheme.isin] = Fund(
                scheme_name=scheme.scheme_name,
                isin=scheme.isin,
                advisor=scheme.advisor,
                registrar=scheme.registrar,
            )

        for segment in self.segment(lines):
            fund = funds.get(segment.isin)
            if fund is None:
                logger.warning(
                    f"Scheme {segment.scheme_name} ({segment.isin}) missing from portfolio summary"
                )
                fund = Fund(
                    scheme_name=segment.scheme_name,
                    isin=segment.isin,
                    advisor=segment.advisor,
                    registrar=segment.registrar,
                )
                funds[segment.isin] = fund

            if not segment.folio_number:
                logger.warning(f"No folio number for scheme {segment.isin}, section skipped")
                continue

            parsed = self.folio_parser.parse(segment.lines)
            fund.folios.append(
                Folio(
                    folio_number=segment.folio_number,
                    opening_unit_balance=parsed.opening_unit_balance,
                    closing_unit_balance=parsed.closing_unit_balance,
                    nav_on_date=parsed.nav_on_date,
                    nav_date=parsed.nav_date,
                    total_cost_value=parsed.total_cost_value,
                    market_value=parsed.market_value,
                    advisor=segment.advisor or fund.advisor,
                    pan=mask_pan(segment.pan),
                    registrar=segment.registrar or fund.registrar,
                    transactions=parsed.transactions,
                )
            )

        result = ExtractionResult(funds=list(funds.values()), fund_count=summary.fund_count)
        result.total_folios = len(result.distinct_folio_numbers())

        if result.total_folios == 0:
            raise ExtractionError("No transaction data found. Please ensure this is a valid CAS PDF.")

        logger.info(
            f"Aggregated {len(result.funds)} funds, {result.total_folios} folios, "
            f"{result.total_transactions} transactions"
        )
        return result


def extract_fund_transactions(
    source: Union[str, List[str]], summary: PortfolioSummary
) -> ExtractionResult:
    """
    Convenience function to aggregate fund transactions.

    Args:
        source: Statement text or list of lines.
        summary: Portfolio summary of the same statement.

    Returns:
        ExtractionResult for the statement.
    """
    return FundTransactionAggregator().aggregate(source, summary)
