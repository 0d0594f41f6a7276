"""
Portfolio summary parser for CAS statements.

This module scrapes the header-level data of a statement: the AMC
valuation table under "PORTFOLIO SUMMARY", the statement period, and the
list of scheme headers (scheme name, ISIN, advisor, registrar) that later
bound the per-fund transaction sections.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Union

from cas_extractor.fields import parse_decimal, parse_statement_date
from cas_extractor.models import AmcSummary, PortfolioSummary, SchemeSummary

logger = logging.getLogger(__name__)

SCHEME_HEADER_PATTERN = re.compile(
    r"^(?:(?P<code>[A-Z0-9]{2,10})-)?(?P<name>.*?)[\s-]*ISIN\s*:\s*(?P<isin>INF[A-Z0-9]{9})"
)
ADVISOR_PATTERN = re.compile(r"\(?Advisor[:\s]+([A-Z0-9]+-?[A-Z0-9]*)\)?")
REGISTRAR_PATTERN = re.compile(r"Registrar\s*:\s*(\w+)", re.IGNORECASE)
NOT_A_SCHEME_NAME_PATTERN = re.compile(
    r"(?i)^(?:folio\s*no|pan\s*:|kyc\s*:|nominee|registrar|opening|closing|\d{2}-[a-z]{3}-\d{4})"
)


def parse_scheme_header(line: str, previous_line: Optional[str] = None) -> Optional[SchemeSummary]:
    """
    Parse an ISIN-bearing scheme header line.

    Example:
        "G357-ABSL Small Cap Fund - Growth - ISIN: INF209K01LS1(Advisor: ARN-123456) Registrar : CAMS"

    Args:
        line: Candidate header line.
        previous_line: Line before it, used when the scheme name wrapped
            and the header line starts with the ISIN.

    Returns:
        SchemeSummary, or None when the line is not a scheme header.
    """
    text = " ".join(line.split())
    match = SCHEME_HEADER_PATTERN.search(text)
    if not match:
        return None

    code = match.group("code")
    name = match.group("name").strip(" -")

    prev = " ".join(previous_line.split()) if previous_line else ""
    if not name and prev and not NOT_A_SCHEME_NAME_PATTERN.match(prev):
        prev_match = re.match(r"^([A-Z0-9]{2,10})-(.+)$", prev)
        if prev_match:
            code, prev = prev_match.group(1), prev_match.group(2)
        name = prev.strip(" -")
        logger.debug(f"Scheme name taken from previous line: {name}")

    advisor = None
    advisor_match = ADVISOR_PATTERN.search(text)
    if advisor_match:
        advisor = advisor_match.group(1)

    registrar = None
    registrar_match = REGISTRAR_PATTERN.search(text)
    if registrar_match:
        registrar = registrar_match.group(1).upper()

    if not name:
        logger.warning(f"ISIN found without scheme name: {match.group('isin')}")

    return SchemeSummary(
        scheme_name=name,
        isin=match.group("isin"),
        scheme_code=code,
        advisor=advisor,
        registrar=registrar,
    )


@dataclass
class SummaryContext:
    """
    Context maintained during summary parsing.

    Attributes:
        in_summary_table: Inside the PORTFOLIO SUMMARY table
        seen_isins: ISINs already recorded
    """
    in_summary_table: bool = False
    seen_isins: set = field(default_factory=set)


class PortfolioSummaryParser:
    """
    Parser for the portfolio summary and scheme list of a CAS.
    """

    SUMMARY_START_PATTERN = re.compile(r"(?i)portfolio\s+summary")
    AMC_ROW_PATTERN = re.compile(
        r"^(?P<amc>[A-Za-z][A-Za-z0-9&.'()\s-]*?(?:Mutual\s+Fund|MF))\s+"
        r"(?P<cost>[\d,]+\.\d{2})\s+(?P<market>[\d,]+\.\d{2})$",
        re.IGNORECASE,
    )
    TOTAL_ROW_PATTERN = re.compile(
        r"^Total\s+(?P<cost>[\d,]+\.\d{2})\s+(?P<market>[\d,]+\.\d{2})$", re.IGNORECASE
    )
    PERIOD_PATTERN = re.compile(
        r"(\d{2}-[A-Za-z]{3}-\d{4})\s+to\s+(\d{2}-[A-Za-z]{3}-\d{4})", re.IGNORECASE
    )
    FOLIO_PATTERN = re.compile(r"(?i)^folio\s*no")

    def __init__(self):
        """Initialize the summary parser."""
        self.context = SummaryContext()

    def parse(self, source: Union[str, List[str]]) -> PortfolioSummary:
        """
        Parse the portfolio summary.

        Args:
            source: Statement text or list of lines.

        Returns:
            PortfolioSummary; empty lists when nothing was recognised.
        """
        lines = source.splitlines() if isinstance(source, str) else list(source)
        self.context = SummaryContext()
        summary = PortfolioSummary()
        previous = None

        for raw in lines:
            line = " ".join(raw.split())
            if not line:
                continue

            if summary.period_from is None:
                period = self.PERIOD_PATTERN.search(line)
                if period:
                    summary.period_from = parse_statement_date(period.group(1))
                    summary.period_to = parse_statement_date(period.group(2))

            self._parse_summary_row(line, summary)

            scheme = parse_scheme_header(line, previous)
            if scheme and scheme.isin not in self.context.seen_isins:
                self.context.seen_isins.add(scheme.isin)
                summary.schemes.append(scheme)
                logger.debug(f"Found scheme: {scheme.scheme_name} ({scheme.isin})")

            previous = line

        logger.info(
            f"Portfolio summary: {len(summary.amc_summaries)} AMCs, "
            f"{summary.fund_count} schemes"
        )
        return summary

    def _parse_summary_row(self, line: str, summary: PortfolioSummary) -> None:
        if self.SUMMARY_START_PATTERN.search(line):
            self.context.in_summary_table = True
            return
        if not self.context.in_summary_table:
            return

        if self.FOLIO_PATTERN.match(line):
            self.context.in_summary_table = False
            return

        total = self.TOTAL_ROW_PATTERN.match(line)
        if total:
            summary.total_cost_value = parse_decimal(total.group("cost"))
            summary.total_market_value = parse_decimal(total.group("market"))
            self.context.in_summary_table = False
            return

        row = self.AMC_ROW_PATTERN.match(line)
        if row:
            summary.amc_summaries.append(
                AmcSummary(
                    amc_name=row.group("amc").strip(),
                    cost_value=parse_decimal(row.group("cost")),
                    market_value=parse_decimal(row.group("market")),
                )
            )


def parse_portfolio_summary(source: Union[str, List[str]]) -> PortfolioSummary:
    """
    Convenience function to parse a portfolio summary.

    Args:
        source: Statement text or list of lines.

    Returns:
        Parsed PortfolioSummary.
    """
    return PortfolioSummaryParser().parse(source)
