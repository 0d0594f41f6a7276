"""
Transaction flattening, filtering and reconstruction.

Exports and the web UI work on a flat list of transactions, each carrying
the scheme and folio it belongs to. Filtered rows are turned back into the
funds -> folios -> transactions tree before a report is rendered.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from dateutil import parser as date_parser

from cas_extractor.fields import parse_decimal
from cas_extractor.models import ExtractionResult, Folio, Fund, Transaction

logger = logging.getLogger(__name__)

FINANCIAL = "financial"
ADMINISTRATIVE = "administrative"
CATEGORIES = (FINANCIAL, ADMINISTRATIVE)


@dataclass
class FlatTransaction:
    """
    A transaction denormalised with its scheme and folio.

    Attributes:
        transaction: The transaction record
        scheme_name: Scheme the transaction belongs to
        folio_number: Folio the transaction belongs to
        isin: ISIN of the scheme
    """
    transaction: Transaction
    scheme_name: str
    folio_number: str
    isin: str

    @property
    def category(self) -> str:
        return ADMINISTRATIVE if self.transaction.is_administrative else FINANCIAL

    def to_dict(self) -> Dict[str, Any]:
        data = self.transaction.to_dict()
        data.update({
            "schemeName": self.scheme_name,
            "folioNumber": self.folio_number,
            "isin": self.isin,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlatTransaction":
        """
        Build a flat transaction from its JSON form (as posted back by a client).

        Args:
            data: Dictionary produced by to_dict().

        Returns:
            FlatTransaction instance.
        """
        if not isinstance(data, dict):
            raise TypeError(f"Transaction row must be an object, got {type(data).__name__}")
        return cls(
            transaction=Transaction.from_dict(data),
            scheme_name=data.get("schemeName") or "",
            folio_number=data.get("folioNumber") or "",
            isin=data.get("isin") or "",
        )


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    return parse_decimal(str(value))


def _parse_date(value: Any) -> Optional[date]:
    """Parse a date from an ISO string, a browser timestamp or a date object."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date_parser.parse(str(value)).date()
    except (ValueError, OverflowError):
        logger.warning(f"Ignoring unparseable date: {value!r}")
        return None


def flatten_transactions(result: ExtractionResult) -> List[FlatTransaction]:
    """
    Flatten an extraction result into one row per transaction.

    Args:
        result: Extraction result to flatten.

    Returns:
        FlatTransaction rows in document order.
    """
    rows = []
    for fund in result.funds:
        for folio in fund.folios:
            for tx in folio.transactions:
                rows.append(
                    FlatTransaction(
                        transaction=tx,
                        scheme_name=fund.scheme_name,
                        folio_number=folio.folio_number,
                        isin=fund.isin,
                    )
                )
    return rows


@dataclass
class TransactionFilter:
    """
    Filter criteria, all combined with AND. Unset criteria match everything.

    Attributes:
        date_from: Earliest transaction date (inclusive)
        date_to: Latest transaction date (inclusive)
        categories: Subset of "financial" / "administrative"
        search_query: Case-insensitive substring of the scheme name
        folio_number: Exact folio number
        amount_min: Minimum amount (inclusive)
        amount_max: Maximum amount (inclusive)
    """
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    categories: List[str] = field(default_factory=list)
    search_query: str = ""
    folio_number: Optional[str] = None
    amount_min: Optional[Decimal] = None
    amount_max: Optional[Decimal] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "TransactionFilter":
        """
        Build a filter from request parameters.

        Accepts either flat keys (dateFrom, dateTo, categories, searchQuery,
        folioNumber, amountMin, amountMax) or the nested form
        {"dateRange": {"from", "to"}, "amountRange": {"min", "max"}, ...}.
        """
        data = data or {}
        if not isinstance(data, dict):
            raise TypeError("Filter criteria must be an object")
        date_range = data.get("dateRange") or {}
        amount_range = data.get("amountRange") or {}
        if not isinstance(date_range, dict) or not isinstance(amount_range, dict):
            raise TypeError("dateRange and amountRange must be objects")

        categories = data.get("categories") or []
        if isinstance(categories, str):
            categories = [categories]
        categories = [str(c).lower() for c in categories if c and str(c).lower() in CATEGORIES]

        folio = data.get("folioNumber") or data.get("selectedFolio") or None

        return cls(
            date_from=_parse_date(data.get("dateFrom", date_range.get("from"))),
            date_to=_parse_date(data.get("dateTo", date_range.get("to"))),
            categories=categories,
            search_query=(data.get("searchQuery") or "").strip(),
            folio_number="".join(folio.split()) if folio else None,
            amount_min=_to_decimal(data.get("amountMin", amount_range.get("min"))),
            amount_max=_to_decimal(data.get("amountMax", amount_range.get("max"))),
        )

    @property
    def is_active(self) -> bool:
        return any([
            self.date_from, self.date_to, self.categories, self.search_query,
            self.folio_number, self.amount_min is not None, self.amount_max is not None,
        ])

    def matches(self, row: FlatTransaction) -> bool:
        """Check a flattened transaction against every criterion."""
        tx = row.transaction

        if self.date_from or self.date_to:
            if tx.date is None:
                return False
            if self.date_from and tx.date < self.date_from:
                return False
            if self.date_to and tx.date > self.date_to:
                return False

        if self.categories and row.category not in self.categories:
            return False

        if self.search_query and self.search_query.lower() not in row.scheme_name.lower():
            return False

        if self.folio_number and row.folio_number != self.folio_number:
            return False

        if self.amount_min is not None or self.amount_max is not None:
            if tx.amount is None:
                return False
            if self.amount_min is not None and tx.amount < self.amount_min:
                return False
            if self.amount_max is not None and tx.amount > self.amount_max:
                return False

        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dateRange": {
                "from": self.date_from.isoformat() if self.date_from else None,
                "to": self.date_to.isoformat() if self.date_to else None,
            },
            "categories": list(self.categories),
            "searchQuery": self.search_query,
            "folioNumber": self.folio_number,
            "amountRange": {
                "min": str(self.amount_min) if self.amount_min is not None else None,
                "max": str(self.amount_max) if self.amount_max is not None else None,
            },
        }


def apply_filters(rows: List[FlatTransaction], criteria: TransactionFilter) -> List[FlatTransaction]:
    """
    Apply filter criteria to flattened transactions.

    Args:
        rows: Flattened transactions.
        criteria: Filter to apply.

    Returns:
        Matching rows, order preserved.
    """
    filtered = [row for row in rows if criteria.matches(row)]
    logger.info(f"Filter kept {len(filtered)} of {len(rows)} transactions")
    return filtered


def build_filter_metadata(
    criteria: TransactionFilter, original_count: int, filtered_count: int
) -> Dict[str, Any]:
    """
    Describe an applied filter for report headers.

    Only active criteria appear under "filters"; ranges are rendered as
    human-readable strings.

    Args:
        criteria: Filter that was applied.
        original_count: Number of transactions before filtering.
        filtered_count: Number of transactions after filtering.

    Returns:
        Dictionary with appliedAt, originalCount, filteredCount and filters.
    """
    filters: Dict[str, Any] = {}

    if criteria.date_from or criteria.date_to:
        start = criteria.date_from.isoformat() if criteria.date_from else "Any"
        end = criteria.date_to.isoformat() if criteria.date_to else "Any"
        filters["dateRange"] = f"{start} to {end}"
    if criteria.categories:
        filters["transactionTypes"] = [c.capitalize() for c in criteria.categories]
    if criteria.search_query:
        filters["searchQuery"] = criteria.search_query
    if criteria.folio_number:
        filters["folioNumber"] = criteria.folio_number
    if criteria.amount_min is not None or criteria.amount_max is not None:
        low = str(criteria.amount_min) if criteria.amount_min is not None else "Any"
        high = str(criteria.amount_max) if criteria.amount_max is not None else "Any"
        filters["amountRange"] = f"{low} to {high}"

    return {
        "appliedAt": datetime.now().isoformat(timespec="seconds"),
        "originalCount": original_count,
        "filteredCount": filtered_count,
        "filters": filters,
    }


def reconstruct_transaction_data(
    rows: List[FlatTransaction], original: Optional[ExtractionResult] = None
) -> ExtractionResult:
    """
    Rebuild the funds -> folios -> transactions tree from flat rows.

    Funds are keyed by scheme name and ISIN, folios by folio number; both
    keep the order of their first row. Folio and fund metadata (balances,
    NAV, advisor, registrar) is copied from the original result when given.

    Args:
        rows: Flattened (usually filtered) transactions.
        original: Extraction result the rows came from.

    Returns:
        New ExtractionResult containing only the given transactions.
    """
    originals: Dict[Tuple[str, str], Fund] = {}
    if original is not None:
        for fund in original.funds:
            originals.setdefault((fund.scheme_name, fund.isin), fund)

    funds: Dict[Tuple[str, str], Fund] = {}
    folios: Dict[Tuple[str, str, str], Folio] = {}

    for row in rows:
        fund_key = (row.scheme_name, row.isin)
        source_fund = originals.get(fund_key)

        fund = funds.get(fund_key)
        if fund is None:
            fund = Fund(
                scheme_name=row.scheme_name,
                isin=row.isin,
                advisor=source_fund.advisor if source_fund else None,
                registrar=source_fund.registrar if source_fund else None,
            )
            funds[fund_key] = fund

        folio_key = fund_key + (row.folio_number,)
        folio = folios.get(folio_key)
        if folio is None:
            folio = _copy_folio_metadata(row.folio_number, source_fund)
            folios[folio_key] = folio
            fund.folios.append(folio)

        folio.transactions.append(row.transaction)

    result = ExtractionResult(
        funds=list(funds.values()),
        fund_count=len(funds),
    )
    result.total_folios = len(result.distinct_folio_numbers())
    logger.debug(
        f"Reconstructed {len(result.funds)} funds and {result.total_folios} folios "
        f"from {len(rows)} transactions"
    )
    return result


def _copy_folio_metadata(folio_number: str, source_fund: Optional[Fund]) -> Folio:
    if source_fund is not None:
        for folio in source_fund.folios:
            if folio.folio_number == folio_number:
                return Folio(
                    folio_number=folio.folio_number,
                    opening_unit_balance=folio.opening_unit_balance,
                    closing_unit_balance=folio.closing_unit_balance,
                    nav_on_date=folio.nav_on_date,
                    nav_date=folio.nav_date,
                    total_cost_value=folio.total_cost_value,
                    market_value=folio.market_value,
                    advisor=folio.advisor,
                    pan=folio.pan,
                    registrar=folio.registrar,
                )
    return Folio(folio_number=folio_number)
