"""
Data models for the CAS transaction extractor.

This module defines the core data structures using dataclasses for:
- Transaction records (financial and administrative)
- Folios and funds grouping those transactions
- The portfolio summary scraped from the statement header
- Extraction and validation results
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional


class ExtractionError(ValueError):
    """Raised when a statement yields no usable portfolio or transaction data."""


class TransactionType(Enum):
    """
    Closed set of financial transaction categories.

    The enum values are the canonical labels written to exports. Administrative
    events are not part of this enumeration: their type is the cleaned text of
    the statement marker (e.g. "Stamp Duty", "KYC Update").
    """
    PURCHASE = "Purchase"
    REDEMPTION = "Redemption"
    SIP = "Systematic Investment"
    SWITCH_IN = "Switch-In"
    SWITCH_OUT = "Switch-Out"
    DIVIDEND = "Dividend"
    UNCLASSIFIED = "Unclassified"

    @classmethod
    def labels(cls) -> List[str]:
        """Return all canonical labels."""
        return [member.value for member in cls]

    @classmethod
    def from_label(cls, label: str) -> Optional["TransactionType"]:
        """Look up a category by its label, or None for administrative labels."""
        for member in cls:
            if member.value == label:
                return member
        return None


def _decimal_str(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


def _date_str(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _decimal_value(value: Any) -> Optional[Decimal]:
    """Read a Decimal back from its JSON form (string, int or float)."""
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value).replace(",", ""))
    except InvalidOperation:
        raise ValueError(f"Invalid decimal value: {value!r}")


def _date_value(value: Any) -> Optional[date]:
    """Read a date back from its ISO form."""
    if not value:
        return None
    return date.fromisoformat(str(value)[:10])


@dataclass(frozen=True)
class Transaction:
    """
    A single transaction row from a folio's transaction history.

    Attributes:
        date: Transaction date (inherited from the nearest dated line for
            administrative markers printed on their own line)
        amount: Signed amount in INR, None when the column is blank
        nav: NAV at which units were allotted or redeemed
        units: Signed units moved by the transaction
        unit_balance: Unit balance printed after this transaction, if any
        transaction_type: A TransactionType label, or the cleaned marker text
            for administrative events
        description: Statement description; administrative events keep their
            ``***`` framing verbatim
        is_administrative: True for non unit-moving events (stamp duty, STT,
            KYC/address/nominee updates and similar)
    """
    date: Optional[date]
    transaction_type: str
    description: str
    is_administrative: bool = False
    amount: Optional[Decimal] = None
    nav: Optional[Decimal] = None
    units: Optional[Decimal] = None
    unit_balance: Optional[Decimal] = None

    @property
    def category(self) -> Optional[TransactionType]:
        """Financial category, or None for administrative events."""
        if self.is_administrative:
            return None
        return TransactionType.from_label(self.transaction_type)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": _date_str(self.date),
            "transactionType": self.transaction_type,
            "amount": _decimal_str(self.amount),
            "nav": _decimal_str(self.nav),
            "units": _decimal_str(self.units),
            "unitBalance": _decimal_str(self.unit_balance),
            "description": self.description,
            "isAdministrative": self.is_administrative,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transaction":
        return cls(
            date=_date_value(data.get("date")),
            transaction_type=data.get("transactionType") or "",
            description=data.get("description") or "",
            is_administrative=bool(data.get("isAdministrative", False)),
            amount=_decimal_value(data.get("amount")),
            nav=_decimal_value(data.get("nav")),
            units=_decimal_value(data.get("units")),
            unit_balance=_decimal_value(data.get("unitBalance")),
        )


@dataclass
class Folio:
    """
    An investor account within one scheme, with its ordered transactions.

    Attributes:
        folio_number: Folio number as printed, internal spaces removed
        opening_unit_balance: Units held at the start of the statement period
        closing_unit_balance: Units held at the end of the statement period
        nav_on_date: NAV printed on the closing balance line
        nav_date: Date of that NAV
        total_cost_value: Total cost value printed on the closing line
        market_value: Market value printed on the closing line
        advisor: Distributor ARN code or "DIRECT"
        pan: Masked PAN of the first holder
        registrar: Registrar and transfer agent (CAMS, KFINTECH)
        transactions: Transactions in document order
    """
    folio_number: str
    opening_unit_balance: Optional[Decimal] = None
    closing_unit_balance: Optional[Decimal] = None
    nav_on_date: Optional[Decimal] = None
    nav_date: Optional[date] = None
    total_cost_value: Optional[Decimal] = None
    market_value: Optional[Decimal] = None
    advisor: Optional[str] = None
    pan: Optional[str] = None
    registrar: Optional[str] = None
    transactions: List[Transaction] = field(default_factory=list)

    def __post_init__(self):
        """Normalize folio number."""
        self.folio_number = "".join(self.folio_number.split()) if self.folio_number else ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "folioNumber": self.folio_number,
            "openingUnitBalance": _decimal_str(self.opening_unit_balance),
            "closingUnitBalance": _decimal_str(self.closing_unit_balance),
            "navOnDate": _decimal_str(self.nav_on_date),
            "navDate": _date_str(self.nav_date),
            "totalCostValue": _decimal_str(self.total_cost_value),
            "marketValue": _decimal_str(self.market_value),
            "advisor": self.advisor,
            "pan": self.pan,
            "registrar": self.registrar,
            "transactions": [t.to_dict() for t in self.transactions],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Folio":
        return cls(
            folio_number=data.get("folioNumber") or "",
            opening_unit_balance=_decimal_value(data.get("openingUnitBalance")),
            closing_unit_balance=_decimal_value(data.get("closingUnitBalance")),
            nav_on_date=_decimal_value(data.get("navOnDate")),
            nav_date=_date_value(data.get("navDate")),
            total_cost_value=_decimal_value(data.get("totalCostValue")),
            market_value=_decimal_value(data.get("marketValue")),
            advisor=data.get("advisor"),
            pan=data.get("pan"),
            registrar=data.get("registrar"),
            transactions=[Transaction.from_dict(t) for t in data.get("transactions") or []],
        )


@dataclass
class Fund:
    """A scheme identified by its ISIN, grouping folios in document order."""
    scheme_name: str
    isin: str
    advisor: Optional[str] = None
    registrar: Optional[str] = None
    folios: List[Folio] = field(default_factory=list)

    def __post_init__(self):
        """Normalize scheme name and ISIN."""
        self.scheme_name = " ".join(self.scheme_name.split()) if self.scheme_name else ""
        self.isin = self.isin.strip().upper() if self.isin else ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schemeName": self.scheme_name,
            "isin": self.isin,
            "advisor": self.advisor,
            "registrar": self.registrar,
            "folios": [f.to_dict() for f in self.folios],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Fund":
        return cls(
            scheme_name=data.get("schemeName") or "",
            isin=data.get("isin") or "",
            advisor=data.get("advisor"),
            registrar=data.get("registrar"),
            folios=[Folio.from_dict(f) for f in data.get("folios") or []],
        )


@dataclass
class ExtractionResult:
    """
    Funds -> folios -> transactions tree built from one statement.

    Attributes:
        funds: Funds in document order
        total_folios: Number of distinct folio numbers across all funds
        fund_count: Number of funds reported by the portfolio summary
    """
    funds: List[Fund] = field(default_factory=list)
    total_folios: int = 0
    fund_count: int = 0

    @property
    def total_transactions(self) -> int:
        return sum(len(folio.transactions) for fund in self.funds for folio in fund.folios)

    def distinct_folio_numbers(self) -> List[str]:
        """Folio numbers across all funds, first occurrence order."""
        seen: Dict[str, None] = {}
        for fund in self.funds:
            for folio in fund.folios:
                seen.setdefault(folio.folio_number, None)
        return list(seen)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "funds": [f.to_dict() for f in self.funds],
            "totalFolios": self.total_folios,
            "fundCount": self.fund_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExtractionResult":
        """Rebuild a result from its to_dict() form."""
        return cls(
            funds=[Fund.from_dict(f) for f in data.get("funds") or []],
            total_folios=int(data.get("totalFolios") or 0),
            fund_count=int(data.get("fundCount") or 0),
        )


@dataclass
class AmcSummary:
    """One row of the portfolio summary table."""
    amc_name: str
    cost_value: Optional[Decimal] = None
    market_value: Optional[Decimal] = None


@dataclass
class SchemeSummary:
    """
    A scheme header found in the statement.

    Attributes:
        scheme_name: Scheme name without the RTA scheme code
        isin: ISIN of the scheme
        scheme_code: RTA scheme code prefix (e.g. "G357"), if printed
        advisor: Distributor ARN code or "DIRECT"
        registrar: Registrar and transfer agent
    """
    scheme_name: str
    isin: str
    scheme_code: Optional[str] = None
    advisor: Optional[str] = None
    registrar: Optional[str] = None


@dataclass
class PortfolioSummary:
    """Header-level data of a CAS: AMC valuation table and scheme list."""
    amc_summaries: List[AmcSummary] = field(default_factory=list)
    schemes: List[SchemeSummary] = field(default_factory=list)
    total_cost_value: Optional[Decimal] = None
    total_market_value: Optional[Decimal] = None
    period_from: Optional[date] = None
    period_to: Optional[date] = None

    @property
    def fund_count(self) -> int:
        return len(self.schemes)

    def get_scheme(self, isin: str) -> Optional[SchemeSummary]:
        for scheme in self.schemes:
            if scheme.isin == isin:
                return scheme
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "portfolioSummary": [
                {
                    "amcName": a.amc_name,
                    "costValue": _decimal_str(a.cost_value),
                    "marketValue": _decimal_str(a.market_value),
                }
                for a in self.amc_summaries
            ],
            "schemes": [
                {
                    "schemeName": s.scheme_name,
                    "isin": s.isin,
                    "schemeCode": s.scheme_code,
                    "advisor": s.advisor,
                    "registrar": s.registrar,
                }
                for s in self.schemes
            ],
            "totalCostValue": _decimal_str(self.total_cost_value),
            "totalMarketValue": _decimal_str(self.total_market_value),
            "statementPeriod": {
                "from": _date_str(self.period_from),
                "to": _date_str(self.period_to),
            },
            "fundCount": self.fund_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PortfolioSummary":
        """Rebuild a summary from its to_dict() form."""
        period = data.get("statementPeriod") or {}
        return cls(
            amc_summaries=[
                AmcSummary(
                    amc_name=a.get("amcName") or "",
                    cost_value=_decimal_value(a.get("costValue")),
                    market_value=_decimal_value(a.get("marketValue")),
                )
                for a in data.get("portfolioSummary") or []
            ],
            schemes=[
                SchemeSummary(
                    scheme_name=s.get("schemeName") or "",
                    isin=s.get("isin") or "",
                    scheme_code=s.get("schemeCode"),
                    advisor=s.get("advisor"),
                    registrar=s.get("registrar"),
                )
                for s in data.get("schemes") or []
            ],
            total_cost_value=_decimal_value(data.get("totalCostValue")),
            total_market_value=_decimal_value(data.get("totalMarketValue")),
            period_from=_date_value(period.get("from")),
            period_to=_date_value(period.get("to")),
        )


@dataclass
class ValidationResult:
    """
    Result of data-quality checks on an extraction.

    Attributes:
        is_valid: True if all critical validations pass
        errors: List of critical errors that indicate parsing failures
        warnings: List of non-critical issues that should be reviewed
    """
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        """Add a critical error and mark result as invalid."""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        """Add a non-critical warning."""
        self.warnings.append(message)

    def merge(self, other: "ValidationResult") -> None:
        """Merge another validation result into this one."""
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        if not other.is_valid:
            self.is_valid = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "errors": self.errors,
            "warnings": self.warnings,
        }


@dataclass
class CASExtraction:
    """
    Complete output of one extraction run.

    Attributes:
        portfolio: Portfolio summary scraped from the statement header
        result: Funds/folios/transactions tree
        validation: Data-quality report
        raw_text: Linearised statement text the extraction ran on
        source_file: Name of the source PDF, if any
    """
    portfolio: PortfolioSummary
    result: ExtractionResult
    validation: ValidationResult = field(default_factory=ValidationResult)
    raw_text: str = ""
    source_file: Optional[str] = None

    def summary(self) -> Dict[str, int]:
        return {
            "totalFunds": self.portfolio.fund_count,
            "totalFolios": self.result.total_folios,
            "totalTransactions": self.result.total_transactions,
        }
