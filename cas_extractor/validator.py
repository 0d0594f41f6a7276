"""
Validation module for the CAS transaction extractor.

Parsing never fails on line-level problems; this module reports them as
data-quality errors and warnings on the finished extraction instead.
"""

import logging
import re
from decimal import Decimal
from typing import Optional

from cas_extractor.models import (
    ExtractionResult,
    Folio,
    Fund,
    Transaction,
    TransactionType,
    ValidationResult,
)

logger = logging.getLogger(__name__)

# Validation constants
UNITS_TOLERANCE = Decimal("0.001")  # Tolerance for unit comparisons
ISIN_PATTERN = re.compile(r"^INF[A-Z0-9]{9}$")


def validate_isin(isin: str) -> bool:
    """
    Validate ISIN format (INF followed by 9 alphanumeric characters).

    Args:
        isin: ISIN to validate.

    Returns:
        True if the format is valid.
    """
    if not isin:
        return False
    return bool(ISIN_PATTERN.match(isin))


class CASValidator:
    """
    Validator for extracted CAS data.

    Implements:
    - Aggregate invariants (distinct folio count)
    - Per-transaction sanity (dates, financial/administrative exclusivity)
    - Unit balance consistency (opening + units == closing)
    - Format checks (ISIN)
    """

    def __init__(self, units_tolerance: Decimal = UNITS_TOLERANCE):
        """
        Initialize the validator.

        Args:
            units_tolerance: Tolerance for unit comparisons.
        """
        self.units_tolerance = units_tolerance

    def validate(self, result: ExtractionResult) -> ValidationResult:
        """
        Perform complete validation of an extraction result.

        Args:
            result: Extraction result to validate.

        Returns:
            ValidationResult with errors and warnings.
        """
        validation = ValidationResult()

        logger.info("Starting extraction validation")

        distinct = len(result.distinct_folio_numbers())
        if result.total_folios != distinct:
            validation.add_error(
                f"total_folios={result.total_folios} but {distinct} distinct folio numbers found"
            )

        for fund in result.funds:
            validation.merge(self.validate_fund(fund))

        logger.info(
            f"Validation complete: valid={validation.is_valid}, "
            f"errors={len(validation.errors)}, warnings={len(validation.warnings)}"
        )
        return validation

    def validate_fund(self, fund: Fund) -> ValidationResult:
        """Validate a fund and its folios."""
        result = ValidationResult()

        if not validate_isin(fund.isin):
            result.add_warning(f"Invalid ISIN format: {fund.isin}")

        if not fund.folios:
            result.add_warning(f"No folios found for {fund.scheme_name} ({fund.isin})")

        for folio in fund.folios:
            result.merge(self.validate_folio(folio, fund))

        return result

    def validate_folio(self, folio: Folio, fund: Optional[Fund] = None) -> ValidationResult:
        """
        Validate a folio's transactions and unit balances.

        Args:
            folio: Folio to validate.
            fund: Owning fund, used in messages.

        Returns:
            ValidationResult for the folio.
        """
        result = ValidationResult()
        label = f"folio {folio.folio_number}" + (f" ({fund.isin})" if fund else "")

        for tx in folio.transactions:
            result.merge(self.validate_transaction(tx, label))

        result.merge(self._check_running_balance(folio, label))
        return result

    def validate_transaction(self, tx: Transaction, label: str = "") -> ValidationResult:
        """Validate a single transaction."""
        result = ValidationResult()

        if tx.date is None:
            result.add_error(f"Transaction without a date in {label}: {tx.description!r}")

        is_financial = TransactionType.from_label(tx.transaction_type) is not None
        if is_financial == tx.is_administrative:
            result.add_error(
                f"Transaction type {tx.transaction_type!r} inconsistent with "
                f"is_administrative={tx.is_administrative} in {label}"
            )

        if tx.transaction_type == TransactionType.UNCLASSIFIED.value:
            result.add_warning(f"Unclassified transaction on {tx.date} in {label}: {tx.description!r}")

        if not tx.is_administrative and tx.nav is not None and tx.nav <= 0:
            result.add_warning(f"Non-positive NAV {tx.nav} on {tx.date} in {label}")

        return result

    def _check_running_balance(self, folio: Folio, label: str) -> ValidationResult:
        """
        Compare printed unit balances with opening balance plus units.

        Args:
            folio: Folio to check.
            label: Folio label for messages.

        Returns:
            ValidationResult with balance warnings.
        """
        result = ValidationResult()
        running = folio.opening_unit_balance

        for tx in folio.transactions:
            if tx.is_administrative:
                continue
            if running is not None and tx.units is not None:
                running += tx.units
            if tx.unit_balance is not None:
                if running is not None and abs(running - tx.unit_balance) > self.units_tolerance:
                    result.add_warning(
                        f"Unit balance {tx.unit_balance} on {tx.date} in {label} "
                        f"differs from running balance {running}"
                    )
                running = tx.unit_balance

        closing = folio.closing_unit_balance
        if running is not None and closing is not None:
            if abs(running - closing) > self.units_tolerance:
                result.add_warning(
                    f"Closing unit balance {closing} in {label} differs from "
                    f"computed balance {running}"
                )

        return result


def validate_extraction(result: ExtractionResult) -> ValidationResult:
    """
    Convenience function to validate an extraction result.

    Args:
        result: Extraction result to validate.

    Returns:
        ValidationResult.
    """
    return CASValidator().validate(result)
