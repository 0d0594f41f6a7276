"""Tests for data models."""

from datetime import date
from decimal import Decimal

import pytest

from cas_extractor.models import (
    CASExtraction,
    ExtractionResult,
    Folio,
    Fund,
    PortfolioSummary,
    Transaction,
    TransactionType,
    ValidationResult,
)


class TestTransactionType:
    """Tests for the financial category enum."""

    def test_labels(self):
        """Test canonical labels."""
        assert TransactionType.labels() == [
            "Purchase",
            "Redemption",
            "Systematic Investment",
            "Switch-In",
            "Switch-Out",
            "Dividend",
            "Unclassified",
        ]

    def test_from_label(self):
        """Test lookup by label."""
        assert TransactionType.from_label("Switch-In") == TransactionType.SWITCH_IN
        assert TransactionType.from_label("Stamp Duty") is None


class TestTransaction:
    """Tests for Transaction."""

    def test_category(self):
        """Test administrative events have no financial category."""
        purchase = Transaction(date=date(2024, 1, 1), transaction_type="Purchase", description="x")
        stamp = Transaction(
            date=date(2024, 1, 1),
            transaction_type="Stamp Duty",
            description="*** Stamp Duty ***",
            is_administrative=True,
        )

        assert purchase.category == TransactionType.PURCHASE
        assert stamp.category is None

    def test_immutable(self):
        """Test transactions cannot be modified."""
        tx = Transaction(date=date(2024, 1, 1), transaction_type="Purchase", description="x")
        with pytest.raises(AttributeError):
            tx.amount = Decimal("1")

    def test_to_dict(self):
        """Test serialization keeps decimal precision as strings."""
        tx = Transaction(
            date=date(2023, 9, 27),
            transaction_type="Switch-Out",
            description="*Switch-Out",
            amount=Decimal("-50000.00"),
            units=Decimal("-2130.664"),
        )
        data = tx.to_dict()

        assert data["date"] == "2023-09-27"
        assert data["amount"] == "-50000.00"
        assert data["units"] == "-2130.664"
        assert data["nav"] is None
        assert data["isAdministrative"] is False
        assert Transaction.from_dict(data) == tx

    def test_from_dict_rejects_bad_decimal(self):
        """Test malformed numbers are reported."""
        with pytest.raises(ValueError):
            Transaction.from_dict({"date": "2024-01-01", "amount": "ten"})


class TestFolioAndFund:
    """Tests for folio and fund normalization."""

    def test_folio_number_spaces_removed(self):
        """Test folio numbers are stored without spaces."""
        assert Folio(folio_number="1234567 / 89").folio_number == "1234567/89"

    def test_fund_normalization(self):
        """Test scheme names and ISINs are normalized."""
        fund = Fund(scheme_name="  HDFC   Top 100  ", isin=" inf179k01bb8 ")

        assert fund.scheme_name == "HDFC Top 100"
        assert fund.isin == "INF179K01BB8"


class TestExtractionResult:
    """Tests for ExtractionResult."""

    def test_distinct_folios_and_totals(self):
        """Test shared folios are counted once."""
        tx = Transaction(date=date(2024, 1, 1), transaction_type="Purchase", description="x")
        result = ExtractionResult(funds=[
            Fund("A", "INF179K01BB8", folios=[Folio("111", transactions=[tx, tx])]),
            Fund("B", "INF179K01CC6", folios=[Folio("111", transactions=[tx]), Folio("222")]),
        ])

        assert result.distinct_folio_numbers() == ["111", "222"]
        assert result.total_transactions == 3

    def test_dict_round_trip(self, sample_cas_text):
        """Test a result survives its JSON form."""
        from cas_extractor.main import parse_cas_text

        result = parse_cas_text(sample_cas_text).result
        assert ExtractionResult.from_dict(result.to_dict()) == result


class TestPortfolioSummary:
    """Tests for PortfolioSummary."""

    def test_dict_round_trip(self, sample_cas_text):
        """Test a summary survives its JSON form."""
        from cas_extractor.main import parse_cas_text

        summary = parse_cas_text(sample_cas_text).portfolio
        data = summary.to_dict()

        assert data["statementPeriod"] == {"from": "2023-04-01", "to": "2024-03-31"}
        assert PortfolioSummary.from_dict(data) == summary


class TestValidationResult:
    """Tests for ValidationResult."""

    def test_merge(self):
        """Test merging keeps errors and validity."""
        first = ValidationResult()
        second = ValidationResult()
        second.add_error("broken")
        second.add_warning("odd")

        first.merge(second)

        assert not first.is_valid
        assert first.errors == ["broken"]
        assert first.warnings == ["odd"]


class TestCASExtraction:
    """Tests for CASExtraction."""

    def test_summary(self):
        """Test summary counts."""
        extraction = CASExtraction(
            portfolio=PortfolioSummary(),
            result=ExtractionResult(total_folios=4),
        )
        assert extraction.summary() == {
            "totalFunds": 0,
            "totalFolios": 4,
            "totalTransactions": 0,
        }
