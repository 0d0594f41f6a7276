"""Tests for the fund transaction aggregator."""

from datetime import date
from decimal import Decimal

import pytest

from cas_extractor.aggregator import (
    FundTransactionAggregator,
    extract_fund_transactions,
    mask_pan,
)
from cas_extractor.models import ExtractionError
from cas_extractor.portfolio_parser import parse_portfolio_summary


def _aggregate(text):
    return extract_fund_transactions(text, parse_portfolio_summary(text))


class TestMaskPan:
    """Tests for PAN masking."""

    def test_mask_keeps_last_four(self):
        """Test only the last four characters stay visible."""
        assert mask_pan("ABCDE1234F") == "******234F"

    def test_already_masked(self):
        """Test masked PANs pass through."""
        assert mask_pan("******234F") == "******234F"

    def test_missing(self):
        """Test missing PANs stay None."""
        assert mask_pan(None) is None
        assert mask_pan("") is None


class TestSegment:
    """Tests for folio segmentation."""

    def test_segments_follow_folio_lines(self, sample_cas_text):
        """Test each scheme header opens a segment under the last folio."""
        segments = FundTransactionAggregator().segment(sample_cas_text.splitlines())

        assert [(s.folio_number, s.isin) for s in segments] == [
            ("1234567/89", "INF209K01LS1"),
            ("9988776/55", "INF179K01UT0"),
        ]
        assert segments[0].pan == "ABCDE1234F"
        assert segments[0].lines[0] == "Opening Unit Balance: 12871.468"


class TestAggregate:
    """Tests for building the funds -> folios -> transactions tree."""

    def test_sample_statement(self, sample_cas_text):
        """Test the two-fund sample statement."""
        result = _aggregate(sample_cas_text)

        assert result.fund_count == 2
        assert result.total_folios == 2
        assert result.total_transactions == 5
        assert [f.scheme_name for f in result.funds] == [
            "ABSL Small Cap Fund - Growth",
            "HDFC Flexi Cap Fund - Direct Plan - Growth",
        ]

    def test_folio_metadata(self, sample_cas_text):
        """Test folio balances, valuation and holder details."""
        folio = _aggregate(sample_cas_text).funds[0].folios[0]

        assert folio.folio_number == "1234567/89"
        assert folio.opening_unit_balance == Decimal("12871.468")
        assert folio.closing_unit_balance == Decimal("10740.804")
        assert folio.nav_on_date == Decimal("85.1234")
        assert folio.nav_date == date(2024, 3, 31)
        assert folio.total_cost_value == Decimal("250000.00")
        assert folio.market_value == Decimal("914329.07")
        assert folio.advisor == "ARN-123456"
        assert folio.registrar == "CAMS"
        assert folio.pan == "******234F"

    def test_transactions_per_folio(self, sample_cas_text):
        """Test transactions land in their own folio."""
        result = _aggregate(sample_cas_text)
        hdfc = result.funds[1].folios[0]

        assert [t.transaction_type for t in hdfc.transactions] == [
            "Systematic Investment",
            "Stamp Duty",
            "Systematic Investment",
        ]
        assert hdfc.advisor == "DIRECT"

    def test_total_folios_counts_distinct_numbers(self):
        """Test a folio holding two schemes is counted once."""
        text = (
            "Folio No: 555 / 01 PAN: ABCDE1234F KYC: OK\n"
            "HDFC Top 100 Fund - ISIN: INF179K01BB8\n"
            "Opening Unit Balance: 0.000\n"
            "15-Jan-2024 1,000.00 10.00 100.000 100.000 Purchase\n"
            "Closing Unit Balance: 100.000\n"
            "HDFC Mid-Cap Fund - ISIN: INF179K01CC6\n"
            "Opening Unit Balance: 0.000\n"
            "15-Jan-2024 1,000.00 20.00 50.000 50.000 Purchase\n"
            "Closing Unit Balance: 50.000\n"
        )
        result = _aggregate(text)

        assert len(result.funds) == 2
        assert result.total_folios == 1
        assert result.distinct_folio_numbers() == ["555/01"]

    def test_fund_without_folio_kept_empty(self):
        """Test a scheme section with no folio line gives an empty fund."""
        text = (
            "HDFC Top 100 Fund - ISIN: INF179K01BB8\n"
            "Opening Unit Balance: 0.000\n"
            "Folio No: 777 PAN: ABCDE1234F\n"
            "HDFC Mid-Cap Fund - ISIN: INF179K01CC6\n"
            "Opening Unit Balance: 0.000\n"
            "15-Jan-2024 1,000.00 20.00 50.000 50.000 Purchase\n"
            "Closing Unit Balance: 50.000\n"
        )
        result = _aggregate(text)

        assert result.funds[0].folios == []
        assert len(result.funds[1].folios) == 1
        assert result.total_folios == 1

    def test_dormant_folio_retained(self):
        """Test a folio with no transactions in the period is kept."""
        text = (
            "Folio No: 4455667 / 12 PAN: ABCDE1234F KYC: OK\n"
            "HDFC Top 100 Fund - ISIN: INF179K01BB8\n"
            "Opening Unit Balance: 250.000\n"
            "*** No transactions during this statement period ***\n"
            "Closing Unit Balance: 250.000\n"
        )
        result = _aggregate(text)

        folio = result.funds[0].folios[0]
        assert len(result.funds[0].folios) == 1
        assert folio.folio_number == "4455667/12"
        assert folio.transactions == []
        assert folio.opening_unit_balance == Decimal("250.000")
        assert folio.closing_unit_balance == Decimal("250.000")
        assert result.total_folios == 1
        assert result.total_transactions == 0

    def test_no_folios_raises(self):
        """Test a statement without any folio is rejected."""
        text = "HDFC Top 100 Fund - ISIN: INF179K01BB8\nOpening Unit Balance: 0.000\n"

        with pytest.raises(ExtractionError, match="No transaction data found"):
            _aggregate(text)

    def test_total_transactions_is_sum_over_folios(self, sample_cas_text):
        """Test the transaction count equals the per-folio sum."""
        result = _aggregate(sample_cas_text)
        per_folio = sum(len(f.transactions) for fund in result.funds for f in fund.folios)

        assert result.total_transactions == per_folio
