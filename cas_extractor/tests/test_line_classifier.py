"""Tests for the folio line classifier."""

from datetime import date
from decimal import Decimal

from cas_extractor.line_classifier import LineClassifier, LineKind


class TestLineClassifier:
    """Tests for line classification."""

    def setup_method(self):
        self.classifier = LineClassifier()

    def test_opening_balance(self):
        """Test opening balance markers carry their value."""
        line = self.classifier.classify("Opening Unit Balance: 12871.468")
        assert line.kind == LineKind.OPENING_BALANCE_MARKER
        assert line.value == Decimal("12871.468")

    def test_closing_balance_with_trailer(self):
        """Test closing markers followed by NAV and valuation text."""
        line = self.classifier.classify(
            "Closing Unit Balance: 10740.804 NAV on 18-Jul-2025: INR 85.1234"
        )
        assert line.kind == LineKind.CLOSING_BALANCE_MARKER
        assert line.value == Decimal("10740.804")

    def test_date_transaction_start(self):
        """Test dated lines expose the date and the remainder."""
        line = self.classifier.classify("27-Sep-2023   (50,000.00)  23.4671")
        assert line.kind == LineKind.DATE_TRANSACTION_START
        assert line.date == date(2023, 9, 27)
        assert line.remainder == "(50,000.00) 23.4671"

    def test_bare_date(self):
        """Test a date with nothing after it still starts a transaction."""
        line = self.classifier.classify("09-Jul-2024")
        assert line.kind == LineKind.DATE_TRANSACTION_START
        assert line.remainder == ""

    def test_date_range_is_noise(self):
        """Test statement period headers are not transactions."""
        line = self.classifier.classify("01-Apr-2014 To 19-Jul-2025")
        assert line.kind == LineKind.NOISE

    def test_invalid_date_not_a_transaction(self):
        """Test an impossible date does not start a transaction."""
        line = self.classifier.classify("31-Feb-2024 100.00")
        assert line.kind == LineKind.CONTINUATION_TEXT

    def test_administrative_marker(self):
        """Test *** framed lines are administrative markers."""
        assert self.classifier.classify("*** Stamp Duty ***").kind == LineKind.ADMINISTRATIVE_MARKER
        assert self.classifier.classify("***KYC Update***").kind == LineKind.ADMINISTRATIVE_MARKER

    def test_no_transactions_banner_is_noise(self):
        """Test the empty-period banner is boilerplate."""
        line = self.classifier.classify("*** No transactions during this statement period ***")
        assert line.kind == LineKind.NOISE

    def test_page_boilerplate(self):
        """Test page footers and column headings are noise."""
        assert self.classifier.classify("Page 3 of 10").kind == LineKind.NOISE
        assert self.classifier.classify("Date Transaction Amount Units Price Unit").kind == LineKind.NOISE
        assert self.classifier.classify("").kind == LineKind.NOISE

    def test_continuation_only_inside_folio(self):
        """Test free text is a continuation only inside a folio."""
        inside = self.classifier.classify("*Switch-Out - To Another Fund", in_folio=True)
        outside = self.classifier.classify("*Switch-Out - To Another Fund", in_folio=False)
        assert inside.kind == LineKind.CONTINUATION_TEXT
        assert outside.kind == LineKind.NOISE
