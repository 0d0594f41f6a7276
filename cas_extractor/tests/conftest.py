"""Shared fixtures for CAS extractor tests."""

import pytest

SAMPLE_CAS_TEXT = """Consolidated Account Statement
01-Apr-2023 To 31-Mar-2024
PORTFOLIO SUMMARY
Mutual Fund Cost Value Market Value
Aditya Birla Sun Life Mutual Fund 2,50,000.00 9,14,329.07
HDFC Mutual Fund 15,000.00 16,250.50
Total 2,65,000.00 9,30,579.57
Aditya Birla Sun Life Mutual Fund
Folio No: 1234567 / 89 PAN: ABCDE1234F KYC: OK PAN: OK
G357-ABSL Small Cap Fund - Growth - ISIN: INF209K01LS1(Advisor: ARN-123456) Registrar : CAMS
Opening Unit Balance: 12871.468
27-Sep-2023 (50,000.00) 23.4671 (2,130.664)
*Switch-Out - To ABSL Small Cap Fund Growth , less STT 10,740.804
27-Sep-2023 0.50
*** STT Paid ***
Closing Unit Balance: 10740.804 NAV on 31-Mar-2024: INR 85.1234 Total Cost Value: 2,50,000.00 Market Value on 31-Mar-2024: INR 9,14,329.07
HDFC Mutual Fund
Folio No: 9988776 / 55 PAN: ABCDE1234F KYC: OK PAN: OK
HDFC Flexi Cap Fund - Direct Plan - Growth - ISIN: INF179K01UT0(Advisor: DIRECT) Registrar : CAMS
Opening Unit Balance: 0.000
15-Jan-2024 10,000.00 100.00 100.000 100.000 *SYSTEMATIC INVESTMENT PLAN
15-Jan-2024 0.50
*** Stamp Duty ***
15-Feb-2024 5,000.00 105.00 47.619 147.619 *SYSTEMATIC INVESTMENT PLAN
Closing Unit Balance: 147.619 NAV on 31-Mar-2024: INR 110.0800 Total Cost Value: 15,000.00 Market Value on 31-Mar-2024: INR 16,250.50
Page 2 of 2
"""


@pytest.fixture
def sample_cas_text():
    """Linearised text of a two-fund CAMS statement."""
    return SAMPLE_CAS_TEXT
