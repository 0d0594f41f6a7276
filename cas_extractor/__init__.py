"""
CAMS/KFintech Consolidated Account Statement (CAS) transaction extractor.

Reconstructs the funds, folios and transaction history of a mutual fund
CAS from its PDF text, classifying each row as a financial transaction or
an administrative event.
"""

from cas_extractor.models import (
    CASExtraction,
    ExtractionError,
    ExtractionResult,
    Folio,
    Fund,
    PortfolioSummary,
    Transaction,
    TransactionType,
    ValidationResult,
)
from cas_extractor.main import parse_cas_pdf, parse_cas_text

__version__ = "1.0.0"
__all__ = [
    "CASExtraction",
    "ExtractionError",
    "ExtractionResult",
    "Folio",
    "Fund",
    "PortfolioSummary",
    "Transaction",
    "TransactionType",
    "ValidationResult",
    "parse_cas_pdf",
    "parse_cas_text",
]
