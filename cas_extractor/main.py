"""
Main entry point for the CAS transaction extractor.

This module provides the CLI interface and orchestrates the extraction
process from PDF text through portfolio scraping, fund transaction
aggregation and validation to report generation.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from cas_extractor.aggregator import FundTransactionAggregator
from cas_extractor.exporters import OUTPUT_FORMATS, render_excel, render_json, render_text
from cas_extractor.extractor import PDFExtractor
from cas_extractor.models import CASExtraction, ExtractionError
from cas_extractor.portfolio_parser import PortfolioSummaryParser
from cas_extractor.validator import validate_extraction

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Statements shorter than this are empty, scanned or corrupted.
MIN_TEXT_LENGTH = 100


class CASExtractor:
    """
    Main extractor for CAMS/KFintech Consolidated Account Statements.

    This class orchestrates the complete pipeline:
    1. Extract text from PDF
    2. Parse the portfolio summary and scheme list
    3. Aggregate fund -> folio -> transaction data
    4. Validate results
    """

    def __init__(self, password: Optional[str] = None):
        """
        Initialize the extractor.

        Args:
            password: Optional password for encrypted PDFs.
        """
        self.password = password
        self.pdf_extractor = PDFExtractor(password=password)
        self.summary_parser = PortfolioSummaryParser()
        self.aggregator = FundTransactionAggregator()

    def extract(self, pdf_path: str) -> CASExtraction:
        """
        Extract a CAS PDF file.

        Args:
            pdf_path: Path to the CAS PDF file.

        Returns:
            CASExtraction with all extracted data.

        Raises:
            FileNotFoundError: If PDF file doesn't exist.
            ValueError: If the file is not a PDF.
            ExtractionError: If the PDF yields no usable data.
        """
        logger.info(f"Starting CAS extraction: {pdf_path}")

        document = self.pdf_extractor.extract(pdf_path)
        text = document.get_all_text()
        logger.info(f"Extracted {len(text)} characters from {document.total_pages} pages")

        return self.extract_from_text(text, source_file=Path(pdf_path).name)

    def extract_from_text(self, text: str, source_file: Optional[str] = None) -> CASExtraction:
        """
        Run the extraction pipeline on linearised statement text.

        Args:
            text: Statement text, one physical line per row.
            source_file: Name of the source file, for reports.

        Returns:
            CASExtraction with all extracted data.

        Raises:
            ExtractionError: If the text is too short or contains no
                portfolio or transaction data.
        """
        if not text or len(text.strip()) < MIN_TEXT_LENGTH:
            raise ExtractionError("Extracted text is too short. PDF may be empty or corrupted.")

        lines = text.splitlines()

        portfolio = self.summary_parser.parse(lines)
        if not portfolio.schemes:
            raise ExtractionError("No portfolio data found. Please ensure this is a valid CAS PDF.")

        result = self.aggregator.aggregate(lines, portfolio)

        extraction = CASExtraction(
            portfolio=portfolio,
            result=result,
            raw_text=text,
            source_file=source_file,
        )
        extraction.validation = validate_extraction(result)

        logger.info(
            f"Extraction complete: {portfolio.fund_count} funds, "
            f"{result.total_folios} folios, {result.total_transactions} transactions, "
            f"valid={extraction.validation.is_valid}"
        )
        return extraction


def parse_cas_pdf(pdf_path: str, password: Optional[str] = None) -> CASExtraction:
    """
    Extract a CAS PDF file.

    This is the main entry point for programmatic use.

    Args:
        pdf_path: Path to the CAS PDF file.
        password: Optional password for encrypted PDFs.

    Returns:
        CASExtraction with all extracted data.
    """
    return CASExtractor(password=password).extract(pdf_path)


def parse_cas_text(text: str, source_file: Optional[str] = None) -> CASExtraction:
    """
    Extract already linearised statement text.

    Args:
        text: Statement text.
        source_file: Name of the source file, for reports.

    Returns:
        CASExtraction with all extracted data.
    """
    return CASExtractor().extract_from_text(text, source_file=source_file)


def render_output(
    extraction: CASExtraction, output_format: str, sheets: Optional[List[str]] = None
) -> bytes:
    """
    Render an extraction in the requested output format.

    Args:
        extraction: Extraction to render.
        output_format: One of excel, json, text.
        sheets: Excel sheets to include.

    Returns:
        Encoded report content.
    """
    if output_format == "json":
        return render_json(
            extraction.portfolio,
            extraction.result,
            source_file=extraction.source_file,
            summary=extraction.summary(),
            raw_text=extraction.raw_text,
        ).encode("utf-8")
    if output_format == "text":
        return render_text(raw_text=extraction.raw_text).encode("utf-8")
    return render_excel(extraction.portfolio, extraction.result, sheets=sheets)


def main(argv: Optional[List[str]] = None):
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Extract mutual fund transactions from CAMS/KFintech CAS PDFs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s statement.pdf
  %(prog)s statement.pdf -f excel -o report.xlsx --sheets transactions holdings
  %(prog)s statement.pdf --password ABCDE1234F -v
        """,
    )
    parser.add_argument(
        "pdf_file",
        help="Path to the CAS PDF file",
    )
    parser.add_argument(
        "-o", "--output",
        help="Output file path (default: stdout; required for excel)",
    )
    parser.add_argument(
        "-f", "--format",
        choices=OUTPUT_FORMATS,
        default="json",
        help="Output format (default: json)",
    )
    parser.add_argument(
        "--sheets",
        nargs="+",
        choices=["portfolio", "transactions", "holdings"],
        help="Excel sheets to include (default: all)",
    )
    parser.add_argument(
        "-p", "--password",
        help="Password for encrypted PDF",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress all output except errors",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        help="Only validate, don't write a report",
    )

    args = parser.parse_args(argv)

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.ERROR)

    if args.format == "excel" and not args.output and not args.validate_only:
        parser.error("--output is required for excel format")

    try:
        extraction = parse_cas_pdf(args.pdf_file, password=args.password)

        if args.validate_only:
            validation = extraction.validation
            print(f"Validation: {'PASSED' if validation.is_valid else 'FAILED'}")
            if validation.errors:
                print("\nErrors:")
                for error in validation.errors:
                    print(f"  - {error}")
            if validation.warnings:
                print("\nWarnings:")
                for warning in validation.warnings:
                    print(f"  - {warning}")
            sys.exit(0 if validation.is_valid else 1)

        content = render_output(extraction, args.format, args.sheets)

        if args.output:
            Path(args.output).write_bytes(content)
            logger.info(f"Wrote {args.format} report to: {args.output}")
        else:
            print(content.decode("utf-8"))

        if not args.quiet:
            summary = extraction.summary()
            print(
                f"\nExtracted: {summary['totalFunds']} funds, "
                f"{summary['totalFolios']} folios, "
                f"{summary['totalTransactions']} transactions",
                file=sys.stderr,
            )
            if not extraction.validation.is_valid:
                print(
                    f"Validation errors: {len(extraction.validation.errors)}",
                    file=sys.stderr,
                )
            if extraction.validation.warnings:
                print(
                    f"Validation warnings: {len(extraction.validation.warnings)}",
                    file=sys.stderr,
                )

    except (FileNotFoundError, ExtractionError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        logger.exception("Failed to extract CAS PDF")
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
