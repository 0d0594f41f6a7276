"""
Statement text reader.

CAMS and KFintech mail the CAS as a PDF locked with the investor's PAN.
pdfplumber turns every page into plain text rows; no column geometry is
kept, the parsers downstream only see whitespace-separated tokens.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

import pdfplumber

from cas_extractor.models import ExtractionError

logger = logging.getLogger(__name__)

# Horizontal/vertical gap (in points) pdfplumber may bridge inside a word.
CHAR_TOLERANCE = 2


@dataclass
class PageContent:
    """
    Text rows of one statement page.

    Attributes:
        page_number: Position of the page, counting from 1
        lines: Rows with runs of whitespace squeezed, blank rows dropped
        raw_text: pdfplumber output for the page, untouched
    """
    page_number: int
    lines: List[str] = field(default_factory=list)
    raw_text: str = ""


@dataclass
class ExtractedDocument:
    """
    Text rows of a whole statement.

    Attributes:
        pages: One PageContent per PDF page
        total_pages: Page count reported by the PDF
        source_path: File the text was read from
    """
    pages: List[PageContent] = field(default_factory=list)
    total_pages: int = 0
    source_path: Optional[str] = None

    @property
    def blank_pages(self) -> List[int]:
        return [page.page_number for page in self.pages if not page.lines]

    def get_all_lines(self) -> List[str]:
        return [line for page in self.pages for line in page.lines]

    def get_all_text(self) -> str:
        """Statement rows joined with newlines, ready for the text pipeline."""
        return "\n".join(self.get_all_lines())


class PDFExtractor:
    """Reads a CAS PDF into an ExtractedDocument."""

    def __init__(self, password: Optional[str] = None):
        """
        Args:
            password: Statement password. CAS files use the PAN; None opens
                unprotected files only.
        """
        self.password = password

    def extract(self, pdf_path: Union[str, Path]) -> ExtractedDocument:
        """
        Read every page of a statement.

        Raises:
            FileNotFoundError: No file at pdf_path.
            ValueError: The path does not end in .pdf.
            ExtractionError: pdfplumber could not open or decode the file,
                including a wrong or missing password.
        """
        pdf_path = self._checked_path(pdf_path)
        document = ExtractedDocument(source_path=str(pdf_path))

        logger.info(f"Reading statement {pdf_path.name}")
        try:
            with pdfplumber.open(pdf_path, password=self.password or "") as pdf:
                document.total_pages = len(pdf.pages)
                document.pages = [
                    self._extract_page(page, number)
                    for number, page in enumerate(pdf.pages, start=1)
                ]
        except Exception as e:
            logger.error(f"Could not read {pdf_path.name}: {e}")
            raise ExtractionError(f"Failed to read PDF: {e}") from e

        if document.blank_pages:
            logger.warning(f"No text on pages {document.blank_pages} of {pdf_path.name}")
        logger.info(
            f"Read {len(document.get_all_lines())} rows from {document.total_pages} pages"
        )
        return document

    @staticmethod
    def _checked_path(pdf_path: Union[str, Path]) -> Path:
        path = Path(pdf_path)
        if not path.exists():
            raise FileNotFoundError(f"PDF file not found: {path}")
        if path.suffix.lower() != ".pdf":
            raise ValueError(f"File is not a PDF: {path}")
        return path

    def _extract_page(self, page, page_number: int) -> PageContent:
        raw_text = page.extract_text(x_tolerance=CHAR_TOLERANCE, y_tolerance=CHAR_TOLERANCE) or ""
        lines = self._clean_lines(raw_text.splitlines())
        logger.debug(f"Page {page_number}: {len(lines)} rows")
        return PageContent(page_number=page_number, lines=lines, raw_text=raw_text)

    @staticmethod
    def _clean_lines(lines: List[str]) -> List[str]:
        """Squeeze whitespace inside each row and drop rows left empty."""
        squeezed = (" ".join(line.split()) for line in lines)
        return [line for line in squeezed if line]


def extract_text_from_pdf(
    pdf_path: Union[str, Path],
    password: Optional[str] = None,
) -> ExtractedDocument:
    """Shortcut for PDFExtractor(password).extract(pdf_path)."""
    return PDFExtractor(password=password).extract(pdf_path)
