"""
Report generation for extracted CAS data.

Three output formats are supported:
- json: metadata, portfolio summary and the funds/folios/transactions tree
- text: the linearised statement text, or a filtered transaction listing
- excel: an .xlsx workbook with Portfolio, Transactions and Holdings sheets
"""

import json
import logging
from datetime import datetime
from decimal import Decimal
from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from cas_extractor.filters import FlatTransaction, flatten_transactions
from cas_extractor.models import ExtractionResult, PortfolioSummary

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("excel", "json", "text")
SHEET_PORTFOLIO = "portfolio"
SHEET_TRANSACTIONS = "transactions"
SHEET_HOLDINGS = "holdings"
ALL_SHEETS = (SHEET_PORTFOLIO, SHEET_TRANSACTIONS, SHEET_HOLDINGS)

CONTENT_TYPES = {
    "excel": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "json": "application/json",
    "text": "text/plain",
}
FILE_EXTENSIONS = {"excel": "xlsx", "json": "json", "text": "txt"}

MAX_COLUMN_WIDTH = 60


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal types."""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return str(obj)
        return super().default(obj)


def normalize_sheets(sheets: Optional[Sequence[str]]) -> List[str]:
    """
    Validate a sheet selection, keeping workbook order.

    Args:
        sheets: Requested sheet names; None or empty selects all sheets.

    Returns:
        Selected sheet names in workbook order.
    """
    if not sheets:
        return list(ALL_SHEETS)
    requested = {s.strip().lower() for s in sheets}
    unknown = requested - set(ALL_SHEETS)
    if unknown:
        logger.warning(f"Ignoring unknown sheets: {sorted(unknown)}")
    selected = [s for s in ALL_SHEETS if s in requested]
    return selected or list(ALL_SHEETS)


def render_json(
    portfolio: Optional[PortfolioSummary],
    result: ExtractionResult,
    source_file: Optional[str] = None,
    summary: Optional[Dict[str, int]] = None,
    raw_text: Optional[str] = None,
    filter_metadata: Optional[Dict[str, Any]] = None,
    transactions: Optional[List[FlatTransaction]] = None,
) -> str:
    """
    Render extraction data as a JSON document.

    Args:
        portfolio: Portfolio summary, if available.
        result: Funds/folios/transactions tree.
        source_file: Name of the source PDF.
        summary: Counts block; computed from the data when omitted.
        raw_text: Statement text to embed, if any.
        filter_metadata: Applied filter description, for filtered exports.
        transactions: Flattened transactions to include, if any.

    Returns:
        Indented JSON text.
    """
    if summary is None:
        summary = {
            "totalFunds": portfolio.fund_count if portfolio else len(result.funds),
            "totalFolios": result.total_folios,
            "totalTransactions": result.total_transactions,
        }

    metadata: Dict[str, Any] = {
        "extractedAt": datetime.now().isoformat(timespec="seconds"),
        "sourceFile": source_file,
        "summary": summary,
    }
    if filter_metadata is not None:
        metadata["filterMetadata"] = filter_metadata

    data: Dict[str, Any] = {
        "metadata": metadata,
        "portfolioData": portfolio.to_dict() if portfolio else None,
        "transactionData": result.to_dict(),
    }
    if transactions is not None:
        data["transactions"] = [row.to_dict() for row in transactions]
    if raw_text is not None:
        data["rawText"] = raw_text

    return json.dumps(data, indent=2, ensure_ascii=False, cls=DecimalEncoder)


def format_filter_summary(metadata: Dict[str, Any]) -> str:
    """
    Format filter metadata as a plain-text block.

    Args:
        metadata: Dictionary with appliedAt, originalCount, filteredCount
            and filters.

    Returns:
        Multi-line summary block.
    """
    lines = ["=== FILTER SUMMARY ==="]
    if metadata.get("appliedAt"):
        lines.append(f"Applied At: {metadata['appliedAt']}")
    lines.append(
        f"Results: {metadata.get('filteredCount', 0)} of "
        f"{metadata.get('originalCount', 0)} transactions"
    )
    lines.append("")

    filters = metadata.get("filters") or {}
    if not filters:
        lines.append("No filters applied")
    else:
        lines.append("Active Filters:")
        if filters.get("dateRange"):
            lines.append(f"  - Date Range: {filters['dateRange']}")
        if filters.get("transactionTypes"):
            lines.append(f"  - Transaction Types: {', '.join(filters['transactionTypes'])}")
        if filters.get("searchQuery"):
            lines.append(f'  - Search: "{filters["searchQuery"]}"')
        if filters.get("folioNumber"):
            lines.append(f"  - Folio Number: {filters['folioNumber']}")
        if filters.get("amountRange"):
            lines.append(f"  - Amount Range: {filters['amountRange']}")

    lines.append("======================")
    return "\n".join(lines)


def _or_na(value: Any) -> str:
    return "N/A" if value is None else str(value)


def render_text(
    raw_text: Optional[str] = None,
    transactions: Optional[List[FlatTransaction]] = None,
    filter_metadata: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Render a text report.

    Without transactions this is the linearised statement text. With
    transactions it is a numbered listing, preceded by the filter summary
    when filter metadata is given.

    Args:
        raw_text: Statement text.
        transactions: Flattened transactions to list.
        filter_metadata: Applied filter description.

    Returns:
        Report text.
    """
    if transactions is None:
        return raw_text or ""

    parts = []
    if filter_metadata:
        parts.append(format_filter_summary(filter_metadata))
        parts.append("\n\n")

    parts.append("=== FILTERED TRANSACTIONS ===\n\n")
    for index, row in enumerate(transactions, start=1):
        tx = row.transaction
        amount = f"INR {tx.amount:,}" if tx.amount is not None else "N/A"
        parts.append(
            f"Transaction {index}:\n"
            f"  Date: {_or_na(tx.date)}\n"
            f"  Scheme: {row.scheme_name}\n"
            f"  Folio: {row.folio_number}\n"
            f"  Type: {tx.transaction_type}\n"
            f"  Amount: {amount}\n"
            f"  NAV: {_or_na(tx.nav)}\n"
            f"  Units: {_or_na(tx.units)}\n"
            f"  Balance: {_or_na(tx.unit_balance)}\n"
            "\n"
        )
    return "".join(parts)


def _write_table(ws, headers: List[str], rows: List[List[Any]]) -> None:
    """Write a header row in bold followed by data rows, then size columns."""
    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in rows:
        ws.append(row)

    for idx, header in enumerate(headers, start=1):
        width = len(str(header))
        for row in rows:
            value = row[idx - 1] if idx - 1 < len(row) else None
            if value is not None:
                width = max(width, len(str(value)))
        ws.column_dimensions[get_column_letter(idx)].width = min(width + 2, MAX_COLUMN_WIDTH)


def _excel_number(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def _portfolio_rows(portfolio: Optional[PortfolioSummary]) -> List[List[Any]]:
    if portfolio is None:
        return []
    rows = [
        [a.amc_name, _excel_number(a.cost_value), _excel_number(a.market_value)]
        for a in portfolio.amc_summaries
    ]
    if portfolio.total_cost_value is not None or portfolio.total_market_value is not None:
        rows.append([
            "Total",
            _excel_number(portfolio.total_cost_value),
            _excel_number(portfolio.total_market_value),
        ])
    return rows


def _transaction_rows(result: ExtractionResult) -> List[List[Any]]:
    rows = []
    for row in flatten_transactions(result):
        tx = row.transaction
        rows.append([
            row.scheme_name,
            row.isin,
            row.folio_number,
            tx.date,
            tx.transaction_type,
            "Administrative" if tx.is_administrative else "Financial",
            tx.description,
            _excel_number(tx.amount),
            _excel_number(tx.nav),
            _excel_number(tx.units),
            _excel_number(tx.unit_balance),
        ])
    return rows


def _holding_rows(result: ExtractionResult) -> List[List[Any]]:
    rows = []
    for fund in result.funds:
        for folio in fund.folios:
            rows.append([
                fund.scheme_name,
                fund.isin,
                folio.folio_number,
                folio.advisor,
                folio.registrar,
                _excel_number(folio.opening_unit_balance),
                _excel_number(folio.closing_unit_balance),
                _excel_number(folio.nav_on_date),
                folio.nav_date,
                _excel_number(folio.total_cost_value),
                _excel_number(folio.market_value),
            ])
    return rows


def render_excel(
    portfolio: Optional[PortfolioSummary],
    result: ExtractionResult,
    sheets: Optional[Sequence[str]] = None,
    filter_metadata: Optional[Dict[str, Any]] = None,
) -> bytes:
    """
    Render an Excel workbook.

    Args:
        portfolio: Portfolio summary for the Portfolio sheet.
        result: Funds/folios/transactions tree.
        sheets: Sheets to include (portfolio, transactions, holdings).
        filter_metadata: When given, a "Filter Summary" sheet is added first.

    Returns:
        The .xlsx file content.
    """
    selected = normalize_sheets(sheets)
    wb = Workbook()
    wb.remove(wb.active)

    if filter_metadata:
        ws = wb.create_sheet("Filter Summary")
        for line in format_filter_summary(filter_metadata).split("\n"):
            ws.append([line])
        ws["A1"].font = Font(bold=True)
        ws.column_dimensions["A"].width = MAX_COLUMN_WIDTH

    if SHEET_PORTFOLIO in selected:
        ws = wb.create_sheet("Portfolio")
        _write_table(ws, ["AMC", "Cost Value", "Market Value"], _portfolio_rows(portfolio))

    if SHEET_TRANSACTIONS in selected:
        ws = wb.create_sheet("Transactions")
        _write_table(
            ws,
            ["Scheme", "ISIN", "Folio", "Date", "Type", "Category", "Description",
             "Amount", "NAV", "Units", "Unit Balance"],
            _transaction_rows(result),
        )

    if SHEET_HOLDINGS in selected:
        ws = wb.create_sheet("Holdings")
        _write_table(
            ws,
            ["Scheme", "ISIN", "Folio", "Advisor", "Registrar", "Opening Units",
             "Closing Units", "NAV", "NAV Date", "Cost Value", "Market Value"],
            _holding_rows(result),
        )

    buffer = BytesIO()
    wb.save(buffer)
    logger.info(f"Generated Excel report with sheets: {wb.sheetnames}")
    return buffer.getvalue()


def output_filename(source_file: Optional[str], output_format: str, filtered: bool = False) -> str:
    """
    Build a download file name such as "statement_CAS_Report_20250719_101500.xlsx".

    Args:
        source_file: Original upload name.
        output_format: One of excel, json, text.
        filtered: Whether the export is a filtered one.

    Returns:
        File name with timestamp and extension.
    """
    stem = (source_file or "cas").rsplit(".", 1)[0] or "cas"
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    if filtered:
        label = "Filtered"
    else:
        label = {"excel": "CAS_Report", "json": "CAS_Data", "text": "CAS_Extracted"}[output_format]
    return f"{stem}_{label}_{timestamp}.{FILE_EXTENSIONS[output_format]}"
