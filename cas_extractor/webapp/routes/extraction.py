import json
import logging
import os
import tempfile
from datetime import datetime
from io import BytesIO

from flask import Blueprint, jsonify, request, send_file
from werkzeug.utils import secure_filename

from cas_extractor.exporters import (
    CONTENT_TYPES,
    OUTPUT_FORMATS,
    normalize_sheets,
    output_filename,
    render_excel,
    render_json,
    render_text,
)
from cas_extractor.filters import (
    FlatTransaction,
    TransactionFilter,
    apply_filters,
    build_filter_metadata,
    flatten_transactions,
    reconstruct_transaction_data,
)
from cas_extractor.main import parse_cas_pdf, render_output
from cas_extractor.models import ExtractionError, ExtractionResult, PortfolioSummary

logger = logging.getLogger(__name__)

extraction_bp = Blueprint('extraction', __name__, url_prefix='/api')


def _output_format(value):
    value = (value or 'excel').lower()
    if value not in OUTPUT_FORMATS:
        raise ValueError(f'Unsupported output format: {value}')
    return value


def _parse_sheets(value):
    """Sheets arrive as a JSON list in a form field, or already as a list."""
    if not value:
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            value = [s for s in value.split(',') if s.strip()]
    if not isinstance(value, list):
        raise ValueError('sheets must be a list')
    return normalize_sheets(value)


def _extract_upload():
    """
    Save the uploaded PDF to a temporary file and run the extraction.

    Returns:
        Tuple of (extraction, original filename).
    """
    file = request.files['pdf']
    password = request.form.get('password', '')

    with tempfile.NamedTemporaryFile(suffix='.pdf', delete=False) as tmp:
        file.save(tmp.name)
        tmp_path = tmp.name

    try:
        extraction = parse_cas_pdf(tmp_path, password=password if password else None)
    finally:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)

    extraction.source_file = secure_filename(file.filename) or 'statement.pdf'
    return extraction, file.filename


def _check_upload():
    if 'pdf' not in request.files:
        return jsonify({'error': 'No file uploaded', 'message': 'Please upload a CAS PDF file'}), 400

    file = request.files['pdf']
    if file.filename == '':
        return jsonify({'error': 'No file selected', 'message': 'Please upload a CAS PDF file'}), 400

    if not file.filename.lower().endswith('.pdf'):
        return jsonify({'error': 'Invalid file type', 'message': 'File must be a PDF'}), 400

    return None


def _download(content, fmt, filename):
    return send_file(
        BytesIO(content),
        mimetype=CONTENT_TYPES[fmt],
        as_attachment=True,
        download_name=filename,
    )


@extraction_bp.route('/extract-cas', methods=['POST'])
def api_extract_cas():
    """
    Extract an uploaded CAS PDF and return the report as a download.

    Form fields: pdf (file), password, outputFormat (excel/json/text),
    sheets (JSON list of portfolio/transactions/holdings).
    """
    error = _check_upload()
    if error:
        return error

    try:
        fmt = _output_format(request.form.get('outputFormat'))
        sheets = _parse_sheets(request.form.get('sheets'))
    except ValueError as e:
        return jsonify({'error': 'Invalid request', 'message': str(e)}), 400

    try:
        extraction, original_name = _extract_upload()
        content = render_output(extraction, fmt, sheets)
    except ExtractionError as e:
        logger.warning(f"Extraction failed: {e}")
        return jsonify({'error': 'Extraction failed', 'message': str(e)}), 400
    except Exception as e:
        logger.exception("Unexpected error during extraction")
        return jsonify({'error': 'Extraction failed', 'message': str(e)}), 500

    logger.info(f"Extracted {original_name} as {fmt}")
    return _download(content, fmt, output_filename(extraction.source_file, fmt))


@extraction_bp.route('/extract-cas-data', methods=['POST'])
def api_extract_cas_data():
    """
    Extract an uploaded CAS PDF and return the data as JSON.

    The response carries the funds/folios tree plus a flattened
    transaction list for client-side filtering.
    """
    error = _check_upload()
    if error:
        return error

    try:
        extraction, _ = _extract_upload()
    except ExtractionError as e:
        logger.warning(f"Extraction failed: {e}")
        return jsonify({'success': False, 'error': 'Extraction failed', 'message': str(e)}), 400
    except Exception as e:
        logger.exception("Unexpected error during extraction")
        return jsonify({'success': False, 'error': 'Extraction failed', 'message': str(e)}), 500

    rows = flatten_transactions(extraction.result)
    return jsonify({
        'success': True,
        'metadata': {
            'extractedAt': datetime.now().isoformat(timespec='seconds'),
            'sourceFile': extraction.source_file,
            'summary': extraction.summary(),
        },
        'portfolioData': extraction.portfolio.to_dict(),
        'transactionData': extraction.result.to_dict(),
        'validation': extraction.validation.to_dict(),
        'transactions': [row.to_dict() for row in rows],
    })


@extraction_bp.route('/export-filtered', methods=['POST'])
def api_export_filtered():
    """
    Export a filtered subset of previously extracted data.

    JSON body: filteredTransactions (flattened rows) or filters (criteria
    applied to transactionData), portfolioData, transactionData,
    filterMetadata, outputFormat, selectedSheets, sourceFileName.
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({'error': 'Invalid request', 'message': 'JSON body required'}), 400

    try:
        fmt = _output_format(data.get('outputFormat'))
        sheets = _parse_sheets(data.get('selectedSheets'))

        original = None
        if data.get('transactionData'):
            original = ExtractionResult.from_dict(data['transactionData'])
        portfolio = None
        if data.get('portfolioData'):
            portfolio = PortfolioSummary.from_dict(data['portfolioData'])

        filter_metadata = data.get('filterMetadata')
        if data.get('filteredTransactions') is not None:
            rows = [FlatTransaction.from_dict(t) for t in data['filteredTransactions']]
        elif original is not None:
            all_rows = flatten_transactions(original)
            criteria = TransactionFilter.from_dict(data.get('filters'))
            rows = apply_filters(all_rows, criteria)
            if filter_metadata is None:
                filter_metadata = build_filter_metadata(criteria, len(all_rows), len(rows))
        else:
            return jsonify({
                'error': 'Invalid request',
                'message': 'filteredTransactions or transactionData is required',
            }), 400
    except (ValueError, TypeError, KeyError, AttributeError) as e:
        return jsonify({'error': 'Invalid request', 'message': str(e)}), 400

    if not rows:
        return jsonify({'error': 'No transactions', 'message': 'No transactions match the filters'}), 400

    filtered = reconstruct_transaction_data(rows, original)
    if portfolio is not None:
        filtered.fund_count = portfolio.fund_count

    source_file = secure_filename(data.get('sourceFileName') or '') or 'cas'

    if fmt == 'json':
        summary = {
            'totalFunds': portfolio.fund_count if portfolio else len(filtered.funds),
            'totalFolios': filtered.total_folios,
            'totalTransactions': len(rows),
        }
        content = render_json(
            portfolio,
            filtered,
            source_file=data.get('sourceFileName'),
            summary=summary,
            filter_metadata=filter_metadata,
            transactions=rows,
        ).encode('utf-8')
    elif fmt == 'text':
        content = render_text(transactions=rows, filter_metadata=filter_metadata).encode('utf-8')
    else:
        content = render_excel(portfolio, filtered, sheets=sheets, filter_metadata=filter_metadata)

    logger.info(f"Exported {len(rows)} filtered transactions as {fmt}")
    return _download(content, fmt, output_filename(source_file, fmt, filtered=True))


@extraction_bp.route('/status', methods=['GET'])
def api_status():
    """Report service readiness."""
    return jsonify({
        'status': 'ready',
        'message': 'CAS extraction service is ready',
        'timestamp': datetime.now().isoformat(timespec='seconds'),
    })
