"""Tests for the extraction HTTP API."""

import json
from io import BytesIO
from unittest.mock import patch

import pytest
from openpyxl import load_workbook

from cas_extractor.main import parse_cas_text
from cas_extractor.models import ExtractionError
from cas_extractor.webapp.routes import create_app

PATCH_TARGET = "cas_extractor.webapp.routes.extraction.parse_cas_pdf"


@pytest.fixture
def client():
    app = create_app({"TESTING": True})
    return app.test_client()


@pytest.fixture
def extraction(sample_cas_text):
    return parse_cas_text(sample_cas_text)


def _upload(**fields):
    data = {"pdf": (BytesIO(b"%PDF-1.4 dummy"), "statement.pdf")}
    data.update(fields)
    return data


class TestStatus:
    """Tests for the status endpoint."""

    def test_ready(self, client):
        """Test the service reports ready."""
        response = client.get("/api/status")

        assert response.status_code == 200
        assert response.get_json()["status"] == "ready"


class TestConfig:
    """Tests for application configuration."""

    def test_default_upload_limit(self):
        """Test the default upload size limit."""
        assert create_app().config["MAX_CONTENT_LENGTH"] == 16 * 1024 * 1024

    def test_upload_limit_from_environment(self, monkeypatch):
        """Test the upload limit can be overridden."""
        monkeypatch.setenv("CAS_EXTRACTOR_MAX_UPLOAD_MB", "4")
        assert create_app().config["MAX_CONTENT_LENGTH"] == 4 * 1024 * 1024


class TestExtractCasData:
    """Tests for JSON extraction."""

    def test_missing_file(self, client):
        """Test requests without a file are rejected."""
        response = client.post("/api/extract-cas-data", data={}, content_type="multipart/form-data")

        assert response.status_code == 400
        assert response.get_json()["error"] == "No file uploaded"

    def test_non_pdf_rejected(self, client):
        """Test non-PDF uploads are rejected."""
        response = client.post(
            "/api/extract-cas-data",
            data={"pdf": (BytesIO(b"hello"), "notes.txt")},
            content_type="multipart/form-data",
        )
        assert response.status_code == 400

    def test_success(self, client, extraction):
        """Test the response carries data and flattened transactions."""
        with patch(PATCH_TARGET, return_value=extraction) as mock_parse:
            response = client.post(
                "/api/extract-cas-data",
                data=_upload(password="ABCDE1234F"),
                content_type="multipart/form-data",
            )

        assert response.status_code == 200
        body = response.get_json()
        assert body["success"] is True
        assert body["metadata"]["sourceFile"] == "statement.pdf"
        assert body["metadata"]["summary"]["totalTransactions"] == 5
        assert body["transactions"][0]["schemeName"] == "ABSL Small Cap Fund - Growth"
        assert body["transactions"][0]["folioNumber"] == "1234567/89"
        assert body["portfolioData"]["fundCount"] == 2
        assert mock_parse.call_args.kwargs["password"] == "ABCDE1234F"

    def test_extraction_error(self, client):
        """Test document errors are reported as bad requests."""
        with patch(PATCH_TARGET, side_effect=ExtractionError("No portfolio data found.")):
            response = client.post(
                "/api/extract-cas-data", data=_upload(), content_type="multipart/form-data"
            )

        assert response.status_code == 400
        assert response.get_json()["message"] == "No portfolio data found."


class TestExtractCas:
    """Tests for file download extraction."""

    def test_excel_download(self, client, extraction):
        """Test the default Excel download with selected sheets."""
        with patch(PATCH_TARGET, return_value=extraction):
            response = client.post(
                "/api/extract-cas",
                data=_upload(sheets=json.dumps(["transactions"])),
                content_type="multipart/form-data",
            )

        assert response.status_code == 200
        assert "attachment" in response.headers["Content-Disposition"]
        assert ".xlsx" in response.headers["Content-Disposition"]
        assert load_workbook(BytesIO(response.data)).sheetnames == ["Transactions"]

    def test_text_download(self, client, extraction, sample_cas_text):
        """Test the text download is the statement text."""
        with patch(PATCH_TARGET, return_value=extraction):
            response = client.post(
                "/api/extract-cas",
                data=_upload(outputFormat="text"),
                content_type="multipart/form-data",
            )

        assert response.status_code == 200
        assert response.mimetype == "text/plain"
        assert response.data.decode("utf-8") == sample_cas_text

    def test_unknown_format(self, client):
        """Test unsupported formats are rejected."""
        response = client.post(
            "/api/extract-cas",
            data=_upload(outputFormat="pdf"),
            content_type="multipart/form-data",
        )
        assert response.status_code == 400


class TestExportFiltered:
    """Tests for filtered exports."""

    def _payload(self, extraction, **extra):
        payload = {
            "portfolioData": extraction.portfolio.to_dict(),
            "transactionData": extraction.result.to_dict(),
            "sourceFileName": "statement.pdf",
        }
        payload.update(extra)
        return payload

    def test_filtered_transactions_as_text(self, client, extraction):
        """Test client-filtered rows with filter metadata."""
        from cas_extractor.filters import flatten_transactions

        rows = [r.to_dict() for r in flatten_transactions(extraction.result)][:2]
        metadata = {"originalCount": 5, "filteredCount": 2, "filters": {"searchQuery": "absl"}}

        response = client.post("/api/export-filtered", json=self._payload(
            extraction,
            filteredTransactions=rows,
            filterMetadata=metadata,
            outputFormat="text",
        ))

        assert response.status_code == 200
        text = response.data.decode("utf-8")
        assert text.startswith("=== FILTER SUMMARY ===")
        assert "Transaction 2:" in text
        assert "Transaction 3:" not in text

    def test_server_side_filters_as_json(self, client, extraction):
        """Test criteria applied to the posted transaction data."""
        response = client.post("/api/export-filtered", json=self._payload(
            extraction,
            filters={"categories": ["administrative"]},
            outputFormat="json",
        ))

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data["metadata"]["summary"]["totalTransactions"] == 2
        assert data["metadata"]["filterMetadata"]["filters"] == {
            "transactionTypes": ["Administrative"],
        }
        folio = data["transactionData"]["funds"][0]["folios"][0]
        assert folio["closingUnitBalance"] == "10740.804"

    def test_excel_with_filter_summary(self, client, extraction):
        """Test the filtered workbook starts with the filter summary."""
        response = client.post("/api/export-filtered", json=self._payload(
            extraction,
            filters={"searchQuery": "hdfc"},
            selectedSheets=["transactions"],
        ))

        assert response.status_code == 200
        wb = load_workbook(BytesIO(response.data))
        assert wb.sheetnames == ["Filter Summary", "Transactions"]
        assert wb["Transactions"].max_row == 4

    def test_no_matches(self, client, extraction):
        """Test an empty result is rejected."""
        response = client.post("/api/export-filtered", json=self._payload(
            extraction, filters={"searchQuery": "nothing matches this"},
        ))
        assert response.status_code == 400

    def test_malformed_rows_rejected(self, client, extraction):
        """Test filtered rows that are not objects are bad requests."""
        response = client.post("/api/export-filtered", json=self._payload(
            extraction, filteredTransactions=["not a row"],
        ))

        assert response.status_code == 400
        assert response.get_json()["error"] == "Invalid request"

    def test_malformed_criteria_rejected(self, client, extraction):
        """Test criteria of the wrong shape are bad requests."""
        response = client.post("/api/export-filtered", json=self._payload(
            extraction, filters={"categories": [1], "searchQuery": 5},
        ))

        assert response.status_code == 400
        assert response.get_json()["error"] == "Invalid request"

    def test_missing_body(self, client):
        """Test requests without a JSON body are rejected."""
        response = client.post("/api/export-filtered")
        assert response.status_code == 400
