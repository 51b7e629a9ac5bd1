"""Unit tests for PDF extraction and blueprint file storage."""

import pytest
from unittest.mock import MagicMock, patch

from google.api_core import exceptions as gcp_exceptions

from config.errors import ClearDeskError, ErrorCode, ExtractionError, NotFoundError
from services.document_extractor import DocumentExtractor
from services.storage_service import StorageService


def _mock_pdf(pages):
    pdf = MagicMock()
    pdf.pages = pages
    pdf.__enter__.return_value = pdf
    pdf.__exit__.return_value = False
    return pdf


def _mock_page(lines, width=612, height=792):
    page = MagicMock()
    page.width = width
    page.height = height
    page.extract_text_lines.return_value = lines
    return page


class TestDocumentExtractor:
    """Tests for DocumentExtractor."""

    def test_empty_document_rejected(self):
        with pytest.raises(ExtractionError) as exc_info:
            DocumentExtractor().extract(b"")

        assert exc_info.value.code == ErrorCode.EMPTY_DOCUMENT

    def test_oversized_document_rejected(self):
        with pytest.raises(ExtractionError) as exc_info:
            DocumentExtractor(max_file_size=10).extract(b"x" * 11)

        assert exc_info.value.code == ErrorCode.FILE_TOO_LARGE
        assert exc_info.value.details["size_bytes"] == 11

    def test_lines_become_positioned_tokens(self):
        page = _mock_page([
            {"text": "Project: Maple Street", "x0": 10.0, "top": 20.0, "x1": 110.0, "bottom": 32.0},
            {"text": "   ", "x0": 0, "top": 0, "x1": 1, "bottom": 1},
            {"text": "Kitchen", "x0": 200.0, "top": 300.0, "x1": 250.0, "bottom": 310.0},
        ])

        with patch("services.document_extractor.pdfplumber.open", return_value=_mock_pdf([page])):
            pages = DocumentExtractor().extract(b"%PDF-1.7 ...")

        assert len(pages) == 1
        assert pages[0].page_number == 1
        assert pages[0].width == 612.0
        tokens = pages[0].content
        assert [t.text for t in tokens] == ["Project: Maple Street", "Kitchen"]
        assert (tokens[0].x, tokens[0].y, tokens[0].width, tokens[0].height) == (10.0, 20.0, 100.0, 12.0)

    def test_pages_numbered_from_one(self):
        pages_in = [_mock_page([]), _mock_page([{"text": "Den", "x0": 1, "top": 1, "x1": 2, "bottom": 2}])]

        with patch("services.document_extractor.pdfplumber.open", return_value=_mock_pdf(pages_in)):
            pages = DocumentExtractor().extract(b"%PDF")

        assert [p.page_number for p in pages] == [1, 2]
        assert pages[0].content == []

    def test_unreadable_document_raises_extraction_error(self):
        with patch("services.document_extractor.pdfplumber.open", side_effect=ValueError("not a PDF")):
            with pytest.raises(ExtractionError) as exc_info:
                DocumentExtractor().extract(b"garbage")

        assert exc_info.value.code == ErrorCode.EXTRACTION_FAILED
        assert "not a PDF" in exc_info.value.message


class TestStorageService:
    """Tests for StorageService."""

    @pytest.mark.asyncio
    async def test_download_bytes(self):
        bucket = MagicMock()
        bucket.blob.return_value.download_as_bytes.return_value = b"%PDF"

        data = await StorageService(bucket=bucket).download_bytes("projects/p1/plan.pdf")

        assert data == b"%PDF"
        bucket.blob.assert_called_once_with("projects/p1/plan.pdf")

    @pytest.mark.asyncio
    async def test_missing_file_raises_not_found(self):
        bucket = MagicMock()
        bucket.blob.return_value.download_as_bytes.side_effect = gcp_exceptions.NotFound("no such object")

        with pytest.raises(NotFoundError) as exc_info:
            await StorageService(bucket=bucket).download_bytes("missing.pdf")

        assert exc_info.value.code == ErrorCode.FILE_NOT_FOUND

    @pytest.mark.asyncio
    async def test_other_failures_raise_storage_error(self):
        bucket = MagicMock()
        bucket.blob.return_value.download_as_bytes.side_effect = PermissionError("denied")

        with pytest.raises(ClearDeskError) as exc_info:
            await StorageService(bucket=bucket).download_bytes("plan.pdf")

        assert exc_info.value.code == ErrorCode.STORAGE_ERROR
