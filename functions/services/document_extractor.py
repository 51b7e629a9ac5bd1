"""PDF text extraction using pdfplumber.

Turns raw PDF bytes into pages of positioned text tokens. Each token is one
text line with its bounding box in page coordinates (origin top-left, y
growing downwards).
"""

import io
from typing import List, Optional
import structlog

import pdfplumber

from config.settings import settings
from config.errors import ErrorCode, ExtractionError
from models.blueprint import ExtractedPage, TextToken

logger = structlog.get_logger()


class DocumentExtractor:
    """Extracts positioned text lines from PDF documents."""

    def __init__(self, max_file_size: Optional[int] = None):
        self.max_file_size = max_file_size or settings.pdf_max_file_size

    def extract(self, pdf_bytes: bytes) -> List[ExtractedPage]:
        """Extract every page's text lines.

        Raises:
            ExtractionError: EMPTY_DOCUMENT for empty input, FILE_TOO_LARGE
                above the size limit, EXTRACTION_FAILED if the PDF cannot be read.
        """
        if not pdf_bytes:
            raise ExtractionError("PDF document is empty", code=ErrorCode.EMPTY_DOCUMENT)

        if len(pdf_bytes) > self.max_file_size:
            raise ExtractionError(
                f"PDF exceeds maximum size of {self.max_file_size} bytes",
                code=ErrorCode.FILE_TOO_LARGE,
                details={"size_bytes": len(pdf_bytes), "max_bytes": self.max_file_size}
            )

        try:
            with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
                pages = [self._extract_page(index, page) for index, page in enumerate(pdf.pages, start=1)]
        except Exception as e:
            logger.error("pdf_extraction_failed", error=str(e))
            raise ExtractionError(
                f"Failed to read PDF: {str(e)}",
                details={"size_bytes": len(pdf_bytes)}
            )

        logger.info(
            "pdf_extracted",
            page_count=len(pages),
            token_count=sum(len(page.content) for page in pages)
        )
        return pages

    @staticmethod
    def _extract_page(page_number: int, page) -> ExtractedPage:
        tokens = []
        for line in page.extract_text_lines(return_chars=False):
            text = line.get("text") or ""
            if not text.strip():
                continue
            tokens.append(TextToken(
                text=text,
                x=float(line["x0"]),
                y=float(line["top"]),
                width=float(line["x1"]) - float(line["x0"]),
                height=float(line["bottom"]) - float(line["top"]),
            ))

        return ExtractedPage(
            page_number=page_number,
            width=float(page.width),
            height=float(page.height),
            content=tokens,
        )
