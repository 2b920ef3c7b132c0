"""Document processing: collaborators in, invoice graph out.

``DocumentProcessor`` dispatches an uploaded file to the right collaborators
and hands their output to the normalization core:

1. spreadsheets are decoded into rows and normalized as ``ROWS``;
2. PDFs are read through their text layer, falling back to OCR of every
   rendered page (run concurrently, joined in page order) when the layer is
   too thin to be a digital document;
3. images are OCR'd;
4. with ``method="llm"`` the text goes to the extraction provider and the
   response is normalized as ``LLM``; if that fails and the fallback policy is
   on, the same text is normalized through the regex path instead.

Errors never escape ``process``; they come back in a ``ProcessingResult``.
"""

import asyncio
import io
import logging
import time
from collections.abc import Callable, Sequence
from pathlib import PurePath
from typing import Literal

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel

from invoice_graph.core.pipeline import SourceKind, normalize
from invoice_graph.core.relationships import IdFactory
from invoice_graph.core.schema import ExtractedData
from invoice_graph.extraction.base import ExtractionProvider
from invoice_graph.extraction.factory import create_extraction_provider
from invoice_graph.ocr.pdf_service import PDFTextService
from invoice_graph.ocr.service import OCRService
from invoice_graph.processing import metrics
from invoice_graph.shared.config import Settings
from invoice_graph.shared.errors import ExtractionError, NoTextExtracted
from invoice_graph.spreadsheet.reader import SpreadsheetReader

logger = logging.getLogger(__name__)

Method = Literal["ocr", "llm"]

PDF_CONTENT_TYPE = "application/pdf"
SPREADSHEET_CONTENT_TYPES = frozenset(
    {
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-excel.sheet.macroEnabled.12",
        "text/csv",
    }
)
IMAGE_SUFFIXES = frozenset({".png", ".jpg", ".jpeg", ".gif", ".bmp", ".tif", ".tiff", ".webp"})


class ProcessingResult(BaseModel):
    """Outcome of processing one document.

    Attributes:
        success: Whether a validated graph was produced
        data: The graph, or None on failure
        error: User-facing error message if processing failed
        source_kind: Normalization path that produced (or failed to produce) the graph
        method: Requested method ("ocr" or "llm")
        fallback_used: True when LLM extraction failed and the regex path was used
    """

    success: bool
    data: ExtractedData | None = None
    error: str | None = None
    source_kind: SourceKind | None = None
    method: Method
    fallback_used: bool = False


class DocumentProcessor:
    """Runs one document through the collaborators and the normalization core.

    Each call to :meth:`process` gets a fresh id namespace, so concurrent calls
    share no mutable state.
    """

    def __init__(
        self,
        settings: Settings,
        ocr_service: OCRService | None = None,
        pdf_service: PDFTextService | None = None,
        spreadsheet_reader: SpreadsheetReader | None = None,
        extraction_provider: ExtractionProvider | None = None,
        id_factory: Callable[[], IdFactory] = IdFactory,
    ) -> None:
        self.settings = settings
        self.ocr_service = ocr_service or OCRService(settings)
        self.pdf_service = pdf_service or PDFTextService(settings)
        self.spreadsheet_reader = spreadsheet_reader or SpreadsheetReader()
        self._extraction_provider = extraction_provider
        self._id_factory = id_factory

    @property
    def extraction_provider(self) -> ExtractionProvider:
        """Provider for the LLM method, created on first use."""
        if self._extraction_provider is None:
            self._extraction_provider = create_extraction_provider(self.settings)
        return self._extraction_provider

    async def process(
        self,
        content: bytes,
        filename: str,
        content_type: str | None = None,
        method: Method = "ocr",
    ) -> ProcessingResult:
        """Extract the invoice graph from one uploaded document.

        Args:
            content: Raw file bytes
            filename: Original file name
            content_type: MIME type, when known
            method: "ocr" for the regex path, "llm" for provider extraction

        Returns:
            ProcessingResult with the validated graph or a user-facing error
        """
        if not content:
            return ProcessingResult(success=False, error="Empty file", method=method)

        metrics.document_size_bytes.observe(len(content))
        start_time = time.perf_counter()
        kind: SourceKind | None = None
        fallback_used = False

        try:
            if self._is_spreadsheet(filename, content_type):
                kind = SourceKind.ROWS
                rows = await asyncio.to_thread(
                    self.spreadsheet_reader.read_rows, content, filename
                )
                data = normalize(rows, kind, ids=self._id_factory())
            else:
                text = await self._document_text(content, filename, content_type)
                if method == "llm":
                    kind = SourceKind.LLM
                    try:
                        data = await self._normalize_with_llm(text)
                    except ExtractionError as e:
                        if not self.settings.llm_fallback_to_ocr:
                            raise
                        logger.warning(f"LLM extraction failed, falling back to OCR path: {e}")
                        metrics.llm_fallbacks_total.inc()
                        fallback_used = True
                        kind = SourceKind.TEXT
                        data = normalize(text, kind, ids=self._id_factory())
                else:
                    kind = SourceKind.TEXT
                    data = normalize(text, kind, ids=self._id_factory())

        except (ExtractionError, ValueError) as e:
            logger.error(f"Processing {filename} failed: {e}")
            self._record(kind, method, "failed", start_time)
            return ProcessingResult(
                success=False,
                error=str(e),
                source_kind=kind,
                method=method,
                fallback_used=fallback_used,
            )

        self._record(kind, method, "success", start_time)
        logger.info(
            f"Processed {filename}: {len(data.invoices)} invoices, "
            f"{len(data.customers)} customers via {kind.value}"
        )
        return ProcessingResult(
            success=True,
            data=data,
            source_kind=kind,
            method=method,
            fallback_used=fallback_used,
        )

    @staticmethod
    def _is_spreadsheet(filename: str, content_type: str | None) -> bool:
        return content_type in SPREADSHEET_CONTENT_TYPES or SpreadsheetReader.is_spreadsheet(
            filename
        )

    @staticmethod
    def _record(kind: SourceKind | None, method: str, status: str, start_time: float) -> None:
        source = kind.value if kind is not None else "unknown"
        metrics.extraction_runs_total.labels(source_kind=source, method=method, status=status).inc()
        metrics.extraction_duration_seconds.labels(method=method).observe(
            time.perf_counter() - start_time
        )

    async def _document_text(self, content: bytes, filename: str, content_type: str | None) -> str:
        """Recover text from a PDF or image.

        Raises:
            NoTextExtracted: If neither the text layer nor OCR produced text
            ValueError: If the file is neither a PDF nor a readable image
        """
        suffix = PurePath(filename).suffix.lower()

        if content_type == PDF_CONTENT_TYPE or suffix == ".pdf":
            text = await asyncio.to_thread(self.pdf_service.extract_text, content)
            if len(text.strip()) < self.settings.min_text_chars:
                logger.info(f"Thin PDF text layer ({len(text.strip())} chars), running page OCR")
                pages = await asyncio.to_thread(self.pdf_service.render_pages, content)
                text = await self._ocr_pages(pages)
        elif (content_type or "").startswith("image/") or suffix in IMAGE_SUFFIXES:
            try:
                image = Image.open(io.BytesIO(content))
                image.load()
            except (UnidentifiedImageError, OSError) as e:
                raise ValueError(f"Unreadable image {filename}: {e}") from e
            text = await self._ocr_pages([image])
        else:
            raise ValueError(f"Unsupported file type: {content_type or suffix or filename}")

        if not text.strip():
            raise NoTextExtracted()
        return text

    async def _ocr_pages(self, pages: Sequence[Image.Image]) -> str:
        """OCR pages concurrently and join their text in page order."""
        start_time = time.perf_counter()
        results = await asyncio.gather(
            *(asyncio.to_thread(self.ocr_service.extract_text_from_image, page) for page in pages)
        )
        metrics.ocr_processing_duration_seconds.observe(time.perf_counter() - start_time)

        texts = []
        for number, result in enumerate(results, start=1):
            if result.success:
                metrics.ocr_pages_total.labels(status="success").inc()
                texts.append(result.text)
            else:
                metrics.ocr_pages_total.labels(status="failed").inc()
                logger.warning(f"OCR failed on page {number}: {result.error}")
        return "\n".join(texts)

    async def _normalize_with_llm(self, text: str) -> ExtractedData:
        result = await asyncio.to_thread(self.extraction_provider.extract_invoice_fields, text)
        if not result.success or result.raw_response is None:
            raise ExtractionError(result.error or "Extraction provider returned no response")
        return normalize(result.raw_response, SourceKind.LLM, ids=self._id_factory())
