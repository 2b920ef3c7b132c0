"""PDF text extraction and page rendering with pdfplumber.

Digital PDFs carry a text layer that is read directly. Scanned PDFs carry
little or none, so their pages are rendered to images for OCR.
"""

import io
import logging

import pdfplumber
from pdfplumber.utils.exceptions import MalformedPDFException, PdfminerException
from PIL import Image

from invoice_graph.shared.config import Settings

logger = logging.getLogger(__name__)

PDF_ERRORS = (PdfminerException, MalformedPDFException)


class PDFTextService:
    """Reads text from, and renders pages of, PDF documents held in memory."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def extract_text(self, content: bytes) -> str:
        """Concatenate the text layer of every page, one page per block.

        Raises:
            ValueError: If the bytes are not a readable PDF
        """
        try:
            with pdfplumber.open(io.BytesIO(content)) as pdf:
                pages = [page.extract_text() or "" for page in pdf.pages]
        except PDF_ERRORS as e:
            raise ValueError(f"Could not read PDF: {e}") from e
        text = "\n".join(page for page in pages if page.strip())
        logger.info(f"Extracted {len(text)} characters from {len(pages)} PDF pages")
        return text

    def render_pages(self, content: bytes) -> list[Image.Image]:
        """Render every page to an RGB image at ``ocr_render_dpi``."""
        images = []
        try:
            with pdfplumber.open(io.BytesIO(content)) as pdf:
                for page in pdf.pages:
                    rendered = page.to_image(resolution=self.settings.ocr_render_dpi)
                    images.append(rendered.original.convert("RGB"))
        except PDF_ERRORS as e:
            raise ValueError(f"Could not render PDF: {e}") from e
        logger.debug(f"Rendered {len(images)} PDF pages for OCR")
        return images
