"""Tesseract text recognition for scanned invoices and rendered PDF pages.

Images are binarized before recognition unless ``ocr_preprocess`` is off.
Recognition failures come back as an unsuccessful ``OCRResult``; the
processor decides whether a page without text is fatal.
See: https://github.com/madmaze/pytesseract
"""

import logging
import os
from pathlib import Path

import pytesseract
from PIL import Image, ImageFilter, ImageOps, UnidentifiedImageError
from pydantic import BaseModel

from invoice_graph.shared.config import Settings

logger = logging.getLogger(__name__)


class OCRResult(BaseModel):
    """Text recognized on one image, or why recognition failed."""

    text: str
    success: bool
    error: str | None = None


class OCRService:
    """Text recognition over images with Tesseract."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._configure_tesseract()

    def _configure_tesseract(self) -> None:
        """Point pytesseract at TESSERACT_CMD when the binary is not on PATH."""
        tesseract_cmd = os.getenv("TESSERACT_CMD")
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    @property
    def tesseract_config(self) -> str:
        return f"--psm {self.settings.tesseract_psm}"

    def preprocess(self, image: Image.Image) -> Image.Image:
        """Grayscale, sharpen, binarize and stretch contrast."""
        threshold = self.settings.ocr_threshold
        gray = ImageOps.grayscale(image)
        sharpened = gray.filter(ImageFilter.SHARPEN)
        binary = sharpened.point(lambda value: 255 if value > threshold else 0)
        return ImageOps.autocontrast(binary)

    def extract_text_from_image(self, image: Image.Image) -> OCRResult:
        """Extract text from an in-memory image.

        Args:
            image: PIL image, e.g. a rendered PDF page

        Returns:
            OCRResult with the page text
        """
        try:
            if self.settings.ocr_preprocess:
                image = self.preprocess(image)
            text = pytesseract.image_to_string(
                image, lang=self.settings.tesseract_lang, config=self.tesseract_config
            )
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, OSError) as e:
            logger.error(f"OCR processing failed: {e}")
            return OCRResult(text="", success=False, error=f"OCR processing failed: {str(e)}")

        logger.debug(f"OCR recognized {len(text)} characters")
        return OCRResult(text=text, success=True)

    def extract_text(self, image_path: Path) -> OCRResult:
        """Extract text from an image file.

        Args:
            image_path: Image on disk

        Returns:
            OCRResult with extracted text or error information
        """
        if not image_path.exists():
            return OCRResult(text="", success=False, error=f"Image file not found: {image_path}")

        try:
            with Image.open(image_path) as image:
                image.load()
                return self.extract_text_from_image(image)
        except (UnidentifiedImageError, OSError) as e:
            return OCRResult(text="", success=False, error=f"OCR processing failed: {str(e)}")
