"""Tesseract text recognition for rendered pages."""

import asyncio

import pytesseract
from PIL import Image

from clinic_ingest.core.exceptions import OCRExtractionError
from clinic_ingest.utils.logging import get_logger

LOGGER = get_logger(__name__)


class TextRecognizer:
    """Runs Tesseract with a fixed language hint."""

    def __init__(self, language: str = "por", min_text_length: int = 50):
        """
        Args:
            language: Tesseract language code
            min_text_length: Minimum stripped length for a page to be worth
                sending to extraction
        """
        self.language = language
        self.min_text_length = min_text_length

    async def recognize(self, image: Image.Image) -> str:
        """OCR a single page image.

        Raises:
            OCRExtractionError: If Tesseract fails
        """
        try:
            return await asyncio.to_thread(pytesseract.image_to_string, image, lang=self.language)
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, OSError) as e:
            raise OCRExtractionError(f"Tesseract failed: {e}", e) from e

    def is_extractable(self, text: str) -> bool:
        return len((text or "").strip()) >= self.min_text_length
