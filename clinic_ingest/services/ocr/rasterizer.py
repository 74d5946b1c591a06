"""PDF page rasterization with pypdfium2."""

import asyncio
from dataclasses import dataclass
from typing import List

import pypdfium2 as pdfium
from PIL import Image

from clinic_ingest.core.exceptions import InvalidPDFError
from clinic_ingest.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass
class PageImage:
    """A rendered page. ``page_number`` is 1-indexed."""
    page_number: int
    image: Image.Image


class PageRasterizer:
    """Renders every page of a PDF to a PIL image at a fixed scale."""

    def __init__(self, scale: float = 3.0):
        self.scale = scale

    def _render_all(self, pdf_bytes: bytes) -> List[PageImage]:
        try:
            pdf = pdfium.PdfDocument(pdf_bytes)
        except pdfium.PdfiumError as e:
            raise InvalidPDFError(f"Unreadable PDF: {e}", e) from e

        pages: List[PageImage] = []
        try:
            for index in range(len(pdf)):
                page = pdf[index]
                try:
                    image = page.render(scale=self.scale).to_pil()
                finally:
                    page.close()
                pages.append(PageImage(page_number=index + 1, image=image))
        except pdfium.PdfiumError as e:
            raise InvalidPDFError(f"Failed to render PDF page {len(pages) + 1}: {e}", e) from e
        finally:
            pdf.close()

        return pages

    async def rasterize(self, pdf_bytes: bytes) -> List[PageImage]:
        """Render all pages, in order.

        Args:
            pdf_bytes: Raw PDF content

        Returns:
            One PageImage per page

        Raises:
            InvalidPDFError: If the bytes are not a readable PDF. No partial
                output is returned.
        """
        if not pdf_bytes:
            raise InvalidPDFError("Empty PDF payload")

        pages = await asyncio.to_thread(self._render_all, pdf_bytes)
        LOGGER.info(f"Rasterized {len(pages)} pages at scale {self.scale}")
        return pages
