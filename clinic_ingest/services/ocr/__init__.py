"""Page rasterization and text recognition."""

from clinic_ingest.services.ocr.rasterizer import PageImage, PageRasterizer
from clinic_ingest.services.ocr.text_recognizer import TextRecognizer

__all__ = [
    "PageImage",
    "PageRasterizer",
    "TextRecognizer",
]
