"""Bank-statement text extraction pipeline."""

from extracto.services.extraction.layout import LayoutTextExtractor
from extracto.services.extraction.models import (
    Bitmap,
    DocumentSource,
    ExtractionResult,
    Glyph,
    PageResult,
)
from extracto.services.extraction.normalizer import BankTextNormalizer
from extracto.services.extraction.ocr import OcrBackend, build_ocr_backend
from extracto.services.extraction.rasterizer import PageRasterizer
from extracto.services.extraction.redaction import PersonalDataRedactor
from extracto.services.extraction.service import ExtractionOrchestrator

__all__ = [
    "BankTextNormalizer",
    "Bitmap",
    "DocumentSource",
    "ExtractionOrchestrator",
    "ExtractionResult",
    "Glyph",
    "LayoutTextExtractor",
    "OcrBackend",
    "PageRasterizer",
    "PageResult",
    "PersonalDataRedactor",
    "build_ocr_backend",
]
