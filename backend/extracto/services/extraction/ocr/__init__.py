"""OCR backends sharing one recognition contract."""

import logging

from extracto.config import Settings
from extracto.services.extraction.ocr.base import FINANCIAL_CHAR_WHITELIST, OcrBackend
from extracto.services.extraction.ocr.mistral import MistralOcrBackend
from extracto.services.extraction.ocr.ocr_space import OcrSpaceBackend
from extracto.services.extraction.ocr.tesseract import TesseractBackend

logger = logging.getLogger(__name__)

BACKENDS: dict[str, type[OcrBackend]] = {
    "local": TesseractBackend,
    "remote": OcrSpaceBackend,
    "mistral": MistralOcrBackend,
}


def build_ocr_backend(settings: Settings) -> OcrBackend:
    """
    Select an OCR backend from configuration.

    ``auto`` picks OCR.space when an API key is configured and local
    Tesseract otherwise.

    Raises:
        ValueError: If the configured backend name is unknown
    """
    name = settings.ocr_backend
    if name == "auto":
        name = "remote" if settings.ocr_space_api_key else "local"

    backend_cls = BACKENDS.get(name)
    if backend_cls is None:
        raise ValueError(
            f"Unknown OCR backend '{settings.ocr_backend}'. "
            f"Expected one of: auto, {', '.join(BACKENDS)}"
        )

    logger.info(f"Using {backend_cls.name} for OCR")
    return backend_cls(settings)


__all__ = [
    "BACKENDS",
    "FINANCIAL_CHAR_WHITELIST",
    "MistralOcrBackend",
    "OcrBackend",
    "OcrSpaceBackend",
    "TesseractBackend",
    "build_ocr_backend",
]
