"""Shared fixtures: settings, synthetic documents and a scripted OCR backend."""

import io
import os
from collections.abc import Sequence

import pytest

# Override settings before importing app modules
os.environ["OCR_BACKEND"] = "local"
os.environ["OCR_SPACE_API_KEY"] = ""
os.environ["ANTHROPIC_API_KEY"] = "test-anthropic-key"
os.environ["MISTRAL_API_KEY"] = "test-mistral-key"
os.environ["RATE_LIMIT_ENABLED"] = "false"

import fitz  # PyMuPDF
from PIL import Image

from extracto.config import Settings
from extracto.enums import SourceKind
from extracto.exceptions import ExtractionError
from extracto.services.extraction.models import Bitmap, RecognitionResult
from extracto.services.extraction.ocr.base import OcrBackend

NATIVE_STATEMENT_LINES = [
    "BANORTE ESTADO DE CUENTA ENERO 2024",
    "Periodo del 01/01/2024 al 31/01/2024",
    "Fecha      Concepto                       Cargo        Abono",
    "02/01/2024 Deposito de nomina                           25,000.00",
    "05/01/2024 Pago de servicios de luz         1,250.50",
    "09/01/2024 Compra supermercado central      3,480.90",
    "15/01/2024 Transferencia recibida                       4,300.00",
    "20/01/2024 Retiro en cajero automatico      2,000.00",
    "Saldo anterior 10,500.00  Saldo final 32,568.60",
]


def build_pdf(pages: Sequence[Sequence[str]]) -> bytes:
    """Build a PDF whose pages carry the given lines as native text."""
    doc = fitz.open()
    for lines in pages:
        page = doc.new_page()
        y = 72
        for line in lines:
            page.insert_text((72, y), line, fontsize=10)
            y += 14
    content = doc.tobytes()
    doc.close()
    return content


def build_image(fmt: str = "PNG", size: tuple[int, int] = (320, 200)) -> bytes:
    image = Image.new("RGB", size, "white")
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


class ScriptedOcrBackend(OcrBackend):
    """OCR backend returning canned results in page order.

    Each item in ``script`` is either text or an exception to raise.
    """

    name = "scripted"

    def __init__(
        self,
        script: Sequence[str | Exception] = (),
        metered: bool = False,
        source_kind: SourceKind = SourceKind.OCR_LOCAL,
        preferred_encoding: str = "png",
    ):
        self.script = list(script)
        self.metered = metered
        self.source_kind = source_kind
        self.preferred_encoding = preferred_encoding
        self.images: list[Bitmap] = []
        self.language_hints: list[Sequence[str]] = []
        self.open_calls = 0
        self.close_calls = 0
        self.is_open = False

    async def open(self, progress=None) -> None:
        self.open_calls += 1
        self.is_open = True

    async def close(self) -> None:
        self.close_calls += 1
        self.is_open = False

    async def recognize(self, image, language_hints, progress=None) -> RecognitionResult:
        self.images.append(image)
        self.language_hints.append(language_hints)
        item = self.script.pop(0) if self.script else ""
        if isinstance(item, ExtractionError):
            raise item
        return RecognitionResult(text=item)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        ocr_backend="local",
        ocr_space_api_key="test-ocr-space-key",
        remote_ocr_retry_wait_seconds=0,
        remote_ocr_max_pages=4,
    )


@pytest.fixture
def native_lines() -> list[str]:
    return list(NATIVE_STATEMENT_LINES)


@pytest.fixture
def native_pdf() -> bytes:
    """Two pages with a clean native text layer."""
    return build_pdf([NATIVE_STATEMENT_LINES, NATIVE_STATEMENT_LINES])


@pytest.fixture
def blank_pdf() -> bytes:
    """Single page without a text layer, like a scan."""
    return build_pdf([[]])


@pytest.fixture
def png_image() -> bytes:
    return build_image("PNG")


@pytest.fixture
def make_pdf():
    return build_pdf


@pytest.fixture
def make_image():
    return build_image


@pytest.fixture
def scripted_ocr():
    """Factory for ScriptedOcrBackend instances."""
    return ScriptedOcrBackend
