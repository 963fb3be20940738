"""Data models for statement extraction."""

from dataclasses import dataclass, field
from typing import Any

from extracto.enums import BankType, SourceKind

PAGE_SEPARATOR = "--- Página {page_number} ---"


@dataclass(frozen=True)
class DocumentSource:
    """An uploaded document: raw bytes plus declared type and name."""

    content: bytes
    mime_type: str | None
    file_name: str


@dataclass(frozen=True)
class Glyph:
    """One positioned run of text from a page's native content stream.

    ``y`` is the native (bottom-up) baseline coordinate.
    """

    text: str
    x: float
    y: float
    width: float


@dataclass(frozen=True)
class Bitmap:
    """An encoded page image."""

    data: bytes
    mime_type: str
    width: int
    height: int

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        """File extension as OCR services expect it (e.g. 'JPG', 'PNG')."""
        subtype = self.mime_type.split("/")[-1].upper()
        return "JPG" if subtype == "JPEG" else subtype


@dataclass
class RecognitionResult:
    """Text recognized from a single image."""

    text: str
    overlay: Any | None = None


@dataclass(frozen=True)
class PageResult:
    """Extracted text for one page (1-based page number)."""

    page_number: int
    text: str
    source_kind: SourceKind
    overlay: Any | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        data = {
            "pageNumber": self.page_number,
            "text": self.text,
            "sourceKind": str(self.source_kind),
        }
        if self.overlay is not None:
            data["overlay"] = self.overlay
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class ExtractionResult:
    """Result of extracting, normalizing and redacting one document."""

    raw_text: str
    normalized_text: str
    bank_type: BankType
    pages: list[PageResult] = field(default_factory=list)
    processed_by_pages: bool = False

    def to_dict(self) -> dict:
        """Wire shape handed to the analysis collaborator and HTTP clients."""
        return {
            "rawText": self.raw_text,
            "normalizedText": self.normalized_text,
            "bankType": str(self.bank_type),
            "pages": [page.to_dict() for page in self.pages],
            "processedByPages": self.processed_by_pages,
        }


def join_pages(pages: list[PageResult]) -> str:
    """Concatenate page texts in order, each preceded by its page marker."""
    return "\n".join(
        f"{PAGE_SEPARATOR.format(page_number=page.page_number)}\n{page.text}" for page in pages
    )
