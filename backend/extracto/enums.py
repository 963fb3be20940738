"""Enums for tags and states used throughout the extraction pipeline."""

from enum import StrEnum


class BankType(StrEnum):
    """Issuing bank detected from statement text."""

    HSBC = "HSBC"
    BBVA = "BBVA"
    SANTANDER = "SANTANDER"
    BANORTE = "BANORTE"
    CITIBANAMEX = "CITIBANAMEX"
    UNKNOWN = "Unknown"


class SourceKind(StrEnum):
    """Where a page's text came from."""

    NATIVE = "native"
    OCR_LOCAL = "ocr-local"
    OCR_REMOTE = "ocr-remote"


class DocumentKind(StrEnum):
    """Input document classification."""

    PDF = "pdf"
    IMAGE = "image"


class ExtractionState(StrEnum):
    """Lifecycle of a single extraction call."""

    IDLE = "idle"
    DETECTING_KIND = "detecting_kind"
    NATIVE_EXTRACTION = "native_extraction"
    RASTERIZING = "rasterizing"
    RECOGNIZING_TEXT = "recognizing_text"
    NORMALIZING = "normalizing"
    REDACTING = "redacting"
    DONE = "done"
    FAILED = "failed"
