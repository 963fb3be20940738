"""Extraction orchestrator: native text first, OCR where the text layer fails."""

import asyncio
import logging
import re
from pathlib import PurePath

from extracto.config import Settings
from extracto.enums import BankType, DocumentKind, ExtractionState, SourceKind
from extracto.exceptions import (
    PAGE_RECOVERABLE_ERRORS,
    PageRenderError,
    UnsupportedInputError,
    ZeroYieldError,
)
from extracto.services.extraction.layout import LayoutTextExtractor
from extracto.services.extraction.models import (
    Bitmap,
    DocumentSource,
    ExtractionResult,
    PageResult,
    join_pages,
)
from extracto.services.extraction.normalizer import BankTextNormalizer
from extracto.services.extraction.ocr import OcrBackend, build_ocr_backend
from extracto.services.extraction.progress import ProgressReporter, ProgressSink, as_reporter
from extracto.services.extraction.rasterizer import PageRasterizer, PdfDocument, rasterize_image
from extracto.services.extraction.redaction import PersonalDataRedactor

logger = logging.getLogger(__name__)

# Characters expected in a clean native text layer; anything else counts
# towards the scanned-page ratio
SPECIAL_CHAR_RE = re.compile(r"[^A-Za-z0-9_\s.,;:$%()=+\-/*\"'´áéíóúüñÁÉÍÓÚÜÑ]")


class ExtractionOrchestrator:
    """Extract, normalize and redact the text of one bank statement.

    Pages are processed strictly in order. Each PDF page tries its native
    text layer first and falls back to rasterize + OCR when the layer is
    missing or looks like a scan. Images always go through OCR.

    An instance holds per-document state (current state, OCR budget, sticky
    bank). Use one instance per document.
    """

    PDF_MIMETYPES = {
        "application/pdf",
        "application/x-pdf",
    }

    IMAGE_MIMETYPES = {
        "image/jpeg",
        "image/jpg",
        "image/pjpeg",
        "image/png",
        "image/gif",
        "image/tiff",
        "image/bmp",
        "image/x-ms-bmp",
    }

    PDF_EXTENSIONS = {".pdf"}
    IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".tif", ".tiff", ".bmp"}

    def __init__(
        self,
        settings: Settings,
        ocr_backend: OcrBackend | None = None,
        layout: LayoutTextExtractor | None = None,
        rasterizer: PageRasterizer | None = None,
        normalizer: BankTextNormalizer | None = None,
        redactor: PersonalDataRedactor | None = None,
    ):
        self.settings = settings
        self.ocr_backend = ocr_backend or build_ocr_backend(settings)
        self.layout = layout or LayoutTextExtractor()
        self.rasterizer = rasterizer or PageRasterizer(
            scale=settings.render_scale, jpeg_quality=settings.jpeg_quality
        )
        self.normalizer = normalizer or BankTextNormalizer()
        self.redactor = redactor or PersonalDataRedactor()

        self.state = ExtractionState.IDLE
        self._ocr_session_open = False
        self._ocr_calls = 0
        self._detected_bank: BankType | None = None

    def _transition(self, state: ExtractionState) -> None:
        logger.debug(f"Extraction state {self.state} -> {state}")
        self.state = state

    def detect_kind(self, source: DocumentSource) -> DocumentKind:
        """
        Classify the input by declared MIME type, then by file extension.

        Raises:
            UnsupportedInputError: If neither identifies a PDF or accepted image
        """
        mime_type = (source.mime_type or "").split(";")[0].strip().lower()
        if mime_type in self.PDF_MIMETYPES:
            return DocumentKind.PDF
        if mime_type in self.IMAGE_MIMETYPES:
            return DocumentKind.IMAGE

        extension = PurePath(source.file_name or "").suffix.lower()
        if extension in self.PDF_EXTENSIONS:
            return DocumentKind.PDF
        if extension in self.IMAGE_EXTENSIONS:
            return DocumentKind.IMAGE

        raise UnsupportedInputError(
            f"Unsupported file type '{mime_type or 'unknown'}' for {source.file_name or 'upload'}. "
            "Upload a PDF or a JPEG, PNG, GIF, TIFF or BMP image."
        )

    def looks_scanned(self, text: str) -> bool:
        """True when native page text is too short or too noisy to trust."""
        stripped = text.strip()
        if len(stripped) < self.settings.native_text_min_chars:
            return True
        special = len(SPECIAL_CHAR_RE.findall(stripped))
        return special / len(stripped) > self.settings.scanned_char_ratio

    async def extract(
        self,
        source: DocumentSource,
        progress_sink: ProgressSink | None = None,
    ) -> ExtractionResult:
        """
        Extract sanitized text from a statement.

        Args:
            source: Uploaded document bytes, MIME type and file name
            progress_sink: Optional callback receiving status messages in order

        Returns:
            ExtractionResult with raw and normalized text, bank and pages

        Raises:
            UnsupportedInputError: If the file type is not accepted or unreadable
            ZeroYieldError: If no page produced any text
            AuthenticationFailedError: If a remote backend rejects credentials
        """
        progress = as_reporter(progress_sink)
        self._ocr_calls = 0
        self._detected_bank = None
        self._transition(ExtractionState.DETECTING_KIND)

        try:
            kind = self.detect_kind(source)
            progress(f"Processing {source.file_name or 'document'} as {kind}")

            if kind == DocumentKind.PDF:
                pages = await self._extract_pdf(source, progress)
            else:
                pages = await self._extract_image(source, progress)

            if not any(page.text.strip() for page in pages):
                raise ZeroYieldError("Could not extract text from the document")

            raw_text = join_pages(pages)
            bank_type = self.normalizer.detect_bank(raw_text)

            self._transition(ExtractionState.NORMALIZING)
            progress("Normalizing text")
            normalized = self.normalizer.normalize(raw_text)

            self._transition(ExtractionState.REDACTING)
            progress("Redacting personal data")
            normalized = self.redactor.redact(normalized)
        except Exception as e:
            self._transition(ExtractionState.FAILED)
            logger.error(f"Extraction failed for {source.file_name}: {e}")
            progress(f"Extraction failed: {e}")
            raise
        finally:
            await self._close_ocr_session()

        self._transition(ExtractionState.DONE)
        processed_by_pages = any(page.source_kind != SourceKind.NATIVE for page in pages)
        progress(f"Extraction completed: {len(pages)} page(s), {len(normalized)} characters")

        return ExtractionResult(
            raw_text=raw_text,
            normalized_text=normalized,
            bank_type=bank_type,
            pages=pages,
            processed_by_pages=processed_by_pages,
        )

    async def _extract_pdf(
        self, source: DocumentSource, progress: ProgressReporter
    ) -> list[PageResult]:
        pages: list[PageResult] = []

        with PdfDocument(source.content) as document:
            page_count = document.page_count
            if page_count == 0:
                raise ZeroYieldError("Could not extract text: the document has no pages")
            progress(f"Document loaded: {page_count} page(s)")

            for index in range(page_count):
                page_number = index + 1
                progress(f"Processing page {page_number} of {page_count}")

                self._transition(ExtractionState.NATIVE_EXTRACTION)
                native_text = self._native_text(document, index)

                if not self.looks_scanned(native_text):
                    page = PageResult(page_number, native_text, SourceKind.NATIVE)
                    progress(f"Page {page_number} completed from the text layer")
                elif not self._ocr_budget_left():
                    progress(
                        f"Page {page_number} needs OCR but the limit of "
                        f"{self.settings.remote_ocr_max_pages} OCR pages was reached; "
                        "keeping its text layer"
                    )
                    page = PageResult(page_number, native_text, SourceKind.NATIVE)
                else:
                    page = await self._ocr_pdf_page(document, index, progress)

                pages.append(page)
                self._report_bank(pages, progress)

        return pages

    def _native_text(self, document: PdfDocument, index: int) -> str:
        try:
            glyphs, page_height = document.page_glyphs(index)
        except Exception as e:
            logger.warning(f"Could not read the text layer of page {index + 1}: {e}")
            return ""
        return self.layout.extract(glyphs, page_height)

    def _ocr_budget_left(self) -> bool:
        if not self.ocr_backend.metered:
            return True
        return self._ocr_calls < self.settings.remote_ocr_max_pages

    async def _ocr_pdf_page(
        self, document: PdfDocument, index: int, progress: ProgressReporter
    ) -> PageResult:
        page_number = index + 1
        encoding = self.ocr_backend.preferred_encoding
        scale = self.settings.ocr_render_scale if encoding == "png" else self.settings.render_scale

        try:
            self._transition(ExtractionState.RASTERIZING)
            progress(f"Rendering page {page_number} for OCR")
            bitmap = await self.rasterizer.render(document, index, scale=scale, encoding=encoding)
        except PageRenderError as e:
            return self._failed_page(page_number, e, progress)

        return await self._recognize_page(page_number, bitmap, progress)

    async def _extract_image(
        self, source: DocumentSource, progress: ProgressReporter
    ) -> list[PageResult]:
        self._transition(ExtractionState.RASTERIZING)
        progress("Preparing image for OCR")
        try:
            bitmap = await asyncio.to_thread(
                rasterize_image,
                source.content,
                self.ocr_backend.preferred_encoding,
                self.settings.jpeg_quality,
            )
        except PageRenderError as e:
            raise UnsupportedInputError(f"Could not read image {source.file_name}: {e}") from e

        if not self._ocr_budget_left():
            progress("OCR page limit reached; the image was not sent")
            return [PageResult(1, "", self.ocr_backend.source_kind)]

        page = await self._recognize_page(1, bitmap, progress)
        self._report_bank([page], progress)
        return [page]

    async def _recognize_page(
        self, page_number: int, bitmap: Bitmap, progress: ProgressReporter
    ) -> PageResult:
        try:
            await self._open_ocr_session(progress)
            self._transition(ExtractionState.RECOGNIZING_TEXT)
            self._ocr_calls += 1
            progress(f"Recognizing text on page {page_number}")
            result = await self.ocr_backend.recognize(
                bitmap, self.settings.ocr_languages, progress
            )
        except PAGE_RECOVERABLE_ERRORS as e:
            return self._failed_page(page_number, e, progress)

        progress(f"Page {page_number} completed with OCR")
        return PageResult(
            page_number=page_number,
            text=result.text,
            source_kind=self.ocr_backend.source_kind,
            overlay=result.overlay,
        )

    def _failed_page(
        self, page_number: int, error: Exception, progress: ProgressReporter
    ) -> PageResult:
        logger.warning(f"Page {page_number} failed: {error}")
        progress(f"Page {page_number} failed: {error}")
        return PageResult(
            page_number=page_number,
            text="",
            source_kind=self.ocr_backend.source_kind,
            error=str(error),
        )

    def _report_bank(self, pages: list[PageResult], progress: ProgressReporter) -> None:
        """Report the issuing bank once, as soon as the cumulative text reveals it."""
        if self._detected_bank is not None:
            return
        bank = self.normalizer.detect_bank("\n".join(page.text for page in pages))
        if bank != BankType.UNKNOWN:
            self._detected_bank = bank
            progress(f"Detected bank: {bank}")

    async def _open_ocr_session(self, progress: ProgressReporter) -> None:
        if self._ocr_session_open:
            return
        # Flag first so a half-opened session is still closed
        self._ocr_session_open = True
        await self.ocr_backend.open(progress)

    async def _close_ocr_session(self) -> None:
        if not self._ocr_session_open:
            return
        self._ocr_session_open = False
        await self.ocr_backend.close()
