"""Local OCR with the Tesseract engine."""

import asyncio
import io
import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor

import pytesseract
from PIL import Image

from extracto.config import Settings
from extracto.enums import SourceKind
from extracto.exceptions import RecognitionError
from extracto.services.extraction.models import Bitmap, RecognitionResult
from extracto.services.extraction.ocr.base import FINANCIAL_CHAR_WHITELIST, OcrBackend
from extracto.services.extraction.progress import ProgressReporter, ProgressSink, as_reporter

logger = logging.getLogger(__name__)


class TesseractBackend(OcrBackend):
    """Recognize page images with a local Tesseract install.

    The session is a dedicated single-thread worker: pages are recognized one
    at a time and the worker is shut down in ``close()``.
    """

    source_kind = SourceKind.OCR_LOCAL
    preferred_encoding = "png"
    metered = False
    name = "Tesseract"

    def __init__(self, settings: Settings):
        self.settings = settings
        self._executor: ThreadPoolExecutor | None = None
        if settings.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = settings.tesseract_cmd

    @property
    def is_open(self) -> bool:
        return self._executor is not None

    def _config(self) -> str:
        return (
            f"-c tessedit_char_whitelist={FINANCIAL_CHAR_WHITELIST} "
            "-c preserve_interword_spaces=1"
        )

    async def open(self, progress: ProgressReporter | ProgressSink | None = None) -> None:
        if self._executor is not None:
            return
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tesseract")
        as_reporter(progress)("Tesseract OCR engine started")

    async def close(self) -> None:
        if self._executor is None:
            return
        self._executor.shutdown(wait=True)
        self._executor = None
        logger.debug("Tesseract worker shut down")

    def _recognize_sync(self, data: bytes, lang: str) -> str:
        with Image.open(io.BytesIO(data)) as image:
            return pytesseract.image_to_string(image, lang=lang, config=self._config())

    async def recognize(
        self,
        image: Bitmap,
        language_hints: Sequence[str],
        progress: ProgressReporter | ProgressSink | None = None,
    ) -> RecognitionResult:
        progress = as_reporter(progress)
        if self._executor is None:
            await self.open(progress)

        lang = "+".join(language_hints) or "spa+eng"
        loop = asyncio.get_running_loop()

        try:
            text = await loop.run_in_executor(self._executor, self._recognize_sync, image.data, lang)
        except pytesseract.TesseractNotFoundError as e:
            raise RecognitionError(f"Tesseract is not installed or not on PATH: {e}") from e
        except (pytesseract.TesseractError, OSError) as e:
            raise RecognitionError(f"Tesseract recognition failed: {e}") from e

        text = text.strip()
        progress(f"Tesseract recognition completed ({len(text)} characters)")
        return RecognitionResult(text=text)
