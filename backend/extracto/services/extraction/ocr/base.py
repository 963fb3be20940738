"""Common contract for OCR backends."""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from extracto.config import Settings
from extracto.enums import SourceKind
from extracto.exceptions import RecognitionError, TransientRecognitionError
from extracto.services.extraction.models import Bitmap, RecognitionResult
from extracto.services.extraction.progress import ProgressReporter, ProgressSink, as_reporter

logger = logging.getLogger(__name__)

# Characters expected on Spanish/English bank statements
FINANCIAL_CHAR_WHITELIST = (
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
    "0123456789"
    "áéíóúüÁÉÍÓÚÜñÑ"
    ".,;:$%()=+-_*#@!?/"
)


class OcrBackend(ABC):
    """Turn a page image into text.

    Backends hold a recognition session between ``open`` and ``close``. Use
    ``session()`` to guarantee the session is released on every exit path.
    """

    source_kind: SourceKind = SourceKind.OCR_REMOTE
    preferred_encoding: str = "jpeg"
    # Metered backends consume external quota per page
    metered: bool = False
    name: str = "ocr"

    async def open(self, progress: ProgressReporter | ProgressSink | None = None) -> None:
        """Start the recognition session."""
        return None

    async def close(self) -> None:
        """Release the recognition session. Must be safe to call twice."""
        return None

    @asynccontextmanager
    async def session(
        self, progress: ProgressReporter | ProgressSink | None = None
    ) -> AsyncIterator["OcrBackend"]:
        await self.open(progress)
        try:
            yield self
        finally:
            await self.close()

    @abstractmethod
    async def recognize(
        self,
        image: Bitmap,
        language_hints: Sequence[str],
        progress: ProgressReporter | ProgressSink | None = None,
    ) -> RecognitionResult:
        """
        Recognize text in an image.

        Args:
            image: Encoded page image
            language_hints: Language codes, most likely first (e.g. ['spa', 'eng'])
            progress: Optional progress sink

        Returns:
            RecognitionResult with text and optional backend overlay

        Raises:
            RecognitionError: If recognition fails for this image
            AuthenticationFailedError: If the backend rejects credentials
        """


class RemoteOcrBackend(OcrBackend):
    """Shared retry policy for backends reached over the network."""

    source_kind = SourceKind.OCR_REMOTE
    preferred_encoding = "jpeg"
    metered = True

    def __init__(self, settings: Settings):
        self.settings = settings
        self.max_attempts = settings.remote_ocr_max_attempts
        self.retry_wait = settings.remote_ocr_retry_wait_seconds

    def _retrying(self, progress: ProgressReporter) -> AsyncRetrying:
        def before_sleep(retry_state) -> None:
            error = retry_state.outcome.exception()
            progress(
                f"{self.name} request failed ({error}); retrying "
                f"(attempt {retry_state.attempt_number + 1} of {self.max_attempts})"
            )

        return AsyncRetrying(
            retry=retry_if_exception_type(TransientRecognitionError),
            wait=wait_fixed(self.retry_wait),
            stop=stop_after_attempt(self.max_attempts),
            before_sleep=before_sleep,
            reraise=True,
        )

    async def recognize(
        self,
        image: Bitmap,
        language_hints: Sequence[str],
        progress: ProgressReporter | ProgressSink | None = None,
    ) -> RecognitionResult:
        progress = as_reporter(progress)
        payload = await self._prepare(image, progress)

        try:
            async for attempt in self._retrying(progress):
                with attempt:
                    result = await self._request(payload, language_hints)
        except TransientRecognitionError as e:
            progress(f"{self.name} recognition failed after {self.max_attempts} attempts")
            raise RecognitionError(
                f"{self.name} recognition failed after {self.max_attempts} attempts: {e}"
            ) from e

        progress(f"{self.name} recognition completed ({len(result.text)} characters)")
        return result

    async def _prepare(self, image: Bitmap, progress: ProgressReporter) -> Bitmap:
        """Hook for payload constraints checked once before any attempt."""
        return image

    @abstractmethod
    async def _request(self, image: Bitmap, language_hints: Sequence[str]) -> RecognitionResult:
        """Single attempt. Raise TransientRecognitionError to trigger a retry."""
