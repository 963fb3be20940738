"""Remote OCR through the OCR.space HTTP API."""

import asyncio
import logging
from collections.abc import Sequence

import httpx

from extracto.config import Settings
from extracto.exceptions import (
    AUTH_STATUS_CODES,
    TRANSIENT_ERRORS,
    TRANSIENT_STATUS_CODES,
    AuthenticationFailedError,
    PayloadTooLargeError,
    RecognitionError,
    TransientRecognitionError,
)
from extracto.services.extraction import rasterizer
from extracto.services.extraction.models import Bitmap, RecognitionResult
from extracto.services.extraction.ocr.base import RemoteOcrBackend
from extracto.services.extraction.progress import ProgressReporter, ProgressSink, as_reporter

logger = logging.getLogger(__name__)


class OcrSpaceBackend(RemoteOcrBackend):
    """Recognize page images with OCR.space.

    Enforces the tier's payload ceiling before anything is sent: oversized
    images get one lossy compression attempt and are rejected if still too
    large.
    """

    name = "OCR.space"

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        super().__init__(settings)
        self.api_key = settings.ocr_space_api_key
        self.url = settings.ocr_space_url
        self.max_bytes = settings.remote_ocr_max_bytes
        self._client = client
        self._owns_client = client is None

    async def open(self, progress: ProgressReporter | ProgressSink | None = None) -> None:
        if not self.api_key:
            raise AuthenticationFailedError("OCR.space API key is not configured")
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.remote_ocr_timeout_seconds)
            self._owns_client = True
        as_reporter(progress)("Cloud OCR session started (OCR.space)")

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _prepare(self, image: Bitmap, progress: ProgressReporter) -> Bitmap:
        if not self.api_key:
            raise AuthenticationFailedError("OCR.space API key is not configured")

        if image.size <= self.max_bytes:
            return image

        progress(
            f"Image is {image.size / 1024:.0f}KB, over the {self.max_bytes / 1024:.0f}KB "
            "limit; compressing"
        )
        compressed = await asyncio.to_thread(
            rasterizer.compress_image,
            image,
            self.max_bytes,
            quality=self.settings.compressed_jpeg_quality,
        )
        if compressed.size > self.max_bytes:
            raise PayloadTooLargeError(
                f"Image is {compressed.size / 1024:.0f}KB after compression, "
                f"over the {self.max_bytes / 1024:.0f}KB OCR.space limit"
            )
        return compressed

    def _form_fields(self, image: Bitmap, language_hints: Sequence[str]) -> dict[str, str]:
        return {
            "language": language_hints[0] if language_hints else "spa",
            "isOverlayRequired": "true",
            "isTable": "true",
            "scale": "true",
            "OCREngine": str(self.settings.ocr_space_engine),
            "filetype": image.extension,
        }

    async def _request(self, image: Bitmap, language_hints: Sequence[str]) -> RecognitionResult:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.remote_ocr_timeout_seconds)
            self._owns_client = True

        file_name = f"page.{image.extension.lower()}"
        try:
            response = await self._client.post(
                self.url,
                headers={"apikey": self.api_key},
                data=self._form_fields(image, language_hints),
                files={"file": (file_name, image.data, image.mime_type)},
            )
        except TRANSIENT_ERRORS as e:
            raise TransientRecognitionError(f"OCR.space request failed: {e}") from e

        if response.status_code in AUTH_STATUS_CODES:
            raise AuthenticationFailedError(
                f"OCR.space rejected the API key (HTTP {response.status_code})"
            )
        if response.status_code in TRANSIENT_STATUS_CODES:
            raise TransientRecognitionError(f"OCR.space returned HTTP {response.status_code}")
        if response.status_code >= 400:
            raise RecognitionError(f"OCR.space returned HTTP {response.status_code}")

        try:
            result = response.json()
        except ValueError as e:
            raise TransientRecognitionError(f"OCR.space returned a non-JSON body: {e}") from e

        return self._parse(result)

    def _parse(self, result) -> RecognitionResult:
        """Parse an OCR.space response body."""
        if not isinstance(result, dict):
            # Rate limiting is reported as a bare string
            raise TransientRecognitionError(f"OCR.space error: {result}")

        if result.get("IsErroredOnProcessing"):
            message = result.get("ErrorMessage") or "unknown error"
            if isinstance(message, list):
                message = "; ".join(str(m) for m in message)
            raise TransientRecognitionError(f"OCR.space processing error: {message}")

        parsed_results = result.get("ParsedResults") or []
        if not parsed_results:
            raise RecognitionError("OCR.space returned no parsed results")

        text = "\n".join(
            (parsed.get("ParsedText") or "").strip() for parsed in parsed_results
        ).strip()
        overlay = parsed_results[0].get("TextOverlay")

        logger.debug(f"OCR.space parsed {len(parsed_results)} result(s), {len(text)} characters")
        return RecognitionResult(text=text, overlay=overlay)
