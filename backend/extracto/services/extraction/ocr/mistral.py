"""Remote OCR through Mistral's document OCR model."""

import base64
import logging
from collections.abc import Sequence

from mistralai import Mistral

from extracto.config import Settings
from extracto.exceptions import (
    AUTH_STATUS_CODES,
    TRANSIENT_ERRORS,
    TRANSIENT_STATUS_CODES,
    AuthenticationFailedError,
    RecognitionError,
    TransientRecognitionError,
)
from extracto.services.extraction.models import Bitmap, RecognitionResult
from extracto.services.extraction.ocr.base import RemoteOcrBackend
from extracto.services.extraction.progress import ProgressReporter, ProgressSink, as_reporter

logger = logging.getLogger(__name__)


class MistralOcrBackend(RemoteOcrBackend):
    """Recognize page images with Mistral OCR via the official SDK.

    Language hints are not used; the model detects language itself.
    """

    name = "Mistral OCR"

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.api_key = settings.mistral_api_key
        self.model = settings.mistral_ocr_model

    async def open(self, progress: ProgressReporter | ProgressSink | None = None) -> None:
        if not self.api_key:
            raise AuthenticationFailedError("MISTRAL_API_KEY is not configured")
        as_reporter(progress)(f"Cloud OCR session started ({self.model})")

    async def _prepare(self, image: Bitmap, progress: ProgressReporter) -> Bitmap:
        if not self.api_key:
            raise AuthenticationFailedError("MISTRAL_API_KEY is not configured")
        return image

    async def _request(self, image: Bitmap, language_hints: Sequence[str]) -> RecognitionResult:
        image_base64 = base64.standard_b64encode(image.data).decode("utf-8")

        try:
            async with Mistral(api_key=self.api_key) as client:
                ocr_response = await client.ocr.process_async(
                    model=self.model,
                    document={
                        "type": "image_url",
                        "image_url": f"data:{image.mime_type};base64,{image_base64}",
                    },
                    include_image_base64=False,
                )
        except TRANSIENT_ERRORS as e:
            raise TransientRecognitionError(f"Mistral OCR request failed: {e}") from e
        except Exception as e:
            status_code = getattr(e, "status_code", None)
            if status_code in AUTH_STATUS_CODES:
                raise AuthenticationFailedError(
                    f"Mistral rejected the API key (HTTP {status_code})"
                ) from e
            if status_code in TRANSIENT_STATUS_CODES:
                raise TransientRecognitionError(f"Mistral OCR returned HTTP {status_code}") from e
            raise RecognitionError(f"Mistral OCR failed: {e}") from e

        text = "\n\n".join(page.markdown for page in ocr_response.pages if page.markdown).strip()
        logger.debug(f"Mistral OCR returned {len(ocr_response.pages)} page(s), {len(text)} characters")
        return RecognitionResult(text=text)
