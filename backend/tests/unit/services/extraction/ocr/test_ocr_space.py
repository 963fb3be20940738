"""Tests for the OCR.space backend."""

import json
import threading
from unittest.mock import MagicMock, patch

import httpx
import pytest
from tenacity import wait_fixed

from extracto.config import Settings
from extracto.exceptions import (
    AuthenticationFailedError,
    PayloadTooLargeError,
    RecognitionError,
)
from extracto.services.extraction.models import Bitmap
from extracto.services.extraction.ocr.ocr_space import OcrSpaceBackend
from extracto.services.extraction.progress import ProgressReporter

MIB = 1024 * 1024

PARSED_OK = {
    "ParsedResults": [
        {
            "ParsedText": "HSBC ESTADO DE CUENTA\r\nSALDO 1,234.56\r\n",
            "TextOverlay": {"Lines": [], "HasOverlay": True},
        }
    ],
    "IsErroredOnProcessing": False,
}


def jpeg(size: int) -> Bitmap:
    return Bitmap(data=b"\xff\xd8" + b"\x00" * (size - 2), mime_type="image/jpeg", width=100, height=100)


class RecordingHandler:
    """MockTransport handler replaying scripted responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item


def make_backend(settings: Settings, handler: RecordingHandler) -> OcrSpaceBackend:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OcrSpaceBackend(settings, client=client)


class TestOcrSpaceRequest:
    """Tests for the request payload and response parsing."""

    @pytest.mark.asyncio
    async def test_sends_multipart_with_api_key_header(self, settings):
        handler = RecordingHandler(httpx.Response(200, json=PARSED_OK))
        backend = make_backend(settings, handler)

        result = await backend.recognize(jpeg(1000), ["spa", "eng"])

        request = handler.requests[0]
        body = request.content.decode("latin-1")
        assert request.headers["apikey"] == "test-ocr-space-key"
        assert str(request.url) == settings.ocr_space_url
        for field, value in [
            ("language", "spa"),
            ("isTable", "true"),
            ("scale", "true"),
            ("OCREngine", "2"),
            ("filetype", "JPG"),
            ("isOverlayRequired", "true"),
        ]:
            assert f'name="{field}"\r\n\r\n{value}' in body
        assert 'name="file"; filename="page.jpg"' in body
        assert result.text == "HSBC ESTADO DE CUENTA\r\nSALDO 1,234.56"
        assert result.overlay == {"Lines": [], "HasOverlay": True}

    @pytest.mark.asyncio
    async def test_joins_multiple_parsed_results(self, settings):
        body = {
            "ParsedResults": [{"ParsedText": "uno"}, {"ParsedText": "dos"}],
            "IsErroredOnProcessing": False,
        }
        backend = make_backend(settings, RecordingHandler(httpx.Response(200, json=body)))

        result = await backend.recognize(jpeg(1000), ["spa"])

        assert result.text == "uno\ndos"

    @pytest.mark.asyncio
    async def test_empty_results_is_recognition_error(self, settings):
        body = {"ParsedResults": [], "IsErroredOnProcessing": False}
        handler = RecordingHandler(httpx.Response(200, json=body))
        backend = make_backend(settings, handler)

        with pytest.raises(RecognitionError):
            await backend.recognize(jpeg(1000), ["spa"])
        assert len(handler.requests) == 1


class TestOcrSpaceRetry:
    """Tests for the transient retry policy."""

    @pytest.mark.asyncio
    async def test_retries_server_errors_then_succeeds(self, settings):
        handler = RecordingHandler(
            httpx.Response(503),
            httpx.Response(502),
            httpx.Response(200, json=PARSED_OK),
        )
        backend = make_backend(settings, handler)
        messages: list[str] = []

        result = await backend.recognize(jpeg(1000), ["spa"], progress=messages.append)

        assert len(handler.requests) == 3
        assert result.text.startswith("HSBC")
        assert sum("retrying" in m for m in messages) == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_three_attempts(self, settings):
        handler = RecordingHandler(httpx.Response(503))
        backend = make_backend(settings, handler)

        with pytest.raises(RecognitionError) as exc_info:
            await backend.recognize(jpeg(1000), ["spa"])

        assert exc_info.type is RecognitionError
        assert len(handler.requests) == 3

    @pytest.mark.asyncio
    async def test_processing_error_is_retried(self, settings):
        errored = {"IsErroredOnProcessing": True, "ErrorMessage": ["Timed out waiting for results"]}
        handler = RecordingHandler(
            httpx.Response(200, json=errored),
            httpx.Response(200, json=PARSED_OK),
        )
        backend = make_backend(settings, handler)

        result = await backend.recognize(jpeg(1000), ["spa"])

        assert len(handler.requests) == 2
        assert "SALDO" in result.text

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self, settings):
        handler = RecordingHandler(
            httpx.ConnectError("connection refused"),
            httpx.Response(200, json=PARSED_OK),
        )
        backend = make_backend(settings, handler)

        result = await backend.recognize(jpeg(1000), ["spa"])

        assert len(handler.requests) == 2
        assert result.text

    @pytest.mark.asyncio
    async def test_rate_limit_string_body_is_retried(self, settings):
        handler = RecordingHandler(
            httpx.Response(200, content=json.dumps("You may only perform this action upto maximum 180 number of times within 3600 seconds")),
            httpx.Response(200, json=PARSED_OK),
        )
        backend = make_backend(settings, handler)

        await backend.recognize(jpeg(1000), ["spa"])

        assert len(handler.requests) == 2

    def test_default_backoff_is_one_second(self):
        """Retries wait a fixed second between attempts unless configured."""
        assert Settings.model_fields["remote_ocr_retry_wait_seconds"].default == 1.0

        backend = OcrSpaceBackend(Settings(ocr_space_api_key="k"))
        policy = backend._retrying(ProgressReporter())

        assert isinstance(policy.wait, wait_fixed)
        for attempt_number in (1, 2):
            state = MagicMock(attempt_number=attempt_number)
            assert policy.wait(state) == 1.0


class TestOcrSpaceCredentials:
    """Tests for credential failures."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [401, 403])
    async def test_rejected_key_is_not_retried(self, settings, status_code):
        handler = RecordingHandler(httpx.Response(status_code))
        backend = make_backend(settings, handler)

        with pytest.raises(AuthenticationFailedError):
            await backend.recognize(jpeg(1000), ["spa"])
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_missing_key_fails_before_sending(self):
        handler = RecordingHandler(httpx.Response(200, json=PARSED_OK))
        backend = make_backend(Settings(ocr_space_api_key=""), handler)

        with pytest.raises(AuthenticationFailedError):
            await backend.recognize(jpeg(1000), ["spa"])
        with pytest.raises(AuthenticationFailedError):
            await backend.open()
        assert handler.requests == []


class TestOcrSpacePayloadCeiling:
    """Tests for the payload size ceiling."""

    @pytest.mark.asyncio
    async def test_oversized_image_compressed_once_then_sent(self, settings):
        handler = RecordingHandler(httpx.Response(200, json=PARSED_OK))
        backend = make_backend(settings, handler)

        with patch(
            "extracto.services.extraction.rasterizer.compress_image",
            return_value=jpeg(MIB // 2),
        ) as mock_compress:
            await backend.recognize(jpeg(2 * MIB), ["spa"])

        mock_compress.assert_called_once()
        assert mock_compress.call_args.args[1] == MIB
        assert len(handler.requests) == 1
        assert len(handler.requests[0].content) < MIB

    @pytest.mark.asyncio
    async def test_still_oversized_after_compression_never_sent(self, settings):
        handler = RecordingHandler(httpx.Response(200, json=PARSED_OK))
        backend = make_backend(settings, handler)

        with patch(
            "extracto.services.extraction.rasterizer.compress_image",
            return_value=jpeg(MIB + 1),
        ) as mock_compress:
            with pytest.raises(PayloadTooLargeError):
                await backend.recognize(jpeg(2 * MIB), ["spa"])

        mock_compress.assert_called_once()
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_compression_runs_off_the_event_loop(self, settings):
        handler = RecordingHandler(httpx.Response(200, json=PARSED_OK))
        backend = make_backend(settings, handler)
        compressed = jpeg(MIB // 2)
        threads: list[int] = []

        def compress(image, max_bytes, quality):
            threads.append(threading.get_ident())
            return compressed

        with patch(
            "extracto.services.extraction.rasterizer.compress_image",
            side_effect=compress,
        ):
            await backend.recognize(jpeg(2 * MIB), ["spa"])

        assert threads and threads[0] != threading.get_ident()
        assert len(handler.requests) == 1
        assert len(handler.requests[0].content) < MIB

    @pytest.mark.asyncio
    async def test_under_ceiling_not_compressed(self, settings):
        handler = RecordingHandler(httpx.Response(200, json=PARSED_OK))
        backend = make_backend(settings, handler)

        with patch("extracto.services.extraction.rasterizer.compress_image") as mock_compress:
            await backend.recognize(jpeg(MIB), ["spa"])

        mock_compress.assert_not_called()

    def test_premium_tier_ceiling(self):
        backend = OcrSpaceBackend(Settings(ocr_space_api_key="k", ocr_space_premium=True))

        assert backend.max_bytes == 5 * MIB


class TestOcrSpaceSession:
    """Tests for client lifecycle."""

    @pytest.mark.asyncio
    async def test_owned_client_closed(self, settings):
        backend = OcrSpaceBackend(settings)

        async with backend.session():
            assert backend._client is not None

        assert backend._client is None

    @pytest.mark.asyncio
    async def test_injected_client_left_open(self, settings):
        client = httpx.AsyncClient(transport=httpx.MockTransport(RecordingHandler(httpx.Response(200))))
        backend = OcrSpaceBackend(settings, client=client)

        await backend.close()

        assert not client.is_closed
        await client.aclose()
