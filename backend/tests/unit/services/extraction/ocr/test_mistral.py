"""Tests for the Mistral OCR backend."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from extracto.config import Settings
from extracto.exceptions import AuthenticationFailedError, RecognitionError
from extracto.services.extraction.models import Bitmap
from extracto.services.extraction.ocr.mistral import MistralOcrBackend


class FakeSDKError(Exception):
    """Stand-in for SDK errors carrying an HTTP status."""

    def __init__(self, status_code: int):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


def mock_mistral(process_async: AsyncMock) -> MagicMock:
    """Patchable Mistral class whose async context yields a client."""
    client = MagicMock()
    client.ocr.process_async = process_async
    mistral_cls = MagicMock()
    mistral_cls.return_value.__aenter__.return_value = client
    mistral_cls.return_value.__aexit__.return_value = False
    return mistral_cls


def ocr_response(*markdowns: str) -> MagicMock:
    response = MagicMock()
    response.pages = [MagicMock(markdown=md) for md in markdowns]
    return response


@pytest.fixture
def bitmap():
    return Bitmap(data=b"\xff\xd8jpeg", mime_type="image/jpeg", width=10, height=10)


@pytest.fixture
def backend():
    return MistralOcrBackend(
        Settings(mistral_api_key="test-mistral-key", remote_ocr_retry_wait_seconds=0)
    )


class TestMistralOcrBackend:
    """Tests for MistralOcrBackend."""

    @pytest.mark.asyncio
    async def test_sends_data_url_and_joins_pages(self, backend, bitmap):
        process = AsyncMock(return_value=ocr_response("# ESTADO DE CUENTA", "SALDO 1,234.56"))

        with patch(
            "extracto.services.extraction.ocr.mistral.Mistral", mock_mistral(process)
        ) as mistral_cls:
            result = await backend.recognize(bitmap, ["spa", "eng"])

        mistral_cls.assert_called_once_with(api_key="test-mistral-key")
        document = process.call_args.kwargs["document"]
        assert document["type"] == "image_url"
        assert document["image_url"].startswith("data:image/jpeg;base64,")
        assert process.call_args.kwargs["model"] == "mistral-ocr-latest"
        assert result.text == "# ESTADO DE CUENTA\n\nSALDO 1,234.56"

    @pytest.mark.asyncio
    async def test_retries_transient_failures(self, backend, bitmap):
        process = AsyncMock(
            side_effect=[
                httpx.ReadTimeout("timed out"),
                FakeSDKError(429),
                ocr_response("SALDO"),
            ]
        )

        with patch("extracto.services.extraction.ocr.mistral.Mistral", mock_mistral(process)):
            result = await backend.recognize(bitmap, ["spa"])

        assert process.await_count == 3
        assert result.text == "SALDO"

    @pytest.mark.asyncio
    async def test_exhausted_retries(self, backend, bitmap):
        process = AsyncMock(side_effect=FakeSDKError(503))

        with patch("extracto.services.extraction.ocr.mistral.Mistral", mock_mistral(process)):
            with pytest.raises(RecognitionError):
                await backend.recognize(bitmap, ["spa"])

        assert process.await_count == 3

    @pytest.mark.asyncio
    async def test_rejected_key_not_retried(self, backend, bitmap):
        process = AsyncMock(side_effect=FakeSDKError(401))

        with patch("extracto.services.extraction.ocr.mistral.Mistral", mock_mistral(process)):
            with pytest.raises(AuthenticationFailedError):
                await backend.recognize(bitmap, ["spa"])

        assert process.await_count == 1

    @pytest.mark.asyncio
    async def test_other_errors_are_terminal(self, backend, bitmap):
        process = AsyncMock(side_effect=FakeSDKError(422))

        with patch("extracto.services.extraction.ocr.mistral.Mistral", mock_mistral(process)):
            with pytest.raises(RecognitionError):
                await backend.recognize(bitmap, ["spa"])

        assert process.await_count == 1

    @pytest.mark.asyncio
    async def test_missing_key(self, bitmap):
        backend = MistralOcrBackend(Settings(mistral_api_key=""))

        with pytest.raises(AuthenticationFailedError):
            await backend.open()
        with pytest.raises(AuthenticationFailedError):
            await backend.recognize(bitmap, ["spa"])
