"""Hand-off of sanitized statement text to Claude for analysis."""

import logging

import anthropic
from anthropic import AsyncAnthropic

from extracto.config import Settings
from extracto.enums import BankType
from extracto.exceptions import AnalysisError, AuthenticationFailedError

logger = logging.getLogger(__name__)

TRUNCATION_NOTICE = "... [Contenido truncado debido a limitaciones de tamaño]"

SYSTEM_PROMPT = (
    "Eres un asistente financiero especializado en analizar estados bancarios. "
    "Proporciona análisis detallados con: 1) Resumen Financiero conciso, "
    "2) Categorización de gastos, 3) Patrones detectados, "
    "4) Recomendaciones financieras. Usa formato claro y estructurado."
)

USER_PROMPT = (
    "Analiza este estado bancario ({bank_type}) y proporciona un resumen financiero, "
    "la categorización de gastos con montos, los patrones detectados y "
    "recomendaciones accionables. No incluyas información personal sensible.\n\n"
    "Contenido del estado bancario:\n{content}"
)


class StatementAnalyzer:
    """Send sanitized statement text and the bank tag to Claude.

    Only ever receives redacted text. Prompt content is fixed; parsing the
    narrative response is left to the caller.
    """

    def __init__(self, settings: Settings, client: AsyncAnthropic | None = None):
        self.settings = settings
        self.model = settings.claude_model
        self.max_chars = settings.analysis_max_chars
        self._client = client

    def _get_client(self) -> AsyncAnthropic:
        if not self.settings.anthropic_api_key:
            raise AuthenticationFailedError("ANTHROPIC_API_KEY is not configured")
        if self._client is None:
            self._client = AsyncAnthropic(api_key=self.settings.anthropic_api_key)
        return self._client

    def truncate(self, text: str) -> str:
        if len(text) <= self.max_chars:
            return text
        return text[: self.max_chars] + TRUNCATION_NOTICE

    async def analyze(self, text: str, bank_type: BankType) -> str:
        """
        Request a financial analysis of a sanitized statement.

        Args:
            text: Normalized, redacted statement text
            bank_type: Detected issuing bank

        Returns:
            The model's narrative analysis

        Raises:
            AuthenticationFailedError: If the API key is missing or rejected
            AnalysisError: If the API call fails for any other reason
        """
        client = self._get_client()
        content = self.truncate(text)

        logger.info(f"Analyzing {len(content)} chars of {bank_type} statement with {self.model}")

        try:
            response = await client.messages.create(
                model=self.model,
                max_tokens=self.settings.analysis_max_tokens,
                system=SYSTEM_PROMPT,
                messages=[
                    {
                        "role": "user",
                        "content": USER_PROMPT.format(bank_type=bank_type, content=content),
                    }
                ],
            )
        except (anthropic.AuthenticationError, anthropic.PermissionDeniedError) as e:
            raise AuthenticationFailedError(f"Anthropic rejected the API key: {e}") from e
        except anthropic.APIError as e:
            raise AnalysisError(f"Analysis request failed: {e}") from e

        analysis = "".join(block.text for block in response.content if block.type == "text")
        logger.info(f"Received {len(analysis)} char analysis")
        return analysis

    async def close(self) -> None:
        """Close the client and release resources."""
        if self._client is not None:
            await self._client.close()
            self._client = None
