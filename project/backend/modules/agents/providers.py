"""
Text generation providers.
"""

from typing import Optional, Protocol

from openai import AsyncOpenAI

from shared.config import settings
from shared.errors import RetryableError, ServiceNotConfiguredError
from shared.logging import get_logger

logger = get_logger("agents.providers")


class TextProvider(Protocol):
    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        ...


class OpenAITextProvider:
    """OpenAI chat completions in JSON mode."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0.7,
        timeout: float = 60.0
    ):
        self.api_key = api_key if api_key is not None else settings.openai_api_key
        self.model = model or settings.openai_model
        self.temperature = temperature
        self.timeout = timeout
        self._client: Optional[AsyncOpenAI] = None

    def _get_client(self) -> AsyncOpenAI:
        if not self.api_key:
            raise ServiceNotConfiguredError(
                "AI provider not configured: set OPENAI_API_KEY", code="AI_NOT_CONFIGURED"
            )
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        """
        Request a JSON object completion.

        Returns:
            Raw message content (may still be malformed)

        Raises:
            ServiceNotConfiguredError: If no API key is configured
            RetryableError: If the API call fails
        """
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
            )
        except Exception as e:
            logger.warning(f"OpenAI request failed: {str(e)}", extra={"model": self.model})
            raise RetryableError(f"AI provider request failed: {str(e)}") from e

        content = response.choices[0].message.content if response.choices else None
        return content or ""
