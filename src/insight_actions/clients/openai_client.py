"""
OpenAI-compatible chat client for the signal extractor.

Handles:
- Chat completions against any OpenAI-compatible endpoint (Groq by default)
- JSON-object responses decoded into dicts
- Retry logic with exponential backoff
"""

import json
from typing import Any

from openai import AsyncOpenAI
from tenacity import retry, stop_after_attempt, wait_exponential

from ..config import config


def strip_code_fences(content: str) -> str:
    """Remove a surrounding ```json ... ``` fence some models add despite JSON mode."""
    cleaned = content.strip()
    if cleaned.startswith('```'):
        cleaned = cleaned[3:]
        if cleaned[:4].lower() == 'json':
            cleaned = cleaned[4:]
        if cleaned.rstrip().endswith('```'):
            cleaned = cleaned.rstrip()[:-3]
    return cleaned.strip()


class OpenAIClient:
    """
    Async chat client for an OpenAI-compatible endpoint.

    Configuration via environment variables:
    - LLM_API_KEY: Required API key (OPENAI_API_KEY is accepted as a fallback)
    - LLM_BASE_URL: Endpoint base URL (default: Groq's OpenAI-compatible API)
    - LLM_CHAT_MODEL: Chat model (default: llama-3.1-8b-instant)
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        chat_model: str | None = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: API key (defaults to LLM_API_KEY)
            base_url: Endpoint base URL (defaults to LLM_BASE_URL)
            chat_model: Model for chat completions (defaults to LLM_CHAT_MODEL)
        """
        self.api_key = api_key or config.LLM_API_KEY
        if not self.api_key:
            raise ValueError('LLM_API_KEY environment variable is required')

        self.base_url = base_url or config.LLM_BASE_URL
        self.chat_model = chat_model or config.LLM_CHAT_MODEL

        self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
    )
    async def chat_completion(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        temperature: float = 0.0,
        max_tokens: int | None = None,
    ) -> str:
        """
        Get a chat completion response.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Override the default chat model
            temperature: Sampling temperature (0.0 for deterministic)
            max_tokens: Maximum tokens in response

        Returns:
            The assistant's response text
        """
        response = await self._client.chat.completions.create(
            model=model or self.chat_model,
            messages=messages,  # type: ignore
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return response.choices[0].message.content or ''

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
    )
    async def chat_completion_json(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        temperature: float = 0.0,
    ) -> dict[str, Any]:
        """
        Get a chat completion constrained to a single JSON object.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Override the default chat model
            temperature: Sampling temperature

        Returns:
            Decoded JSON object

        Raises:
            ValueError: If the response is not a JSON object
        """
        response = await self._client.chat.completions.create(
            model=model or self.chat_model,
            messages=messages,  # type: ignore
            temperature=temperature,
            response_format={'type': 'json_object'},
        )

        content = strip_code_fences(response.choices[0].message.content or '')
        try:
            payload = json.loads(content)
        except json.JSONDecodeError as e:
            raise ValueError(f'Unexpected non-JSON response: {e}') from e
        if not isinstance(payload, dict):
            raise ValueError('Unexpected JSON response: expected an object')
        return payload

    async def health_check(self) -> dict[str, bool | str]:
        """
        Verify API connectivity with a minimal request.

        Returns:
            Dict with 'healthy' bool and optional 'error' message
        """
        try:
            await self._client.chat.completions.create(
                model=self.chat_model,
                messages=[{'role': 'user', 'content': 'ping'}],
                max_tokens=1,
            )
            return {
                'healthy': True,
                'base_url': self.base_url,
                'chat_model': self.chat_model,
            }
        except Exception as e:
            return {'healthy': False, 'error': str(e)}

    async def close(self):
        """Close the client connection."""
        await self._client.close()
