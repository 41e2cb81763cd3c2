"""
OpenRouter Model

Chat-completions client for OpenRouter (OpenAI-compatible API) over
aiohttp. Backs the LLM prediction oracle, which only needs a short JSON
answer per request, so every call is a single POST with a total timeout and
no retry.
"""

import json
import aiohttp
from typing import Any, Dict, List, Optional
from decimal import Decimal

from tradesim.infrastructure.ai_providers.base import (
    BaseLLM,
    ModelProvider,
    ModelError,
    ModelConnectionError,
    ModelAuthenticationError,
    ModelRateLimitError,
    extract_json_object,
)
from tradesim.core.logger import get_logger

logger = get_logger(__name__)

PER_MILLION = Decimal("1000000")


class OpenRouterModel(BaseLLM):
    """
    OpenRouter Model

    Usage:
        model = OpenRouterModel(model_name="anthropic/claude-3-haiku", api_key="sk-or-...")
        answer = await model.generate_structured_output(prompt, schema=LLMPredictionOracle.SCHEMA)
    """

    BASE_URL = "https://openrouter.ai/api/v1"

    # USD per 1M tokens
    PRICING = {
        "anthropic/claude-3-haiku": {"input": Decimal("0.25"), "output": Decimal("1.25")},
        "openai/gpt-4o-mini": {"input": Decimal("0.15"), "output": Decimal("0.60")},
        "meta-llama/llama-3.1-8b-instruct:free": {"input": Decimal("0"), "output": Decimal("0")},
    }

    def __init__(
        self,
        model_name: str = "anthropic/claude-3-haiku",
        api_key: str = "",
        request_timeout: float = 10.0,
        **kwargs
    ):
        """
        Args:
            model_name: OpenRouter model id
            api_key: OpenRouter API key (required)
            request_timeout: Total seconds allowed for one HTTP call
        """
        if not api_key:
            raise ModelAuthenticationError("OpenRouter API key is required")

        super().__init__(
            provider=ModelProvider.OPENROUTER,
            model_name=model_name,
            api_key=api_key,
            **kwargs
        )

        self.timeout = aiohttp.ClientTimeout(total=request_timeout)
        self.headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "X-Title": kwargs.get("app_name", "Tradesim Trading Bot"),
        }

        logger.info(f"OpenRouter model ready: {model_name} (timeout {request_timeout}s)")

    # ==================== GENERATION ====================

    async def generate_response(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> str:
        """Single chat completion; returns the assistant message text."""
        payload: Dict[str, Any] = {
            "model": self.model_name,
            "messages": self._build_messages(prompt, system_prompt),
            "temperature": temperature,
            **kwargs
        }
        if max_tokens:
            payload["max_tokens"] = max_tokens

        data = await self._chat_completion(payload)
        self._record_usage(data)

        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise ModelError("OpenRouter response had no message content")

    async def generate_structured_output(
        self,
        prompt: str,
        schema: Dict[str, Any],
        system_prompt: Optional[str] = None,
        temperature: float = 0.3,
        **kwargs
    ) -> Dict[str, Any]:
        """
        Ask for a JSON object matching schema.

        The schema is appended to the system prompt and JSON mode is
        requested; fenced replies are still accepted.
        """
        schema_instructions = (
            "Respond with a single JSON object matching this schema and nothing else:\n"
            f"{json.dumps(schema, indent=2)}"
        )
        system = f"{system_prompt}\n\n{schema_instructions}" if system_prompt else schema_instructions

        reply = await self.generate_response(
            prompt=prompt,
            system_prompt=system,
            temperature=temperature,
            response_format={"type": "json_object"},
            **kwargs
        )
        return extract_json_object(reply)

    def calculate_cost(self, input_tokens: int, output_tokens: int) -> Decimal:
        """USD cost from the PRICING table; unknown models are free."""
        pricing = self.PRICING.get(self.model_name)
        if not pricing:
            return Decimal("0")
        return (
            Decimal(input_tokens) * pricing["input"] + Decimal(output_tokens) * pricing["output"]
        ) / PER_MILLION

    # ==================== HTTP ====================

    @staticmethod
    def _build_messages(prompt: str, system_prompt: Optional[str]) -> List[Dict[str, str]]:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return messages

    async def _chat_completion(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST /chat/completions.

        Raises:
            ModelAuthenticationError: 401
            ModelRateLimitError: 429
            ModelError: any other non-200 status
            ModelConnectionError: transport failure
        """
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(
                    f"{self.BASE_URL}/chat/completions",
                    headers=self.headers,
                    json=payload
                ) as response:
                    if response.status == 401:
                        raise ModelAuthenticationError("OpenRouter rejected the API key")
                    if response.status == 429:
                        raise ModelRateLimitError("OpenRouter rate limit exceeded")
                    if response.status != 200:
                        body = await response.text()
                        raise ModelError(f"OpenRouter returned {response.status}: {body[:200]}")
                    return await response.json()
        except aiohttp.ClientError as e:
            logger.error(f"OpenRouter request failed: {str(e)}")
            raise ModelConnectionError(f"OpenRouter connection failed: {str(e)}")

    def _record_usage(self, data: Dict[str, Any]) -> None:
        usage = data.get("usage") if isinstance(data, dict) else None
        if usage:
            self.track_usage(usage.get("prompt_tokens", 0), usage.get("completion_tokens", 0))
