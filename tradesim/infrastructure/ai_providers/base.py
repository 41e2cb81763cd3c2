"""
BaseLLM - Abstract Base Class for LLM Integrations

Unified interface for the LLM providers that back the prediction oracle.
"""

import json
from abc import ABC, abstractmethod
from typing import Dict, Optional, Any
from decimal import Decimal
from enum import Enum


class ModelProvider(str, Enum):
    """LLM provider types"""
    OPENROUTER = "openrouter"


class ModelError(Exception):
    """Base exception for model errors"""
    pass


class ModelConnectionError(ModelError):
    """Connection error with model provider"""
    pass


class ModelAuthenticationError(ModelError):
    """Authentication error with model provider"""
    pass


class ModelRateLimitError(ModelError):
    """Rate limit exceeded"""
    pass


def extract_json_object(response_text: str) -> Dict[str, Any]:
    """
    Parse a JSON object out of an LLM reply.

    Strips markdown code fences when present.

    Raises:
        ModelError: reply is not a JSON object
    """
    text = response_text.strip()

    if "```json" in text:
        text = text.split("```json")[1].split("```")[0].strip()
    elif "```" in text:
        text = text.split("```")[1].split("```")[0].strip()

    try:
        result = json.loads(text)
    except json.JSONDecodeError as e:
        raise ModelError(f"Invalid JSON response: {str(e)}")

    if not isinstance(result, dict):
        raise ModelError("JSON response is not an object")

    return result


class BaseLLM(ABC):
    """
    Abstract base class for LLM integrations.

    All LLM providers must implement this interface.

    Usage:
        class OpenRouterModel(BaseLLM):
            async def generate_response(self, prompt, **kwargs):
                ...

        model = OpenRouterModel(api_key="key", model_name="anthropic/claude-3-haiku")
        response = await model.generate_response("Should BTC long be closed?")
        cost = model.calculate_cost(input_tokens=100, output_tokens=50)
    """

    def __init__(
        self,
        provider: ModelProvider,
        model_name: str,
        api_key: str,
        **kwargs
    ):
        """
        Initialize LLM model.

        Args:
            provider: Model provider
            model_name: Model name (e.g., "anthropic/claude-3-haiku")
            api_key: API key for the provider
            **kwargs: Additional provider-specific config
        """
        self.provider = provider
        self.model_name = model_name
        self.api_key = api_key
        self.config = kwargs

        # Cost tracking
        self.total_input_tokens = 0
        self.total_output_tokens = 0
        self.total_cost_usd = Decimal("0")

    @abstractmethod
    async def generate_response(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> str:
        """
        Generate text response from model.

        Raises:
            ModelConnectionError: Connection failed
            ModelAuthenticationError: Invalid API key
            ModelRateLimitError: Rate limit exceeded
        """
        pass

    @abstractmethod
    async def generate_structured_output(
        self,
        prompt: str,
        schema: Dict[str, Any],
        system_prompt: Optional[str] = None,
        temperature: float = 0.3,
        **kwargs
    ) -> Dict[str, Any]:
        """
        Generate structured output (JSON) from model.

        Args:
            prompt: User prompt/question
            schema: JSON schema for output format
            system_prompt: System instructions (optional)
            temperature: Sampling temperature (0.0-2.0)

        Returns:
            Structured output (dict matching schema)

        Raises:
            ModelError: Generation failed or reply was not JSON
        """
        pass

    @abstractmethod
    def calculate_cost(
        self,
        input_tokens: int,
        output_tokens: int
    ) -> Decimal:
        """Calculate cost in USD for token usage."""
        pass

    def get_model_info(self) -> Dict[str, Any]:
        """Get model information."""
        return {
            "provider": self.provider.value,
            "model_name": self.model_name,
            "total_input_tokens": self.total_input_tokens,
            "total_output_tokens": self.total_output_tokens,
            "total_cost_usd": float(self.total_cost_usd),
        }

    def track_usage(
        self,
        input_tokens: int,
        output_tokens: int
    ):
        """
        Track token usage and cost.

        Args:
            input_tokens: Input tokens used
            output_tokens: Output tokens used
        """
        self.total_input_tokens += input_tokens
        self.total_output_tokens += output_tokens
        self.total_cost_usd += self.calculate_cost(input_tokens, output_tokens)

    def reset_usage(self):
        """Reset usage tracking"""
        self.total_input_tokens = 0
        self.total_output_tokens = 0
        self.total_cost_usd = Decimal("0")

    def __str__(self) -> str:
        return f"{self.provider.value}:{self.model_name}"
