"""
AI Model Integrations

- BaseLLM: Abstract base class
- OpenRouterModel: OpenRouter integration
- ModelFactory: Factory for creating models
"""

from tradesim.infrastructure.ai_providers.base import (
    BaseLLM,
    ModelProvider,
    ModelError,
    ModelConnectionError,
    ModelAuthenticationError,
    ModelRateLimitError,
)
from tradesim.infrastructure.ai_providers.openrouter_model import OpenRouterModel
from tradesim.infrastructure.ai_providers.factory import ModelFactory

__all__ = [
    "BaseLLM",
    "ModelProvider",
    "ModelError",
    "ModelConnectionError",
    "ModelAuthenticationError",
    "ModelRateLimitError",
    "OpenRouterModel",
    "ModelFactory",
]
