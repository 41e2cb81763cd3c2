"""
AI Model Factory

Registry of LLM classes by provider name, used to build the model behind
the prediction oracle from settings.
"""

from typing import Dict, List, Type

from tradesim.infrastructure.ai_providers.base import BaseLLM, ModelProvider
from tradesim.infrastructure.ai_providers.openrouter_model import OpenRouterModel
from tradesim.core.logger import get_logger

logger = get_logger(__name__)


class ModelFactory:
    """
    AI Model Factory

    Each instance owns its registry; OpenRouter is registered by default.

    Usage:
        model = ModelFactory().create_model("openrouter", api_key=settings.ORACLE_API_KEY)
    """

    DEFAULT_MODELS = {
        ModelProvider.OPENROUTER.value: "anthropic/claude-3-haiku",
    }

    def __init__(self):
        self._registry: Dict[str, Type[BaseLLM]] = {
            ModelProvider.OPENROUTER.value: OpenRouterModel,
        }

    def register(self, provider: str, model_class: Type[BaseLLM]) -> None:
        """Add or replace the class used for a provider name."""
        self._registry[provider.lower()] = model_class

    def create_model(
        self,
        provider: str,
        model_name: str = "",
        api_key: str = "",
        **kwargs
    ) -> BaseLLM:
        """
        Instantiate a model for provider.

        model_name falls back to the provider's default model.

        Raises:
            ValueError: unknown provider, no model name, or the model class
                refused the configuration (e.g. missing API key)
        """
        key = provider.lower()
        model_class = self._registry.get(key)
        if model_class is None:
            raise ValueError(
                f"Unknown model provider: {provider}. Available providers: {self.get_available_providers()}"
            )

        model_name = model_name or self.DEFAULT_MODELS.get(key, "")
        if not model_name:
            raise ValueError(f"No model name given and no default for provider: {provider}")

        try:
            model = model_class(model_name=model_name, api_key=api_key, **kwargs)
        except Exception as e:
            logger.error(f"Could not create {key} model {model_name}: {str(e)}")
            raise ValueError(f"Failed to create {key} model: {str(e)}")

        logger.info(f"Created {key} model: {model_name}")
        return model

    def get_available_providers(self) -> List[str]:
        return list(self._registry.keys())
