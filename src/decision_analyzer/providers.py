"""
Model provider adapters for the analysis pipeline.

A provider turns (system instruction, user prompt) into free-form text. The
orchestrator only depends on the ``ModelProvider`` interface, so swapping the
endpoint never changes the prompt or the normalization contract.
"""

from abc import ABC, abstractmethod
from typing import Optional

from pydantic_ai import Agent
from pydantic_ai.models import Model
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.settings import ModelSettings

from .app_logging import get_logger
from .config import ProviderConfig, SamplingConfig
from .exceptions import ConfigurationError

logger = get_logger('providers')


class ModelProvider(ABC):
    """A single generative-model endpoint."""

    name: str

    @abstractmethod
    async def complete(self, system_prompt: str, prompt: str) -> str:
        """Send one system + user prompt pair and return the response text."""


class PydanticAIProvider(ModelProvider):
    """
    Provider backed by a pydantic-ai model.

    Builds an ``OpenAIChatModel`` against any OpenAI-compatible endpoint
    (Groq, OpenRouter, ...) unless an explicit model is injected.
    """

    def __init__(
        self,
        config: ProviderConfig,
        sampling: Optional[SamplingConfig] = None,
        model: Optional[Model] = None,
    ):
        """
        Initialize provider.

        Args:
            config: Endpoint settings (name, model, base URL, API key)
            sampling: Temperature and output budget; defaults if None
            model: Optional pre-built pydantic-ai model (skips endpoint wiring)
        """
        self.config = config
        self.name = config.name
        self.sampling = sampling or SamplingConfig()
        self._model = model

        logger.info(f"PydanticAIProvider initialized: {config.describe()}")

    def _build_model(self) -> Model:
        api_key = self.config.resolve_api_key()
        if not api_key:
            raise ConfigurationError(
                f"No API key for provider '{self.name}'. "
                f"Set {self.config.api_key_env or 'api_key'} in the environment or config."
            )
        provider = OpenAIProvider(base_url=self.config.base_url, api_key=api_key)
        return OpenAIChatModel(self.config.model_name, provider=provider)

    @property
    def model(self) -> Model:
        """The pydantic-ai model, created on first use."""
        if self._model is None:
            self._model = self._build_model()
        return self._model

    async def complete(self, system_prompt: str, prompt: str) -> str:
        agent = Agent(
            self.model,
            instructions=system_prompt,
            model_settings=ModelSettings(
                temperature=self.sampling.temperature,
                max_tokens=self.sampling.max_output_tokens,
            ),
        )
        result = await agent.run(prompt)
        return result.output

    def __repr__(self) -> str:
        return f"PydanticAIProvider(name={self.name}, model={self.config.model_name})"
