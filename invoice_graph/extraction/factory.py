"""Selection of the LLM extraction provider.

The provider named by ``Settings.extraction_provider`` (or an explicit
override) is looked up in a registry that can be extended at runtime.
"""

import logging

from invoice_graph.extraction.base import ExtractionProvider
from invoice_graph.extraction.ollama_provider import OllamaExtractionProvider
from invoice_graph.extraction.openai_provider import OpenAIExtractionProvider
from invoice_graph.shared.config import Settings

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Name to provider class mapping."""

    _providers: dict[str, type[ExtractionProvider]] = {
        "openai": OpenAIExtractionProvider,
        "ollama": OllamaExtractionProvider,
    }

    @classmethod
    def register(cls, name: str, provider_class: type[ExtractionProvider]) -> None:
        """Register a provider under ``name``, replacing any existing entry."""
        cls._providers[name] = provider_class
        logger.info(f"Registered extraction provider: {name}")

    @classmethod
    def get_provider_class(cls, name: str) -> type[ExtractionProvider]:
        """Look up a provider class.

        Raises:
            ValueError: If no provider is registered under ``name``
        """
        try:
            return cls._providers[name]
        except KeyError:
            available = ", ".join(cls._providers)
            raise ValueError(
                f"Unknown extraction provider: '{name}'. Available providers: {available}"
            ) from None

    @classmethod
    def list_providers(cls) -> list[str]:
        return list(cls._providers)


def create_extraction_provider(settings: Settings, name: str | None = None) -> ExtractionProvider:
    """Instantiate the configured extraction provider.

    Args:
        settings: Application settings
        name: Provider to use instead of ``settings.extraction_provider``

    Returns:
        Provider instance; a warning is logged when it is not available

    Raises:
        ValueError: If the provider name is unknown
    """
    provider_name = name or settings.extraction_provider
    provider = ProviderRegistry.get_provider_class(provider_name)(settings)

    if not provider.is_available():
        logger.warning(
            f"Extraction provider '{provider_name}' is not available. "
            f"Check its configuration (API key, server URL, model)."
        )

    logger.info(f"Created extraction provider: {provider_name}")
    return provider
