"""Abstract base class for LLM extraction providers.

A provider sends document text to a model and hands back the raw response
text. Parsing and repair of that text belong to the normalizer.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel

from invoice_graph.shared.config import Settings


class ExtractionResult(BaseModel):
    """Result of one extraction call.

    Attributes:
        raw_response: Model output text, or None if the call failed
        success: Whether the call produced a response
        error: Error message if the call failed
        provider: Name of the provider that handled the call
    """

    raw_response: str | None
    success: bool
    error: str | None = None
    provider: str


class ExtractionProvider(ABC):
    """Interface shared by all extraction providers."""

    def __init__(self, settings: Settings) -> None:
        """Initialize provider with settings.

        Args:
            settings: Application settings
        """
        self.settings = settings

    @abstractmethod
    def extract_invoice_fields(self, document_text: str) -> ExtractionResult:
        """Ask the model for invoice fields and per-item arrays.

        Args:
            document_text: Text recovered from the document

        Returns:
            ExtractionResult carrying the raw model response or an error
        """

    @abstractmethod
    def is_available(self) -> bool:
        """Check whether the provider's prerequisites (API key, server) are met."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier for logging and metrics."""
