"""Unit tests for extraction base classes and interfaces.

Tests cover:
- Abstract base class enforcement
- ExtractionResult model validation
"""

import pytest

from invoice_graph.extraction.base import ExtractionProvider, ExtractionResult
from invoice_graph.shared.config import Settings


def test_extraction_result_with_success() -> None:
    result = ExtractionResult(raw_response='{"Product names": []}', success=True, provider="test")

    assert result.success is True
    assert result.raw_response == '{"Product names": []}'
    assert result.error is None
    assert result.provider == "test"


def test_extraction_result_with_failure() -> None:
    result = ExtractionResult(raw_response=None, success=False, error="Test error", provider="test")

    assert result.success is False
    assert result.raw_response is None
    assert result.error == "Test error"


def test_extraction_provider_is_abstract(settings: Settings) -> None:
    """ExtractionProvider cannot be instantiated directly."""
    with pytest.raises(TypeError, match="Can't instantiate abstract class"):
        ExtractionProvider(settings)  # type: ignore[abstract]


def test_extraction_provider_requires_implementation(settings: Settings) -> None:
    """Concrete providers must implement every abstract member."""

    class IncompleteProvider(ExtractionProvider):
        def extract_invoice_fields(self, document_text: str) -> ExtractionResult:
            return ExtractionResult(raw_response=None, success=False, provider="incomplete")

        def is_available(self) -> bool:
            return True

    with pytest.raises(TypeError, match="Can't instantiate abstract class"):
        IncompleteProvider(settings)  # type: ignore[abstract]


def test_complete_provider_keeps_settings(settings: Settings) -> None:
    class EchoProvider(ExtractionProvider):
        def extract_invoice_fields(self, document_text: str) -> ExtractionResult:
            return ExtractionResult(raw_response=document_text, success=True, provider="echo")

        def is_available(self) -> bool:
            return True

        @property
        def provider_name(self) -> str:
            return "echo"

    provider = EchoProvider(settings)

    assert provider.settings is settings
    assert provider.extract_invoice_fields("abc").raw_response == "abc"
