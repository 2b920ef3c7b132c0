"""Invoice extraction through a self-hosted Ollama server.

The prompt goes to ``/api/generate`` in JSON mode and the generated text is
returned untouched for the normalizer. Connection drops and timeouts are
retried; HTTP status errors are not.
See: https://github.com/ollama/ollama/blob/main/docs/api.md
"""

import logging
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from invoice_graph.extraction.base import ExtractionProvider, ExtractionResult
from invoice_graph.extraction.prompts import build_extraction_prompt
from invoice_graph.shared.config import Settings

logger = logging.getLogger(__name__)


def _base_name(tag: str) -> str:
    """``qwen2.5:7b`` -> ``qwen2.5``."""
    return tag.split(":", 1)[0]


class OllamaExtractionProvider(ExtractionProvider):
    """Provider for local models such as Qwen2.5, Llama3 or Mistral."""

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._model = settings.ollama_model
        self._client = httpx.Client(timeout=settings.ollama_timeout)

    @property
    def provider_name(self) -> str:
        return "ollama"

    def is_available(self) -> bool:
        """True when the server answers and has the configured model pulled."""
        try:
            response = self._client.get(f"{self._base_url}/api/tags")
        except httpx.HTTPError:
            return False
        if response.status_code != 200:
            return False
        pulled = {_base_name(model.get("name", "")) for model in response.json().get("models", [])}
        return _base_name(self._model) in pulled

    def _failure(self, error: str) -> ExtractionResult:
        return ExtractionResult(
            raw_response=None, success=False, error=error, provider=self.provider_name
        )

    def extract_invoice_fields(self, document_text: str) -> ExtractionResult:
        """Generate the invoice JSON for ``document_text``.

        Args:
            document_text: Text recovered from the document

        Returns:
            ExtractionResult with the generated text, or the reason it failed
        """
        if not document_text or not document_text.strip():
            return self._failure("Empty document text provided")

        try:
            generated = self._generate_with_retry(build_extraction_prompt(document_text))
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Ollama extraction with {self._model} failed: {e}")
            return self._failure(f"Extraction failed: {str(e)}")

        if not generated.strip():
            return self._failure("Empty response from Ollama")

        logger.debug(f"Ollama returned {len(generated)} characters")
        return ExtractionResult(raw_response=generated, success=True, provider=self.provider_name)

    def _payload(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self._model,
            "prompt": prompt,
            "stream": False,
            "format": "json",
            "options": {
                "temperature": 0,
                "num_predict": self.settings.llm_max_tokens,
            },
        }

    @retry(
        retry=retry_if_exception_type((httpx.TransportError, httpx.TimeoutException)),
        wait=wait_exponential_jitter(initial=1, max=30),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    def _generate_with_retry(self, prompt: str) -> str:
        """POST one non-streaming generation.

        Raises:
            httpx.HTTPError: On a status error, or once retries are exhausted
            ValueError: If the body is not JSON
        """
        response = self._client.post(f"{self._base_url}/api/generate", json=self._payload(prompt))
        response.raise_for_status()
        body: dict[str, Any] = response.json()
        return str(body.get("response") or "")
