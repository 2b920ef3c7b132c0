"""Invoice extraction through the OpenAI chat completions API.

The model is forced to call ``extract_invoice_data``; the call's arguments
string is returned unparsed so the normalizer can repair it. Connection
errors, timeouts and rate limits are retried with exponential backoff.
"""

import logging
import os
from typing import Any

from openai import APIConnectionError, APITimeoutError, OpenAI, RateLimitError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from invoice_graph.extraction.base import ExtractionProvider, ExtractionResult
from invoice_graph.extraction.prompts import (
    FUNCTION_NAME,
    SYSTEM_MESSAGE,
    build_extraction_prompt,
    function_schema,
)
from invoice_graph.shared.config import Settings

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (APIConnectionError, APITimeoutError, RateLimitError)


class OpenAIExtractionProvider(ExtractionProvider):
    """Provider backed by OpenAI function calling.

    Reads the API key from OPENAI_API_KEY on every call, so a key exported
    after construction is picked up.
    """

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        self._client: OpenAI | None = None

    @property
    def provider_name(self) -> str:
        return "openai"

    def is_available(self) -> bool:
        return os.getenv("OPENAI_API_KEY") is not None

    def _failure(self, error: str) -> ExtractionResult:
        return ExtractionResult(
            raw_response=None, success=False, error=error, provider=self.provider_name
        )

    def _client_for(self, api_key: str) -> OpenAI:
        if self._client is None or self._client.api_key != api_key:
            self._client = OpenAI(api_key=api_key)
        return self._client

    def extract_invoice_fields(self, document_text: str) -> ExtractionResult:
        """Ask the model for the invoice JSON of ``document_text``.

        Args:
            document_text: Text recovered from the document

        Returns:
            ExtractionResult with the function-call arguments (or the plain
            message content when the model ignored the function)
        """
        api_key = os.getenv("OPENAI_API_KEY")
        if api_key is None:
            return self._failure("OPENAI_API_KEY environment variable not set")
        if not document_text or not document_text.strip():
            return self._failure("Empty document text provided")

        try:
            response = self._complete_with_retry(
                self._client_for(api_key), build_extraction_prompt(document_text)
            )
        except Exception as e:
            logger.error(f"OpenAI extraction with {self.settings.openai_model} failed: {e}")
            return self._failure(f"Extraction failed: {str(e)}")

        message = response.choices[0].message
        if message.function_call is not None:
            raw_response = message.function_call.arguments
        elif message.content:
            logger.warning("Model answered in message content instead of the function call")
            raw_response = message.content
        else:
            return self._failure("No function call in API response")

        return ExtractionResult(raw_response=raw_response, success=True, provider=self.provider_name)

    @retry(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        wait=wait_exponential_jitter(initial=1, max=60),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    def _complete_with_retry(self, client: OpenAI, prompt: str) -> Any:
        """One forced function-call completion.

        Raises:
            openai.OpenAIError: After all retry attempts are exhausted
        """
        return client.chat.completions.create(  # type: ignore[call-overload]
            model=self.settings.openai_model,
            messages=[
                {"role": "system", "content": SYSTEM_MESSAGE},
                {"role": "user", "content": prompt},
            ],
            functions=[function_schema()],
            function_call={"name": FUNCTION_NAME},
            temperature=0,
            max_tokens=self.settings.llm_max_tokens,
        )
