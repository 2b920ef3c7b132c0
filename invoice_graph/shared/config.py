"""Runtime configuration for invoice extraction.

Every setting can be overridden through an ``APP_``-prefixed environment
variable or a local ``.env`` file (pydantic-settings):
https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Extraction settings.

    Example: APP_EXTRACTION_PROVIDER=ollama APP_OLLAMA_MODEL=llama3.1:8b
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Level passed to logging.basicConfig by the command-line script",
    )

    # Tesseract OCR
    tesseract_lang: str = Field(
        default="eng",
        description="Tesseract language pack",
    )
    tesseract_psm: int = Field(
        default=6,
        description="Tesseract page segmentation mode (6 = single uniform block of text)",
        ge=0,
        le=13,
    )
    ocr_preprocess: bool = Field(
        default=True,
        description="Grayscale, sharpen and threshold images before OCR",
    )
    ocr_threshold: int = Field(
        default=128,
        description="Binarization threshold used by image preprocessing",
        ge=0,
        le=255,
    )

    # PDF handling
    ocr_render_dpi: int = Field(
        default=200,
        description="Resolution used when rendering PDF pages for OCR",
        gt=0,
    )
    min_text_chars: int = Field(
        default=50,
        description="PDF text shorter than this is treated as a scan and OCR'd page by page",
        ge=0,
    )

    # LLM extraction
    extraction_provider: Literal["openai", "ollama"] = Field(
        default="openai",
        description="Extraction provider: openai (cloud API), ollama (self-hosted LLM)",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI chat model used for extraction",
    )
    ollama_base_url: str = Field(
        default="http://localhost:11434",
        description="Base URL of the Ollama server",
    )
    ollama_model: str = Field(
        default="qwen2.5:7b",
        description="Ollama model tag, e.g. qwen2.5:7b or llama3.1:8b",
    )
    ollama_timeout: float = Field(
        default=120.0,
        description="Seconds to wait for an Ollama generation",
        gt=0,
    )
    llm_max_tokens: int = Field(
        default=2048,
        description="Upper bound on generated tokens per extraction",
        gt=0,
    )

    # Processing policy
    llm_fallback_to_ocr: bool = Field(
        default=True,
        description="Re-run a document through the regex/OCR path when LLM extraction fails",
    )


def get_settings() -> Settings:
    """Build settings from the environment and ``.env``."""
    return Settings()
