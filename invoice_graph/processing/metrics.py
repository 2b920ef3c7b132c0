"""Prometheus metrics for document processing.

Exposes:
- Extraction runs by source kind, method and status
- Extraction duration histograms
- Document size, OCR page and OCR duration metrics
- LLM to OCR fallbacks

Based on Prometheus best practices:
https://prometheus.io/docs/practices/naming/
"""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Extraction metrics
extraction_runs_total = Counter(
    "invoice_extraction_runs_total",
    "Total document extraction runs",
    ["source_kind", "method", "status"],  # status: success, failed
)

extraction_duration_seconds = Histogram(
    "invoice_extraction_duration_seconds",
    "End-to-end document extraction duration in seconds",
    ["method"],
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

document_size_bytes = Histogram(
    "invoice_document_size_bytes",
    "Processed document size in bytes",
    buckets=(1024, 10240, 102400, 1048576, 10485760),  # 1KB to 10MB
)

# OCR metrics
ocr_pages_total = Counter(
    "invoice_ocr_pages_total",
    "Total pages or images sent to OCR",
    ["status"],  # success, failed
)

ocr_processing_duration_seconds = Histogram(
    "invoice_ocr_processing_duration_seconds",
    "OCR duration per document in seconds",
    buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0),
)

# LLM metrics
llm_fallbacks_total = Counter(
    "invoice_llm_fallbacks_total",
    "LLM extractions that fell back to the OCR/regex path",
)


def get_metrics() -> tuple[bytes, str]:
    """Generate Prometheus metrics in text format.

    Returns:
        Tuple of (metrics bytes, content type)
    """
    return generate_latest(), CONTENT_TYPE_LATEST
