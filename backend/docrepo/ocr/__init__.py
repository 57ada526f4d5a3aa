"""OCR pipeline: external runner, state-machine orchestrator, queue health."""

from .health import OcrHealth, ocr_health
from .invoker import ProcessInvoker, ProcessResult
from .orchestrator import OcrOrchestrator
from .runner import EmbeddedTextReader, OcrmypdfRunner, OcrResult, TextExtractor

__all__ = [
    "OcrHealth",
    "ocr_health",
    "ProcessInvoker",
    "ProcessResult",
    "OcrOrchestrator",
    "EmbeddedTextReader",
    "OcrmypdfRunner",
    "OcrResult",
    "TextExtractor",
]
