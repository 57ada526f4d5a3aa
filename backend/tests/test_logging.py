"""Tests for structured log output."""

from __future__ import annotations

import logging

import orjson

from docrepo.core.logging import JsonFormatter, ctx


def test_json_formatter_lifts_context_fields() -> None:
    record = logging.LogRecord("docrepo.ocr", logging.WARNING, __file__, 1, "OCR failed for %s", ("doc-1",), None)
    for key, value in ctx(document_id="doc-1", ocr_status="failed").items():
        setattr(record, key, value)

    payload = orjson.loads(JsonFormatter().format(record))

    assert payload["message"] == "OCR failed for doc-1"
    assert payload["level"] == "WARNING"
    assert payload["logger"] == "docrepo.ocr"
    assert payload["document_id"] == "doc-1"
    assert payload["ocr_status"] == "failed"
    assert payload["timestamp"].endswith("+00:00")
