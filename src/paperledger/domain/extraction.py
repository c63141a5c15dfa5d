"""Extraction engine - turns raw document bytes into structured data."""

import json
import logging
import time
from dataclasses import replace
from datetime import datetime
from typing import Any

from ..config import ExtractionConfig
from ..exceptions import ExtractionError, ExtractionValidationError
from ..ports.content import ContentPort
from ..ports.repository import DocumentRepository
from ..ports.understanding import UnderstandingPort
from .models import (
    VALIDATED_AT_KEY,
    Document,
    DocumentStatus,
    DocumentType,
    LineItem,
    ProcessingAttempt,
    to_decimal,
)
from .prompts import INVOICE_EXTRACTION_PROMPT

logger = logging.getLogger(__name__)

VALIDATION_FAILED = "Extracted data validation failed"


def parse_json_response(text: str | None) -> dict[str, Any]:
    """Parse a JSON object from model output.

    Markdown code fences and text around the outermost braces are dropped.
    Anything that is not a JSON object yields an empty dict.
    """
    if not text:
        return {}

    if "```" in text:
        text = text.replace("```json", "").replace("```", "")

    first_brace = text.find("{")
    last_brace = text.rfind("}")
    if first_brace != -1 and last_brace > first_brace:
        text = text[first_brace : last_brace + 1]

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        logger.warning(f"Invalid JSON response: {text[:200]}")
        return {}

    if not isinstance(data, dict):
        logger.warning(f"Expected JSON object, got {type(data).__name__}")
        return {}
    return data


def check_extracted_data(
    data: dict[str, Any], document_type: DocumentType, config: ExtractionConfig
) -> None:
    """Acceptance check for a raw extraction result.

    Raises ExtractionValidationError naming the first problem found.
    """
    if not data:
        raise ExtractionValidationError(f"{VALIDATION_FAILED}: empty result")

    if document_type == DocumentType.INVOICE:
        for key in config.required_keys:
            value = data.get(key)
            if value is None or not str(value).strip():
                raise ExtractionValidationError(
                    f"{VALIDATION_FAILED}: missing {key}"
                )

    for key in config.numeric_keys:
        value = data.get(key)
        if value is not None and to_decimal(value, None) is None:
            raise ExtractionValidationError(
                f"{VALIDATION_FAILED}: {key} is not numeric ({value!r})"
            )

    if "line_items" in data and not isinstance(data["line_items"], list):
        raise ExtractionValidationError(f"{VALIDATION_FAILED}: line_items is not a list")


class ExtractionEngine:
    """Runs one extraction attempt per call and records its outcome.

    Failures never propagate: they are written to the document and the
    attempt, and callers inspect the document status.
    """

    def __init__(
        self,
        content: ContentPort,
        understanding: UnderstandingPort,
        repository: DocumentRepository,
        config: ExtractionConfig | None = None,
    ) -> None:
        self.content = content
        self.understanding = understanding
        self.repository = repository
        self.config = config or ExtractionConfig()

    def process(self, document: Document) -> None:
        attempt = self.repository.create_attempt(document)
        start = time.monotonic()
        logger.info(
            f"Processing document {document.id} ({document.type.value}), "
            f"attempt {attempt.attempt_number}"
        )

        try:
            data = self.extract(document)
            check_extracted_data(data, document.type, self.config)
            self._save_processed_data(document, data)
        except ExtractionError as e:
            self._fail(document, attempt, start, str(e))
            return
        except Exception as e:
            logger.exception(f"Unexpected extraction error for document {document.id}")
            self._fail(document, attempt, start, str(e) or type(e).__name__)
            return

        attempt.finish_success(_elapsed_ms(start), dict(data))
        self.repository.save_attempt(attempt)
        logger.info(
            f"Document {document.id} processed in {attempt.processing_time_ms} ms"
        )

    def extract(self, document: Document) -> dict[str, Any]:
        """Fetch the document content and derive a raw record from it."""
        payload = self.content.fetch(document.file_path)

        if document.type == DocumentType.INVOICE:
            return self._extract_invoice(payload, document.mime_type)

        return self._extract_generic(payload, document.type)

    def _extract_invoice(self, payload: bytes, mime_type: str) -> dict[str, Any]:
        text = self.understanding.complete(INVOICE_EXTRACTION_PROMPT, payload, mime_type)
        return parse_json_response(text)

    def _extract_generic(self, payload: bytes, document_type: DocumentType) -> dict[str, Any]:
        preview = payload.decode("utf-8", errors="replace")[: self.config.preview_length]
        return {
            "document_type": document_type.value,
            "extracted_text": preview,
            "file_size": len(payload),
        }

    def _save_processed_data(self, document: Document, data: dict[str, Any]) -> None:
        now = datetime.now()

        structured = dict(document.structured_data or {})
        structured.update(data)
        structured[VALIDATED_AT_KEY] = now.isoformat()

        if "line_items" in data:
            raw_items = data["line_items"]
            items = [LineItem.from_mapping(item) for item in raw_items if isinstance(item, dict)]
            if len(items) != len(raw_items):
                logger.warning(
                    f"Skipped {len(raw_items) - len(items)} malformed line items "
                    f"on document {document.id}"
                )
            self.repository.replace_line_items(document.id, items)

        # The caller's document only changes once the record is stored.
        processed = replace(
            document,
            structured_data=structured,
            status=DocumentStatus.PROCESSED,
            processed_at=now,
            processing_error=None,
        )
        self.repository.save_document(processed)

        document.structured_data = processed.structured_data
        document.status = processed.status
        document.processed_at = processed.processed_at
        document.processing_error = processed.processing_error

    def _fail(
        self, document: Document, attempt: ProcessingAttempt, start: float, message: str
    ) -> None:
        logger.error(f"Document processing failed: {document.id}: {message}")

        attempt.finish_failure(_elapsed_ms(start), message)
        self.repository.save_attempt(attempt)

        document.status = DocumentStatus.FAILED
        document.processing_error = message
        self.repository.save_document(document)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
