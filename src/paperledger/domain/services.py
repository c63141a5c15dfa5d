"""Domain services - orchestrate extraction and validation."""

import logging
import mimetypes
import uuid
from collections import Counter

from ..ports.content import ContentPort
from ..ports.repository import DocumentRepository
from .extraction import ExtractionEngine
from .models import (
    Document,
    DocumentStatus,
    DocumentType,
    ProcessingOutcome,
    ValidationReport,
)
from .validation import InvoiceValidator

logger = logging.getLogger(__name__)


class ProcessingService:
    """Runs documents through extraction and, for invoices, validation."""

    def __init__(
        self,
        engine: ExtractionEngine,
        validator: InvoiceValidator,
        repository: DocumentRepository,
        content: ContentPort,
    ) -> None:
        self.engine = engine
        self.validator = validator
        self.repository = repository
        self.content = content

    def register(
        self,
        data: bytes,
        filename: str,
        document_type: DocumentType = DocumentType.INVOICE,
        mime_type: str | None = None,
        title: str | None = None,
        prefix: str = "documents",
        status: DocumentStatus = DocumentStatus.PENDING,
    ) -> Document:
        """Store raw bytes and create a pending document for them."""
        handle = self.content.store(f"{prefix}/{uuid.uuid4().hex}-{filename}", data)
        mime_type = mime_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"

        document = Document(
            title=title or filename,
            type=document_type,
            file_path=handle,
            mime_type=mime_type,
            file_size=len(data),
            tenant_id=self.repository.tenant.tenant_id,
            status=status,
        )
        self.repository.add_document(document)
        logger.info(f"Registered document {document.id}: {filename}")
        return document

    def process(self, document: Document) -> ProcessingOutcome:
        """Process a document through the full pipeline.

        Pipeline:
            1. Extraction (one attempt, never raises)
            2. Validation, for processed invoices only

        Failed extraction leaves the validator untouched; the outcome carries
        the failed attempt.
        """
        document.status = DocumentStatus.PROCESSING
        self.repository.save_document(document)

        self.engine.process(document)
        attempt = self.repository.list_attempts(document.id)[-1]

        report = None
        if document.is_processed and document.type == DocumentType.INVOICE:
            report = self.validator.validate(document)

        return ProcessingOutcome(document=document, attempt=attempt, report=report)

    def retry(self, document_id: str) -> ProcessingOutcome:
        """Re-run processing once for a stored document."""
        document = self.repository.get_document(document_id)
        logger.info(f"Retrying document {document_id} (status: {document.status.value})")
        return self.process(document)

    def revalidate(self, document_id: str) -> ValidationReport:
        """Re-run validation against the document's current line items."""
        document = self.repository.get_document(document_id)
        return self.validator.validate(document)

    def stats(self) -> dict[str, int]:
        """Count the tenant's documents by status."""
        documents = self.repository.list_documents()
        counts = Counter(d.status for d in documents)

        return {
            "pending_documents": counts[DocumentStatus.PENDING],
            "processing_documents": counts[DocumentStatus.PROCESSING],
            "processed_documents": counts[DocumentStatus.PROCESSED],
            "failed_documents": counts[DocumentStatus.FAILED],
            "total_documents": len(documents),
        }
