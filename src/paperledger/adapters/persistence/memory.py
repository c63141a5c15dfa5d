"""In-memory repository."""

import copy
import logging

from ...domain.models import Document, DocumentStatus, LineItem, ProcessingAttempt
from ...exceptions import AttemptStateError, DocumentNotFoundError
from ...ports.repository import DocumentRepository, TenantContext
from .locks import DocumentLocks

logger = logging.getLogger(__name__)


class InMemoryRepository(DocumentRepository):
    """Keeps copies of all records in process memory."""

    def __init__(self, tenant: TenantContext) -> None:
        super().__init__(tenant)
        self._documents: dict[str, Document] = {}
        self._line_items: dict[str, list[LineItem]] = {}
        self._attempts: dict[str, list[ProcessingAttempt]] = {}
        self._locks = DocumentLocks()

    def add_document(self, document: Document) -> Document:
        document.tenant_id = self.tenant.tenant_id
        self._documents[document.id] = copy.deepcopy(document)
        self._line_items[document.id] = []
        self._attempts[document.id] = []
        return document

    def get_document(self, document_id: str) -> Document:
        if document_id not in self._documents:
            raise DocumentNotFoundError(f"Document not found: {document_id}")
        return copy.deepcopy(self._documents[document_id])

    def save_document(self, document: Document) -> None:
        self._ensure_exists(document.id)
        self._documents[document.id] = copy.deepcopy(document)

    def list_documents(self, status: DocumentStatus | None = None) -> list[Document]:
        documents = sorted(self._documents.values(), key=lambda d: d.created_at)
        return [copy.deepcopy(d) for d in documents if status is None or d.status == status]

    def get_line_items(self, document_id: str) -> list[LineItem]:
        self._ensure_exists(document_id)
        return copy.deepcopy(self._line_items[document_id])

    def replace_line_items(self, document_id: str, items: list[LineItem]) -> None:
        self._ensure_exists(document_id)
        self._line_items[document_id] = copy.deepcopy(items)

    def create_attempt(self, document: Document) -> ProcessingAttempt:
        self._ensure_exists(document.id)
        with self._locks(document.id):
            attempts = self._attempts[document.id]
            number = max((a.attempt_number for a in attempts), default=0) + 1
            attempt = ProcessingAttempt(document_id=document.id, attempt_number=number)
            attempts.append(copy.deepcopy(attempt))
        return attempt

    def save_attempt(self, attempt: ProcessingAttempt) -> None:
        self._ensure_exists(attempt.document_id)
        with self._locks(attempt.document_id):
            attempts = self._attempts[attempt.document_id]
            for index, stored in enumerate(attempts):
                if stored.id == attempt.id:
                    if stored.is_terminal:
                        raise AttemptStateError(
                            f"Attempt {stored.attempt_number} is already {stored.status.value}"
                        )
                    attempts[index] = copy.deepcopy(attempt)
                    return
        raise AttemptStateError(f"Unknown attempt: {attempt.id}")

    def list_attempts(self, document_id: str) -> list[ProcessingAttempt]:
        self._ensure_exists(document_id)
        attempts = sorted(self._attempts[document_id], key=lambda a: a.attempt_number)
        return copy.deepcopy(attempts)

    def _ensure_exists(self, document_id: str) -> None:
        if document_id not in self._documents:
            raise DocumentNotFoundError(f"Document not found: {document_id}")
