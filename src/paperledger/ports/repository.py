"""Repository port - persistence of documents, line items and attempts."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..domain.models import Document, DocumentStatus, LineItem, ProcessingAttempt


@dataclass(frozen=True)
class TenantContext:
    """Scopes every repository call to one tenant."""

    tenant_id: str


class DocumentRepository(ABC):
    """Interface for document persistence, scoped by an explicit tenant."""

    def __init__(self, tenant: TenantContext) -> None:
        self.tenant = tenant

    @abstractmethod
    def add_document(self, document: "Document") -> "Document":
        pass

    @abstractmethod
    def get_document(self, document_id: str) -> "Document":
        """Raises DocumentNotFoundError if the id is unknown."""
        pass

    @abstractmethod
    def save_document(self, document: "Document") -> None:
        pass

    @abstractmethod
    def list_documents(self, status: "DocumentStatus | None" = None) -> list["Document"]:
        pass

    @abstractmethod
    def get_line_items(self, document_id: str) -> list["LineItem"]:
        pass

    @abstractmethod
    def replace_line_items(self, document_id: str, items: list["LineItem"]) -> None:
        """Discard all line items of the document and store items instead."""
        pass

    @abstractmethod
    def create_attempt(self, document: "Document") -> "ProcessingAttempt":
        """Create the next pending attempt (max attempt number + 1).

        Numbering and insertion are atomic per document.
        """
        pass

    @abstractmethod
    def save_attempt(self, attempt: "ProcessingAttempt") -> None:
        pass

    @abstractmethod
    def list_attempts(self, document_id: str) -> list["ProcessingAttempt"]:
        """Return attempts ordered by attempt number."""
        pass
