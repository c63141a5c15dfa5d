"""Domain layer - core business logic."""

from .models import (
    Document,
    DocumentStatus,
    DocumentType,
    InvoiceFields,
    LineItem,
    ProcessingAttempt,
    ProcessingOutcome,
    ValidationReport,
)

__all__ = [
    "Document",
    "DocumentStatus",
    "DocumentType",
    "InvoiceFields",
    "LineItem",
    "ProcessingAttempt",
    "ProcessingOutcome",
    "ValidationReport",
]
