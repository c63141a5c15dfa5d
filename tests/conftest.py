"""Shared test fixtures."""

import json
from datetime import date
from unittest.mock import MagicMock

import pytest

from paperledger.adapters.persistence import InMemoryRepository
from paperledger.config import ExtractionConfig, ValidationConfig
from paperledger.domain.extraction import ExtractionEngine
from paperledger.domain.models import Document, DocumentType
from paperledger.domain.services import ProcessingService
from paperledger.domain.validation import InvoiceValidator
from paperledger.ports.content import ContentPort
from paperledger.ports.repository import TenantContext
from paperledger.ports.understanding import UnderstandingPort

TODAY = date(2024, 6, 1)


@pytest.fixture
def sample_invoice_data() -> dict:
    """A consistent invoice as the model would return it."""
    return {
        "invoice_number": "INV-2024-001",
        "invoice_date": "2024-03-15",
        "due_date": "2024-04-14",
        "vendor_name": "Acme Corp",
        "vendor_address": "1 Main Street, Springfield",
        "subtotal": 110.0,
        "tax_amount": 22.0,
        "total_amount": 132.0,
        "line_items": [
            {
                "description": "Consulting",
                "quantity": 1,
                "unit_price": 90.0,
                "total_amount": 90.0,
                "tax_rate": 20,
                "tax_amount": 18.0,
            },
            {
                "description": "Support",
                "quantity": 2,
                "unit_price": 10.0,
                "total_amount": 20.0,
                "tax_rate": 20,
                "tax_amount": 4.0,
            },
        ],
    }


@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository(TenantContext("acme"))


@pytest.fixture
def mock_content() -> MagicMock:
    """Mock content port."""
    mock = MagicMock(spec=ContentPort)
    mock.fetch.return_value = b"%PDF-1.4 invoice content"
    mock.store.side_effect = lambda path, data: path
    return mock


@pytest.fixture
def mock_understanding(sample_invoice_data: dict) -> MagicMock:
    """Mock document-understanding port."""
    mock = MagicMock(spec=UnderstandingPort)
    mock.complete.return_value = json.dumps(sample_invoice_data)
    return mock


@pytest.fixture
def invoice_document(repository: InMemoryRepository) -> Document:
    document = Document(
        title="invoice.pdf",
        type=DocumentType.INVOICE,
        file_path="documents/invoice.pdf",
        mime_type="application/pdf",
        file_size=24,
    )
    return repository.add_document(document)


@pytest.fixture
def engine(
    mock_content: MagicMock, mock_understanding: MagicMock, repository: InMemoryRepository
) -> ExtractionEngine:
    return ExtractionEngine(mock_content, mock_understanding, repository, ExtractionConfig())


@pytest.fixture
def validator(repository: InMemoryRepository) -> InvoiceValidator:
    return InvoiceValidator(repository, ValidationConfig(), today=lambda: TODAY)


@pytest.fixture
def service(
    engine: ExtractionEngine,
    validator: InvoiceValidator,
    repository: InMemoryRepository,
    mock_content: MagicMock,
) -> ProcessingService:
    return ProcessingService(engine, validator, repository, mock_content)
