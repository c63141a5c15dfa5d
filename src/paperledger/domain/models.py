"""Domain models."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from ..exceptions import AttemptStateError

VALIDATION_KEY = "validation_results"
VALIDATED_AT_KEY = "validated_at"
MAX_EXPONENT = 18


class DocumentType(str, Enum):
    INVOICE = "invoice"
    RECEIPT = "receipt"
    PURCHASE_ORDER = "purchase_order"
    OTHER = "other"


class DocumentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"


class AttemptStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


def to_decimal(value: Any, default: Decimal | None = Decimal("0")) -> Decimal | None:
    """Coerce a loosely typed value (int, float, numeric string) to Decimal.

    Non-finite values and values whose exponent exceeds MAX_EXPONENT in
    either direction yield the default.
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation:
        return default
    if not result.is_finite() or abs(result.adjusted()) > MAX_EXPONENT:
        return default
    return result


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Document:
    """A unit of work: one uploaded document and its extraction state."""

    title: str
    type: DocumentType
    file_path: str
    mime_type: str = "application/octet-stream"
    file_size: int = 0
    tenant_id: str = "default"
    status: DocumentStatus = DocumentStatus.PENDING
    structured_data: dict[str, Any] | None = None
    processing_error: str | None = None
    processed_at: datetime | None = None
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def is_processed(self) -> bool:
        return self.status == DocumentStatus.PROCESSED

    @property
    def has_failed(self) -> bool:
        return self.status == DocumentStatus.FAILED

    @property
    def is_pending(self) -> bool:
        return self.status == DocumentStatus.PENDING

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "title": self.title,
            "type": self.type.value,
            "file_path": self.file_path,
            "mime_type": self.mime_type,
            "file_size": self.file_size,
            "status": self.status.value,
            "structured_data": self.structured_data,
            "processing_error": self.processing_error,
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Document":
        processed_at = data.get("processed_at")
        return cls(
            id=data["id"],
            tenant_id=data.get("tenant_id", "default"),
            title=data.get("title", ""),
            type=DocumentType(data.get("type", DocumentType.INVOICE.value)),
            file_path=data["file_path"],
            mime_type=data.get("mime_type", "application/octet-stream"),
            file_size=int(data.get("file_size", 0)),
            status=DocumentStatus(data.get("status", DocumentStatus.PENDING.value)),
            structured_data=data.get("structured_data"),
            processing_error=data.get("processing_error"),
            processed_at=datetime.fromisoformat(processed_at) if processed_at else None,
            created_at=datetime.fromisoformat(data["created_at"]),
        )


@dataclass
class LineItem:
    """One charge on a document."""

    description: str = ""
    quantity: Decimal = Decimal("1")
    unit_price: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    tax_rate: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")

    @property
    def amount_including_tax(self) -> Decimal:
        return self.total_amount + self.tax_amount

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "LineItem":
        """Build a line item from extracted fields.

        Missing quantity defaults to 1, missing monetary fields to 0.
        """
        description = data.get("description")
        return cls(
            description="" if description is None else str(description),
            quantity=to_decimal(data.get("quantity"), Decimal("1")),
            unit_price=to_decimal(data.get("unit_price")),
            total_amount=to_decimal(data.get("total_amount")),
            tax_rate=to_decimal(data.get("tax_rate")),
            tax_amount=to_decimal(data.get("tax_amount")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "quantity": str(self.quantity),
            "unit_price": str(self.unit_price),
            "total_amount": str(self.total_amount),
            "tax_rate": str(self.tax_rate),
            "tax_amount": str(self.tax_amount),
        }


@dataclass
class ProcessingAttempt:
    """Append-only record of one extraction invocation."""

    document_id: str
    attempt_number: int
    status: AttemptStatus = AttemptStatus.PENDING
    error_message: str | None = None
    processing_time_ms: int | None = None
    result_data: dict[str, Any] | None = None
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def is_successful(self) -> bool:
        return self.status == AttemptStatus.SUCCESS

    @property
    def has_failed(self) -> bool:
        return self.status == AttemptStatus.FAILED

    @property
    def is_terminal(self) -> bool:
        return self.status != AttemptStatus.PENDING

    def finish_success(self, processing_time_ms: int, result_data: dict[str, Any]) -> None:
        self._ensure_pending()
        self.status = AttemptStatus.SUCCESS
        self.processing_time_ms = processing_time_ms
        self.result_data = result_data

    def finish_failure(self, processing_time_ms: int, error_message: str) -> None:
        self._ensure_pending()
        self.status = AttemptStatus.FAILED
        self.processing_time_ms = processing_time_ms
        self.error_message = error_message

    def _ensure_pending(self) -> None:
        if self.is_terminal:
            raise AttemptStateError(
                f"Attempt {self.attempt_number} of document {self.document_id} "
                f"is already {self.status.value}"
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "document_id": self.document_id,
            "attempt_number": self.attempt_number,
            "status": self.status.value,
            "error_message": self.error_message,
            "processing_time_ms": self.processing_time_ms,
            "result_data": self.result_data,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProcessingAttempt":
        return cls(
            id=data["id"],
            document_id=data["document_id"],
            attempt_number=int(data["attempt_number"]),
            status=AttemptStatus(data["status"]),
            error_message=data.get("error_message"),
            processing_time_ms=data.get("processing_time_ms"),
            result_data=data.get("result_data"),
            created_at=datetime.fromisoformat(data["created_at"]),
        )


_INVOICE_KEYS = (
    "invoice_number",
    "vendor_name",
    "vendor_address",
    "invoice_date",
    "due_date",
    "total_amount",
    "subtotal",
    "tax_amount",
)


def _text(value: Any) -> str | None:
    return None if value is None else str(value)


@dataclass
class InvoiceFields:
    """Typed view over a document's structured-data mapping.

    Amounts are None when the key is absent or null. Dates stay as the raw
    strings the model returned so format checks see exactly what was extracted.
    """

    invoice_number: str | None = None
    vendor_name: str | None = None
    vendor_address: str | None = None
    invoice_date: str | None = None
    due_date: str | None = None
    total_amount: Decimal | None = None
    subtotal: Decimal | None = None
    tax_amount: Decimal | None = None
    extras: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: dict[str, Any] | None) -> "InvoiceFields":
        data = data or {}
        extras = {
            k: v
            for k, v in data.items()
            if k not in _INVOICE_KEYS and k not in (VALIDATION_KEY, VALIDATED_AT_KEY)
        }
        return cls(
            invoice_number=_text(data.get("invoice_number")),
            vendor_name=_text(data.get("vendor_name")),
            vendor_address=_text(data.get("vendor_address")),
            invoice_date=_text(data.get("invoice_date")),
            due_date=_text(data.get("due_date")),
            total_amount=to_decimal(data.get("total_amount"), None),
            subtotal=to_decimal(data.get("subtotal"), None),
            tax_amount=to_decimal(data.get("tax_amount"), None),
            extras=extras,
        )

    def has_value(self, name: str) -> bool:
        """Return True if the named field was extracted with a non-null value."""
        return getattr(self, name) is not None


class RuleName(str, Enum):
    TOTALS = "totals"
    TAX = "tax"
    LINE_ITEMS = "line_items"
    REQUIRED_FIELDS = "required_fields"
    DATES = "dates"


class IssueKind(str, Enum):
    TOTAL_MISMATCH = "total_mismatch"
    SUBTOTAL_MISMATCH = "subtotal_mismatch"
    TAX_MISMATCH = "tax_mismatch"
    MINOR_TOTAL_DIFFERENCE = "minor_total_difference"
    LINE_TAX_CALCULATION_ERROR = "line_tax_calculation_error"
    HIGH_TAX_RATE = "high_tax_rate"
    NEGATIVE_TAX_RATE_WITH_POSITIVE_AMOUNT = "negative_tax_rate_with_positive_amount"
    NO_LINE_ITEMS = "no_line_items"
    EMPTY_DESCRIPTION = "empty_description"
    INVALID_QUANTITY = "invalid_quantity"
    NEGATIVE_PRICE = "negative_price"
    HIGH_UNIT_PRICE = "high_unit_price"
    HIGH_QUANTITY = "high_quantity"
    MISSING_REQUIRED_FIELD = "missing_required_field"
    MISSING_FINANCIAL_DATA = "missing_financial_data"
    INVALID_INVOICE_DATE = "invalid_invoice_date"
    FUTURE_INVOICE_DATE = "future_invoice_date"
    INVALID_DUE_DATE = "invalid_due_date"
    DUE_DATE_BEFORE_INVOICE_DATE = "due_date_before_invoice_date"


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


@dataclass
class ValidationIssue:
    """One error or warning produced by a validation rule."""

    kind: IssueKind
    message: str
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.kind.value, "message": self.message}
        data.update({k: _plain(v) for k, v in self.context.items()})
        return data


@dataclass
class RuleResult:
    """Outcome of a single validation rule."""

    rule: RuleName
    valid: bool = True
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    def add_error(self, kind: IssueKind, message: str, **context: Any) -> None:
        self.valid = False
        self.errors.append(ValidationIssue(kind, message, context))

    def add_warning(self, kind: IssueKind, message: str, **context: Any) -> None:
        self.warnings.append(ValidationIssue(kind, message, context))

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule": self.rule.value,
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }


@dataclass
class ValidationReport:
    """Aggregated result of all validation rules for one document."""

    is_valid: bool = True
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)
    validations: list[RuleResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "validations": [v.to_dict() for v in self.validations],
        }


@dataclass
class ProcessingOutcome:
    """Result of running a document through the pipeline."""

    document: Document
    attempt: ProcessingAttempt
    report: ValidationReport | None = None

    @property
    def success(self) -> bool:
        return self.document.is_processed and self.attempt.is_successful
