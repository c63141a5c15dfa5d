"""Invoice validation rules.

Five independent rules are run against a document's extracted fields and its
current line items:

- totals: extracted total/subtotal/tax reconcile with the line items
- tax: per-line tax amount matches total_amount x tax_rate
- line_items: every line has a description, a positive quantity and
  non-negative prices
- required_fields: vendor and invoice number are present, plus at least one
  of the dates or the total
- dates: invoice and due dates are strict YYYY-MM-DD calendar dates in a
  sensible order

Each rule returns a RuleResult. Errors make the rule invalid; warnings never
do.
"""

import logging
from collections.abc import Callable
from datetime import date, datetime
from decimal import Decimal

from ..config import ValidationConfig
from ..ports.repository import DocumentRepository
from .models import (
    VALIDATED_AT_KEY,
    VALIDATION_KEY,
    Document,
    InvoiceFields,
    IssueKind,
    LineItem,
    RuleName,
    RuleResult,
    ValidationReport,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
DATE_FORMAT = "%Y-%m-%d"
REQUIRED_FIELDS = ("vendor_name", "invoice_number")
FINANCIAL_FIELDS = ("invoice_date", "due_date", "total_amount")

# Rules whose warnings are only reported when the rule itself passed.
WARNINGS_ONLY_WHEN_VALID = frozenset({RuleName.TOTALS, RuleName.TAX})


def _dec(value: float) -> Decimal:
    return Decimal(str(value))


def parse_strict_date(value: str) -> date | None:
    """Parse a YYYY-MM-DD date, rejecting anything that does not round-trip."""
    try:
        parsed = datetime.strptime(value, DATE_FORMAT).date()
    except ValueError:
        return None
    if parsed.strftime(DATE_FORMAT) != value:
        return None
    return parsed


def validate_totals(
    fields: InvoiceFields, items: list[LineItem], config: ValidationConfig
) -> RuleResult:
    result = RuleResult(RuleName.TOTALS)
    tolerance = _dec(config.amount_tolerance)

    extracted_total = fields.total_amount if fields.total_amount is not None else ZERO
    extracted_subtotal = fields.subtotal if fields.subtotal is not None else ZERO
    extracted_tax = fields.tax_amount if fields.tax_amount is not None else ZERO

    calculated_total = sum((item.amount_including_tax for item in items), ZERO)
    calculated_subtotal = sum((item.total_amount for item in items), ZERO)
    calculated_tax = sum((item.tax_amount for item in items), ZERO)

    if abs(extracted_total - calculated_total) > tolerance:
        result.add_error(
            IssueKind.TOTAL_MISMATCH,
            "Invoice total does not match line items. "
            f"Extracted: {extracted_total}, Calculated: {calculated_total}",
            extracted=extracted_total,
            calculated=calculated_total,
        )

    if abs(extracted_subtotal - calculated_subtotal) > tolerance:
        result.add_error(
            IssueKind.SUBTOTAL_MISMATCH,
            "Subtotal does not match line items. "
            f"Extracted: {extracted_subtotal}, Calculated: {calculated_subtotal}",
            extracted=extracted_subtotal,
            calculated=calculated_subtotal,
        )

    if abs(extracted_tax - calculated_tax) > tolerance:
        result.add_error(
            IssueKind.TAX_MISMATCH,
            "Tax amount does not match line items. "
            f"Extracted: {extracted_tax}, Calculated: {calculated_tax}",
            extracted=extracted_tax,
            calculated=calculated_tax,
        )

    difference = abs(extracted_total - calculated_total)
    if result.valid and difference > _dec(config.minor_difference_tolerance):
        result.add_warning(
            IssueKind.MINOR_TOTAL_DIFFERENCE,
            f"Minor difference in total calculations ({difference:.3f})",
            difference=difference,
        )

    return result


def validate_tax_calculations(items: list[LineItem], config: ValidationConfig) -> RuleResult:
    result = RuleResult(RuleName.TAX)
    tolerance = _dec(config.amount_tolerance)
    high_rate = _dec(config.high_tax_rate)

    for number, line in enumerate(items, start=1):
        expected_tax = line.total_amount * (line.tax_rate / 100)

        if abs(expected_tax - line.tax_amount) > tolerance:
            result.add_error(
                IssueKind.LINE_TAX_CALCULATION_ERROR,
                f"Tax calculation error on line {number}. "
                f"Expected: {expected_tax}, Actual: {line.tax_amount}",
                line_number=number,
                description=line.description,
                expected_tax=expected_tax,
                actual_tax=line.tax_amount,
            )

        if line.tax_rate > high_rate:
            result.add_warning(
                IssueKind.HIGH_TAX_RATE,
                f"Unusually high tax rate ({line.tax_rate}%) on line {number}",
                line_number=number,
                tax_rate=line.tax_rate,
            )

        if line.tax_rate < 0 and line.tax_amount > 0:
            result.add_error(
                IssueKind.NEGATIVE_TAX_RATE_WITH_POSITIVE_AMOUNT,
                f"Negative tax rate with positive tax amount on line {number}",
                line_number=number,
                tax_rate=line.tax_rate,
            )

    return result


def validate_line_items(items: list[LineItem], config: ValidationConfig) -> RuleResult:
    result = RuleResult(RuleName.LINE_ITEMS)

    if not items:
        result.add_error(IssueKind.NO_LINE_ITEMS, "Invoice has no line items")
        return result

    high_price = _dec(config.high_unit_price)
    high_quantity = _dec(config.high_quantity)

    for number, line in enumerate(items, start=1):
        if not line.description.strip():
            result.add_error(
                IssueKind.EMPTY_DESCRIPTION,
                f"Line {number} has empty description",
                line_number=number,
            )

        if line.quantity <= 0:
            result.add_error(
                IssueKind.INVALID_QUANTITY,
                f"Line {number} has invalid quantity ({line.quantity})",
                line_number=number,
                quantity=line.quantity,
            )

        if line.unit_price < 0 or line.total_amount < 0:
            result.add_error(
                IssueKind.NEGATIVE_PRICE,
                f"Line {number} has negative price",
                line_number=number,
                unit_price=line.unit_price,
                total_amount=line.total_amount,
            )

        if line.unit_price > high_price:
            result.add_warning(
                IssueKind.HIGH_UNIT_PRICE,
                f"Unusually high unit price ({line.unit_price}) on line {number}",
                line_number=number,
                unit_price=line.unit_price,
            )

        if line.quantity > high_quantity:
            result.add_warning(
                IssueKind.HIGH_QUANTITY,
                f"Unusually high quantity ({line.quantity}) on line {number}",
                line_number=number,
                quantity=line.quantity,
            )

    return result


def validate_required_fields(fields: InvoiceFields) -> RuleResult:
    result = RuleResult(RuleName.REQUIRED_FIELDS)

    for name in REQUIRED_FIELDS:
        value = getattr(fields, name)
        if not value or not value.strip():
            result.add_error(
                IssueKind.MISSING_REQUIRED_FIELD,
                f"Missing required field: {name}",
                field=name,
            )

    if not any(fields.has_value(name) for name in FINANCIAL_FIELDS):
        result.add_error(
            IssueKind.MISSING_FINANCIAL_DATA,
            "Missing financial data (invoice date, due date, or total amount)",
            fields_needed=list(FINANCIAL_FIELDS),
        )

    return result


def validate_dates(fields: InvoiceFields, today: date) -> RuleResult:
    result = RuleResult(RuleName.DATES)
    invoice_date = None

    if fields.invoice_date:
        invoice_date = parse_strict_date(fields.invoice_date)
        if invoice_date is None:
            result.add_error(
                IssueKind.INVALID_INVOICE_DATE,
                f"Invalid invoice date format: {fields.invoice_date}",
                invoice_date=fields.invoice_date,
            )
        elif invoice_date > today:
            result.add_warning(
                IssueKind.FUTURE_INVOICE_DATE,
                f"Invoice date is in the future: {fields.invoice_date}",
                invoice_date=fields.invoice_date,
            )

    if fields.due_date:
        due_date = parse_strict_date(fields.due_date)
        if due_date is None:
            result.add_error(
                IssueKind.INVALID_DUE_DATE,
                f"Invalid due date format: {fields.due_date}",
                due_date=fields.due_date,
            )
        elif invoice_date is not None and due_date < invoice_date:
            result.add_error(
                IssueKind.DUE_DATE_BEFORE_INVOICE_DATE,
                f"Due date ({fields.due_date}) is before invoice date ({fields.invoice_date})",
                invoice_date=fields.invoice_date,
                due_date=fields.due_date,
            )

    return result


def aggregate(results: list[RuleResult]) -> ValidationReport:
    """Merge rule results, in order, into a single report."""
    report = ValidationReport()

    for result in results:
        report.validations.append(result)
        if not result.valid:
            report.is_valid = False
            report.errors.extend(result.errors)
        if result.valid or result.rule not in WARNINGS_ONLY_WHEN_VALID:
            report.warnings.extend(result.warnings)

    return report


class InvoiceValidator:
    """Validates a document's structured data against its line items."""

    def __init__(
        self,
        repository: DocumentRepository,
        config: ValidationConfig | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.repository = repository
        self.config = config or ValidationConfig()
        self.today = today

    def check(self, fields: InvoiceFields, items: list[LineItem]) -> ValidationReport:
        """Run all rules without touching persistence."""
        return aggregate(
            [
                validate_totals(fields, items, self.config),
                validate_tax_calculations(items, self.config),
                validate_line_items(items, self.config),
                validate_required_fields(fields),
                validate_dates(fields, self.today()),
            ]
        )

    def validate(self, document: Document) -> ValidationReport:
        """Validate the document and store the report in its structured data."""
        structured = dict(document.structured_data or {})
        items = self.repository.get_line_items(document.id)

        report = self.check(InvoiceFields.from_mapping(structured), items)

        structured[VALIDATION_KEY] = report.to_dict()
        structured[VALIDATED_AT_KEY] = datetime.now().isoformat()
        document.structured_data = structured
        self.repository.save_document(document)

        logger.info(
            f"Validated document {document.id}: valid={report.is_valid}, "
            f"{len(report.errors)} errors, {len(report.warnings)} warnings"
        )
        return report
