"""Unit tests for invoice validation rules."""

from datetime import date
from decimal import Decimal

import pytest

from paperledger.config import ValidationConfig
from paperledger.domain.models import (
    VALIDATED_AT_KEY,
    VALIDATION_KEY,
    InvoiceFields,
    IssueKind,
    LineItem,
    RuleName,
    RuleResult,
)
from paperledger.domain.validation import (
    aggregate,
    parse_strict_date,
    validate_dates,
    validate_line_items,
    validate_required_fields,
    validate_tax_calculations,
    validate_totals,
)

TODAY = date(2024, 6, 1)


def line(**overrides) -> LineItem:
    data = {
        "description": "Widget",
        "quantity": "1",
        "unit_price": "100",
        "total_amount": "100",
        "tax_rate": "20",
        "tax_amount": "20",
    }
    data.update(overrides)
    return LineItem.from_mapping(data)


def kinds(issues) -> list[IssueKind]:
    return [issue.kind for issue in issues]


@pytest.fixture
def config() -> ValidationConfig:
    return ValidationConfig()


class TestParseStrictDate:
    def test_valid_date(self) -> None:
        assert parse_strict_date("2024-03-15") == date(2024, 3, 15)

    def test_impossible_calendar_date(self) -> None:
        assert parse_strict_date("2024-02-30") is None

    def test_non_padded_date_rejected(self) -> None:
        assert parse_strict_date("2024-3-5") is None

    def test_other_format_rejected(self) -> None:
        assert parse_strict_date("15/03/2024") is None


class TestValidateTotals:
    def test_matching_totals_valid(self, config: ValidationConfig) -> None:
        fields = InvoiceFields.from_mapping(
            {"total_amount": 120, "subtotal": 100, "tax_amount": 20}
        )
        result = validate_totals(fields, [line()], config)

        assert result.valid
        assert result.errors == []
        assert result.warnings == []

    def test_total_mismatch_error(self, config: ValidationConfig) -> None:
        fields = InvoiceFields.from_mapping(
            {"total_amount": 150, "subtotal": 100, "tax_amount": 20}
        )
        result = validate_totals(fields, [line()], config)

        assert not result.valid
        assert kinds(result.errors) == [IssueKind.TOTAL_MISMATCH]
        error = result.errors[0]
        assert error.context["extracted"] == Decimal("150")
        assert error.context["calculated"] == Decimal("120")
        assert "Extracted: 150" in error.message

    def test_within_tolerance_is_valid(self, config: ValidationConfig) -> None:
        fields = InvoiceFields.from_mapping(
            {"total_amount": "120.01", "subtotal": 100, "tax_amount": 20}
        )
        result = validate_totals(fields, [line()], config)

        assert result.valid

    def test_minor_difference_warning(self, config: ValidationConfig) -> None:
        fields = InvoiceFields.from_mapping(
            {"total_amount": "120.005", "subtotal": 100, "tax_amount": 20}
        )
        result = validate_totals(fields, [line()], config)

        assert result.valid
        assert kinds(result.warnings) == [IssueKind.MINOR_TOTAL_DIFFERENCE]

    def test_missing_amounts_count_as_zero(self, config: ValidationConfig) -> None:
        result = validate_totals(InvoiceFields(), [line()], config)

        assert kinds(result.errors) == [
            IssueKind.TOTAL_MISMATCH,
            IssueKind.SUBTOTAL_MISMATCH,
            IssueKind.TAX_MISMATCH,
        ]

    def test_no_items_and_no_amounts_valid(self, config: ValidationConfig) -> None:
        assert validate_totals(InvoiceFields(), [], config).valid

    def test_total_against_two_lines(self, config: ValidationConfig) -> None:
        fields = InvoiceFields.from_mapping(
            {"total_amount": "100.00", "subtotal": "110.00", "tax_amount": "22.00"}
        )
        items = [
            line(total_amount="90.00", tax_amount="18.00"),
            line(total_amount="20.00", tax_amount="4.00"),
        ]

        result = validate_totals(fields, items, config)

        assert kinds(result.errors) == [IssueKind.TOTAL_MISMATCH]
        error = result.errors[0]
        assert error.context["extracted"] == Decimal("100.00")
        assert error.context["calculated"] == Decimal("132.00")
        assert error.message.endswith("Extracted: 100.00, Calculated: 132.00")


class TestValidateTaxCalculations:
    def test_correct_tax_valid(self, config: ValidationConfig) -> None:
        assert validate_tax_calculations([line()], config).valid

    def test_line_tax_error_reports_line_number(self, config: ValidationConfig) -> None:
        result = validate_tax_calculations([line(), line(tax_amount="5")], config)

        assert not result.valid
        assert kinds(result.errors) == [IssueKind.LINE_TAX_CALCULATION_ERROR]
        assert result.errors[0].context["line_number"] == 2

    def test_high_tax_rate_warning(self, config: ValidationConfig) -> None:
        result = validate_tax_calculations([line(tax_rate="30", tax_amount="30")], config)

        assert result.valid
        assert kinds(result.warnings) == [IssueKind.HIGH_TAX_RATE]

    def test_negative_rate_with_positive_amount(self, config: ValidationConfig) -> None:
        result = validate_tax_calculations([line(tax_rate="-5", tax_amount="1")], config)

        assert IssueKind.NEGATIVE_TAX_RATE_WITH_POSITIVE_AMOUNT in kinds(result.errors)


class TestValidateLineItems:
    def test_no_line_items_error(self, config: ValidationConfig) -> None:
        result = validate_line_items([], config)

        assert not result.valid
        assert kinds(result.errors) == [IssueKind.NO_LINE_ITEMS]

    def test_valid_lines(self, config: ValidationConfig) -> None:
        assert validate_line_items([line(), line()], config).valid

    def test_empty_description(self, config: ValidationConfig) -> None:
        result = validate_line_items([line(description="   ")], config)

        assert kinds(result.errors) == [IssueKind.EMPTY_DESCRIPTION]
        assert result.errors[0].context["line_number"] == 1

    def test_zero_quantity(self, config: ValidationConfig) -> None:
        result = validate_line_items([line(quantity="0")], config)

        assert kinds(result.errors) == [IssueKind.INVALID_QUANTITY]

    def test_negative_price(self, config: ValidationConfig) -> None:
        result = validate_line_items([line(unit_price="-1")], config)

        assert kinds(result.errors) == [IssueKind.NEGATIVE_PRICE]

    def test_high_values_warn_only(self, config: ValidationConfig) -> None:
        result = validate_line_items([line(unit_price="20000", quantity="20000")], config)

        assert result.valid
        assert kinds(result.warnings) == [IssueKind.HIGH_UNIT_PRICE, IssueKind.HIGH_QUANTITY]


class TestValidateRequiredFields:
    def test_all_present(self) -> None:
        fields = InvoiceFields.from_mapping(
            {"vendor_name": "Acme", "invoice_number": "1", "total_amount": 10}
        )
        assert validate_required_fields(fields).valid

    def test_blank_vendor_name(self) -> None:
        fields = InvoiceFields.from_mapping(
            {"vendor_name": "  ", "invoice_number": "1", "total_amount": 10}
        )
        result = validate_required_fields(fields)

        assert kinds(result.errors) == [IssueKind.MISSING_REQUIRED_FIELD]
        assert result.errors[0].context["field"] == "vendor_name"

    def test_missing_financial_data(self) -> None:
        fields = InvoiceFields.from_mapping({"vendor_name": "Acme", "invoice_number": "1"})
        result = validate_required_fields(fields)

        assert kinds(result.errors) == [IssueKind.MISSING_FINANCIAL_DATA]
        assert result.errors[0].context["fields_needed"] == [
            "invoice_date",
            "due_date",
            "total_amount",
        ]

    def test_zero_total_counts_as_financial_data(self) -> None:
        fields = InvoiceFields.from_mapping(
            {"vendor_name": "Acme", "invoice_number": "1", "total_amount": 0}
        )
        assert validate_required_fields(fields).valid


class TestValidateDates:
    def test_valid_dates(self) -> None:
        fields = InvoiceFields(invoice_date="2024-03-15", due_date="2024-04-14")
        result = validate_dates(fields, TODAY)

        assert result.valid
        assert result.warnings == []

    def test_leap_day_is_valid(self) -> None:
        result = validate_dates(InvoiceFields(invoice_date="2024-02-29"), TODAY)

        assert result.valid
        assert result.errors == []

    def test_non_leap_year_feb_29_invalid(self) -> None:
        result = validate_dates(InvoiceFields(invoice_date="2023-02-29"), TODAY)

        assert kinds(result.errors) == [IssueKind.INVALID_INVOICE_DATE]

    def test_invalid_invoice_date(self) -> None:
        result = validate_dates(InvoiceFields(invoice_date="2024-02-30"), TODAY)

        assert kinds(result.errors) == [IssueKind.INVALID_INVOICE_DATE]

    def test_future_invoice_date_warns(self) -> None:
        result = validate_dates(InvoiceFields(invoice_date="2024-06-02"), TODAY)

        assert result.valid
        assert kinds(result.warnings) == [IssueKind.FUTURE_INVOICE_DATE]

    def test_today_is_not_future(self) -> None:
        assert validate_dates(InvoiceFields(invoice_date="2024-06-01"), TODAY).warnings == []

    def test_invalid_due_date(self) -> None:
        result = validate_dates(InvoiceFields(due_date="14.04.2024"), TODAY)

        assert kinds(result.errors) == [IssueKind.INVALID_DUE_DATE]

    def test_due_before_invoice(self) -> None:
        fields = InvoiceFields(invoice_date="2024-03-15", due_date="2024-03-01")
        result = validate_dates(fields, TODAY)

        assert kinds(result.errors) == [IssueKind.DUE_DATE_BEFORE_INVOICE_DATE]

    def test_order_not_checked_when_invoice_date_invalid(self) -> None:
        fields = InvoiceFields(invoice_date="garbage", due_date="2024-03-01")
        result = validate_dates(fields, TODAY)

        assert kinds(result.errors) == [IssueKind.INVALID_INVOICE_DATE]

    def test_absent_dates_are_fine(self) -> None:
        assert validate_dates(InvoiceFields(), TODAY).valid


class TestAggregate:
    def test_invalid_if_any_rule_invalid(self) -> None:
        ok = RuleResult(RuleName.DATES)
        bad = RuleResult(RuleName.LINE_ITEMS)
        bad.add_error(IssueKind.NO_LINE_ITEMS, "none")

        report = aggregate([ok, bad])

        assert not report.is_valid
        assert kinds(report.errors) == [IssueKind.NO_LINE_ITEMS]
        assert [v.rule for v in report.validations] == [RuleName.DATES, RuleName.LINE_ITEMS]

    def test_errors_of_valid_rules_never_merged(self) -> None:
        report = aggregate([RuleResult(RuleName.TOTALS)])

        assert report.is_valid
        assert report.errors == []

    def test_failed_tax_rule_drops_its_warnings(self) -> None:
        tax = RuleResult(RuleName.TAX)
        tax.add_error(IssueKind.LINE_TAX_CALCULATION_ERROR, "wrong")
        tax.add_warning(IssueKind.HIGH_TAX_RATE, "high")

        report = aggregate([tax])

        assert report.warnings == []

    def test_failed_line_items_rule_keeps_its_warnings(self) -> None:
        items = RuleResult(RuleName.LINE_ITEMS)
        items.add_error(IssueKind.EMPTY_DESCRIPTION, "empty")
        items.add_warning(IssueKind.HIGH_QUANTITY, "lots")

        report = aggregate([items])

        assert kinds(report.warnings) == [IssueKind.HIGH_QUANTITY]

    def test_report_to_dict(self) -> None:
        rule = RuleResult(RuleName.TOTALS)
        rule.add_error(IssueKind.TOTAL_MISMATCH, "off", extracted=Decimal("1.5"))

        data = aggregate([rule]).to_dict()

        assert data["is_valid"] is False
        assert data["errors"] == [
            {"type": "total_mismatch", "message": "off", "extracted": 1.5}
        ]
        assert data["validations"][0]["rule"] == "totals"


class TestInvoiceValidator:
    def test_consistent_invoice_is_valid(
        self, validator, repository, invoice_document, sample_invoice_data
    ) -> None:
        invoice_document.structured_data = sample_invoice_data
        repository.replace_line_items(
            invoice_document.id,
            [LineItem.from_mapping(i) for i in sample_invoice_data["line_items"]],
        )

        report = validator.validate(invoice_document)

        assert report.is_valid
        assert report.errors == []
        assert report.warnings == []

    def test_report_persisted_in_structured_data(
        self, validator, repository, invoice_document
    ) -> None:
        invoice_document.structured_data = {"vendor_name": "Acme"}

        report = validator.validate(invoice_document)

        stored = repository.get_document(invoice_document.id).structured_data
        assert stored["vendor_name"] == "Acme"
        assert stored[VALIDATION_KEY] == report.to_dict()
        assert VALIDATED_AT_KEY in stored
        assert not report.is_valid

    def test_out_of_range_amounts_do_not_raise(self, validator) -> None:
        fields = InvoiceFields.from_mapping(
            {"vendor_name": "Acme", "invoice_number": "1", "total_amount": "1e1000000"}
        )
        items = [LineItem.from_mapping({"description": "A", "total_amount": "9e999999"})]

        report = validator.check(fields, items)

        assert fields.total_amount is None
        assert items[0].total_amount == Decimal("0")
        assert IssueKind.TOTAL_MISMATCH not in kinds(report.errors)

    def test_checks_every_rule_in_order(self, validator) -> None:
        report = validator.check(InvoiceFields(), [])

        assert [v.rule for v in report.validations] == [
            RuleName.TOTALS,
            RuleName.TAX,
            RuleName.LINE_ITEMS,
            RuleName.REQUIRED_FIELDS,
            RuleName.DATES,
        ]

    def test_uses_current_line_items(
        self, validator, repository, invoice_document, sample_invoice_data
    ) -> None:
        invoice_document.structured_data = sample_invoice_data
        repository.replace_line_items(invoice_document.id, [line()])

        report = validator.validate(invoice_document)

        assert IssueKind.TOTAL_MISMATCH in kinds(report.errors)
