"""CLI entry point for paperledger."""

import logging
import sys
from email import policy
from email.parser import BytesParser
from pathlib import Path

import click
import yaml

from .adapters.llm import create_understanding_adapter
from .adapters.persistence import YamlRepository
from .adapters.storage import FilesystemContentAdapter
from .config import Settings, load_settings
from .domain.extraction import ExtractionEngine
from .domain.ingestion import EmailIngestionService, EmailSettings
from .domain.models import DocumentType, ProcessingAttempt, ProcessingOutcome, ValidationReport
from .domain.services import ProcessingService
from .domain.validation import InvoiceValidator
from .exceptions import DocumentNotFoundError
from .ports.repository import TenantContext

logger = logging.getLogger(__name__)

DOCUMENT_TYPES = [t.value for t in DocumentType]


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_service(settings: Settings, tenant_id: str) -> ProcessingService:
    """Wire up adapters for one tenant."""
    repository = YamlRepository(settings.storage.records, TenantContext(tenant_id))
    content = FilesystemContentAdapter(settings.storage.content / tenant_id)
    engine = ExtractionEngine(
        content=content,
        understanding=create_understanding_adapter(settings.llm),
        repository=repository,
        config=settings.extraction,
    )
    validator = InvoiceValidator(repository, settings.validation)
    return ProcessingService(engine, validator, repository, content)


def format_report(report: ValidationReport) -> list[str]:
    """Render a validation report as CLI lines."""
    lines = [f"valid: {report.is_valid}"]
    for error in report.errors:
        lines.append(f"  error [{error.kind.value}] {error.message}")
    for warning in report.warnings:
        lines.append(f"  warning [{warning.kind.value}] {warning.message}")
    return lines


def format_attempt(attempt: ProcessingAttempt) -> str:
    line = f"#{attempt.attempt_number} {attempt.status.value}"
    if attempt.processing_time_ms is not None:
        line += f" ({attempt.processing_time_ms} ms)"
    if attempt.error_message:
        line += f": {attempt.error_message}"
    return line


def _echo_outcome(outcome: ProcessingOutcome) -> None:
    document = outcome.document
    click.echo(f"document: {document.id}")
    click.echo(f"status: {document.status.value}")
    click.echo(f"attempt: {format_attempt(outcome.attempt)}")
    if outcome.report:
        for line in format_report(outcome.report):
            click.echo(line)
    if not outcome.success:
        click.echo(f"Error: {document.processing_error}", err=True)
        sys.exit(1)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("-c", "--config", type=click.Path(exists=True), help="Config file path")
@click.option("-t", "--tenant", help="Tenant id (defaults to storage.tenant)")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config: str | None, tenant: str | None) -> None:
    """Paperledger - document extraction and invoice validation."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    settings = load_settings(Path(config) if config else None)
    ctx.obj["settings"] = settings
    ctx.obj["tenant"] = tenant or settings.storage.tenant


def _service(ctx: click.Context) -> ProcessingService:
    return build_service(ctx.obj["settings"], ctx.obj["tenant"])


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--type", "document_type", type=click.Choice(DOCUMENT_TYPES), default="invoice",
    help="Declared document type",
)
@click.option("--title", help="Document title (defaults to the file name)")
@click.pass_context
def process(ctx: click.Context, file: Path, document_type: str, title: str | None) -> None:
    """Register a document file and process it."""
    service = _service(ctx)
    document = service.register(
        file.read_bytes(), file.name, document_type=DocumentType(document_type), title=title
    )
    _echo_outcome(service.process(document))


@cli.command()
@click.argument("document_id")
@click.pass_context
def retry(ctx: click.Context, document_id: str) -> None:
    """Re-run processing for a stored document."""
    try:
        outcome = _service(ctx).retry(document_id)
    except DocumentNotFoundError as e:
        raise click.ClickException(str(e)) from e
    _echo_outcome(outcome)


@cli.command()
@click.argument("document_id")
@click.pass_context
def validate(ctx: click.Context, document_id: str) -> None:
    """Re-validate a stored document against its current line items."""
    try:
        report = _service(ctx).revalidate(document_id)
    except DocumentNotFoundError as e:
        raise click.ClickException(str(e)) from e

    for line in format_report(report):
        click.echo(line)
    if not report.is_valid:
        sys.exit(1)


@cli.command()
@click.argument("document_id")
@click.pass_context
def show(ctx: click.Context, document_id: str) -> None:
    """Print a stored document with its line items."""
    repository = _service(ctx).repository
    try:
        document = repository.get_document(document_id)
    except DocumentNotFoundError as e:
        raise click.ClickException(str(e)) from e

    data = document.to_dict()
    data["line_items"] = [item.to_dict() for item in repository.get_line_items(document_id)]
    click.echo(yaml.safe_dump(data, allow_unicode=True, sort_keys=False))


@cli.command()
@click.argument("document_id")
@click.pass_context
def attempts(ctx: click.Context, document_id: str) -> None:
    """List processing attempts of a document."""
    try:
        records = _service(ctx).repository.list_attempts(document_id)
    except DocumentNotFoundError as e:
        raise click.ClickException(str(e)) from e

    if not records:
        click.echo("No attempts")
        return
    for attempt in records:
        click.echo(format_attempt(attempt))


@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show document counts by status."""
    for key, value in _service(ctx).stats().items():
        click.echo(f"{key}: {value}")


@cli.command("ingest-email")
@click.argument("eml", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--auto-process/--no-auto-process", default=True, help="Process attachments now")
@click.option(
    "--default-type", type=click.Choice(DOCUMENT_TYPES), default="invoice",
    help="Type used when the subject gives no hint",
)
@click.option("--allow-sender", multiple=True, help="Only accept these senders")
@click.option("--block-sender", multiple=True, help="Reject these senders")
@click.option("--delete", is_flag=True, help="Delete the email file once ingested")
@click.pass_context
def ingest_email(
    ctx: click.Context,
    eml: Path,
    auto_process: bool,
    default_type: str,
    allow_sender: tuple[str, ...],
    block_sender: tuple[str, ...],
    delete: bool,
) -> None:
    """Register document attachments of a saved email."""
    with open(eml, "rb") as f:
        message = BytesParser(policy=policy.default).parse(f)

    email_settings = EmailSettings(
        allowed_senders=list(allow_sender),
        blocked_senders=list(block_sender),
        default_document_type=DocumentType(default_type),
        auto_process_attachments=auto_process,
        delete_processed_emails=delete,
    )
    settings = ctx.obj["settings"]
    ingestion = EmailIngestionService(lambda tenant_id: build_service(settings, tenant_id))
    documents = ingestion.ingest(message, email_settings)

    if not documents:
        click.echo("No documents ingested")
        return

    for document in documents:
        click.echo(f"{document.id} {document.type.value} {document.status.value} {document.title}")

    if email_settings.delete_processed_emails:
        eml.unlink()
        click.echo(f"Removed: {eml}")


if __name__ == "__main__":
    cli()
