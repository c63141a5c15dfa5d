"""Email ingestion - turn inbound email attachments into documents."""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import getaddresses, parseaddr
from pathlib import PurePath

from .models import Document, DocumentStatus, DocumentType
from .services import ProcessingService

logger = logging.getLogger(__name__)

TENANT_ADDRESS_PATTERN = re.compile(r"tenant-(\w+)@", re.IGNORECASE)
PURCHASE_ORDER_PATTERN = re.compile(r"purchase order|\bpo\b")

ALLOWED_EXTENSIONS = frozenset({"pdf", "jpg", "jpeg", "png", "doc", "docx", "xls", "xlsx"})
ALLOWED_MIME_TYPES = frozenset(
    {
        "application/pdf",
        "image/jpeg",
        "image/png",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    }
)


@dataclass
class EmailSettings:
    """Per-user switches for email ingestion."""

    process_email_attachments: bool = True
    allowed_senders: list[str] = field(default_factory=list)
    blocked_senders: list[str] = field(default_factory=list)
    default_document_type: DocumentType = DocumentType.INVOICE
    auto_process_attachments: bool = True
    delete_processed_emails: bool = False

    def is_sender_allowed(self, sender: str) -> bool:
        """Blocked senders always lose; an empty allow list admits everyone else."""
        if sender in self.blocked_senders:
            return False
        if not self.allowed_senders:
            return True
        return sender in self.allowed_senders

    @property
    def should_process_attachments(self) -> bool:
        return self.process_email_attachments and self.auto_process_attachments


def tenant_from_address(address: str) -> str | None:
    """Extract the tenant id from a tenant-<id>@domain address."""
    match = TENANT_ADDRESS_PATTERN.search(address)
    return match.group(1) if match else None


def is_document_attachment(filename: str, content_type: str) -> bool:
    extension = PurePath(filename).suffix.lstrip(".").lower()
    return extension in ALLOWED_EXTENSIONS or content_type in ALLOWED_MIME_TYPES


def document_type_from_subject(subject: str, default: DocumentType) -> DocumentType:
    """Guess the document type from subject keywords."""
    subject = subject.lower()

    if "invoice" in subject:
        return DocumentType.INVOICE
    if "receipt" in subject:
        return DocumentType.RECEIPT
    if PURCHASE_ORDER_PATTERN.search(subject):
        return DocumentType.PURCHASE_ORDER
    return default


def resolve_tenant(message: EmailMessage) -> str | None:
    """Find the tenant from the recipients, falling back to the sender."""
    recipients = getaddresses(
        message.get_all("Delivered-To", []) + message.get_all("To", [])
    )
    for _, address in recipients:
        tenant_id = tenant_from_address(address)
        if tenant_id:
            return tenant_id
    return tenant_from_address(parseaddr(message.get("From", ""))[1])


class EmailIngestionService:
    """Registers document attachments of an email and optionally processes them."""

    def __init__(self, service_for_tenant: Callable[[str], ProcessingService]) -> None:
        self.service_for_tenant = service_for_tenant

    def ingest(self, message: EmailMessage, settings: EmailSettings) -> list[Document]:
        sender = parseaddr(message.get("From", ""))[1]
        tenant_id = resolve_tenant(message)

        if not tenant_id:
            logger.warning(f"Could not determine tenant for email from {sender}")
            return []

        if not settings.process_email_attachments:
            logger.info(f"Email attachment processing disabled for tenant {tenant_id}")
            return []

        if not settings.is_sender_allowed(sender):
            logger.info(f"Email sender not in allowed list: {sender}")
            return []

        service = self.service_for_tenant(tenant_id)
        document_type = document_type_from_subject(
            message.get("Subject", ""), settings.default_document_type
        )

        documents = []
        for part in message.iter_attachments():
            filename = part.get_filename()
            content_type = part.get_content_type()

            if not filename or not is_document_attachment(filename, content_type):
                continue

            try:
                document = service.register(
                    part.get_payload(decode=True) or b"",
                    filename,
                    document_type=document_type,
                    mime_type=content_type,
                    prefix=f"email-attachments/{tenant_id}",
                    status=(
                        DocumentStatus.PROCESSING
                        if settings.auto_process_attachments
                        else DocumentStatus.PENDING
                    ),
                )
                if settings.auto_process_attachments:
                    service.process(document)
            except Exception as e:
                logger.exception(f"Failed to process email attachment {filename}: {e}")
                continue

            logger.info(f"Processed email attachment {filename} as document {document.id}")
            documents.append(document)

        return documents
