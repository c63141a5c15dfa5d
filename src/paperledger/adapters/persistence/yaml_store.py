"""Repository adapter storing one YAML record per document."""

import fcntl
import logging
import os
import re
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import yaml

from ...domain.models import Document, DocumentStatus, LineItem, ProcessingAttempt
from ...exceptions import AttemptStateError, DocumentNotFoundError
from ...ports.repository import DocumentRepository, TenantContext
from ..storage.filesystem import sanitize_filename
from .locks import DocumentLocks

logger = logging.getLogger(__name__)

DOCUMENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class YamlRepository(DocumentRepository):
    """Persists documents as <base>/<tenant>/documents/<id>.yaml.

    Each record holds the document, its line items and its attempts. Writes
    replace the file atomically; attempt creation holds a per-document
    thread lock plus an advisory file lock so concurrent processes cannot
    hand out the same attempt number.
    """

    def __init__(self, base_path: Path, tenant: TenantContext) -> None:
        super().__init__(tenant)
        self.directory = base_path / sanitize_filename(tenant.tenant_id) / "documents"
        self.directory.mkdir(parents=True, exist_ok=True)
        self._locks = DocumentLocks()

    def _path(self, document_id: str) -> Path:
        if not DOCUMENT_ID_PATTERN.match(document_id):
            raise DocumentNotFoundError(f"Invalid document id: {document_id}")
        return self.directory / f"{document_id}.yaml"

    @contextmanager
    def _locked(self, document_id: str) -> Iterator[None]:
        lock_path = self._path(document_id).with_suffix(".lock")
        with self._locks(document_id), open(lock_path, "a") as handle:
            fcntl.flock(handle, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(handle, fcntl.LOCK_UN)

    def _read(self, document_id: str) -> dict[str, Any]:
        path = self._path(document_id)
        if not path.exists():
            raise DocumentNotFoundError(f"Document not found: {document_id}")
        return yaml.safe_load(path.read_text()) or {}

    def _write(self, document_id: str, record: dict[str, Any]) -> None:
        path = self._path(document_id)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                yaml.safe_dump(record, f, allow_unicode=True, sort_keys=False)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def add_document(self, document: Document) -> Document:
        document.tenant_id = self.tenant.tenant_id
        with self._locked(document.id):
            self._write(
                document.id,
                {"document": document.to_dict(), "line_items": [], "attempts": []},
            )
        return document

    def get_document(self, document_id: str) -> Document:
        return Document.from_dict(self._read(document_id)["document"])

    def save_document(self, document: Document) -> None:
        with self._locked(document.id):
            record = self._read(document.id)
            record["document"] = document.to_dict()
            self._write(document.id, record)

    def list_documents(self, status: DocumentStatus | None = None) -> list[Document]:
        documents = []
        for path in sorted(self.directory.glob("*.yaml")):
            try:
                document = self.get_document(path.stem)
            except (yaml.YAMLError, KeyError, ValueError) as e:
                logger.warning(f"Skipping unreadable record {path.name}: {e}")
                continue
            if status is None or document.status == status:
                documents.append(document)
        return sorted(documents, key=lambda d: d.created_at)

    def get_line_items(self, document_id: str) -> list[LineItem]:
        record = self._read(document_id)
        return [LineItem.from_mapping(item) for item in record.get("line_items", [])]

    def replace_line_items(self, document_id: str, items: list[LineItem]) -> None:
        with self._locked(document_id):
            record = self._read(document_id)
            record["line_items"] = [item.to_dict() for item in items]
            self._write(document_id, record)

    def create_attempt(self, document: Document) -> ProcessingAttempt:
        with self._locked(document.id):
            record = self._read(document.id)
            attempts = record.setdefault("attempts", [])
            number = max((int(a["attempt_number"]) for a in attempts), default=0) + 1
            attempt = ProcessingAttempt(document_id=document.id, attempt_number=number)
            attempts.append(attempt.to_dict())
            self._write(document.id, record)
        return attempt

    def save_attempt(self, attempt: ProcessingAttempt) -> None:
        with self._locked(attempt.document_id):
            record = self._read(attempt.document_id)
            attempts = record.get("attempts", [])
            for index, stored in enumerate(attempts):
                if stored["id"] != attempt.id:
                    continue
                if stored["status"] != "pending":
                    raise AttemptStateError(
                        f"Attempt {stored['attempt_number']} is already {stored['status']}"
                    )
                attempts[index] = attempt.to_dict()
                self._write(attempt.document_id, record)
                return
        raise AttemptStateError(f"Unknown attempt: {attempt.id}")

    def list_attempts(self, document_id: str) -> list[ProcessingAttempt]:
        record = self._read(document_id)
        attempts = [ProcessingAttempt.from_dict(a) for a in record.get("attempts", [])]
        return sorted(attempts, key=lambda a: a.attempt_number)
