"""Content adapter using the local filesystem."""

import logging
import re
from pathlib import Path, PurePosixPath

from ...exceptions import ContentUnavailableError
from ...ports.content import ContentPort

logger = logging.getLogger(__name__)


def sanitize_filename(name: str, max_length: int = 180) -> str:
    """Remove/replace characters invalid in filenames."""
    # Remove null bytes
    name = name.replace("\x00", "")
    # Replace path traversal attempts
    name = name.replace("..", "_")
    # Replace problematic characters
    name = re.sub(r'[<>:"/\\|?*]', "_", name)
    # Collapse multiple spaces/underscores
    name = re.sub(r"[_\s]+", " ", name)
    # Remove leading/trailing dots and spaces
    name = name.strip(". ")
    if len(name) > max_length:
        stem, dot, suffix = name.rpartition(".")
        if dot and len(suffix) < 10:
            name = stem[: max_length - len(suffix) - 1] + "." + suffix
        else:
            name = name[:max_length]
    return name or "Untitled"


class FilesystemContentAdapter(ContentPort):
    """Stores document bytes below a base directory."""

    def __init__(self, base_path: Path) -> None:
        self.base_path = base_path

    def _resolve(self, path: str) -> Path:
        resolved = (self.base_path / path).resolve()
        if not resolved.is_relative_to(self.base_path.resolve()):
            raise ContentUnavailableError(f"Path escapes content root: {path}")
        return resolved

    def fetch(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return target.read_bytes()
        except OSError as e:
            raise ContentUnavailableError(f"Content not available: {path} ({e.strerror})") from e

    def store(self, path: str, data: bytes) -> str:
        """Store data under a sanitized relative path."""
        parts = [sanitize_filename(p) for p in PurePosixPath(path).parts if p not in ("/", "")]
        relative = PurePosixPath(*parts)

        dest = self.base_path / relative
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(data)
        logger.info(f"Stored content: {relative} ({len(data)} bytes)")

        return str(relative)
