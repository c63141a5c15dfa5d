"""Content storage adapters."""

from .filesystem import FilesystemContentAdapter

__all__ = ["FilesystemContentAdapter"]
