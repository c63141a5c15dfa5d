"""Ports - interfaces for external dependencies."""

from .content import ContentPort
from .repository import DocumentRepository, TenantContext
from .understanding import UnderstandingPort

__all__ = ["ContentPort", "DocumentRepository", "TenantContext", "UnderstandingPort"]
