"""Repository adapters."""

from .memory import InMemoryRepository
from .yaml_store import YamlRepository

__all__ = ["InMemoryRepository", "YamlRepository"]
