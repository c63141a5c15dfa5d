"""Content port - interface for raw document storage."""

from abc import ABC, abstractmethod


class ContentPort(ABC):
    """Interface for fetching and storing raw document bytes."""

    @abstractmethod
    def fetch(self, path: str) -> bytes:
        """Return the raw bytes stored under path.

        Raises ContentUnavailableError if the object is missing or unreachable.
        """
        pass

    @abstractmethod
    def store(self, path: str, data: bytes) -> str:
        """Store data under path.

        Returns the handle to use with fetch.
        """
        pass
