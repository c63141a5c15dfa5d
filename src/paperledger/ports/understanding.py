"""Document-understanding port - interface for model-based extraction."""

from abc import ABC, abstractmethod


class UnderstandingPort(ABC):
    """Interface for an external document-understanding service."""

    @abstractmethod
    def complete(self, prompt: str, payload: bytes, mime_type: str) -> str:
        """Send prompt and document payload, return the model's free-form text.

        Raises UnderstandingServiceError on transport errors, non-2xx
        responses and timeouts.
        """
        pass
