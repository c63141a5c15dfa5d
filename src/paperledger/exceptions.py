"""Exceptions raised by the extraction and validation pipeline."""


class PaperledgerError(Exception):
    """Base exception for all paperledger errors."""


class ExtractionError(PaperledgerError):
    """Extraction of structured data from a document failed."""


class ContentUnavailableError(ExtractionError):
    """Raw document content could not be fetched."""


class UnderstandingServiceError(ExtractionError):
    """The document-understanding service call failed or timed out."""


class ExtractionValidationError(ExtractionError):
    """Extracted data did not pass the acceptance check."""


class DocumentNotFoundError(PaperledgerError):
    """No document with the requested id exists for the tenant."""


class AttemptStateError(PaperledgerError):
    """A processing attempt was moved out of a terminal status."""
