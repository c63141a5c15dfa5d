"""paperledger - document data extraction and invoice validation."""

__version__ = "0.1.0"
