"""
Exceptions for the NCIt enrichment module.

Every fatal condition of an enrichment run is raised as a subclass of
EnrichmentError. Recoverable anomalies are never raised; they are collected
as EnrichmentWarning entries instead.
"""


class EnrichmentError(Exception):
    """Base exception for enrichment errors."""

    pass


class ConfigurationError(EnrichmentError):
    """Exception raised when the run configuration is invalid."""

    pass


class InputFileError(EnrichmentError):
    """Exception raised when a required input file is missing or unreadable."""

    pass


class NewCodesFormatError(EnrichmentError):
    """Exception raised when the new-codes document cannot be parsed."""

    pass


class CodeSystemFormatError(EnrichmentError):
    """Exception raised when the base CodeSystem resource cannot be parsed."""

    pass


class OutputWriteError(EnrichmentError):
    """Exception raised when an output file cannot be written."""

    pass
