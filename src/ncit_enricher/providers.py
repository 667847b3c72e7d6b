"""
Source providers for enrichment inputs.

The engine never opens input files itself. It asks a SourceProvider for
text streams, so tests (and callers that already hold the data) can feed
the engine without touching the file system.
"""

import logging
from pathlib import Path
from typing import Optional, Protocol, TextIO

from .config import EnrichmentConfig
from .exceptions import InputFileError

logger = logging.getLogger(__name__)


class SourceProvider(Protocol):
    """Supplies the thesaurus, new-codes and base CodeSystem inputs as text streams."""

    def open_thesaurus(self) -> TextIO:
        ...

    def open_new_codes(self) -> TextIO:
        ...

    def open_base_codesystem(self) -> Optional[TextIO]:
        ...


def open_text(path: Path, label: str) -> TextIO:
    """
    Open an input file for reading as UTF-8 text.

    A leading byte order mark is dropped.

    Args:
        path: File to open
        label: Human-readable input name used in error messages

    Returns:
        Open text stream (caller closes it)

    Raises:
        InputFileError: If the file is missing or cannot be opened
    """
    if not path.exists():
        raise InputFileError(f"{label} file not found: {path}")
    if not path.is_file():
        raise InputFileError(f"{label} path is not a file: {path}")

    try:
        # newline="" keeps embedded carriage returns intact for the csv reader
        return open(path, "r", encoding="utf-8-sig", newline="")
    except OSError as e:
        raise InputFileError(f"Cannot read {label} file {path}: {e}") from e


class LocalFileProvider:
    """Opens inputs from the paths named in an EnrichmentConfig."""

    def __init__(self, config: EnrichmentConfig):
        self.config = config

    def open_thesaurus(self) -> TextIO:
        logger.debug(f"Opening thesaurus: {self.config.thesaurus_path}")
        return open_text(self.config.thesaurus_path, "Thesaurus")

    def open_new_codes(self) -> TextIO:
        logger.debug(f"Opening new codes: {self.config.new_codes_path}")
        return open_text(self.config.new_codes_path, "New codes")

    def open_base_codesystem(self) -> Optional[TextIO]:
        if self.config.base_codesystem_path is None:
            return None
        logger.debug(f"Opening base CodeSystem: {self.config.base_codesystem_path}")
        return open_text(self.config.base_codesystem_path, "Base CodeSystem")
