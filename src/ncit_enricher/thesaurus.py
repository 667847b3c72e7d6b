"""
NCIt flat thesaurus loader.

Parses the tab-delimited Thesaurus.txt distributed in NCI's Thesaurus.FLAT
archive into an index of ThesaurusEntry keyed by concept code.

Column layout (no header row):
    0  code
    1  concept IRI
    2  parents (pipe delimited)
    3  synonyms (pipe delimited, first is the NCIt preferred term)
    4  definition
    5  display name (may be empty)
    6  concept status (may be empty)
    7  semantic type
    8  concept in subset (pipe delimited, may be empty)
"""

import csv
import logging
import sys
from typing import Dict, Iterable, List, Optional, TextIO, Tuple

from .data_types import EnrichmentWarning, ThesaurusEntry, WarningKind
from .exceptions import InputFileError

logger = logging.getLogger(__name__)

# Constants
FIELD_DELIMITER = "\t"
VALUE_DELIMITER = "|"
MIN_COLUMNS = 4  # code, iri, parents, synonyms
PROGRESS_LOG_INTERVAL = 50000  # Log progress every N rows

COL_CODE = 0
COL_IRI = 1
COL_PARENTS = 2
COL_SYNONYMS = 3
COL_DEFINITION = 4
COL_DISPLAY_NAME = 5
COL_CONCEPT_STATUS = 6
COL_SEMANTIC_TYPE = 7
COL_SUBSETS = 8

# Definitions in the full NCIt file exceed the csv module's default field limit
FIELD_SIZE_LIMIT = min(sys.maxsize, 2**31 - 1)

Thesaurus = Dict[str, ThesaurusEntry]


def split_values(value: str) -> List[str]:
    """Split a pipe-delimited column, dropping empty parts."""
    return [part.strip() for part in value.split(VALUE_DELIMITER) if part.strip()]


def _column(cols: List[str], index: int) -> str:
    return cols[index].strip() if index < len(cols) else ""


def parse_row(cols: List[str]) -> Optional[ThesaurusEntry]:
    """
    Convert one row of columns into a ThesaurusEntry.

    Args:
        cols: Raw column values

    Returns:
        ThesaurusEntry, or None if the row is malformed
    """
    if len(cols) < MIN_COLUMNS:
        return None

    code = _column(cols, COL_CODE)
    synonyms = split_values(_column(cols, COL_SYNONYMS))
    if not code or not synonyms:
        return None

    return ThesaurusEntry(
        code=code,
        iri=_column(cols, COL_IRI),
        parents=split_values(_column(cols, COL_PARENTS)),
        synonyms=synonyms,
        definition=_column(cols, COL_DEFINITION),
        display_name=_column(cols, COL_DISPLAY_NAME) or None,
        concept_status=_column(cols, COL_CONCEPT_STATUS) or None,
        semantic_type=_column(cols, COL_SEMANTIC_TYPE),
        subsets=split_values(_column(cols, COL_SUBSETS)),
    )


class ThesaurusLoader:
    """
    Builds the code index from NCIt flat thesaurus rows.

    Malformed rows and repeated codes do not stop loading; each one is
    recorded as an EnrichmentWarning on the loader.
    """

    def __init__(self):
        self.warnings: List[EnrichmentWarning] = []
        self.rows_read = 0
        self.rows_skipped = 0

    def _warn(self, kind: WarningKind, code: str, message: str) -> None:
        logger.warning(f"{kind.value}: {code}: {message}")
        self.warnings.append(EnrichmentWarning(kind=kind, code=code, message=message))

    def load(self, stream: TextIO) -> Thesaurus:
        """
        Parse a thesaurus stream into an index.

        Args:
            stream: Text stream of the flat file

        Returns:
            Mapping of code to ThesaurusEntry

        Raises:
            InputFileError: If the stream is not valid UTF-8 text
        """
        previous_limit = csv.field_size_limit(FIELD_SIZE_LIMIT)
        try:
            reader = csv.reader(stream, delimiter=FIELD_DELIMITER, quoting=csv.QUOTE_NONE)
            return self.load_rows(enumerate(reader, 1))
        except UnicodeDecodeError as e:
            raise InputFileError(f"Thesaurus is not valid UTF-8: {e}") from e
        finally:
            csv.field_size_limit(previous_limit)

    def load_rows(self, rows: Iterable[Tuple[int, List[str]]]) -> Thesaurus:
        """
        Index numbered rows of columns.

        Args:
            rows: (line number, columns) pairs

        Returns:
            Mapping of code to ThesaurusEntry
        """
        thesaurus: Thesaurus = {}

        for line_number, cols in rows:
            if not cols or not any(c.strip() for c in cols):
                continue

            self.rows_read += 1
            entry = parse_row(cols)
            if entry is None:
                self.rows_skipped += 1
                code = _column(cols, COL_CODE) or f"line {line_number}"
                self._warn(
                    WarningKind.MALFORMED_ROW,
                    code,
                    f"skipped malformed thesaurus row at line {line_number} "
                    f"({len(cols)} columns)",
                )
                continue

            if entry.code in thesaurus:
                self.rows_skipped += 1
                self._warn(
                    WarningKind.DUPLICATE_CODE,
                    entry.code,
                    f"duplicate thesaurus code at line {line_number}; "
                    f"keeping \"{thesaurus[entry.code].preferred_term}\", "
                    f"ignoring \"{entry.preferred_term}\"",
                )
                continue

            thesaurus[entry.code] = entry

            if self.rows_read % PROGRESS_LOG_INTERVAL == 0:
                logger.info(f"Read {self.rows_read:,} thesaurus rows")

        logger.info(
            f"Loaded {len(thesaurus):,} thesaurus entries "
            f"({self.rows_skipped:,} rows skipped)"
        )
        return thesaurus


def load_thesaurus(stream: TextIO) -> Tuple[Thesaurus, List[EnrichmentWarning]]:
    """
    Convenience function to load a thesaurus stream.

    Returns:
        Tuple of (code index, warnings raised while loading)
    """
    loader = ThesaurusLoader()
    thesaurus = loader.load(stream)
    return thesaurus, loader.warnings
