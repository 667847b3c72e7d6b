"""
Type-safe dataclasses for the NCIt enrichment module.

This module defines the data structures passed between the thesaurus loader,
the new-codes loader, the enrichment engine and the output writers.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

# Characters that would split a warnings.txt line or shift its columns
LINE_ESCAPES = {"\\": "\\\\", "\n": "\\n", "\r": "\\r", "\t": "\\t"}


def escape_field(value: str) -> str:
    """Escape backslashes, line breaks and tabs so a value stays on one field."""
    return "".join(LINE_ESCAPES.get(char, char) for char in value)


class WarningKind(Enum):
    """Kind of anomaly recorded during an enrichment run."""

    MALFORMED_ROW = "malformed_row"
    DUPLICATE_CODE = "duplicate_code"
    INVALID_NEW_CODE = "invalid_new_code"
    UNMATCHED_CODE = "unmatched_code"
    TERM_MISMATCH = "term_mismatch"
    DISPLAY_MISMATCH = "display_mismatch"
    ALREADY_PRESENT = "already_present"

    @property
    def is_info(self) -> bool:
        """Whether this kind is informational rather than a warning."""
        return self is WarningKind.ALREADY_PRESENT


@dataclass(frozen=True)
class ThesaurusEntry:
    """
    A single row of the NCIt flat thesaurus file.

    Attributes:
        code: NCIt concept code (e.g., "C287")
        iri: Concept IRI
        parents: Parent concept codes
        synonyms: All terms for the concept; the first is the NCIt preferred term
        definition: Concept definition (may be empty)
        display_name: Display name column (may be empty)
        concept_status: Concept status column (may be empty)
        semantic_type: Semantic type(s)
        subsets: Concept-in-subset names
    """

    code: str
    iri: str = ""
    parents: List[str] = field(default_factory=list)
    synonyms: List[str] = field(default_factory=list)
    definition: str = ""
    display_name: Optional[str] = None
    concept_status: Optional[str] = None
    semantic_type: str = ""
    subsets: List[str] = field(default_factory=list)

    @property
    def preferred_term(self) -> str:
        """The NCIt preferred term, which is always the first synonym."""
        return self.synonyms[0]

    @property
    def alternate_terms(self) -> List[str]:
        """All synonyms except the preferred term."""
        return list(self.synonyms[1:])


@dataclass(frozen=True)
class NewCode:
    """
    A code to enrich, as read from the new-codes document.

    Attributes:
        code: NCIt code to look up
        pqcmc_term: PQCMC preferred term, attached as a synonym
        definition: Definition carried by CodeSystem-shaped input
        designations: Designations carried by CodeSystem-shaped input
        children: Nested child concepts carried by CodeSystem-shaped input
    """

    code: str
    pqcmc_term: Optional[str] = None
    definition: Optional[str] = None
    designations: List[Dict[str, Any]] = field(default_factory=list)
    children: List[Dict[str, Any]] = field(default_factory=list)

    def __str__(self) -> str:
        return f'{self.code} "{self.pqcmc_term or ""}"'


@dataclass
class EnrichedRecord:
    """
    Output unit of an enrichment run.

    Attributes:
        code: NCIt code
        display: NCIt preferred term
        synonyms: Deduplicated synonyms, NCIt terms first, PQCMC term last
    """

    code: str
    display: str
    synonyms: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON object written to output.json."""
        return {
            "code": self.code,
            "display": self.display,
            "synonyms": list(self.synonyms),
        }


@dataclass(frozen=True)
class EnrichmentWarning:
    """
    One diagnostic line of warnings.txt.

    Attributes:
        kind: Kind of anomaly
        code: Code (or line reference) the anomaly concerns
        message: Human-readable description
    """

    kind: WarningKind
    code: str
    message: str

    def to_line(self) -> str:
        """Render as a tab-separated line without trailing newline."""
        level = "INFO" if self.kind.is_info else "WARN"
        code = escape_field(self.code)
        message = escape_field(self.message)
        return f"{level}\t{self.kind.value}\t{code}\t{message}"

    def __str__(self) -> str:
        return self.to_line()


@dataclass
class EnrichmentStats:
    """Statistics for an enrichment run."""

    thesaurus_rows: int = 0
    thesaurus_rows_skipped: int = 0
    new_codes_read: int = 0
    new_codes_skipped: int = 0
    enriched: int = 0
    unmatched: int = 0
    term_mismatches: int = 0
    # CodeSystem merge counters
    already_exists: int = 0
    wrong_display: int = 0
    new_code: int = 0
    not_ncit_code: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    def duration_seconds(self) -> float:
        """Calculate run duration in seconds."""
        if self.start_time and self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return 0.0


@dataclass
class EnrichmentResult:
    """
    Complete result of an enrichment run.

    Attributes:
        records: Enriched records in input order (empty in CodeSystem mode)
        warnings: Warnings in the order they were raised
        stats: Run statistics
        codesystem: Merged CodeSystem resource, when merge mode was used
    """

    records: List[EnrichedRecord] = field(default_factory=list)
    warnings: List[EnrichmentWarning] = field(default_factory=list)
    stats: EnrichmentStats = field(default_factory=EnrichmentStats)
    codesystem: Optional[Dict[str, Any]] = None

    def warnings_of(self, kind: WarningKind) -> List[EnrichmentWarning]:
        """Get all warnings of a given kind."""
        return [w for w in self.warnings if w.kind is kind]
