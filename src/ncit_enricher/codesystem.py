"""
FHIR CodeSystem merge.

Merges new codes into an existing NCIt CodeSystem resource, such as the
CodeSystem-nciThesaurus-fragment.json resource shipped in the
fhir.tx.support.r4 package:

- codes already in the resource keep their display; a differing term is
  added as a synonym designation unless one already matches
- codes missing from the resource are added with the NCIt preferred term as
  display and the PQCMC term as a synonym designation
- codes unknown to the thesaurus are reported and left out

Resource properties this module does not touch are written back unchanged.
"""

import copy
import json
import logging
from typing import Any, Dict, List, Optional, TextIO

from .data_types import EnrichmentStats, EnrichmentWarning, NewCode, WarningKind
from .exceptions import CodeSystemFormatError, InputFileError
from .thesaurus import Thesaurus

logger = logging.getLogger(__name__)

# SNOMED CT designation use for synonyms
SNOMED_SYSTEM = "http://snomed.info/sct"
SYNONYM_SNOMED_CODE = "900000000000013009"


def synonym_designation(term: str) -> Dict[str, Any]:
    """Build a FHIR designation marking a term as a synonym."""
    return {
        "use": {"system": SNOMED_SYSTEM, "code": SYNONYM_SNOMED_CODE},
        "value": term,
    }


def same_term(first: Optional[str], second: Optional[str]) -> bool:
    """Compare two terms ignoring case."""
    return (first or "").casefold() == (second or "").casefold()


def has_designation(concept: Dict[str, Any], term: str) -> bool:
    """Whether a concept already carries a designation with this value (ignoring case)."""
    return any(
        same_term(designation.get("value"), term)
        for designation in concept.get("designation") or []
    )


def add_synonym(concept: Dict[str, Any], term: str) -> None:
    """Append a synonym designation to a concept."""
    concept.setdefault("designation", []).append(synonym_designation(term))


def load_codesystem(stream: TextIO) -> Dict[str, Any]:
    """
    Parse a CodeSystem resource.

    Raises:
        InputFileError: If the stream is not valid UTF-8 text
        CodeSystemFormatError: If the stream is not a CodeSystem with a concept array
    """
    try:
        resource = json.load(stream)
    except UnicodeDecodeError as e:
        raise InputFileError(f"Base CodeSystem is not valid UTF-8: {e}") from e
    except json.JSONDecodeError as e:
        raise CodeSystemFormatError(f"Invalid JSON in base CodeSystem: {e}") from e

    if not isinstance(resource, dict):
        raise CodeSystemFormatError("Base CodeSystem must be a JSON object")

    resource_type = resource.get("resourceType")
    if resource_type != "CodeSystem":
        raise CodeSystemFormatError(
            f"Expected resourceType 'CodeSystem', got '{resource_type}'"
        )

    concepts = resource.setdefault("concept", [])
    if not isinstance(concepts, list) or not all(isinstance(c, dict) for c in concepts):
        raise CodeSystemFormatError("CodeSystem 'concept' must be an array of objects")

    logger.info(
        f"Loaded CodeSystem '{resource.get('id', '?')}' with {len(concepts)} concepts"
    )
    return resource


class CodeSystemMerger:
    """
    Adds new codes to a CodeSystem resource.

    The merger works on a deep copy of the resource it is given and records
    every anomaly in ``warnings``.
    """

    def __init__(
        self,
        resource: Dict[str, Any],
        thesaurus: Thesaurus,
        stats: Optional[EnrichmentStats] = None,
    ):
        """
        Initialize the merger.

        Args:
            resource: Parsed base CodeSystem resource
            thesaurus: NCIt code index
            stats: Statistics object to update (creates new if None)
        """
        self.resource = copy.deepcopy(resource)
        self.resource.setdefault("concept", [])
        self.thesaurus = thesaurus
        self.stats = stats or EnrichmentStats()
        self.warnings: List[EnrichmentWarning] = []
        self._index: Dict[str, Dict[str, Any]] = {}
        for concept in self.resource["concept"]:
            self._index.setdefault(str(concept.get("code", "")), concept)

    def _record(self, kind: WarningKind, code: str, message: str) -> None:
        if kind.is_info:
            logger.debug(f"{kind.value}: {code}: {message}")
        else:
            logger.warning(f"{kind.value}: {code}: {message}")
        self.warnings.append(EnrichmentWarning(kind=kind, code=code, message=message))

    def get_concept(self, code: str) -> Optional[Dict[str, Any]]:
        """Look up a concept of the resource by code."""
        return self._index.get(code)

    def check_and_add_concept(self, new_code: NewCode) -> None:
        """
        Merge one new code into the resource.

        Args:
            new_code: Code with its PQCMC term
        """
        existing = self.get_concept(new_code.code)
        if existing is not None:
            self._merge_existing(existing, new_code)
        else:
            self._add_new(new_code)

    def _merge_existing(self, existing: Dict[str, Any], new_code: NewCode) -> None:
        self.stats.already_exists += 1
        term = new_code.pqcmc_term
        display = existing.get("display", "")

        if term and not same_term(display, term) and not has_designation(existing, term):
            self._record(
                WarningKind.DISPLAY_MISMATCH,
                new_code.code,
                f"mismatched displays: old \"{display}\", new \"{term}\"; "
                f"added new term as synonym",
            )
            add_synonym(existing, term)
            self.stats.wrong_display += 1
        else:
            self._record(
                WarningKind.ALREADY_PRESENT,
                new_code.code,
                "already present with correct display",
            )

    def _add_new(self, new_code: NewCode) -> None:
        entry = self.thesaurus.get(new_code.code)
        if entry is None:
            self._record(
                WarningKind.UNMATCHED_CODE,
                new_code.code,
                f"non-NCIT code: {new_code}",
            )
            self.stats.not_ncit_code += 1
            self.stats.unmatched += 1
            return

        ncit_term = entry.preferred_term
        designations = copy.deepcopy(new_code.designations)
        term = new_code.pqcmc_term
        if term and not same_term(term, ncit_term):
            self._record(
                WarningKind.TERM_MISMATCH,
                new_code.code,
                f"PQCMC term \"{term}\" does not match NCIT preferred term \"{ncit_term}\"",
            )
            self.stats.term_mismatches += 1
            designations.append(synonym_designation(term))

        # Designations and child concepts are carried over, the definition is not
        concept: Dict[str, Any] = {"code": new_code.code, "display": ncit_term}
        if designations:
            concept["designation"] = designations
        if new_code.children:
            concept["concept"] = copy.deepcopy(new_code.children)

        self.resource["concept"].append(concept)
        self._index[new_code.code] = concept
        self.stats.new_code += 1

    def merge(self, new_codes: List[NewCode]) -> Dict[str, Any]:
        """
        Merge all new codes in order.

        Returns:
            The merged CodeSystem resource
        """
        for new_code in new_codes:
            self.check_and_add_concept(new_code)
        return self.resource
