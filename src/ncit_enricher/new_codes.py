"""
New-codes document loader.

Reads the JSON document listing the codes to enrich. Two shapes are
accepted:

- a JSON array of objects, e.g. ``[{"code": "C287", "pqcmcTerm": "Aspirin"}]``
- a FHIR CodeSystem resource whose ``concept`` entries carry the PQCMC
  preferred term as ``display``

A document that is not valid JSON or has neither shape is fatal. Single
entries without a usable code are skipped with a warning.
"""

import copy
import json
import logging
from typing import Any, Dict, List, TextIO, Tuple

from .data_types import EnrichmentWarning, NewCode, WarningKind
from .exceptions import InputFileError, NewCodesFormatError

logger = logging.getLogger(__name__)

# Keys that may carry the PQCMC preferred term, in order of preference
PQCMC_TERM_KEYS = ("pqcmcTerm", "pqcmc_term", "display")


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (str, int)) and not isinstance(value, bool):
        return str(value).strip()
    return ""


def _objects(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [copy.deepcopy(item) for item in value if isinstance(item, dict)]


def _extract_items(document: Any) -> List[Any]:
    """Get the list of code entries from either accepted document shape."""
    if isinstance(document, list):
        return document

    if isinstance(document, dict):
        concepts = document.get("concept")
        if isinstance(concepts, list):
            resource_type = document.get("resourceType")
            if resource_type not in (None, "CodeSystem"):
                raise NewCodesFormatError(
                    f"Expected a CodeSystem resource, got resourceType '{resource_type}'"
                )
            return concepts
        raise NewCodesFormatError(
            "New codes object has no 'concept' array"
        )

    raise NewCodesFormatError(
        f"New codes document must be a JSON array or CodeSystem object, "
        f"got {type(document).__name__}"
    )


def parse_new_codes(document: Any) -> Tuple[List[NewCode], List[EnrichmentWarning]]:
    """
    Convert a decoded JSON document into NewCode entries.

    Args:
        document: Decoded JSON value

    Returns:
        Tuple of (codes in document order, warnings for skipped entries)

    Raises:
        NewCodesFormatError: If the document shape is not supported
    """
    items = _extract_items(document)
    codes: List[NewCode] = []
    warnings: List[EnrichmentWarning] = []

    for position, item in enumerate(items, 1):
        if not isinstance(item, dict):
            raise NewCodesFormatError(
                f"Entry {position} must be an object, got {type(item).__name__}"
            )

        code = _text(item.get("code"))
        if not code:
            message = f"skipped entry {position}: missing or empty code"
            logger.warning(message)
            warnings.append(EnrichmentWarning(
                kind=WarningKind.INVALID_NEW_CODE,
                code=f"entry {position}",
                message=message,
            ))
            continue

        pqcmc_term = ""
        for key in PQCMC_TERM_KEYS:
            pqcmc_term = _text(item.get(key))
            if pqcmc_term:
                break

        codes.append(NewCode(
            code=code,
            pqcmc_term=pqcmc_term or None,
            definition=_text(item.get("definition")) or None,
            designations=_objects(item.get("designation")),
            children=_objects(item.get("concept")),
        ))

    return codes, warnings


def load_new_codes(stream: TextIO) -> Tuple[List[NewCode], List[EnrichmentWarning]]:
    """
    Parse a new-codes JSON stream.

    Args:
        stream: Text stream of the JSON document

    Returns:
        Tuple of (codes in document order, warnings for skipped entries)

    Raises:
        InputFileError: If the stream is not valid UTF-8 text
        NewCodesFormatError: If the stream is not valid JSON or has an unsupported shape
    """
    try:
        document = json.load(stream)
    except UnicodeDecodeError as e:
        raise InputFileError(f"New codes document is not valid UTF-8: {e}") from e
    except json.JSONDecodeError as e:
        raise NewCodesFormatError(f"Invalid JSON in new codes document: {e}") from e

    codes, warnings = parse_new_codes(document)
    logger.info(f"Read {len(codes)} new codes ({len(warnings)} skipped)")
    return codes, warnings
