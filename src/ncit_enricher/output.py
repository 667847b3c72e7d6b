"""
Writers for enrichment outputs.

output.json is always written as 2-space indented UTF-8 JSON with a
trailing newline so that identical inputs produce byte-identical files.
"""

import json
import logging
from pathlib import Path
from typing import Any, Iterable, List

from .data_types import EnrichedRecord, EnrichmentWarning
from .exceptions import OutputWriteError

logger = logging.getLogger(__name__)

JSON_INDENT = 2


def _prepare_path(path: Path) -> Path:
    """Create the parent directory of an output file."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputWriteError(f"Cannot create directory {path.parent}: {e}") from e
    return path


def write_json(document: Any, path: Path) -> None:
    """
    Write a JSON document deterministically.

    Args:
        document: JSON-serializable value
        path: Destination file

    Raises:
        OutputWriteError: If the file cannot be written
    """
    _prepare_path(path)
    try:
        with open(path, "w", encoding="utf-8", newline="\n") as f:
            json.dump(document, f, indent=JSON_INDENT, ensure_ascii=False)
            f.write("\n")
    except OSError as e:
        raise OutputWriteError(f"Cannot write {path}: {e}") from e


def write_records(records: Iterable[EnrichedRecord], path: Path) -> int:
    """
    Write enriched records as a single JSON array.

    Returns:
        Number of records written
    """
    payload = [record.to_dict() for record in records]
    write_json(payload, path)
    logger.info(f"Wrote {len(payload)} enriched records to {path}")
    return len(payload)


def write_codesystem(resource: dict, path: Path) -> None:
    """Write a merged FHIR CodeSystem resource."""
    write_json(resource, path)
    logger.info(f"Wrote CodeSystem with {len(resource.get('concept', []))} concepts to {path}")


def format_warnings(warnings: Iterable[EnrichmentWarning]) -> List[str]:
    """Render warnings as newline-terminated lines."""
    return [f"{warning.to_line()}\n" for warning in warnings]


def write_warnings(warnings: Iterable[EnrichmentWarning], path: Path) -> int:
    """
    Write warnings one per line. No warnings gives an empty file.

    Returns:
        Number of lines written

    Raises:
        OutputWriteError: If the file cannot be written
    """
    lines = format_warnings(warnings)
    _prepare_path(path)
    try:
        with open(path, "w", encoding="utf-8", newline="\n") as f:
            f.writelines(lines)
    except OSError as e:
        raise OutputWriteError(f"Cannot write {path}: {e}") from e

    logger.info(f"Wrote {len(lines)} warnings to {path}")
    return len(lines)
