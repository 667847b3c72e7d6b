"""
Configuration Management for the NCIt enricher.

The enrichment engine receives an explicit EnrichmentConfig instead of
reading the environment itself. The configuration can be built from the
process environment (after loading a .env file) and then overridden field
by field, typically from command line arguments.
"""

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


# Environment variable names
ENV_THESAURUS = "THESAURUS"
ENV_NEW_CODES = "NEW_CODES"
ENV_OUTPUT = "OUTPUT"
ENV_WARNINGS = "WARNINGS"
ENV_BASE_CODESYSTEM = "BASE_CODESYSTEM"
ENV_INCLUDE_INFO = "INCLUDE_INFO"
ENV_FILE_NAME = ".env"

# Defaults match the file names used by the container pipeline
DEFAULT_THESAURUS_PATH = "Thesaurus.txt"
DEFAULT_NEW_CODES_PATH = "new-codes.json"
DEFAULT_OUTPUT_PATH = "output.json"
DEFAULT_WARNINGS_PATH = "warnings.txt"

TRUTHY_VALUES = frozenset(["1", "true", "yes", "on"])


def _parse_bool(value: Optional[str]) -> bool:
    """Interpret an environment string as a boolean flag."""
    if value is None:
        return False
    return value.strip().lower() in TRUTHY_VALUES


@dataclass(frozen=True)
class EnrichmentConfig:
    """
    Settings for one enrichment run.

    Attributes:
        thesaurus_path: NCIt flat thesaurus file (Thesaurus.txt)
        new_codes_path: JSON document listing the codes to enrich
        output_path: Destination of the enriched JSON document
        warnings_path: Destination of the diagnostics log
        base_codesystem_path: Optional FHIR CodeSystem to merge new codes into
        include_info: Whether informational entries are written to the log
    """

    thesaurus_path: Path = Path(DEFAULT_THESAURUS_PATH)
    new_codes_path: Path = Path(DEFAULT_NEW_CODES_PATH)
    output_path: Path = Path(DEFAULT_OUTPUT_PATH)
    warnings_path: Path = Path(DEFAULT_WARNINGS_PATH)
    base_codesystem_path: Optional[Path] = None
    include_info: bool = False

    @property
    def merge_mode(self) -> bool:
        """Whether new codes are merged into a base CodeSystem."""
        return self.base_codesystem_path is not None

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        load_env_file: bool = True,
    ) -> "EnrichmentConfig":
        """
        Build a configuration from environment variables.

        Args:
            environ: Mapping to read from (default: os.environ)
            load_env_file: Whether to load a .env file from the working directory first

        Returns:
            EnrichmentConfig with defaults for unset variables
        """
        if environ is None:
            if load_env_file:
                load_dotenv(Path.cwd() / ENV_FILE_NAME)
            environ = os.environ

        base_codesystem = environ.get(ENV_BASE_CODESYSTEM) or None

        return cls(
            thesaurus_path=Path(environ.get(ENV_THESAURUS) or DEFAULT_THESAURUS_PATH),
            new_codes_path=Path(environ.get(ENV_NEW_CODES) or DEFAULT_NEW_CODES_PATH),
            output_path=Path(environ.get(ENV_OUTPUT) or DEFAULT_OUTPUT_PATH),
            warnings_path=Path(environ.get(ENV_WARNINGS) or DEFAULT_WARNINGS_PATH),
            base_codesystem_path=Path(base_codesystem) if base_codesystem else None,
            include_info=_parse_bool(environ.get(ENV_INCLUDE_INFO)),
        )

    def with_overrides(self, **overrides: Any) -> "EnrichmentConfig":
        """
        Return a copy with the given fields replaced.

        None values are ignored so that unset command line options keep the
        environment value. Path fields accept strings.

        Raises:
            ConfigurationError: If an unknown field is given
        """
        changes: Dict[str, Any] = {}
        for name, value in overrides.items():
            if name not in self.__dataclass_fields__:
                raise ConfigurationError(f"Unknown configuration field: {name}")
            if value is None:
                continue
            if name.endswith("_path"):
                value = Path(value)
            changes[name] = value
        return replace(self, **changes)

    def validate(self) -> List[str]:
        """
        Check the configuration for problems.

        Returns:
            List of problem descriptions (empty if valid)
        """
        problems = []
        for name in ("thesaurus_path", "new_codes_path", "output_path", "warnings_path"):
            if str(getattr(self, name)).strip() in ("", "."):
                problems.append(f"{name} must not be empty")

        inputs = {self.thesaurus_path, self.new_codes_path}
        if self.base_codesystem_path is not None:
            inputs.add(self.base_codesystem_path)
        for name in ("output_path", "warnings_path"):
            if getattr(self, name) in inputs:
                problems.append(f"{name} must not overwrite an input file")

        if self.output_path == self.warnings_path:
            problems.append("output_path and warnings_path must differ")

        return problems

    def require_valid(self) -> None:
        """
        Raise if the configuration is invalid.

        Raises:
            ConfigurationError: Listing every problem found
        """
        problems = self.validate()
        if problems:
            raise ConfigurationError("; ".join(problems))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dictionary for logging."""
        return {
            "thesaurus_path": str(self.thesaurus_path),
            "new_codes_path": str(self.new_codes_path),
            "output_path": str(self.output_path),
            "warnings_path": str(self.warnings_path),
            "base_codesystem_path": (
                str(self.base_codesystem_path) if self.base_codesystem_path else None
            ),
            "include_info": self.include_info,
        }
