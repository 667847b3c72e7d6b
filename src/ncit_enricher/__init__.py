"""NCIt Enricher - Adds NCI Thesaurus preferred terms and synonyms to local code lists."""

__version__ = "0.1.0"

from .config import EnrichmentConfig
from .data_types import (
    EnrichedRecord,
    EnrichmentResult,
    EnrichmentStats,
    EnrichmentWarning,
    NewCode,
    ThesaurusEntry,
    WarningKind,
)
from .engine import EnrichmentEngine
from .exceptions import EnrichmentError
from .providers import LocalFileProvider, SourceProvider

__all__ = [
    "EnrichmentConfig",
    "EnrichmentEngine",
    "EnrichmentError",
    "EnrichedRecord",
    "EnrichmentResult",
    "EnrichmentStats",
    "EnrichmentWarning",
    "LocalFileProvider",
    "NewCode",
    "SourceProvider",
    "ThesaurusEntry",
    "WarningKind",
]
