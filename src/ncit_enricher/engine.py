"""
Enrichment Engine.

Joins new codes against the NCIt thesaurus. Every matched code gets the
NCIt preferred term as display and a synonym list made of the NCIt
synonyms followed by the PQCMC preferred term. Unmatched codes are left
out of the output and reported in the warnings log.

Example usage:
    from ncit_enricher import EnrichmentConfig, EnrichmentEngine

    config = EnrichmentConfig.from_env()
    result = EnrichmentEngine(config).run()
    print(f"Enriched {result.stats.enriched} codes")
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from .codesystem import CodeSystemMerger, load_codesystem
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
from .exceptions import ConfigurationError
from .new_codes import load_new_codes
from .output import write_codesystem, write_records, write_warnings
from .providers import LocalFileProvider, SourceProvider
from .thesaurus import Thesaurus, ThesaurusLoader

logger = logging.getLogger(__name__)


def merge_synonyms(display: str, *groups: Iterable[Optional[str]]) -> List[str]:
    """
    Combine synonym groups into one deduplicated list.

    Order is preserved and the first spelling of a term wins. Comparison
    ignores case, and terms equal to the display are dropped.

    Args:
        display: Display value of the record
        groups: Synonym sources in priority order

    Returns:
        Deduplicated synonyms
    """
    seen = {display.casefold()}
    merged: List[str] = []
    for group in groups:
        for term in group:
            if not term:
                continue
            key = term.casefold()
            if key in seen:
                continue
            seen.add(key)
            merged.append(term)
    return merged


def build_record(new_code: NewCode, entry: ThesaurusEntry) -> EnrichedRecord:
    """Create the enriched record for a new code and its thesaurus entry."""
    display = entry.preferred_term
    return EnrichedRecord(
        code=new_code.code,
        display=display,
        synonyms=merge_synonyms(display, entry.alternate_terms, [new_code.pqcmc_term]),
    )


class EnrichmentEngine:
    """
    Runs one enrichment pass.

    The engine owns the thesaurus index and the output and warning
    collections for the duration of one run.
    """

    def __init__(
        self,
        config: EnrichmentConfig,
        provider: Optional[SourceProvider] = None,
    ):
        """
        Initialize the engine.

        Args:
            config: Run configuration
            provider: Input source (default: LocalFileProvider over the config paths)
        """
        self.config = config
        self.provider = provider or LocalFileProvider(config)
        self.stats = EnrichmentStats()
        self.warnings: List[EnrichmentWarning] = []

    def _warn(self, kind: WarningKind, code: str, message: str) -> None:
        logger.warning(f"{kind.value}: {code}: {message}")
        self.warnings.append(EnrichmentWarning(kind=kind, code=code, message=message))

    def load_thesaurus(self) -> Thesaurus:
        """
        Load the thesaurus index from the provider.

        Raises:
            InputFileError: If the thesaurus cannot be opened
        """
        loader = ThesaurusLoader()
        with self.provider.open_thesaurus() as stream:
            thesaurus = loader.load(stream)

        self.warnings.extend(loader.warnings)
        self.stats.thesaurus_rows = loader.rows_read
        self.stats.thesaurus_rows_skipped = loader.rows_skipped
        return thesaurus

    def load_new_codes(self) -> List[NewCode]:
        """
        Load the new codes from the provider.

        Raises:
            InputFileError: If the document cannot be opened
            NewCodesFormatError: If the document cannot be parsed
        """
        with self.provider.open_new_codes() as stream:
            codes, warnings = load_new_codes(stream)

        self.warnings.extend(warnings)
        self.stats.new_codes_read = len(codes)
        self.stats.new_codes_skipped = len(warnings)
        return codes

    def enrich(self, new_codes: List[NewCode], thesaurus: Thesaurus) -> List[EnrichedRecord]:
        """
        Enrich new codes in input order.

        Args:
            new_codes: Codes to enrich
            thesaurus: NCIt code index

        Returns:
            One record per matched code, in input order
        """
        records: List[EnrichedRecord] = []

        for new_code in new_codes:
            entry = thesaurus.get(new_code.code)
            if entry is None:
                self._warn(
                    WarningKind.UNMATCHED_CODE,
                    new_code.code,
                    f"non-NCIT code: {new_code}",
                )
                self.stats.unmatched += 1
                continue

            if new_code.pqcmc_term and (
                new_code.pqcmc_term.casefold() != entry.preferred_term.casefold()
            ):
                self._warn(
                    WarningKind.TERM_MISMATCH,
                    new_code.code,
                    f"PQCMC term \"{new_code.pqcmc_term}\" does not match "
                    f"NCIT preferred term \"{entry.preferred_term}\"",
                )
                self.stats.term_mismatches += 1

            records.append(build_record(new_code, entry))
            self.stats.enriched += 1

        logger.info(
            f"Enriched {self.stats.enriched} codes, {self.stats.unmatched} unmatched"
        )
        return records

    def merge_codesystem(self, new_codes: List[NewCode], thesaurus: Thesaurus) -> dict:
        """
        Merge new codes into the configured base CodeSystem.

        Raises:
            InputFileError: If the base CodeSystem cannot be opened
            CodeSystemFormatError: If it cannot be parsed
            ConfigurationError: If the provider has no base CodeSystem
        """
        stream = self.provider.open_base_codesystem()
        if stream is None:
            raise ConfigurationError("Merge mode requires a base CodeSystem")
        with stream:
            resource = load_codesystem(stream)

        merger = CodeSystemMerger(resource, thesaurus, self.stats)
        merged = merger.merge(new_codes)
        self.warnings.extend(merger.warnings)
        return merged

    def visible_warnings(self) -> List[EnrichmentWarning]:
        """Warnings to write, with informational entries only when configured."""
        if self.config.include_info:
            return list(self.warnings)
        return [w for w in self.warnings if not w.kind.is_info]

    def run(self) -> EnrichmentResult:
        """
        Load inputs, enrich, and write both outputs.

        Returns:
            EnrichmentResult with records, warnings and statistics

        Raises:
            EnrichmentError: On any fatal input or output error
        """
        self.stats.start_time = datetime.now()
        logger.info(f"Starting enrichment with configuration: {self.config.to_dict()}")

        thesaurus = self.load_thesaurus()
        new_codes = self.load_new_codes()

        result = EnrichmentResult(stats=self.stats)
        if self.config.merge_mode:
            result.codesystem = self.merge_codesystem(new_codes, thesaurus)
            write_codesystem(result.codesystem, self.config.output_path)
        else:
            result.records = self.enrich(new_codes, thesaurus)
            write_records(result.records, self.config.output_path)

        result.warnings = self.visible_warnings()
        write_warnings(result.warnings, self.config.warnings_path)

        self.stats.end_time = datetime.now()
        logger.info(f"Enrichment completed in {self.stats.duration_seconds():.2f}s")
        return result
