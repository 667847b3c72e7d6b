"""
NCIt Enricher CLI.

Adds NCIt preferred terms and synonyms to a list of new codes.

Usage:
    # Paths from the environment (THESAURUS, NEW_CODES, ...) or defaults
    ncit-enrich

    # Explicit paths
    ncit-enrich --thesaurus Thesaurus.txt --new-codes new-codes.json \\
        --output output.json --warnings warnings.txt

    # Merge into the fhir.tx.support.r4 NCIt CodeSystem fragment
    ncit-enrich --base-codesystem CodeSystem-nciThesaurus-fragment.json
"""

import argparse
import logging
import sys
from typing import List, Optional

from .config import EnrichmentConfig
from .data_types import EnrichmentStats
from .engine import EnrichmentEngine
from .exceptions import (
    ConfigurationError,
    EnrichmentError,
    InputFileError,
    NewCodesFormatError,
    OutputWriteError,
)

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="ncit-enrich",
        description="Enrich new codes with NCIt preferred terms and synonyms",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  THESAURUS        NCIt flat thesaurus file (default: Thesaurus.txt)
  NEW_CODES        New codes JSON document (default: new-codes.json)
  OUTPUT           Enriched output file (default: output.json)
  WARNINGS         Warnings log (default: warnings.txt)
  BASE_CODESYSTEM  CodeSystem to merge new codes into (default: unset)
  INCLUDE_INFO     Write informational entries to the log (default: false)

Command line options take precedence over the environment. A .env file in
the working directory is loaded first.
        """,
    )

    parser.add_argument("--thesaurus", help="Path to the NCIt Thesaurus.txt flat file")
    parser.add_argument("--new-codes", help="Path to the new codes JSON document")
    parser.add_argument("--output", help="Path of the enriched JSON output")
    parser.add_argument("--warnings", help="Path of the warnings log")
    parser.add_argument(
        "--base-codesystem",
        help="FHIR CodeSystem to merge new codes into (switches output to CodeSystem)",
    )
    parser.add_argument(
        "--include-info",
        action="store_true",
        default=None,
        help="Also write informational entries to the warnings log",
    )

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )
    verbosity.add_argument(
        "--quiet", "-q", action="store_true", help="Only log warnings and errors"
    )
    return parser


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Set up root logging for a CLI run."""
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif quiet:
        logging.getLogger().setLevel(logging.WARNING)


def config_from_args(args: argparse.Namespace) -> EnrichmentConfig:
    """Build the run configuration from the environment and parsed arguments."""
    return EnrichmentConfig.from_env().with_overrides(
        thesaurus_path=args.thesaurus,
        new_codes_path=args.new_codes,
        output_path=args.output,
        warnings_path=args.warnings,
        base_codesystem_path=args.base_codesystem,
        include_info=args.include_info,
    )


def print_stats(stats: EnrichmentStats, merge_mode: bool) -> None:
    """Print run statistics to the console."""
    print("\n" + "=" * 60)
    print("ENRICHMENT STATISTICS")
    print("=" * 60)
    print(f"Thesaurus rows:        {stats.thesaurus_rows:,}")
    print(f"Rows skipped:          {stats.thesaurus_rows_skipped:,}")
    print(f"New codes read:        {stats.new_codes_read:,}")
    if merge_mode:
        print(f"Pre-existing codes:    {stats.already_exists:,}")
        print(f"Wrong displays:        {stats.wrong_display:,}")
        print(f"Non-NCIT codes:        {stats.not_ncit_code:,}")
        print(f"New codes:             {stats.new_code:,}")
    else:
        print(f"Enriched:              {stats.enriched:,}")
        print(f"Unmatched:             {stats.unmatched:,}")
    print(f"Term mismatches:       {stats.term_mismatches:,}")
    print(f"Duration:              {stats.duration_seconds():.2f} seconds")
    print("=" * 60)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the enrichment CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose, quiet=args.quiet)

    try:
        config = config_from_args(args)
        config.require_valid()

        result = EnrichmentEngine(config).run()
        print_stats(result.stats, config.merge_mode)

        if result.warnings:
            logger.info(
                f"Completed with {len(result.warnings)} warnings "
                f"(see {config.warnings_path})"
            )
        return EXIT_OK

    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_ERROR
    except InputFileError as e:
        logger.error(f"Input error: {e}")
        return EXIT_ERROR
    except NewCodesFormatError as e:
        logger.error(f"Validation error: {e}")
        return EXIT_ERROR
    except OutputWriteError as e:
        logger.error(f"Output error: {e}")
        return EXIT_ERROR
    except EnrichmentError as e:
        logger.error(f"Enrichment failed: {e}")
        return EXIT_ERROR
    except KeyboardInterrupt:
        logger.warning("Enrichment cancelled by user")
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
