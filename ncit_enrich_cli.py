#!/usr/bin/env python3
"""
NCIt Enrichment CLI.

Reads the NCIt flat thesaurus and a JSON list of new codes, and writes the
enriched codes to output.json with diagnostics in warnings.txt.

Usage:
    uv run python ncit_enrich_cli.py --thesaurus Thesaurus.txt --new-codes new-codes.json
"""

import sys

from ncit_enricher.cli import main


if __name__ == "__main__":
    sys.exit(main())
