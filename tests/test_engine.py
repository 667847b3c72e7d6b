"""
Unit tests for the enrichment engine.

Tests record construction, synonym deduplication, warning generation,
ordering, and end-to-end runs against files on disk.
"""

import json

import pytest

from ncit_enricher.config import EnrichmentConfig
from ncit_enricher.data_types import (
    EnrichedRecord,
    NewCode,
    ThesaurusEntry,
    WarningKind,
)
from ncit_enricher.engine import EnrichmentEngine, build_record, merge_synonyms
from ncit_enricher.exceptions import InputFileError, NewCodesFormatError


class TestMergeSynonyms:
    """Test cases for synonym deduplication."""

    def test_order_preserved(self):
        """Test that groups are concatenated in order."""
        assert merge_synonyms("Aspirin", ["ASA", "Acetylsalicylic acid"], ["Baby Aspirin"]) == [
            "ASA", "Acetylsalicylic acid", "Baby Aspirin"
        ]

    def test_case_insensitive_first_spelling_wins(self):
        """Test that later case variants are dropped."""
        assert merge_synonyms("X", ["Tablet", "TABLET"], ["tablet", "Tab"]) == ["Tablet", "Tab"]

    def test_display_excluded(self):
        """Test that terms equal to the display are dropped."""
        assert merge_synonyms("Aspirin", ["ASPIRIN", "ASA"], ["aspirin"]) == ["ASA"]

    def test_empty_terms_ignored(self):
        """Test that None and empty terms are ignored."""
        assert merge_synonyms("Aspirin", ["", "ASA"], [None]) == ["ASA"]


class TestBuildRecord:
    """Test cases for build_record."""

    def test_pqcmc_term_appended_after_ncit_synonyms(self):
        """Test the aspirin example record."""
        entry = ThesaurusEntry(code="C12345", synonyms=["Aspirin", "ASA", "Acetylsalicylic acid"])
        new_code = NewCode(code="C12345", pqcmc_term="Baby Aspirin")

        record = build_record(new_code, entry)

        assert record.to_dict() == {
            "code": "C12345",
            "display": "Aspirin",
            "synonyms": ["ASA", "Acetylsalicylic acid", "Baby Aspirin"],
        }

    def test_no_pqcmc_term(self):
        """Test a record built without a PQCMC term."""
        entry = ThesaurusEntry(code="C1", synonyms=["Only"])

        record = build_record(NewCode(code="C1"), entry)

        assert record == EnrichedRecord(code="C1", display="Only", synonyms=[])


class TestEnrich:
    """Test cases for EnrichmentEngine.enrich."""

    @pytest.fixture
    def engine(self, make_provider, thesaurus_text):
        """Create an engine over in-memory inputs."""
        provider = make_provider(thesaurus_text, "[]")
        return EnrichmentEngine(EnrichmentConfig(), provider=provider)

    @pytest.fixture
    def thesaurus(self, engine):
        """Load the fixture thesaurus through the engine."""
        return engine.load_thesaurus()

    def test_matched_codes_enriched(self, engine, thesaurus):
        """Test that each matched code yields exactly one record with the PQCMC term."""
        records = engine.enrich([NewCode("C12345", "Baby Aspirin")], thesaurus)

        assert len(records) == 1
        assert records[0].display == "Aspirin"
        assert "Baby Aspirin" in records[0].synonyms

    def test_unmatched_code_warned_and_omitted(self, engine, thesaurus):
        """Test that unmatched codes yield one warning and no record."""
        records = engine.enrich([NewCode("C99999", "Unknown Drug")], thesaurus)

        assert records == []
        unmatched = [w for w in engine.warnings if w.kind is WarningKind.UNMATCHED_CODE]
        assert len(unmatched) == 1
        assert unmatched[0].code == "C99999"
        assert "Unknown Drug" in unmatched[0].message
        assert engine.stats.unmatched == 1

    def test_input_order_preserved(self, engine, thesaurus):
        """Test that records follow input order, not thesaurus order."""
        new_codes = [NewCode("C42998", "Tablet"), NewCode("C12345"), NewCode("C2198")]

        records = engine.enrich(new_codes, thesaurus)

        assert [r.code for r in records] == ["C42998", "C12345", "C2198"]

    def test_repeated_input_code(self, engine, thesaurus):
        """Test that a code listed twice produces two records."""
        records = engine.enrich([NewCode("C2198"), NewCode("C2198")], thesaurus)

        assert [r.code for r in records] == ["C2198", "C2198"]

    def test_term_mismatch_warning(self, engine, thesaurus):
        """Test that a differing PQCMC term is reported."""
        engine.enrich([NewCode("C12345", "Baby Aspirin")], thesaurus)

        mismatches = [w for w in engine.warnings if w.kind is WarningKind.TERM_MISMATCH]
        assert len(mismatches) == 1
        assert '"Baby Aspirin"' in mismatches[0].message
        assert '"Aspirin"' in mismatches[0].message

    def test_matching_term_ignores_case(self, engine, thesaurus):
        """Test that a PQCMC term equal to the NCIt term is neither warned nor added."""
        records = engine.enrich([NewCode("C2198", "IBUPROFEN")], thesaurus)

        assert records[0].synonyms == ["IBU", "Advil"]
        assert engine.warnings == []


class TestEngineRun:
    """Test cases for complete runs against files on disk."""

    def test_run_writes_outputs(self, input_files):
        """Test a complete run produces output.json and warnings.txt."""
        result = EnrichmentEngine(input_files).run()

        output = json.loads(input_files.output_path.read_text(encoding="utf-8"))
        assert output == [
            {
                "code": "C12345",
                "display": "Aspirin",
                "synonyms": ["ASA", "Acetylsalicylic acid", "Baby Aspirin"],
            },
            {"code": "C2198", "display": "Ibuprofen", "synonyms": ["IBU", "Advil"]},
        ]

        lines = input_files.warnings_path.read_text(encoding="utf-8").splitlines()
        assert lines == [
            'WARN\tterm_mismatch\tC12345\tPQCMC term "Baby Aspirin" does not match '
            'NCIT preferred term "Aspirin"',
            'WARN\tunmatched_code\tC99999\tnon-NCIT code: C99999 "Unknown Drug"',
        ]

        assert len(result.records) == 2
        assert result.stats.thesaurus_rows == 3
        assert result.stats.new_codes_read == 3
        assert result.stats.enriched == 2
        assert result.stats.unmatched == 1
        assert result.codesystem is None

    def test_run_is_deterministic(self, input_files):
        """Test that two runs produce byte-identical output."""
        EnrichmentEngine(input_files).run()
        first = input_files.output_path.read_bytes()

        EnrichmentEngine(input_files).run()
        second = input_files.output_path.read_bytes()

        assert first == second
        assert first.endswith(b"\n")

    def test_no_warnings_gives_empty_file(self, input_files):
        """Test that a clean run writes an empty warnings file."""
        input_files.new_codes_path.write_text(
            json.dumps([{"code": "C42998", "pqcmcTerm": "Tablet Dosage Form"}]),
            encoding="utf-8",
        )

        result = EnrichmentEngine(input_files).run()

        assert result.warnings == []
        assert input_files.warnings_path.read_text(encoding="utf-8") == ""

    def test_non_ascii_terms_written_verbatim(self, tmp_path, make_row):
        """Test that non-ASCII terms are not escaped."""
        thesaurus_path = tmp_path / "Thesaurus.txt"
        thesaurus_path.write_text(make_row("C1", "Sjögren Syndrome|Sjogren") + "\n", encoding="utf-8")
        new_codes_path = tmp_path / "new-codes.json"
        new_codes_path.write_text('[{"code": "C1", "pqcmcTerm": "Sjögren"}]', encoding="utf-8")
        config = EnrichmentConfig(
            thesaurus_path=thesaurus_path,
            new_codes_path=new_codes_path,
            output_path=tmp_path / "output.json",
            warnings_path=tmp_path / "warnings.txt",
        )

        EnrichmentEngine(config).run()

        text = config.output_path.read_text(encoding="utf-8")
        assert "Sjögren Syndrome" in text
        assert "\\u00f6" not in text

    def test_missing_thesaurus_is_fatal(self, input_files):
        """Test that a missing thesaurus raises InputFileError."""
        input_files.thesaurus_path.unlink()

        with pytest.raises(InputFileError, match="Thesaurus"):
            EnrichmentEngine(input_files).run()

        assert not input_files.output_path.exists()

    def test_missing_new_codes_is_fatal(self, input_files):
        """Test that a missing new-codes file raises InputFileError."""
        input_files.new_codes_path.unlink()

        with pytest.raises(InputFileError, match="New codes"):
            EnrichmentEngine(input_files).run()

    def test_unparsable_new_codes_is_fatal(self, input_files):
        """Test that a malformed new-codes file raises NewCodesFormatError."""
        input_files.new_codes_path.write_text("not json", encoding="utf-8")

        with pytest.raises(NewCodesFormatError):
            EnrichmentEngine(input_files).run()

    def test_in_memory_provider(self, make_provider, make_row, tmp_path):
        """Test a run fed by a custom provider."""
        provider = make_provider(
            make_row("C1", "One|Uno") + "\n",
            json.dumps([{"code": "C1", "pqcmcTerm": "Eins"}]),
        )
        config = EnrichmentConfig(
            thesaurus_path=tmp_path / "unused.txt",
            new_codes_path=tmp_path / "unused.json",
            output_path=tmp_path / "output.json",
            warnings_path=tmp_path / "warnings.txt",
        )

        result = EnrichmentEngine(config, provider=provider).run()

        assert result.records == [EnrichedRecord(code="C1", display="One", synonyms=["Uno", "Eins"])]
