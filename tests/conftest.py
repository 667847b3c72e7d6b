"""Pytest configuration and fixtures for ncit_enricher tests."""

import io
import json
import os
from typing import Optional, TextIO

import pytest

from ncit_enricher.config import EnrichmentConfig


NCIT_IRI = "<http://ncicb.nci.nih.gov/xml/owl/EVS/Thesaurus.owl#{code}>"


def thesaurus_row(
    code: str,
    synonyms: str,
    parents: str = "",
    definition: str = "",
    semantic_type: str = "Pharmacologic Substance",
    subsets: str = "",
) -> str:
    """Build one tab-delimited NCIt flat-file row."""
    return "\t".join([
        code,
        NCIT_IRI.format(code=code),
        parents,
        synonyms,
        definition,
        "",
        "",
        semantic_type,
        subsets,
    ])


class InMemoryProvider:
    """SourceProvider serving inputs from strings."""

    def __init__(
        self,
        thesaurus: str,
        new_codes: str,
        base_codesystem: Optional[str] = None,
    ):
        self.thesaurus = thesaurus
        self.new_codes = new_codes
        self.base_codesystem = base_codesystem

    def open_thesaurus(self) -> TextIO:
        return io.StringIO(self.thesaurus, newline="")

    def open_new_codes(self) -> TextIO:
        return io.StringIO(self.new_codes)

    def open_base_codesystem(self) -> Optional[TextIO]:
        if self.base_codesystem is None:
            return None
        return io.StringIO(self.base_codesystem)


@pytest.fixture
def thesaurus_text():
    """Fixture providing a small NCIt flat thesaurus."""
    rows = [
        thesaurus_row("C12345", "Aspirin|ASA|Acetylsalicylic acid", parents="C1909",
                      definition="A salicylate used as an analgesic."),
        thesaurus_row("C2198", "Ibuprofen|IBU|Advil|ibuprofen", parents="C257"),
        thesaurus_row("C42998", "Tablet Dosage Form|Tablet|TAB",
                      semantic_type="Biomedical or Dental Material",
                      subsets="SPL Dosage Form Terminology|FDA Structured Product Labeling Terminology"),
    ]
    return "\n".join(rows) + "\n"


@pytest.fixture
def new_codes_list():
    """Fixture providing new codes as a JSON array."""
    return [
        {"code": "C12345", "pqcmcTerm": "Baby Aspirin"},
        {"code": "C99999", "pqcmcTerm": "Unknown Drug"},
        {"code": "C2198", "pqcmcTerm": "IBUPROFEN"},
    ]


@pytest.fixture
def input_files(tmp_path, thesaurus_text, new_codes_list):
    """Fixture writing inputs to disk and returning a matching config."""
    thesaurus_path = tmp_path / "Thesaurus.txt"
    thesaurus_path.write_text(thesaurus_text, encoding="utf-8")

    new_codes_path = tmp_path / "new-codes.json"
    new_codes_path.write_text(json.dumps(new_codes_list), encoding="utf-8")

    return EnrichmentConfig(
        thesaurus_path=thesaurus_path,
        new_codes_path=new_codes_path,
        output_path=tmp_path / "out" / "output.json",
        warnings_path=tmp_path / "out" / "warnings.txt",
    )


@pytest.fixture
def base_codesystem():
    """Fixture providing a small NCIt fragment CodeSystem resource."""
    return {
        "resourceType": "CodeSystem",
        "id": "nciThesaurus-fragment",
        "url": "http://ncithesaurus-stage.nci.nih.gov",
        "name": "NCIThesaurusFragment",
        "title": "NCI Thesaurus Fragment",
        "status": "active",
        "experimental": False,
        "date": "2021-08-30",
        "publisher": "HL7 International",
        "description": "A fragment of NCI Thesaurus",
        "copyright": "NCI Thesaurus",
        "caseSensitive": True,
        "content": "fragment",
        "concept": [
            {"code": "C42998", "display": "Tablet Dosage Form"},
        ],
    }


@pytest.fixture
def clean_environment():
    """Fixture to clean enrichment environment variables before and after tests."""
    # Store original environment
    original_env = {}
    env_vars = ['THESAURUS', 'NEW_CODES', 'OUTPUT', 'WARNINGS',
                'BASE_CODESYSTEM', 'INCLUDE_INFO']

    for var in env_vars:
        original_env[var] = os.environ.get(var)
        os.environ.pop(var, None)

    yield

    # Restore original environment
    for var, value in original_env.items():
        if value is None:
            os.environ.pop(var, None)
        else:
            os.environ[var] = value


@pytest.fixture
def make_row():
    """Fixture providing the thesaurus row builder."""
    return thesaurus_row


@pytest.fixture
def make_provider():
    """Fixture providing the in-memory SourceProvider class."""
    return InMemoryProvider
