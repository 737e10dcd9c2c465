import pytest
from pydantic import ValidationError

from solvo.db.seed import CatalogValidationError, load_aptitude_catalog, load_psych_catalog


def _write(tmp_path, text: str):
    path = tmp_path / "catalog.yml"
    path.write_text(text, encoding="utf-8")
    return path


def test_shipped_catalogs_are_valid(psych_catalog, aptitude_catalog):
    assert len(psych_catalog.questions) == 50
    assert len(aptitude_catalog.questions) == 30
    assert sum(1 for q in psych_catalog.questions if q.polarity == -1) > 0


def test_missing_file(tmp_path):
    with pytest.raises(CatalogValidationError, match="File not found"):
        load_psych_catalog(tmp_path / "nope.yml")


def test_empty_file(tmp_path):
    with pytest.raises(CatalogValidationError, match="empty or invalid"):
        load_psych_catalog(_write(tmp_path, ""))


def test_unparseable_yaml(tmp_path):
    with pytest.raises(CatalogValidationError, match="Error parsing YAML"):
        load_psych_catalog(_write(tmp_path, "questions: [unclosed"))


def test_unknown_trait_fails_schema(tmp_path):
    text = 'version: "1"\nquestions:\n  - {id: q1, trait: honesty, polarity: 1, text: "x"}\n'
    with pytest.raises(ValidationError):
        load_psych_catalog(_write(tmp_path, text), expected_count=1)


def test_bad_polarity_fails_schema(tmp_path):
    text = 'version: "1"\nquestions:\n  - {id: q1, trait: openness, polarity: 2, text: "x"}\n'
    with pytest.raises(ValidationError):
        load_psych_catalog(_write(tmp_path, text), expected_count=1)


def test_wrong_count(tmp_path):
    text = 'version: "1"\nquestions:\n  - {id: q1, trait: openness, polarity: 1, text: "x"}\n'
    with pytest.raises(CatalogValidationError, match="must hold 50 questions, found 1"):
        load_psych_catalog(_write(tmp_path, text))


def test_duplicate_ids(tmp_path):
    text = (
        'version: "1"\nquestions:\n'
        '  - {id: q1, trait: openness, polarity: 1, text: "x"}\n'
        '  - {id: q1, trait: neuroticism, polarity: -1, text: "y"}\n'
    )
    with pytest.raises(CatalogValidationError, match="Duplicate question ID 'q1'"):
        load_psych_catalog(_write(tmp_path, text), expected_count=2)


def test_trait_without_items(tmp_path):
    text = 'version: "1"\nquestions:\n  - {id: q1, trait: openness, polarity: 1, text: "x"}\n'
    with pytest.raises(CatalogValidationError, match="no items for"):
        load_psych_catalog(_write(tmp_path, text), expected_count=1)


def test_aptitude_options_must_be_complete(tmp_path):
    text = (
        'version: "1"\nquestions:\n'
        '  - id: num_01\n    category: numerical\n    text: "2 + 2?"\n'
        '    options: {A: "3", B: "4", C: "5"}\n    correct_answer: B\n'
    )
    with pytest.raises(CatalogValidationError, match="options A, B, C and D"):
        load_aptitude_catalog(_write(tmp_path, text), expected_count=1)


def test_aptitude_key_outside_alphabet(tmp_path):
    text = (
        'version: "1"\nquestions:\n'
        '  - id: num_01\n    category: numerical\n    text: "2 + 2?"\n'
        '    options: {A: "3", B: "4", C: "5", D: "6"}\n    correct_answer: E\n'
    )
    with pytest.raises(ValidationError):
        load_aptitude_catalog(_write(tmp_path, text), expected_count=1)
