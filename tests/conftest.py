"""Shared test fixtures for Pulso tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from pulso.analysis.distribution import DistributionAggregator
from pulso.catalog import QuestionCatalog
from pulso.config import PulsoSettings
from pulso.store import MemoryStore, Row

# Eight respondents across three municipalities.  Q_31 is the question most
# tests aggregate: row 7 has no answer and row 8 answered with text.
SURVEY_ROWS: list[Row] = [
    {"Q_94": 1, "Q_74": 1, "Q_75": 25, "Q_76": 3, "Q_2": 4, "Q_3": 5, "Q_31": 1, "Q_87": 0, "Q_86": 2, "Q_88": 1},
    {"Q_94": 1, "Q_74": 2, "Q_75": 35, "Q_76": 6, "Q_2": 3, "Q_3": 4, "Q_31": 2, "Q_87": 1, "Q_86": 3, "Q_88": 1},
    {"Q_94": 1, "Q_74": 2, "Q_75": 50, "Q_76": 12, "Q_2": 5, "Q_3": 5, "Q_31": 1, "Q_87": 2, "Q_86": 5, "Q_88": 2},
    {"Q_94": 2, "Q_74": 1, "Q_75": 65, "Q_76": 17, "Q_2": 2, "Q_3": 2, "Q_31": 99, "Q_87": 1, "Q_86": 1, "Q_88": 2},
    {"Q_94": 2, "Q_74": 1, "Q_75": 40, "Q_76": 8, "Q_2": 1, "Q_3": 3, "Q_31": 3, "Q_87": None, "Q_86": 2, "Q_88": 1},
    {"Q_94": 2, "Q_74": 2, "Q_75": 22, "Q_76": 14, "Q_2": 4, "Q_3": 4, "Q_31": 2, "Q_87": 3, "Q_86": 4, "Q_88": 1},
    {"Q_94": 3, "Q_74": 1, "Q_75": 70, "Q_76": 2, "Q_2": 99, "Q_3": 1, "Q_31": None, "Q_87": 0, "Q_86": 1, "Q_88": None},
    {"Q_94": 3, "Q_74": 2, "Q_75": 29, "Q_76": 10, "Q_2": 3, "Q_3": 3, "Q_31": "n/a", "Q_87": 1, "Q_86": 3, "Q_88": 1},
]

QUESTION_ROWS: list[Row] = [
    {
        "id": 1,
        "pregunta_id": "Q_31",
        "nombre_categoria": "Seguridad",
        "texto_pregunta": "¿Se siente seguro en su colonia?",
        "descripcion": "Percepción de seguridad",
        "is_yes_or_no": False,
        "is_closed_category": True,
        "escala_max": 3,
    },
    {
        "id": 2,
        "pregunta_id": "Q_88",
        "nombre_categoria": "Conectividad",
        "texto_pregunta": "¿Tiene acceso a internet?",
        "descripcion": None,
        "is_yes_or_no": True,
        "is_closed_category": True,
        "escala_max": None,
    },
    {
        "id": 3,
        "pregunta_id": "Q_2",
        "nombre_categoria": "Bienestar",
        "texto_pregunta": "Calidad de vida",
        "descripcion": "Escala 1 a 5",
        "is_yes_or_no": False,
        "is_closed_category": False,
        "escala_max": 5,
    },
    {
        "id": 4,
        "pregunta_id": None,
        "nombre_categoria": "Seguridad",
        "texto_pregunta": "Pregunta sin columna",
    },
]

MUNICIPALITY_ROWS: list[Row] = [
    {"id": 1, "nombre": "Guadalajara"},
    {"id": 2, "nombre": "Zapopan"},
    {"id": 3, "nombre": "Tlaquepaque"},
]


@pytest.fixture
def settings(tmp_path: Path) -> PulsoSettings:
    """Settings isolated from any .env file, writing under tmp_path."""
    return PulsoSettings(_env_file=None, output_dir=tmp_path / "output")  # type: ignore[call-arg]


@pytest.fixture
def memory_store(survey_tables: dict[str, list[Row]]) -> MemoryStore:
    """A store holding the survey, question and municipality tables."""
    return MemoryStore(tables=survey_tables)


@pytest.fixture
def aggregator(memory_store: MemoryStore, settings: PulsoSettings) -> DistributionAggregator:
    return DistributionAggregator.from_settings(memory_store, settings)


@pytest.fixture
def catalog(memory_store: MemoryStore, settings: PulsoSettings) -> QuestionCatalog:
    return QuestionCatalog(memory_store, settings)


@pytest.fixture
def survey_tables() -> dict[str, list[Row]]:
    """The fixture tables as plain JSON-ready data."""
    return {
        "encuestalol": [dict(r) for r in SURVEY_ROWS],
        "preguntas": [dict(r) for r in QUESTION_ROWS],
        "Municipios": [dict(r) for r in MUNICIPALITY_ROWS],
    }
