"""Tests for the question and municipality catalog."""

from __future__ import annotations

import pytest

from pulso.catalog import Municipality, Question, QuestionCatalog
from pulso.store import MemoryStore, StoreError


class TestQuestion:
    def test_from_row(self) -> None:
        q = Question.from_row(
            {
                "id": 5,
                "pregunta_id": "Q_40",
                "nombre_categoria": "Movilidad",
                "texto_pregunta": "¿Cómo se transporta?",
                "descripcion": None,
                "is_yes_or_no": None,
                "is_closed_category": True,
                "escala_max": "12",
            }
        )
        assert q.id == 5
        assert q.column == "Q_40"
        assert q.category == "Movilidad"
        assert not q.is_yes_or_no
        assert q.is_closed_category
        assert q.escala_max == 12

    def test_bad_escala_max_is_none(self) -> None:
        q = Question.from_row({"pregunta_id": "Q_1", "escala_max": "lots"})
        assert q.escala_max is None

    def test_to_dict_is_camel_case(self) -> None:
        q = Question(id=1, column="Q_1", category="X", is_yes_or_no=True, escala_max=5)
        d = q.to_dict()
        assert d["isYesOrNo"] is True
        assert d["escalaMax"] == 5
        assert "is_yes_or_no" not in d


class TestQuestionCatalog:
    def test_questions_skip_rows_without_column(self, catalog: QuestionCatalog) -> None:
        columns = [q.column for q in catalog.questions()]
        assert columns == ["Q_31", "Q_88", "Q_2"]

    def test_questions_by_category(self, catalog: QuestionCatalog) -> None:
        found = catalog.questions("Seguridad")
        assert [q.column for q in found] == ["Q_31"]

    def test_categories_sorted_unique(self, catalog: QuestionCatalog) -> None:
        assert catalog.categories() == ["Bienestar", "Conectividad", "Seguridad"]

    def test_question_lookup(self, catalog: QuestionCatalog) -> None:
        q = catalog.question("Q_88")
        assert q is not None
        assert q.is_yes_or_no
        assert catalog.question("Q_404") is None

    def test_municipalities_sorted_by_name(self, catalog: QuestionCatalog) -> None:
        assert catalog.municipalities() == [
            Municipality(1, "Guadalajara"),
            Municipality(3, "Tlaquepaque"),
            Municipality(2, "Zapopan"),
        ]

    def test_store_errors_propagate(self, settings) -> None:  # type: ignore[no-untyped-def]
        catalog = QuestionCatalog(MemoryStore(), settings)
        with pytest.raises(StoreError):
            catalog.questions()
