"""Question and municipality catalogs read from the store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from pulso.config import PulsoSettings
from pulso.store import Predicate, Row, RowQuery, RowStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Question:
    """One survey question as listed in the catalog table."""

    id: int
    column: str  # respondent-table column, e.g. "Q_31"
    category: str
    text: str | None = None
    description: str | None = None
    is_yes_or_no: bool = False
    is_closed_category: bool = False
    escala_max: int | None = None

    @classmethod
    def from_row(cls, row: Row) -> Question:
        return cls(
            id=int(row.get("id") or 0),
            column=str(row["pregunta_id"]),
            category=str(row.get("nombre_categoria") or ""),
            text=row.get("texto_pregunta"),
            description=row.get("descripcion"),
            is_yes_or_no=bool(row.get("is_yes_or_no")),
            is_closed_category=bool(row.get("is_closed_category")),
            escala_max=_optional_int(row.get("escala_max")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "column": self.column,
            "category": self.category,
            "text": self.text,
            "description": self.description,
            "isYesOrNo": self.is_yes_or_no,
            "isClosedCategory": self.is_closed_category,
            "escalaMax": self.escala_max,
        }


@dataclass(frozen=True)
class Municipality:
    id: int
    name: str


def _optional_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class QuestionCatalog:
    """Read-only access to the question and municipality tables.

    Store failures propagate as ``StoreError``; callers decide how to
    surface them.
    """

    def __init__(self, store: RowStore, settings: PulsoSettings) -> None:
        self.store = store
        self.questions_table = settings.questions_table
        self.municipalities_table = settings.municipalities_table

    def questions(self, category: str | None = None) -> list[Question]:
        predicates = (Predicate("nombre_categoria", "eq", category),) if category else ()
        rows = self.store.fetch_rows(
            RowQuery(table=self.questions_table, predicates=predicates, order_by="id")
        )
        questions = []
        for row in rows:
            if not row.get("pregunta_id"):
                logger.debug("Skipping catalog row without pregunta_id: %r", row.get("id"))
                continue
            questions.append(Question.from_row(row))
        return questions

    def categories(self) -> list[str]:
        rows = self.store.fetch_rows(
            RowQuery(table=self.questions_table, columns=("nombre_categoria",))
        )
        return sorted({str(r["nombre_categoria"]) for r in rows if r.get("nombre_categoria")})

    def question(self, column: str) -> Question | None:
        rows = self.store.fetch_rows(
            RowQuery(
                table=self.questions_table,
                predicates=(Predicate("pregunta_id", "eq", column),),
                limit=1,
            )
        )
        return Question.from_row(rows[0]) if rows else None

    def municipalities(self) -> list[Municipality]:
        rows = self.store.fetch_rows(
            RowQuery(table=self.municipalities_table, columns=("id", "nombre"), order_by="nombre")
        )
        return [Municipality(id=int(r["id"]), name=str(r["nombre"])) for r in rows if r.get("id") is not None]
