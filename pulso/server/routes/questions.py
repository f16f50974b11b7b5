"""Question catalog endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request

from pulso.catalog import QuestionCatalog
from pulso.server.routes.distribution import CamelModel
from pulso.store import StoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


class QuestionResponse(CamelModel):
    id: int
    column: str
    category: str
    text: str | None = None
    description: str | None = None
    is_yes_or_no: bool = False
    is_closed_category: bool = False
    escala_max: int | None = None


class MunicipalityResponse(CamelModel):
    id: int
    name: str


def _get_catalog(request: Request) -> QuestionCatalog:
    return request.app.state.catalog


@router.get("/questions", response_model=list[QuestionResponse])
def list_questions(request: Request, category: str | None = None) -> list[QuestionResponse]:
    """Catalog questions, optionally restricted to one category."""
    try:
        questions = _get_catalog(request).questions(category)
    except StoreError as exc:
        logger.error("Listing questions failed: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return [QuestionResponse.model_validate(q.to_dict()) for q in questions]


@router.get("/questions/categories", response_model=list[str])
def list_categories(request: Request) -> list[str]:
    try:
        return _get_catalog(request).categories()
    except StoreError as exc:
        logger.error("Listing categories failed: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@router.get("/municipalities", response_model=list[MunicipalityResponse])
def list_municipalities(request: Request) -> list[MunicipalityResponse]:
    try:
        municipalities = _get_catalog(request).municipalities()
    except StoreError as exc:
        logger.error("Listing municipalities failed: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return [MunicipalityResponse(id=m.id, name=m.name) for m in municipalities]
