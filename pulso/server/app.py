"""FastAPI application factory."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from pulso.analysis.distribution import DistributionAggregator
from pulso.catalog import QuestionCatalog
from pulso.config import PulsoSettings, load_settings
from pulso.server.routes.dashboard import router as dashboard_router
from pulso.server.routes.distribution import router as distribution_router
from pulso.server.routes.health import router as health_router
from pulso.server.routes.questions import router as questions_router
from pulso.store import RowStore, build_store, close_store

logger = logging.getLogger(__name__)


def create_app(
    settings: PulsoSettings | None = None,
    store: RowStore | None = None,
    rows_file: Path | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Application settings.  Loaded from the environment when
            omitted.
        store: Row store to query.  Built from *settings* when omitted.
        rows_file: Serve rows from a JSON file instead of the REST store.

    When uvicorn calls this factory with no arguments on reload, the CLI
    stashes the rows file in ``_PULSO_ROWS_FILE`` so the factory can recover
    it.

    The app owns *store* and closes it on shutdown.
    """
    if settings is None:
        settings = load_settings()
    if rows_file is None:
        env_rows = os.environ.get("_PULSO_ROWS_FILE")
        if env_rows:
            rows_file = Path(env_rows)
    if store is None:
        store = build_store(settings, rows_file)

    row_store = store

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        close_store(row_store)
        logger.debug("Store closed")

    app = FastAPI(title="Pulso", docs_url="/api/docs", redoc_url=None, lifespan=lifespan)

    app.state.settings = settings
    app.state.aggregator = DistributionAggregator.from_settings(store, settings)
    app.state.catalog = QuestionCatalog(store, settings)

    app.include_router(health_router)
    app.include_router(questions_router)
    app.include_router(distribution_router)
    app.include_router(dashboard_router)

    logger.info("API ready (table=%s, row_limit=%d)", settings.survey_table, settings.row_limit)
    return app
