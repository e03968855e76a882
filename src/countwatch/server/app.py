"""FastAPI application for the countwatch trigger endpoint."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from ..config import CountwatchConfig, get_database_url, load_config
from ..db import Database, get_database
from ..exceptions import StoreNotReady, UnknownCheckSet
from ..models.api import (
    CheckSetInfo,
    CheckSetListResponse,
    CheckSetResponse,
    HealthResponse,
    HistoryResponse,
)
from ..orchestrator import CheckSetOrchestrator

logger = logging.getLogger(__name__)


def get_orchestrator(request: Request) -> CheckSetOrchestrator:
    """Get the orchestrator bound to this app."""
    return request.app.state.orchestrator


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect the database on startup and release it on shutdown."""
    database: Database = app.state.database
    try:
        database.connect()
        if app.state.init_schema:
            database.init_schema()
        logger.info("Connected to %r", database)
    except StoreNotReady as e:
        # Requests are answered with 503 until a restart succeeds.
        logger.error("%s", e)
        database.close()

    try:
        yield
    finally:
        database.close()


def create_app(
    config: Optional[CountwatchConfig] = None,
    database: Optional[Database] = None,
    database_url: Optional[str] = None,
    db_path: Optional[Path] = None,
    init_schema: bool = True,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        config: Loaded configuration (defaults to load_config())
        database: Prebuilt database handle; takes precedence over URL/path
        database_url: PostgreSQL connection URL
        db_path: SQLite database path
        init_schema: Create the history table on startup if missing

    Returns:
        Configured FastAPI application. The database connects when the
        app starts, not here.
    """
    if config is None:
        config = load_config()

    if database is None:
        if database_url or db_path:
            database = get_database(database_url, db_path)
        else:
            # Try environment variable
            database = get_database(get_database_url())

    orchestrator = CheckSetOrchestrator.from_config(config, database)

    app = FastAPI(
        title="countwatch server",
        description="Row-count regression checks for named groups of tables",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.database = database
    app.state.orchestrator = orchestrator
    app.state.init_schema = init_schema

    @app.get("/check/{check_set_id}", response_model=CheckSetResponse)
    def run_check_set(
        check_set_id: str,
        orchestrator: CheckSetOrchestrator = Depends(get_orchestrator),
    ):
        """Run a check-set. Responds 500 with the outcomes if any table is invalid."""
        try:
            result = orchestrator.run_check_set(check_set_id)
        except UnknownCheckSet:
            raise HTTPException(status_code=404, detail=f"No such check-set: {check_set_id}")
        except StoreNotReady as e:
            raise HTTPException(status_code=503, detail=str(e))

        response = CheckSetResponse.from_result(result)
        return JSONResponse(
            status_code=200 if result.overall_valid else 500,
            content=response.model_dump(mode="json"),
        )

    @app.get("/api/v1/check-sets", response_model=CheckSetListResponse)
    def list_check_sets(orchestrator: CheckSetOrchestrator = Depends(get_orchestrator)):
        """List registered check-sets and their tables."""
        registry = orchestrator.registry
        return CheckSetListResponse(
            check_sets=[
                CheckSetInfo(name=name, tables=list(registry.tables(name)))
                for name in registry.names()
            ]
        )

    @app.get("/api/v1/history/{check_set_id}", response_model=HistoryResponse)
    def get_history(
        check_set_id: str,
        table: Optional[str] = Query(None, description="Restrict to one member table"),
        limit: int = Query(50, ge=1, le=500),
        orchestrator: CheckSetOrchestrator = Depends(get_orchestrator),
    ):
        """Get persisted outcomes for a check-set, newest first."""
        tables = orchestrator.registry.get(check_set_id)
        if tables is None:
            raise HTTPException(status_code=404, detail=f"No such check-set: {check_set_id}")
        if table is not None and table not in tables:
            raise HTTPException(
                status_code=404,
                detail=f"Table {table} is not part of check-set {check_set_id}",
            )
        if not orchestrator.is_ready:
            raise HTTPException(status_code=503, detail="Database connection is not ready")

        records = orchestrator.database.get_history(check_set_id, table_name=table, limit=limit)
        return HistoryResponse(records=records, count=len(records))

    @app.get("/health", response_model=HealthResponse)
    def health_check(orchestrator: CheckSetOrchestrator = Depends(get_orchestrator)):
        """Health check endpoint."""
        ready = orchestrator.is_ready
        return HealthResponse(status="healthy" if ready else "starting", store_ready=ready)

    return app
