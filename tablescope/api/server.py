"""
FastAPI server for the Tablescope data-exploration dashboard.

Provides:
- Schema browsing (/api/tables, /api/columns)
- Paginated, filtered table rows (/api/data)
- Distinct values for filter pickers (/api/distinct-values)
- Chart data shaped for bar, line, pie and histogram charts (/api/chart-data)
- CSV export (/api/export)
"""

# ================================
# IMPORTS
# ================================

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from tablescope import __version__
from tablescope.common.env import load_environment

# Load environment variables before the configuration is built
load_environment()

from tablescope.common.config import config
from tablescope.common.database.engine import cleanup_database_connections, get_engine
from tablescope.common.errors import DashboardError
from tablescope.query.identifiers import split_names

from .services import chart_service, export_service, table_service
from .services.filters import parse_filters

# ================================
# CONFIGURATION & SETUP
# ================================

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def get_db_engine() -> Engine:
    """Request dependency returning the shared engine."""
    return get_engine()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    engine = get_engine()
    logger.info(f"Using {engine.dialect.name} database")
    logger.info("Application ready!")

    yield

    cleanup_database_connections()
    logger.info("Application shutdown complete")


# ================================
# FASTAPI APP SETUP
# ================================

app = FastAPI(
    title="Tablescope API",
    description="Data-exploration dashboard backend: tables, filters, charts and CSV export",
    version=__version__,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.server.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ================================
# ERROR HANDLERS
# ================================

@app.exception_handler(DashboardError)
async def dashboard_error_handler(request: Request, exc: DashboardError):
    logger.warning(f"Rejected {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request parameters", "details": jsonable_errors(exc)}
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]


def database_failure(message: str, error: Exception) -> HTTPException:
    """Log a database failure and hide its details from the client."""
    logger.error(f"{message}: {error}")
    return HTTPException(status_code=500, detail=message)


# ================================
# API ENDPOINTS
# ================================

@app.get("/api/tables")
def get_tables(engine: Engine = Depends(get_db_engine)):
    """List the tables of the connected database."""
    try:
        return {"tables": table_service.list_tables(engine)}
    except SQLAlchemyError as e:
        raise database_failure("Failed to fetch tables", e)


@app.get("/api/columns")
def get_columns(table: Optional[str] = None, engine: Engine = Depends(get_db_engine)):
    """List the columns of a table with their types."""
    if not table:
        raise HTTPException(status_code=400, detail="Table name is required")
    try:
        return table_service.list_columns(engine, table)
    except SQLAlchemyError as e:
        raise database_failure("Failed to fetch columns", e)


@app.get("/api/data")
def get_data(
    request: Request,
    table: Optional[str] = None,
    columns: Optional[str] = None,
    page: int = Query(1),
    pageSize: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    sortBy: Optional[str] = None,
    sortOrder: str = "asc",
    engine: Engine = Depends(get_db_engine)
):
    """
    Return one page of rows.

    Accepts ``pageSize`` (or its alias ``limit``) and numbered
    ``filter_column_N``/``filter_value_N`` pairs.
    """
    page_request = table_service.PageRequest(
        table=table or "",
        columns=split_names(columns),
        page=page,
        page_size=pageSize if pageSize is not None else limit,
        sort_by=sortBy or None,
        sort_order=sortOrder,
        filters=parse_filters(request.query_params)
    )
    try:
        return table_service.fetch_page(engine, page_request).to_dict()
    except SQLAlchemyError as e:
        raise database_failure("Failed to fetch data", e)


@app.get("/api/distinct-values")
def get_distinct_values(
    request: Request,
    table: Optional[str] = None,
    column: Optional[str] = None,
    engine: Engine = Depends(get_db_engine)
):
    """Distinct values and their counts, or an ID-like column notice."""
    logger.info(f"Distinct values request: table={table}, column={column}")
    filters = parse_filters(request.query_params)
    try:
        return table_service.fetch_distinct_values(engine, table or "", column or "", filters)
    except SQLAlchemyError as e:
        raise database_failure("Failed to fetch distinct values", e)


@app.get("/api/chart-data")
def get_chart_data(
    request: Request,
    table: Optional[str] = None,
    xAxis: Optional[str] = None,
    yAxis: Optional[str] = None,
    chartType: str = "bar",
    aggregation: str = "auto",
    engine: Engine = Depends(get_db_engine)
):
    """
    Chart series for (table, xAxis, yAxis[,yAxis...], chartType, aggregation).

    Large x domains are bucketed so a chart never receives more than about
    50 points per series.
    """
    chart_request = chart_service.ChartRequest(
        table=table or "",
        x_axis=xAxis or "",
        y_axes=split_names(yAxis),
        chart_type=chartType,
        aggregation=aggregation,
        filters=parse_filters(request.query_params)
    )
    try:
        return chart_service.build_chart_data(chart_request, engine).to_dict()
    except SQLAlchemyError as e:
        raise database_failure("Failed to fetch chart data", e)


@app.get("/api/export")
def export_csv(
    request: Request,
    table: Optional[str] = None,
    columns: Optional[str] = None,
    engine: Engine = Depends(get_db_engine)
):
    """Download the selected columns of a table as CSV (streams all rows)."""
    try:
        plan = export_service.plan_export(
            engine,
            table or "",
            split_names(columns),
            parse_filters(request.query_params)
        )
    except SQLAlchemyError as e:
        raise database_failure("Failed to export data", e)

    return StreamingResponse(
        export_service.generate_csv(engine, plan),
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="{plan.filename}"',
            "Cache-Control": "no-cache",
        }
    )


@app.get("/health")
def health_check(engine: Engine = Depends(get_db_engine)):
    """Health check endpoint."""
    return {"status": "healthy", "database": engine.dialect.name}


def main():
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="Tablescope API Server")
    parser.add_argument("--port", type=int, default=8000, help="Port to run the server on (default: 8000)")
    parser.add_argument("--host", type=str, default="0.0.0.0", help="Host to bind to (default: 0.0.0.0)")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    args = parser.parse_args()

    logger.info(f"Starting Tablescope API server on {args.host}:{args.port}")

    # Use import string for reload support
    uvicorn.run(
        "tablescope.api.server:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        reload_dirs=["tablescope"] if args.reload else None,
    )


if __name__ == "__main__":
    main()
