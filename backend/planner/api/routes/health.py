from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from planner.core.config import get_settings
from planner.db.bootstrap import find_schema_gaps
from planner.db.session import engine

router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/health/live")
def health_live() -> dict:
    return {"status": "ok", "timestamp": _now()}


@router.get("/health/ready")
def health_ready() -> JSONResponse:
    settings = get_settings()
    db_ok = True
    db_error: str | None = None
    missing_tables: list[str] = []
    missing_columns: dict[str, list[str]] = {}

    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
            missing_tables, missing_columns = find_schema_gaps(connection)
    except Exception as exc:  # pragma: no cover - environment dependent
        db_ok = False
        db_error = str(exc)

    schema_ok = db_ok and not missing_tables and not missing_columns
    payload = {
        "status": "ok" if schema_ok else "degraded",
        "timestamp": _now(),
        "database": {
            "ok": db_ok,
            "schema_ok": schema_ok,
            "missing_tables": missing_tables,
            "missing_columns": missing_columns,
            "error": db_error,
        },
        "solver": {
            "population_size": settings.solver_population_size,
            "max_generations": settings.solver_max_generations,
            "time_limit_seconds": settings.solver_time_limit_seconds,
        },
    }
    return JSONResponse(status_code=200 if schema_ok else 503, content=payload)
