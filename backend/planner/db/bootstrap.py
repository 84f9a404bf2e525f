from __future__ import annotations

import logging

from sqlalchemy import inspect
from sqlalchemy.engine import Connection

import planner.models  # noqa: F401
from planner.db.base import Base
from planner.db.session import engine

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "schedule_runs": {
        "id",
        "status",
        "fitness",
        "stats",
        "result",
        "inputs_summary",
        "generations",
        "runtime_ms",
        "random_seed",
        "created_at",
    },
}


def find_schema_gaps(connection: Connection) -> tuple[list[str], dict[str, list[str]]]:
    """Return (missing tables, missing columns per table) against ``REQUIRED_COLUMNS``."""
    inspector = inspect(connection)
    table_names = set(inspector.get_table_names())
    missing_tables: list[str] = []
    missing_columns: dict[str, list[str]] = {}
    for table_name, required in REQUIRED_COLUMNS.items():
        if table_name not in table_names:
            missing_tables.append(table_name)
            continue
        existing = {item["name"] for item in inspector.get_columns(table_name)}
        missing = sorted(required - existing)
        if missing:
            missing_columns[table_name] = missing
    return sorted(missing_tables), missing_columns


def _assert_required_columns() -> None:
    with engine.begin() as connection:
        missing_tables, missing_columns = find_schema_gaps(connection)
    if missing_tables:
        raise RuntimeError(f"Missing required tables: {', '.join(missing_tables)}")
    if missing_columns:
        flattened = [f"{table}.{column}" for table, columns in missing_columns.items() for column in columns]
        raise RuntimeError(f"Missing required columns: {', '.join(flattened)}")


def ensure_schema() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        _assert_required_columns()
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Schema bootstrap failed")
        raise RuntimeError("Schema bootstrap failed") from exc
    logger.info("SCHEMA READY | tables=%s", ",".join(sorted(REQUIRED_COLUMNS)))
