import pytest
from sqlalchemy import text
from sqlalchemy.pool import StaticPool

from planner.db import bootstrap
from planner.db.base import Base
from planner.db.bootstrap import find_schema_gaps
from planner.db.session import build_engine


def _raise_error(message: str):
    raise RuntimeError(message)


def test_schema_bootstrap_raises_on_validation_failure(monkeypatch):
    monkeypatch.setattr(bootstrap.Base.metadata, "create_all", lambda bind: None)
    monkeypatch.setattr(
        bootstrap,
        "_assert_required_columns",
        lambda: _raise_error("missing required schema"),
    )

    with pytest.raises(RuntimeError, match="Schema bootstrap failed"):
        bootstrap.ensure_schema()


def test_schedule_runs_table_lists_its_columns():
    assert "result" in bootstrap.REQUIRED_COLUMNS["schedule_runs"]
    assert "random_seed" in bootstrap.REQUIRED_COLUMNS["schedule_runs"]


def test_schema_gaps_report_missing_tables_and_columns():
    engine = build_engine("sqlite+pysqlite://", poolclass=StaticPool)
    with engine.begin() as connection:
        assert find_schema_gaps(connection) == (["schedule_runs"], {})
        connection.execute(text("CREATE TABLE schedule_runs (id VARCHAR(36) PRIMARY KEY, status VARCHAR(20))"))
        missing_tables, missing_columns = find_schema_gaps(connection)

    assert missing_tables == []
    assert "result" in missing_columns["schedule_runs"]
    assert "id" not in missing_columns["schedule_runs"]


def test_created_schema_has_no_gaps():
    engine = build_engine("sqlite+pysqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    with engine.connect() as connection:
        assert find_schema_gaps(connection) == ([], {})
