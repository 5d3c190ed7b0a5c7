"""Shared pytest fixtures for sqlmanage tests."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from click.testing import CliRunner

from sqlmanage.core import DB_FILENAME, SQLMANAGE_DIR_NAME, SqlManageDB, write_config
from tests._db_factory import make_db


@pytest.fixture
def db(tmp_path: Path) -> Generator[SqlManageDB, None, None]:
    """Fresh SqlManageDB for each test."""
    d = make_db(tmp_path)
    yield d
    d.close()


@pytest.fixture
def project_id(db: SqlManageDB) -> int:
    """Id of the project named "shop" in the fresh db."""
    return db.ensure_project("shop")


@pytest.fixture
def sqlmanage_project(tmp_path: Path) -> Path:
    """A tmp directory set up as a sqlmanage deployment (.sqlmanage/ with config + db).

    Returns the deployment root (parent of .sqlmanage/).
    """
    sqlmanage_dir = tmp_path / SQLMANAGE_DIR_NAME
    sqlmanage_dir.mkdir()
    write_config(sqlmanage_dir, {"version": 1, "default_project": "shop"})

    d = SqlManageDB(sqlmanage_dir / DB_FILENAME)
    d.initialize()
    d.ensure_project("shop")
    d.close()
    return tmp_path


@pytest.fixture
def cli_runner() -> CliRunner:
    """Click CLI test runner."""
    return CliRunner()
