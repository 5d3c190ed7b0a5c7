"""Shared CLI helpers.

Provides ``get_db()``, ``resolve_project()`` and ``fail()`` so that
``cli.py`` and the ``cli_commands/*.py`` modules can use them without
circular imports.
"""

from __future__ import annotations

import json as json_mod
import sys
from typing import NoReturn

import click

from sqlmanage.core import (
    DB_FILENAME,
    SQLMANAGE_DIR_NAME,
    SqlManageDB,
    find_sqlmanage_root,
    read_config,
)
from sqlmanage.logging import setup_logging


def get_db() -> SqlManageDB:
    """Discover .sqlmanage/ and return an initialized SqlManageDB with logging on."""
    try:
        sqlmanage_dir = find_sqlmanage_root()
    except FileNotFoundError:
        click.echo(f"No {SQLMANAGE_DIR_NAME}/ found. Run 'sqlmanage init' first.", err=True)
        sys.exit(1)
    setup_logging(sqlmanage_dir)
    db = SqlManageDB(sqlmanage_dir / DB_FILENAME)
    db.initialize()
    return db


def resolve_project(project: str | None) -> str:
    """Return *project* or the configured default project name."""
    if project:
        return project
    try:
        sqlmanage_dir = find_sqlmanage_root()
    except FileNotFoundError:
        return "default"
    return read_config(sqlmanage_dir).get("default_project", "default")


def fail(message: str, *, as_json: bool = False) -> NoReturn:
    """Report an error the way every command does and exit 1."""
    if as_json:
        click.echo(json_mod.dumps({"error": message}))
    else:
        click.echo(f"Error: {message}", err=True)
    sys.exit(1)
