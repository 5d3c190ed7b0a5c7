"""CLI for the sqlmanage worklist.

Convention-based: discovers .sqlmanage/ by walking up from cwd.

Usage:
    sqlmanage init --project shop                   # Initialize .sqlmanage/ in cwd
    sqlmanage ingest findings.json                  # Merge a batch of raw findings
    sqlmanage list --status=unhandled               # Filtered worklist + counts
    sqlmanage show <id>                             # Show one item
    sqlmanage triage <id>... --status=solved        # Human workflow edit
    sqlmanage delete <id>...                        # Soft delete
    sqlmanage export --include-deleted              # Full table as JSON lines
    sqlmanage add-user alice                        # Register an assignable user
"""

from __future__ import annotations

from pathlib import Path

import click

from sqlmanage import __version__
from sqlmanage.cli_commands.admin import add_audit_plan, add_audit_record, add_user
from sqlmanage.cli_commands.worklist import delete, export, ingest, list_cmd, show, triage
from sqlmanage.core import (
    DB_FILENAME,
    SQLMANAGE_DIR_NAME,
    SqlManageDB,
    read_config,
    write_config,
)
from sqlmanage.logging import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="sqlmanage")
@click.option("--project", default=None, help="Project name (default: default_project from config.json)")
@click.pass_context
def cli(ctx: click.Context, project: str | None) -> None:
    """sqlmanage: deduplicated worklist of audited SQL."""
    ctx.ensure_object(dict)
    ctx.obj["project"] = project


@cli.command()
@click.option("--default-project", default=None, help="Default project name (default: directory name)")
def init(default_project: str | None) -> None:
    """Initialize .sqlmanage/ in the current directory."""
    cwd = Path.cwd()
    sqlmanage_dir = cwd / SQLMANAGE_DIR_NAME

    if sqlmanage_dir.exists():
        click.echo(f"{SQLMANAGE_DIR_NAME}/ already exists in {cwd}")
        # Still ensure DB is initialized
        config = read_config(sqlmanage_dir)
        with SqlManageDB(sqlmanage_dir / DB_FILENAME) as db:
            db.initialize()
            db.ensure_project(config.get("default_project", "default"))
        return

    default_project = default_project or cwd.name
    sqlmanage_dir.mkdir()
    write_config(sqlmanage_dir, {"version": 1, "default_project": default_project})
    setup_logging(sqlmanage_dir)

    with SqlManageDB(sqlmanage_dir / DB_FILENAME) as db:
        db.initialize()
        db.ensure_project(default_project)

    click.echo(f"Initialized {SQLMANAGE_DIR_NAME}/ in {cwd}")
    click.echo(f"  Default project: {default_project}")
    click.echo(f"  Database: {sqlmanage_dir / DB_FILENAME}")


for _command in (ingest, list_cmd, show, triage, delete, export, add_user, add_audit_plan, add_audit_record):
    cli.add_command(_command)


def main() -> None:
    cli()
