"""CLI commands for reference rows: users, audit plans, audit records."""

from __future__ import annotations

import click

from sqlmanage.cli_common import fail, get_db, resolve_project
from sqlmanage.errors import StorageError


@click.command("add-user")
@click.argument("login_name")
def add_user(login_name: str) -> None:
    """Register a user that items can be assigned to."""
    with get_db() as db:
        try:
            user_id = db.ensure_user(login_name)
        except (ValueError, StorageError) as e:
            fail(str(e))
    click.echo(f"User {login_name.strip()}: {user_id}")


@click.command("add-audit-plan")
@click.argument("name")
@click.pass_context
def add_audit_plan(ctx: click.Context, name: str) -> None:
    """Register an audit plan; findings reference it by the printed id."""
    project = resolve_project(ctx.obj["project"])
    with get_db() as db:
        try:
            plan_id = db.create_audit_plan(db.ensure_project(project), name)
        except (ValueError, StorageError) as e:
            fail(str(e))
    click.echo(f"Audit plan {name.strip()}: {plan_id}")


@click.command("add-audit-record")
@click.argument("reference")
@click.pass_context
def add_audit_record(ctx: click.Context, reference: str) -> None:
    """Register an audit record by its external reference."""
    project = resolve_project(ctx.obj["project"])
    with get_db() as db:
        try:
            record_id = db.create_audit_record(db.ensure_project(project), reference)
        except (ValueError, StorageError) as e:
            fail(str(e))
    click.echo(f"Audit record {reference.strip()}: {record_id}")
