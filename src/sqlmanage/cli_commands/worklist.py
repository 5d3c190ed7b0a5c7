"""CLI commands for the worklist: ingest, list, show, triage, delete, export."""

from __future__ import annotations

import json as json_mod
from pathlib import Path
from typing import Any

import click

from sqlmanage.cli_common import fail, get_db, resolve_project
from sqlmanage.core import RawFinding
from sqlmanage.db_base import VALID_SOURCES, VALID_STATUSES
from sqlmanage.errors import StorageError
from sqlmanage.summary import summarize


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def ingest(ctx: click.Context, path: Path, as_json: bool) -> None:
    """Merge a JSON list of raw findings into the worklist as one batch."""
    try:
        data: Any = json_mod.loads(path.read_text())
    except (json_mod.JSONDecodeError, OSError) as e:
        fail(f"Cannot read {path}: {e}", as_json=as_json)
    if isinstance(data, dict):
        data = data.get("findings")
    if not isinstance(data, list) or not all(isinstance(d, dict) for d in data):
        fail("Expected a JSON list of finding objects (or {\"findings\": [...]})", as_json=as_json)

    project = resolve_project(ctx.obj["project"])
    with get_db() as db:
        try:
            project_id = db.ensure_project(project)
            stats = db.merge_batch([RawFinding.from_dict(project_id, d) for d in data])
        except (ValueError, StorageError) as e:
            fail(str(e), as_json=as_json)

    if as_json:
        click.echo(json_mod.dumps(stats, indent=2))
        return
    click.echo(
        f"Merged {stats['occurrences']} occurrence(s) into {len(stats['item_ids'])} item(s): "
        f"{stats['items_created']} new, {stats['items_updated']} updated"
    )


@click.command("list")
@click.option("--fingerprint", default=None, help="Fingerprint substring (case-sensitive)")
@click.option("--assignee", default=None, help="Assignee login name")
@click.option("--instance", default=None, help="Instance name")
@click.option("--source", type=click.Choice(sorted(VALID_SOURCES)), default=None, help="Producer")
@click.option("--audit-level", default=None, help="Audit level")
@click.option("--since", default=None, help="Last seen at or after (ISO-8601)")
@click.option("--until", default=None, help="Last seen at or before (ISO-8601)")
@click.option("--status", type=click.Choice(sorted(VALID_STATUSES)), default=None, help="Workflow status")
@click.option("--limit", default=None, type=int, help="Page size (default: all)")
@click.option("--offset", default=0, type=int, help="Skip first N results")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def list_cmd(
    ctx: click.Context,
    fingerprint: str | None,
    assignee: str | None,
    instance: str | None,
    source: str | None,
    audit_level: str | None,
    since: str | None,
    until: str | None,
    status: str | None,
    limit: int | None,
    offset: int,
    as_json: bool,
) -> None:
    """List worklist items with total / bad / solved counts."""
    filters = {
        "fuzzy_search_sql_fingerprint": fingerprint,
        "filter_assignee": assignee,
        "filter_instance_name": instance,
        "filter_source": source,
        "filter_audit_level": audit_level,
        "filter_last_receive_time_from": since,
        "filter_last_receive_time_to": until,
        "filter_status": status,
    }
    project = resolve_project(ctx.obj["project"])
    with get_db() as db:
        try:
            result = db.get_sql_manage_list(project, filters, limit=limit, offset=offset)
        except (ValueError, StorageError) as e:
            fail(str(e), as_json=as_json)

    if as_json:
        click.echo(json_mod.dumps(result, indent=2, default=str))
        return
    click.echo(f"{project}: {result['total']} total, {result['bad']} bad, {result['solved']} solved")
    for item in result["items"]:
        level = item["audit_level"] or "-"
        where = f"{item['instance_name']}/{item['schema_name']}".strip("/") or "-"
        assignees = f" @{','.join(item['assignees'])}" if item["assignees"] else ""
        click.echo(
            f"  #{item['id']:<6} {item['status']:<10} {level:<8} x{item['fp_count']:<5} {where:<20} "
            f"{item['sql_fingerprint'][:60]}{assignees}"
        )
    if result["has_more"]:
        click.echo(f"  ... more results; next page: --offset {result['offset'] + len(result['items'])}")


@click.command()
@click.argument("item_id", type=int)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def show(item_id: int, as_json: bool) -> None:
    """Show one worklist item."""
    with get_db() as db:
        try:
            item = db.get_sql_manage_detail(item_id)
        except KeyError:
            fail(f"Not found: {item_id}", as_json=as_json)
        except StorageError as e:
            fail(str(e), as_json=as_json)

    if as_json:
        click.echo(json_mod.dumps(item.to_dict(), indent=2, default=str))
        return
    click.echo(f"#{item.id}  [{item.status}]  {item.source}")
    click.echo(f"  Fingerprint: {item.sql_fingerprint}")
    click.echo(f"  Last SQL:    {item.sql_text}")
    click.echo(f"  Where:       {item.instance_name or '-'} / {item.schema_name or '-'}")
    click.echo(f"  Audit level: {item.audit_level or '-'}")
    click.echo(f"  Seen:        {item.fp_count} time(s), {item.first_appear_timestamp} .. {item.last_receive_timestamp}")
    click.echo(f"  Assignees:   {', '.join(item.assignees) or '-'}")
    if item.audit_plan_name:
        click.echo(f"  Audit plan:  {item.audit_plan_name} (#{item.audit_plan_id})")
    if item.audit_record_ref:
        click.echo(f"  Audit record: {item.audit_record_ref}")
    if item.remark:
        click.echo(f"  Remark:      {item.remark}")
    if item.audit_results:
        click.echo("  Audit results:")
        click.echo(json_mod.dumps(item.audit_results, indent=2, default=str))


@click.command()
@click.argument("item_ids", nargs=-1, required=True, type=int)
@click.option("--status", type=click.Choice(sorted(VALID_STATUSES)), default=None, help="New workflow status")
@click.option("--assignee", "assignees", multiple=True, help="Assignee login (repeatable, replaces the set)")
@click.option("--clear-assignees", is_flag=True, help="Remove all assignees")
@click.option("--remark", default=None, help="Free-text remark")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def triage(
    item_ids: tuple[int, ...],
    status: str | None,
    assignees: tuple[str, ...],
    clear_assignees: bool,
    remark: str | None,
    as_json: bool,
) -> None:
    """Set status, assignees or remark on one or more items."""
    if clear_assignees and assignees:
        fail("--assignee and --clear-assignees are mutually exclusive", as_json=as_json)
    new_assignees: list[str] | None = [] if clear_assignees else (list(assignees) or None)
    with get_db() as db:
        try:
            updated = db.update_sql_manage(list(item_ids), status=status, assignees=new_assignees, remark=remark)
        except KeyError as e:
            fail(f"Not found: {e.args[0]}", as_json=as_json)
        except (ValueError, StorageError) as e:
            fail(str(e), as_json=as_json)

    if as_json:
        click.echo(json_mod.dumps([u.to_dict() for u in updated], indent=2, default=str))
        return
    for u in updated:
        click.echo(f"Updated #{u.id} [{u.status}]")


@click.command()
@click.argument("item_ids", nargs=-1, required=True, type=int)
def delete(item_ids: tuple[int, ...]) -> None:
    """Soft-delete items (they stay in the database, hidden from listings)."""
    with get_db() as db:
        try:
            count = db.delete_sql_manage(list(item_ids))
        except (ValueError, StorageError) as e:
            fail(str(e))
    click.echo(f"Deleted {count} item(s)")


@click.command()
@click.option("--include-deleted", is_flag=True, help="Include soft-deleted items")
@click.option("--summary", "summary_only", is_flag=True, help="Print total / bad / solved counts of the exported rows instead")
def export(include_deleted: bool, summary_only: bool) -> None:
    """Write every worklist row to stdout as JSON lines."""
    with get_db() as db:
        try:
            items = db.get_all_sql_manage(include_deleted=include_deleted)
        except StorageError as e:
            fail(str(e))
    if summary_only:
        click.echo(json_mod.dumps(summarize(items)))
        return
    for item in items:
        click.echo(json_mod.dumps(item.to_dict(), default=str))
