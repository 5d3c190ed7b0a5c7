"""CLI tests for ingest, list, show, triage, delete and export."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from sqlmanage.cli import cli
from tests.cli.conftest import _extract_id, _finding, _write_findings


def _ingest(runner: CliRunner, root: Path, findings: list[dict[str, Any]]) -> dict[str, Any]:
    path = _write_findings(root, findings)
    result = runner.invoke(cli, ["ingest", str(path), "--json"])
    assert result.exit_code == 0, result.output
    stats: dict[str, Any] = json.loads(result.output)
    return stats


@pytest.fixture
def worklist(cli_in_project: tuple[CliRunner, Path]) -> tuple[CliRunner, Path, list[int]]:
    """Two items: an 'error' item seen twice and a clean item on db2."""
    runner, root = cli_in_project
    assert runner.invoke(cli, ["add-user", "alice"]).exit_code == 0
    stats = _ingest(
        runner,
        root,
        [
            _finding("SELECT * FROM orders WHERE id = ?", audit_level="error"),
            _finding("SELECT * FROM orders WHERE id = ?", audit_level="error", observed_at="2024-05-01T11:00:00+00:00"),
            _finding("SELECT name FROM users", instance_name="db2"),
        ],
    )
    return runner, root, stats["item_ids"]


class TestIngest:
    def test_text_summary(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, root = cli_in_project
        path = _write_findings(root, [_finding(), _finding(), _finding("SELECT 2")])
        result = runner.invoke(cli, ["ingest", str(path)])
        assert result.exit_code == 0
        assert "Merged 3 occurrence(s) into 2 item(s): 2 new, 0 updated" in result.output

    def test_reingest_updates(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, root = cli_in_project
        _ingest(runner, root, [_finding()])
        stats = _ingest(runner, root, [_finding()])
        assert stats["items_updated"] == 1
        assert stats["items_created"] == 0

    def test_accepts_wrapped_object(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, root = cli_in_project
        path = root / "wrapped.json"
        path.write_text(json.dumps({"findings": [_finding()]}))
        result = runner.invoke(cli, ["ingest", str(path), "--json"])
        assert result.exit_code == 0
        assert json.loads(result.output)["occurrences"] == 1

    def test_sql_text_defaults_to_fingerprint(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, root = cli_in_project
        stats = _ingest(runner, root, [_finding("SELECT 9")])
        result = runner.invoke(cli, ["show", str(stats["item_ids"][0]), "--json"])
        assert json.loads(result.output)["sql_text"] == "SELECT 9"

    def test_invalid_finding_rejects_batch(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, root = cli_in_project
        path = _write_findings(root, [_finding(), _finding(source="crawler")])
        result = runner.invoke(cli, ["ingest", str(path), "--json"])
        assert result.exit_code == 1
        assert "findings[1]" in json.loads(result.output)["error"]
        listing = runner.invoke(cli, ["list", "--json"])
        assert json.loads(listing.output)["total"] == 0

    def test_not_json(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, root = cli_in_project
        path = root / "bad.json"
        path.write_text("[not json")
        result = runner.invoke(cli, ["ingest", str(path)])
        assert result.exit_code == 1
        assert "Cannot read" in result.output

    def test_wrong_shape(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, root = cli_in_project
        path = root / "shape.json"
        path.write_text(json.dumps({"items": []}))
        result = runner.invoke(cli, ["ingest", str(path)])
        assert result.exit_code == 1
        assert "Expected a JSON list" in result.output


class TestList:
    def test_header_and_rows(self, worklist: tuple[CliRunner, Path, list[int]]) -> None:
        runner, _, ids = worklist
        result = runner.invoke(cli, ["list"])
        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines[0] == "shop: 2 total, 1 bad, 0 solved"
        assert f"#{ids[1]}" in lines[1]
        assert f"#{ids[0]}" in lines[2]
        assert "x2" in lines[2]

    def test_json_envelope(self, worklist: tuple[CliRunner, Path, list[int]]) -> None:
        runner, _, _ = worklist
        data = json.loads(runner.invoke(cli, ["list", "--json"]).output)
        assert set(data) == {"items", "total", "bad", "solved", "limit", "offset", "has_more"}

    def test_filters(self, worklist: tuple[CliRunner, Path, list[int]]) -> None:
        runner, _, ids = worklist
        by_instance = json.loads(runner.invoke(cli, ["list", "--instance", "db2", "--json"]).output)
        assert [i["id"] for i in by_instance["items"]] == [ids[1]]
        by_level = json.loads(runner.invoke(cli, ["list", "--audit-level", "error", "--json"]).output)
        assert [i["id"] for i in by_level["items"]] == [ids[0]]
        by_text = json.loads(runner.invoke(cli, ["list", "--fingerprint", "users", "--json"]).output)
        assert by_text["total"] == 1

    def test_time_window(self, worklist: tuple[CliRunner, Path, list[int]]) -> None:
        runner, _, ids = worklist
        data = json.loads(runner.invoke(cli, ["list", "--since", "2024-05-01T10:30:00Z", "--json"]).output)
        assert [i["id"] for i in data["items"]] == [ids[0]]

    def test_pagination_hint(self, worklist: tuple[CliRunner, Path, list[int]]) -> None:
        runner, _, _ = worklist
        result = runner.invoke(cli, ["list", "--limit", "1"])
        assert "next page: --offset 1" in result.output

    def test_bad_window(self, worklist: tuple[CliRunner, Path, list[int]]) -> None:
        runner, _, _ = worklist
        result = runner.invoke(cli, ["list", "--since", "2024-06-01", "--until", "2024-05-01", "--json"])
        assert result.exit_code == 1
        assert "after" in json.loads(result.output)["error"]

    def test_other_project_is_separate(self, worklist: tuple[CliRunner, Path, list[int]]) -> None:
        runner, _, _ = worklist
        result = runner.invoke(cli, ["--project", "crm", "list"])
        assert result.output.splitlines()[0] == "crm: 0 total, 0 bad, 0 solved"


class TestShow:
    def test_text(self, worklist: tuple[CliRunner, Path, list[int]]) -> None:
        runner, _, ids = worklist
        result = runner.invoke(cli, ["show", str(ids[0])])
        assert result.exit_code == 0
        assert f"#{ids[0]}  [unhandled]  audit_plan" in result.output
        assert "Seen:        2 time(s)" in result.output

    def test_not_found(self, worklist: tuple[CliRunner, Path, list[int]]) -> None:
        runner, _, _ = worklist
        result = runner.invoke(cli, ["show", "999"])
        assert result.exit_code == 1
        assert "Not found: 999" in result.output


class TestTriage:
    def test_status_and_assignee(self, worklist: tuple[CliRunner, Path, list[int]]) -> None:
        runner, _, ids = worklist
        result = runner.invoke(cli, ["triage", str(ids[0]), "--status", "solved", "--assignee", "alice"])
        assert result.exit_code == 0
        assert f"Updated #{ids[0]} [solved]" in result.output
        shown = json.loads(runner.invoke(cli, ["show", str(ids[0]), "--json"]).output)
        assert shown["assignees"] == ["alice"]
        listing = runner.invoke(cli, ["list"])
        assert listing.output.splitlines()[0] == "shop: 2 total, 0 bad, 1 solved"

    def test_solved_survives_reingest(self, worklist: tuple[CliRunner, Path, list[int]]) -> None:
        runner, root, ids = worklist
        runner.invoke(cli, ["triage", str(ids[0]), "--status", "solved"])
        _ingest(runner, root, [_finding("SELECT * FROM orders WHERE id = ?", audit_level="error")])
        shown = json.loads(runner.invoke(cli, ["show", str(ids[0]), "--json"]).output)
        assert shown["status"] == "solved"
        assert shown["fp_count"] == 3

    def test_clear_assignees(self, worklist: tuple[CliRunner, Path, list[int]]) -> None:
        runner, _, ids = worklist
        runner.invoke(cli, ["triage", str(ids[0]), "--assignee", "alice"])
        result = runner.invoke(cli, ["triage", str(ids[0]), "--clear-assignees"])
        assert result.exit_code == 0
        shown = json.loads(runner.invoke(cli, ["show", str(ids[0]), "--json"]).output)
        assert shown["assignees"] == []

    def test_conflicting_assignee_flags(self, worklist: tuple[CliRunner, Path, list[int]]) -> None:
        runner, _, ids = worklist
        result = runner.invoke(cli, ["triage", str(ids[0]), "--assignee", "alice", "--clear-assignees"])
        assert result.exit_code == 1
        assert "mutually exclusive" in result.output

    def test_unknown_user(self, worklist: tuple[CliRunner, Path, list[int]]) -> None:
        runner, _, ids = worklist
        result = runner.invoke(cli, ["triage", str(ids[0]), "--assignee", "mallory"])
        assert result.exit_code == 1
        assert "Unknown user" in result.output

    def test_not_found(self, worklist: tuple[CliRunner, Path, list[int]]) -> None:
        runner, _, _ = worklist
        result = runner.invoke(cli, ["triage", "999", "--status", "solved", "--json"])
        assert result.exit_code == 1
        assert json.loads(result.output) == {"error": "Not found: 999"}

    def test_remark_json(self, worklist: tuple[CliRunner, Path, list[int]]) -> None:
        runner, _, ids = worklist
        result = runner.invoke(cli, ["triage", str(ids[1]), "--remark", "batch job", "--json"])
        assert result.exit_code == 0
        assert json.loads(result.output)[0]["remark"] == "batch job"


class TestDeleteAndExport:
    def test_delete_hides_from_list(self, worklist: tuple[CliRunner, Path, list[int]]) -> None:
        runner, _, ids = worklist
        result = runner.invoke(cli, ["delete", str(ids[0])])
        assert result.exit_code == 0
        assert "Deleted 1 item(s)" in result.output
        listing = json.loads(runner.invoke(cli, ["list", "--json"]).output)
        assert [i["id"] for i in listing["items"]] == [ids[1]]

    def test_export(self, worklist: tuple[CliRunner, Path, list[int]]) -> None:
        runner, _, ids = worklist
        runner.invoke(cli, ["delete", str(ids[0])])
        live = [json.loads(line) for line in runner.invoke(cli, ["export"]).output.splitlines()]
        everything = [json.loads(line) for line in runner.invoke(cli, ["export", "--include-deleted"]).output.splitlines()]
        assert [r["id"] for r in live] == [ids[1]]
        assert [r["id"] for r in everything] == ids
        assert everything[0]["deleted_at"] is not None

    def test_export_summary(self, worklist: tuple[CliRunner, Path, list[int]]) -> None:
        runner, _, ids = worklist
        runner.invoke(cli, ["triage", str(ids[1]), "--status", "solved"])
        runner.invoke(cli, ["delete", str(ids[0])])
        live = json.loads(runner.invoke(cli, ["export", "--summary"]).output)
        everything = json.loads(runner.invoke(cli, ["export", "--summary", "--include-deleted"]).output)
        assert live == {"total": 1, "bad": 0, "solved": 1}
        assert everything == {"total": 2, "bad": 1, "solved": 1}

    def test_log_file_written(self, worklist: tuple[CliRunner, Path, list[int]]) -> None:
        _, root, _ = worklist
        log_path = root / ".sqlmanage" / "sqlmanage.log"
        assert log_path.exists()
        assert any(json.loads(line).get("op") == "merge_batch" for line in log_path.read_text().splitlines())


class TestShowReferences:
    def test_audit_plan_and_record_shown(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, root = cli_in_project
        plan_id = _extract_id(runner.invoke(cli, ["add-audit-plan", "nightly"]).output)
        record_id = _extract_id(runner.invoke(cli, ["add-audit-record", "rec-7"]).output)
        stats = _ingest(
            runner,
            root,
            [
                _finding("SELECT 1", audit_plan_id=plan_id),
                _finding("SELECT 2", source="sql_audit_record", sql_audit_record_id=record_id),
            ],
        )
        plan_item, record_item = stats["item_ids"]

        text = runner.invoke(cli, ["show", str(plan_item)]).output
        assert f"Audit plan:  nightly (#{plan_id})" in text
        shown = json.loads(runner.invoke(cli, ["show", str(record_item), "--json"]).output)
        assert shown["audit_record_ref"] == "rec-7"
        assert shown["audit_plan_name"] is None
