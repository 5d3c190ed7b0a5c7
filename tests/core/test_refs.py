"""Tests for reference rows: projects, users, audit plans, audit records."""

from __future__ import annotations

import pytest

from sqlmanage.core import SqlManageDB
from sqlmanage.errors import ValidationError


class TestProjects:
    def test_ensure_is_idempotent(self, db: SqlManageDB) -> None:
        assert db.ensure_project("shop") == db.ensure_project(" shop ")

    def test_get_project_id(self, db: SqlManageDB) -> None:
        pid = db.ensure_project("shop")
        assert db.get_project_id("shop") == pid
        assert db.get_project_id("missing") is None

    def test_empty_name(self, db: SqlManageDB) -> None:
        with pytest.raises(ValidationError):
            db.ensure_project("  ")


class TestUsers:
    def test_ensure_is_idempotent(self, db: SqlManageDB) -> None:
        assert db.ensure_user("alice") == db.ensure_user("alice")

    def test_distinct_users(self, db: SqlManageDB) -> None:
        assert db.ensure_user("alice") != db.ensure_user("bob")

    @pytest.mark.parametrize("login", ["", "a,b", "bad\x00name", "x" * 129])
    def test_invalid_login(self, db: SqlManageDB, login: str) -> None:
        with pytest.raises(ValidationError):
            db.ensure_user(login)


class TestAuditRefs:
    def test_plans_are_not_deduplicated(self, db: SqlManageDB, project_id: int) -> None:
        assert db.create_audit_plan(project_id, "nightly") != db.create_audit_plan(project_id, "nightly")

    def test_record_is_idempotent_by_reference(self, db: SqlManageDB, project_id: int) -> None:
        assert db.create_audit_record(project_id, "rec-1") == db.create_audit_record(project_id, "rec-1")

    def test_record_reference_scoped_to_project(self, db: SqlManageDB, project_id: int) -> None:
        other = db.ensure_project("other")
        mine = db.create_audit_record(project_id, "rec-1")
        theirs = db.create_audit_record(other, "rec-1")
        assert mine != theirs
        rows = db.conn.execute("SELECT project_id FROM sql_audit_records WHERE id IN (?, ?) ORDER BY id", (mine, theirs)).fetchall()
        assert [r["project_id"] for r in rows] == [project_id, other]

    def test_empty_plan_name(self, db: SqlManageDB, project_id: int) -> None:
        with pytest.raises(ValidationError):
            db.create_audit_plan(project_id, "")

    def test_empty_record_reference(self, db: SqlManageDB, project_id: int) -> None:
        with pytest.raises(ValidationError):
            db.create_audit_record(project_id, " ")
