"""Fixtures for core DB tests."""

from __future__ import annotations

import pytest

from sqlmanage.core import SqlManageDB
from tests._db_factory import T1, T2, T3, make_finding


@pytest.fixture
def seeded_db(db: SqlManageDB, project_id: int) -> SqlManageDB:
    """SqlManageDB holding a representative worklist for project "shop".

    Creates (ids ascending in this order):
    - orders: audit_plan on db1, level "error", 3 occurrences, assigned to alice
    - users:  audit_plan on db2, no level, 1 occurrence
    - carts:  sql_audit_record on db1, level "warn", solved
    - audit:  audit_plan on db1, level "notice", ignored, assigned to alice and bob
    Plus one item in another project ("other") that must never leak in.
    """
    plan_id = db.create_audit_plan(project_id, "nightly")
    record_id = db.create_audit_record(project_id, "rec-42")
    db.ensure_user("alice")
    db.ensure_user("bob")

    orders = db.merge_batch(
        [
            make_finding(project_id, "SELECT * FROM orders WHERE id = ?", audit_level="error", audit_plan_id=plan_id, observed_at=T1),
            make_finding(project_id, "SELECT * FROM orders WHERE id = ?", audit_level="error", audit_plan_id=plan_id, observed_at=T2),
            make_finding(project_id, "SELECT * FROM orders WHERE id = ?", audit_level="error", audit_plan_id=plan_id, observed_at=T3),
        ]
    )
    users = db.merge_batch([make_finding(project_id, "SELECT name FROM users", instance_name="db2", observed_at=T1)])
    carts = db.merge_batch(
        [
            make_finding(
                project_id,
                "DELETE FROM carts WHERE ts < ?",
                source="sql_audit_record",
                audit_level="warn",
                sql_audit_record_id=record_id,
                observed_at=T2,
            )
        ]
    )
    audit = db.merge_batch([make_finding(project_id, "INSERT INTO audit VALUES (?)", audit_level="notice", observed_at=T3)])

    other = db.ensure_project("other")
    db.merge_batch([make_finding(other, "SELECT * FROM orders WHERE id = ?", audit_level="error")])

    ids = {
        "orders": orders["item_ids"][0],
        "users": users["item_ids"][0],
        "carts": carts["item_ids"][0],
        "audit": audit["item_ids"][0],
    }
    db.update_sql_manage([ids["orders"]], assignees=["alice"])
    db.update_sql_manage([ids["carts"]], status="solved")
    db.update_sql_manage([ids["audit"]], status="ignored", assignees=["bob", "alice"])
    db._test_ids: dict[str, int] = ids  # type: ignore[attr-defined]
    return db
