"""RefsMixin: projects, users, audit plans and audit records.

These rows belong to the systems around the worklist; they live here only so
the worklist queries have something to join against. Nothing in this module
deletes them, and worklist items keep their back-references even when the
referenced row is gone.
"""

from __future__ import annotations

import logging
import sqlite3

from sqlmanage.db_base import DBMixinProtocol, _now_iso
from sqlmanage.errors import StorageError, ValidationError
from sqlmanage.validation import sanitize_login_name

logger = logging.getLogger(__name__)


class RefsMixin(DBMixinProtocol):
    """Reference rows the worklist points at."""

    def _insert_or_get(self, table: str, column: str, value: str, scope: dict[str, object] | None = None) -> int:
        """Return the id of the row whose *column* equals *value*, creating it if needed.

        *scope* columns take part in the match as well as the insert.
        *table* and the column names are always hardcoded literals at the call site.
        """
        match = [column, *(scope or {})]
        where = " AND ".join(f"{c} = ?" for c in match)
        row = self.conn.execute(
            f"SELECT id FROM {table} WHERE {where}",
            [value, *(scope or {}).values()],
        ).fetchone()
        if row is not None:
            return int(row["id"])
        cols = [*match, "created_at"]
        params = [value, *(scope or {}).values(), _now_iso()]
        try:
            cursor = self.conn.execute(
                f"INSERT INTO {table} ({', '.join(cols)}) VALUES ({', '.join('?' * len(cols))})",
                params,
            )
            self.conn.commit()
        except sqlite3.Error as exc:
            if self.conn.in_transaction:
                self.conn.rollback()
            raise StorageError(f"insert into {table}", exc) from exc
        return int(cursor.lastrowid or 0)

    def ensure_project(self, name: str) -> int:
        """Return the id of project *name*, creating it on first use."""
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("project name must be a non-empty string")
        return self._insert_or_get("projects", "name", name.strip())

    def get_project_id(self, name: str) -> int | None:
        row = self.conn.execute("SELECT id FROM projects WHERE name = ?", (name,)).fetchone()
        return None if row is None else int(row["id"])

    def ensure_user(self, login_name: str) -> int:
        """Return the id of user *login_name*, creating it on first use."""
        cleaned, err = sanitize_login_name(login_name)
        if err:
            raise ValidationError(err)
        return self._insert_or_get("users", "login_name", cleaned)

    def create_audit_plan(self, project_id: int, name: str) -> int:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("audit plan name must be a non-empty string")
        try:
            cursor = self.conn.execute(
                "INSERT INTO audit_plans (project_id, name, created_at) VALUES (?, ?, ?)",
                (project_id, name.strip(), _now_iso()),
            )
            self.conn.commit()
        except sqlite3.Error as exc:
            if self.conn.in_transaction:
                self.conn.rollback()
            raise StorageError("create_audit_plan", exc) from exc
        return int(cursor.lastrowid or 0)

    def create_audit_record(self, project_id: int, audit_record_id: str) -> int:
        """Register an audit record by its external reference. Idempotent per project."""
        if not isinstance(audit_record_id, str) or not audit_record_id.strip():
            raise ValidationError("audit record reference must be a non-empty string")
        return self._insert_or_get(
            "sql_audit_records",
            "audit_record_id",
            audit_record_id.strip(),
            {"project_id": project_id},
        )
