"""ManageMixin: merge-upsert of raw findings and human triage edits.

All methods access ``self.conn`` via Python's MRO when composed into
``SqlManageDB``.

Field ownership is the central rule here: producer-owned fields (text,
audit level/results, counters, last-seen, origin references) are written by
``merge_batch``; human-owned fields (status, remark, assignees) and the
soft-delete marker are written only by ``update_sql_manage`` and
``delete_sql_manage``.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from sqlmanage.db_base import DBMixinProtocol, SqlManageStatus, _now_iso
from sqlmanage.dedup import build_dedup_key
from sqlmanage.errors import StorageError, ValidationError
from sqlmanage.validation import sanitize_login_name, validate_finding, validate_status

if TYPE_CHECKING:
    from sqlmanage.core import RawFinding, SqlManage
    from sqlmanage.types.core import MergeStats

logger = logging.getLogger(__name__)

_UPSERT_SQL = """\
INSERT INTO sql_manages (
    sql_fingerprint, proj_fp_source_inst_schema_md5, sql_text, source,
    audit_level, audit_results, fp_count, first_appear_timestamp,
    last_receive_timestamp, instance_name, schema_name, status, remark,
    project_id, audit_plan_id, sql_audit_record_id, created_at, updated_at
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'unhandled', '', ?, ?, ?, ?, ?)
ON CONFLICT(project_id, proj_fp_source_inst_schema_md5) DO UPDATE SET
    sql_text               = excluded.sql_text,
    audit_level            = excluded.audit_level,
    audit_results          = excluded.audit_results,
    audit_plan_id          = excluded.audit_plan_id,
    sql_audit_record_id    = excluded.sql_audit_record_id,
    fp_count               = sql_manages.fp_count + excluded.fp_count,
    first_appear_timestamp = coalesce(sql_manages.first_appear_timestamp, excluded.first_appear_timestamp),
    last_receive_timestamp = max(coalesce(sql_manages.last_receive_timestamp, ''), excluded.last_receive_timestamp),
    updated_at             = excluded.updated_at
RETURNING id, fp_count
"""


def _check_ids(item_ids: Sequence[int]) -> list[int]:
    ids = list(dict.fromkeys(item_ids))
    if not ids:
        raise ValidationError("At least one item id must be provided")
    for item_id in ids:
        if isinstance(item_id, bool) or not isinstance(item_id, int):
            raise ValidationError(f"item ids must be integers, got {item_id!r}")
    return ids


class ManageMixin(DBMixinProtocol):
    """Merge-upsert engine and workflow edits for the worklist.

    Inherits ``DBMixinProtocol`` for type-safe access to shared attributes.
    Actual implementations provided by ``SqlManageDB`` at composition time via MRO.
    """

    # -- Build helpers -------------------------------------------------------

    def _build_sql_manage(self, row: Any) -> SqlManage:
        """Build a SqlManage from a database row."""
        from sqlmanage.core import SqlManage

        return SqlManage(**self._sql_manage_fields(row))

    @staticmethod
    def _sql_manage_fields(row: Any) -> dict[str, Any]:
        raw_results = row["audit_results"]
        try:
            audit_results = json.loads(raw_results) if raw_results else []
        except (json.JSONDecodeError, TypeError):
            audit_results = []
        return {
            "id": row["id"],
            "sql_fingerprint": row["sql_fingerprint"],
            "proj_fp_source_inst_schema_md5": row["proj_fp_source_inst_schema_md5"],
            "sql_text": row["sql_text"] or "",
            "source": row["source"],
            "audit_level": row["audit_level"] or "",
            "audit_results": audit_results,
            "fp_count": row["fp_count"],
            "first_appear_timestamp": row["first_appear_timestamp"],
            "last_receive_timestamp": row["last_receive_timestamp"],
            "instance_name": row["instance_name"] or "",
            "schema_name": row["schema_name"] or "",
            "status": row["status"],
            "remark": row["remark"] or "",
            "project_id": row["project_id"],
            "audit_plan_id": row["audit_plan_id"],
            "sql_audit_record_id": row["sql_audit_record_id"],
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
            "deleted_at": row["deleted_at"],
        }

    # -- Merge-upsert --------------------------------------------------------

    def merge_batch(self, findings: Sequence[RawFinding]) -> MergeStats:
        """Insert new worklist items or merge into existing ones, atomically.

        Findings are grouped by dedup key first. Each group contributes its
        size to ``fp_count``, its earliest observation as the first-seen
        candidate, its latest as the last-seen candidate, and the producer
        fields of its latest observation (later batch position wins ties).

        On an existing item ``first_appear_timestamp`` stays as it is and
        ``last_receive_timestamp`` only moves forward. Status, remark,
        assignees and the soft-delete marker are never written here.

        Every submitted finding counts as one occurrence: resubmitting the
        same finding counts it again.

        Raises ValidationError before any write, or StorageError after
        rolling the whole batch back.
        """
        validated = [validate_finding(f, i) for i, f in enumerate(findings)]

        stats: MergeStats = {
            "items_created": 0,
            "items_updated": 0,
            "occurrences": len(validated),
            "item_ids": [],
        }
        if not validated:
            return stats

        groups: dict[tuple[int, str], list[RawFinding]] = {}
        for f in validated:
            key = build_dedup_key(f.project_id, f.fingerprint, f.source, f.instance_name, f.schema_name)
            groups.setdefault((f.project_id, key), []).append(f)

        now = _now_iso()
        started = time.monotonic()
        try:
            for (project_id, key), group in groups.items():
                # observed_at is normalized to fixed-precision UTC text by validate_finding
                first_seen = min(str(f.observed_at) for f in group)
                latest = group[0]
                for f in group[1:]:
                    if str(f.observed_at) >= str(latest.observed_at):
                        latest = f
                row = self.conn.execute(
                    _UPSERT_SQL,
                    (
                        latest.fingerprint,
                        key,
                        latest.sql_text,
                        latest.source,
                        latest.audit_level,
                        json.dumps(latest.audit_results),
                        len(group),
                        first_seen,
                        str(latest.observed_at),
                        latest.instance_name,
                        latest.schema_name,
                        project_id,
                        latest.audit_plan_id,
                        latest.sql_audit_record_id,
                        now,
                        now,
                    ),
                ).fetchall()[0]
                # A freshly inserted row carries exactly this group's contribution;
                # an existing row already held at least one occurrence.
                if row["fp_count"] == len(group):
                    stats["items_created"] += 1
                else:
                    stats["items_updated"] += 1
                stats["item_ids"].append(row["id"])
            self.conn.commit()
        except sqlite3.Error as exc:
            if self.conn.in_transaction:
                self.conn.rollback()
            logger.error(
                "Merge of %d finding(s) rolled back: %s",
                len(validated),
                exc,
                extra={"op": "merge_batch", "rows": len(validated), "error": str(exc)},
            )
            raise StorageError("merge_batch", exc) from exc
        except Exception:
            if self.conn.in_transaction:
                self.conn.rollback()
            raise

        logger.info(
            "Merged %d occurrence(s) into %d item(s) (%d new)",
            stats["occurrences"],
            len(stats["item_ids"]),
            stats["items_created"],
            extra={
                "op": "merge_batch",
                "rows": stats["occurrences"],
                "duration_ms": round((time.monotonic() - started) * 1000, 2),
            },
        )
        return stats

    # -- Lookups -------------------------------------------------------------

    def get_sql_manage(self, item_id: int) -> SqlManage:
        """Get a live worklist item by ID. Raises KeyError if missing or deleted."""
        row = self.conn.execute(
            "SELECT * FROM sql_manages WHERE id = ? AND deleted_at IS NULL",
            (item_id,),
        ).fetchone()
        if row is None:
            raise KeyError(item_id)
        return self._build_sql_manage(row)

    def get_sql_manage_by_dedup_key(self, project_id: int, dedup_key: str) -> SqlManage | None:
        """Get a live worklist item by its dedup key. Returns None if not found."""
        row = self.conn.execute(
            "SELECT * FROM sql_manages WHERE project_id = ? AND proj_fp_source_inst_schema_md5 = ? AND deleted_at IS NULL",
            (project_id, dedup_key),
        ).fetchone()
        if row is None:
            return None
        return self._build_sql_manage(row)

    def get_all_sql_manage(self, *, include_deleted: bool = False) -> list[SqlManage]:
        """Plain full-table read for export and maintenance, ordered by id."""
        where = "" if include_deleted else " WHERE deleted_at IS NULL"
        try:
            rows = self.conn.execute(f"SELECT * FROM sql_manages{where} ORDER BY id").fetchall()
        except sqlite3.Error as exc:
            raise StorageError("get_all_sql_manage", exc) from exc
        return [self._build_sql_manage(r) for r in rows]

    # -- Human workflow edits ------------------------------------------------

    def update_sql_manage(
        self,
        item_ids: Sequence[int],
        *,
        status: SqlManageStatus | None = None,
        assignees: Sequence[str] | None = None,
        remark: str | None = None,
    ) -> list[SqlManage]:
        """Apply a triage edit to one or more live items in one transaction.

        *assignees* replaces the whole assignee set (an empty list clears it);
        every login must already exist. Raises KeyError naming the first
        missing item id.
        """
        ids = _check_ids(item_ids)
        if status is None and assignees is None and remark is None:
            raise ValidationError("At least one of status, assignees or remark must be provided")
        if status is not None:
            validate_status(status)
        if remark is not None and not isinstance(remark, str):
            raise ValidationError(f"remark must be a string, got {type(remark).__name__}")

        user_ids: list[int] = []
        if assignees is not None:
            if isinstance(assignees, str):
                raise ValidationError("assignees must be a list of login names, not a string")
            for login in dict.fromkeys(assignees):
                cleaned, err = sanitize_login_name(login)
                if err:
                    raise ValidationError(err)
                user = self.conn.execute("SELECT id FROM users WHERE login_name = ?", (cleaned,)).fetchone()
                if user is None:
                    raise ValidationError(f'Unknown user: "{cleaned}"')
                user_ids.append(user["id"])

        placeholders = ",".join("?" * len(ids))
        updates = ["updated_at = ?"]
        params: list[Any] = [_now_iso()]
        if status is not None:
            updates.append("status = ?")
            params.append(status)
        if remark is not None:
            updates.append("remark = ?")
            params.append(remark)

        # Liveness is checked by the UPDATE itself, inside the write transaction.
        try:
            cursor = self.conn.execute(
                f"UPDATE sql_manages SET {', '.join(updates)} WHERE id IN ({placeholders}) AND deleted_at IS NULL",
                [*params, *ids],
            )
            if cursor.rowcount != len(ids):
                live = {
                    r["id"]
                    for r in self.conn.execute(
                        f"SELECT id FROM sql_manages WHERE id IN ({placeholders}) AND deleted_at IS NULL",
                        ids,
                    ).fetchall()
                }
                self.conn.rollback()
                raise KeyError(next(item_id for item_id in ids if item_id not in live))
            if assignees is not None:
                self.conn.execute(
                    f"DELETE FROM sql_manage_assignees WHERE sql_manage_id IN ({placeholders})",
                    ids,
                )
                self.conn.executemany(
                    "INSERT INTO sql_manage_assignees (sql_manage_id, user_id) VALUES (?, ?)",
                    [(item_id, user_id) for item_id in ids for user_id in user_ids],
                )
            updated = [self.get_sql_manage(item_id) for item_id in ids]
            self.conn.commit()
        except sqlite3.Error as exc:
            if self.conn.in_transaction:
                self.conn.rollback()
            raise StorageError("update_sql_manage", exc) from exc

        logger.info("Updated %d item(s)", len(ids), extra={"op": "update_sql_manage", "rows": len(ids)})
        return updated

    def get_assignees(self, item_id: int) -> list[str]:
        """Return the login names assigned to an item, sorted."""
        rows = self.conn.execute(
            "SELECT u.login_name FROM sql_manage_assignees sma "
            "JOIN users u ON u.id = sma.user_id "
            "WHERE sma.sql_manage_id = ? ORDER BY u.login_name",
            (item_id,),
        ).fetchall()
        return [r["login_name"] for r in rows]

    def delete_sql_manage(self, item_ids: Sequence[int]) -> int:
        """Soft-delete items. Returns how many live items were marked deleted.

        Rows are never purged; a later merge into the same key updates the
        producer fields but leaves the item deleted.
        """
        ids = _check_ids(item_ids)
        placeholders = ",".join("?" * len(ids))
        now = _now_iso()
        try:
            cursor = self.conn.execute(
                f"UPDATE sql_manages SET deleted_at = ?, updated_at = ? WHERE id IN ({placeholders}) AND deleted_at IS NULL",
                [now, now, *ids],
            )
            self.conn.commit()
        except sqlite3.Error as exc:
            if self.conn.in_transaction:
                self.conn.rollback()
            raise StorageError("delete_sql_manage", exc) from exc
        logger.info("Soft-deleted %d item(s)", cursor.rowcount, extra={"op": "delete_sql_manage", "rows": cursor.rowcount})
        return cursor.rowcount
