"""QueryMixin: filtered, paginated worklist reads with summary counts.

Filters arrive as a mapping from filter name to optional value. Only the
present entries become predicates, and the predicates are ANDed together;
the project match and the soft-delete exclusion are always applied.
"""

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Any

from sqlmanage.db_base import DBMixinProtocol
from sqlmanage.errors import StorageError, ValidationError
from sqlmanage.summary import summary_columns_sql
from sqlmanage.validation import validate_filters, validate_pagination

if TYPE_CHECKING:
    from sqlmanage.core import SqlManageDetail
    from sqlmanage.types.core import SqlManageListResult
    from sqlmanage.types.inputs import SqlManageFilters

logger = logging.getLogger(__name__)

# One predicate per filter name, each binding exactly one parameter.
# The assignee filter is an EXISTS so it does not narrow the joined
# assignee list that is displayed for the item.
_FILTER_PREDICATES: dict[str, str] = {
    "fuzzy_search_sql_fingerprint": "instr(sm.sql_fingerprint, ?) > 0",
    "filter_assignee": (
        "EXISTS (SELECT 1 FROM sql_manage_assignees fa"
        " JOIN users fu ON fu.id = fa.user_id"
        " WHERE fa.sql_manage_id = sm.id AND fu.login_name = ?)"
    ),
    "filter_instance_name": "sm.instance_name = ?",
    "filter_source": "sm.source = ?",
    "filter_audit_level": "sm.audit_level = ?",
    "filter_last_receive_time_from": "sm.last_receive_timestamp >= ?",
    "filter_last_receive_time_to": "sm.last_receive_timestamp <= ?",
    "filter_status": "sm.status = ?",
}

_BASE_FROM = " FROM sql_manages sm JOIN projects p ON p.id = sm.project_id"

_DETAIL_JOINS = (
    " LEFT JOIN audit_plans ap ON ap.id = sm.audit_plan_id"
    " LEFT JOIN sql_audit_records sar ON sar.id = sm.sql_audit_record_id"
    " LEFT JOIN sql_manage_assignees sma ON sma.sql_manage_id = sm.id"
    " LEFT JOIN users u ON u.id = sma.user_id"
)

_DETAIL_COLUMNS = (
    "sm.*, group_concat(u.login_name) AS assignee_names,"
    " ap.name AS audit_plan_name, sar.audit_record_id AS audit_record_ref"
)


def build_where(project_name: str, present: Mapping[str, Any]) -> tuple[str, list[Any]]:
    """Fold the present filters into a WHERE clause and its parameters.

    *present* must already be validated (see ``validate_filters``).
    """
    clauses = ["p.name = ?", "sm.deleted_at IS NULL"]
    params: list[Any] = [project_name]
    for name, predicate in _FILTER_PREDICATES.items():
        if name in present:
            clauses.append(predicate)
            params.append(present[name])
    return " WHERE " + " AND ".join(clauses), params


class QueryMixin(DBMixinProtocol):
    """Worklist reads. Implementations of self.conn come from ``SqlManageDB``."""

    if TYPE_CHECKING:
        # From ManageMixin
        @staticmethod
        def _sql_manage_fields(row: Any) -> dict[str, Any]: ...

    @contextlib.contextmanager
    def _read_snapshot(self) -> Iterator[None]:
        """Run several SELECTs against one consistent snapshot."""
        own = not self.conn.in_transaction
        if own:
            self.conn.execute("BEGIN")
        try:
            yield
        finally:
            if own and self.conn.in_transaction:
                self.conn.rollback()

    def _build_detail(self, row: Any) -> SqlManageDetail:
        from sqlmanage.core import SqlManageDetail

        names = row["assignee_names"]
        return SqlManageDetail(
            **self._sql_manage_fields(row),
            assignees=sorted(names.split(",")) if names else [],
            audit_plan_name=row["audit_plan_name"],
            audit_record_ref=row["audit_record_ref"],
        )

    def get_sql_manage_detail(self, item_id: int) -> SqlManageDetail:
        """Get a live item with its assignees, audit plan name and audit record reference.

        Raises KeyError if missing or deleted.
        """
        try:
            row = self.conn.execute(
                f"SELECT {_DETAIL_COLUMNS} FROM sql_manages sm{_DETAIL_JOINS}"
                " WHERE sm.id = ? AND sm.deleted_at IS NULL GROUP BY sm.id",
                (item_id,),
            ).fetchone()
        except sqlite3.Error as exc:
            raise StorageError("get_sql_manage_detail", exc) from exc
        if row is None:
            raise KeyError(item_id)
        return self._build_detail(row)

    def get_sql_manage_list(
        self,
        project_name: str,
        filters: SqlManageFilters | Mapping[str, Any] | None = None,
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> SqlManageListResult:
        """List live worklist items of a project with summary counts.

        Returns ``{items, total, bad, solved, limit, offset, has_more}``.
        Items are ordered by id, newest first. Without *limit* every matching
        item is returned. The counts always cover the whole filtered set,
        read from the same snapshot as the items.
        """
        if not isinstance(project_name, str) or not project_name:
            raise ValidationError("project_name must be a non-empty string")
        present = validate_filters(filters)
        validate_pagination(limit, offset)

        where, params = build_where(project_name, present)
        list_sql = (
            f"SELECT {_DETAIL_COLUMNS}{_BASE_FROM}{_DETAIL_JOINS}{where}"
            " GROUP BY sm.id ORDER BY sm.id DESC"
        )
        list_params = list(params)
        if limit is not None:
            list_sql += " LIMIT ? OFFSET ?"
            list_params.extend([limit, offset])
        count_sql = f"SELECT {summary_columns_sql('sm')}{_BASE_FROM}{where}"

        started = time.monotonic()
        try:
            with self._read_snapshot():
                rows = self.conn.execute(list_sql, list_params).fetchall()
                counts = self.conn.execute(count_sql, params).fetchone()
        except sqlite3.Error as exc:
            logger.error(
                "Worklist query for project %s failed: %s",
                project_name,
                exc,
                extra={"op": "get_sql_manage_list", "project": project_name, "error": str(exc)},
            )
            raise StorageError("get_sql_manage_list", exc) from exc

        items = [self._build_detail(r).to_dict() for r in rows]
        total = int(counts["total"])
        logger.info(
            "Worklist query returned %d of %d item(s)",
            len(items),
            total,
            extra={
                "op": "get_sql_manage_list",
                "project": project_name,
                "rows": len(items),
                "duration_ms": round((time.monotonic() - started) * 1000, 2),
            },
        )
        return {
            "items": items,
            "total": total,
            "bad": int(counts["bad"]),
            "solved": int(counts["solved"]),
            "limit": limit,
            "offset": offset,
            "has_more": limit is not None and (offset + len(items)) < total,
        }
