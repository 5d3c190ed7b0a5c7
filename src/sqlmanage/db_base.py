"""Shared utilities, constants, and Protocol for DB mixins."""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Literal, Protocol

if TYPE_CHECKING:
    from sqlmanage.core import SqlManage

SqlManageStatus = Literal["unhandled", "solved", "ignored"]
SqlManageSource = Literal["audit_plan", "sql_audit_record"]

STATUS_UNHANDLED = "unhandled"
STATUS_SOLVED = "solved"
STATUS_IGNORED = "ignored"
VALID_STATUSES = frozenset({STATUS_UNHANDLED, STATUS_SOLVED, STATUS_IGNORED})

SOURCE_AUDIT_PLAN = "audit_plan"
SOURCE_SQL_AUDIT_RECORD = "sql_audit_record"
VALID_SOURCES = frozenset({SOURCE_AUDIT_PLAN, SOURCE_SQL_AUDIT_RECORD})


def _now_iso() -> str:
    return datetime.now(UTC).isoformat(timespec="microseconds")


class DBMixinProtocol(Protocol):
    """Shared attributes and methods that DB mixins access via self.

    Mixins inherit this Protocol so mypy can type-check self.conn,
    self.get_sql_manage(), etc. without ``type: ignore`` on every call.
    Actual implementations are provided by SqlManageDB at composition time.
    """

    db_path: Path
    _conn: sqlite3.Connection | None

    @property
    def conn(self) -> sqlite3.Connection: ...

    def get_sql_manage(self, item_id: int) -> SqlManage: ...
