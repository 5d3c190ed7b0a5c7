"""Core database operations for the SQL worklist.

Single source of truth for all SQLite operations. The CLI and any embedding
service import from this module. No daemon, just direct SQLite with WAL mode.

Covers the managed-SQL worklist (merge-upsert of raw findings, filtered
queries with summary counts, human triage edits) and the reference rows it
joins against (projects, users, audit plans, audit records).

Convention-based discovery: each deployment has a `.sqlmanage/` directory
containing `sqlmanage.db` (SQLite), `config.json` and `sqlmanage.log`.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from sqlmanage.db_base import STATUS_UNHANDLED
from sqlmanage.db_manage import ManageMixin
from sqlmanage.db_query import QueryMixin
from sqlmanage.db_refs import RefsMixin
from sqlmanage.db_schema import CURRENT_SCHEMA_VERSION, SCHEMA_SQL
from sqlmanage.types.core import ISOTimestamp, ProjectConfig, SqlManageDetailDict, SqlManageDict
from sqlmanage.types.inputs import RawFindingInput

logger = logging.getLogger(__name__)


def _iso_or_none(value: str | None) -> ISOTimestamp | None:
    return ISOTimestamp(value) if value is not None else None

# ---------------------------------------------------------------------------
# Convention-based discovery
# ---------------------------------------------------------------------------

SQLMANAGE_DIR_NAME = ".sqlmanage"
DB_FILENAME = "sqlmanage.db"
CONFIG_FILENAME = "config.json"


def find_sqlmanage_root(start: Path | None = None) -> Path:
    """Walk up from start (default cwd) looking for .sqlmanage/ directory.

    Returns the .sqlmanage/ directory path (not the deployment root).
    """
    current = (start or Path.cwd()).resolve()
    for parent in [current, *current.parents]:
        candidate = parent / SQLMANAGE_DIR_NAME
        if candidate.is_dir():
            return candidate
    msg = f"No {SQLMANAGE_DIR_NAME}/ directory found in {current} or any parent"
    raise FileNotFoundError(msg)


def read_config(sqlmanage_dir: Path) -> ProjectConfig:
    """Read .sqlmanage/config.json. Returns defaults if missing or corrupt."""
    defaults = ProjectConfig(version=1, default_project="default")
    config_path = sqlmanage_dir / CONFIG_FILENAME
    if not config_path.exists():
        return defaults
    try:
        result: ProjectConfig = json.loads(config_path.read_text())
        return result
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read %s, using defaults: %s", config_path, exc)
        return defaults


def write_config(sqlmanage_dir: Path, config: dict[str, Any] | ProjectConfig) -> None:
    """Write .sqlmanage/config.json."""
    config_path = sqlmanage_dir / CONFIG_FILENAME
    config_path.write_text(json.dumps(config, indent=2) + "\n")


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class RawFinding:
    """One occurrence of a statement as reported by a producer."""

    project_id: int
    fingerprint: str
    source: str
    observed_at: datetime | str
    sql_text: str = ""
    audit_level: str = ""
    audit_results: Any = field(default_factory=list)
    instance_name: str = ""
    schema_name: str = ""
    audit_plan_id: int | None = None
    sql_audit_record_id: int | None = None

    @classmethod
    def from_dict(cls, project_id: int, data: RawFindingInput | dict[str, Any]) -> RawFinding:
        """Build from the JSON shape read by ``sqlmanage ingest``."""
        return cls(
            project_id=project_id,
            fingerprint=data.get("fingerprint", ""),
            source=data.get("source", ""),
            observed_at=data.get("observed_at", ""),
            sql_text=data.get("sql_text", data.get("fingerprint", "")),
            audit_level=data.get("audit_level", ""),
            audit_results=data.get("audit_results", []),
            instance_name=data.get("instance_name", ""),
            schema_name=data.get("schema_name", ""),
            audit_plan_id=data.get("audit_plan_id"),
            sql_audit_record_id=data.get("sql_audit_record_id"),
        )


@dataclass
class SqlManage:
    id: int
    sql_fingerprint: str
    proj_fp_source_inst_schema_md5: str
    sql_text: str = ""
    source: str = ""
    audit_level: str = ""
    audit_results: Any = field(default_factory=list)
    fp_count: int = 0
    first_appear_timestamp: str | None = None
    last_receive_timestamp: str | None = None
    instance_name: str = ""
    schema_name: str = ""
    status: str = STATUS_UNHANDLED
    remark: str = ""
    project_id: int = 0
    audit_plan_id: int | None = None
    sql_audit_record_id: int | None = None
    created_at: str = ""
    updated_at: str = ""
    deleted_at: str | None = None

    @property
    def dedup_key(self) -> str:
        return self.proj_fp_source_inst_schema_md5

    def to_dict(self) -> SqlManageDict:
        return {
            "id": self.id,
            "sql_fingerprint": self.sql_fingerprint,
            "proj_fp_source_inst_schema_md5": self.proj_fp_source_inst_schema_md5,
            "sql_text": self.sql_text,
            "source": self.source,
            "audit_level": self.audit_level,
            "audit_results": self.audit_results,
            "fp_count": self.fp_count,
            "first_appear_timestamp": _iso_or_none(self.first_appear_timestamp),
            "last_receive_timestamp": _iso_or_none(self.last_receive_timestamp),
            "instance_name": self.instance_name,
            "schema_name": self.schema_name,
            "status": self.status,
            "remark": self.remark,
            "project_id": self.project_id,
            "audit_plan_id": self.audit_plan_id,
            "sql_audit_record_id": self.sql_audit_record_id,
            "created_at": ISOTimestamp(self.created_at),
            "updated_at": ISOTimestamp(self.updated_at),
            "deleted_at": _iso_or_none(self.deleted_at),
        }


@dataclass
class SqlManageDetail(SqlManage):
    """A worklist row plus its derived, read-only display fields."""

    assignees: list[str] = field(default_factory=list)
    audit_plan_name: str | None = None
    audit_record_ref: str | None = None

    def to_dict(self) -> SqlManageDetailDict:
        base = super().to_dict()
        return SqlManageDetailDict(
            **base,
            assignees=list(self.assignees),
            audit_plan_name=self.audit_plan_name,
            audit_record_ref=self.audit_record_ref,
        )


# ---------------------------------------------------------------------------
# SqlManageDB: the core
# ---------------------------------------------------------------------------


class SqlManageDB(ManageMixin, QueryMixin, RefsMixin):
    """Direct SQLite operations for the managed-SQL worklist."""

    def __init__(
        self,
        db_path: str | Path,
        *,
        check_same_thread: bool = True,
    ) -> None:
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._check_same_thread = check_same_thread

    @classmethod
    def from_project(cls, project_path: Path | None = None) -> SqlManageDB:
        """Create a SqlManageDB by discovering .sqlmanage/ from project_path (or cwd)."""
        sqlmanage_dir = find_sqlmanage_root(project_path)
        db = cls(sqlmanage_dir / DB_FILENAME)
        db.initialize()
        return db

    def __enter__(self) -> SqlManageDB:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path),
                isolation_level="DEFERRED",
                check_same_thread=self._check_same_thread,
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
            self._conn.execute("PRAGMA busy_timeout=5000")
        return self._conn

    def initialize(self) -> None:
        """Create tables for a fresh database and stamp the schema version.

        Refuses to open a database written by a newer schema version.
        """
        current_version = self.get_schema_version()

        if current_version == 0:
            self.conn.executescript(SCHEMA_SQL)
            self.conn.execute(f"PRAGMA user_version = {CURRENT_SCHEMA_VERSION}")
        elif current_version > CURRENT_SCHEMA_VERSION:
            msg = (
                f"Database {self.db_path} has schema version {current_version}, "
                f"newer than supported version {CURRENT_SCHEMA_VERSION}"
            )
            raise RuntimeError(msg)
        self.conn.commit()

    def get_schema_version(self) -> int:
        """Return the current schema version from PRAGMA user_version."""
        result: int = self.conn.execute("PRAGMA user_version").fetchone()[0]
        return result

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
