"""Database schema definitions for the SQL worklist store.

Contains the canonical SQL schema and the current schema version constant.
"""

from __future__ import annotations

SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS projects (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT NOT NULL UNIQUE,
    created_at  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS users (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    login_name  TEXT NOT NULL UNIQUE,
    created_at  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS audit_plans (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id  INTEGER NOT NULL,
    name        TEXT NOT NULL,
    created_at  TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_audit_plans_project ON audit_plans(project_id);

CREATE TABLE IF NOT EXISTS sql_audit_records (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id       INTEGER NOT NULL,
    audit_record_id  TEXT NOT NULL,
    created_at       TEXT NOT NULL,
    UNIQUE (project_id, audit_record_id)
);

-- audit_plan_id / sql_audit_record_id are back-references, not ownership:
-- no REFERENCES clause so the item outlives a removed plan or record.
CREATE TABLE IF NOT EXISTS sql_manages (
    id                              INTEGER PRIMARY KEY AUTOINCREMENT,
    sql_fingerprint                 TEXT NOT NULL,
    proj_fp_source_inst_schema_md5  TEXT NOT NULL,
    sql_text                        TEXT NOT NULL,
    source                          TEXT NOT NULL,
    audit_level                     TEXT NOT NULL DEFAULT '',
    audit_results                   TEXT NOT NULL DEFAULT '[]',
    fp_count                        INTEGER NOT NULL DEFAULT 0,
    first_appear_timestamp          TEXT,
    last_receive_timestamp          TEXT,
    instance_name                   TEXT NOT NULL DEFAULT '',
    schema_name                     TEXT NOT NULL DEFAULT '',
    status                          TEXT NOT NULL DEFAULT 'unhandled',
    remark                          TEXT NOT NULL DEFAULT '',
    project_id                      INTEGER NOT NULL,
    audit_plan_id                   INTEGER,
    sql_audit_record_id             INTEGER,
    created_at                      TEXT NOT NULL,
    updated_at                      TEXT NOT NULL,
    deleted_at                      TEXT,

    CHECK (status IN ('unhandled', 'solved', 'ignored')),
    CHECK (source IN ('audit_plan', 'sql_audit_record')),
    CHECK (fp_count >= 0)
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_sql_manages_dedup
  ON sql_manages(project_id, proj_fp_source_inst_schema_md5);
CREATE INDEX IF NOT EXISTS idx_sql_manages_project_live ON sql_manages(project_id, deleted_at);
CREATE INDEX IF NOT EXISTS idx_sql_manages_last_receive ON sql_manages(last_receive_timestamp);
CREATE INDEX IF NOT EXISTS idx_sql_manages_status ON sql_manages(status);

CREATE TABLE IF NOT EXISTS sql_manage_assignees (
    sql_manage_id  INTEGER NOT NULL REFERENCES sql_manages(id),
    user_id        INTEGER NOT NULL REFERENCES users(id),
    PRIMARY KEY (sql_manage_id, user_id)
);

CREATE INDEX IF NOT EXISTS idx_sql_manage_assignees_user ON sql_manage_assignees(user_id);
"""

CURRENT_SCHEMA_VERSION = 1
