# IMPORT CONSTRAINT: types/ modules must only import from typing, stdlib, and each other.
"""Foundational TypedDicts for dataclass to_dict() returns and result envelopes."""

from __future__ import annotations

from typing import Any, NewType, TypedDict

ISOTimestamp = NewType("ISOTimestamp", str)


class ProjectConfig(TypedDict, total=False):
    """Shape of .sqlmanage/config.json."""

    version: int
    default_project: str


class SqlManageDict(TypedDict):
    id: int
    sql_fingerprint: str
    proj_fp_source_inst_schema_md5: str
    sql_text: str
    source: str
    audit_level: str
    audit_results: Any
    fp_count: int
    first_appear_timestamp: ISOTimestamp | None
    last_receive_timestamp: ISOTimestamp | None
    instance_name: str
    schema_name: str
    status: str
    remark: str
    project_id: int
    audit_plan_id: int | None
    sql_audit_record_id: int | None
    created_at: ISOTimestamp
    updated_at: ISOTimestamp
    deleted_at: ISOTimestamp | None


class SqlManageDetailDict(SqlManageDict):
    assignees: list[str]
    audit_plan_name: str | None
    audit_record_ref: str | None


class SummaryCounts(TypedDict):
    total: int
    bad: int
    solved: int


class SqlManageListResult(TypedDict):
    """Envelope returned by the worklist query.

    ``total``/``bad``/``solved`` cover the whole filtered set, not just the page.
    """

    items: list[SqlManageDetailDict]
    total: int
    bad: int
    solved: int
    limit: int | None
    offset: int
    has_more: bool


class MergeStats(TypedDict):
    items_created: int
    items_updated: int
    occurrences: int
    item_ids: list[int]
