# IMPORT CONSTRAINT: types/ modules must only import from typing, stdlib, and each other.
"""TypedDict contracts for caller-supplied inputs.

``SqlManageFilters`` is the open filter mapping accepted by the worklist
query: every key is optional and an absent key (or ``None``/``""``) imposes
no constraint. ``RawFindingInput`` is the JSON shape read by ``sqlmanage
ingest``.
"""

# NOTE: Do NOT add ``from __future__ import annotations`` to this module.
# It breaks TypedDict.__required_keys__ / __optional_keys__ introspection.

from datetime import datetime
from typing import Any, NotRequired, TypedDict


class SqlManageFilters(TypedDict, total=False):
    fuzzy_search_sql_fingerprint: str | None
    filter_assignee: str | None
    filter_instance_name: str | None
    filter_source: str | None
    filter_audit_level: str | None
    filter_last_receive_time_from: str | datetime | None
    filter_last_receive_time_to: str | datetime | None
    filter_status: str | None


class RawFindingInput(TypedDict):
    fingerprint: str
    source: str
    observed_at: str
    sql_text: NotRequired[str]
    audit_level: NotRequired[str]
    audit_results: NotRequired[Any]
    instance_name: NotRequired[str]
    schema_name: NotRequired[str]
    audit_plan_id: NotRequired[int | None]
    sql_audit_record_id: NotRequired[int | None]
