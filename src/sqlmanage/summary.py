"""Rollup counts that accompany every worklist listing.

An item is *bad* when it carries an audit level and has not been solved; it
is *solved* when its workflow status says so. Ignored items count toward
``bad`` if they carry an audit level, matching how the worklist has always
reported them.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from sqlmanage.db_base import STATUS_SOLVED
from sqlmanage.types.core import SummaryCounts


def summary_columns_sql(alias: str = "sm") -> str:
    """SELECT-list fragment computing ``total``, ``bad`` and ``solved``.

    *alias* is always a hardcoded table alias at the call site.
    """
    return (
        "COUNT(*) AS total, "
        f"coalesce(SUM(CASE WHEN {alias}.audit_level != '' AND {alias}.status != '{STATUS_SOLVED}' THEN 1 ELSE 0 END), 0) AS bad, "
        f"coalesce(SUM(CASE WHEN {alias}.status = '{STATUS_SOLVED}' THEN 1 ELSE 0 END), 0) AS solved"
    )


def summarize(items: Iterable[Any]) -> SummaryCounts:
    """Compute the same counts over items already in memory.

    Accepts ``SqlManage`` objects or their ``to_dict()`` form. Backs
    ``sqlmanage export --summary``.
    """
    total = bad = solved = 0
    for item in items:
        if isinstance(item, dict):
            level, status = item.get("audit_level", ""), item.get("status", "")
        else:
            level, status = item.audit_level, item.status
        total += 1
        if status == STATUS_SOLVED:
            solved += 1
        elif level:
            bad += 1
    return {"total": total, "bad": bad, "solved": solved}
