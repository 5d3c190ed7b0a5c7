# IMPORT CONSTRAINT: types/ modules must only import from typing, stdlib, and each other.
# NEVER import from core.py, db_base.py, or any mixin; this prevents circular imports.
"""Typed return-value and input contracts for the sqlmanage store."""

from __future__ import annotations

from sqlmanage.types.core import (
    ISOTimestamp,
    MergeStats,
    ProjectConfig,
    SqlManageDetailDict,
    SqlManageDict,
    SqlManageListResult,
    SummaryCounts,
)
from sqlmanage.types.inputs import RawFindingInput, SqlManageFilters

__all__ = [
    "ISOTimestamp",
    "MergeStats",
    "ProjectConfig",
    "RawFindingInput",
    "SqlManageDetailDict",
    "SqlManageDict",
    "SqlManageFilters",
    "SqlManageListResult",
    "SummaryCounts",
]
