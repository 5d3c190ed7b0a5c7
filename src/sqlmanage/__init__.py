"""Deduplicated worklist of audited SQL statements."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("sqlmanage")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from sqlmanage.core import RawFinding, SqlManage, SqlManageDB, SqlManageDetail
from sqlmanage.dedup import build_dedup_key
from sqlmanage.errors import StorageError, ValidationError

__all__ = [
    "RawFinding",
    "SqlManage",
    "SqlManageDB",
    "SqlManageDetail",
    "StorageError",
    "ValidationError",
    "__version__",
    "build_dedup_key",
]
