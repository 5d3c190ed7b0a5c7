"""Shared validation functions for all entry points.

Pure functions with no Click or SQLite dependencies. Every check here runs
before the store is touched, so a rejected batch or query leaves no trace.
"""

from __future__ import annotations

import dataclasses
import json
import unicodedata
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlmanage.db_base import VALID_SOURCES, VALID_STATUSES
from sqlmanage.errors import ValidationError

if TYPE_CHECKING:
    from sqlmanage.core import RawFinding

_MAX_LOGIN_LENGTH = 128

TIME_FILTERS = frozenset({"filter_last_receive_time_from", "filter_last_receive_time_to"})
STRING_FILTERS = frozenset(
    {
        "fuzzy_search_sql_fingerprint",
        "filter_assignee",
        "filter_instance_name",
        "filter_source",
        "filter_audit_level",
        "filter_status",
    }
)
VALID_FILTERS = STRING_FILTERS | TIME_FILTERS


def normalize_timestamp(value: Any, name: str) -> str:
    """Return *value* as a UTC ISO-8601 string with microsecond precision.

    Accepts ``datetime`` objects (naive values are taken as UTC) or ISO-8601
    strings. The fixed precision keeps lexical order equal to time order.
    """
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            raise ValidationError(f"{name} is not an ISO-8601 timestamp: {value!r}") from None
    elif isinstance(value, datetime):
        parsed = value
    else:
        raise ValidationError(f"{name} must be a datetime or ISO-8601 string, got {type(value).__name__}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    try:
        return parsed.astimezone(UTC).isoformat(timespec="microseconds")
    except (OverflowError, ValueError):
        raise ValidationError(f"{name} is out of range when converted to UTC: {value!r}") from None


def validate_status(value: Any) -> str:
    if value not in VALID_STATUSES:
        valid = ", ".join(sorted(VALID_STATUSES))
        raise ValidationError(f'Invalid status "{value}". Must be one of: {valid}')
    return str(value)


def validate_source(value: Any) -> str:
    if value not in VALID_SOURCES:
        valid = ", ".join(sorted(VALID_SOURCES))
        raise ValidationError(f'Invalid source "{value}". Must be one of: {valid}')
    return str(value)


def sanitize_login_name(value: Any) -> tuple[str, str | None]:
    """Validate and clean a user login name.

    Returns (cleaned_login, None) on success or ("", error_message) on failure.
    Commas are rejected because assignee names are collapsed with them.
    """
    if not isinstance(value, str):
        return ("", "login name must be a string")
    for ch in value:
        if unicodedata.category(ch).startswith("C"):
            return ("", f"login name must not contain control characters (found U+{ord(ch):04X})")
    cleaned = value.strip()
    if not cleaned:
        return ("", "login name must not be empty")
    if "," in cleaned:
        return ("", "login name must not contain commas")
    if len(cleaned) > _MAX_LOGIN_LENGTH:
        return ("", f"login name must be at most {_MAX_LOGIN_LENGTH} characters")
    return (cleaned, None)


def _optional_ref(value: Any, name: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{name} must be a positive integer or null, got {value!r}")
    return value


def validate_finding(finding: RawFinding, index: int) -> RawFinding:
    """Check one raw finding and return a normalized copy.

    Raises ValidationError naming the offending batch position.
    """
    prefix = f"findings[{index}]"
    project_id = finding.project_id
    if isinstance(project_id, bool) or not isinstance(project_id, int) or project_id <= 0:
        raise ValidationError(f"{prefix} project_id must be a positive integer, got {project_id!r}")
    if not isinstance(finding.fingerprint, str) or not finding.fingerprint.strip():
        raise ValidationError(f"{prefix} fingerprint must be a non-empty string")
    if not isinstance(finding.sql_text, str):
        raise ValidationError(f"{prefix} sql_text must be a string, got {type(finding.sql_text).__name__}")
    for str_field in ("audit_level", "instance_name", "schema_name"):
        val = getattr(finding, str_field)
        if not isinstance(val, str):
            raise ValidationError(f"{prefix} {str_field} must be a string, got {type(val).__name__}")
    try:
        source = validate_source(finding.source)
    except ValidationError as exc:
        raise ValidationError(f"{prefix} {exc}") from None
    try:
        json.dumps(finding.audit_results)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{prefix} audit_results must be JSON-serializable: {exc}") from None

    return dataclasses.replace(
        finding,
        source=source,
        audit_level=finding.audit_level.strip(),
        observed_at=normalize_timestamp(finding.observed_at, f"{prefix} observed_at"),
        audit_plan_id=_optional_ref(finding.audit_plan_id, f"{prefix} audit_plan_id"),
        sql_audit_record_id=_optional_ref(finding.sql_audit_record_id, f"{prefix} sql_audit_record_id"),
    )


def validate_filters(filters: Mapping[str, Any] | None) -> dict[str, str]:
    """Return only the present filters, normalized.

    ``None`` and ``""`` mean "absent" and impose no constraint. Unknown
    filter names are rejected rather than ignored.
    """
    if not filters:
        return {}
    unknown = set(filters) - VALID_FILTERS
    if unknown:
        valid = ", ".join(sorted(VALID_FILTERS))
        raise ValidationError(f"Unknown filter(s): {', '.join(sorted(unknown))}. Valid filters: {valid}")

    present: dict[str, str] = {}
    for name, value in filters.items():
        if value is None or value == "":
            continue
        if name in TIME_FILTERS:
            present[name] = normalize_timestamp(value, name)
            continue
        if not isinstance(value, str):
            raise ValidationError(f"{name} must be a string, got {type(value).__name__}")
        present[name] = value

    if "filter_status" in present:
        validate_status(present["filter_status"])
    if "filter_source" in present:
        validate_source(present["filter_source"])
    lo = present.get("filter_last_receive_time_from")
    hi = present.get("filter_last_receive_time_to")
    if lo is not None and hi is not None and lo > hi:
        raise ValidationError(f"filter_last_receive_time_from ({lo}) is after filter_last_receive_time_to ({hi})")
    return present


def validate_pagination(limit: int | None, offset: int) -> None:
    if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0):
        raise ValidationError(f"limit must be a positive integer or None, got {limit!r}")
    if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
        raise ValidationError(f"offset must be a non-negative integer, got {offset!r}")
