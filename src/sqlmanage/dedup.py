"""Dedup key for "the same statement" within a project."""

from __future__ import annotations

import hashlib
import json


def build_dedup_key(
    project_id: int,
    fingerprint: str,
    source: str,
    instance_name: str,
    schema_name: str,
) -> str:
    """Return the MD5 hex digest identifying one managed statement.

    The parts are JSON-encoded as a list before hashing so that no two
    distinct tuples can produce the same hash input through separator
    ambiguity (``"a:b" + "c"`` vs ``"a" + "b:c"``).
    """
    payload = json.dumps(
        [project_id, fingerprint, source, instance_name, schema_name],
        ensure_ascii=False,
        separators=(",", ":"),
    )
    return hashlib.md5(payload.encode("utf-8"), usedforsecurity=False).hexdigest()
