"""Fixtures for CLI interface tests."""

from __future__ import annotations

import json
import os
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from sqlmanage.cli import cli


@pytest.fixture
def cli_in_project(tmp_path: Path, cli_runner: CliRunner) -> Generator[tuple[CliRunner, Path], None, None]:
    """Initialize a sqlmanage deployment in tmp_path and return (runner, root)."""
    original_cwd = os.getcwd()
    os.chdir(str(tmp_path))
    result = cli_runner.invoke(cli, ["init", "--default-project", "shop"])
    assert result.exit_code == 0
    yield cli_runner, tmp_path
    os.chdir(original_cwd)


def _write_findings(root: Path, findings: list[dict[str, Any]], name: str = "findings.json") -> Path:
    path = root / name
    path.write_text(json.dumps(findings))
    return path


def _finding(fingerprint: str = "SELECT * FROM t WHERE id = ?", **overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "fingerprint": fingerprint,
        "source": "audit_plan",
        "observed_at": "2024-05-01T10:00:00+00:00",
        "instance_name": "db1",
        "schema_name": "shop",
    }
    data.update(overrides)
    return data


def _extract_id(output: str) -> int:
    """Extract the id from '<Kind> <name>: <id>' output."""
    return int(output.strip().rsplit(":", 1)[1])
