"""Tests for layerguard.report: text, JSON and porcelain output, exit codes."""

from __future__ import annotations

import json

import pytest

from layerguard.checker import CheckResult
from layerguard.report import (
    EXIT_CLEAN,
    EXIT_VIOLATIONS,
    exit_code,
    format_json,
    format_porcelain,
    format_text,
    report,
)
from layerguard.rules.engine import Violation


def _result(*violations: Violation) -> CheckResult:
    return CheckResult(
        violations=list(violations),
        rules_evaluated=8,
        files_scanned=12,
        imports_found=30,
        policy_source="layerguard.yml",
    )


_LAYER = Violation(
    file="src/core/api/client.ts",
    rule="layer-direction",
    message="Layer 'core' must not depend on layer 'modules' (imports '@modules/a/ui')",
    line=3,
    target="@modules/a/ui",
)
_MARKER = Violation(
    file="src/shared/format.ts",
    rule="bypass-marker",
    message="Bypass marker '@ts-ignore' found",
    severity="warn",
    line=1,
    target="@ts-ignore",
)
_MISSING = Violation(
    file="src/modules/accounts",
    rule="required-files",
    message="Module 'accounts' is missing its required 'store' file",
    target="store",
)


class TestExitCode:
    def test_clean(self) -> None:
        assert exit_code(_result()) == EXIT_CLEAN == 0

    def test_any_violation_fails(self) -> None:
        assert exit_code(_result(_MARKER)) == EXIT_VIOLATIONS == 1
        assert exit_code(_result(_LAYER, _MISSING)) == 1


class TestFormatText:
    """Human-readable output."""

    def test_clean(self) -> None:
        output = format_text(_result())
        assert "Policy: layerguard.yml" in output
        assert "Files: 12 scanned, 30 imports" in output
        assert "No violations found (8 rules evaluated)" in output

    def test_violations(self) -> None:
        output = format_text(_result(_LAYER, _MARKER, _MISSING))
        assert "layer-direction [error]" in output
        assert "src/core/api/client.ts:3 → Layer 'core'" in output
        assert "bypass-marker [warn]" in output
        # No line number for module-level violations.
        assert "src/modules/accounts → Module 'accounts'" in output
        assert output.splitlines()[-1] == (
            "3 violations found (2 errors, 1 warning; 8 rules evaluated)"
        )

    def test_singular(self) -> None:
        assert "1 violation found" in format_text(_result(_LAYER))


class TestFormatJson:
    """Machine-readable output."""

    def test_structure(self) -> None:
        data = json.loads(format_json(_result(_LAYER, _MISSING)))
        assert data["summary"] == {
            "policy": "layerguard.yml",
            "rules_evaluated": 8,
            "files_scanned": 12,
            "imports_found": 30,
            "violations_count": 2,
            "exit_code": 1,
        }
        first = data["violations"][0]
        assert first == {
            "file": "src/core/api/client.ts",
            "rule": "layer-direction",
            "severity": "error",
            "line": 3,
            "target": "@modules/a/ui",
            "message": _LAYER.message,
        }
        assert data["violations"][1]["line"] is None

    def test_clean(self) -> None:
        data = json.loads(format_json(_result()))
        assert data["violations"] == []
        assert data["summary"]["exit_code"] == 0


class TestFormatPorcelain:
    def test_lines(self) -> None:
        output = format_porcelain(_result(_LAYER, _MISSING))
        assert output.splitlines() == [
            f"layer-direction:error:src/core/api/client.ts:3:{_LAYER.message}",
            f"required-files:error:src/modules/accounts::{_MISSING.message}",
        ]

    def test_clean_is_empty(self) -> None:
        assert format_porcelain(_result()) == ""


class TestReport:
    def test_returns_output_and_code(self) -> None:
        output, code = report(_result(_LAYER), "porcelain")
        assert output.startswith("layer-direction:")
        assert code == 1

    def test_unknown_format(self) -> None:
        with pytest.raises(ValueError, match="Unknown format 'xml'"):
            report(_result(), "xml")
