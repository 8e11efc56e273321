"""Tests for the layerguard CLI commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest
from click.testing import CliRunner

from layerguard import __version__
from layerguard.cli import main
from layerguard.graph import import_extractor
from layerguard.policy.defaults import DEFAULT_POLICY_YAML

if TYPE_CHECKING:
    from pathlib import Path


def _write(root: Path, rel_path: str, text: str) -> None:
    target = root / rel_path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(text, encoding="utf-8")


def _add_upward_import(project: Path) -> None:
    _write(
        project,
        "src/shared/format.ts",
        'import { request } from "@core/api/client";\n'
        "export const formatAmount = (v: number): string => request(String(v));\n",
    )


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------


class TestCheckCommand:
    """``layerguard check`` output and exit codes."""

    def test_clean_exit_0(self, sample_project: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["check", "--project", str(sample_project)])
        assert result.exit_code == 0, result.output
        assert "No violations found" in result.output

    def test_violations_exit_1(self, sample_project: Path) -> None:
        _add_upward_import(sample_project)
        runner = CliRunner()
        result = runner.invoke(main, ["check", "--project", str(sample_project)])
        assert result.exit_code == 1
        assert "layer-direction [error]" in result.output
        assert "src/shared/format.ts:1" in result.output

    def test_warning_only_still_fails(self, sample_project: Path) -> None:
        _write(sample_project, "src/shared/legacy.ts", "// eslint-disable-next-line\n")
        runner = CliRunner()
        result = runner.invoke(main, ["check", "--project", str(sample_project)])
        assert result.exit_code == 1
        assert "bypass-marker [warn]" in result.output

    def test_json_format(self, sample_project: Path) -> None:
        _add_upward_import(sample_project)
        runner = CliRunner()
        result = runner.invoke(
            main, ["check", "--project", str(sample_project), "--format", "json"]
        )
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert [v["rule"] for v in data["violations"]] == ["layer-direction"]
        assert data["summary"]["exit_code"] == 1

    def test_porcelain_format(self, sample_project: Path) -> None:
        _add_upward_import(sample_project)
        runner = CliRunner()
        result = runner.invoke(
            main, ["check", "--project", str(sample_project), "--format", "porcelain"]
        )
        assert result.exit_code == 1
        assert result.stdout.startswith("layer-direction:error:src/shared/format.ts:1:")

    def test_jobs_option(self, sample_project: Path) -> None:
        _add_upward_import(sample_project)
        runner = CliRunner()
        serial = runner.invoke(
            main, ["check", "--project", str(sample_project), "--format", "json"]
        )
        threaded = runner.invoke(
            main, ["check", "--project", str(sample_project), "--format", "json", "-j", "4"]
        )
        assert serial.stdout == threaded.stdout

    def test_explicit_root(self, sample_project: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["check", "src/shared", "--project", str(sample_project)])
        assert result.exit_code == 0
        assert "Files: 1 scanned" in result.output

    def test_missing_root_exit_2(self, sample_project: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["check", "nope", "--project", str(sample_project)])
        assert result.exit_code == 2
        assert "Scan root not found" in result.output

    def test_missing_policy_exit_2(self, sample_project: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(
            main,
            [
                "check",
                "--project",
                str(sample_project),
                "--policy",
                str(sample_project / "missing.yml"),
            ],
        )
        assert result.exit_code == 2
        assert "Policy file not found" in result.output

    def test_invalid_policy_exit_2(self, sample_project: Path) -> None:
        (sample_project / "layerguard.yml").write_text("version: 7\n", encoding="utf-8")
        runner = CliRunner()
        result = runner.invoke(main, ["check", "--project", str(sample_project)])
        assert result.exit_code == 2
        assert "unsupported version 7" in result.output

    def test_non_integer_version_exit_2(self, sample_project: Path) -> None:
        (sample_project / "layerguard.yml").write_text(
            "version: [1]\nlayers: [{name: a, root: a}]\n", encoding="utf-8"
        )
        runner = CliRunner()
        result = runner.invoke(main, ["check", "--project", str(sample_project)])
        assert result.exit_code == 2
        assert "unsupported version [1]" in result.output
        assert isinstance(result.exception, SystemExit)

    def test_project_policy_file_used(self, sample_project: Path) -> None:
        relaxed = DEFAULT_POLICY_YAML.replace(
            "layer-direction: { enabled: true, severity: error }",
            "layer-direction: { enabled: false, severity: error }",
        )
        (sample_project / "layerguard.yml").write_text(relaxed, encoding="utf-8")
        _add_upward_import(sample_project)
        runner = CliRunner()
        result = runner.invoke(main, ["check", "--project", str(sample_project)])
        assert result.exit_code == 0, result.output
        assert "layerguard.yml" in result.output


# ---------------------------------------------------------------------------
# Other commands
# ---------------------------------------------------------------------------


class TestRulesCommand:
    def test_lists_rules_and_layers(self, tmp_path: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["rules", "--project", str(tmp_path)])
        assert result.exit_code == 0, result.output
        assert "built-in" in result.output
        for rule_id in ("layer-direction", "cross-module", "bypass-marker"):
            assert rule_id in result.output
        assert "shared" in result.output
        assert "store" in result.output


class TestImportsCommand:
    def test_lists_specifiers(self, sample_project: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["imports", str(sample_project / "src/app/main.tsx")])
        assert result.exit_code == 0, result.output
        assert result.stdout.splitlines() == [
            "1\timport\treact",
            "2\timport\t@modules/accounts",
            "3\timport\t@modules/billing",
        ]

    def test_parser_failure_exit_2(
        self, sample_project: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def broken(text: str, *, dialect: str = "typescript") -> list[object]:
            msg = "grammar unavailable"
            raise RuntimeError(msg)

        monkeypatch.setattr(import_extractor, "extract_import_statements", broken)
        runner = CliRunner()
        result = runner.invoke(main, ["imports", str(sample_project / "src/app/main.tsx")])
        assert result.exit_code == 2
        assert "cannot parse" in result.output
        assert "grammar unavailable" in result.output
        assert isinstance(result.exception, SystemExit)


class TestClassifyCommand:
    def test_paths(self, tmp_path: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(
            main,
            [
                "classify",
                "src/modules/accounts/ui.tsx",
                "src/core/api/client.ts",
                "vite.config.ts",
                "src/modules/stray.ts",
                "--project",
                str(tmp_path),
            ],
        )
        assert result.exit_code == 0, result.output
        lines = result.stdout.splitlines()
        assert lines[0] == "src/modules/accounts/ui.tsx\tmodules\taccounts\tui"
        assert lines[1] == "src/core/api/client.ts\tcore\t-\tunclassified"
        assert lines[2] == "vite.config.ts\tunclassified\t-\tunclassified"
        assert lines[3].startswith("src/modules/stray.ts\terror:")


class TestInitCommand:
    def test_writes_default_policy(self, tmp_path: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["init", "--project", str(tmp_path)])
        assert result.exit_code == 0, result.output
        target = tmp_path / "layerguard.yml"
        assert target.read_text(encoding="utf-8") == DEFAULT_POLICY_YAML

    def test_refuses_to_overwrite(self, tmp_path: Path) -> None:
        (tmp_path / "layerguard.yml").write_text("version: 1\n", encoding="utf-8")
        runner = CliRunner()
        result = runner.invoke(main, ["init", "--project", str(tmp_path)])
        assert result.exit_code == 2
        assert "already exists" in result.output

    def test_force(self, tmp_path: Path) -> None:
        (tmp_path / "layerguard.yml").write_text("version: 1\n", encoding="utf-8")
        runner = CliRunner()
        result = runner.invoke(main, ["init", "--project", str(tmp_path), "--force"])
        assert result.exit_code == 0
        assert (tmp_path / "layerguard.yml").read_text(encoding="utf-8") == DEFAULT_POLICY_YAML


def test_version() -> None:
    runner = CliRunner()
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output
