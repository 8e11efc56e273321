"""Reporter: render a :class:`CheckResult` and decide the process exit status."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from layerguard.checker import CheckResult

EXIT_CLEAN = 0
EXIT_VIOLATIONS = 1
EXIT_FATAL = 2


def exit_code(result: CheckResult) -> int:
    """Return ``0`` when there are no violations, ``1`` otherwise."""
    return EXIT_VIOLATIONS if result.violations else EXIT_CLEAN


def _plural(n: int, word: str) -> str:
    return f"{n} {word}" if n == 1 else f"{n} {word}s"


def format_text(result: CheckResult) -> str:
    """Format a CheckResult as human-readable text.

    Example output with violations::

        Policy: layerguard.yml
        Files: 25 scanned, 142 imports

        ✗ layer-direction [error]
          src/core/store/app.store.ts:3 → Layer 'core' must not depend on ...

        1 violation found (1 error, 0 warnings; 8 rules evaluated)

    Nothing time-dependent is printed, so unchanged input gives identical output.
    """
    lines: list[str] = [
        f"Policy: {result.policy_source}",
        f"Files: {result.files_scanned} scanned, {result.imports_found} imports",
        "",
    ]

    if not result.violations:
        lines.append(f"✓ No violations found ({result.rules_evaluated} rules evaluated)")
        return "\n".join(lines)

    for v in result.violations:
        loc = v.file if v.line is None else f"{v.file}:{v.line}"
        lines.append(f"✗ {v.rule} [{v.severity}]")
        lines.append(f"  {loc} → {v.message}")
        lines.append("")

    count = len(result.violations)
    errors = sum(1 for v in result.violations if v.severity == "error")
    warnings = count - errors
    noun = "violation" if count == 1 else "violations"
    lines.append(
        f"{count} {noun} found ({_plural(errors, 'error')}, {_plural(warnings, 'warning')}; "
        f"{result.rules_evaluated} rules evaluated)"
    )
    return "\n".join(lines)


def format_json(result: CheckResult) -> str:
    """Format a CheckResult as JSON with a ``violations`` array and a ``summary`` object."""
    violations_list: list[dict[str, object]] = [
        {
            "file": v.file,
            "rule": v.rule,
            "severity": v.severity,
            "line": v.line,
            "target": v.target,
            "message": v.message,
        }
        for v in result.violations
    ]
    output: dict[str, object] = {
        "violations": violations_list,
        "summary": {
            "policy": result.policy_source,
            "rules_evaluated": result.rules_evaluated,
            "files_scanned": result.files_scanned,
            "imports_found": result.imports_found,
            "violations_count": len(result.violations),
            "exit_code": exit_code(result),
        },
    }
    return json.dumps(output, indent=2, sort_keys=False)


def format_porcelain(result: CheckResult) -> str:
    """One line per violation: ``rule:severity:file:line:message``.

    A missing line number is an empty field.  Empty string when clean.
    """
    return "\n".join(
        f"{v.rule}:{v.severity}:{v.file}:{v.line if v.line is not None else ''}:{v.message}"
        for v in result.violations
    )


FORMATTERS = {
    "text": format_text,
    "json": format_json,
    "porcelain": format_porcelain,
}


def report(result: CheckResult, fmt: str = "text") -> tuple[str, int]:
    """Render *result* in *fmt* and return ``(output, exit code)``."""
    formatter = FORMATTERS.get(fmt)
    if formatter is None:
        msg = f"Unknown format '{fmt}', must be one of {sorted(FORMATTERS)}"
        raise ValueError(msg)
    return formatter(result), exit_code(result)
