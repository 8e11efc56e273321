"""Shared test fixtures for layerguard."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from layerguard.policy.defaults import default_policy

if TYPE_CHECKING:
    from pathlib import Path

    from layerguard.policy.model import Policy


# A clean layered project: every module has all five role files and nothing
# in it breaks the built-in policy.
_MODULE_FILES: dict[str, str] = {
    "index.ts": 'export * from "./ui";\nexport type { {Name} } from "./types";\n',
    "ui.tsx": (
        'import { use{Name}s } from "./store";\n'
        "\n"
        "export function {Name}View(): null {\n"
        "  use{Name}s();\n"
        "  return null;\n"
        "}\n"
    ),
    "store.ts": (
        'import { load{Name}s } from "./service";\n'
        "\n"
        "export function use{Name}s(): void {\n"
        "  load{Name}s();\n"
        "}\n"
    ),
    "service.ts": (
        'import { request } from "@core/api/client";\n'
        'import { formatAmount } from "@shared/format";\n'
        "\n"
        "export function load{Name}s(): string {\n"
        '  return formatAmount(request("{name}").length);\n'
        "}\n"
    ),
    "types.ts": "export interface {Name} {\n  id: string;\n}\n",
}

_PROJECT_FILES: dict[str, str] = {
    "src/app/main.tsx": (
        'import React from "react";\n'
        'import { AccountView } from "@modules/accounts";\n'
        'import { InvoiceView } from "@modules/billing";\n'
        "\n"
        "export const views = [React, AccountView, InvoiceView];\n"
    ),
    "src/core/api/client.ts": (
        'import { formatAmount } from "@shared/format";\n'
        "\n"
        "export function request(name: string): string {\n"
        "  return formatAmount(name.length);\n"
        "}\n"
    ),
    "src/shared/format.ts": (
        "export function formatAmount(value: number): string {\n"
        "  return value.toFixed(2);\n"
        "}\n"
    ),
}

_SAMPLE_MODULES: dict[str, str] = {"accounts": "Account", "billing": "Invoice"}


def _write_file(root: Path, rel_path: str, text: str) -> Path:
    """Write *text* to ``root / rel_path``, creating parent directories."""
    target = root / rel_path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(text, encoding="utf-8")
    return target


@pytest.fixture()
def sample_project(tmp_path: Path) -> Path:
    """Create a clean app/modules/core/shared project under ``tmp_path/proj``."""
    project = tmp_path / "proj"
    project.mkdir()
    for rel_path, text in _PROJECT_FILES.items():
        _write_file(project, rel_path, text)
    for module, name in _SAMPLE_MODULES.items():
        for filename, template in _MODULE_FILES.items():
            text = template.replace("{Name}", name).replace("{name}", module)
            _write_file(project, f"src/modules/{module}/{filename}", text)
    return project


@pytest.fixture()
def policy() -> Policy:
    """The built-in policy."""
    return default_policy()
