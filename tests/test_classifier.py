"""Tests for layerguard.graph.classifier: layer, module and role classification."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from layerguard.graph.classifier import (
    ClassificationError,
    FileIdentity,
    classify,
    classify_target,
    is_public_entry,
    match_layer,
    role_for_name,
)
from layerguard.policy.loader import parse_policy
from layerguard.policy.model import UNCLASSIFIED, UNCLASSIFIED_ROLE

if TYPE_CHECKING:
    from layerguard.policy.model import Policy


class TestClassifyDefaultLayout:
    """classify() against the built-in app/modules/core/shared policy."""

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("src/shared/format.ts", FileIdentity("shared")),
            ("src/shared/date/parse.ts", FileIdentity("shared")),
            ("src/core/api/client.ts", FileIdentity("core")),
            ("src/core/store/app.store.ts", FileIdentity("core")),
            ("src/core/index.ts", FileIdentity("core", role="index")),
            ("src/app/main.tsx", FileIdentity("app")),
            ("src/app/ui.tsx", FileIdentity("app", role="ui")),
            ("src/modules/accounts/ui.tsx", FileIdentity("modules", "accounts", "ui")),
            ("src/modules/accounts/store.ts", FileIdentity("modules", "accounts", "store")),
            ("src/modules/accounts/service.js", FileIdentity("modules", "accounts", "service")),
            ("src/modules/billing/types.ts", FileIdentity("modules", "billing", "types")),
            ("src/modules/billing/index.ts", FileIdentity("modules", "billing", "index")),
            (
                "src/modules/billing/components/table.tsx",
                FileIdentity("modules", "billing", UNCLASSIFIED_ROLE),
            ),
        ],
    )
    def test_configured_layers(self, policy: Policy, path: str, expected: FileIdentity) -> None:
        assert classify(path, policy) == expected

    def test_windows_separators_normalised(self, policy: Policy) -> None:
        identity = classify("src\\modules\\billing\\store.ts", policy)
        assert identity == FileIdentity("modules", "billing", "store")

    def test_leading_dot_slash(self, policy: Policy) -> None:
        assert classify("./src/app/main.tsx", policy).layer == "app"

    @pytest.mark.parametrize("path", ["vite.config.ts", "src/main.ts", "scripts/audit.js"])
    def test_outside_every_root_is_unclassified(self, policy: Policy, path: str) -> None:
        identity = classify(path, policy)
        assert identity.layer == UNCLASSIFIED
        assert identity.module is None

    def test_file_directly_in_modules_root_raises(self, policy: Policy) -> None:
        with pytest.raises(ClassificationError, match="directly inside modules root"):
            classify("src/modules/stray.ts", policy)


class TestLayerMatching:
    """Longest-prefix matching and tie-breaking."""

    def test_longest_prefix_wins(self) -> None:
        policy = parse_policy(
            {
                "version": 1,
                "layers": [
                    {"name": "base", "root": "src"},
                    {"name": "special", "root": "src/special"},
                ],
            }
        )
        assert classify("src/special/x.ts", policy).layer == "special"
        assert classify("src/other.ts", policy).layer == "base"
        # Prefix match is per path segment, not per character.
        assert classify("src/specialist/x.ts", policy).layer == "base"

    def test_equal_roots_first_configured_wins(self) -> None:
        policy = parse_policy(
            {
                "version": 1,
                "layers": [
                    {"name": "first", "root": "lib"},
                    {"name": "second", "root": "lib"},
                ],
            }
        )
        for _ in range(3):
            layer = match_layer("lib/a.ts", policy)
            assert layer is not None
            assert layer.name == "first"


class TestRoles:
    """Role detection from the filename stem."""

    @pytest.mark.parametrize(
        ("name", "role"),
        [
            ("ui.tsx", "ui"),
            ("store.ts", "store"),
            ("service.jsx", "service"),
            ("types.ts", "types"),
            ("index.js", "index"),
            ("ui", "ui"),
            ("ui.css", UNCLASSIFIED_ROLE),
            ("ui.test.ts", UNCLASSIFIED_ROLE),
            ("helpers.ts", UNCLASSIFIED_ROLE),
        ],
    )
    def test_role_for_name(self, policy: Policy, name: str, role: str) -> None:
        assert role_for_name(name, policy) == role

    def test_custom_stems(self) -> None:
        policy = parse_policy(
            {
                "version": 1,
                "layers": [{"name": "modules", "root": "src/modules", "modules": True}],
                "roles": [{"name": "view", "stems": ["ui", "view"]}],
            }
        )
        assert classify("src/modules/a/view.tsx", policy).role == "view"
        assert classify("src/modules/a/ui.tsx", policy).role == "view"


class TestTargets:
    """classify_target() and is_public_entry() for resolved import targets."""

    def test_directory_target_is_public_entry(self, policy: Policy) -> None:
        identity = classify_target("src/modules/accounts", policy, is_dir=True)
        assert identity == FileIdentity("modules", "accounts", "index")
        assert is_public_entry("src/modules/accounts", policy, is_dir=True)

    def test_index_file_is_public_entry(self, policy: Policy) -> None:
        assert is_public_entry("src/modules/accounts/index.ts", policy)

    @pytest.mark.parametrize(
        "path",
        [
            "src/modules/accounts/store.ts",
            "src/modules/accounts/components/index.ts",
            "src/core/index.ts",
            "src/app/index.ts",
        ],
    )
    def test_not_public_entry(self, policy: Policy, path: str) -> None:
        assert not is_public_entry(path, policy)

    def test_modules_root_target_has_no_module(self, policy: Policy) -> None:
        identity = classify_target("src/modules/stray.ts", policy)
        assert identity.layer == "modules"
        assert identity.module is None
