"""Policy loader: parse ``layerguard.yml``, validate, and build a :class:`Policy`."""

from __future__ import annotations

import posixpath
import re
from typing import TYPE_CHECKING

import yaml

from layerguard.policy.model import (
    CONFIGURABLE_RULES,
    SENTINEL_LAYERS,
    SUPPORTED_SCHEMA_VERSIONS,
    VALID_SEVERITIES,
    ContentPattern,
    LayerDef,
    Policy,
    RoleDef,
    RuleSetting,
)

if TYPE_CHECKING:
    from pathlib import Path

_DEFAULT_EXTENSIONS: tuple[str, ...] = (".ts", ".tsx", ".js", ".jsx")
_DEFAULT_IGNORE_DIRS: tuple[str, ...] = ("node_modules", "dist", "build", "coverage", ".git")

# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------


def normalize_rel_path(path: str) -> str:
    """Normalise a repository-relative path to POSIX form without ``./`` or a trailing slash."""
    norm = posixpath.normpath(path.replace("\\", "/"))
    return "" if norm == "." else norm


def _str_list(value: object, context: str) -> list[str]:
    """Accept a string or a list of strings and return a list of strings."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        msg = f"{context} must be a string or a list of strings"
        raise ValueError(msg)
    result: list[str] = []
    for item in value:
        if not isinstance(item, str) or not item.strip():
            msg = f"{context} must contain only non-empty strings"
            raise ValueError(msg)
        result.append(item)
    return result


def _non_empty_str(data: dict[str, object], key: str, context: str) -> str:
    value = data.get(key)
    if value is None or not isinstance(value, str) or not value.strip():
        msg = f"{context}: missing required '{key}' field"
        raise ValueError(msg)
    return value


def _bool(data: dict[str, object], key: str, default: bool, context: str) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        msg = f"{context}: '{key}' must be true or false, got {value!r}"
        raise ValueError(msg)
    return value


# ---------------------------------------------------------------------------
# Layers
# ---------------------------------------------------------------------------


def _parse_layers(raw: object) -> tuple[LayerDef, ...]:
    if not isinstance(raw, list) or not raw:
        msg = "layerguard.yml: 'layers' must be a non-empty list"
        raise ValueError(msg)

    layers: list[LayerDef] = []
    seen: set[str] = set()
    for idx, layer_data in enumerate(raw):
        context = f"layerguard.yml: layer at index {idx}"
        if not isinstance(layer_data, dict):
            msg = f"{context} must be a mapping"
            raise ValueError(msg)

        name = _non_empty_str(layer_data, "name", context)
        if name in SENTINEL_LAYERS:
            msg = f"{context}: '{name}' is a reserved layer name"
            raise ValueError(msg)
        if name in seen:
            msg = f"layerguard.yml: duplicate layer name '{name}'"
            raise ValueError(msg)
        seen.add(name)

        root = normalize_rel_path(_non_empty_str(layer_data, "root", context))

        above: tuple[str, ...] | None = None
        if "above" in layer_data:
            above = tuple(_str_list(layer_data["above"], f"Layer '{name}': 'above'"))

        layers.append(
            LayerDef(
                name=name,
                root=root,
                modules=_bool(layer_data, "modules", False, context),
                allow_sideways=_bool(layer_data, "allow_sideways", True, context),
                above=above,
            )
        )
    return tuple(layers)


def _find_cycle(graph: dict[str, tuple[str, ...]]) -> list[str] | None:
    """Return one cycle in *graph* as a path (first node repeated last), or None."""
    visiting: set[str] = set()
    done: set[str] = set()

    def _visit(node: str, path: list[str]) -> list[str] | None:
        visiting.add(node)
        path.append(node)
        for neighbor in graph.get(node, ()):
            if neighbor in visiting:
                return [*path[path.index(neighbor) :], neighbor]
            if neighbor not in done:
                found = _visit(neighbor, path)
                if found is not None:
                    return found
        path.pop()
        visiting.discard(node)
        done.add(node)
        return None

    for start in sorted(graph):
        if start not in done:
            cycle = _visit(start, [])
            if cycle is not None:
                return cycle
    return None


def compute_reachable(layers: tuple[LayerDef, ...]) -> dict[str, frozenset[str]]:
    """Build the transitive "may import" relation for *layers*.

    Without any ``above`` declarations the list order is used: each layer may
    depend on every layer listed before it.  When at least one layer declares
    ``above``, only the declared relation (and its transitive closure) applies.

    Raises ``ValueError`` for references to unknown layers or a cyclic order.
    """
    names = [layer.name for layer in layers]
    if all(layer.above is None for layer in layers):
        return {name: frozenset(names[:idx]) for idx, name in enumerate(names)}

    direct: dict[str, tuple[str, ...]] = {}
    for layer in layers:
        below = layer.above or ()
        for other in below:
            if other not in names:
                msg = f"Layer '{layer.name}': 'above' references unknown layer '{other}'"
                raise ValueError(msg)
        direct[layer.name] = below

    cycle = _find_cycle(direct)
    if cycle is not None:
        msg = f"layerguard.yml: cyclic layer order: {' -> '.join(cycle)}"
        raise ValueError(msg)

    reachable: dict[str, frozenset[str]] = {}
    for name in names:
        seen: set[str] = set()
        stack = list(direct[name])
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(direct[current])
        reachable[name] = frozenset(seen)
    return reachable


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------


def _parse_pattern(raw: object, context: str) -> ContentPattern:
    """Parse a forbidden pattern: ``"text"`` or ``{text|regex: ..., message: ...}``."""
    if isinstance(raw, str):
        if not raw:
            msg = f"{context}: pattern must not be empty"
            raise ValueError(msg)
        return ContentPattern(text=raw)
    if not isinstance(raw, dict):
        msg = f"{context}: pattern must be a string or a mapping"
        raise ValueError(msg)

    message = str(raw.get("message", ""))
    if "regex" in raw:
        expr = raw["regex"]
        if not isinstance(expr, str) or not expr:
            msg = f"{context}: 'regex' must be a non-empty string"
            raise ValueError(msg)
        try:
            re.compile(expr)
        except re.error as exc:
            msg = f"{context}: invalid regex {expr!r}: {exc}"
            raise ValueError(msg) from exc
        return ContentPattern(text=expr, regex=True, message=message)

    text = raw.get("text")
    if not isinstance(text, str) or not text:
        msg = f"{context}: pattern mapping needs a 'text' or 'regex' field"
        raise ValueError(msg)
    return ContentPattern(text=text, message=message)


def _parse_roles(raw: object, layer_names: set[str]) -> tuple[RoleDef, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        msg = "layerguard.yml: 'roles' must be a list"
        raise ValueError(msg)

    roles: list[RoleDef] = []
    seen: set[str] = set()
    for idx, role_data in enumerate(raw):
        context = f"layerguard.yml: role at index {idx}"
        if not isinstance(role_data, dict):
            msg = f"{context} must be a mapping"
            raise ValueError(msg)

        name = _non_empty_str(role_data, "name", context)
        if name in seen:
            msg = f"layerguard.yml: duplicate role name '{name}'"
            raise ValueError(msg)
        seen.add(name)

        stems = _str_list(role_data.get("stems", role_data.get("stem")), f"Role '{name}': 'stems'")
        if not stems:
            stems = [name]

        forbid = role_data.get("forbid", {})
        if forbid is None:
            forbid = {}
        if not isinstance(forbid, dict):
            msg = f"Role '{name}': 'forbid' must be a mapping"
            raise ValueError(msg)

        patterns_raw = forbid.get("patterns", [])
        if not isinstance(patterns_raw, list):
            msg = f"Role '{name}': forbid.patterns must be a list"
            raise ValueError(msg)
        patterns = tuple(
            _parse_pattern(item, f"Role '{name}' forbid.patterns[{i}]")
            for i, item in enumerate(patterns_raw)
        )

        imports = tuple(_str_list(forbid.get("imports"), f"Role '{name}': forbid.imports"))

        forbidden_layers = tuple(_str_list(forbid.get("layers"), f"Role '{name}': forbid.layers"))
        for layer_name in forbidden_layers:
            if layer_name not in layer_names:
                msg = f"Role '{name}': forbid.layers references unknown layer '{layer_name}'"
                raise ValueError(msg)

        roles.append(
            RoleDef(
                name=name,
                stems=tuple(stems),
                public_api=_bool(role_data, "public_api", False, f"Role '{name}'"),
                forbidden_patterns=patterns,
                forbidden_imports=imports,
                forbidden_layers=forbidden_layers,
            )
        )
    return tuple(roles)


# ---------------------------------------------------------------------------
# Aliases, rule settings
# ---------------------------------------------------------------------------


def _parse_aliases(raw: object) -> tuple[tuple[str, str], ...]:
    if raw is None:
        return ()
    if not isinstance(raw, dict):
        msg = "layerguard.yml: 'aliases' must be a mapping of prefix to directory"
        raise ValueError(msg)

    aliases: list[tuple[str, str]] = []
    for prefix, target in raw.items():
        key = str(prefix).rstrip("/")
        if not key:
            msg = f"layerguard.yml: invalid alias prefix {prefix!r}"
            raise ValueError(msg)
        if not isinstance(target, str):
            msg = f"layerguard.yml: alias '{key}' must map to a directory string"
            raise ValueError(msg)
        aliases.append((key, normalize_rel_path(target)))
    # Longest prefix first so that '@core' wins over '@'.
    aliases.sort(key=lambda item: (-len(item[0]), item[0]))
    return tuple(aliases)


def _parse_rule_settings(raw: object) -> dict[str, RuleSetting]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        msg = "layerguard.yml: 'rules' must be a mapping of rule id to settings"
        raise ValueError(msg)

    settings: dict[str, RuleSetting] = {}
    for rule_id, value in raw.items():
        if rule_id not in CONFIGURABLE_RULES:
            msg = (
                f"layerguard.yml: unknown rule '{rule_id}', "
                f"must be one of {sorted(CONFIGURABLE_RULES)}"
            )
            raise ValueError(msg)
        if isinstance(value, bool):
            settings[rule_id] = RuleSetting(enabled=value)
            continue
        if not isinstance(value, dict):
            msg = f"Rule '{rule_id}': settings must be a boolean or a mapping"
            raise ValueError(msg)
        severity = str(value.get("severity", "error"))
        if severity not in VALID_SEVERITIES:
            msg = (
                f"Rule '{rule_id}': invalid severity '{severity}', "
                f"must be one of {sorted(VALID_SEVERITIES)}"
            )
            raise ValueError(msg)
        settings[rule_id] = RuleSetting(
            enabled=_bool(value, "enabled", True, f"Rule '{rule_id}'"), severity=severity
        )
    return settings


def _parse_extensions(raw: object) -> tuple[str, ...]:
    if raw is None:
        return _DEFAULT_EXTENSIONS
    exts = _str_list(raw, "layerguard.yml: 'source_extensions'")
    if not exts:
        msg = "layerguard.yml: 'source_extensions' must not be empty"
        raise ValueError(msg)
    return tuple(ext if ext.startswith(".") else f".{ext}" for ext in exts)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_policy(data: object) -> Policy:
    """Validate a decoded policy document and build a :class:`Policy`.

    Raises ``ValueError`` on schema errors (missing version, unknown layers,
    cyclic layer order, invalid severities, etc.).
    """
    if not isinstance(data, dict):
        msg = "layerguard.yml must be a YAML mapping"
        raise ValueError(msg)

    version = data.get("version")
    if version is None:
        msg = "layerguard.yml: missing required 'version' field"
        raise ValueError(msg)
    if (
        isinstance(version, bool)
        or not isinstance(version, int)
        or version not in SUPPORTED_SCHEMA_VERSIONS
    ):
        expected = sorted(SUPPORTED_SCHEMA_VERSIONS)
        msg = f"layerguard.yml: unsupported version {version!r}, expected one of {expected}"
        raise ValueError(msg)

    layers = _parse_layers(data.get("layers"))
    reachable = compute_reachable(layers)
    layer_names = {layer.name for layer in layers}
    roles = _parse_roles(data.get("roles"), layer_names)
    role_names = {role.name for role in roles}

    modules_block = data.get("modules", {})
    if modules_block is None:
        modules_block = {}
    if not isinstance(modules_block, dict):
        msg = "layerguard.yml: 'modules' must be a mapping"
        raise ValueError(msg)
    required_files = tuple(
        _str_list(modules_block.get("required_files"), "modules.required_files")
    )
    for role_name in required_files:
        if role_name not in role_names:
            msg = f"layerguard.yml: modules.required_files references unknown role '{role_name}'"
            raise ValueError(msg)

    ignore_raw = data.get("ignore_dirs")
    ignore_dirs = (
        _DEFAULT_IGNORE_DIRS if ignore_raw is None else _str_list(ignore_raw, "ignore_dirs")
    )

    return Policy(
        layers=layers,
        roles=roles,
        aliases=_parse_aliases(data.get("aliases")),
        source_extensions=_parse_extensions(data.get("source_extensions")),
        ignore_dirs=frozenset(ignore_dirs),
        required_module_files=required_files,
        allow_public_entry=_bool(
            modules_block, "allow_public_entry", True, "layerguard.yml: modules"
        ),
        forbidden_paths=tuple(
            normalize_rel_path(p) for p in _str_list(data.get("forbidden_paths"), "forbidden_paths")
        ),
        required_paths=tuple(
            normalize_rel_path(p) for p in _str_list(data.get("required_paths"), "required_paths")
        ),
        bypass_markers=tuple(_str_list(data.get("bypass_markers"), "bypass_markers")),
        rules=_parse_rule_settings(data.get("rules")),
        reachable=reachable,
    )


def parse_policy_text(text: str) -> Policy:
    """Parse a policy from YAML text."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        msg = f"layerguard.yml is not valid YAML: {exc}"
        raise ValueError(msg) from exc
    return parse_policy(data)


def load_policy(policy_path: Path) -> Policy:
    """Read and parse a policy file.

    Raises ``OSError`` if the file cannot be read and ``ValueError`` on
    schema errors.
    """
    with policy_path.open("r", encoding="utf-8") as fh:
        text = fh.read()
    return parse_policy_text(text)
