"""Architecture rule engine: build rules from the policy and evaluate them on the graph."""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from layerguard.graph.import_extractor import dialect_for_extension, strip_comments
from layerguard.policy.model import (
    RULE_BYPASS_MARKER,
    RULE_CROSS_MODULE,
    RULE_FORBIDDEN_PATH,
    RULE_LAYER_DIRECTION,
    RULE_MODULE_CYCLE,
    RULE_REQUIRED_FILES,
    RULE_REQUIRED_PATH,
    RULE_ROLE_CONTENT,
    UNCLASSIFIED_ROLE,
)

if TYPE_CHECKING:
    from layerguard.graph.builder import Graph, ImportEdge, SourceFile
    from layerguard.policy.model import ContentPattern, Policy, RoleDef

# ---------------------------------------------------------------------------
# Violation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Violation:
    """A single rule violation."""

    file: str  # repo-relative path (file, module directory, or checked path)
    rule: str  # rule id, e.g. "layer-direction"
    message: str  # human-readable explanation
    severity: str = "error"  # "error" | "warn"
    line: int | None = None  # 1-based line, when the rule can point at one
    target: str | None = None  # import specifier, missing role, pattern...

    def sort_key(self) -> tuple[str, str, int, str]:
        return (self.file, self.rule, self.line or 0, self.message)


def _line_of(text: str, pos: int) -> int:
    return text.count("\n", 0, pos) + 1


def _is_configured(layer: str, policy: Policy) -> bool:
    return policy.layer(layer) is not None


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LayerDirectionRule:
    """Forbid imports from a lower layer into a higher (or unrelated) one.

    Only edges whose source and target both sit in configured layers are
    checked; external, unresolved and unclassified ends are exempt.  Sideways
    imports inside a modules layer are left to :class:`CrossModuleRule`.
    """

    rule_id: ClassVar[str] = RULE_LAYER_DIRECTION
    severity: str = "error"

    def evaluate(self, graph: Graph, policy: Policy) -> list[Violation]:
        violations: list[Violation] = []
        for source in graph.files.values():
            if not _is_configured(source.layer, policy):
                continue
            for edge in source.edges:
                if not _is_configured(edge.target_layer, policy):
                    continue
                if not policy.may_import(source.layer, edge.target_layer):
                    violations.append(
                        Violation(
                            file=source.path,
                            rule=self.rule_id,
                            severity=self.severity,
                            line=edge.line_number,
                            target=edge.specifier,
                            message=(
                                f"Layer '{source.layer}' must not depend on layer "
                                f"'{edge.target_layer}' (imports '{edge.specifier}')"
                            ),
                        )
                    )
                    continue
                if source.layer != edge.target_layer:
                    continue
                layer_def = policy.layer(source.layer)
                if layer_def is None or layer_def.modules or layer_def.allow_sideways:
                    continue
                violations.append(
                    Violation(
                        file=source.path,
                        rule=self.rule_id,
                        severity=self.severity,
                        line=edge.line_number,
                        target=edge.specifier,
                        message=(
                            f"Layer '{source.layer}' does not allow imports within itself "
                            f"(imports '{edge.specifier}')"
                        ),
                    )
                )
        return violations


@dataclass(frozen=True)
class CrossModuleRule:
    """Forbid direct imports between two different modules.

    When ``allow_public_entry`` is set, importing the other module's public
    entry (its directory or its ``index`` file) is permitted.
    """

    rule_id: ClassVar[str] = RULE_CROSS_MODULE
    allow_public_entry: bool = True
    severity: str = "error"

    def evaluate(self, graph: Graph, policy: Policy) -> list[Violation]:
        violations: list[Violation] = []
        for source in graph.files.values():
            if source.module is None:
                continue
            for edge in source.edges:
                if edge.target_module is None:
                    continue
                if (edge.target_layer, edge.target_module) == (source.layer, source.module):
                    continue
                target_def = policy.layer(edge.target_layer)
                if target_def is None or not target_def.modules:
                    continue
                if edge.public_entry and self.allow_public_entry:
                    continue
                violations.append(
                    Violation(
                        file=source.path,
                        rule=self.rule_id,
                        severity=self.severity,
                        line=edge.line_number,
                        target=edge.specifier,
                        message=(
                            f"Module '{source.module}' must not import module "
                            f"'{edge.target_module}' directly (imports '{edge.specifier}')"
                        ),
                    )
                )
        return violations


@dataclass(frozen=True)
class RequiredFilesRule:
    """Every observed module must contain one file for each required role."""

    rule_id: ClassVar[str] = RULE_REQUIRED_FILES
    required_roles: tuple[str, ...] = ()
    severity: str = "error"

    def evaluate(self, graph: Graph, policy: Policy) -> list[Violation]:
        if not self.required_roles:
            return []

        roles_by_dir: dict[str, set[str]] = {}
        for source in graph.files.values():
            roles_by_dir.setdefault(posixpath.dirname(source.path), set()).add(source.role)

        violations: list[Violation] = []
        for (_layer, module), module_dir in graph.modules(policy).items():
            present = roles_by_dir.get(module_dir, set())
            for role_name in self.required_roles:
                if role_name in present:
                    continue
                violations.append(
                    Violation(
                        file=module_dir,
                        rule=self.rule_id,
                        severity=self.severity,
                        target=role_name,
                        message=f"Module '{module}' is missing its required '{role_name}' file",
                    )
                )
        return violations


@dataclass(frozen=True)
class RoleContentRule:
    """Role-specific forbidden content: text patterns, imports and target layers.

    Text patterns are matched outside comments only.  This is a heuristic
    lint over the text, not a semantic analysis: a pattern inside a string
    literal still matches.
    """

    rule_id: ClassVar[str] = RULE_ROLE_CONTENT
    severity: str = "error"

    def _pattern_hit(self, pattern: ContentPattern, text: str) -> int | None:
        if pattern.regex:
            match = re.search(pattern.text, text)
            return match.start() if match is not None else None
        pos = text.find(pattern.text)
        return pos if pos >= 0 else None

    def _check_edge(self, source: SourceFile, role: RoleDef, edge: ImportEdge) -> Violation | None:
        if edge.target_layer in role.forbidden_layers:
            return Violation(
                file=source.path,
                rule=self.rule_id,
                severity=self.severity,
                line=edge.line_number,
                target=edge.specifier,
                message=(
                    f"'{role.name}' file must not import from layer "
                    f"'{edge.target_layer}' (imports '{edge.specifier}')"
                ),
            )
        for forbidden in role.forbidden_imports:
            if forbidden in edge.specifier:
                return Violation(
                    file=source.path,
                    rule=self.rule_id,
                    severity=self.severity,
                    line=edge.line_number,
                    target=edge.specifier,
                    message=(
                        f"'{role.name}' file must not import '{edge.specifier}' "
                        f"(matches forbidden '{forbidden}')"
                    ),
                )
        return None

    def evaluate(self, graph: Graph, policy: Policy) -> list[Violation]:
        violations: list[Violation] = []
        for source in graph.files.values():
            if source.role == UNCLASSIFIED_ROLE or source.text is None:
                continue
            role = policy.role(source.role)
            if role is None:
                continue

            if role.forbidden_patterns:
                dialect = dialect_for_extension(posixpath.splitext(source.path)[1])
                code = strip_comments(source.text, dialect=dialect)
                for pattern in role.forbidden_patterns:
                    pos = self._pattern_hit(pattern, code)
                    if pos is None:
                        continue
                    violations.append(
                        Violation(
                            file=source.path,
                            rule=self.rule_id,
                            severity=self.severity,
                            line=_line_of(code, pos),
                            target=pattern.text,
                            message=pattern.message
                            or f"'{role.name}' file contains forbidden pattern '{pattern.text}'",
                        )
                    )

            for edge in source.edges:
                violation = self._check_edge(source, role, edge)
                if violation is not None:
                    violations.append(violation)
        return violations


@dataclass(frozen=True)
class ForbiddenPathRule:
    """Paths that must not exist at all (e.g. a leftover mocks directory)."""

    rule_id: ClassVar[str] = RULE_FORBIDDEN_PATH
    paths: tuple[str, ...] = ()
    severity: str = "error"

    def evaluate(self, graph: Graph, policy: Policy) -> list[Violation]:
        if graph.project_root is None:
            return []
        return [
            Violation(
                file=path,
                rule=self.rule_id,
                severity=self.severity,
                message=f"Forbidden path '{path}' exists",
            )
            for path in self.paths
            if (graph.project_root / path).exists()
        ]


@dataclass(frozen=True)
class RequiredPathRule:
    """Paths that must exist (the skeleton of the layered layout)."""

    rule_id: ClassVar[str] = RULE_REQUIRED_PATH
    paths: tuple[str, ...] = ()
    severity: str = "error"

    def evaluate(self, graph: Graph, policy: Policy) -> list[Violation]:
        if graph.project_root is None:
            return []
        return [
            Violation(
                file=path,
                rule=self.rule_id,
                severity=self.severity,
                message=f"Required path '{path}' is missing",
            )
            for path in self.paths
            if not (graph.project_root / path).exists()
        ]


@dataclass(frozen=True)
class BypassMarkerRule:
    """Type-check and lint bypass markers, forbidden in every source file.

    Unlike role patterns these are searched in the raw text, comments
    included, since ``// @ts-ignore`` is itself a comment.
    """

    rule_id: ClassVar[str] = RULE_BYPASS_MARKER
    markers: tuple[str, ...] = ()
    severity: str = "warn"

    def evaluate(self, graph: Graph, policy: Policy) -> list[Violation]:
        violations: list[Violation] = []
        for source in graph.files.values():
            if source.text is None:
                continue
            for marker in self.markers:
                pos = source.text.find(marker)
                if pos < 0:
                    continue
                violations.append(
                    Violation(
                        file=source.path,
                        rule=self.rule_id,
                        severity=self.severity,
                        line=_line_of(source.text, pos),
                        target=marker,
                        message=f"Bypass marker '{marker.strip()}' found",
                    )
                )
        return violations


def _normalize_cycle(path: list[str]) -> tuple[str, ...]:
    """Rotate a cycle so that its smallest node comes first.

    ``a -> b -> c`` and ``b -> c -> a`` are the same cycle.  *path* must not
    repeat the start node at the end.
    """
    if not path:
        return ()
    min_idx = path.index(min(path))
    return tuple(path[min_idx:] + path[:min_idx])


@dataclass(frozen=True)
class ModuleCycleRule:
    """Forbid circular dependencies between modules.

    Every import from one module into another counts as an edge, public
    entry imports included.  Each cycle is reported once, on the module
    directory that sorts first in it.
    """

    rule_id: ClassVar[str] = RULE_MODULE_CYCLE
    severity: str = "error"
    max_depth: int = 10

    def _adjacency(self, graph: Graph, policy: Policy) -> dict[str, list[str]]:
        dirs = graph.modules(policy)
        adj: dict[str, set[str]] = {}
        for source in graph.files.values():
            if source.module is None:
                continue
            src_dir = dirs.get((source.layer, source.module))
            if src_dir is None:
                continue
            for edge in source.edges:
                if edge.target_module is None:
                    continue
                dst_dir = dirs.get((edge.target_layer, edge.target_module))
                if dst_dir is None or dst_dir == src_dir:
                    continue
                adj.setdefault(src_dir, set()).add(dst_dir)
        return {node: sorted(neighbors) for node, neighbors in adj.items()}

    def evaluate(self, graph: Graph, policy: Policy) -> list[Violation]:
        adj = self._adjacency(graph, policy)
        seen_cycles: set[tuple[str, ...]] = set()
        violations: list[Violation] = []

        for start_node in sorted(adj):
            # (current node, path from start)
            stack: list[tuple[str, list[str]]] = [(start_node, [start_node])]
            while stack:
                current, path = stack.pop()
                for neighbor in adj.get(current, []):
                    if neighbor not in path:
                        if len(path) < self.max_depth:
                            stack.append((neighbor, [*path, neighbor]))
                        continue
                    cycle = _normalize_cycle(path[path.index(neighbor) :])
                    if cycle in seen_cycles:
                        continue
                    seen_cycles.add(cycle)
                    display = " → ".join(posixpath.basename(d) for d in (*cycle, cycle[0]))
                    violations.append(
                        Violation(
                            file=cycle[0],
                            rule=self.rule_id,
                            severity=self.severity,
                            target=display,
                            message=f"Circular dependency between modules: {display}",
                        )
                    )
        return violations


@dataclass(frozen=True)
class FileErrorRule:
    """Report files that could not be read, parsed or classified.  Always on."""

    rule_id: ClassVar[str] = "file-error"

    def evaluate(self, graph: Graph, policy: Policy) -> list[Violation]:
        return [
            Violation(file=source.path, rule=kind, severity="error", message=message)
            for source in graph.files.values()
            for kind, message in source.errors
        ]


Rule = (
    LayerDirectionRule
    | CrossModuleRule
    | RequiredFilesRule
    | RoleContentRule
    | ForbiddenPathRule
    | RequiredPathRule
    | BypassMarkerRule
    | ModuleCycleRule
    | FileErrorRule
)

# Configurable rule id -> rule class.
RULE_TYPES: dict[str, type] = {
    cls.rule_id: cls
    for cls in (
        LayerDirectionRule,
        CrossModuleRule,
        RequiredFilesRule,
        RoleContentRule,
        ForbiddenPathRule,
        BypassMarkerRule,
        RequiredPathRule,
        ModuleCycleRule,
    )
}


def rule_summary(rule_id: str) -> str:
    """Return the first docstring line of the rule class for *rule_id*."""
    cls = RULE_TYPES.get(rule_id)
    doc = (cls.__doc__ or "").strip() if cls is not None else ""
    return doc.splitlines()[0] if doc else ""


# ---------------------------------------------------------------------------
# Construction and combined evaluation
# ---------------------------------------------------------------------------


def build_rules(policy: Policy) -> list[Rule]:
    """Instantiate every rule enabled in *policy*, with its configured severity."""
    rules: list[Rule] = [FileErrorRule()]

    def _severity(rule_id: str) -> str:
        return policy.setting(rule_id).severity

    if policy.is_enabled(RULE_LAYER_DIRECTION):
        rules.append(LayerDirectionRule(severity=_severity(RULE_LAYER_DIRECTION)))
    if policy.is_enabled(RULE_CROSS_MODULE):
        rules.append(
            CrossModuleRule(
                allow_public_entry=policy.allow_public_entry,
                severity=_severity(RULE_CROSS_MODULE),
            )
        )
    if policy.is_enabled(RULE_REQUIRED_FILES):
        rules.append(
            RequiredFilesRule(
                required_roles=policy.required_module_files,
                severity=_severity(RULE_REQUIRED_FILES),
            )
        )
    if policy.is_enabled(RULE_ROLE_CONTENT):
        rules.append(RoleContentRule(severity=_severity(RULE_ROLE_CONTENT)))
    if policy.is_enabled(RULE_FORBIDDEN_PATH):
        rules.append(
            ForbiddenPathRule(paths=policy.forbidden_paths, severity=_severity(RULE_FORBIDDEN_PATH))
        )
    if policy.is_enabled(RULE_BYPASS_MARKER):
        rules.append(
            BypassMarkerRule(markers=policy.bypass_markers, severity=_severity(RULE_BYPASS_MARKER))
        )
    if policy.is_enabled(RULE_REQUIRED_PATH):
        rules.append(
            RequiredPathRule(paths=policy.required_paths, severity=_severity(RULE_REQUIRED_PATH))
        )
    if policy.is_enabled(RULE_MODULE_CYCLE):
        rules.append(ModuleCycleRule(severity=_severity(RULE_MODULE_CYCLE)))
    return rules


def evaluate_all(graph: Graph, policy: Policy, rules: list[Rule] | None = None) -> list[Violation]:
    """Evaluate all rules and return violations sorted by file, then rule id."""
    active = rules if rules is not None else build_rules(policy)
    violations: list[Violation] = []
    for rule in active:
        violations.extend(rule.evaluate(graph, policy))
    violations.sort(key=Violation.sort_key)
    return violations
