"""Policy data classes: layers, roles, aliases and rule settings."""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

VALID_SEVERITIES: frozenset[str] = frozenset({"error", "warn"})
SUPPORTED_SCHEMA_VERSIONS: frozenset[int] = frozenset({1})

# Sentinel layer names.  None of these may be used as a configured layer name.
UNCLASSIFIED = "unclassified"
EXTERNAL = "external"
UNRESOLVED = "unresolved"
SENTINEL_LAYERS: frozenset[str] = frozenset({UNCLASSIFIED, EXTERNAL, UNRESOLVED})

UNCLASSIFIED_ROLE = "unclassified"

# Rule ids, in evaluation order.
RULE_LAYER_DIRECTION = "layer-direction"
RULE_CROSS_MODULE = "cross-module"
RULE_REQUIRED_FILES = "required-files"
RULE_ROLE_CONTENT = "role-content"
RULE_FORBIDDEN_PATH = "forbidden-path"
RULE_BYPASS_MARKER = "bypass-marker"
RULE_REQUIRED_PATH = "required-path"
RULE_MODULE_CYCLE = "module-cycle"
RULE_IO_ERROR = "io-error"
RULE_CLASSIFICATION_ERROR = "classification-error"

CONFIGURABLE_RULES: tuple[str, ...] = (
    RULE_LAYER_DIRECTION,
    RULE_CROSS_MODULE,
    RULE_REQUIRED_FILES,
    RULE_ROLE_CONTENT,
    RULE_FORBIDDEN_PATH,
    RULE_BYPASS_MARKER,
    RULE_REQUIRED_PATH,
    RULE_MODULE_CYCLE,
)


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LayerDef:
    """A layer: a name, a repository-relative root and optional module split."""

    name: str
    root: str  # POSIX path relative to the project root, no trailing slash
    modules: bool = False  # sub-directories of ``root`` are modules
    allow_sideways: bool = True  # files may import other files of the same layer
    above: tuple[str, ...] | None = None  # explicit "may import" list (partial order)


@dataclass(frozen=True)
class ContentPattern:
    """A forbidden text pattern: a plain substring or a regular expression."""

    text: str
    regex: bool = False
    message: str = ""


@dataclass(frozen=True)
class RoleDef:
    """A file role matched by filename stem, with its forbidden content."""

    name: str
    stems: tuple[str, ...]
    public_api: bool = False
    forbidden_patterns: tuple[ContentPattern, ...] = ()
    forbidden_imports: tuple[str, ...] = ()  # substrings of raw specifiers
    forbidden_layers: tuple[str, ...] = ()  # target layer names


@dataclass(frozen=True)
class RuleSetting:
    """Toggle and severity of a single rule."""

    enabled: bool = True
    severity: str = "error"  # "error" | "warn"


@dataclass(frozen=True)
class Policy:
    """The complete, immutable checker configuration for one run."""

    layers: tuple[LayerDef, ...]
    roles: tuple[RoleDef, ...] = ()
    aliases: tuple[tuple[str, str], ...] = ()  # (prefix, target dir), longest first
    source_extensions: tuple[str, ...] = (".ts", ".tsx", ".js", ".jsx")
    ignore_dirs: frozenset[str] = frozenset()
    required_module_files: tuple[str, ...] = ()  # role names
    allow_public_entry: bool = True
    forbidden_paths: tuple[str, ...] = ()
    required_paths: tuple[str, ...] = ()
    bypass_markers: tuple[str, ...] = ()
    rules: dict[str, RuleSetting] = field(default_factory=dict)
    # Transitive "may import" relation: layer name -> names it may depend on.
    reachable: dict[str, frozenset[str]] = field(default_factory=dict)

    def layer(self, name: str) -> LayerDef | None:
        """Return the layer definition called *name*, or ``None``."""
        for layer_def in self.layers:
            if layer_def.name == name:
                return layer_def
        return None

    def role(self, name: str) -> RoleDef | None:
        """Return the role definition called *name*, or ``None``."""
        for role_def in self.roles:
            if role_def.name == name:
                return role_def
        return None

    def may_import(self, source_layer: str, target_layer: str) -> bool:
        """Return True if *source_layer* is allowed to depend on *target_layer*."""
        if source_layer == target_layer:
            return True
        return target_layer in self.reachable.get(source_layer, frozenset())

    def setting(self, rule_id: str) -> RuleSetting:
        return self.rules.get(rule_id, RuleSetting())

    def is_enabled(self, rule_id: str) -> bool:
        return self.setting(rule_id).enabled
