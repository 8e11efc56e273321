"""Policy domain: layer order, roles, aliases and rule settings."""

from layerguard.policy.defaults import DEFAULT_POLICY_FILENAME, DEFAULT_POLICY_YAML, default_policy
from layerguard.policy.loader import (
    compute_reachable,
    load_policy,
    normalize_rel_path,
    parse_policy,
    parse_policy_text,
)
from layerguard.policy.model import (
    CONFIGURABLE_RULES,
    EXTERNAL,
    UNCLASSIFIED,
    UNCLASSIFIED_ROLE,
    UNRESOLVED,
    ContentPattern,
    LayerDef,
    Policy,
    RoleDef,
    RuleSetting,
)

__all__ = [
    "CONFIGURABLE_RULES",
    "DEFAULT_POLICY_FILENAME",
    "DEFAULT_POLICY_YAML",
    "EXTERNAL",
    "UNCLASSIFIED",
    "UNCLASSIFIED_ROLE",
    "UNRESOLVED",
    "ContentPattern",
    "LayerDef",
    "Policy",
    "RoleDef",
    "RuleSetting",
    "compute_reachable",
    "default_policy",
    "load_policy",
    "normalize_rel_path",
    "parse_policy",
    "parse_policy_text",
]
