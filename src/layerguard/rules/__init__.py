"""Rule engine: rule variants, construction from the policy, combined evaluation."""

from layerguard.rules.engine import (
    RULE_TYPES,
    BypassMarkerRule,
    CrossModuleRule,
    FileErrorRule,
    ForbiddenPathRule,
    LayerDirectionRule,
    ModuleCycleRule,
    RequiredFilesRule,
    RequiredPathRule,
    RoleContentRule,
    Rule,
    Violation,
    build_rules,
    evaluate_all,
    rule_summary,
)

__all__ = [
    "RULE_TYPES",
    "BypassMarkerRule",
    "CrossModuleRule",
    "FileErrorRule",
    "ForbiddenPathRule",
    "LayerDirectionRule",
    "ModuleCycleRule",
    "RequiredFilesRule",
    "RequiredPathRule",
    "RoleContentRule",
    "Rule",
    "Violation",
    "build_rules",
    "evaluate_all",
    "rule_summary",
]
