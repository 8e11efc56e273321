"""Checker orchestrator: load the policy once, build the graph, evaluate rules."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from layerguard.graph.builder import build_graph
from layerguard.policy.defaults import DEFAULT_POLICY_FILENAME, default_policy
from layerguard.policy.loader import load_policy, normalize_rel_path
from layerguard.rules.engine import Violation, build_rules, evaluate_all

if TYPE_CHECKING:
    from pathlib import Path

    from layerguard.graph.builder import Discovery
    from layerguard.policy.model import Policy

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(Exception):
    """Raised for a missing or invalid policy, or a missing scan root.  Fatal."""


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class CheckResult:
    """Result of a check run."""

    violations: list[Violation] = field(default_factory=list)
    rules_evaluated: int = 0
    files_scanned: int = 0
    imports_found: int = 0
    policy_source: str = "built-in"


# ---------------------------------------------------------------------------
# Policy resolution
# ---------------------------------------------------------------------------


def resolve_policy(project_root: Path, policy_path: Path | None = None) -> tuple[Policy, str]:
    """Load the policy for *project_root*.

    Order: explicit *policy_path*, then ``<project_root>/layerguard.yml``,
    then the built-in default.  Returns ``(policy, source description)``.

    Raises
    ------
    ConfigError
        When the chosen file is missing, unreadable or invalid.
    """
    if policy_path is None:
        candidate = project_root / DEFAULT_POLICY_FILENAME
        if not candidate.is_file():
            logger.debug("No %s in %s, using built-in policy", DEFAULT_POLICY_FILENAME, project_root)
            return default_policy(), "built-in"
        policy_path = candidate

    if not policy_path.is_file():
        msg = f"Policy file not found: {policy_path}"
        raise ConfigError(msg)

    try:
        policy = load_policy(policy_path)
    except OSError as exc:
        msg = f"Cannot read policy file {policy_path}: {exc}"
        raise ConfigError(msg) from exc
    except ValueError as exc:
        msg = f"Invalid policy configuration: {exc}"
        raise ConfigError(msg) from exc
    return policy, str(policy_path)


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def check(
    project_root: Path,
    scan_root: str = "src",
    *,
    policy_path: Path | None = None,
    policy: Policy | None = None,
    jobs: int = 1,
    discovery: Discovery | None = None,
) -> CheckResult:
    """Run the whole check: load policy, build graph, evaluate, sort.

    Parameters
    ----------
    project_root:
        Root of the project; layer roots and reported paths are relative to it.
    scan_root:
        Directory to scan, relative to *project_root* (default ``src``).
    policy_path:
        Optional explicit policy file.  Ignored when *policy* is given.
    policy:
        Already loaded policy (used by tests and embedding callers).
    jobs:
        Worker threads for per-file scanning.
    discovery:
        Pre-computed file walk, passed through to the graph builder.

    Raises
    ------
    ConfigError
        When the policy is invalid or the scan root does not exist.
    """
    if policy is None:
        policy, source = resolve_policy(project_root, policy_path)
    else:
        source = "provided"

    rel_scan = normalize_rel_path(scan_root)
    if not (project_root / rel_scan).is_dir():
        msg = f"Scan root not found: {project_root / rel_scan}"
        raise ConfigError(msg)

    logger.info("Scanning %s with %s policy", project_root / rel_scan, source)
    graph = build_graph(project_root, rel_scan, policy, jobs=jobs, discovery=discovery)
    rules = build_rules(policy)
    violations = evaluate_all(graph, policy, rules)

    return CheckResult(
        violations=violations,
        rules_evaluated=len(rules),
        files_scanned=sum(1 for f in graph.files.values() if f.text is not None),
        imports_found=len(graph.edges),
        policy_source=source,
    )
