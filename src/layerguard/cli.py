"""layerguard CLI entry point."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from layerguard import __version__

_LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


@click.group()
@click.version_option(version=__version__, prog_name="layerguard")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """layerguard - layered architecture checker for app/modules/core/shared trees."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    level = logging.WARNING
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format=_LOG_FORMAT, stream=sys.stderr)


_project_option = click.option(
    "--project",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: current directory).",
)

_policy_option = click.option(
    "--policy",
    "policy_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Policy file (default: <project>/layerguard.yml, else built-in).",
)


@main.command()
@click.argument("root", default="src")
@_project_option
@_policy_option
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["text", "json", "porcelain"]),
    default="text",
    help="Output format.",
)
@click.option(
    "--jobs",
    "-j",
    type=click.IntRange(min=1),
    default=1,
    help="Worker threads for scanning files.",
)
def check(
    root: str,
    *,
    project: Path | None,
    policy_path: Path | None,
    fmt: str,
    jobs: int,
) -> None:
    """Check ROOT (relative to the project, default ``src``) against the policy.

    Exit codes: 0 = clean, 1 = violations found, 2 = configuration or fatal
    I/O error.
    """
    from layerguard.checker import ConfigError
    from layerguard.checker import check as run_check
    from layerguard.report import EXIT_FATAL, report

    project_root = project or Path.cwd()

    try:
        result = run_check(project_root, root, policy_path=policy_path, jobs=jobs)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(EXIT_FATAL)

    output, code = report(result, fmt)
    if output:
        click.echo(output)
    sys.exit(code)


@main.command()
@_project_option
@_policy_option
def rules(*, project: Path | None, policy_path: Path | None) -> None:
    """Show the effective policy: rules, layers and roles."""
    from rich.console import Console
    from rich.table import Table

    from layerguard.checker import ConfigError, resolve_policy
    from layerguard.policy.model import CONFIGURABLE_RULES
    from layerguard.report import EXIT_FATAL
    from layerguard.rules.engine import build_rules, rule_summary

    project_root = project or Path.cwd()
    try:
        policy, source = resolve_policy(project_root, policy_path)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(EXIT_FATAL)

    console = Console()
    console.print(f"Policy: [bold]{source}[/]")
    console.print()

    active = {type(rule).rule_id for rule in build_rules(policy)}
    rule_table = Table(title="Rules", padding=(0, 1))
    rule_table.add_column("rule", style="cyan", no_wrap=True)
    rule_table.add_column("enabled")
    rule_table.add_column("severity")
    rule_table.add_column("summary")

    for rule_id in CONFIGURABLE_RULES:
        setting = policy.setting(rule_id)
        rule_table.add_row(
            rule_id,
            "yes" if rule_id in active else "no",
            setting.severity,
            rule_summary(rule_id),
        )
    console.print(rule_table)
    console.print()

    layer_table = Table(title="Layers (lowest first)", padding=(0, 1))
    layer_table.add_column("layer", style="cyan")
    layer_table.add_column("root")
    layer_table.add_column("may import")
    for layer in policy.layers:
        below = sorted(policy.reachable.get(layer.name, frozenset()))
        name = f"{layer.name} (modules)" if layer.modules else layer.name
        layer_table.add_row(name, layer.root, ", ".join(below) or "-")
    console.print(layer_table)
    console.print()

    role_table = Table(title="Roles", padding=(0, 1))
    role_table.add_column("role", style="cyan")
    role_table.add_column("stems")
    role_table.add_column("forbidden")
    for role in policy.roles:
        forbidden = [p.text for p in role.forbidden_patterns]
        forbidden += [f"import {i}" for i in role.forbidden_imports]
        forbidden += [f"layer {name}" for name in role.forbidden_layers]
        label = f"{role.name} (public)" if role.public_api else role.name
        role_table.add_row(label, ", ".join(role.stems), "\n".join(forbidden) or "-")
    console.print(role_table)


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def imports(file: Path) -> None:
    """List the import specifiers extracted from FILE."""
    from layerguard.graph.import_extractor import dialect_for_extension, extract_import_statements

    try:
        text = file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        click.echo(f"Error: cannot read {file}: {exc}", err=True)
        sys.exit(2)

    try:
        statements = extract_import_statements(text, dialect=dialect_for_extension(file.suffix))
    except Exception as exc:  # noqa: BLE001
        click.echo(f"Error: cannot parse {file}: {exc}", err=True)
        sys.exit(2)

    for stmt in statements:
        click.echo(f"{stmt.line_number}\t{stmt.kind}\t{stmt.specifier}")


@main.command()
@click.argument("paths", nargs=-1, required=True)
@_project_option
@_policy_option
def classify(paths: tuple[str, ...], *, project: Path | None, policy_path: Path | None) -> None:
    """Show layer, module and role for each repository-relative PATH."""
    from layerguard.checker import ConfigError, resolve_policy
    from layerguard.graph.classifier import ClassificationError
    from layerguard.graph.classifier import classify as classify_path

    project_root = project or Path.cwd()
    try:
        policy, _source = resolve_policy(project_root, policy_path)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    for path in paths:
        try:
            identity = classify_path(path, policy)
        except ClassificationError as exc:
            click.echo(f"{path}\terror: {exc}")
            continue
        click.echo(f"{path}\t{identity.layer}\t{identity.module or '-'}\t{identity.role}")


@main.command()
@_project_option
@click.option("--force", is_flag=True, help="Overwrite an existing policy file.")
def init(*, project: Path | None, force: bool) -> None:
    """Write the built-in policy to ``layerguard.yml`` for editing."""
    from layerguard.policy.defaults import DEFAULT_POLICY_FILENAME, DEFAULT_POLICY_YAML

    project_root = project or Path.cwd()
    target = project_root / DEFAULT_POLICY_FILENAME
    if target.exists() and not force:
        click.echo(f"Error: {target} already exists (use --force to overwrite)", err=True)
        sys.exit(2)
    target.write_text(DEFAULT_POLICY_YAML, encoding="utf-8")
    click.echo(f"Wrote {target}")
