"""Dependency graph builder: walk the source tree, classify files, resolve imports."""

from __future__ import annotations

import logging
import posixpath
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from layerguard.graph.classifier import (
    ClassificationError,
    classify,
    classify_target,
    is_public_entry,
)
from layerguard.graph.import_extractor import dialect_for_extension, extract_import_statements
from layerguard.policy.loader import normalize_rel_path
from layerguard.policy.model import (
    EXTERNAL,
    RULE_CLASSIFICATION_ERROR,
    RULE_IO_ERROR,
    UNCLASSIFIED,
    UNCLASSIFIED_ROLE,
    UNRESOLVED,
)

if TYPE_CHECKING:
    from pathlib import Path

    from layerguard.policy.model import Policy

logger = logging.getLogger(__name__)

# ESM-style TypeScript imports name the emitted file (``./x.js`` for ``x.ts``).
_EMITTED_EXTENSIONS: dict[str, tuple[str, ...]] = {
    ".js": (".ts", ".tsx"),
    ".jsx": (".tsx",),
    ".mjs": (".mts",),
    ".cjs": (".cts",),
}

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ImportEdge:
    """A directed reference from a source file to an import target."""

    source_path: str
    specifier: str
    line_number: int
    target_layer: str  # configured layer, or external / unresolved / unclassified
    target_path: str | None = None  # resolved repo-relative path
    target_module: str | None = None
    target_role: str = UNCLASSIFIED_ROLE
    public_entry: bool = False
    kind: str = "import"  # "import" | "export"


@dataclass
class SourceFile:
    """A scanned file with its identity, text and outgoing edges."""

    path: str
    layer: str = UNCLASSIFIED
    module: str | None = None
    role: str = UNCLASSIFIED_ROLE
    text: str | None = None
    edges: list[ImportEdge] = field(default_factory=list)
    # (kind, message) pairs; kind is "io-error" or "classification-error".
    errors: list[tuple[str, str]] = field(default_factory=list)

    def add_error(self, kind: str, message: str) -> None:
        self.errors.append((kind, message))


@dataclass(frozen=True)
class ModuleDir:
    """A module directory observed under a modules layer root."""

    layer: str
    module: str
    path: str


@dataclass
class Discovery:
    """Result of walking the scan root."""

    files: list[str] = field(default_factory=list)
    module_dirs: list[ModuleDir] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)  # unreadable dirs


@dataclass
class Graph:
    """All scanned files (by path) and the module directories seen."""

    files: dict[str, SourceFile] = field(default_factory=dict)
    module_dirs: list[ModuleDir] = field(default_factory=list)
    project_root: Path | None = None

    @property
    def edges(self) -> list[ImportEdge]:
        return [edge for path in sorted(self.files) for edge in self.files[path].edges]

    def modules(self, policy: Policy) -> dict[tuple[str, str], str]:
        """Return ``{(layer, module): module directory}`` for every module observed.

        A module is observed when a directory exists under a modules root or
        when a scanned file was classified into it.
        """
        found: dict[tuple[str, str], str] = {}
        for mod in self.module_dirs:
            found.setdefault((mod.layer, mod.module), mod.path)
        for source in self.files.values():
            if source.module is None:
                continue
            layer_def = policy.layer(source.layer)
            if layer_def is None:
                continue
            module_dir = f"{layer_def.root}/{source.module}" if layer_def.root else source.module
            found.setdefault((source.layer, source.module), module_dir)
        return dict(sorted(found.items()))


@dataclass(frozen=True)
class _Target:
    path: str
    is_dir: bool


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_files(project_root: Path, scan_root: str, policy: Policy) -> Discovery:
    """Walk *scan_root* (relative to *project_root*) in sorted order.

    Directories named in ``policy.ignore_dirs`` are pruned.  Symlinked
    directories are not followed, so a link back up the tree cannot make the
    walk revisit it.  A directory that cannot be listed, or an entry that
    cannot be inspected, is recorded in ``errors`` and skipped.
    """
    result = Discovery()
    module_roots = {layer.root: layer.name for layer in policy.layers if layer.modules}
    start = normalize_rel_path(scan_root)

    stack: list[str] = [start]
    while stack:
        rel_dir = stack.pop()
        abs_dir = project_root / rel_dir if rel_dir else project_root
        try:
            children = sorted(abs_dir.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            logger.warning("Cannot list directory %s: %s", rel_dir, exc)
            result.errors[rel_dir or "."] = f"cannot list directory: {exc}"
            continue

        sub_dirs: list[str] = []
        for child in children:
            rel = f"{rel_dir}/{child.name}" if rel_dir else child.name
            try:
                is_dir = child.is_dir()
                is_link = is_dir and child.is_symlink()
            except OSError as exc:
                logger.warning("Cannot inspect %s: %s", rel, exc)
                result.errors[rel] = f"cannot inspect path: {exc}"
                continue
            if is_link:
                logger.debug("Not following directory symlink %s", rel)
                continue
            if is_dir:
                if child.name in policy.ignore_dirs:
                    continue
                if rel_dir in module_roots:
                    result.module_dirs.append(
                        ModuleDir(layer=module_roots[rel_dir], module=child.name, path=rel)
                    )
                sub_dirs.append(rel)
            elif child.suffix in policy.source_extensions:
                result.files.append(rel)
        # Reverse so that the stack pops directories in sorted order.
        stack.extend(reversed(sub_dirs))

    result.files.sort()
    return result


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def _existing_target(project_root: Path, base: str, policy: Policy) -> _Target | None:
    """Find the file (or index directory) that *base* refers to.

    A path the filesystem refuses to stat (too long, bad permissions) is
    treated as missing.
    """
    try:
        return _find_target(project_root, base, policy)
    except OSError as exc:
        logger.debug("Cannot stat import target %s: %s", base, exc)
        return None


def _find_target(project_root: Path, base: str, policy: Policy) -> _Target | None:
    candidate = project_root / base
    if candidate.is_file():
        return _Target(path=base, is_dir=False)

    for ext in policy.source_extensions:
        if (project_root / f"{base}{ext}").is_file():
            return _Target(path=f"{base}{ext}", is_dir=False)

    stem, ext = posixpath.splitext(base)
    for replacement in _EMITTED_EXTENSIONS.get(ext, ()):
        if (project_root / f"{stem}{replacement}").is_file():
            return _Target(path=f"{stem}{replacement}", is_dir=False)

    if candidate.is_dir():
        for ext in policy.source_extensions:
            if (candidate / f"index{ext}").is_file():
                return _Target(path=base, is_dir=True)
    return None


def _apply_alias(specifier: str, policy: Policy) -> str | None:
    """Substitute a configured alias prefix, or return None if none applies."""
    for prefix, target in policy.aliases:
        if specifier == prefix:
            return target
        if specifier.startswith(prefix + "/"):
            rest = specifier[len(prefix) + 1 :]
            return normalize_rel_path(f"{target}/{rest}" if target else rest)
    return None


def resolve_import(
    specifier: str,
    source_path: str,
    line_number: int,
    project_root: Path,
    policy: Policy,
    *,
    kind: str = "import",
) -> ImportEdge:
    """Resolve a raw specifier from *source_path* into an :class:`ImportEdge`.

    Relative specifiers are joined to the importing file's directory, alias
    specifiers have their prefix substituted; everything else is an external
    package.  A relative or alias path that does not exist on disk yields an
    ``unresolved`` edge instead of an error.
    """
    if specifier.startswith(("./", "../")) or specifier in (".", ".."):
        base = normalize_rel_path(posixpath.join(posixpath.dirname(source_path), specifier))
    else:
        aliased = _apply_alias(specifier, policy)
        if aliased is None:
            return ImportEdge(
                source_path=source_path,
                specifier=specifier,
                line_number=line_number,
                target_layer=EXTERNAL,
                kind=kind,
            )
        base = aliased

    target = _existing_target(project_root, base, policy)
    if target is None:
        return ImportEdge(
            source_path=source_path,
            specifier=specifier,
            line_number=line_number,
            target_layer=UNRESOLVED,
            target_path=base,
            kind=kind,
        )

    identity = classify_target(target.path, policy, is_dir=target.is_dir)
    return ImportEdge(
        source_path=source_path,
        specifier=specifier,
        line_number=line_number,
        target_layer=identity.layer,
        target_path=target.path,
        target_module=identity.module,
        target_role=identity.role,
        public_entry=is_public_entry(target.path, policy, is_dir=target.is_dir),
        kind=kind,
    )


# ---------------------------------------------------------------------------
# Per-file processing
# ---------------------------------------------------------------------------


def _read_text(abs_path: Path) -> str:
    return abs_path.read_bytes().decode("utf-8-sig")


def scan_file(rel_path: str, project_root: Path, policy: Policy) -> SourceFile:
    """Read, classify and extract one file.

    Never raises: read, decode, classification and parse failures are stored
    on the returned :class:`SourceFile` so that the rest of the tree is still
    processed.
    """
    source = SourceFile(path=rel_path)
    try:
        identity = classify(rel_path, policy)
    except ClassificationError as exc:
        source.add_error(RULE_CLASSIFICATION_ERROR, str(exc))
        identity = None
    if identity is not None:
        source.layer = identity.layer
        source.module = identity.module
        source.role = identity.role

    try:
        source.text = _read_text(project_root / rel_path)
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Cannot read file: %s (%s)", rel_path, exc)
        source.add_error(RULE_IO_ERROR, f"cannot read file: {exc}")
        return source

    dialect = dialect_for_extension(posixpath.splitext(rel_path)[1])
    try:
        statements = extract_import_statements(source.text, dialect=dialect)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Cannot parse file: %s (%s)", rel_path, exc)
        source.add_error(RULE_IO_ERROR, f"cannot parse file: {exc}")
        return source

    source.edges = [
        resolve_import(
            stmt.specifier,
            rel_path,
            stmt.line_number,
            project_root,
            policy,
            kind=stmt.kind,
        )
        for stmt in statements
    ]
    logger.debug("Scanned %s: %d imports", rel_path, len(source.edges))
    return source


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def build_graph(
    project_root: Path,
    scan_root: str,
    policy: Policy,
    *,
    jobs: int = 1,
    discovery: Discovery | None = None,
) -> Graph:
    """Build the dependency graph for every source file under *scan_root*.

    Parameters
    ----------
    project_root:
        Directory that layer roots, aliases and reported paths are relative to.
    scan_root:
        Directory to scan, relative to *project_root* (usually ``src``).
    policy:
        The loaded policy.
    jobs:
        Number of worker threads for per-file scanning.  The resulting graph
        does not depend on this value.
    discovery:
        Pre-computed walk result; when *None* the tree is walked here.
    """
    found = discovery if discovery is not None else discover_files(project_root, scan_root, policy)
    paths = list(found.files)

    scanned: dict[str, SourceFile] = {}
    if jobs > 1:
        with ThreadPoolExecutor(max_workers=jobs) as pool:
            results = pool.map(lambda p: scan_file(p, project_root, policy), paths)
            for source in results:
                scanned[source.path] = source
    else:
        for path in paths:
            scanned[path] = scan_file(path, project_root, policy)

    for dir_path, message in found.errors.items():
        scanned[dir_path] = SourceFile(path=dir_path, errors=[(RULE_IO_ERROR, message)])

    module_dirs = sorted(set(found.module_dirs), key=lambda m: (m.path, m.layer))
    return Graph(
        files={p: scanned[p] for p in sorted(scanned)},
        module_dirs=module_dirs,
        project_root=project_root,
    )
