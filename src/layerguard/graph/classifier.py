"""File classifier: map a repository path to ``(layer, module, role)``."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from typing import TYPE_CHECKING

from layerguard.policy.loader import normalize_rel_path
from layerguard.policy.model import UNCLASSIFIED, UNCLASSIFIED_ROLE

if TYPE_CHECKING:
    from layerguard.policy.model import LayerDef, Policy


class ClassificationError(Exception):
    """Raised when a path under a modules root does not name a module."""


@dataclass(frozen=True)
class FileIdentity:
    """Where a file sits in the architecture."""

    layer: str
    module: str | None = None
    role: str = UNCLASSIFIED_ROLE


def _under(path: str, root: str) -> bool:
    if not root:
        return True
    return path == root or path.startswith(root + "/")


def match_layer(path: str, policy: Policy) -> LayerDef | None:
    """Return the layer whose root is the longest prefix of *path*.

    Ties between identical roots go to the layer configured first.
    """
    best: LayerDef | None = None
    for layer in policy.layers:
        if not _under(path, layer.root):
            continue
        if best is None or len(layer.root) > len(best.root):
            best = layer
    return best


def role_for_name(filename: str, policy: Policy) -> str:
    """Return the role whose stem matches *filename*, or ``unclassified``.

    A filename counts only when its extension is a configured source
    extension; an extension-less name (an import specifier) also counts.
    """
    stem, ext = posixpath.splitext(filename)
    if ext and ext not in policy.source_extensions:
        return UNCLASSIFIED_ROLE
    for role in policy.roles:
        if stem in role.stems:
            return role.name
    return UNCLASSIFIED_ROLE


def classify(path: str, policy: Policy) -> FileIdentity:
    """Classify a source file path.

    Never fails for a path outside every layer root: the ``unclassified``
    layer is returned instead.  Raises :class:`ClassificationError` when the
    file sits directly in a modules root (no module directory).
    """
    rel = normalize_rel_path(path)
    layer = match_layer(rel, policy)
    role = role_for_name(posixpath.basename(rel), policy)
    if layer is None:
        return FileIdentity(layer=UNCLASSIFIED, role=role)
    if not layer.modules:
        return FileIdentity(layer=layer.name, role=role)

    remainder = rel[len(layer.root) :].lstrip("/") if layer.root else rel
    segments = remainder.split("/") if remainder else []
    if len(segments) < 2:
        msg = (
            f"'{rel}' is directly inside modules root '{layer.root}'; "
            f"files must live in a module directory"
        )
        raise ClassificationError(msg)
    return FileIdentity(layer=layer.name, module=segments[0], role=role)


def classify_target(path: str, policy: Policy, *, is_dir: bool = False) -> FileIdentity:
    """Classify a resolved import target.

    A directory target (``@modules/accounts``) is the module's public entry,
    so it gets the first public-API role.  Targets directly inside a modules
    root without a module segment keep the layer but no module.
    """
    rel = normalize_rel_path(path)
    layer = match_layer(rel, policy)
    if is_dir:
        role = next((r.name for r in policy.roles if r.public_api), UNCLASSIFIED_ROLE)
    else:
        role = role_for_name(posixpath.basename(rel), policy)
    if layer is None:
        return FileIdentity(layer=UNCLASSIFIED, role=role)
    if not layer.modules:
        return FileIdentity(layer=layer.name, role=role)

    remainder = rel[len(layer.root) :].lstrip("/") if layer.root else rel
    segments = remainder.split("/") if remainder else []
    if not segments or (len(segments) == 1 and not is_dir):
        return FileIdentity(layer=layer.name, role=role)
    return FileIdentity(layer=layer.name, module=segments[0], role=role)


def is_public_entry(path: str, policy: Policy, *, is_dir: bool = False) -> bool:
    """Return True if *path* is a module's declared public entry.

    That is either the module directory itself or a public-API role file
    placed directly in the module directory.
    """
    rel = normalize_rel_path(path)
    layer = match_layer(rel, policy)
    if layer is None or not layer.modules:
        return False
    remainder = rel[len(layer.root) :].lstrip("/") if layer.root else rel
    segments = remainder.split("/") if remainder else []
    if is_dir:
        return len(segments) == 1
    if len(segments) != 2:
        return False
    role_name = role_for_name(segments[1], policy)
    role = policy.role(role_name)
    return role is not None and role.public_api
