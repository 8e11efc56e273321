"""Graph domain: file classifier, import extractor, dependency graph builder."""

from layerguard.graph.builder import (
    Discovery,
    Graph,
    ImportEdge,
    ModuleDir,
    SourceFile,
    build_graph,
    discover_files,
    resolve_import,
    scan_file,
)
from layerguard.graph.classifier import (
    ClassificationError,
    FileIdentity,
    classify,
    classify_target,
    is_public_entry,
)
from layerguard.graph.import_extractor import (
    ImportStatement,
    dialect_for_extension,
    extract_import_statements,
    extract_imports,
    strip_comments,
)

__all__ = [
    "ClassificationError",
    "Discovery",
    "FileIdentity",
    "Graph",
    "ImportEdge",
    "ImportStatement",
    "ModuleDir",
    "SourceFile",
    "build_graph",
    "classify",
    "classify_target",
    "dialect_for_extension",
    "discover_files",
    "extract_import_statements",
    "extract_imports",
    "is_public_entry",
    "resolve_import",
    "scan_file",
    "strip_comments",
]
