"""Import extractor: read ``import``/``export ... from`` statements via tree-sitter."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tree_sitter import Language, Parser

if TYPE_CHECKING:
    from collections.abc import Callable

    from tree_sitter import Node as TSNode

logger = logging.getLogger(__name__)

# Grammar per file extension.  Plain JS is parsed with the TSX grammar since
# React sources routinely carry JSX in .js files.
_EXTENSION_DIALECTS: dict[str, str] = {
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
    ".js": "tsx",
    ".jsx": "tsx",
    ".mjs": "tsx",
    ".cjs": "tsx",
}

_STATEMENT_TYPES: frozenset[str] = frozenset({"import_statement", "export_statement"})
_COMMENT_TYPES: frozenset[str] = frozenset({"comment", "html_comment"})
_LITERAL_TYPES: frozenset[str] = _COMMENT_TYPES | {"string", "template_string", "regex"}

# Statement starts looked for when the parse tree has syntax errors.  The
# clause before `from` cannot span into another statement or contain code.
_STATEMENT_START_RE = re.compile(
    r"^[ \t]*(?P<kind>import|export)\b"
    r"(?:(?P<clause>(?:(?!^[ \t]*(?:import|export)\b)[^;'\"`()=])*?)\bfrom)?"
    r"[ \t\r\n]*(?P<quote>['\"])(?P<spec>[^'\"\n]+)(?P=quote)",
    re.MULTILINE,
)


@dataclass(frozen=True)
class ImportStatement:
    """A single top-level import or re-export."""

    specifier: str  # raw module path, quotes removed
    line_number: int  # 1-based
    kind: str  # "import" | "export"


# ---- Grammar loading (cached) ----


def _load_typescript() -> Language:
    import tree_sitter_typescript as tstypescript

    return Language(tstypescript.language_typescript())


def _load_tsx() -> Language:
    import tree_sitter_typescript as tstypescript

    return Language(tstypescript.language_tsx())


_DIALECT_LOADERS: dict[str, Callable[[], Language]] = {
    "typescript": _load_typescript,
    "tsx": _load_tsx,
}

_LANG_CACHE: dict[str, Language] = {}


def get_language(dialect: str) -> Language:
    """Return the tree-sitter language for *dialect* (``typescript`` or ``tsx``)."""
    if dialect in _LANG_CACHE:
        return _LANG_CACHE[dialect]
    loader = _DIALECT_LOADERS.get(dialect)
    if loader is None:
        msg = f"Unknown dialect '{dialect}', must be one of {sorted(_DIALECT_LOADERS)}"
        raise ValueError(msg)
    language = loader()
    _LANG_CACHE[dialect] = language
    return language


def dialect_for_extension(extension: str) -> str:
    """Pick the grammar for a file extension (TSX for anything unknown)."""
    return _EXTENSION_DIALECTS.get(extension.lower(), "tsx")


def _parse(content: bytes, dialect: str) -> TSNode:
    parser = Parser(get_language(dialect))
    return parser.parse(content).root_node


def _string_value(node: TSNode) -> str | None:
    """Return the value of a ``string`` node without its quotes."""
    raw = node.text.decode("utf-8") if node.text else ""
    if len(raw) < 2:
        return None
    return raw[1:-1]


def _inside_literal(root: TSNode, byte_pos: int) -> bool:
    node: TSNode | None = root.descendant_for_byte_range(byte_pos, byte_pos)
    while node is not None:
        if node.type in _LITERAL_TYPES:
            return True
        node = node.parent
    return False


def _recover_statements(text: str, root: TSNode, covered: set[int]) -> list[ImportStatement]:
    """Find statements the parser lost inside syntax-error regions.

    A line-start ``import``/``export ... from`` is taken as a statement unless
    it lies on a line already covered by a parsed statement, or inside a
    string, template or comment.
    """
    found: list[ImportStatement] = []
    for match in _STATEMENT_START_RE.finditer(text):
        kind = match.group("kind")
        if kind == "export" and match.group("clause") is None:
            continue
        pos = match.start("kind")
        row = text.count("\n", 0, pos)
        if row in covered:
            continue
        if _inside_literal(root, len(text[:pos].encode("utf-8"))):
            continue
        found.append(
            ImportStatement(specifier=match.group("spec"), line_number=row + 1, kind=kind)
        )
    return found


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def extract_import_statements(text: str, *, dialect: str = "typescript") -> list[ImportStatement]:
    """Return every top-level ``import``/``export ... from`` statement in *text*.

    Only statements at the top of the program count, so a log message or any
    other string literal containing ``from '...'`` never yields a specifier.
    ``export const x = ...`` and ``export default ...`` have no source and are
    ignored.  Dynamic ``import()`` calls and ``require()`` are not imports
    for this purpose.

    When the file has syntax errors, statements stranded in the damaged
    region are recovered from their line-start text.
    """
    if not text.strip():
        return []

    root = _parse(text.encode("utf-8"), dialect)
    results: list[ImportStatement] = []
    covered: set[int] = set()
    for child in root.children:
        if child.type not in _STATEMENT_TYPES:
            continue
        source = child.child_by_field_name("source")
        if source is None or source.type != "string":
            continue
        specifier = _string_value(source)
        if not specifier:
            continue
        results.append(
            ImportStatement(
                specifier=specifier,
                line_number=child.start_point[0] + 1,
                kind="import" if child.type == "import_statement" else "export",
            )
        )
        covered.update(range(child.start_point[0], child.end_point[0] + 1))

    if root.has_error:
        recovered = _recover_statements(text, root, covered)
        if recovered:
            logger.debug("Recovered %d import(s) from a file with syntax errors", len(recovered))
            results = sorted([*results, *recovered], key=lambda s: s.line_number)
    return results


def extract_imports(text: str, *, dialect: str = "typescript") -> list[str]:
    """Return the raw specifiers of *text*'s imports and re-exports, in order."""
    return [stmt.specifier for stmt in extract_import_statements(text, dialect=dialect)]


def strip_comments(text: str, *, dialect: str = "typescript") -> str:
    """Return *text* with every comment replaced by spaces.

    Newlines inside block comments are kept so that line numbers computed on
    the result match the original text.
    """
    if not text.strip():
        return text

    content = bytearray(text.encode("utf-8"))
    stack: list[TSNode] = [_parse(bytes(content), dialect)]
    while stack:
        node = stack.pop()
        if node.type in _COMMENT_TYPES:
            for pos in range(node.start_byte, node.end_byte):
                if content[pos] != ord("\n"):
                    content[pos] = ord(" ")
            continue
        stack.extend(node.children)
    return content.decode("utf-8")
