"""Lexical export/import analyzer for TypeScript and JavaScript sources.

Recovers the symbol table of one file without a compiler front end:
exported declarations with their kind, and imported symbols with their
origin. Used by the trace generator to build low-level traces.

Statements that span several lines are joined first: an import keeps
accumulating until a ``;`` or a ``from '...'`` clause, and brace lists
(``export { a, b }``, destructured ``const``/``require``) keep
accumulating until their braces balance.
"""

from __future__ import annotations

import re
from pathlib import Path

from archtrace.core.models import ExportEntry, FileAnalysis, ImportEntry

ANALYZABLE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".mts", ".cts")

# Longest statement we keep joining before giving up on a terminator
_MAX_STATEMENT_LINES = 60

_IDENT = r"[A-Za-z_$][\w$]*"

_FROM_CLAUSE = re.compile(r"""\bfrom\s*(['"`])([^'"`]+)\1""")

# Statement starts
_IMPORT_START = re.compile(r"^import\b(?!\s*[(.])")
_EXPORT_START = re.compile(r"^export\b")
_REQUIRE_START = re.compile(rf"^(?:const|let|var)\s+(?:{_IDENT}|\{{)[^=]*=\s*require\s*\(")

# Imports
_SIDE_EFFECT_IMPORT = re.compile(r"""^import\s*(['"`])([^'"`]+)\1""")
_IMPORT_FROM = re.compile(r"""^import\s+(?:type\s+)?(.+?)\s*\bfrom\s*(['"`])([^'"`]+)\2""", re.DOTALL)
_IMPORT_EQUALS_REQUIRE = re.compile(
    rf"""^import\s+({_IDENT})\s*=\s*require\s*\(\s*(['"`])([^'"`]+)\2\s*\)"""
)
_REQUIRE = re.compile(
    rf"""^(?:const|let|var)\s+({_IDENT}|\{{[^}}]*\}})\s*=\s*require\s*\(\s*(['"`])([^'"`]+)\2\s*\)""",
    re.DOTALL,
)

# Exports
_EXPORT_DEFAULT_FUNCTION = re.compile(
    rf"^export\s+default\s+(?:async\s+)?function\s*\*?\s*({_IDENT})?"
)
_EXPORT_DEFAULT_CLASS = re.compile(rf"^export\s+default\s+(?:abstract\s+)?class\b\s*(?!extends\b)({_IDENT})?")
_EXPORT_DEFAULT_IDENT = re.compile(rf"^export\s+default\s+({_IDENT})\s*;?\s*$")
_EXPORT_DEFAULT = re.compile(r"^export\s+default\b")
_EXPORT_FUNCTION = re.compile(
    rf"^export\s+(?:declare\s+)?(?:async\s+)?function\s*\*?\s*({_IDENT})"
)
_EXPORT_CLASS = re.compile(rf"^export\s+(?:declare\s+)?(?:abstract\s+)?class\s+({_IDENT})")
_EXPORT_INTERFACE = re.compile(rf"^export\s+(?:declare\s+)?interface\s+({_IDENT})")
_EXPORT_ENUM = re.compile(rf"^export\s+(?:declare\s+)?(?:const\s+)?enum\s+({_IDENT})")
_EXPORT_TYPE_ALIAS = re.compile(rf"^export\s+(?:declare\s+)?type\s+({_IDENT})\s*(?:<|=)")
_EXPORT_BINDING = re.compile(r"^export\s+(?:declare\s+)?(?:const|let|var)\s+(.*)$", re.DOTALL)
_EXPORT_STAR_AS = re.compile(rf"^export\s+(?:type\s+)?\*\s*as\s+({_IDENT})\s*from\b")
_EXPORT_STAR = re.compile(r"^export\s+(?:type\s+)?\*\s*from\b")
_EXPORT_LIST = re.compile(r"^export\s+(?:type\s+)?\{([^}]*)\}", re.DOTALL)


def is_analyzable(path: str | Path) -> bool:
    """Return True if the file extension belongs to the TS/JS family."""
    return str(path).lower().endswith(ANALYZABLE_EXTENSIONS)


def analyze_file(path: Path) -> FileAnalysis:
    """Analyze a source file on disk.

    Unreadable or binary files produce an empty analysis instead of
    raising, so one bad file never aborts a module.
    """
    if not is_analyzable(path):
        return FileAnalysis()
    try:
        raw = path.read_bytes()
    except OSError:
        return FileAnalysis()
    if b"\x00" in raw[:8192]:
        return FileAnalysis()
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        return FileAnalysis()
    return analyze_source(text, path)


def analyze_source(source: str, path: str | Path | None = None) -> FileAnalysis:
    """Extract exports and imports from TS/JS source text.

    Args:
        source: Full text of the file.
        path: Optional file path; non TS/JS extensions yield an empty result.

    Returns:
        FileAnalysis with exports and imports in order of first appearance.
    """
    if path is not None and not is_analyzable(path):
        return FileAnalysis()

    exports: list[ExportEntry] = []
    imports: list[ImportEntry] = []
    seen_exports: set[tuple[str, str]] = set()

    for statement in _iter_statements(source):
        if _EXPORT_START.match(statement):
            for entry in _parse_export(statement):
                key = (entry.symbol, entry.type)
                if key not in seen_exports:
                    seen_exports.add(key)
                    exports.append(entry)
            # "export { a } from 'x'" also depends on x, but it is not an import
            continue
        parsed = _parse_import(statement)
        if parsed is not None:
            _merge_import(imports, parsed)

    return FileAnalysis(exports=exports, imports=imports)


# =============================================================================
# Statement splitting
# =============================================================================


def _strip_line_comment(line: str) -> str:
    """Remove a trailing ``//`` comment that is not inside a string literal."""
    quote: str | None = None
    i = 0
    while i < len(line):
        char = line[i]
        if quote:
            if char == "\\":
                i += 2
                continue
            if char == quote:
                quote = None
        elif char in ("'", '"', "`"):
            quote = char
        elif char == "/" and line.startswith("//", i):
            return line[:i]
        i += 1
    return line


def _strip_block_comments(source: str) -> str:
    """Blank out ``/* ... */`` comments that are not inside string literals.

    Newlines inside a removed comment are kept so line numbers hold.
    ``//`` comments are copied through untouched; a ``/*`` inside one does
    not open a block.
    """
    out: list[str] = []
    quote: str | None = None
    i = 0
    length = len(source)
    while i < length:
        char = source[i]
        if quote:
            out.append(char)
            if char == "\\" and i + 1 < length:
                out.append(source[i + 1])
                i += 2
                continue
            if char == quote or (char == "\n" and quote != "`"):
                quote = None
            i += 1
            continue
        if char in ("'", '"', "`"):
            quote = char
        elif source.startswith("//", i):
            end = source.find("\n", i)
            end = length if end == -1 else end
            out.append(source[i:end])
            i = end
            continue
        elif source.startswith("/*", i):
            end = source.find("*/", i + 2)
            end = length if end == -1 else end + 2
            out.append("\n" * source.count("\n", i, end))
            i = end
            continue
        out.append(char)
        i += 1
    return "".join(out)


def _clean_lines(source: str) -> list[str]:
    without_blocks = _strip_block_comments(source)
    return [_strip_line_comment(line).strip() for line in without_blocks.splitlines()]


def _brace_balance(text: str) -> int:
    return text.count("{") - text.count("}")


def _is_complete(statement: str, kind: str) -> bool:
    if kind == "import":
        if _SIDE_EFFECT_IMPORT.match(statement) or _FROM_CLAUSE.search(statement):
            return True
        if _IMPORT_EQUALS_REQUIRE.match(statement):
            return True
        return statement.rstrip().endswith(";")
    if kind == "require":
        return ")" in statement.split("require", 1)[1]
    # Brace-delimited exports and destructured bindings
    if _brace_balance(statement) > 0:
        return False
    return True


def _statement_kind(line: str) -> str | None:
    if _IMPORT_START.match(line):
        return "import"
    if _REQUIRE_START.match(line):
        return "require"
    if _EXPORT_START.match(line):
        if re.match(r"^export\s+(?:type\s+)?\{", line) or re.match(
            r"^export\s+(?:declare\s+)?(?:const|let|var)\s*[{\[]", line
        ):
            return "export-braces"
        return "export"
    if re.match(rf"^(?:const|let|var)\s+\{{", line) and "require" not in line:
        # Possibly a multi-line destructured require; decided once joined
        return "maybe-require"
    return None


def _iter_statements(source: str):
    """Yield import/export/require statements, each joined onto one line."""
    lines = _clean_lines(source)
    i = 0
    total = len(lines)
    while i < total:
        line = lines[i]
        kind = _statement_kind(line) if line else None
        if kind is None:
            i += 1
            continue

        if kind == "export":
            # Declarations are resolved from their header line
            yield line
            i += 1
            continue

        parts = [line]
        j = i + 1
        if kind == "maybe-require":
            while _brace_balance(" ".join(parts)) > 0 and j < total and j - i < _MAX_STATEMENT_LINES:
                parts.append(lines[j])
                j += 1
            joined = " ".join(p for p in parts if p)
            if j < total and "require" not in joined and joined.rstrip().endswith("="):
                parts.append(lines[j])
                j += 1
                joined = " ".join(p for p in parts if p)
            if _REQUIRE_START.match(joined):
                yield joined
                i = j
            else:
                i += 1
            continue

        check_kind = "braces" if kind == "export-braces" else kind
        joined = line
        while not _is_complete(joined, check_kind) and j < total and j - i < _MAX_STATEMENT_LINES:
            parts.append(lines[j])
            j += 1
            joined = " ".join(p for p in parts if p)

        if kind == "export-braces" and not _FROM_CLAUSE.search(joined) and not joined.endswith(";"):
            # "export { a }\nfrom './x'" - pull in a dangling from clause
            k = j
            while k < total and not lines[k]:
                k += 1
            if k < total and lines[k].startswith("from"):
                joined = f"{joined} {lines[k]}"
                j = k + 1

        yield joined
        i = j


# =============================================================================
# Export parsing
# =============================================================================


def _split_top_level(text: str, separator: str = ",") -> list[str]:
    """Split on a separator that is not nested inside brackets or strings."""
    items: list[str] = []
    depth = 0
    quote: str | None = None
    current: list[str] = []
    for char in text:
        if quote:
            current.append(char)
            if char == quote:
                quote = None
            continue
        if char in ("'", '"', "`"):
            quote = char
        elif char in "([{<":
            depth += 1
        elif char in ")]}>":
            depth = max(0, depth - 1)
        elif char == separator and depth == 0:
            items.append("".join(current))
            current = []
            continue
        current.append(char)
    items.append("".join(current))
    return [item.strip() for item in items if item.strip()]


def _binding_names(pattern: str) -> list[str]:
    """Return the local names bound by a declaration or destructuring pattern."""
    pattern = pattern.strip()
    if pattern.startswith("{") or pattern.startswith("["):
        inner = pattern[1 : pattern.rfind("}" if pattern.startswith("{") else "]")]
        names: list[str] = []
        for item in _split_top_level(inner):
            item = item.split("=", 1)[0].strip()
            if item.startswith("..."):
                item = item[3:].strip()
            if ":" in item and pattern.startswith("{"):
                item = item.split(":", 1)[1].strip()
            if item.startswith("{") or item.startswith("["):
                names.extend(_binding_names(item))
                continue
            match = re.match(_IDENT, item)
            if match:
                names.append(match.group(0))
        return names
    match = re.match(_IDENT, pattern)
    return [match.group(0)] if match else []


def _declared_bindings(declarations: str) -> list[str]:
    """Names declared by ``a = 1, { b } = obj, c: T = x``."""
    names: list[str] = []
    for declaration in _split_top_level(declarations.rstrip(";")):
        if declaration.startswith("{") or declaration.startswith("["):
            close = "}" if declaration.startswith("{") else "]"
            end = declaration.find(close)
            target = declaration[: end + 1] if end != -1 else declaration
            names.extend(_binding_names(target))
            continue
        names.extend(_binding_names(declaration))
    return names


def _export_list_names(body: str) -> list[str]:
    names: list[str] = []
    for item in _split_top_level(body):
        item = re.sub(r"^type\s+", "", item)
        parts = re.split(r"\s+as\s+", item)
        name = parts[-1].strip()
        if name:
            names.append(name)
    return names


def _parse_export(statement: str) -> list[ExportEntry]:
    match = _EXPORT_DEFAULT_FUNCTION.match(statement)
    if match:
        return [ExportEntry(match.group(1) or "default", "default")]
    match = _EXPORT_DEFAULT_CLASS.match(statement)
    if match:
        return [ExportEntry(match.group(1) or "default", "default")]
    match = _EXPORT_DEFAULT_IDENT.match(statement)
    if match:
        return [ExportEntry(match.group(1), "default")]
    if _EXPORT_DEFAULT.match(statement):
        return [ExportEntry("default", "default")]

    for pattern, kind in (
        (_EXPORT_FUNCTION, "function"),
        (_EXPORT_CLASS, "class"),
        (_EXPORT_INTERFACE, "interface"),
        (_EXPORT_ENUM, "enum"),
        (_EXPORT_TYPE_ALIAS, "type"),
    ):
        match = pattern.match(statement)
        if match:
            return [ExportEntry(match.group(1), kind)]

    match = _EXPORT_BINDING.match(statement)
    if match:
        return [ExportEntry(name, "const") for name in _declared_bindings(match.group(1))]

    match = _EXPORT_STAR_AS.match(statement)
    if match:
        return [ExportEntry(match.group(1), "reexport")]
    if _EXPORT_STAR.match(statement):
        return [ExportEntry("*", "reexport")]

    match = _EXPORT_LIST.match(statement)
    if match:
        return [ExportEntry(name, "reexport") for name in _export_list_names(match.group(1))]

    return []


# =============================================================================
# Import parsing
# =============================================================================


def _named_import_symbols(body: str) -> list[str]:
    symbols: list[str] = []
    for item in _split_top_level(body):
        item = re.sub(r"^type\s+", "", item)
        parts = re.split(r"\s+as\s+", item)
        local = parts[-1].strip()
        if not local:
            continue
        if len(parts) > 1 and parts[0].strip() == "default":
            symbols.append(f"default as {local}")
        else:
            symbols.append(local)
    return symbols


def _import_clause_symbols(clause: str) -> list[str]:
    """Symbols for ``X``, ``* as ns``, ``{ a, b as c }`` and their combinations."""
    clause = clause.strip()
    symbols: list[str] = []
    brace = clause.find("{")
    if brace != -1:
        end = clause.rfind("}")
        named = clause[brace + 1 : end if end != -1 else len(clause)]
        head = clause[:brace]
        tail = clause[end + 1 :] if end != -1 else ""
        leading = [p for p in _split_top_level(head + tail) if p]
        symbols.extend(_head_symbols(leading))
        symbols.extend(_named_import_symbols(named))
        return symbols
    return _head_symbols(_split_top_level(clause))


def _head_symbols(parts: list[str]) -> list[str]:
    symbols: list[str] = []
    for part in parts:
        namespace = re.match(rf"^\*\s*as\s+({_IDENT})$", part)
        if namespace:
            symbols.append(f"* as {namespace.group(1)}")
            continue
        default = re.match(rf"^(?:type\s+)?({_IDENT})$", part)
        if default:
            symbols.append(f"default as {default.group(1)}")
    return symbols


def _parse_import(statement: str) -> ImportEntry | None:
    match = _SIDE_EFFECT_IMPORT.match(statement)
    if match:
        return ImportEntry(source=match.group(2))
    match = _IMPORT_EQUALS_REQUIRE.match(statement)
    if match:
        return ImportEntry(source=match.group(3), symbols=[f"default as {match.group(1)}"])
    match = _IMPORT_FROM.match(statement)
    if match:
        return ImportEntry(source=match.group(3), symbols=_import_clause_symbols(match.group(1)))
    match = _REQUIRE.match(statement)
    if match:
        target = match.group(1)
        if target.startswith("{"):
            symbols = _binding_names(target)
        else:
            symbols = [f"default as {target}"]
        return ImportEntry(source=match.group(3), symbols=symbols)
    return None


def _merge_import(imports: list[ImportEntry], entry: ImportEntry) -> None:
    for existing in imports:
        if existing.source == entry.source:
            for symbol in entry.symbols:
                if symbol not in existing.symbols:
                    existing.symbols.append(symbol)
            return
    imports.append(ImportEntry(source=entry.source, symbols=list(entry.symbols)))
