"""Declaration extraction: turns source files into flat declaration records.

Only structure is read, never semantics:
- Swift through Tree-sitter (error-tolerant, no compiler toolchain needed)
- Python through the built-in ``ast`` module

Each record carries the declaration's name and the raw text of every type
it inherits from or conforms to, generic arguments included.
"""

from __future__ import annotations

import ast
import importlib
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from tree_sitter import Language, Parser as TSParser

from .models import DeclarationRecord
from .resolver import DeclarationSet

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Language <-> file-extension mapping (extensible)
# ---------------------------------------------------------------------------
LANGUAGE_MAP: Dict[str, str] = {
    ".swift": "swift",
    ".py": "python",
}


def find_files(root: Path, extension: str) -> List[Path]:
    """List files under *root* ending in *extension*, skipping hidden entries.

    Vendored sources (``Pods``, ``Carthage``, ``build`` ...) are part of the
    tree and are counted like any other folder.
    """
    suffix = extension if extension.startswith(".") else f".{extension}"
    if not root.is_dir():
        logger.info("Directory does not exist: %s", root)
        return []
    found: List[Path] = []
    for path in root.rglob(f"*{suffix}"):
        rel_parts = path.relative_to(root).parts
        if any(part.startswith(".") for part in rel_parts):
            continue
        if path.is_file():
            found.append(path)
    return sorted(found)


# ===================================================================
# Abstract Parser Interface
# ===================================================================

class Parser(ABC):
    """Abstract base class for declaration parsers."""

    @abstractmethod
    def parse_file(
        self,
        file_path: Path,
        source: Optional[str] = None,
    ) -> List[DeclarationRecord]:
        """Parse a single file into declaration records."""
        ...

    @abstractmethod
    def supports_language(self, language: str) -> bool:
        """Return True if this parser can handle *language*."""
        ...


# ===================================================================
# Tree-sitter Parser (Swift)
# ===================================================================

_SWIFT_TYPE_KEYWORDS = {"class", "struct", "enum", "actor", "protocol"}


class SwiftTreeSitterParser(Parser):
    """Structural Swift parser built on Tree-sitter.

    Tree-sitter yields a concrete syntax tree even for files with syntax
    errors, so a broken file still contributes whatever declarations are
    recognisable in it.
    """

    # Map language name -> module that provides the tree-sitter Language
    _GRAMMAR_MODULES: Dict[str, str] = {
        "swift": "tree_sitter_swift",
    }

    def __init__(self, project_root: Optional[Path] = None) -> None:
        self.project_root = project_root
        self._languages: Dict[str, Language] = {}
        for lang, mod_name in self._GRAMMAR_MODULES.items():
            mod = importlib.import_module(mod_name)
            self._languages[lang] = Language(mod.language())
            logger.debug("Loaded tree-sitter grammar for %s", lang)

    def supports_language(self, language: str) -> bool:
        return language in self._languages

    def parse_file(
        self,
        file_path: Path,
        source: Optional[str] = None,
    ) -> List[DeclarationRecord]:
        if source is None:
            source = file_path.read_text(encoding="utf-8")

        # A fresh parser per call: parsers hold mutable state and files are
        # parsed from several worker threads.
        parser = TSParser(self._languages["swift"])
        tree = parser.parse(source.encode("utf-8"))

        records: List[DeclarationRecord] = []
        self._walk(tree.root_node, _rel_path(file_path, self.project_root), records)
        return records

    # ------------------------------------------------------------------
    # Declaration walker
    # ------------------------------------------------------------------

    def _walk(
        self,
        root: Any,
        rel_path: str,
        records: List[DeclarationRecord],
    ) -> None:
        # Explicit stack: expression nesting in a file is unbounded
        stack: List[Tuple[Any, List[str]]] = [
            (child, []) for child in reversed(root.named_children)
        ]
        while stack:
            node, scope = stack.pop()
            if node.type in ("class_declaration", "protocol_declaration"):
                inner = self._process_type(node, scope, rel_path, records)
                if inner is not None:
                    stack.extend(inner)
            elif node.type == "typealias_declaration":
                self._process_typealias(node, scope, rel_path, records)
            else:
                stack.extend((child, scope) for child in reversed(node.named_children))

    def _process_type(
        self,
        decl: Any,
        scope: List[str],
        rel_path: str,
        records: List[DeclarationRecord],
    ) -> Optional[List[Tuple[Any, List[str]]]]:
        """Record *decl* and return its body's children with their scope."""
        keyword = _declaration_keyword(decl)
        name_node = _name_node(decl)
        if name_node is None:
            return None
        name = _text(name_node)
        body = decl.child_by_field_name("body")

        if keyword == "extension":
            # Extensions only re-open a scope; their conformances are not declarations
            inner_scope = scope + name.split("<", 1)[0].strip().split(".")
        else:
            records.append(DeclarationRecord(
                name=name,
                inherited_types=tuple(_inherited_types(decl)),
                full_name=".".join(scope + [name]),
                file_path=rel_path,
                kind=keyword or "class",
            ))
            inner_scope = scope + [name]
        if body is None:
            return None
        return [(child, inner_scope) for child in reversed(body.named_children)]

    @staticmethod
    def _process_typealias(
        decl: Any,
        scope: List[str],
        rel_path: str,
        records: List[DeclarationRecord],
    ) -> None:
        name_node = _name_node(decl)
        value_node = decl.child_by_field_name("value")
        if value_node is None and decl.named_children:
            value_node = decl.named_children[-1]
        if name_node is None or value_node is None or value_node == name_node:
            return
        target = _text(value_node)
        if not target:
            return
        name = _text(name_node)
        records.append(DeclarationRecord(
            name=name,
            inherited_types=(target,),
            full_name=".".join(scope + [name]),
            file_path=rel_path,
            kind="typealias",
        ))


def _text(node: Any) -> str:
    return node.text.decode("utf-8", errors="replace").strip()


def _name_node(decl: Any) -> Optional[Any]:
    node = decl.child_by_field_name("name")
    if node is not None:
        return node
    for child in decl.named_children:
        if child.type in ("type_identifier", "simple_identifier", "user_type"):
            return child
    return None


def _declaration_keyword(decl: Any) -> Optional[str]:
    """Return the introducing keyword (class/struct/enum/actor/protocol/extension)."""
    kind = decl.child_by_field_name("declaration_kind")
    if kind is not None and kind.type in _SWIFT_TYPE_KEYWORDS | {"extension"}:
        return kind.type
    for child in decl.children:
        if not child.is_named and child.type in _SWIFT_TYPE_KEYWORDS | {"extension"}:
            return child.type
    return None


def _inherited_types(decl: Any) -> List[str]:
    inherited: List[str] = []
    pending = list(decl.named_children)
    while pending:
        child = pending.pop(0)
        if child.type == "inheritance_specifier":
            target = child.child_by_field_name("inherits_from")
            if target is None:
                target = child
            text = _text(target)
            if text:
                inherited.append(text)
        elif "inheritance" in child.type:
            # Grouping node around the specifiers in some grammar versions
            pending[:0] = child.named_children
    return inherited


# ===================================================================
# AST Parser (Python)
# ===================================================================

class PythonASTParser(Parser):
    """Python declarations via the built-in ``ast`` module."""

    def __init__(self, project_root: Optional[Path] = None) -> None:
        self.project_root = project_root

    def supports_language(self, language: str) -> bool:
        return language == "python"

    def parse_file(
        self,
        file_path: Path,
        source: Optional[str] = None,
    ) -> List[DeclarationRecord]:
        if source is None:
            source = file_path.read_text(encoding="utf-8")
        tree = ast.parse(source, filename=str(file_path))
        visitor = _ClassVisitor(_rel_path(file_path, self.project_root))
        visitor.visit(tree)
        return visitor.records


class _ClassVisitor(ast.NodeVisitor):
    """Collects class definitions (and ``type`` aliases) with their bases."""

    def __init__(self, rel_path: str) -> None:
        self.rel_path = rel_path
        self.scope: List[str] = []
        self.records: List[DeclarationRecord] = []

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        self.records.append(DeclarationRecord(
            name=node.name,
            inherited_types=tuple(ast.unparse(base) for base in node.bases),
            full_name=".".join(self.scope + [node.name]),
            file_path=self.rel_path,
            kind="class",
        ))
        self.scope.append(node.name)
        self.generic_visit(node)
        self.scope.pop()

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        # Classes local to a function are still declarations, scoped by the function
        self.scope.append(node.name)
        self.generic_visit(node)
        self.scope.pop()

    visit_AsyncFunctionDef = visit_FunctionDef

    def visit_TypeAlias(self, node: Any) -> None:
        name = ast.unparse(node.name)
        self.records.append(DeclarationRecord(
            name=name,
            inherited_types=(ast.unparse(node.value),),
            full_name=".".join(self.scope + [name]),
            file_path=self.rel_path,
            kind="typealias",
        ))


def _rel_path(file_path: Path, root: Optional[Path]) -> str:
    if root is not None:
        try:
            return file_path.relative_to(root).as_posix()
        except ValueError:
            pass
    return file_path.as_posix()


# ===================================================================
# Extractor facade
# ===================================================================

class DeclarationExtractor:
    """Dispatches files to the parser for their language.

    ``parse`` never raises: a file that cannot be read or parsed is logged
    and contributes no declarations, so one bad file never aborts the
    analysis of a revision.
    """

    def __init__(self, project_root: Path, workers: int = 1) -> None:
        self.project_root = project_root
        self.workers = max(1, workers)
        self._parsers: Dict[str, Parser] = {
            "swift": SwiftTreeSitterParser(project_root),
            "python": PythonASTParser(project_root),
        }

    def parser_for(self, file_path: Path) -> Optional[Parser]:
        lang = LANGUAGE_MAP.get(file_path.suffix)
        return self._parsers.get(lang) if lang else None

    def parse(self, file_path: Path) -> List[DeclarationRecord]:
        parser = self.parser_for(file_path)
        if parser is None:
            return []
        try:
            return parser.parse_file(file_path)
        except (OSError, UnicodeDecodeError, SyntaxError, ValueError) as exc:
            logger.warning("Failed to parse %s: %s", file_path, exc)
            return []
        except (RecursionError, MemoryError) as exc:
            # Pathologically nested source: ast recurses once per level
            logger.warning("Failed to parse %s: too deeply nested (%s)", file_path, type(exc).__name__)
            return []

    def list_files(self, extensions: Iterable[str]) -> List[Path]:
        files: List[Path] = []
        seen: Set[Path] = set()
        for ext in extensions:
            for path in find_files(self.project_root, ext):
                if path not in seen:
                    seen.add(path)
                    files.append(path)
        return files

    def extract(self, extensions: Sequence[str]) -> DeclarationSet:
        """Parse every matching file and join the results into one set.

        Parsing fans out over a bounded thread pool; ``map`` keeps file order
        and only returns once every file is done, so the resolver always sees
        the complete, deterministic set.
        """
        files = self.list_files(extensions)
        if self.workers == 1 or len(files) < 2:
            per_file = [self.parse(path) for path in files]
        else:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                per_file = list(pool.map(self.parse, files))
        records = [record for chunk in per_file for record in chunk]
        logger.debug("Extracted %d declarations from %d files", len(records), len(files))
        return DeclarationSet(records)
