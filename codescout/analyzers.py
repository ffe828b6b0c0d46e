"""Per-revision analyzers, one per metric kind.

Every analyzer reads the already checked-out working tree and turns each
requested metric into exactly one :class:`ResultItem`, in metric order.
Analyzers never touch git; the orchestrator owns the working tree.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from . import config, shell
from .models import MetricInput, ResultItem
from .parser import DeclarationExtractor, find_files

logger = logging.getLogger(__name__)


class Analyzer(ABC):
    """Evaluates metrics of one kind against the working tree."""

    kind: str = ""

    def prepare(self) -> None:
        """Validate external prerequisites before any revision is checked out."""

    def label(self, metric: MetricInput) -> str:
        return metric.query

    @abstractmethod
    def analyze(self, root: Path, metrics: Sequence[MetricInput]) -> List[ResultItem]:
        ...


def _relative(path: Path, root: Path) -> str:
    rel = path.relative_to(root).as_posix()
    return rel or "."


def _read_text(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Skipping unreadable file %s: %s", path, exc)
        return None


def _files_with_extensions(root: Path, extensions: Sequence[str]) -> List[Path]:
    files: List[Path] = []
    for ext in extensions:
        files.extend(find_files(root, ext))
    return sorted(set(files))


# ===================================================================
# Types
# ===================================================================

class TypesAnalyzer(Analyzer):
    """Declarations inheriting from or conforming to the queried type."""

    kind = "types"

    def __init__(self, extensions: Sequence[str] = (), workers: int = config.DEFAULT_WORKERS) -> None:
        self.extensions = list(extensions or config.DEFAULT_EXTENSIONS)
        self.workers = workers
        self._extractor: Optional[DeclarationExtractor] = None

    def _extractor_for(self, root: Path) -> DeclarationExtractor:
        if self._extractor is None or self._extractor.project_root != root:
            self._extractor = DeclarationExtractor(root, workers=self.workers)
        return self._extractor

    def analyze(self, root: Path, metrics: Sequence[MetricInput]) -> List[ResultItem]:
        if not metrics:
            return []
        declarations = self._extractor_for(root).extract(self.extensions)
        return [
            ResultItem(label=self.label(metric), matches=declarations.resolve(metric.query))
            for metric in metrics
        ]


# ===================================================================
# Files
# ===================================================================

class FilesAnalyzer(Analyzer):
    """Files carrying the metric's extension."""

    kind = "files"

    def analyze(self, root: Path, metrics: Sequence[MetricInput]) -> List[ResultItem]:
        results = []
        for metric in metrics:
            matches = sorted(_relative(path, root) for path in find_files(root, metric.query))
            results.append(ResultItem(label=self.label(metric), matches=matches))
        return results


# ===================================================================
# Imports
# ===================================================================

_SWIFT_IMPORT = re.compile(
    r"^\s*(?:@\w+\s+)*import\s+"
    r"(?:(?:typealias|struct|class|enum|protocol|let|var|func)\s+)?"
    r"([A-Za-z_]\w*)"
)
_PYTHON_IMPORT = re.compile(r"^\s*import\s+(.+)$")
_PYTHON_FROM_IMPORT = re.compile(r"^\s*from\s+([A-Za-z_][\w.]*)\s+import\b")


def read_imports(source: str, extension: str) -> List[str]:
    """Top-level module names imported by *source*, in order of appearance."""
    modules: List[str] = []
    is_python = extension.lstrip(".") in ("py", "pyi")
    for line in source.splitlines():
        if is_python:
            match = _PYTHON_FROM_IMPORT.match(line)
            if match:
                modules.append(match.group(1).split(".")[0])
                continue
            match = _PYTHON_IMPORT.match(line)
            if match:
                for part in match.group(1).split("#", 1)[0].split(","):
                    name = part.strip().split(" ")[0]
                    if name:
                        modules.append(name.split(".")[0])
        else:
            match = _SWIFT_IMPORT.match(line)
            if match:
                modules.append(match.group(1))
    return modules


class ImportsAnalyzer(Analyzer):
    """Files whose import statements name the metric's module."""

    kind = "imports"

    def __init__(self, extensions: Sequence[str] = ()) -> None:
        self.extensions = list(extensions or config.DEFAULT_EXTENSIONS)

    def analyze(self, root: Path, metrics: Sequence[MetricInput]) -> List[ResultItem]:
        if not metrics:
            return []
        imports_by_file: Dict[str, List[str]] = {}
        for path in _files_with_extensions(root, self.extensions):
            source = _read_text(path)
            if source is not None:
                imports_by_file[_relative(path, root)] = read_imports(source, path.suffix)

        results = []
        for metric in metrics:
            wanted = metric.query.strip()
            matches = sorted(
                rel for rel, modules in imports_by_file.items() if wanted in modules
            )
            results.append(ResultItem(label=self.label(metric), matches=matches))
        return results


# ===================================================================
# Pattern
# ===================================================================

class PatternAnalyzer(Analyzer):
    """Lines containing the metric's literal text, reported as ``path:line``."""

    kind = "pattern"

    def __init__(self, extensions: Sequence[str] = ()) -> None:
        self.extensions = list(extensions or config.DEFAULT_EXTENSIONS)

    def analyze(self, root: Path, metrics: Sequence[MetricInput]) -> List[ResultItem]:
        if not metrics:
            return []
        sources: Dict[str, List[str]] = {}
        for path in _files_with_extensions(root, self.extensions):
            text = _read_text(path)
            if text is not None:
                sources[_relative(path, root)] = text.splitlines()

        results = []
        for metric in metrics:
            matches = [
                f"{rel}:{number}"
                for rel, lines in sources.items()
                for number, line in enumerate(lines, start=1)
                if metric.query in line
            ]
            # Plain string order: "a.swift:10" sorts before "a.swift:2"
            results.append(ResultItem(label=self.label(metric), matches=sorted(matches)))
        return results


# ===================================================================
# Lines of code (cloc)
# ===================================================================

class ClocNotInstalledError(Exception):
    """Raised when the ``cloc`` executable is not on PATH."""

    def __init__(self) -> None:
        super().__init__(
            "cloc is not installed. Please install it manually:\n\n"
            "  macOS:                brew install cloc\n"
            "  Linux (Ubuntu/Debian): sudo apt-get install -y cloc\n"
            "  Linux (Fedora/RHEL):   sudo dnf install cloc\n\n"
            "Or download from: https://github.com/AlDanial/cloc/releases"
        )


class ClocRunner:
    """Counts code lines for one language in one folder with ``cloc``."""

    def __init__(self, run: Callable[..., str] = shell.run) -> None:
        self._run = run

    @staticmethod
    def ensure_installed() -> None:
        if shutil.which("cloc") is None:
            raise ClocNotInstalledError()

    def lines_of_code(self, path: Path, language: str) -> int:
        output = self._run(["cloc", "--quiet", f"--include-lang={language}", str(path)])
        for line in output.splitlines():
            parts = line.split()
            # Rows read: <language> <files> <blank> <comment> <code>
            if len(parts) >= 5 and line.strip().startswith(language) and parts[-1].isdigit():
                return int(parts[-1])
        return 0


def format_loc_name(
    languages: Sequence[str],
    include: Sequence[str],
    exclude: Sequence[str],
    template: Optional[str] = None,
) -> str:
    """Render a LOC metric identifier from its name template."""
    result = template if template is not None else config.DEFAULT_LOC_TEMPLATE
    result = result.replace("%langs%", ", ".join(languages) or "Unknown")
    result = result.replace("%include%", ", ".join(include) or ".")
    result = result.replace("%exclude%", ", ".join(exclude))
    return result


def folders_to_analyze(root: Path, include: Sequence[str], exclude: Sequence[str]) -> List[Path]:
    """Folders ending with an *include* entry, minus any containing an *exclude* entry."""
    if include:
        folders = []
        for dirpath, dirnames, _ in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if d != ".git")
            for dirname in dirnames:
                folder = Path(dirpath) / dirname
                if any(folder.as_posix().endswith(entry.rstrip("/")) for entry in include):
                    folders.append(folder)
    else:
        folders = [root]

    lowered = [entry.lower() for entry in exclude if entry]
    return sorted(
        folder for folder in folders
        if not any(entry in _relative(folder, root).lower() for entry in lowered)
    )


class LOCAnalyzer(Analyzer):
    """Lines of code per language, summed over the selected folders."""

    kind = "loc"

    def __init__(self, runner: Optional[ClocRunner] = None) -> None:
        self.runner = runner or ClocRunner()

    def prepare(self) -> None:
        self.runner.ensure_installed()

    def analyze(self, root: Path, metrics: Sequence[MetricInput]) -> List[ResultItem]:
        results = []
        for metric in metrics:
            languages = list(metric.options.get("languages", []))
            folders = folders_to_analyze(
                root,
                metric.options.get("include", []),
                metric.options.get("exclude", []),
            )
            total = sum(
                self.runner.lines_of_code(folder, language)
                for language in languages
                for folder in folders
            )
            results.append(ResultItem(
                label=self.label(metric),
                matches=sorted(_relative(folder, root) for folder in folders),
                value=total,
            ))
        return results
