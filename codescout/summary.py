"""Human-readable summaries of a finished run: plain text, rich table, Markdown."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from rich.table import Table

from .config import SHORT_HASH_LENGTH
from .models import Output

logger = logging.getLogger(__name__)

# kind -> (heading, column title)
_TITLES: Dict[str, Tuple[str, str]] = {
    "types": ("Type counts", "Type"),
    "files": ("File counts", "Extension"),
    "imports": ("Import counts", "Import"),
    "pattern": ("Pattern matches", "Pattern"),
    "loc": ("Lines of code", "Metric"),
}


def _titles(kind: str) -> Tuple[str, str]:
    return _TITLES.get(kind, ("Results", "Metric"))


def _rows(outputs: Sequence[Output]) -> List[Tuple[str, str, int]]:
    return [
        (output.commit[:SHORT_HASH_LENGTH], item.label, item.count)
        for output in outputs
        for item in output.results
    ]


def summary_lines(outputs: Sequence[Output], kind: str) -> List[str]:
    """``Type counts:`` followed by ``  - abc1234: UIView: 3`` lines."""
    if not outputs:
        return []
    heading, _ = _titles(kind)
    return [f"{heading}:"] + [f"  - {commit}: {label}: {count}" for commit, label, count in _rows(outputs)]


def summary_table(outputs: Sequence[Output], kind: str) -> Table:
    heading, column = _titles(kind)
    table = Table(title=heading, show_header=True, show_lines=False)
    table.add_column("Commit", style="cyan", no_wrap=True)
    table.add_column(column, style="bold")
    table.add_column("Count", justify="right")
    for commit, label, count in _rows(outputs):
        table.add_row(commit, label, str(count))
    return table


def summary_markdown(outputs: Sequence[Output], kind: str) -> str:
    heading, column = _titles(kind)
    lines = [f"## codescout {kind} summary"]
    if outputs:
        lines += [
            "",
            f"### {heading}",
            "",
            f"| Commit | {column} | Count |",
            "|--------|------|-------|",
        ]
        for commit, label, count in _rows(outputs):
            escaped = label.replace("|", "\\|")
            lines.append(f"| `{commit}` | `{escaped}` | {count} |")
    return "\n".join(lines) + "\n"


def write_step_summary(markdown: str, path: Optional[str] = None) -> bool:
    """Append *markdown* to the GitHub Actions job summary, when one is configured."""
    target = path or os.environ.get("GITHUB_STEP_SUMMARY")
    if not target:
        return False
    try:
        with Path(target).open("a", encoding="utf-8") as handle:
            handle.write(markdown)
    except OSError as exc:
        logger.warning("Could not write job summary to %s: %s", target, exc)
        return False
    return True
